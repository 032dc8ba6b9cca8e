"""
Tests for provider selection.
"""

import pytest

from postpilot.ai.llm_providers import (
    ClaudeProvider,
    GeminiProvider,
    OpenAIProvider,
    ProviderRegistry,
)
from postpilot.config import PostPilotConfig, StaticConfigSource
from postpilot.encryption import ApiKeyCipher
from postpilot.exceptions import NoProviderConfigured
from postpilot.models import Feature


@pytest.fixture
def config():
    return PostPilotConfig()


@pytest.fixture
def registry(config):
    return ProviderRegistry(StaticConfigSource(config))


class TestSelection:

    def test_global_provider(self, registry, config):
        """Features use the global provider by default."""
        config.provider = "gemini"
        assert registry.provider_name_for(Feature.FAQ) == "gemini"

    def test_feature_override(self, registry, config):
        """A feature's own provider wins over the global one."""
        config.provider = "openai"
        config.internal_links.provider = "claude"
        assert registry.provider_name_for(Feature.LINKS) == "claude"
        assert registry.provider_name_for(Feature.SUMMARY) == "openai"

    def test_unknown_provider_falls_back(self, registry):
        assert registry.normalize_name("Mistral") == "openai"
        assert registry.normalize_name(" Claude ") == "claude"
        assert registry.normalize_name(None) == "openai"

    def test_create_returns_vendor_class(self, registry):
        assert isinstance(registry.create("openai"), OpenAIProvider)
        assert isinstance(registry.create("claude"), ClaudeProvider)
        assert isinstance(registry.create("gemini"), GeminiProvider)

    def test_register_custom_class(self, registry):
        """Additional vendors can be registered."""
        class LocalProvider(OpenAIProvider):
            @property
            def name(self):
                return "local"

        registry.register("local", LocalProvider)
        assert "local" in registry.names
        assert isinstance(registry.create("local"), LocalProvider)


class TestForFeature:

    def test_no_key_raises(self, registry):
        """A provider without a key counts as not configured."""
        with pytest.raises(NoProviderConfigured) as exc_info:
            registry.for_feature(Feature.FAQ)
        assert exc_info.value.code == "no_provider"
        assert "not configured for faq" in exc_info.value.message

    def test_settings_reach_client(self, registry, config):
        """Key and model come from the current settings."""
        config.providers["claude"].api_key = "sk-ant"
        config.providers["claude"].model = "claude-3-haiku"
        config.provider = "claude"

        provider = registry.for_feature(Feature.SUMMARY)
        assert provider.config.api_key == "sk-ant"
        assert provider.model == "claude-3-haiku"

    def test_key_rotation_applies_immediately(self, registry, config):
        """A new key is used by the very next client built."""
        config.providers["openai"].api_key = "sk-old"
        assert registry.for_feature(Feature.FAQ).config.api_key == "sk-old"

        config.providers["openai"].api_key = "sk-new"
        assert registry.for_feature(Feature.FAQ).config.api_key == "sk-new"

    def test_stored_key_is_decrypted(self, config):
        cipher = ApiKeyCipher(ApiKeyCipher.generate_key())
        config.providers["openai"].api_key = cipher.encrypt("sk-secret")
        registry = ProviderRegistry(StaticConfigSource(config), cipher=cipher)
        assert registry.for_feature(Feature.FAQ).config.api_key == "sk-secret"

    def test_explicit_key(self, registry):
        """create() accepts a plaintext key overriding settings."""
        assert registry.create("gemini", api_key="AIza").config.api_key == "AIza"
