"""
Provider registry and selection.

Maps provider names to client classes and builds a client for a feature
from the current configuration. Nothing is cached between calls: every
lookup reads configuration again and decrypts the key again, so settings
changes apply to the very next request.
"""

import logging
from typing import Dict, List, Optional, Type

import httpx

from ...config import ConfigSource, DEFAULT_MODELS
from ...encryption import ApiKeyCipher
from ...exceptions import NoProviderConfigured
from ...models import Feature
from .base import BaseLLMProvider, ProviderConfig
from .claude import ClaudeProvider
from .gemini import GeminiProvider
from .grok import GrokProvider
from .openai import OpenAIProvider

logger = logging.getLogger(__name__)

DEFAULT_PROVIDER = "openai"


class ProviderRegistry:
    """Central registry of LLM provider clients."""

    def __init__(
        self,
        config: ConfigSource,
        cipher: Optional[ApiKeyCipher] = None,
        client: Optional[httpx.Client] = None,
    ):
        """
        Args:
            config: Source of persisted settings
            cipher: Decrypts stored API keys (pass-through when None)
            client: Shared HTTP client handed to every provider built
        """
        self.config = config
        self.cipher = cipher or ApiKeyCipher()
        self.client = client
        self._classes: Dict[str, Type[BaseLLMProvider]] = {
            "openai": OpenAIProvider,
            "claude": ClaudeProvider,
            "gemini": GeminiProvider,
            "grok": GrokProvider,
        }

    def register(self, name: str, provider_class: Type[BaseLLMProvider]) -> None:
        """Register (or replace) a provider class under ``name``."""
        self._classes[name] = provider_class

    @property
    def names(self) -> List[str]:
        return list(self._classes)

    def normalize_name(self, name: Optional[str]) -> str:
        """Lower-case a provider name, falling back to OpenAI when unknown."""
        provider = (name or DEFAULT_PROVIDER).strip().lower()
        if provider not in self._classes:
            logger.warning(f"Unknown provider '{provider}', using {DEFAULT_PROVIDER}")
            provider = DEFAULT_PROVIDER
        return provider

    def provider_name_for(self, feature: Feature) -> str:
        """Provider configured for a feature, else the global provider."""
        name = (
            self.config.get(f"{feature.settings_name}.provider")
            or self.config.get("provider")
        )
        return self.normalize_name(name)

    def provider_config(self, name: str, api_key: Optional[str] = None) -> ProviderConfig:
        """
        Build a ProviderConfig from settings.

        Args:
            name: Provider name
            api_key: Plaintext key overriding the stored one
        """
        name = self.normalize_name(name)
        if api_key is None:
            api_key = self.cipher.decrypt(self.config.get(f"providers.{name}.api_key"))
        return ProviderConfig(
            provider_id=name,
            api_key=api_key or None,
            model=self.config.get(f"providers.{name}.model") or DEFAULT_MODELS.get(name),
            timeout=self.config.get(f"providers.{name}.timeout"),
        )

    def create(self, name: str, api_key: Optional[str] = None) -> BaseLLMProvider:
        """Instantiate a provider client by name."""
        config = self.provider_config(name, api_key=api_key)
        return self._classes[config.provider_id](config, client=self.client)

    def for_feature(self, feature: Feature) -> BaseLLMProvider:
        """
        Provider client for a feature.

        Raises:
            NoProviderConfigured: no API key is stored for the selected provider
        """
        name = self.provider_name_for(feature)
        provider = self.create(name)
        if not provider.config.api_key:
            raise NoProviderConfigured(
                f"AI provider is not configured for {feature.settings_name.replace('_', ' ')}. "
                f"Add a {provider.display_name} API key in settings.",
                provider=name,
            )
        logger.debug(f"Using {name} ({provider.model}) for {feature.value}")
        return provider
