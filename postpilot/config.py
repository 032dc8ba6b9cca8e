"""
Configuration management for postpilot.

Handles loading and saving user configuration from:
- XDG config directory: ~/.config/postpilot/config.json
- Fallback: ~/.postpilot/config.json

API keys are stored encrypted (see postpilot.encryption). Nothing here
caches the loaded file: FileConfigSource re-reads it on every lookup so a
rotated key takes effect on the next request.
"""

import json
import logging
from dataclasses import dataclass, asdict, field
from pathlib import Path
from typing import Any, Dict, Optional

logger = logging.getLogger(__name__)

SUPPORTED_PROVIDERS = ("openai", "claude", "gemini", "grok")

DEFAULT_MODELS = {
    "openai": "gpt-4o",
    "claude": "claude-3-5-sonnet-20241022",
    "gemini": "gemini-2.5-flash",
    "grok": "grok-beta",
}

_MISSING = object()


@dataclass
class ProviderSettings:
    """Credentials and model for one LLM vendor."""
    api_key: Optional[str] = None
    model: Optional[str] = None
    timeout: Optional[float] = None


def _default_providers() -> Dict[str, ProviderSettings]:
    return {name: ProviderSettings(model=model) for name, model in DEFAULT_MODELS.items()}


@dataclass
class FeatureSettings:
    """Per-feature toggle and provider override."""
    enabled: bool = True
    provider: Optional[str] = None
    position: str = "after_content"
    layout: str = "accordion"


@dataclass
class RateLimitConfig:
    """Generation limits per user."""
    post_limit: int = 2
    post_window: int = 300
    daily_limit: int = 30
    daily_window: int = 86400


@dataclass
class CacheConfig:
    """Result cache settings."""
    ttl: int = 86400
    db_path: Optional[str] = None


@dataclass
class PostPilotConfig:
    """Main postpilot configuration."""
    provider: str = "openai"
    providers: Dict[str, ProviderSettings] = field(default_factory=_default_providers)
    faq: FeatureSettings = field(default_factory=FeatureSettings)
    summary: FeatureSettings = field(
        default_factory=lambda: FeatureSettings(position="before_content")
    )
    internal_links: FeatureSettings = field(default_factory=FeatureSettings)
    rate_limit: RateLimitConfig = field(default_factory=RateLimitConfig)
    cache: CacheConfig = field(default_factory=CacheConfig)
    debug_logging: bool = False

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "provider": self.provider,
            "providers": {name: asdict(p) for name, p in self.providers.items()},
            "faq": asdict(self.faq),
            "summary": asdict(self.summary),
            "internal_links": asdict(self.internal_links),
            "rate_limit": asdict(self.rate_limit),
            "cache": asdict(self.cache),
            "debug_logging": self.debug_logging,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'PostPilotConfig':
        """Create from dictionary."""
        providers = _default_providers()
        for name, settings in data.get("providers", {}).items():
            merged = asdict(providers.get(name, ProviderSettings()))
            merged.update({k: v for k, v in settings.items() if v is not None})
            providers[name] = ProviderSettings(**merged)

        return cls(
            provider=data.get("provider", "openai"),
            providers=providers,
            faq=FeatureSettings(**data.get("faq", {})),
            summary=FeatureSettings(**{"position": "before_content", **data.get("summary", {})}),
            internal_links=FeatureSettings(**data.get("internal_links", {})),
            rate_limit=RateLimitConfig(**data.get("rate_limit", {})),
            cache=CacheConfig(**data.get("cache", {})),
            debug_logging=data.get("debug_logging", False),
        )

    def get(self, key: str, default: Any = None) -> Any:
        """
        Look up a dotted key, e.g. ``providers.openai.model``.

        Returns default when any segment is missing or the value is None.
        """
        value = _lookup(self.to_dict(), key)
        return default if value is _MISSING or value is None else value


def _lookup(data: Dict[str, Any], key: str) -> Any:
    node: Any = data
    for part in key.split("."):
        if not isinstance(node, dict) or part not in node:
            return _MISSING
        node = node[part]
    return node


class ConfigSource:
    """Read-only key/value view over persisted configuration."""

    def get(self, key: str, default: Any = None) -> Any:
        raise NotImplementedError


class StaticConfigSource(ConfigSource):
    """Configuration held in memory (tests, embedding hosts)."""

    def __init__(self, config: Optional[PostPilotConfig] = None):
        self.config = config or PostPilotConfig()

    def get(self, key: str, default: Any = None) -> Any:
        return self.config.get(key, default)


class FileConfigSource(ConfigSource):
    """Configuration read from the JSON file on every lookup."""

    def __init__(self, path: Optional[Path] = None):
        self.path = Path(path) if path else get_config_path()

    def get(self, key: str, default: Any = None) -> Any:
        return load_config(self.path).get(key, default)


def get_config_dir() -> Path:
    """
    Get configuration directory.

    Follows XDG Base Directory specification:
    1. ~/.config/postpilot
    2. Fallback: ~/.postpilot
    """
    xdg_config_home = Path.home() / ".config"
    if xdg_config_home.exists():
        return xdg_config_home / "postpilot"
    return Path.home() / ".postpilot"


def get_config_path() -> Path:
    """Get configuration file path."""
    return get_config_dir() / "config.json"


def get_db_path(config: PostPilotConfig) -> Path:
    """Path of the SQLite store used for cache and rate-limit state."""
    if config.cache.db_path:
        return Path(config.cache.db_path).expanduser()
    return get_config_dir() / "postpilot.db"


def load_config(path: Optional[Path] = None) -> PostPilotConfig:
    """
    Load configuration from file.

    Returns:
        PostPilotConfig instance with loaded values or defaults
    """
    config_path = Path(path) if path else get_config_path()

    if not config_path.exists():
        return PostPilotConfig()

    try:
        with open(config_path, 'r') as f:
            data = json.load(f)
        return PostPilotConfig.from_dict(data)
    except (json.JSONDecodeError, OSError, TypeError) as e:
        logger.warning(f"Failed to load config from {config_path}: {e}. Using defaults.")
        return PostPilotConfig()


def save_config(config: PostPilotConfig, path: Optional[Path] = None) -> Path:
    """
    Save configuration to file.

    Returns:
        Path the configuration was written to
    """
    config_path = Path(path) if path else get_config_path()
    config_path.parent.mkdir(parents=True, exist_ok=True)

    with open(config_path, 'w') as f:
        json.dump(config.to_dict(), f, indent=2)

    logger.debug(f"Configuration saved to {config_path}")
    return config_path


def update_config(
    path: Optional[Path] = None,
    provider: Optional[str] = None,
    feature: Optional[str] = None,
    feature_provider: Optional[str] = None,
    feature_enabled: Optional[bool] = None,
    vendor: Optional[str] = None,
    api_key: Optional[str] = None,
    model: Optional[str] = None,
    cache_ttl: Optional[int] = None,
    db_path: Optional[str] = None,
    debug_logging: Optional[bool] = None,
) -> PostPilotConfig:
    """
    Update configuration.

    Only updates provided values, leaving others unchanged. ``api_key`` must
    already be encrypted by the caller.
    """
    config = load_config(path)

    if provider is not None:
        _check_provider(provider)
        config.provider = provider

    if feature is not None:
        settings = getattr(config, feature, None)
        if not isinstance(settings, FeatureSettings):
            raise ValueError(f"Unknown feature: {feature}")
        if feature_provider is not None:
            _check_provider(feature_provider)
            settings.provider = feature_provider
        if feature_enabled is not None:
            settings.enabled = feature_enabled

    if vendor is not None:
        _check_provider(vendor)
        settings = config.providers.setdefault(vendor, ProviderSettings())
        if api_key is not None:
            settings.api_key = api_key
        if model is not None:
            settings.model = model

    if cache_ttl is not None:
        config.cache.ttl = cache_ttl
    if db_path is not None:
        config.cache.db_path = db_path
    if debug_logging is not None:
        config.debug_logging = debug_logging

    save_config(config, path)
    return config


def _check_provider(name: str) -> None:
    if name not in SUPPORTED_PROVIDERS:
        raise ValueError(
            f"Unsupported provider '{name}'. Choose one of: {', '.join(SUPPORTED_PROVIDERS)}"
        )
