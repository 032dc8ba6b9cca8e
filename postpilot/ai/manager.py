"""
Orchestration of FAQ, summary and internal-link generation.

Each feature request goes through the same pipeline:

    cache → provider selection → rate limit → provider call → normalize → cache

and comes back as a FeatureResult. Provider, credential and rate-limit
failures are returned as typed errors and never cached.
"""

import logging
from typing import Any, Callable, Iterable, List, Optional, Union

import httpx

from ..config import ConfigSource, RateLimitConfig, StaticConfigSource
from ..encryption import ApiKeyCipher
from ..exceptions import PostPilotError, StorageError
from ..models import (
    FAQ_LAYOUTS,
    CandidateLink,
    FaqItem,
    Feature,
    FeatureResult,
    FeatureValue,
    GenerationRequest,
    SavedFaq,
    ValidationResult,
)
from ..storage import (
    CacheLayer,
    MemoryStore,
    RateLimiter,
    RateLimitStatus,
    ResourceMetaStore,
    TransientStore,
)
from ..storage.cache import DEFAULT_TTL
from .llm_providers import ProviderRegistry
from .normalizer import ResponseNormalizer
from .prompts import build_faq_prompt, build_links_prompt, build_summary_prompt

logger = logging.getLogger(__name__)

ResourceId = Union[int, str]
CandidateSource = Callable[[ResourceId], Iterable[Any]]

ANONYMOUS_USER = 0

SAVED_FAQ = "faq"

CONNECTION_TEST_PROMPT = "Test content for API validation."

DEMO_FAQ = [
    FaqItem(
        question="How do I configure PostPilot?",
        answer="Choose an AI provider for each feature, add its API key to the "
               "configuration and enable the features you want to use.",
    ),
    FaqItem(
        question="What AI providers are supported?",
        answer="OpenAI (ChatGPT), Anthropic Claude, Google Gemini and xAI Grok. "
               "Each feature can use a different provider.",
    ),
    FaqItem(
        question="Is this a demo FAQ?",
        answer="Yes. This content is shown because no AI provider is configured. "
               "Add an API key to generate real FAQs.",
    ),
    FaqItem(
        question="How do I get an API key?",
        answer="Create one in your provider's console, for example "
               "platform.openai.com/api-keys or console.anthropic.com.",
    ),
]

DEMO_SUMMARY = (
    "This is a demo summary. Configure an AI provider API key to generate "
    "real AI-powered summaries."
)


def _to_faq_items(items: Iterable[Any]) -> List[FaqItem]:
    faqs = []
    for item in items:
        if not isinstance(item, FaqItem):
            item = FaqItem(question=item.get("question", ""), answer=item.get("answer", ""))
        question, answer = item.question.strip(), item.answer.strip()
        if question or answer:
            faqs.append(FaqItem(question, answer))
    return faqs


def _to_candidates(items: Optional[Iterable[Any]]) -> tuple:
    if not items:
        return ()
    return tuple(
        item if isinstance(item, CandidateLink) else CandidateLink.from_dict(item)
        for item in items
    )


class Manager:
    """
    Entry point for hosts: one call per feature plus maintenance helpers.

    Configuration is read through ``config`` on every call, so provider,
    key, TTL and limit changes apply to the next request.
    """

    def __init__(
        self,
        config: Optional[ConfigSource] = None,
        store: Optional[TransientStore] = None,
        registry: Optional[ProviderRegistry] = None,
        normalizer: Optional[ResponseNormalizer] = None,
        candidate_source: Optional[CandidateSource] = None,
        cipher: Optional[ApiKeyCipher] = None,
        client: Optional[httpx.Client] = None,
    ):
        """
        Args:
            config: Source of persisted settings
            store: Transient storage shared by the cache and rate limiter
            registry: Provider registry (built from config when omitted)
            normalizer: Response normalizer
            candidate_source: Returns link candidates for a resource
            cipher: Decrypts stored API keys
            client: HTTP client handed to provider clients
        """
        self.config = config or StaticConfigSource()
        self.store = store if store is not None else MemoryStore()
        self.registry = registry or ProviderRegistry(self.config, cipher=cipher, client=client)
        self.normalizer = normalizer or ResponseNormalizer()
        self.candidate_source = candidate_source
        self.cache = CacheLayer(self.store, ttl=self._ttl())
        self.rate_limiter = RateLimiter(self.store, self._limits())
        self.meta = ResourceMetaStore(self.store)

    def _ttl(self) -> int:
        return int(self.config.get("cache.ttl", DEFAULT_TTL))

    def _limits(self) -> RateLimitConfig:
        defaults = RateLimitConfig()
        return RateLimitConfig(
            post_limit=self.config.get("rate_limit.post_limit", defaults.post_limit),
            post_window=self.config.get("rate_limit.post_window", defaults.post_window),
            daily_limit=self.config.get("rate_limit.daily_limit", defaults.daily_limit),
            daily_window=self.config.get("rate_limit.daily_window", defaults.daily_window),
        )

    def is_enabled(self, feature: Feature) -> bool:
        return bool(self.config.get(f"{feature.settings_name}.enabled", True))

    # ------------------------------------------------------------------
    # Features
    # ------------------------------------------------------------------

    def get_faq(self, resource_id: ResourceId, content: str,
                user_id: ResourceId = ANONYMOUS_USER) -> FeatureResult:
        """Generate (or fetch cached) FAQ items for a resource."""
        request = GenerationRequest(resource_id=resource_id, content=content, feature=Feature.FAQ)
        return self.generate(request, user_id=user_id)

    def get_summary(self, resource_id: ResourceId, content: str,
                    user_id: ResourceId = ANONYMOUS_USER) -> FeatureResult:
        """Generate (or fetch cached) a short summary for a resource."""
        request = GenerationRequest(resource_id=resource_id, content=content, feature=Feature.SUMMARY)
        return self.generate(request, user_id=user_id)

    def get_internal_links(
        self,
        resource_id: ResourceId,
        content: str,
        candidate_links: Optional[Iterable[Any]] = None,
        user_id: ResourceId = ANONYMOUS_USER,
    ) -> FeatureResult:
        """
        Suggest internal links to other resources.

        With no candidates the result is an empty list and nothing is sent,
        but only once a provider is configured: without one the result is a
        no_provider error even when there is nothing to link.

        Args:
            resource_id: Resource being rendered
            content: Its content
            candidate_links: Resources that may be linked to (CandidateLink or
                dicts with id/title/url); asked from candidate_source when None
            user_id: User charged for the generation
        """
        if candidate_links is None and self.candidate_source is not None:
            candidate_links = self.candidate_source(resource_id)

        candidates = tuple(
            c for c in _to_candidates(candidate_links) if str(c.id) != str(resource_id)
        )
        request = GenerationRequest(
            resource_id=resource_id,
            content=content,
            feature=Feature.LINKS,
            candidate_links=candidates,
        )
        return self.generate(request, user_id=user_id)

    def generate(self, request: GenerationRequest,
                 user_id: ResourceId = ANONYMOUS_USER) -> FeatureResult:
        """Run the generation pipeline for one request."""
        feature = request.feature
        resource_id = request.resource_id

        cached = self._cached(resource_id, feature)
        if cached is not None:
            return FeatureResult.success(feature, cached, from_cache=True)

        try:
            provider = self.registry.for_feature(feature)

            if feature is Feature.LINKS and not request.candidate_links:
                logger.debug(f"No link candidates for resource {resource_id}, skipping provider call")
                return FeatureResult.success(feature, [])

            self._acquire(user_id, resource_id)

            prompt = self._build_prompt(request)
            try:
                with provider:
                    raw = provider.generate(prompt)
            finally:
                self._record(user_id, resource_id)

        except PostPilotError as e:
            logger.error(f"{feature.value} generation failed for resource {resource_id}: {e.message}")
            return FeatureResult.failure(feature, e)

        value = self._normalize(request, raw)
        if value:
            self._store(resource_id, feature, value)

        result = FeatureResult.success(feature, value)
        result.meta = {"provider": provider.name, "model": provider.model}
        return result

    # Store failures: a failed read is a cache miss, a failed write is logged
    # and skipped, a failed limit check is a StorageError and nothing is sent.

    def _cached(self, resource_id: ResourceId, feature: Feature) -> Optional[FeatureValue]:
        try:
            return self.cache.get(resource_id, feature)
        except Exception as e:
            logger.warning(f"Cache read failed for {feature.value}_{resource_id}: {e}")
            return None

    def _store(self, resource_id: ResourceId, feature: Feature, value: FeatureValue) -> None:
        try:
            self.cache.put(resource_id, feature, value, ttl=self._ttl())
        except Exception as e:
            logger.warning(f"Cache write failed for {feature.value}_{resource_id}: {e}")
            return
        logger.debug(f"{feature.value} generated and cached for resource {resource_id}")

    def _acquire(self, user_id: ResourceId, resource_id: ResourceId) -> None:
        self.rate_limiter.limits = self._limits()
        try:
            self.rate_limiter.try_acquire(user_id, resource_id)
        except PostPilotError:
            raise
        except Exception as e:
            raise StorageError(f"Rate limit storage unavailable: {e}") from e

    def _record(self, user_id: ResourceId, resource_id: ResourceId) -> None:
        try:
            self.rate_limiter.record(user_id, resource_id)
        except Exception as e:
            logger.error(f"Could not record attempt for user {user_id} on resource {resource_id}: {e}")

    def _build_prompt(self, request: GenerationRequest) -> str:
        if request.feature is Feature.FAQ:
            return build_faq_prompt(request.content)
        if request.feature is Feature.SUMMARY:
            return build_summary_prompt(request.content)
        return build_links_prompt(request.content, request.candidate_links)

    def _normalize(self, request: GenerationRequest, raw: str) -> FeatureValue:
        if request.feature is Feature.FAQ:
            return self.normalizer.to_faq_list(raw)
        if request.feature is Feature.SUMMARY:
            return self.normalizer.to_summary(raw)
        return self.normalizer.to_link_list(raw, request.candidate_links)

    # ------------------------------------------------------------------
    # Maintenance
    # ------------------------------------------------------------------

    def clear_cache(self, resource_id: ResourceId) -> None:
        """Forget every generated result for a resource (call on edit)."""
        self.cache.invalidate(resource_id)

    # ------------------------------------------------------------------
    # Saved FAQs
    # ------------------------------------------------------------------

    def get_saved_faq(self, resource_id: ResourceId) -> Optional[SavedFaq]:
        """FAQ saved with a resource, or None when nothing was saved."""
        data = self.meta.get(resource_id, SAVED_FAQ)
        if data is None:
            return None
        try:
            return SavedFaq.from_dict(data)
        except (KeyError, TypeError, AttributeError) as e:
            logger.warning(f"Ignoring unreadable saved FAQ for resource {resource_id}: {e}")
            return None

    def save_faq(
        self,
        resource_id: ResourceId,
        items: Optional[Iterable[Any]] = None,
        enabled: Optional[bool] = None,
        layout: Optional[str] = None,
    ) -> SavedFaq:
        """
        Save FAQ items with a resource; they never expire.

        Args:
            resource_id: Resource the FAQ belongs to
            items: FaqItem objects or dicts with question/answer; the saved
                items are kept when None. Items with neither are dropped.
            enabled: Show the FAQ for this resource; unchanged when None
            layout: "default", "accordion" or "static"; unchanged when None

        Raises:
            ValueError: If layout is not a known layout
        """
        if layout is not None and layout not in FAQ_LAYOUTS:
            raise ValueError(f"Unknown FAQ layout '{layout}' (expected one of: {', '.join(FAQ_LAYOUTS)})")

        current = self.get_saved_faq(resource_id) or SavedFaq(items=[])
        saved = SavedFaq(
            items=current.items if items is None else _to_faq_items(items),
            enabled=current.enabled if enabled is None else enabled,
            layout=layout or current.layout,
        )
        self.meta.set(resource_id, SAVED_FAQ, saved.to_dict())
        logger.info(f"Saved {len(saved.items)} FAQ items for resource {resource_id}")
        return saved

    def save_generated_faq(self, resource_id: ResourceId, content: str,
                           user_id: ResourceId = ANONYMOUS_USER) -> FeatureResult:
        """Generate a FAQ and save it with the resource, keeping its settings."""
        result = self.get_faq(resource_id, content, user_id=user_id)
        if result.ok and result.value:
            try:
                self.save_faq(resource_id, result.value)
            except Exception as e:
                logger.error(f"Could not save generated FAQ for resource {resource_id}: {e}")
        return result

    def delete_saved_faq(self, resource_id: ResourceId) -> None:
        self.meta.delete(resource_id, SAVED_FAQ)

    # ------------------------------------------------------------------
    # Keys and limits
    # ------------------------------------------------------------------

    def validate_api_key(self, api_key: Optional[str] = None,
                         provider_id: Optional[str] = None) -> ValidationResult:
        """
        Check an API key against its provider.

        Args:
            api_key: Plaintext key; the stored key when None
            provider_id: Provider to check; the global provider when None
        """
        name = self.registry.normalize_name(provider_id or self.config.get("provider"))
        try:
            with self.registry.create(name, api_key=api_key) as provider:
                provider.validate_credentials()
        except PostPilotError as e:
            logger.info(f"API key validation failed for {name}: {e.message}")
            return ValidationResult(provider=name, ok=False, error=e)
        return ValidationResult(provider=name, ok=True)

    def test_connection(self, feature: Feature = Feature.SUMMARY) -> ValidationResult:
        """Send a minimal prompt through the provider configured for a feature."""
        name = self.registry.provider_name_for(feature)
        try:
            with self.registry.for_feature(feature) as provider:
                provider.generate(CONNECTION_TEST_PROMPT)
        except PostPilotError as e:
            return ValidationResult(provider=name, ok=False, error=e)
        return ValidationResult(provider=name, ok=True)

    def rate_limit_status(self, user_id: ResourceId, resource_id: ResourceId) -> RateLimitStatus:
        self.rate_limiter.limits = self._limits()
        return self.rate_limiter.check(user_id, resource_id)

    def clear_user_limits(self, user_id: ResourceId) -> None:
        self.rate_limiter.clear_user_limits(user_id)

    @staticmethod
    def get_demo_faq() -> List[FaqItem]:
        """Placeholder FAQ for hosts that want content when generation fails."""
        return [FaqItem(item.question, item.answer) for item in DEMO_FAQ]

    @staticmethod
    def get_demo_summary() -> str:
        return DEMO_SUMMARY
