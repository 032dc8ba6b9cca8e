"""
Error taxonomy for postpilot.

Providers and the rate limiter raise these; the Manager catches them and
turns them into a FeatureResult so nothing escapes to the host.
"""

from typing import Any, Dict, Optional


class PostPilotError(Exception):
    """Base class for every error postpilot reports."""

    code = "postpilot_error"
    retryable = False

    def __init__(self, message: str, provider: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.provider = provider

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        data = {
            "code": self.code,
            "message": self.message,
            "retryable": self.retryable,
        }
        if self.provider:
            data["provider"] = self.provider
        return data


class NoProviderConfigured(PostPilotError):
    """No provider (or no API key for it) is configured for a feature."""

    code = "no_provider"


class ProviderError(PostPilotError):
    """Failure reported by, or while talking to, an LLM provider."""

    code = "provider_error"

    def __init__(
        self,
        message: str,
        provider: Optional[str] = None,
        status_code: Optional[int] = None,
    ):
        super().__init__(message, provider=provider)
        self.status_code = status_code

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        if self.status_code is not None:
            data["status_code"] = self.status_code
        return data


class MissingCredentials(ProviderError):
    code = "missing_api_key"


class InvalidCredentials(ProviderError):
    code = "invalid_api_key"


class RateLimited(ProviderError):
    """
    Too many requests.

    Raised by the local RateLimiter (provider is None) and by providers that
    answer 429 without a quota message. ``retry_after`` is in seconds when
    known.
    """

    code = "rate_limited"
    retryable = True

    def __init__(
        self,
        message: str,
        provider: Optional[str] = None,
        status_code: Optional[int] = None,
        retry_after: Optional[int] = None,
        scope: Optional[str] = None,
    ):
        super().__init__(message, provider=provider, status_code=status_code)
        self.retry_after = retry_after
        self.scope = scope

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data["rate_limited"] = True
        data["wait_time"] = self.retry_after or 0
        if self.scope:
            data["scope"] = self.scope
        return data


class QuotaExceeded(ProviderError):
    """Vendor-side billing or quota exhaustion."""

    code = "quota_exceeded"

    def __init__(
        self,
        message: str,
        provider: Optional[str] = None,
        status_code: Optional[int] = None,
        retry_after: Optional[int] = None,
    ):
        super().__init__(message, provider=provider, status_code=status_code)
        self.retry_after = retry_after

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data["quota_exceeded"] = True
        if self.retry_after is not None:
            data["wait_time"] = self.retry_after
        return data


class BadRequest(ProviderError):
    code = "bad_request"


class TransientNetworkError(ProviderError):
    """Transport failure or unexpected HTTP status; safe to retry later."""

    code = "api_error"
    retryable = True


class MalformedResponse(ProviderError):
    """A 200 response whose body lacks the expected text field."""

    code = "invalid_response"


class StorageError(PostPilotError):
    """The transient store failed while checking rate limits."""

    code = "storage_error"
    retryable = True
