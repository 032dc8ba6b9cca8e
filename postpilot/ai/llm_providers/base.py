"""
Base LLM provider interface.

This module defines the abstract base class that all LLM providers must
implement, together with the shared HTTP request path and the error
classification every vendor goes through.
"""

import json
import logging
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Sequence, Tuple, Union

import httpx

from ...exceptions import (
    BadRequest,
    InvalidCredentials,
    MalformedResponse,
    MissingCredentials,
    ProviderError,
    QuotaExceeded,
    RateLimited,
    TransientNetworkError,
)

logger = logging.getLogger(__name__)

VALIDATION_PROMPT = "Hello"

_QUOTA_MARKERS = ("quota", "RESOURCE_EXHAUSTED")


@dataclass
class ProviderConfig:
    """Configuration for one provider client, built fresh per request."""

    provider_id: str
    api_key: Optional[str] = None
    model: Optional[str] = None

    # None means the vendor default
    endpoint: Optional[str] = None
    timeout: Optional[float] = None

    temperature: float = 0.7
    max_tokens: Optional[int] = None

    extra_params: Dict[str, Any] = field(default_factory=dict)


def extract_path(data: Any, path: Sequence[Union[str, int]]) -> Any:
    """
    Walk ``path`` through nested dicts and lists.

    Returns None as soon as a segment is missing.
    """
    node = data
    for segment in path:
        if isinstance(segment, int):
            if not isinstance(node, list) or len(node) <= segment:
                return None
        elif not isinstance(node, dict) or segment not in node:
            return None
        node = node[segment]
    return node


def parse_retry_delay(value: Any) -> Optional[int]:
    """Parse '30s', '1.5s' or '30' into whole seconds."""
    if value is None:
        return None
    match = re.match(r'^\s*(\d+(?:\.\d+)?)\s*s?\s*$', str(value))
    if not match:
        return None
    return int(float(match.group(1)) + 0.999)


class BaseLLMProvider(ABC):
    """
    Abstract base class for LLM providers.

    Subclasses describe their wire format (endpoint, headers, body and the
    path of the generated text in the response); sending, error mapping and
    extraction live here so every vendor behaves the same way.
    """

    #: Vendor endpoint used when the config does not override it
    default_endpoint: str = ""
    default_model: str = ""
    default_timeout: float = 30.0
    default_max_tokens: int = 1024

    #: Path of the generated text inside a successful response body
    response_path: Tuple[Union[str, int], ...] = ()

    def __init__(self, config: ProviderConfig, client: Optional[httpx.Client] = None):
        """
        Initialize the provider with configuration.

        Args:
            config: Provider configuration
            client: Optional pre-built HTTP client (not closed by cleanup)
        """
        self.config = config
        self._client = client
        self._owns_client = client is None

    @property
    @abstractmethod
    def name(self) -> str:
        """Provider name (e.g., 'openai', 'claude')."""
        pass

    @property
    def display_name(self) -> str:
        return self.name.capitalize()

    @property
    def model(self) -> str:
        return self.config.model or self.default_model

    @property
    def endpoint(self) -> str:
        return self.config.endpoint or self.default_endpoint

    @property
    def timeout(self) -> float:
        return self.config.timeout or self.default_timeout

    @property
    def max_tokens(self) -> int:
        return self.config.max_tokens or self.default_max_tokens

    @abstractmethod
    def build_request(self, prompt: str, api_key: str) -> Tuple[str, Dict[str, str], Dict[str, Any], Dict[str, str]]:
        """
        Build the vendor request.

        Returns:
            Tuple of (url, headers, json body, query params)
        """
        pass

    def initialize(self) -> None:
        """Create the HTTP client."""
        if self._client is None:
            self._client = httpx.Client(timeout=self.timeout)
            self._owns_client = True

    def cleanup(self) -> None:
        """Close the HTTP client if this provider created it."""
        if self._client is not None and self._owns_client:
            self._client.close()
            self._client = None

    def __enter__(self):
        self.initialize()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.cleanup()

    def generate(self, prompt: str) -> str:
        """
        Send a prompt and return the generated text.

        Raises:
            ProviderError: typed failure (credentials, quota, network, ...)
        """
        return self._request(prompt, self.config.api_key)

    def validate_credentials(self, api_key: Optional[str] = None) -> bool:
        """
        Check an API key with a minimal prompt.

        Args:
            api_key: Key to check; defaults to the configured key

        Returns:
            True if the vendor accepted the key

        Raises:
            ProviderError: why the key could not be used
        """
        key = api_key if api_key is not None else self.config.api_key
        self._request(VALIDATION_PROMPT, key)
        return True

    def _request(self, prompt: str, api_key: Optional[str]) -> str:
        if not api_key:
            raise MissingCredentials(
                f"{self.display_name} API key is not configured.", provider=self.name
            )

        if self._client is None:
            self.initialize()

        url, headers, body, params = self.build_request(prompt, api_key)
        headers = {"Content-Type": "application/json", **headers}

        logger.debug(
            f"API request to {self.display_name}: endpoint={url} model={self.model} "
            f"prompt_length={len(prompt)}"
        )

        try:
            response = self._client.post(
                url, headers=headers, json=body, params=params or None, timeout=self.timeout
            )
        except httpx.TimeoutException as e:
            logger.error(f"{self.display_name} request timed out after {self.timeout}s: {e}")
            raise TransientNetworkError(
                f"{self.display_name} API request timed out.", provider=self.name
            ) from e
        except httpx.HTTPError as e:
            logger.error(f"{self.display_name} request failed: {e}")
            raise TransientNetworkError(
                f"{self.display_name} API request failed: {e}", provider=self.name
            ) from e

        logger.debug(
            f"API response from {self.display_name}: code={response.status_code} "
            f"body_length={len(response.content)}"
        )

        if response.status_code != 200:
            error = self.classify_error(response)
            logger.error(
                f"{self.display_name} API error {response.status_code}: {error.message}"
            )
            raise error

        return self.extract_text(response)

    def extract_text(self, response: httpx.Response) -> str:
        """Pull the generated text out of a 200 response."""
        try:
            data = response.json()
        except (json.JSONDecodeError, ValueError) as e:
            logger.error(f"Failed to parse {self.display_name} response: {response.text[:500]}")
            raise MalformedResponse(
                f"Failed to parse response from {self.display_name}.",
                provider=self.name, status_code=response.status_code,
            ) from e

        text = extract_path(data, self.response_path)
        if not isinstance(text, str):
            logger.error(f"Invalid {self.display_name} response structure: {str(data)[:500]}")
            raise MalformedResponse(
                f"Invalid response from {self.display_name} API.",
                provider=self.name, status_code=response.status_code,
            )
        return text.strip()

    def classify_error(self, response: httpx.Response) -> ProviderError:
        """
        Map a non-200 response onto the error taxonomy.

        401/403 are credential problems, 429 is quota or rate limiting
        depending on the message, 400 passes the vendor message through, a
        quota message on any other status is quota, everything else is a
        transient failure.
        """
        status = response.status_code
        body = response.text or ""
        try:
            data = response.json()
        except ValueError:
            data = None

        message = self.error_message(data) or "Unknown error"
        is_quota = any(marker in body for marker in _QUOTA_MARKERS)

        if status in (401, 403):
            return InvalidCredentials(
                f"Invalid {self.display_name} API key. Please check your API key in settings.",
                provider=self.name, status_code=status,
            )
        if status == 429:
            retry_after = self.retry_after(response, data)
            if is_quota:
                return QuotaExceeded(
                    f"{self.display_name} API quota exceeded: {message}",
                    provider=self.name, status_code=status, retry_after=retry_after,
                )
            return RateLimited(
                f"{self.display_name} API rate limit exceeded.",
                provider=self.name, status_code=status, retry_after=retry_after,
                scope="provider",
            )
        if status == 400:
            return BadRequest(
                f"{self.display_name} API error: Invalid request format. {message}",
                provider=self.name, status_code=status,
            )
        if is_quota:
            return QuotaExceeded(
                f"{self.display_name} quota exceeded: {message}",
                provider=self.name, status_code=status,
            )
        return TransientNetworkError(
            f"{self.display_name} API error (Code: {status}): {message}",
            provider=self.name, status_code=status,
        )

    def error_message(self, data: Any) -> Optional[str]:
        """Vendor error message from a decoded error body."""
        error = extract_path(data, ("error",))
        if isinstance(error, dict):
            return error.get("message")
        if isinstance(error, str):
            return error
        return None

    def retry_after(self, response: httpx.Response, data: Any) -> Optional[int]:
        """Seconds the vendor asks us to wait, if it says."""
        return parse_retry_delay(response.headers.get("retry-after"))
