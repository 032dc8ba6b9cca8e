"""
Anthropic Claude LLM Provider.

Uses the Messages API. Authentication goes in the ``x-api-key`` header
together with a pinned ``anthropic-version``.
"""

from typing import Any, Dict, Tuple

from .base import BaseLLMProvider

ANTHROPIC_VERSION = "2023-06-01"


class ClaudeProvider(BaseLLMProvider):
    """Anthropic Claude messages."""

    default_endpoint = "https://api.anthropic.com/v1/messages"
    default_model = "claude-3-5-sonnet-20241022"
    default_timeout = 30.0
    default_max_tokens = 1024

    response_path = ("content", 0, "text")

    @property
    def name(self) -> str:
        return "claude"

    def build_request(self, prompt: str, api_key: str) -> Tuple[str, Dict[str, str], Dict[str, Any], Dict[str, str]]:
        body = {
            "model": self.model,
            "messages": [
                {"role": "user", "content": prompt},
            ],
            "max_tokens": self.max_tokens,
            **self.config.extra_params,
        }
        headers = {
            "x-api-key": api_key,
            "anthropic-version": ANTHROPIC_VERSION,
        }
        return self.endpoint, headers, body, {}
