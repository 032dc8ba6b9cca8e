"""
Google Gemini LLM Provider.

The model is a path segment of the endpoint and the API key travels in the
query string. Rate-limit responses may carry a ``RetryInfo`` detail with the
delay Google wants us to wait.
"""

from typing import Any, Dict, Optional, Tuple

import httpx

from .base import BaseLLMProvider, extract_path, parse_retry_delay


class GeminiProvider(BaseLLMProvider):
    """Google Gemini generateContent."""

    default_endpoint = "https://generativelanguage.googleapis.com/v1/models/"
    default_model = "gemini-2.5-flash"
    default_timeout = 30.0
    default_max_tokens = 2048

    response_path = ("candidates", 0, "content", "parts", 0, "text")

    @property
    def name(self) -> str:
        return "gemini"

    def build_request(self, prompt: str, api_key: str) -> Tuple[str, Dict[str, str], Dict[str, Any], Dict[str, str]]:
        url = f"{self.endpoint}{self.model}:generateContent"
        body = {
            "contents": [
                {"parts": [{"text": prompt}]},
            ],
            "generationConfig": {
                "temperature": self.config.temperature,
                "maxOutputTokens": self.max_tokens,
            },
            **self.config.extra_params,
        }
        return url, {}, body, {"key": api_key}

    def retry_after(self, response: httpx.Response, data: Any) -> Optional[int]:
        details = extract_path(data, ("error", "details"))
        for detail in details if isinstance(details, list) else []:
            if isinstance(detail, dict) and "RetryInfo" in str(detail.get("@type", "")):
                delay = parse_retry_delay(detail.get("retryDelay"))
                if delay is not None:
                    return delay
        return super().retry_after(response, data)
