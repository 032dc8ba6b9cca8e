"""
OpenAI LLM Provider.

Uses the Chat Completions API with a single user message.
"""

from typing import Any, Dict, Tuple

from .base import BaseLLMProvider


class OpenAIProvider(BaseLLMProvider):
    """OpenAI (ChatGPT) chat completions."""

    default_endpoint = "https://api.openai.com/v1/chat/completions"
    default_model = "gpt-4o"
    default_timeout = 30.0
    default_max_tokens = 500

    response_path = ("choices", 0, "message", "content")

    @property
    def name(self) -> str:
        return "openai"

    @property
    def display_name(self) -> str:
        return "OpenAI"

    def build_request(self, prompt: str, api_key: str) -> Tuple[str, Dict[str, str], Dict[str, Any], Dict[str, str]]:
        body = {
            "model": self.model,
            "messages": [
                {"role": "user", "content": prompt},
            ],
            "temperature": self.config.temperature,
            "max_tokens": self.max_tokens,
            **self.config.extra_params,
        }
        headers = {"Authorization": f"Bearer {api_key}"}
        return self.endpoint, headers, body, {}
