"""
xAI Grok LLM Provider.

Grok speaks the OpenAI chat completions format on its own endpoint and is
noticeably slower, hence the longer timeout.
"""

from .openai import OpenAIProvider


class GrokProvider(OpenAIProvider):
    """xAI Grok chat completions."""

    default_endpoint = "https://api.x.ai/v1/chat/completions"
    default_model = "grok-beta"
    default_timeout = 60.0
    default_max_tokens = 2048

    @property
    def name(self) -> str:
        return "grok"

    @property
    def display_name(self) -> str:
        return "Grok"
