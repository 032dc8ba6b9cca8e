"""
LLM Provider Abstractions for postpilot.

Provides a unified interface for the supported LLM vendors:
- OpenAI
- Anthropic Claude
- Google Gemini
- xAI Grok
"""

from .base import BaseLLMProvider, ProviderConfig
from .claude import ClaudeProvider
from .gemini import GeminiProvider
from .grok import GrokProvider
from .openai import OpenAIProvider
from .registry import ProviderRegistry

__all__ = [
    'BaseLLMProvider',
    'ProviderConfig',
    'OpenAIProvider',
    'ClaudeProvider',
    'GeminiProvider',
    'GrokProvider',
    'ProviderRegistry',
]
