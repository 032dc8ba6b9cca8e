"""
AI-powered features for postpilot: FAQ generation, summaries and internal
link suggestions over pluggable LLM providers.
"""

from .manager import Manager
from .normalizer import ResponseNormalizer
from .llm_providers import ProviderRegistry

__all__ = [
    'Manager',
    'ResponseNormalizer',
    'ProviderRegistry',
]
