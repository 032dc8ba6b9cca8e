"""
postpilot - AI content enhancement for published documents.

Generates FAQs, summaries and internal link suggestions through OpenAI,
Claude, Gemini or Grok, with result caching and per-user rate limiting.

Main API:
    from postpilot import FaqItem, Manager, StaticConfigSource, PostPilotConfig

    config = PostPilotConfig()
    config.providers["openai"].api_key = "sk-..."
    manager = Manager(StaticConfigSource(config))

    result = manager.get_faq(42, article_html, user_id=7)
    if result.ok:
        for item in result.value:
            print(item.question, item.answer)
    else:
        print(result.error.message)

    # Call when the resource changes
    manager.clear_cache(42)

    # Keep a hand-edited FAQ with the resource
    manager.save_faq(42, [FaqItem("Question?", "Answer.")], layout="static")
"""

from .ai.manager import Manager
from .config import FileConfigSource, PostPilotConfig, StaticConfigSource
from .models import CandidateLink, FaqItem, Feature, FeatureResult, LinkSuggestion, SavedFaq

__version__ = "0.1.0"
__all__ = [
    "Manager",
    "PostPilotConfig",
    "StaticConfigSource",
    "FileConfigSource",
    "Feature",
    "FeatureResult",
    "FaqItem",
    "LinkSuggestion",
    "CandidateLink",
    "SavedFaq",
]
