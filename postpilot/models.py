"""
Data types shared across postpilot.

Generated results are plain dataclasses so they can be cached as JSON and
rebuilt without loss.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple, Union

from .exceptions import PostPilotError


class Feature(Enum):
    """Content enhancements postpilot can generate."""
    FAQ = "faq"
    SUMMARY = "summary"
    LINKS = "links"

    @property
    def settings_name(self) -> str:
        """Name of the feature's section in the configuration file."""
        return "internal_links" if self is Feature.LINKS else self.value


@dataclass(frozen=True)
class CandidateLink:
    """Another resource that may be linked to from the current one."""
    id: Union[int, str]
    title: str
    url: str = ""

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'CandidateLink':
        return cls(id=data["id"], title=data.get("title", ""), url=data.get("url", ""))


@dataclass(frozen=True)
class GenerationRequest:
    """A single feature request against one resource."""
    resource_id: Union[int, str]
    content: str
    feature: Feature
    candidate_links: Tuple[CandidateLink, ...] = ()


@dataclass
class FaqItem:
    question: str
    answer: str

    def to_dict(self) -> Dict[str, str]:
        return {"question": self.question, "answer": self.answer}


@dataclass
class LinkSuggestion:
    keyword: str
    target_id: Union[int, str]

    def to_dict(self) -> Dict[str, Any]:
        return {"keyword": self.keyword, "target_id": self.target_id}


FAQ_LAYOUTS = ("default", "accordion", "static")


@dataclass
class SavedFaq:
    """
    FAQ kept with a resource until it is changed by hand.

    ``layout`` "default" follows the global faq.layout setting.
    """
    items: List[FaqItem]
    enabled: bool = True
    layout: str = "default"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "items": [item.to_dict() for item in self.items],
            "enabled": self.enabled,
            "layout": self.layout,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'SavedFaq':
        return cls(
            items=[FaqItem(question=d["question"], answer=d["answer"]) for d in data.get("items", [])],
            enabled=bool(data.get("enabled", True)),
            layout=data.get("layout", "default"),
        )


FeatureValue = Union[List[FaqItem], str, List[LinkSuggestion]]


def value_to_data(feature: Feature, value: FeatureValue) -> Any:
    """Convert a feature value into JSON-compatible data."""
    if feature is Feature.SUMMARY:
        return value
    return [item.to_dict() for item in value]


def value_from_data(feature: Feature, data: Any) -> FeatureValue:
    """Rebuild a feature value from data produced by value_to_data."""
    if feature is Feature.SUMMARY:
        return str(data)
    if feature is Feature.FAQ:
        return [FaqItem(question=d["question"], answer=d["answer"]) for d in data]
    return [LinkSuggestion(keyword=d["keyword"], target_id=d["target_id"]) for d in data]


@dataclass
class FeatureResult:
    """
    Tagged outcome of a feature request.

    Exactly one of ``value`` (on success) or ``error`` (on failure) is
    meaningful. ``from_cache`` tells whether a provider was called.
    """

    feature: Feature
    ok: bool
    value: Optional[FeatureValue] = None
    error: Optional[PostPilotError] = None
    from_cache: bool = False
    meta: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def success(cls, feature: Feature, value: FeatureValue,
                from_cache: bool = False) -> 'FeatureResult':
        return cls(feature=feature, ok=True, value=value, from_cache=from_cache)

    @classmethod
    def failure(cls, feature: Feature, error: PostPilotError) -> 'FeatureResult':
        return cls(feature=feature, ok=False, error=error)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        data: Dict[str, Any] = {
            "feature": self.feature.value,
            "ok": self.ok,
            "from_cache": self.from_cache,
        }
        if self.ok:
            data["value"] = value_to_data(self.feature, self.value)
        else:
            data["error"] = self.error.to_dict() if self.error else None
        if self.meta:
            data["meta"] = dict(self.meta)
        return data


@dataclass
class ValidationResult:
    """Tagged outcome of an API key or connection check."""

    provider: str
    ok: bool
    error: Optional[PostPilotError] = None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"provider": self.provider, "ok": self.ok}
        if self.error is not None:
            data["error"] = self.error.to_dict()
        return data
