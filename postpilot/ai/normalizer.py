"""
Coercion of free-text model output into structured results.

Models are asked for JSON but do not always comply: they wrap it in
markdown fences, prepend a BOM, or answer in prose. Nothing in here raises
for a formatting problem; FAQ output degrades to a single generic item and
link output degrades to no links.
"""

import json
import logging
import re
from typing import Any, Dict, Iterable, List, Optional, Union

from ..models import CandidateLink, FaqItem, LinkSuggestion

logger = logging.getLogger(__name__)

FALLBACK_QUESTION = "What is this content about?"

# Must span the whole trimmed text; fences embedded in prose are left alone
_FENCE_RE = re.compile(r'^```(?:json|JSON)?[ \t]*\r?\n(.*)\r?\n[ \t]*```$', re.DOTALL)

_TARGET_KEYS = ("target_id", "post_id", "id")


def clean_response(raw: Optional[str]) -> str:
    """Trim whitespace and a UTF-8 BOM, then strip an enclosing code fence."""
    text = (raw or "").strip().lstrip("\ufeff").strip()
    match = _FENCE_RE.match(text)
    if match:
        return match.group(1).strip()
    return text


def _loads(text: str) -> Any:
    try:
        return json.loads(text)
    except ValueError:
        return None


class ResponseNormalizer:
    """Turns raw model text into FAQ items, link suggestions or a summary."""

    def __init__(self, fallback_question: str = FALLBACK_QUESTION):
        self.fallback_question = fallback_question

    def to_summary(self, raw: str) -> str:
        return clean_response(raw)

    def to_faq_list(self, raw: str) -> List[FaqItem]:
        """
        Parse a JSON array of {"question", "answer"} objects.

        Non-JSON (or non-array) output becomes a single item whose answer is
        the whole text. Items without both keys are dropped.
        """
        text = clean_response(raw)
        if not text:
            return []

        data = _loads(text)
        if not isinstance(data, list):
            logger.warning(
                f"NormalizationDegraded: FAQ response is not a JSON array, "
                f"using fallback item (preview: {text[:100]!r})"
            )
            return [FaqItem(question=self.fallback_question, answer=text)]

        items = []
        for entry in data:
            item = self._faq_item(entry)
            if item is None:
                logger.debug(f"Dropping malformed FAQ item: {entry!r}")
                continue
            items.append(item)
        return items

    def to_link_list(
        self,
        raw: str,
        candidates: Optional[Iterable[CandidateLink]] = None,
    ) -> List[LinkSuggestion]:
        """
        Parse a JSON array of {"keyword", "post_id"} objects.

        When candidates are given, suggestions pointing anywhere else are
        dropped, and a bare list of ids is accepted using each candidate's
        title as the keyword.
        """
        text = clean_response(raw)
        data = _loads(text) if text else None
        if not isinstance(data, list):
            logger.warning(
                f"NormalizationDegraded: link response is not a JSON array, "
                f"returning no links (preview: {text[:100]!r})"
            )
            return []

        by_id: Optional[Dict[str, CandidateLink]] = None
        if candidates is not None:
            by_id = {str(c.id): c for c in candidates}

        suggestions = []
        seen = set()
        for entry in data:
            suggestion = self._link_suggestion(entry, by_id)
            if suggestion is None:
                logger.debug(f"Dropping malformed link suggestion: {entry!r}")
                continue
            marker = suggestion.keyword.lower()
            if marker in seen:
                continue
            seen.add(marker)
            suggestions.append(suggestion)
        return suggestions

    @staticmethod
    def _faq_item(entry: Any) -> Optional[FaqItem]:
        if not isinstance(entry, dict):
            return None
        question = entry.get("question")
        answer = entry.get("answer")
        if not isinstance(question, str) or not isinstance(answer, str):
            return None
        if not question.strip() or not answer.strip():
            return None
        return FaqItem(question=question.strip(), answer=answer.strip())

    @staticmethod
    def _link_suggestion(
        entry: Any, by_id: Optional[Dict[str, CandidateLink]]
    ) -> Optional[LinkSuggestion]:
        if isinstance(entry, dict):
            keyword = entry.get("keyword")
            target: Union[int, str, None] = next(
                (entry[k] for k in _TARGET_KEYS if entry.get(k) not in (None, "")), None
            )
        elif isinstance(entry, (int, str)) and not isinstance(entry, bool) and by_id is not None:
            keyword = None
            target = entry
        else:
            return None

        if target is None or isinstance(target, bool) or not isinstance(target, (int, str)):
            return None

        if by_id is not None:
            candidate = by_id.get(str(target))
            if candidate is None:
                return None
            target = candidate.id
            if keyword is None:
                keyword = candidate.title

        if not isinstance(keyword, str) or not keyword.strip():
            return None
        return LinkSuggestion(keyword=keyword.strip(), target_id=target)
