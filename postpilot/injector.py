"""
Injection of generated content into rendered HTML.

Rendering itself belongs to the host; this module only produces the
fragments (summary box, FAQ block, anchors) and splices them in.
"""

import logging
import re
from pathlib import Path
from typing import Any, Iterable, List, Mapping, Optional, Union

from jinja2 import Environment, FileSystemLoader, select_autoescape

from .ai.manager import ANONYMOUS_USER, Manager
from .models import CandidateLink, FaqItem, Feature, LinkSuggestion

logger = logging.getLogger(__name__)

_TAG_SPLIT_RE = re.compile(r'(<[^>]+>)')
_ANCHOR_OPEN_RE = re.compile(r'^<a[\s>]', re.IGNORECASE)
_ANCHOR_CLOSE_RE = re.compile(r'^</a\s*>', re.IGNORECASE)

VALID_LAYOUTS = ("accordion", "static")


class ContentInjector:
    """Renders postpilot fragments with Jinja2 and places them around content."""

    def __init__(self, manager: Optional[Manager] = None, template_dir: Optional[Path] = None):
        """
        Args:
            manager: Manager used by enhance(); only needed for that method
            template_dir: Custom templates. If None, uses built-in templates.
        """
        if template_dir is None:
            template_dir = Path(__file__).parent / "templates"

        self.manager = manager
        self.env = Environment(
            loader=FileSystemLoader(str(template_dir)),
            autoescape=select_autoescape(['html', 'xml']),
            trim_blocks=True,
            lstrip_blocks=True,
        )

    def render_summary(self, summary: str, label: str = "Summary:") -> str:
        if not summary:
            return ""
        return self.env.get_template("summary.html").render(summary=summary, label=label)

    def render_faq(self, items: List[FaqItem], layout: str = "accordion",
                   title: str = "Frequently Asked Questions") -> str:
        if not items:
            return ""
        if layout not in VALID_LAYOUTS:
            layout = "accordion"
        return self.env.get_template("faq.html").render(items=items, layout=layout, title=title)

    def inject_internal_links(
        self,
        content: str,
        suggestions: Iterable[LinkSuggestion],
        urls: Mapping[Any, str],
    ) -> str:
        """
        Link the first whole-word, case-insensitive occurrence of each keyword.

        Text inside tags or existing anchors is never touched. Suggestions
        whose target has no URL are skipped.
        """
        link_template = self.env.get_template("link.html")
        urls_by_id = {str(k): v for k, v in urls.items()}

        for suggestion in suggestions:
            url = urls_by_id.get(str(suggestion.target_id))
            if not url or not suggestion.keyword:
                continue
            pattern = re.compile(r'(?<!\w)' + re.escape(suggestion.keyword) + r'(?!\w)', re.IGNORECASE)
            content = self._replace_first(
                content, pattern,
                lambda match: link_template.render(url=url, text=match.group(0)),
            )
        return content

    @staticmethod
    def _replace_first(content: str, pattern, render) -> str:
        parts = _TAG_SPLIT_RE.split(content)
        in_anchor = 0
        for index, part in enumerate(parts):
            if part.startswith("<"):
                if _ANCHOR_OPEN_RE.match(part):
                    in_anchor += 1
                elif _ANCHOR_CLOSE_RE.match(part):
                    in_anchor = max(0, in_anchor - 1)
                continue
            if in_anchor:
                continue
            match = pattern.search(part)
            if match:
                parts[index] = part[:match.start()] + render(match) + part[match.end():]
                return "".join(parts)
        return content

    def _faq_html(self, resource_id: Union[int, str], content: str, user_id: Union[int, str]) -> str:
        """Saved FAQ for the resource when there is one, else a generated FAQ."""
        manager = self.manager
        layout = manager.config.get("faq.layout", "accordion")

        try:
            saved = manager.get_saved_faq(resource_id)
        except Exception as e:
            logger.warning(f"Could not read saved FAQ for resource {resource_id}: {e}")
            saved = None

        if saved is not None:
            if not saved.enabled:
                return ""
            if saved.items:
                if saved.layout != "default":
                    layout = saved.layout
                return self.render_faq(saved.items, layout=layout)

        result = manager.get_faq(resource_id, content, user_id=user_id)
        if not result.ok:
            return ""
        return self.render_faq(result.value, layout=layout)

    def enhance(
        self,
        resource_id: Union[int, str],
        content: str,
        candidate_links: Optional[Iterable[CandidateLink]] = None,
        user_id: Union[int, str] = ANONYMOUS_USER,
    ) -> str:
        """
        Return content with every enabled feature injected.

        Failed features are left out so the page always renders. A FAQ saved
        with the resource is used instead of generating one; if it is
        disabled the resource gets no FAQ.
        """
        if self.manager is None:
            raise ValueError("enhance() needs a Manager")

        manager = self.manager
        config = manager.config
        enhanced = content

        summary_html = ""
        if manager.is_enabled(Feature.SUMMARY):
            result = manager.get_summary(resource_id, content, user_id=user_id)
            if result.ok:
                summary_html = self.render_summary(result.value)
            else:
                logger.debug(f"Summary skipped for resource {resource_id}: {result.error.message}")

        if manager.is_enabled(Feature.LINKS):
            candidates = list(candidate_links) if candidate_links is not None else None
            result = manager.get_internal_links(resource_id, content, candidates, user_id=user_id)
            if result.ok and result.value:
                if candidates is None and manager.candidate_source is not None:
                    candidates = list(manager.candidate_source(resource_id))
                urls = {
                    (c.id if isinstance(c, CandidateLink) else c["id"]):
                    (c.url if isinstance(c, CandidateLink) else c.get("url", ""))
                    for c in candidates or []
                }
                enhanced = self.inject_internal_links(enhanced, result.value, urls)

        faq_html = ""
        if manager.is_enabled(Feature.FAQ):
            faq_html = self._faq_html(resource_id, content, user_id)

        if summary_html:
            if config.get("summary.position", "before_content") == "after_content":
                enhanced = enhanced + summary_html
            else:
                enhanced = summary_html + enhanced

        if faq_html:
            if config.get("faq.position", "after_content") == "before_content":
                enhanced = faq_html + enhanced
            else:
                enhanced = enhanced + faq_html

        return enhanced
