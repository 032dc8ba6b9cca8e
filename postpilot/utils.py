"""Text helpers shared by prompt building and content injection."""

import html
import re

_SCRIPT_STYLE_RE = re.compile(r'<(script|style)\b[^>]*>.*?</\1\s*>', re.IGNORECASE | re.DOTALL)
_TAG_RE = re.compile(r'<[^>]+>')
_WHITESPACE_RE = re.compile(r'[ \t\r\f\v]+')
_BLANK_LINES_RE = re.compile(r'\n\s*\n+')


def strip_tags(content: str) -> str:
    """
    Remove markup from content, keeping the text.

    Script and style blocks are dropped entirely, entities are decoded and
    runs of whitespace collapsed.
    """
    if not content:
        return ""
    text = _SCRIPT_STYLE_RE.sub(" ", content)
    text = _TAG_RE.sub(" ", text)
    text = html.unescape(text)
    text = _WHITESPACE_RE.sub(" ", text)
    text = _BLANK_LINES_RE.sub("\n\n", text)
    return "\n".join(line.strip() for line in text.splitlines()).strip()


def truncate(text: str, limit: int) -> str:
    """Cut text to at most ``limit`` characters on a word boundary."""
    if limit <= 0 or len(text) <= limit:
        return text
    cut = text[:limit]
    space = cut.rfind(" ")
    if space > limit // 2:
        cut = cut[:space]
    return cut.rstrip()
