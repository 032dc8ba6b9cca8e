"""
Prompt templates for each feature.

Content is stripped of markup and bounded in length before it goes into a
prompt, since every character is paid for.
"""

import logging
from typing import Iterable

from ..models import CandidateLink
from ..utils import strip_tags, truncate

logger = logging.getLogger(__name__)

MAX_CONTENT_CHARS = 12000

FAQ_PROMPT = (
    "Generate exactly 4-5 FAQ items about the following content.\n\n"
    "IMPORTANT: Your response must be ONLY a valid JSON array starting with [ and ending with ].\n"
    "Each item must have \"question\" and \"answer\" keys.\n"
    "Do NOT use markdown code blocks.\n"
    "Do NOT truncate the response.\n\n"
    "Content: {content}\n\n"
    "Respond with the complete JSON array:"
)

SUMMARY_PROMPT = (
    "Create a concise, engaging summary (2-3 sentences) of the following content: {content}"
)

LINKS_PROMPT = (
    "Analyze this content and suggest 3-5 relevant internal links from the available posts. "
    "Return ONLY a valid JSON array with objects containing \"keyword\" and \"post_id\" keys, "
    "where \"keyword\" is a phrase that appears verbatim in the content. "
    "Do not use markdown formatting or code blocks.\n\n"
    "Content: {content}\n\n"
    "Available posts:\n{posts}"
)


def prepare_content(content: str, limit: int = MAX_CONTENT_CHARS) -> str:
    text = strip_tags(content)
    if len(text) > limit:
        logger.debug(f"Truncating prompt content from {len(text)} to {limit} characters")
        text = truncate(text, limit)
    return text


def build_faq_prompt(content: str) -> str:
    return FAQ_PROMPT.format(content=prepare_content(content))


def build_summary_prompt(content: str) -> str:
    return SUMMARY_PROMPT.format(content=prepare_content(content))


def build_links_prompt(content: str, candidates: Iterable[CandidateLink]) -> str:
    posts = "\n".join(
        f"- ID: {c.id}, Title: {c.title}" + (f", URL: {c.url}" if c.url else "")
        for c in candidates
    )
    return LINKS_PROMPT.format(content=prepare_content(content), posts=posts)
