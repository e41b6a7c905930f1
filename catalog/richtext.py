from __future__ import annotations

import html

import bleach
from markdownify import markdownify as _html_to_md

# Store exports ship product descriptions as HTML fragments.
_ALLOWED_TAGS: list[str] = [
    "p",
    "br",
    "strong",
    "b",
    "em",
    "i",
    "ul",
    "ol",
    "li",
    "h2",
    "h3",
    "h4",
]


def looks_like_html(text: str) -> bool:
    return "<" in text and ">" in text


def description_to_markdown(value: str | None) -> str:
    """Sanitize an imported description and convert it to Markdown.

    Plain text is returned stripped. HTML is cleaned with `bleach` (unknown tags
    and all attributes dropped) before conversion.
    """

    text = (value or "").strip()
    if not text or not looks_like_html(text):
        return text

    cleaned = bleach.clean(text, tags=_ALLOWED_TAGS, attributes={}, strip=True)
    return (_html_to_md(cleaned, heading_style="ATX") or "").strip()


def plain_text(value: str | None, *, max_length: int | None = None) -> str:
    """Strip every tag from user-supplied text (chat, reports).

    Returns unescaped text; renderers escape it on output.
    """
    text = html.unescape(bleach.clean(value or "", tags=[], attributes={}, strip=True)).strip()
    if max_length is not None:
        text = text[:max_length]
    return text
