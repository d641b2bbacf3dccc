"""Small text helpers shared by the source adapters."""

from __future__ import annotations

import html
import re

_HTML_TAG_RE = re.compile(r"<[^>]+>")
_WHITESPACE_RE = re.compile(r"\s+")


def strip_html(text: str) -> str:
    """Remove HTML tags and entities, collapsing whitespace."""
    text = html.unescape(_HTML_TAG_RE.sub(" ", text))
    return _WHITESPACE_RE.sub(" ", text).strip()


def truncate(text: str | None, max_length: int, ellipsis: str = "") -> str | None:
    """Cut ``text`` to ``max_length`` characters; empty input becomes None."""
    if not text:
        return None
    if len(text) <= max_length:
        return text
    return text[:max_length].rstrip() + ellipsis


def split_csv(value: str) -> list[str]:
    return [item.strip() for item in value.split(",") if item.strip()]
