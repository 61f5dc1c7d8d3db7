from __future__ import annotations

import html
import re

_TAG_RE = re.compile(r"<[A-Za-z/!?][^>]*>")
_WHITESPACE_RE = re.compile(r"\s+")

PREVIEW_MAX_LEN = 140
ELLIPSIS = "..."


def normalize(raw: str | None) -> str:
    """Reduce a rich-text/HTML fragment to comparable plain text.

    Entities are decoded, tags stripped, whitespace runs collapsed to a single
    space and the result trimmed. Comparison downstream stays case-sensitive.
    """
    if not raw:
        return ""
    text = str(raw)
    # Decoding can expose encoded markup ("&lt;b&gt;"), so repeat until stable.
    while True:
        decoded = _TAG_RE.sub("", html.unescape(text))
        if decoded == text:
            break
        text = decoded
    text = _WHITESPACE_RE.sub(" ", text)
    return text.strip()


def preview(text: str, max_len: int = PREVIEW_MAX_LEN) -> str:
    text = text.strip()
    if len(text) <= max_len:
        return text
    return text[: max(0, max_len - len(ELLIPSIS))] + ELLIPSIS


def truncate(text: str, max_len: int) -> str:
    """Cut ``text`` to ``max_len`` characters plus an ellipsis; ``max_len <= 0`` disables it."""
    if max_len <= 0 or len(text) <= max_len:
        return text
    return text[:max_len] + ELLIPSIS
