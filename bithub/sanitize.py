from __future__ import annotations

import re

# Tag-shaped markup only; a "<" not followed by a letter, "/" or "!" is text.
_TAG_RE = re.compile(r"</?[A-Za-z!][^>]*>")

# Only this fixed set is decoded; anything else is left as-is.
_ENTITIES = (
    ("&nbsp;", " "),
    ("&amp;", "&"),
    ("&lt;", "<"),
    ("&gt;", ">"),
    ("&quot;", '"'),
    ("&#39;", "'"),
)


def _sanitize_pass(text: str) -> str:
    text = _TAG_RE.sub("", text)
    for entity, char in _ENTITIES:
        text = text.replace(entity, char)
    return text.strip()


def sanitize_html(text: str | None) -> str:
    """Strip markup from a post body and decode the basic HTML entities.

    Passes repeat until the text stops changing, so decoded entities that
    form new tags (``&lt;b&gt;``) are stripped too and the result is stable
    under re-sanitizing. Every changing pass shortens the text, so the loop
    terminates.
    """
    if not text:
        return ""
    current = text
    while True:
        cleaned = _sanitize_pass(current)
        if cleaned == current:
            return cleaned
        current = cleaned
