"""Grapheme-aware text helpers."""

import regex

ELLIPSIS = "..."

_GRAPHEME = regex.compile(r"\X")


def split_graphemes(text: str) -> list[str]:
    """Split text into user-perceived characters (extended grapheme clusters)."""
    return _GRAPHEME.findall(text)


def count_graphemes(text: str) -> int:
    """Count user-perceived characters, so a flag or ZWJ emoji counts as one."""
    return len(split_graphemes(text))


def truncate(text: str, max_length: int, ellipsis: str = ELLIPSIS) -> str:
    """Truncate to ``max_length`` graphemes, ending with ``ellipsis`` when cut."""
    graphemes = split_graphemes(text)
    if len(graphemes) <= max_length:
        return text
    keep = max(max_length - len(ellipsis), 0)
    return "".join(graphemes[:keep]) + ellipsis


def utf8_length(text: str) -> int:
    """Length of ``text`` in UTF-8 bytes (facet offsets are byte based)."""
    return len(text.encode("utf-8"))
