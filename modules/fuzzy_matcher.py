"""
Fuzzy name matching.

Resolves free-text names typed in chat ("extreme", "cheese pizza")
against names rendered on the ordering website or stored in the menu
catalog ("Extreme Pizza", "Large Cheese Pizza").

Rule: case-insensitive substring containment of the query in the
candidate's display text. The first matching candidate in iteration
order wins; there is no scoring. Two items sharing a common name
fragment therefore resolve to whichever is listed first.
"""

from __future__ import annotations

from typing import Any, Iterable, Optional, Tuple, Union

from core.surface import Candidate


class _NotFound:
    """Sentinel returned when no candidate matches."""

    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __bool__(self) -> bool:
        return False

    def __repr__(self) -> str:
        return "NOT_FOUND"


NOT_FOUND = _NotFound()

CandidateLike = Union[Candidate, Tuple[str, Any]]


def normalize(text: str) -> str:
    """Lowercase and collapse whitespace, so 'Cheese  Pizza\\n' matches 'cheese pizza'."""
    return " ".join(text.split()).lower()


def contains(display_text: str, query: str) -> bool:
    """True if ``query`` occurs in ``display_text``, ignoring case and whitespace runs."""
    return normalize(query) in normalize(display_text)


def match(candidates: Iterable[CandidateLike], query: str) -> Any:
    """
    Return the handle of the first candidate whose text contains ``query``.

    Args:
        candidates: ``Candidate`` or ``(display_text, handle)`` pairs, in page order
        query: Free-text name to look for

    Returns:
        The matching handle, or NOT_FOUND

    Example:
        >>> match([("Extreme Pizza", "h1")], "extreme")
        'h1'
        >>> match([("Pizza", "h1")], "sushi")
        NOT_FOUND
    """
    if not normalize(query):
        return NOT_FOUND
    for display_text, handle in candidates:
        if contains(display_text, query):
            return handle
    return NOT_FOUND


def match_text(names: Iterable[str], query: str) -> Optional[str]:
    """Name-only variant of :func:`match`; returns the matching name or None."""
    found = match(((name, name) for name in names), query)
    return None if found is NOT_FOUND else found
