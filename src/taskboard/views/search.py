# src/taskboard/views/search.py

"""
Fuzzy text search.

A Matcher scores (query, text) in [0, 1]; 1.0 is a perfect hit. The filter
engine only talks to rank_by_query(), so the scoring function can be
swapped without touching filter precedence.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable, Sequence
from difflib import SequenceMatcher
from typing import TypeVar

T = TypeVar("T")

Matcher = Callable[[str, str], float]

# Minimum similarity for a hit.
DEFAULT_THRESHOLD = 0.7


def _normalize(s: str) -> str:
    return " ".join((s or "").lower().split())


def fuzzy_score(query: str, text: str) -> float:
    """
    Best similarity of query against any window of text.

    Exact substrings score 1.0. Otherwise windows of len(query)-1..+1 chars
    are compared, so a typo or an extra character still scores high. Queries
    of three characters or fewer skip the shorter window.
    """
    q = _normalize(query)
    t = _normalize(text)
    if not q or not t:
        return 0.0
    if q in t:
        return 1.0

    sm = SequenceMatcher(autojunk=False)
    sm.set_seq2(q)
    best = 0.0
    n = len(q)
    # Dropping a character from a short query matches too much.
    sizes = (n - 1, n, n + 1) if n > 3 else (n, n + 1)
    for size in sizes:
        if size >= len(t):
            sm.set_seq1(t)
            best = max(best, sm.ratio())
            continue
        for start in range(len(t) - size + 1):
            sm.set_seq1(t[start : start + size])
            ratio = sm.ratio()
            if ratio > best:
                best = ratio
    return best


def token_overlap_score(query: str, text: str) -> float:
    """Share of query words present in text (alternative matcher)."""
    q = set(_normalize(query).split())
    if not q:
        return 0.0
    t = set(_normalize(text).split())
    return len(q & t) / len(q)


def rank_by_query(
    items: Iterable[T],
    query: str,
    fields: Callable[[T], Sequence[str]],
    *,
    matcher: Matcher = fuzzy_score,
    threshold: float = DEFAULT_THRESHOLD,
) -> list[T]:
    """
    Keep items whose best field score reaches threshold, best first.

    sorted() is stable, so equally relevant items keep their input order.
    """
    scored: list[tuple[float, T]] = []
    for item in items:
        score = max((matcher(query, f) for f in fields(item) if f), default=0.0)
        if score >= threshold:
            scored.append((score, item))
    scored.sort(key=lambda pair: pair[0], reverse=True)
    return [item for _, item in scored]
