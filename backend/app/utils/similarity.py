"""
Lexical title/query similarity and stable ranking.
"""

from __future__ import annotations

from typing import Iterable, TypeVar

# Untuned heuristics kept for compatibility with existing result sheets.
SUBSTRING_SCORE = 0.8
MIN_TOKEN_LENGTH = 4

T = TypeVar("T")


def similarity(candidate_title: str, query_text: str) -> float:
    """
    Score a candidate title against the query, in [0.0, 1.0].

    1.0 on exact match (case/whitespace-insensitive), 0.8 when one contains
    the other, otherwise the number of equal token pairs of length > 3
    divided by the larger token count.
    """
    s1 = (candidate_title or "").lower().strip()
    s2 = (query_text or "").lower().strip()

    if s1 == s2:
        return 1.0
    if s2 in s1 or s1 in s2:
        return SUBSTRING_SCORE

    words1 = s1.split()
    words2 = s2.split()
    matches = 0
    for word1 in words1:
        if len(word1) < MIN_TOKEN_LENGTH:
            continue
        for word2 in words2:
            if word1 == word2:
                matches += 1

    return min(1.0, matches / max(len(words1), len(words2)))


def rank_by_score(items: Iterable[T], key) -> list[T]:
    """Sort descending by ``key``; equal scores keep their input order."""
    return sorted(items, key=key, reverse=True)
