"""
Fuzzy matching of client model handles against marketplace model names.
"""

from __future__ import annotations

import math
from collections.abc import Iterable
from typing import Optional, Tuple

from nfa_proxy.models import ModelRecord


MATCH_THRESHOLD = 0.8


def fold_case(value: str) -> str:
    """
    Lowercase one code point at a time, keeping the first code point of
    expansions such as "İ" -> "i\u0307" so lengths stay unchanged.
    """
    return "".join(ch.lower()[0] for ch in value)


def levenshtein(a: str, b: str) -> int:
    """
    Case-insensitive edit distance over code points.
    """
    s1 = fold_case(a)
    s2 = fold_case(b)
    if not s1:
        return len(s2)
    if not s2:
        return len(s1)

    previous = list(range(len(s2) + 1))
    for i, c1 in enumerate(s1, start=1):
        current = [i] + [0] * len(s2)
        for j, c2 in enumerate(s2, start=1):
            cost = 0 if c1 == c2 else 1
            current[j] = min(
                previous[j] + 1,  # deletion
                current[j - 1] + 1,  # insertion
                previous[j - 1] + cost,  # substitution
            )
        previous = current
    return previous[-1]


def similarity(a: str, b: str) -> float:
    """
    Similarity in [0, 1] derived from the edit distance, rounded to the
    nearest tenth.
    """
    s1 = fold_case(a)
    s2 = fold_case(b)
    if not s1 or not s2:
        return 1.0 if s1 == s2 else 0.0
    if s1 == s2:
        return 1.0

    score = 1.0 - levenshtein(s1, s2) / max(len(s1), len(s2))
    return math.floor(score * 10 + 0.5) / 10


def best_match(
    handle: str, models: Iterable[ModelRecord]
) -> Tuple[Optional[ModelRecord], float]:
    """
    Return the most similar model and its score. Ties keep the earliest
    model in list order.
    """
    best: Optional[ModelRecord] = None
    best_score = 0.0
    for model in models:
        score = similarity(handle, model.name)
        if score > best_score:
            best = model
            best_score = score
    return best, best_score


__all__ = ["MATCH_THRESHOLD", "fold_case", "levenshtein", "similarity", "best_match"]
