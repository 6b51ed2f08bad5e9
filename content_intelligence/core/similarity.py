"""
Similarity Engine
=================

The three similarity primitives every scoring formula composes.

All functions are pure and total: any pair of inputs yields a value in
[0, 1] and nothing here raises on content.
"""

from __future__ import annotations
from difflib import SequenceMatcher
from typing import Iterable

import numpy as np

from ..contracts.base import normalize_tags
from ..contracts.results import TermVector


def text_similarity(a: str, b: str) -> float:
    """
    Case-folded fuzzy string similarity.

    Uses SequenceMatcher's ratio (2*matches / total length). Arguments are
    put in canonical order first so the result is symmetric; the ratio is
    1.0 only when both strings are identical after case-folding.
    """
    a = (a or '').casefold()
    b = (b or '').casefold()
    if a == b:
        return 1.0
    if not a or not b:
        return 0.0
    first, second = (a, b) if a <= b else (b, a)
    return SequenceMatcher(None, first, second, autojunk=False).ratio()


def vector_similarity(v1: TermVector, v2: TermVector) -> float:
    """
    Cosine similarity of two term vectors.

    Zero when either vector has zero magnitude.
    """
    if v1.is_zero or v2.is_zero:
        return 0.0
    if v1 == v2:
        return 1.0

    w1 = v1.as_dict()
    w2 = v2.as_dict()
    terms = sorted(set(w1) | set(w2))
    a = np.array([w1.get(t, 0.0) for t in terms], dtype=float)
    b = np.array([w2.get(t, 0.0) for t in terms], dtype=float)

    norm = float(np.linalg.norm(a) * np.linalg.norm(b))
    if norm == 0.0:
        return 0.0
    return float(np.clip(np.dot(a, b) / norm, 0.0, 1.0))


def tag_overlap(tags1: Iterable[str], tags2: Iterable[str]) -> float:
    """Jaccard index of two tag sets (case-insensitive); 0 if either is empty."""
    set1 = normalize_tags(tags1)
    set2 = normalize_tags(tags2)
    if not set1 or not set2:
        return 0.0
    return len(set1 & set2) / len(set1 | set2)
