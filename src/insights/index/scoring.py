"""Vector math and ranking signals shared by search and rumination."""

from __future__ import annotations

import math
from typing import Mapping, Sequence

import numpy as np

from insights.models import SparseVector
from insights.utils.text import split_lines

SECONDS_PER_DAY = 24 * 60 * 60
EXCERPT_CHARS = 240


def term_vector(counts: Mapping[str, int], idf: Mapping[str, float]) -> SparseVector:
    """Build an augmented-frequency TF-IDF vector from raw term counts.

    Terms missing from ``idf`` get weight 0 and stay inert in similarity.
    """
    max_tf = max([1, *counts.values()])
    return {term: (0.5 + 0.5 * (count / max_tf)) * idf.get(term, 0.0) for term, count in counts.items()}


def _norm(vector: SparseVector) -> float:
    return math.sqrt(sum(weight * weight for weight in vector.values()))


def cosine_sparse(a: SparseVector, b: SparseVector) -> float:
    denom = _norm(a) * _norm(b)
    if denom == 0:
        return 0.0
    shorter, longer = (a, b) if len(a) < len(b) else (b, a)
    dot = 0.0
    for term, weight in shorter.items():
        other = longer.get(term)
        if other is not None:
            dot += weight * other
    return dot / denom


def cosine_dense(a: Sequence[float] | np.ndarray, b: Sequence[float] | np.ndarray) -> float:
    """Cosine similarity of two dense vectors, aligned to the shorter length."""
    n = min(len(a), len(b))
    left = np.asarray(a[:n], dtype="float64")
    right = np.asarray(b[:n], dtype="float64")
    denom = float(np.linalg.norm(left) * np.linalg.norm(right))
    if denom == 0:
        return 0.0
    return float(left @ right) / denom


def recency_weight(mtime: float, half_life_days: float, now: float) -> float:
    """Exponential decay by document age; ``mtime`` and ``now`` are epoch seconds."""
    if half_life_days <= 0:
        return 1.0
    age_days = max(0.0, (now - mtime) / SECONDS_PER_DAY)
    return 0.5 ** (age_days / half_life_days)


def sentiment_boost(sentiment: float) -> float:
    return 1 + 0.1 * sentiment


def build_excerpt(content: str, query_tokens: Sequence[str]) -> str:
    """Pick the first line mentioning a query token, else the first line."""
    lines = split_lines(content)
    for line in lines:
        lower = line.lower()
        if any(token and token in lower for token in query_tokens):
            return line.strip()[:EXCERPT_CHARS]
    return (lines[0] if lines else "").strip()[:EXCERPT_CHARS]
