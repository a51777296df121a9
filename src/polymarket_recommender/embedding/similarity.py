"""Cosine similarity and ranking over embedding vectors."""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from typing import TypeVar

import numpy as np

K = TypeVar("K")


class DimensionMismatchError(ValueError):
    """Raised when two vectors being compared have different lengths."""

    def __init__(self, left: int, right: int) -> None:
        super().__init__(f"Vector dimension mismatch: {left} != {right}")
        self.left = left
        self.right = right


def cosine(a: Sequence[float], b: Sequence[float]) -> float:
    """Cosine similarity in [-1, 1].

    Empty inputs and zero-magnitude vectors score 0 rather than NaN so that
    rankings stay stable. Vectors of different lengths are rejected.
    """
    if len(a) == 0 or len(b) == 0:
        return 0.0
    if len(a) != len(b):
        raise DimensionMismatchError(len(a), len(b))

    va = np.asarray(a, dtype=np.float64)
    vb = np.asarray(b, dtype=np.float64)
    denom = float(np.linalg.norm(va)) * float(np.linalg.norm(vb))
    if denom == 0.0:
        return 0.0
    score = float(np.dot(va, vb)) / denom
    return max(-1.0, min(1.0, score))


def rank(
    query: Sequence[float],
    candidates: Iterable[tuple[K, Sequence[float]]],
) -> list[tuple[K, float]]:
    """Score candidates against ``query``, best first.

    Ties keep input order (``sorted`` is stable).
    """
    scored = [(key, cosine(query, vector)) for key, vector in candidates]
    return sorted(scored, key=lambda item: item[1], reverse=True)


def top_k(
    query: Sequence[float],
    candidates: Iterable[tuple[K, Sequence[float]]],
    *,
    threshold: float,
    limit: int,
) -> list[tuple[K, float]]:
    """Nearest neighbours above ``threshold``, at most ``limit`` of them."""
    if limit <= 0:
        return []
    return [item for item in rank(query, candidates) if item[1] > threshold][:limit]
