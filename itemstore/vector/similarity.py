"""
Cosine similarity and ranking for brute-force vector search.
"""

from typing import Iterable, List, Optional, Sequence, TypeVar

import numpy as np

T = TypeVar("T")


def cosine_similarity(vec_a: Sequence[float], vec_b: Sequence[float]) -> float:
    """Cosine of the angle between two vectors.

    Defined as 0.0 when either vector has zero magnitude.
    Raises ValueError if the vectors differ in dimension.
    """
    a = np.asarray(vec_a, dtype=np.float64)
    b = np.asarray(vec_b, dtype=np.float64)
    if a.shape != b.shape:
        raise ValueError(f"Vectors must have the same dimension ({a.shape[0]} != {b.shape[0]})")

    norm_a = np.linalg.norm(a)
    norm_b = np.linalg.norm(b)
    if norm_a == 0 or norm_b == 0:
        return 0.0

    similarity = float(np.dot(a, b) / (norm_a * norm_b))
    # rounding can push identical directions just past the [-1, 1] range
    return max(-1.0, min(1.0, similarity))


def rank_by_score(candidates: Iterable[T], limit: Optional[int] = None) -> List[T]:
    """Sort objects with a .score attribute by descending score, keeping scan order for ties, then truncate."""
    # sorted() is stable, so equal scores stay in the order they were produced
    ranked = sorted(candidates, key=lambda c: c.score, reverse=True)
    if limit is not None:
        ranked = ranked[:limit]
    return ranked
