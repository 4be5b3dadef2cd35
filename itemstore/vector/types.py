"""
Value types shared by the embedding and similarity layers.
"""

from dataclasses import dataclass
from typing import List


@dataclass(frozen=True)
class EmbeddingResult:
    """Outcome of one embed call."""

    vector: List[float]
    """Unit-normalized embedding vector"""

    used_fallback: bool
    """True when no remote backend produced the vector"""

    provider: str
    """Name of the backend that produced the vector"""
