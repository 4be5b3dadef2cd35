"""
Cosine similarity and score ranking.
"""

from dataclasses import dataclass

import pytest

from itemstore.vector.embeddings import DeterministicHashEmbedding
from itemstore.vector.similarity import cosine_similarity, rank_by_score


@dataclass
class Scored:
    name: str
    score: float


class TestCosineSimilarity:

    def test_identical_vectors(self):
        v = DeterministicHashEmbedding(768).embed_text("hello")
        assert cosine_similarity(v, v) == pytest.approx(1.0)

    def test_opposite_vectors(self):
        v = DeterministicHashEmbedding(768).embed_text("hello")
        assert cosine_similarity(v, [-x for x in v]) == pytest.approx(-1.0)

    def test_orthogonal_vectors(self):
        assert cosine_similarity([1.0, 0.0], [0.0, 1.0]) == 0.0

    def test_zero_vector_yields_zero(self):
        assert cosine_similarity([0.0, 0.0, 0.0], [1.0, 2.0, 3.0]) == 0.0
        assert cosine_similarity([1.0, 2.0, 3.0], [0.0, 0.0, 0.0]) == 0.0

    def test_unnormalized_inputs(self):
        assert cosine_similarity([3.0, 4.0], [6.0, 8.0]) == pytest.approx(1.0)

    def test_result_is_clamped(self):
        v = [0.1] * 768
        score = cosine_similarity(v, v)
        assert -1.0 <= score <= 1.0

    def test_dimension_mismatch_raises(self):
        with pytest.raises(ValueError):
            cosine_similarity([1.0, 2.0], [1.0, 2.0, 3.0])


class TestRankByScore:

    def test_descending_order(self):
        ranked = rank_by_score([Scored("a", 0.2), Scored("b", 0.9), Scored("c", 0.5)])
        assert [c.name for c in ranked] == ["b", "c", "a"]

    def test_ties_keep_input_order(self):
        ranked = rank_by_score([Scored("a", 0.7), Scored("b", 0.9), Scored("c", 0.7), Scored("d", 0.7)])
        assert [c.name for c in ranked] == ["b", "a", "c", "d"]

    def test_truncates_to_limit(self):
        ranked = rank_by_score([Scored(str(i), i / 10) for i in range(10)], limit=3)
        assert [c.name for c in ranked] == ["9", "8", "7"]

    def test_empty_input(self):
        assert rank_by_score([], limit=5) == []
