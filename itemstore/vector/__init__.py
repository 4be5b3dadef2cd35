"""
Embedding generation and vector similarity for semantic item search.
"""

from .embeddings import (
    IEmbeddingBackend,
    DeterministicHashEmbedding,
    HttpEmbeddingBackend,
    GeminiEmbeddingBackend,
    OllamaEmbeddingBackend,
    SentenceTransformerEmbedding,
    EmbeddingProvider,
)
from .similarity import cosine_similarity, rank_by_score
from .types import EmbeddingResult

__all__ = [
    'IEmbeddingBackend',
    'DeterministicHashEmbedding',
    'HttpEmbeddingBackend',
    'GeminiEmbeddingBackend',
    'OllamaEmbeddingBackend',
    'SentenceTransformerEmbedding',
    'EmbeddingProvider',
    'cosine_similarity',
    'rank_by_score',
    'EmbeddingResult',
]
