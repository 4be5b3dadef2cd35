"""
Embedding generation with a chain of remote backends and a deterministic fallback.
"""

import math
from abc import ABC, abstractmethod
from typing import List, Optional, Sequence

import numpy as np
import ollama
import requests

from ..core.config import EmbeddingConfig
from ..core.errors import EmbeddingUnavailableError
from ..util.logging import logger
from .types import EmbeddingResult

GEMINI_ENDPOINT = "https://generativelanguage.googleapis.com/v1beta/models/{model}:embedContent"


def normalize(vector: Sequence[float]) -> List[float]:
    """L2-normalize a vector. A zero vector is returned unchanged."""
    arr = np.asarray(vector, dtype=np.float64)
    norm = np.linalg.norm(arr)
    if norm > 0:
        arr = arr / norm
    return arr.tolist()


class IEmbeddingBackend(ABC):
    """Abstract interface for a single text-to-vector backend."""

    name = "abstract"

    @abstractmethod
    def embed_text(self, text: str) -> List[float]:
        """Generate embedding vector for given text.

        Raises EmbeddingUnavailableError when the backend cannot answer.
        """
        pass


class DeterministicHashEmbedding(IEmbeddingBackend):
    """Deterministic hash-based pseudo-embedding.

    The same text always yields the same vector, so fallback embeddings are
    reproducible across processes. Values are derived from a 32-bit rolling
    hash of the text's UTF-16 code units, passed through smooth periodic
    functions, rounded to 6 decimals and L2-normalized.
    """

    name = "hash"

    def __init__(self, dimension: int = 768):
        self.dimension = dimension

    @staticmethod
    def _code_units(text: str) -> List[int]:
        raw = text.encode("utf-16-le")
        return [int.from_bytes(raw[i:i + 2], "little") for i in range(0, len(raw), 2)]

    @classmethod
    def rolling_hash(cls, text: str) -> int:
        """hash = hash * 31 + code, wrapped to a signed 32-bit integer."""
        h = 0
        for code in cls._code_units(text):
            h = (h * 31 + code) & 0xFFFFFFFF
        if h >= 0x80000000:
            h -= 0x100000000
        return h

    def embed_text(self, text: str) -> List[float]:
        """Generate deterministic embedding vector using the rolling hash."""
        h = self.rolling_hash(text)
        length = len(self._code_units(text))

        values = []
        for i in range(self.dimension):
            seed = h + i + length
            value = (math.sin(seed) * math.cos(seed * 0.1) + math.sin(seed * 0.01)) * 0.1
            values.append(round(value, 6))

        return normalize(values)

    def get_dimension(self) -> int:
        return self.dimension


class HttpEmbeddingBackend(IEmbeddingBackend):
    """Generic JSON embedding service: POST {text, model} -> {vector: [...]}."""

    name = "http"

    def __init__(self, url: str, model: str, timeout: float = 10.0):
        self.url = url
        self.model = model
        self.timeout = timeout

    def embed_text(self, text: str) -> List[float]:
        if not self.url:
            raise EmbeddingUnavailableError("http embedding backend has no URL configured")

        try:
            response = requests.post(
                self.url,
                json={"text": text, "model": self.model},
                timeout=self.timeout,
            )
            response.raise_for_status()
            data = response.json()
        except requests.RequestException as e:
            raise EmbeddingUnavailableError(f"http embedding request failed: {e}") from e
        except ValueError as e:
            raise EmbeddingUnavailableError(f"http embedding response is not JSON: {e}") from e

        vector = data.get("vector") or data.get("embedding") if isinstance(data, dict) else None
        if not vector or not isinstance(vector, list):
            raise EmbeddingUnavailableError("http embedding response has no vector")
        return vector


class GeminiEmbeddingBackend(IEmbeddingBackend):
    """Google Generative Language embedContent REST endpoint."""

    name = "gemini"

    def __init__(self, api_key: Optional[str], model: str = "gemini-embedding-001",
                 dimension: int = 768, timeout: float = 10.0):
        self.api_key = api_key
        self.model = model
        self.dimension = dimension
        self.timeout = timeout

    def embed_text(self, text: str) -> List[float]:
        if not self.api_key:
            raise EmbeddingUnavailableError("GOOGLE_AI_API_KEY environment variable is required")

        try:
            response = requests.post(
                GEMINI_ENDPOINT.format(model=self.model),
                headers={"x-goog-api-key": self.api_key},
                json={
                    "model": f"models/{self.model}",
                    "content": {"parts": [{"text": text}]},
                    "outputDimensionality": self.dimension,
                },
                timeout=self.timeout,
            )
            response.raise_for_status()
            data = response.json()
        except requests.RequestException as e:
            raise EmbeddingUnavailableError(f"Gemini embedding request failed: {e}") from e
        except ValueError as e:
            raise EmbeddingUnavailableError(f"Gemini embedding response is not JSON: {e}") from e

        embedding = data.get("embedding") if isinstance(data, dict) else None
        values = embedding.get("values") if isinstance(embedding, dict) else None
        if not values or not isinstance(values, list):
            raise EmbeddingUnavailableError("Gemini returned no embedding values")
        return values


class OllamaEmbeddingBackend(IEmbeddingBackend):
    """Embeddings from a local Ollama server."""

    name = "ollama"

    def __init__(self, host: str, model: str, timeout: float = 10.0):
        self.model = model
        self._client = ollama.Client(host=host, timeout=timeout)

    def embed_text(self, text: str) -> List[float]:
        try:
            response = self._client.embeddings(model=self.model, prompt=text)
        except ollama.ResponseError as e:
            raise EmbeddingUnavailableError(f"Ollama model error: {e}") from e
        except Exception as e:
            # connection refused and timeouts surface as transport exceptions
            raise EmbeddingUnavailableError(f"Ollama request failed: {e}") from e

        vector = response.get("embedding") if hasattr(response, "get") else getattr(response, "embedding", None)
        if not vector:
            raise EmbeddingUnavailableError("Ollama returned an empty embedding")
        if not isinstance(vector, (list, tuple)):
            raise EmbeddingUnavailableError(f"Ollama returned a {type(vector).__name__} instead of a vector")
        return list(vector)


class SentenceTransformerEmbedding(IEmbeddingBackend):
    """Sentence transformers embedding provider using pre-trained models.

    Uses the all-mpnet-base-v2 model (768 dimensions) by default.
    """

    name = "sentence-transformers"

    def __init__(self, model_name: str = "all-mpnet-base-v2"):
        self.model_name = model_name
        self._model = None

    @property
    def model(self):
        if self._model is None:
            from sentence_transformers import SentenceTransformer
            self._model = SentenceTransformer(self.model_name)
        return self._model

    def embed_text(self, text: str) -> List[float]:
        try:
            embedding = self.model.encode(text, convert_to_tensor=False)
        except (OSError, RuntimeError, ValueError) as e:
            raise EmbeddingUnavailableError(f"sentence-transformers failed: {e}") from e
        return embedding.tolist()


def build_backend(provider: str, config: EmbeddingConfig) -> Optional[IEmbeddingBackend]:
    """Create the backend named by provider, or None if the name is unknown."""
    model = config.model_for(provider)
    if provider == "http":
        return HttpEmbeddingBackend(config.http_url, model, timeout=config.timeout)
    if provider == "gemini":
        return GeminiEmbeddingBackend(config.api_key, model, dimension=config.dimension, timeout=config.timeout)
    if provider == "ollama":
        return OllamaEmbeddingBackend(config.ollama_host, model, timeout=config.timeout)
    if provider == "sentence-transformers":
        return SentenceTransformerEmbedding(model)
    if provider == "hash":
        return DeterministicHashEmbedding(config.dimension)
    return None


class EmbeddingProvider:
    """
    Embeds text with the first configured backend that answers.

    embed() never raises: backend failures are logged and the next backend
    is tried, and when none is left the deterministic hash embedding is
    returned with used_fallback=True.
    """

    def __init__(self, config: EmbeddingConfig = None, backends: Sequence[IEmbeddingBackend] = None):
        self.config = config or EmbeddingConfig()
        self.dimension = self.config.dimension
        self.fallback = DeterministicHashEmbedding(self.dimension)

        if backends is not None:
            self.backends = list(backends)
        else:
            self.backends = []
            for provider in self.config.providers:
                backend = build_backend(provider, self.config)
                if backend is None:
                    logger.warning(f"Unknown embedding provider '{provider}' ignored")
                    continue
                self.backends.append(backend)

    def _check(self, vector) -> List[float]:
        try:
            arr = np.asarray(vector, dtype=np.float64)
        except (TypeError, ValueError) as e:
            raise EmbeddingUnavailableError(f"embedding is not a numeric vector: {e}") from e
        if arr.ndim != 1 or arr.shape[0] != self.dimension:
            raise EmbeddingUnavailableError(
                f"expected {self.dimension} dimensions, got shape {arr.shape}"
            )
        if not np.all(np.isfinite(arr)):
            raise EmbeddingUnavailableError("embedding contains non-finite values")
        return normalize(arr)

    def embed(self, text: str) -> EmbeddingResult:
        """Embed text, reporting whether the fallback had to be used."""
        failures = []
        for backend in self.backends:
            try:
                vector = self._check(backend.embed_text(text))
            except EmbeddingUnavailableError as e:
                failures.append(f"{backend.name}: {e.message}")
                continue
            return EmbeddingResult(vector=vector, used_fallback=False, provider=backend.name)

        if failures:
            logger.log_embedding_fallback(len(text), failures)
        return EmbeddingResult(
            vector=self.fallback.embed_text(text),
            used_fallback=True,
            provider=self.fallback.name,
        )

    def get_dimension(self) -> int:
        return self.dimension
