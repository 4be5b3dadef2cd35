"""
Configuration for the item store, read from the environment (and a .env file when present).
"""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Tuple

from dotenv import load_dotenv

load_dotenv()

# Store configuration
STORE_BACKEND = os.getenv("STORE_BACKEND", "memory")  # memory|sqlite
DB_PATH = os.getenv("DB_PATH", "./data/items.db")
STORE_TIMEOUT_SEC = float(os.getenv("STORE_TIMEOUT_SEC", "5"))

# Embedding configuration
EMBED_PROVIDERS = os.getenv("EMBED_PROVIDERS", "")  # comma separated: http,gemini,ollama,sentence-transformers,hash
EMBED_MODEL = os.getenv("EMBED_MODEL", "")
EMBED_HTTP_URL = os.getenv("EMBED_HTTP_URL", "")
OLLAMA_HOST = os.getenv("OLLAMA_HOST", "http://localhost:11434")
EMBED_TIMEOUT_SEC = float(os.getenv("EMBED_TIMEOUT_SEC", "10"))
EMBED_DIMENSION = int(os.getenv("EMBED_DIMENSION", "768"))

# Item and search defaults
DEFAULT_TTL_SEC = int(os.getenv("DEFAULT_TTL_SEC", "86400"))
VECTOR_SEARCH_LIMIT = int(os.getenv("VECTOR_SEARCH_LIMIT", "5"))
TEXT_SEARCH_LIMIT = int(os.getenv("TEXT_SEARCH_LIMIT", "50"))

# API configuration
CORS_ORIGINS = os.getenv("CORS_ORIGINS", "*")

DEBUG = os.getenv("DEBUG", "false").lower() == "true"

VERSION = "1.0.0"

KNOWN_STORE_BACKENDS = ["memory", "sqlite"]
KNOWN_EMBED_PROVIDERS = ["http", "gemini", "ollama", "sentence-transformers", "hash"]

DEFAULT_MODELS = {
    "http": "text-embedding",
    "gemini": "gemini-embedding-001",
    "ollama": "nomic-embed-text",
    "sentence-transformers": "all-mpnet-base-v2",
}


@dataclass(frozen=True)
class EmbeddingConfig:
    """Which embedding backends to try, in order, and how to reach them.

    Passed to the embedding provider at construction so several
    configurations can coexist in one process.
    """

    providers: Tuple[str, ...] = ()
    model: str = ""
    http_url: str = ""
    ollama_host: str = "http://localhost:11434"
    api_key: Optional[str] = field(default=None, repr=False)
    timeout: float = 10.0
    dimension: int = 768

    def model_for(self, provider: str) -> str:
        return self.model or DEFAULT_MODELS.get(provider, "")


def _split_providers(value: str) -> Tuple[str, ...]:
    return tuple(p.strip().lower() for p in value.split(",") if p.strip())


def get_embedding_config() -> EmbeddingConfig:
    """Build the embedding configuration from the current environment."""
    return EmbeddingConfig(
        providers=_split_providers(os.getenv("EMBED_PROVIDERS", EMBED_PROVIDERS)),
        model=os.getenv("EMBED_MODEL", EMBED_MODEL),
        http_url=os.getenv("EMBED_HTTP_URL", EMBED_HTTP_URL),
        ollama_host=os.getenv("OLLAMA_HOST", OLLAMA_HOST),
        api_key=os.getenv("GOOGLE_AI_API_KEY"),
        timeout=float(os.getenv("EMBED_TIMEOUT_SEC", str(EMBED_TIMEOUT_SEC))),
        dimension=int(os.getenv("EMBED_DIMENSION", str(EMBED_DIMENSION))),
    )


def get_store():
    """Get configured key-value store implementation."""
    backend = os.getenv("STORE_BACKEND", STORE_BACKEND).lower()

    if backend == "sqlite":
        from .db import SQLiteKeyValueStore
        return SQLiteKeyValueStore(
            os.getenv("DB_PATH", DB_PATH),
            timeout=float(os.getenv("STORE_TIMEOUT_SEC", str(STORE_TIMEOUT_SEC))),
        )

    from .store import InMemoryKeyValueStore
    return InMemoryKeyValueStore()


def get_embedding_provider(config: Optional[EmbeddingConfig] = None):
    """Get the embedding provider chain for the given (or environment) configuration."""
    from ..vector.embeddings import EmbeddingProvider
    return EmbeddingProvider(config or get_embedding_config())


def debug_enabled():
    """Check if debug mode is enabled."""
    return os.getenv("DEBUG", "false").lower() == "true"


def get_cors_origins() -> List[str]:
    return [o.strip() for o in os.getenv("CORS_ORIGINS", CORS_ORIGINS).split(",") if o.strip()]


def ensure_db_directory(db_path: str = DB_PATH):
    """Ensure the database directory exists."""
    Path(db_path).parent.mkdir(parents=True, exist_ok=True)


def validate_config():
    """Validate configuration and return any issues."""
    issues = []

    backend = os.getenv("STORE_BACKEND", STORE_BACKEND).lower()
    if backend not in KNOWN_STORE_BACKENDS:
        issues.append(f"Invalid STORE_BACKEND: {backend}")

    embedding = get_embedding_config()
    for provider in embedding.providers:
        if provider not in KNOWN_EMBED_PROVIDERS:
            issues.append(f"Unknown embedding provider in EMBED_PROVIDERS: {provider}")

    if "http" in embedding.providers and not embedding.http_url:
        issues.append("EMBED_PROVIDERS includes 'http' but EMBED_HTTP_URL is not set")

    if "gemini" in embedding.providers and not embedding.api_key:
        issues.append("EMBED_PROVIDERS includes 'gemini' but GOOGLE_AI_API_KEY is not set")

    if embedding.dimension < 1:
        issues.append("EMBED_DIMENSION must be >= 1")

    if embedding.timeout <= 0:
        issues.append("EMBED_TIMEOUT_SEC must be > 0")

    if int(os.getenv("DEFAULT_TTL_SEC", str(DEFAULT_TTL_SEC))) < 1:
        issues.append("DEFAULT_TTL_SEC must be >= 1")

    return issues
