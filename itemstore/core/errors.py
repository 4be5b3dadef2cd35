"""
Error kinds raised by the item store core.

NotFound is not an error here: lookups return None for absent or expired items.
"""


class ItemStoreError(Exception):
    """Base exception for item store operations."""

    retryable = False

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class InvalidInputError(ItemStoreError):
    """Missing or empty required field, or a non-positive ttl/limit."""
    pass


class StoreUnavailableError(ItemStoreError):
    """The underlying key-value store failed or timed out. Safe to retry the whole operation."""

    retryable = True


class EmbeddingUnavailableError(ItemStoreError):
    """A remote embedding backend could not produce a vector.

    Only raised between a backend and the provider chain, which resolves it
    with the deterministic fallback.
    """

    retryable = True
