"""
Item lifecycle: creation with expiry, retrieval, deletion and set membership.
"""

import secrets
import string
import time
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional

from .config import DEFAULT_TTL_SEC
from .errors import InvalidInputError, StoreUnavailableError
from .schema import (
    ALL_ITEMS_SET,
    ITEM_KEY_PREFIX,
    DeletedItem,
    Item,
    category_set_key,
    normalize_category,
)
from .store import IKeyValueStore
from ..util.logging import logger
from ..vector.embeddings import EmbeddingProvider

_ID_ALPHABET = string.digits + string.ascii_lowercase


def generate_item_id() -> str:
    """item:<epoch millis>:<9 random base-36 chars>"""
    suffix = "".join(secrets.choice(_ID_ALPHABET) for _ in range(9))
    return f"{ITEM_KEY_PREFIX}{int(time.time() * 1000)}:{suffix}"


def require_text(value: Optional[str], name: str) -> str:
    if value is None or not str(value).strip():
        raise InvalidInputError(f"{name} is required and cannot be empty")
    return value


def require_positive_int(value, name: str) -> int:
    # bool is an int subclass but never a valid count
    if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
        raise InvalidInputError(f"{name} must be a positive integer, got {value!r}")
    return value


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ItemStore:
    """Creates, reads and deletes items in a key-value store.

    Holds no mutable state of its own; every call is independent and runs
    inside one store session.
    """

    def __init__(self, store: IKeyValueStore, embedder: EmbeddingProvider,
                 default_ttl: int = DEFAULT_TTL_SEC, clock: Callable[[], datetime] = _utcnow):
        self.store = store
        self.embedder = embedder
        self.default_ttl = default_ttl
        self._clock = clock

    def add_item(self, title: str, content: str, category: Optional[str] = None,
                 ttl_seconds: Optional[int] = None) -> Item:
        """
        Create an item with embeddings and an expiry.

        Args:
            title: Non-empty title
            content: Non-empty content
            category: Free-form tag, "General" when omitted or blank
            ttl_seconds: Lifetime in seconds, defaults to 86400

        Returns:
            The stored Item, with used_fallback set when any embedding came from the fallback

        Raises:
            InvalidInputError: empty title/content or non-positive ttl
            StoreUnavailableError: the store failed; nothing of the item is left behind
        """
        title = require_text(title, "title")
        content = require_text(content, "content")
        category = normalize_category(category)
        ttl = require_positive_int(self.default_ttl if ttl_seconds is None else ttl_seconds, "ttl_seconds")

        title_result = self.embedder.embed(title)
        content_result = self.embedder.embed(content)
        combined_result = self.embedder.embed(f"{title} {content}")

        used_fallback = any(r.used_fallback for r in (title_result, content_result, combined_result))

        now = self._clock()
        item = Item(
            id=generate_item_id(),
            title=title,
            content=content,
            category=category,
            created_at=now,
            updated_at=now,
            expires_at=now + timedelta(seconds=ttl),
            title_embedding=title_result.vector,
            content_embedding=content_result.vector,
            combined_embedding=combined_result.vector,
            used_fallback=used_fallback,
        )

        with self.store.session() as store:
            store.put(item.id, item.to_fields(), ttl)
            try:
                store.set_add(ALL_ITEMS_SET, item.id)
                store.set_add(category_set_key(category), item.id)
            except StoreUnavailableError:
                self._discard(store, item)
                raise

        if used_fallback:
            logger.log_item_operation("added", item.id, {"embedding": "fallback"}, status="degraded")
        logger.log_item_operation("added", item.id, {
            "category": category,
            "ttl_seconds": ttl,
            "embedding_provider": combined_result.provider,
            "used_fallback": used_fallback,
        })
        return item

    def _discard(self, store: IKeyValueStore, item: Item) -> None:
        """Undo a partially written item after a failed add."""
        for undo in (
            lambda: store.delete(item.id),
            lambda: store.set_remove(ALL_ITEMS_SET, item.id),
            lambda: store.set_remove(category_set_key(item.category), item.id),
        ):
            try:
                undo()
            except StoreUnavailableError as e:
                logger.log_item_operation("add_rollback", item.id, {"error": str(e)}, status="failed")

    def get_item(self, item_id: str) -> Optional[Item]:
        """Look up an item by id. Returns None if it does not exist or has expired."""
        item_id = require_text(item_id, "id").strip()
        if not item_id.startswith(ITEM_KEY_PREFIX):
            return None

        with self.store.session() as store:
            fields = store.get(item_id)

        if fields is None:
            return None
        return Item.from_fields(fields, key=item_id)

    def delete_item(self, item_id: str) -> Optional[DeletedItem]:
        """
        Delete an item and, best-effort, its set memberships.

        Returns a snapshot of the deleted item, or None if it was not found.
        """
        item_id = require_text(item_id, "id").strip()
        if not item_id.startswith(ITEM_KEY_PREFIX):
            return None

        with self.store.session() as store:
            fields = store.get(item_id)
            if fields is None:
                return None

            item = Item.from_fields(fields, key=item_id)
            if store.delete(item_id) == 0:
                # expired or deleted by someone else between the read and the delete
                return None

            try:
                store.set_remove(ALL_ITEMS_SET, item_id)
                store.set_remove(category_set_key(item.category), item_id)
            except Exception as e:
                logger.log_item_operation("index_cleanup", item_id, {"error": str(e)}, status="failed")

        logger.log_item_operation("deleted", item_id, {"category": item.category})
        return DeletedItem(id=item.id, title=item.title, content=item.content, category=item.category)
