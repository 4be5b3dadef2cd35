"""
Logical search index marker.

The store needs no schema, so "creating the index" is a connectivity check
plus an atomically written marker record. It gives callers a stable
readiness signal.
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Dict, Optional

from .errors import StoreUnavailableError
from .schema import EMBEDDING_FIELDS, ITEM_KEY_PREFIX
from .store import IKeyValueStore
from ..util.logging import logger

ITEMS_INDEX_KEY = "idx:items"


@dataclass
class IndexStatus:
    name: str
    created: bool


def _index_description(dimension: int) -> Dict[str, str]:
    return {
        "name": ITEMS_INDEX_KEY,
        "prefix": ITEM_KEY_PREFIX,
        "textFields": "title,content",
        "tagFields": "category",
        "dateFields": "createdAt,updatedAt,expiresAt",
        "vectorFields": ",".join(EMBEDDING_FIELDS.values()),
        "dimension": str(dimension),
        "distanceMetric": "COSINE",
        "algorithm": "FLAT",
        "createdAt": datetime.now(timezone.utc).isoformat(),
    }


class IndexLifecycleManager:
    def __init__(self, store: IKeyValueStore, dimension: int = 768):
        self.store = store
        self.dimension = dimension

    def ensure_index_exists(self) -> IndexStatus:
        """Create the index marker if missing. Idempotent and safe to call concurrently."""
        with self.store.session() as store:
            if not store.ping():
                raise StoreUnavailableError("Store connection check failed")
            created = store.put_if_absent(ITEMS_INDEX_KEY, _index_description(self.dimension))

        if created:
            logger.log_index_operation("created", ITEMS_INDEX_KEY, details={"dimension": self.dimension})
        else:
            logger.log_index_operation("exists", ITEMS_INDEX_KEY, status="noop")
        return IndexStatus(name=ITEMS_INDEX_KEY, created=created)

    def index_exists(self) -> bool:
        with self.store.session() as store:
            return store.get(ITEMS_INDEX_KEY) is not None

    def index_info(self) -> Optional[Dict[str, str]]:
        """The marker's description fields, or None if the index was never created."""
        with self.store.session() as store:
            return store.get(ITEMS_INDEX_KEY)
