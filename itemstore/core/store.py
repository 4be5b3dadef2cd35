"""
Key-value store contract used by the item store core, and an in-process implementation.

Records are flat string field maps with an optional time-to-live. Sets hold
string members. Expired records are invisible to every read.
"""

import threading
import time
from abc import ABC, abstractmethod
from contextlib import contextmanager
from typing import Callable, Dict, Iterator, List, Optional, Tuple


class IKeyValueStore(ABC):
    """Abstract interface for the underlying key-value store.

    Every method may raise StoreUnavailableError on transport failure.
    """

    @abstractmethod
    def put(self, key: str, fields: Dict[str, str], ttl_seconds: Optional[int] = None) -> None:
        """Write a record, replacing any existing one. ttl_seconds=None means no expiry."""
        pass

    @abstractmethod
    def put_if_absent(self, key: str, fields: Dict[str, str], ttl_seconds: Optional[int] = None) -> bool:
        """Atomically write a record only if the key does not exist. Returns True if written."""
        pass

    @abstractmethod
    def get(self, key: str) -> Optional[Dict[str, str]]:
        """Read a record, or None if absent or expired."""
        pass

    @abstractmethod
    def delete(self, key: str) -> int:
        """Delete a record. Returns the number of records removed (0 or 1)."""
        pass

    @abstractmethod
    def scan_prefix(self, prefix: str) -> List[str]:
        """List live record keys starting with prefix."""
        pass

    @abstractmethod
    def set_add(self, set_key: str, member: str) -> None:
        pass

    @abstractmethod
    def set_remove(self, set_key: str, member: str) -> int:
        pass

    @abstractmethod
    def set_members(self, set_key: str) -> List[str]:
        pass

    @abstractmethod
    def set_keys(self, prefix: str) -> List[str]:
        """List set keys starting with prefix."""
        pass

    @abstractmethod
    def ping(self) -> bool:
        """Connectivity check."""
        pass

    @abstractmethod
    def purge_expired(self) -> int:
        """Physically remove expired records. Returns the number removed."""
        pass

    @contextmanager
    def session(self) -> Iterator["IKeyValueStore"]:
        """Scope one logical operation. Backends holding connections release them on exit."""
        yield self


class InMemoryKeyValueStore(IKeyValueStore):
    """Thread-safe in-process store. Expiry is enforced on read.

    Scans and set listings are returned sorted so result order is stable.
    """

    def __init__(self, clock: Callable[[], float] = time.time):
        self._clock = clock
        self._lock = threading.Lock()
        self._records: Dict[str, Tuple[Dict[str, str], Optional[float]]] = {}
        self._sets: Dict[str, set] = {}

    def _expires_at(self, ttl_seconds: Optional[int]) -> Optional[float]:
        return self._clock() + ttl_seconds if ttl_seconds is not None else None

    def _live(self, key: str) -> Optional[Dict[str, str]]:
        # caller holds the lock
        entry = self._records.get(key)
        if entry is None:
            return None
        fields, expires_at = entry
        if expires_at is not None and expires_at <= self._clock():
            del self._records[key]
            return None
        return fields

    def put(self, key: str, fields: Dict[str, str], ttl_seconds: Optional[int] = None) -> None:
        with self._lock:
            self._records[key] = (dict(fields), self._expires_at(ttl_seconds))

    def put_if_absent(self, key: str, fields: Dict[str, str], ttl_seconds: Optional[int] = None) -> bool:
        with self._lock:
            if self._live(key) is not None:
                return False
            self._records[key] = (dict(fields), self._expires_at(ttl_seconds))
            return True

    def get(self, key: str) -> Optional[Dict[str, str]]:
        with self._lock:
            fields = self._live(key)
            return dict(fields) if fields is not None else None

    def delete(self, key: str) -> int:
        with self._lock:
            if self._live(key) is None:
                return 0
            del self._records[key]
            return 1

    def scan_prefix(self, prefix: str) -> List[str]:
        with self._lock:
            keys = [k for k in list(self._records) if k.startswith(prefix)]
            return sorted(k for k in keys if self._live(k) is not None)

    def set_add(self, set_key: str, member: str) -> None:
        with self._lock:
            self._sets.setdefault(set_key, set()).add(member)

    def set_remove(self, set_key: str, member: str) -> int:
        with self._lock:
            members = self._sets.get(set_key)
            if not members or member not in members:
                return 0
            members.discard(member)
            if not members:
                del self._sets[set_key]
            return 1

    def set_members(self, set_key: str) -> List[str]:
        with self._lock:
            return sorted(self._sets.get(set_key, ()))

    def set_keys(self, prefix: str) -> List[str]:
        with self._lock:
            return sorted(k for k in self._sets if k.startswith(prefix))

    def ping(self) -> bool:
        return True

    def purge_expired(self) -> int:
        with self._lock:
            before = len(self._records)
            for key in list(self._records):
                self._live(key)
            return before - len(self._records)
