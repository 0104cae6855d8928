"""Key-value stores backing caching, idempotency and rate limiting."""

import hashlib
import logging
import threading
import time
from typing import Any, Callable, Dict, Optional, Protocol, Tuple

from routekit.config import settings

logger = logging.getLogger(__name__)


class KeyValueStore(Protocol):
    def get(self, key: str) -> Any: ...

    def set(self, key: str, value: Any, ttl_seconds: int) -> None: ...


class MemoryStore:
    """Thread-safe in-process store with per-key expiry."""

    def __init__(self, clock: Optional[Callable[[], float]] = None):
        self.clock = clock or time.time
        # key -> (value, expires_at)
        self._storage: Dict[str, Tuple[Any, float]] = {}
        self._lock = threading.RLock()

    @property
    def lock(self) -> threading.RLock:
        """Lock to hold around read-modify-write sequences."""
        return self._lock

    def get(self, key: str) -> Any:
        with self._lock:
            entry = self._storage.get(key)
            if entry is None:
                return None
            value, expires_at = entry
            if expires_at <= self.clock():
                del self._storage[key]
                return None
            return value

    def set(self, key: str, value: Any, ttl_seconds: int) -> None:
        with self._lock:
            self._storage[key] = (value, self.clock() + max(1, int(ttl_seconds)))

    def delete(self, key: str) -> None:
        with self._lock:
            self._storage.pop(key, None)

    def cleanup_expired(self) -> int:
        """Drop expired entries and return how many were removed."""
        with self._lock:
            now = self.clock()
            expired = [key for key, (_, expires_at) in self._storage.items() if expires_at <= now]
            for key in expired:
                del self._storage[key]

        if expired:
            logger.info(f"Cleaned up {len(expired)} expired store entries")
        return len(expired)


def hashed_key(prefix: str, kind: str, key: str) -> str:
    return f"{prefix}_{kind}_{hashlib.sha1(key.encode('utf-8')).hexdigest()}"


class TransientCacheStore:
    """Response cache on top of a key-value store."""

    def __init__(self, store: Optional[KeyValueStore] = None, prefix: Optional[str] = None):
        self.store = store if store is not None else MemoryStore()
        self.prefix = prefix or settings.STORE_PREFIX

    def get(self, key: str) -> Any:
        return self.store.get(hashed_key(self.prefix, "cache", key))

    def set(self, key: str, value: Any, ttl_seconds: int) -> None:
        self.store.set(hashed_key(self.prefix, "cache", key), value, ttl_seconds)


class TransientIdempotencyStore:
    """Idempotency records (fingerprint plus response) on top of a key-value store."""

    def __init__(self, store: Optional[KeyValueStore] = None, prefix: Optional[str] = None):
        self.store = store if store is not None else MemoryStore()
        self.prefix = prefix or settings.STORE_PREFIX

    def get(self, key: str) -> Optional[Dict[str, Any]]:
        value = self.store.get(hashed_key(self.prefix, "idem", key))
        return value if isinstance(value, dict) else None

    def set(self, key: str, value: Dict[str, Any], ttl_seconds: int) -> None:
        self.store.set(hashed_key(self.prefix, "idem", key), value, ttl_seconds)
