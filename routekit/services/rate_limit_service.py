"""Fixed-window rate limiting over a key-value store."""

import contextlib
import logging
import time
from typing import Callable, Optional, Protocol

from routekit.config import settings
from routekit.models.context import RateLimitResult
from routekit.services.stores import KeyValueStore, MemoryStore, hashed_key

logger = logging.getLogger(__name__)


class RateLimiter(Protocol):
    def hit(self, key: str, limit: int, window_seconds: int) -> RateLimitResult: ...


class TransientRateLimiter:
    """Fixed-window counter stored as ``{count, resetAt}`` per hashed key."""

    def __init__(
        self,
        store: Optional[KeyValueStore] = None,
        prefix: Optional[str] = None,
        clock: Optional[Callable[[], float]] = None,
    ):
        """Initialize rate limiter.

        Args:
            store: Backing key-value store (default: a private MemoryStore)
            prefix: Store key prefix
            clock: Returns the current epoch seconds
        """
        self.store = store if store is not None else MemoryStore(clock=clock)
        self.prefix = prefix or settings.STORE_PREFIX
        self.clock = clock or time.time

    def hit(self, key: str, limit: int, window_seconds: int) -> RateLimitResult:
        """Count one request against ``key``.

        Args:
            key: Rate limit key
            limit: Maximum requests per window
            window_seconds: Window length

        Returns:
            RateLimitResult for this hit
        """
        store_key = hashed_key(self.prefix, "rl", key)
        lock = getattr(self.store, "lock", None)

        with lock if lock is not None else contextlib.nullcontext():
            now = int(self.clock())
            state = self.store.get(store_key)

            if isinstance(state, dict) and int(state.get("resetAt", 0)) > now:
                count = int(state.get("count", 0))
                reset_at = int(state["resetAt"])
            else:
                count = 0
                reset_at = now + max(1, int(window_seconds))

            count += 1
            self.store.set(store_key, {"count": count, "resetAt": reset_at}, max(reset_at - now, 1))

        allowed = count <= limit
        if not allowed:
            logger.warning(f"Rate limit exceeded: key={key} limit={limit}")
        return RateLimitResult(allowed=allowed, remaining=max(limit - count, 0), reset_at=reset_at)
