"""Response caching middleware for GET routes."""

import hashlib
import json
from typing import Any, Optional, Protocol

from routekit.config import settings
from routekit.middleware.base import Middleware, Next
from routekit.models.context import RequestContext
from routekit.models.request import request_method, request_params
from routekit.services.stores import TransientCacheStore


class CacheStore(Protocol):
    def get(self, key: str) -> Any: ...

    def set(self, key: str, value: Any, ttl_seconds: int) -> None: ...


def cache_key(route_path: str, params: dict) -> str:
    encoded = json.dumps(params, sort_keys=True, default=str, separators=(",", ":"))
    return hashlib.sha1(f"{route_path}|{encoded}".encode("utf-8")).hexdigest()


class CachingMiddleware(Middleware):
    """Returns the cached result of a GET route when present, else stores it."""

    def __init__(self, store: Optional[CacheStore] = None, ttl_seconds: Optional[int] = None):
        self.store = store if store is not None else TransientCacheStore()
        self.ttl_seconds = ttl_seconds if ttl_seconds is not None else settings.CACHE_TTL_SECONDS

    def handle(self, context: RequestContext, call_next: Next) -> Any:
        if request_method(context.request) != "GET":
            return call_next(context)

        key = cache_key(context.route_path, request_params(context.request))
        cached = self.store.get(key)
        if cached is not None:
            return cached

        result = call_next(context)
        self.store.set(key, result, self.ttl_seconds)
        return result
