"""Write-safety middleware: idempotency keys and optimistic locking."""

import hashlib
import json
import logging
from typing import Any, Callable, Iterable, Optional, Protocol

from routekit.config import settings
from routekit.exceptions import ApiException, ConflictException, PreconditionFailedException
from routekit.middleware.base import Middleware, Next
from routekit.models.context import RequestContext
from routekit.models.request import (
    request_body_params,
    request_header,
    request_json_params,
    request_method,
    request_param,
    request_params,
)
from routekit.models.response import ErrorCode, Response
from routekit.services.stores import TransientIdempotencyStore

logger = logging.getLogger(__name__)


class IdempotencyStore(Protocol):
    def get(self, key: str) -> Optional[dict]: ...

    def set(self, key: str, value: dict, ttl_seconds: int) -> None: ...


def request_fingerprint(context: RequestContext, method: str) -> str:
    payload = {
        "route": context.route_path,
        "method": method,
        "params": {
            "body": request_body_params(context.request),
            "json": request_json_params(context.request),
            "params": request_params(context.request),
        },
    }
    encoded = json.dumps(payload, sort_keys=True, default=str, separators=(",", ":"))
    return hashlib.sha1(encoded.encode("utf-8")).hexdigest()


class IdempotencyMiddleware(Middleware):
    """Replays the stored response for a repeated ``Idempotency-Key``."""

    def __init__(
        self,
        store: Optional[IdempotencyStore] = None,
        ttl_seconds: Optional[int] = None,
        require_key: bool = False,
        methods: Iterable[str] = ("POST",),
    ):
        self.store = store if store is not None else TransientIdempotencyStore()
        self.ttl_seconds = ttl_seconds if ttl_seconds is not None else settings.IDEMPOTENCY_TTL_SECONDS
        self.require_key = require_key
        self.methods = {method.upper() for method in methods}

    def handle(self, context: RequestContext, call_next: Next) -> Any:
        method = request_method(context.request)
        if method not in self.methods:
            return call_next(context)

        key = request_header(context.request, "idempotency-key")
        if key == "":
            if self.require_key:
                raise ApiException(
                    "Idempotency-Key header is required.",
                    400,
                    ErrorCode.IDEMPOTENCY_KEY_REQUIRED.value,
                )
            return call_next(context)

        store_key = f"{context.route_path}|{key}"
        fingerprint = request_fingerprint(context, method)
        stored = self.store.get(store_key)

        if stored is not None:
            if stored.get("fingerprint") != fingerprint:
                raise ConflictException(
                    "Idempotency key was reused with a different payload.",
                    ErrorCode.IDEMPOTENCY_CONFLICT.value,
                    {"key": key},
                )
            logger.info(f"Replaying idempotent response key={key} request_id={context.request_id}")
            return self._replay(stored.get("response"))

        response = call_next(context)
        self.store.set(store_key, {"fingerprint": fingerprint, "response": response}, self.ttl_seconds)
        return response

    @staticmethod
    def _replay(response: Any) -> Any:
        if isinstance(response, Response):
            return response.with_headers({"Idempotency-Replayed": "true"})
        return Response(body=response, status=200, headers={"Idempotency-Replayed": "true"})


def normalize_version(value: Any) -> Optional[str]:
    """Normalize an ``If-Match`` value or version param; ``None`` when absent."""
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, (int, float)):
        return str(value)
    if not isinstance(value, str):
        return None

    version = value.strip()
    if version == "*":
        return version
    if version.startswith("W/"):
        version = version[2:].strip()
    version = version.strip('"')
    return version or None


class OptimisticLockMiddleware(Middleware):
    """Rejects writes whose expected version does not match the current one."""

    def __init__(
        self,
        version_resolver: Callable[[RequestContext], Any],
        required: bool = True,
        header: str = "if-match",
        param: str = "version",
    ):
        self.version_resolver = version_resolver
        self.required = required
        self.header = header
        self.param = param

    def handle(self, context: RequestContext, call_next: Next) -> Any:
        expected = normalize_version(request_header(context.request, self.header))
        if expected is None:
            expected = normalize_version(request_param(context.request, self.param))

        if expected is None:
            if self.required:
                raise PreconditionFailedException(
                    "A version precondition is required.", ErrorCode.PRECONDITION_REQUIRED.value
                )
            return call_next(context)

        current = normalize_version(self.version_resolver(context))
        if current is None:
            raise ConflictException(
                "Current version is unavailable.", ErrorCode.VERSION_UNAVAILABLE.value
            )

        if expected != "*" and expected != current:
            raise PreconditionFailedException(
                "Resource version mismatch.",
                ErrorCode.OPTIMISTIC_LOCK_FAILED.value,
                {"expected": expected, "current": current},
            )

        return call_next(context.with_attribute("optimisticLock", {"expected": expected, "current": current}))
