"""ASGI middleware for applications serving routekit routes."""

import logging
import time
import uuid
from typing import Callable, Tuple

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware

logger = logging.getLogger(__name__)

REQUEST_ID_HEADER = "X-Request-Id"


class RequestIdMiddleware(BaseHTTPMiddleware):
    """Ensures every request carries an X-Request-Id and echoes it on the response."""

    async def dispatch(self, request: Request, call_next: Callable):
        request_id = request.headers.get(REQUEST_ID_HEADER)
        if not request_id:
            request_id = "req_" + uuid.uuid4().hex
            # Downstream requests are rebuilt from the scope
            request.scope["headers"] = [
                *request.scope["headers"],
                (REQUEST_ID_HEADER.lower().encode("latin-1"), request_id.encode("latin-1")),
            ]
        request.state.request_id = request_id

        response = await call_next(request)
        response.headers[REQUEST_ID_HEADER] = request_id
        return response


def matched_route(request: Request) -> Tuple[str, str]:
    """Path template and operation id of the route that served the request.

    Only set once routing ran; unmatched requests report their raw path.
    """
    route = request.scope.get("route")
    template = getattr(route, "path", None) or request.url.path
    operation = getattr(route, "name", None) or "-"
    return template, operation


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Logs one line per request with the operation it was routed to."""

    async def dispatch(self, request: Request, call_next: Callable):
        started_at = time.perf_counter()
        request_id = getattr(request.state, "request_id", "unknown")

        response = await call_next(request)
        duration_ms = (time.perf_counter() - started_at) * 1000
        template, operation = matched_route(request)

        level = logging.WARNING if response.status_code >= 500 else logging.INFO
        logger.log(
            level,
            f"{request.method} {template} operation={operation} status={response.status_code} "
            f"duration={duration_ms:.2f}ms request_id={request_id}",
        )
        return response
