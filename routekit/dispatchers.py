"""Dispatchers bind declared routes into a host routing table."""

import json
import logging
import re
from typing import Any, Callable, Dict, List, Optional, Protocol
from urllib.parse import parse_qsl

from fastapi import FastAPI, Request
from starlette.concurrency import run_in_threadpool
from starlette.responses import Response as StarletteResponse

from routekit.exceptions import ApiException, ConfigurationError
from routekit.models.request import HttpRequest, request_id_for
from routekit.models.response import ErrorCode, Response
from routekit.models.route import RouteDefinition
from routekit.services.error_service import ErrorNormalizer
from routekit.services.host import HostAdapter, PlainHost, StarletteHost

logger = logging.getLogger(__name__)

MOUNTED_ROUTES_STATE = "routekit_routes"

_REGEX_GROUP = re.compile(r"\(\?P<([a-zA-Z0-9_]+)>[^)]+\)")

Callback = Callable[[Any], Any]
PermissionCallback = Callable[[Any], bool]


class Dispatcher(Protocol):
    host: HostAdapter

    def register(
        self,
        namespace: str,
        route: RouteDefinition,
        callback: Callback,
        permission_callback: PermissionCallback,
    ) -> None: ...


class NullDispatcher:
    """Used when no host routing table is available; registering fails loudly."""

    host = PlainHost()

    def register(
        self,
        namespace: str,
        route: RouteDefinition,
        callback: Callback,
        permission_callback: PermissionCallback,
    ) -> None:
        raise ConfigurationError(
            f"Cannot register {route.method} /{namespace}{route.uri}: no host dispatcher is configured."
        )


class CollectingDispatcher:
    """Keeps registrations in a list, returning plain ``{status, body, headers}`` dicts."""

    def __init__(self, host: Optional[HostAdapter] = None):
        self.host = host or PlainHost()
        self.registrations: List[Dict[str, Any]] = []

    def register(
        self,
        namespace: str,
        route: RouteDefinition,
        callback: Callback,
        permission_callback: PermissionCallback,
    ) -> None:
        self.registrations.append(
            {
                "namespace": namespace,
                "route": route,
                "callback": callback,
                "permission_callback": permission_callback,
            }
        )

    def find(self, method: str, uri: str) -> Dict[str, Any]:
        for registration in self.registrations:
            route = registration["route"]
            if route.method == method.upper() and route.uri == uri:
                return registration
        raise KeyError(f"{method.upper()} {uri}")


def fastapi_path(prefix: str, namespace: str, uri: str) -> str:
    """``/{prefix}/{namespace}{uri}`` with regex groups turned into ``{name}``."""
    path = _REGEX_GROUP.sub(r"{\1}", uri)
    base = "/".join(part.strip("/") for part in (prefix, namespace) if part.strip("/"))
    return "/" + base + ("" if path == "/" else path)


async def build_http_request(request: Request) -> HttpRequest:
    """Parse a Starlette request into an HttpRequest.

    Raises:
        ApiException: 400 ``invalid_request`` when the JSON body is malformed
            or a form body is not UTF-8
    """
    raw = await request.body()
    content_type = request.headers.get("content-type", "").split(";")[0].strip().lower()
    json_body = None
    form: Dict[str, Any] = {}

    if raw and content_type.endswith("json"):
        try:
            decoded = json.loads(raw)
        except ValueError as exc:
            raise ApiException("Malformed JSON body.", 400, ErrorCode.INVALID_REQUEST.value) from exc
        if isinstance(decoded, dict):
            json_body = decoded
    elif raw and content_type == "application/x-www-form-urlencoded":
        try:
            text = raw.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise ApiException("Form body is not valid UTF-8.", 400, ErrorCode.INVALID_REQUEST.value) from exc
        form = dict(parse_qsl(text, keep_blank_values=True))

    return HttpRequest(
        method=request.method,
        path=request.url.path,
        headers=dict(request.headers),
        query=dict(request.query_params),
        path_params=dict(request.path_params),
        json_body=json_body,
        form=form,
    )


class FastAPIDispatcher:
    """Binds routes into a FastAPI application."""

    def __init__(self, app: FastAPI, prefix: str = "", errors: Optional[ErrorNormalizer] = None):
        """Initialize dispatcher.

        Args:
            app: FastAPI application receiving the routes
            prefix: Path prefix placed before every namespace, e.g. ``/api``
            errors: Error normalizer for failures raised before the pipeline runs
        """
        self.app = app
        self.prefix = prefix
        self.host = StarletteHost()
        self.errors = errors or ErrorNormalizer()
        if not hasattr(app.state, MOUNTED_ROUTES_STATE):
            setattr(app.state, MOUNTED_ROUTES_STATE, [])

    def register(
        self,
        namespace: str,
        route: RouteDefinition,
        callback: Callback,
        permission_callback: PermissionCallback,
    ) -> None:
        path = fastapi_path(self.prefix, namespace, route.uri)

        async def endpoint(request: Request) -> StarletteResponse:
            try:
                http_request = await build_http_request(request)
                allowed = await run_in_threadpool(permission_callback, http_request)
            except Exception as exc:
                return self.host.to_native(self.errors.normalize(exc, request_id_for(request_headers(request))))

            if not allowed:
                logger.info(f"Permission denied: {route.method} {path}")
                return self.host.to_native(
                    Response.error(
                        ErrorCode.FORBIDDEN,
                        "Sorry, you are not allowed to do that.",
                        403,
                        request_id=request_id_for(http_request),
                    )
                )
            return await run_in_threadpool(callback, http_request)

        self.app.add_api_route(
            path,
            endpoint,
            methods=[route.method],
            name=route.meta.get("operationId"),
            include_in_schema=False,
        )
        getattr(self.app.state, MOUNTED_ROUTES_STATE).append(f"{route.method} {path}")
        logger.info(f"Mounted {route.method} {path}")


def request_headers(request: Request) -> HttpRequest:
    return HttpRequest(method=request.method, headers=dict(request.headers))
