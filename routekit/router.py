"""Route table builder and per-request dispatch orchestration."""

import logging
import re
from typing import Any, Callable, Dict, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict

from routekit.dispatchers import NullDispatcher
from routekit.exceptions import ConfigurationError
from routekit.models.context import RequestContext
from routekit.models.request import request_id_for
from routekit.models.response import Response
from routekit.models.route import Contract, RouteDefinition, RouteMeta, normalize_uri
from routekit.services.argument_resolver import ArgumentResolver, BoundHandler
from routekit.services.error_service import ErrorNormalizer, ResponseNormalizer
from routekit.services.host import HostAdapter
from routekit.services.pipeline import ComponentRegistry, Pipeline

logger = logging.getLogger(__name__)

HTTP_METHODS = ("GET", "POST", "PUT", "PATCH", "DELETE")

_NAMESPACE_PART = re.compile(r"^[A-Za-z0-9._-]+$")


def allow_all(request: Any) -> bool:
    return True


class RouteScope(BaseModel):
    """Prefix and middleware accumulated by enclosing groups."""

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    prefix: str = "/"
    middlewares: Tuple[Any, ...] = ()

    def child(self, prefix: str) -> "RouteScope":
        return self.model_copy(update={"prefix": normalize_uri(self.prefix + "/" + prefix.strip("/"))})

    def with_middlewares(self, middlewares: List[Any]) -> "RouteScope":
        return self.model_copy(update={"middlewares": self.middlewares + tuple(middlewares)})

    def uri(self, uri: str) -> str:
        return normalize_uri(self.prefix + "/" + uri.strip("/"))


class RouteBuilder:
    """Fluent configuration of one declared route."""

    def __init__(self, definition: RouteDefinition):
        self.definition = definition

    def middleware(self, middlewares: List[Any]) -> "RouteBuilder":
        self.definition = self.definition.with_middlewares(list(self.definition.middlewares) + list(middlewares))
        return self

    def args(self, args: Dict[str, Any]) -> "RouteBuilder":
        self.definition = self.definition.with_args(args)
        return self

    def meta(self, meta: Dict[str, Any]) -> "RouteBuilder":
        merged = dict(self.definition.meta)
        merged.update(meta)
        self.definition = self.definition.with_meta(merged)
        return self

    def permission(self, callback: Callable[[Any], bool]) -> "RouteBuilder":
        self.definition = self.definition.with_permission_callback(callback)
        return self


class RouteEndpoint:
    """Runs one route for an inbound request and returns the host's native value."""

    def __init__(
        self,
        route: RouteDefinition,
        handler: BoundHandler,
        pipeline: Pipeline,
        host: HostAdapter,
        errors: Optional[ErrorNormalizer] = None,
    ):
        self.route = route
        self.handler = handler
        self.pipeline = pipeline
        self.host = host
        self.errors = errors or ErrorNormalizer()
        self.responses = ResponseNormalizer(host, self.errors)

    def __call__(self, request: Any) -> Any:
        request_id = request_id_for(request)
        context = RequestContext(request_id=request_id, route_path=self.route.uri, request=request)

        try:
            result = self.pipeline.process(context, self._destination)
            normalized = self.responses.normalize(result, request_id)
        except Exception as exc:
            normalized = self.errors.normalize(exc, request_id)

        if isinstance(normalized, Response):
            return self.host.to_native(normalized)
        return normalized

    def _destination(self, context: RequestContext) -> Any:
        return self.handler(context, context.request)


class Router:
    """Declares versioned routes with grouped prefixes and middleware."""

    def __init__(self, vendor: str, version: str, registry: Optional[ComponentRegistry] = None):
        """Initialize router.

        Args:
            vendor: Namespace vendor segment(s), e.g. ``acme``
            version: Namespace version segment, e.g. ``v1``
            registry: Factories for middleware and handler classes
        """
        self.vendor = vendor.strip("/")
        self.version = version.strip("/")
        self.registry = registry
        self._scopes: List[RouteScope] = [RouteScope()]
        self._builders: List[RouteBuilder] = []

    @classmethod
    def make(cls, vendor: str, version: str, registry: Optional[ComponentRegistry] = None) -> "Router":
        return cls(vendor, version, registry)

    def base_namespace(self) -> str:
        return f"{self.vendor}/{self.version}"

    @property
    def scope(self) -> RouteScope:
        return self._scopes[-1]

    def middleware(self, middlewares: List[Any]) -> "Router":
        """Append middleware to the current scope (global at top level)."""
        self._scopes[-1] = self.scope.with_middlewares(list(middlewares))
        return self

    def group(self, prefix: str, callback: Callable[["Router"], Any]) -> "Router":
        self._scopes.append(self.scope.child(prefix))
        try:
            callback(self)
        finally:
            self._scopes.pop()
        return self

    def add(self, method: str, uri: str, handler: Any) -> RouteBuilder:
        method = method.upper()
        if method not in HTTP_METHODS:
            raise ConfigurationError(f"Unsupported HTTP method {method}.")

        path = self.scope.uri(uri)
        definition = RouteDefinition(
            method=method,
            uri=path,
            handler=handler,
            middlewares=self.scope.middlewares,
            meta=RouteMeta.normalize({}, method, path),
        )
        builder = RouteBuilder(definition)
        self._builders.append(builder)
        return builder

    def get(self, uri: str, handler: Any) -> RouteBuilder:
        return self.add("GET", uri, handler)

    def post(self, uri: str, handler: Any) -> RouteBuilder:
        return self.add("POST", uri, handler)

    def put(self, uri: str, handler: Any) -> RouteBuilder:
        return self.add("PUT", uri, handler)

    def patch(self, uri: str, handler: Any) -> RouteBuilder:
        return self.add("PATCH", uri, handler)

    def delete(self, uri: str, handler: Any) -> RouteBuilder:
        return self.add("DELETE", uri, handler)

    def routes(self) -> List[RouteDefinition]:
        return [builder.definition for builder in self._builders]

    def contracts(self, openapi_only: bool = False) -> List[Contract]:
        contracts = []
        for route in self.routes():
            if openapi_only and not route.meta.get("openapi", {}).get("include", True):
                continue
            contracts.append(
                Contract(
                    namespace=self.base_namespace(),
                    method=route.method,
                    path=route.uri,
                    args=route.args,
                    meta=route.meta,
                )
            )
        return contracts

    def register(self, dispatcher: Any = None) -> None:
        """Bind every route into the host through ``dispatcher``.

        Middleware and handlers are resolved here, so declaration errors
        surface before any request is served.
        """
        dispatcher = dispatcher if dispatcher is not None else NullDispatcher()
        validate_namespace(self.base_namespace())
        resolver = ArgumentResolver(self.registry)

        for route in self.routes():
            endpoint = RouteEndpoint(
                route=route,
                handler=resolver.resolve(route.handler),
                pipeline=Pipeline(route.middlewares, self.registry),
                host=dispatcher.host,
            )
            dispatcher.register(self.base_namespace(), route, endpoint, route.permission_callback or allow_all)
            logger.debug(f"Registered {route.method} /{self.base_namespace()}{route.uri}")


def validate_namespace(namespace: str) -> str:
    """Check a ``vendor[/...]/version`` namespace and return it trimmed."""
    parts = namespace.strip("/").split("/")
    if len(parts) < 2 or not all(_NAMESPACE_PART.match(part) for part in parts):
        raise ConfigurationError(f"Namespace {namespace!r} must look like vendor/version.")
    return "/".join(parts)
