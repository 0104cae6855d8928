"""Handler shape resolution, decided once when a route is registered."""

import inspect
from enum import Enum
from typing import Any, Callable, Optional, get_type_hints

from routekit.exceptions import ConfigurationError
from routekit.models.context import RequestContext
from routekit.services.pipeline import ComponentRegistry, instantiate

SHAPE_ATTRIBUTE = "__routekit_shape__"


class HandlerShape(str, Enum):
    """Supported handler invocation shapes."""

    NONE = "none"
    CONTEXT = "context"
    REQUEST = "request"
    CONTEXT_AND_REQUEST = "context_and_request"


def handler_shape(shape: HandlerShape) -> Callable[[Callable[..., Any]], Callable[..., Any]]:
    """Tag a handler with an explicit shape, skipping signature analysis."""

    def decorator(func: Callable[..., Any]) -> Callable[..., Any]:
        setattr(func, SHAPE_ATTRIBUTE, shape)
        return func

    return decorator


class BoundHandler:
    """A callable handler paired with its invocation shape."""

    def __init__(self, func: Callable[..., Any], shape: HandlerShape):
        self.func = func
        self.shape = shape

    def __call__(self, context: RequestContext, request: Any) -> Any:
        if self.shape is HandlerShape.NONE:
            return self.func()
        if self.shape is HandlerShape.CONTEXT:
            return self.func(context)
        if self.shape is HandlerShape.REQUEST:
            return self.func(request)
        return self.func(context, request)

    def __repr__(self) -> str:
        return f"BoundHandler({getattr(self.func, '__qualname__', self.func)!r}, {self.shape.value})"


class ArgumentResolver:
    """Resolves handlers (callables or ``(class, method)`` pairs) into BoundHandlers."""

    def __init__(self, registry: Optional[ComponentRegistry] = None):
        self.registry = registry

    def resolve(self, handler: Any) -> BoundHandler:
        if isinstance(handler, BoundHandler):
            return handler

        func = self._callable(handler)
        shape = getattr(func, SHAPE_ATTRIBUTE, None)
        if not isinstance(shape, HandlerShape):
            shape = self.shape_of(func)
        return BoundHandler(func, shape)

    def _callable(self, handler: Any) -> Callable[..., Any]:
        if isinstance(handler, (tuple, list)) and len(handler) == 2 and isinstance(handler[1], str):
            target, method_name = handler
            if inspect.isclass(target):
                target = instantiate(target, self.registry)
            method = getattr(target, method_name, None)
            if not callable(method):
                raise ConfigurationError(
                    f"Handler method {type(target).__qualname__}.{method_name} is not callable."
                )
            return method

        if callable(handler):
            return handler

        raise ConfigurationError(f"Handler {handler!r} cannot be resolved to a callable.")

    @staticmethod
    def shape_of(func: Callable[..., Any]) -> HandlerShape:
        try:
            signature = inspect.signature(func)
        except (TypeError, ValueError) as exc:
            raise ConfigurationError(f"Cannot inspect handler {func!r}.") from exc

        params = [
            param
            for param in signature.parameters.values()
            if param.kind in (param.POSITIONAL_ONLY, param.POSITIONAL_OR_KEYWORD, param.VAR_POSITIONAL)
        ]
        if not params:
            return HandlerShape.NONE
        if len(params) >= 2 or params[0].kind is inspect.Parameter.VAR_POSITIONAL:
            return HandlerShape.CONTEXT_AND_REQUEST

        first = params[0]
        try:
            annotation = get_type_hints(func).get(first.name, first.annotation)
        except (NameError, TypeError):
            annotation = first.annotation

        if annotation == "RequestContext" or (
            inspect.isclass(annotation) and issubclass(annotation, RequestContext)
        ):
            return HandlerShape.CONTEXT
        return HandlerShape.REQUEST
