"""Middleware pipeline: a right-to-left fold of middleware around a destination."""

import inspect
import logging
from typing import Any, Callable, Dict, List, Optional, Sequence, Union

from pydantic import BaseModel, ConfigDict

from routekit.exceptions import ConfigurationError
from routekit.models.context import RequestContext

logger = logging.getLogger(__name__)

Next = Callable[[RequestContext], Any]
MiddlewareCallable = Callable[[RequestContext, Next], Any]


class FactoryKey(BaseModel):
    """Reference to a component built by a ComponentRegistry factory."""

    model_config = ConfigDict(frozen=True)

    key: str


class ComponentRegistry:
    """Explicit registry of factories for middleware and handler classes."""

    def __init__(self):
        self._factories: Dict[Any, Callable[[], Any]] = {}

    def register(self, key: Union[str, type], factory: Callable[[], Any]) -> "ComponentRegistry":
        self._factories[key] = factory
        return self

    def has(self, key: Union[str, type]) -> bool:
        return key in self._factories

    def create(self, key: Union[str, type]) -> Any:
        factory = self._factories.get(key)
        if factory is None:
            raise ConfigurationError(f"No factory registered for {_describe(key)}.")
        return factory()


def _describe(component: Any) -> str:
    if isinstance(component, FactoryKey):
        return repr(component.key)
    if inspect.isclass(component):
        return component.__qualname__
    return repr(component)


def _required_init_params(cls: type) -> List[str]:
    try:
        signature = inspect.signature(cls)
    except (TypeError, ValueError):
        return []
    return [
        name
        for name, param in signature.parameters.items()
        if param.default is inspect.Parameter.empty
        and param.kind in (param.POSITIONAL_ONLY, param.POSITIONAL_OR_KEYWORD, param.KEYWORD_ONLY)
    ]


def instantiate(component: Any, registry: Optional[ComponentRegistry] = None) -> Any:
    """Build a component from a FactoryKey, registry key or class.

    Classes with mandatory constructor parameters must have a registered
    factory.
    """
    if isinstance(component, FactoryKey):
        component = component.key

    if isinstance(component, str):
        if registry is None:
            raise ConfigurationError(f"Cannot resolve {component!r} without a component registry.")
        return registry.create(component)

    if registry is not None and registry.has(component):
        return registry.create(component)

    required = _required_init_params(component)
    if required:
        raise ConfigurationError(
            f"{component.__qualname__} requires constructor arguments "
            f"({', '.join(required)}); register a factory for it."
        )
    return component()


class Pipeline:
    """Builds the nested middleware chain and executes it.

    The first middleware runs first and holds the outermost position: it may
    short-circuit, replace the context passed downstream, catch downstream
    errors or post-process the result.
    """

    def __init__(self, middlewares: Sequence[Any] = (), registry: Optional[ComponentRegistry] = None):
        self.registry = registry
        self.middlewares: List[MiddlewareCallable] = [self.resolve(item) for item in middlewares]

    def resolve(self, middleware: Any) -> MiddlewareCallable:
        if isinstance(middleware, (FactoryKey, str)) or inspect.isclass(middleware):
            middleware = instantiate(middleware, self.registry)

        if not callable(middleware):
            raise ConfigurationError(f"Middleware {_describe(middleware)} is not callable.")
        return middleware

    def build(self, destination: Next) -> Next:
        chain = destination
        for middleware in reversed(self.middlewares):
            chain = self._wrap(middleware, chain)
        return chain

    def process(self, context: RequestContext, destination: Next) -> Any:
        return self.build(destination)(context)

    @staticmethod
    def _wrap(middleware: MiddlewareCallable, next_handler: Next) -> Next:
        def step(context: RequestContext) -> Any:
            return middleware(context, next_handler)

        return step
