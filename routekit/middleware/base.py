"""Base class for pipeline middleware."""

from abc import ABC, abstractmethod
from typing import Any, Callable

from routekit.models.context import RequestContext

Next = Callable[[RequestContext], Any]


class Middleware(ABC):
    """A ``(context, next) -> result`` step in the request pipeline."""

    @abstractmethod
    def handle(self, context: RequestContext, call_next: Next) -> Any:
        """Process the request, calling ``call_next`` to continue the chain."""

    def __call__(self, context: RequestContext, call_next: Next) -> Any:
        return self.handle(context, call_next)
