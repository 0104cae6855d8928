"""Declarative REST routes with a composable middleware pipeline."""

from routekit.dispatchers import CollectingDispatcher, FastAPIDispatcher, NullDispatcher
from routekit.exceptions import ApiException, ConfigurationError, ConflictException, PreconditionFailedException
from routekit.models import RequestContext, Response
from routekit.resource import Resource
from routekit.router import Router

__all__ = [
    "ApiException",
    "CollectingDispatcher",
    "ConfigurationError",
    "ConflictException",
    "FastAPIDispatcher",
    "NullDispatcher",
    "PreconditionFailedException",
    "RequestContext",
    "Resource",
    "Response",
    "Router",
]
