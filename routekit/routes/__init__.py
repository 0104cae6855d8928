"""FastAPI-level routes and the OpenAPI document route."""

from routekit.routes.health import router as health_router
from routekit.routes.openapi import components_from_sources, contracts_from_sources, register_openapi_route

__all__ = [
    "components_from_sources",
    "contracts_from_sources",
    "health_router",
    "register_openapi_route",
]
