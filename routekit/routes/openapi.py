"""Publishes the OpenAPI document as a route."""

import logging
from typing import Any, Callable, Dict, Iterable, List, Optional, Union

from pydantic import ValidationError

from routekit.exceptions import ConfigurationError
from routekit.models.route import Contract
from routekit.resource import Resource
from routekit.router import Router, allow_all, validate_namespace
from routekit.services.openapi_service import OpenApiExporter, merge_recursive

logger = logging.getLogger(__name__)

Source = Union[Router, Resource, Iterable[Any]]


def contracts_from_sources(sources: Iterable[Source], openapi_only: bool = True) -> List[Contract]:
    """Collect contracts from Routers, Resources or raw contract lists.

    Entries of a raw list that are not contract-shaped are skipped.
    """
    contracts: List[Contract] = []
    for source in sources:
        if isinstance(source, (Router, Resource)):
            contracts.extend(source.contracts(openapi_only))
            continue

        if isinstance(source, (str, bytes, dict)) or not isinstance(source, Iterable):
            raise ConfigurationError("OpenAPI sources must be a Router, a Resource or a contract list.")

        for item in source:
            if isinstance(item, Contract):
                contracts.append(item)
            elif isinstance(item, dict):
                try:
                    contracts.append(Contract.model_validate(item))
                except ValidationError:
                    logger.debug(f"Skipping non-contract entry: {item!r}")
    return contracts


def components_from_sources(sources: Iterable[Source]) -> Dict[str, Any]:
    components: Dict[str, Any] = {}
    for source in sources:
        if isinstance(source, Resource):
            components = merge_recursive(components, source.openapi_components())
    return components


def register_openapi_route(
    namespace: str,
    contracts_provider: Callable[[], Iterable[Any]],
    dispatcher: Any = None,
    exporter: Optional[OpenApiExporter] = None,
    permission: Optional[Callable[[Any], bool]] = None,
) -> Router:
    """Register ``GET /{namespace}/openapi.json``.

    Args:
        namespace: ``vendor[/...]/version`` namespace for the document route
        contracts_provider: Zero-argument callable returning contracts
        dispatcher: Host dispatcher
        exporter: Configured exporter (title, server URL, components)
        permission: Permission callback, allows everyone by default

    Returns:
        The Router carrying the document route
    """
    parts = validate_namespace(namespace).split("/")

    exporter = exporter or OpenApiExporter()

    def openapi_document() -> Dict[str, Any]:
        contracts = contracts_provider()
        if isinstance(contracts, (str, bytes, dict)) or not isinstance(contracts, Iterable):
            raise ConfigurationError("contracts_provider must return a list of contracts.")
        return exporter.export(contracts)

    router = Router.make("/".join(parts[:-1]), parts[-1])
    router.get("/openapi.json", openapi_document).meta(
        {
            "operationId": "openApiDocument",
            "tags": ["OpenApi"],
            "openapi": {"include": False},
        }
    ).permission(permission or allow_all)
    router.register(dispatcher)
    return router
