"""Pydantic models for routekit."""

from routekit.models.context import AuthIdentity, RateLimitResult, RequestContext, with_identity
from routekit.models.query import CptListQuery, ListQuery, TableListQuery
from routekit.models.request import HttpRequest, RestRequest
from routekit.models.response import ErrorCode, ErrorDetail, ErrorResponse, HealthResponse, Response
from routekit.models.route import Contract, RouteDefinition, RouteMeta

__all__ = [
    "AuthIdentity",
    "Contract",
    "CptListQuery",
    "ErrorCode",
    "ErrorDetail",
    "ErrorResponse",
    "HealthResponse",
    "HttpRequest",
    "ListQuery",
    "RateLimitResult",
    "RequestContext",
    "Response",
    "RestRequest",
    "RouteDefinition",
    "RouteMeta",
    "TableListQuery",
    "with_identity",
]
