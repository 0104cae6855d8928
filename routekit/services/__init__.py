"""Core services for routekit."""

from routekit.services.argument_resolver import ArgumentResolver, HandlerShape, handler_shape
from routekit.services.audit_service import AuditEventFactory, InMemoryAuditLogger, LoggingAuditLogger
from routekit.services.error_service import ErrorNormalizer, ResponseNormalizer
from routekit.services.host import HostError, HostResponse, PlainHost, StarletteHost
from routekit.services.jwt_service import ClaimsUserMapper, Hs256JwtVerifier, JwtBearerTokenVerifier
from routekit.services.metrics_service import InMemoryMetricSink, PrometheusMetricSink
from routekit.services.openapi_service import OpenApiExporter
from routekit.services.pipeline import ComponentRegistry, FactoryKey, Pipeline
from routekit.services.query_parser import CptListQueryParser, TableListQueryParser
from routekit.services.rate_limit_service import TransientRateLimiter
from routekit.services.stores import MemoryStore, TransientCacheStore, TransientIdempotencyStore

__all__ = [
    "ArgumentResolver",
    "AuditEventFactory",
    "ClaimsUserMapper",
    "ComponentRegistry",
    "CptListQueryParser",
    "ErrorNormalizer",
    "FactoryKey",
    "HandlerShape",
    "HostError",
    "HostResponse",
    "Hs256JwtVerifier",
    "InMemoryAuditLogger",
    "InMemoryMetricSink",
    "JwtBearerTokenVerifier",
    "LoggingAuditLogger",
    "MemoryStore",
    "OpenApiExporter",
    "Pipeline",
    "PlainHost",
    "PrometheusMetricSink",
    "ResponseNormalizer",
    "StarletteHost",
    "TableListQueryParser",
    "TransientCacheStore",
    "TransientIdempotencyStore",
    "TransientRateLimiter",
    "handler_shape",
]
