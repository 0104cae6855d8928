"""Built-in pipeline middleware."""

from routekit.middleware.auth import (
    ApplicationPasswordAuthMiddleware,
    BearerTokenAuthMiddleware,
    CookieNonceAuthMiddleware,
    JwtAuthMiddleware,
)
from routekit.middleware.base import Middleware
from routekit.middleware.cache import CachingMiddleware
from routekit.middleware.observability import AuditMiddleware, MetricsMiddleware
from routekit.middleware.rate_limit import RateLimitMiddleware
from routekit.middleware.write import IdempotencyMiddleware, OptimisticLockMiddleware

__all__ = [
    "ApplicationPasswordAuthMiddleware",
    "AuditMiddleware",
    "BearerTokenAuthMiddleware",
    "CachingMiddleware",
    "CookieNonceAuthMiddleware",
    "IdempotencyMiddleware",
    "JwtAuthMiddleware",
    "MetricsMiddleware",
    "Middleware",
    "OptimisticLockMiddleware",
    "RateLimitMiddleware",
]
