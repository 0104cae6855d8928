"""Rate limiting middleware."""

from typing import Any, Callable, Optional

from routekit.config import settings
from routekit.exceptions import ApiException
from routekit.middleware.base import Middleware, Next
from routekit.models.context import RequestContext
from routekit.models.response import ErrorCode, Response
from routekit.services.rate_limit_service import RateLimiter, TransientRateLimiter


class RateLimitMiddleware(Middleware):
    """Fixed-window rate limiting keyed by route path or a custom resolver."""

    def __init__(
        self,
        limiter: Optional[RateLimiter] = None,
        limit: Optional[int] = None,
        window_seconds: Optional[int] = None,
        key_resolver: Optional[Callable[[RequestContext], str]] = None,
    ):
        self.limiter = limiter or TransientRateLimiter()
        self.limit = limit if limit is not None else settings.RATE_LIMIT_DEFAULT
        self.window_seconds = window_seconds if window_seconds is not None else settings.RATE_LIMIT_WINDOW_SECONDS
        self.key_resolver = key_resolver or (lambda context: context.route_path)

    def handle(self, context: RequestContext, call_next: Next) -> Any:
        result = self.limiter.hit(self.key_resolver(context), self.limit, self.window_seconds)
        details = {"limit": self.limit, "remaining": result.remaining, "resetAt": result.reset_at}

        if not result.allowed:
            raise ApiException("Rate limit exceeded.", 429, ErrorCode.RATE_LIMITED.value, details)

        response = call_next(context.with_attribute("rateLimit", details))
        if isinstance(response, Response):
            return response.with_headers(
                {
                    "X-RateLimit-Limit": self.limit,
                    "X-RateLimit-Remaining": result.remaining,
                    "X-RateLimit-Reset": result.reset_at,
                }
            )
        return response
