"""Audit logging and metrics middleware. Both always rethrow."""

import time
from typing import Any, Callable, Dict, Optional

from routekit.config import settings
from routekit.middleware.base import Middleware, Next
from routekit.models.context import RequestContext
from routekit.models.request import request_method
from routekit.models.response import Response
from routekit.services.audit_service import AuditEventFactory, AuditLogger, LoggingAuditLogger
from routekit.services.error_service import classify_error
from routekit.services.metrics_service import MetricSink


def result_status(result: Any) -> int:
    """HTTP status of a handler result, 200 when it carries none."""
    if isinstance(result, Response):
        return result.status
    if isinstance(result, dict):
        status = result.get("status")
    else:
        status = getattr(result, "status_code", getattr(result, "status", None))
    if isinstance(status, int) and not isinstance(status, bool):
        return status
    return 200


def result_error_code(result: Any) -> str:
    body = result.body if isinstance(result, Response) else result
    if isinstance(body, dict):
        error = body.get("error")
        if isinstance(error, dict) and isinstance(error.get("code"), str):
            return error["code"]
    return "unknown"


def status_class(status: int) -> str:
    if status < 100 or status > 599:
        return "unknown"
    return f"{status // 100}xx"


class AuditMiddleware(Middleware):
    """Logs one audit event per request, on success and on error."""

    def __init__(
        self,
        logger: Optional[AuditLogger] = None,
        event_factory: Optional[AuditEventFactory] = None,
    ):
        self.logger = logger or LoggingAuditLogger()
        self.event_factory = event_factory or AuditEventFactory()

    def handle(self, context: RequestContext, call_next: Next) -> Any:
        started_at = time.perf_counter()
        method = request_method(context.request)

        try:
            result = call_next(context)
        except Exception as exc:
            status, code = classify_error(exc)
            self.logger.log(
                self.event_factory.error(context, method, status, code, str(exc), self._duration_ms(started_at))
            )
            raise

        self.logger.log(
            self.event_factory.success(context, method, result_status(result), self._duration_ms(started_at))
        )
        return result

    @staticmethod
    def _duration_ms(started_at: float) -> int:
        return int(round((time.perf_counter() - started_at) * 1000))


class MetricsMiddleware(Middleware):
    """Records request count, duration and errors per route, method and status class."""

    def __init__(
        self,
        metrics: MetricSink,
        clock: Optional[Callable[[], float]] = None,
        metric_prefix: Optional[str] = None,
    ):
        self.metrics = metrics
        self.clock = clock or time.perf_counter
        self.metric_prefix = metric_prefix if metric_prefix is not None else settings.METRICS_PREFIX

    def handle(self, context: RequestContext, call_next: Next) -> Any:
        method = request_method(context.request)
        started_at = self.clock()

        try:
            result = call_next(context)
        except Exception as exc:
            status, code = classify_error(exc)
            labels = self._labels(context, method, status)
            self._record(labels, started_at)
            self.metrics.increment(self.metric_prefix + "errors_total", {**labels, "error_code": code})
            raise

        status = result_status(result)
        labels = self._labels(context, method, status)
        self._record(labels, started_at)
        if status >= 400:
            self.metrics.increment(
                self.metric_prefix + "errors_total", {**labels, "error_code": result_error_code(result)}
            )
        return result

    def _record(self, labels: Dict[str, str], started_at: float) -> None:
        self.metrics.increment(self.metric_prefix + "requests_total", labels)
        self.metrics.observe(self.metric_prefix + "request_duration_seconds", self.clock() - started_at, labels)

    @staticmethod
    def _labels(context: RequestContext, method: str, status: int) -> Dict[str, str]:
        return {"route": context.route_path, "method": method, "status_class": status_class(status)}
