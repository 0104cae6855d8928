"""Audit event construction and logging."""

import json
import logging
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional, Protocol

from routekit.models.context import RequestContext

audit_logger = logging.getLogger("routekit.audit")


class AuditLogger(Protocol):
    def log(self, event: Dict[str, Any]) -> None: ...


class LoggingAuditLogger:
    """Writes audit events as ``[routekit] {json}`` lines."""

    def __init__(self, logger: Optional[logging.Logger] = None, level: int = logging.INFO):
        self.logger = logger or audit_logger
        self.level = level

    def log(self, event: Dict[str, Any]) -> None:
        self.logger.log(self.level, "[routekit] " + json.dumps(event, default=str, separators=(",", ":")))


class InMemoryAuditLogger:
    """Collects audit events; handy for tests and debugging."""

    def __init__(self):
        self.events: List[Dict[str, Any]] = []

    def log(self, event: Dict[str, Any]) -> None:
        self.events.append(event)


class AuditEventFactory:
    """Builds ``http_request`` audit events."""

    def __init__(self, clock: Optional[Callable[[], str]] = None):
        self.clock = clock or (lambda: datetime.now(timezone.utc).isoformat(timespec="seconds"))

    def success(
        self,
        context: RequestContext,
        method: str,
        status_code: int,
        duration_ms: int,
        extra: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        return self._event(context, method, "success", status_code, None, None, duration_ms, extra)

    def error(
        self,
        context: RequestContext,
        method: str,
        status_code: int,
        error_code: str,
        error_message: str,
        duration_ms: int,
        extra: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        return self._event(
            context, method, "error", status_code, error_code, error_message, duration_ms, extra
        )

    def _event(
        self,
        context: RequestContext,
        method: str,
        outcome: str,
        status_code: int,
        error_code: Optional[str],
        error_message: Optional[str],
        duration_ms: int,
        extra: Optional[Dict[str, Any]],
    ) -> Dict[str, Any]:
        event = {
            "event": "http_request",
            "timestamp": self.clock(),
            "requestId": context.request_id,
            "traceId": context.request_id,
            "route": context.route_path,
            "method": method.upper(),
            "outcome": outcome,
            "statusCode": status_code,
            "errorCode": error_code,
            "error": error_message,
            "durationMs": duration_ms,
            "status": "ok" if outcome == "success" else "error",
        }
        event.update(extra or {})
        return event
