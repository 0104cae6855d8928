"""Tests for audit logging and metrics middleware."""

import json
import logging

import pytest

from routekit.exceptions import ApiException
from routekit.middleware import AuditMiddleware, MetricsMiddleware
from routekit.models.context import RequestContext
from routekit.models.request import HttpRequest
from routekit.models.response import Response
from routekit.router import Router
from routekit.services.audit_service import AuditEventFactory, InMemoryAuditLogger, LoggingAuditLogger
from routekit.services.metrics_service import InMemoryMetricSink, PrometheusMetricSink


def context_for(method="GET"):
    return RequestContext(request_id="req_obs", route_path="/orders", request=HttpRequest(method=method))


class Ticker:
    """Clock advancing by a fixed step on every read."""

    def __init__(self, step=0.25):
        self.value = 0.0
        self.step = step

    def __call__(self):
        self.value += self.step
        return self.value


@pytest.fixture
def audit():
    logger = InMemoryAuditLogger()
    factory = AuditEventFactory(clock=lambda: "2024-01-01T00:00:00+00:00")
    return logger, AuditMiddleware(logger, factory)


def test_audit_success_event(audit):
    """Test one success event per request."""
    logger, middleware = audit
    middleware(context_for("post"), lambda ctx: Response(body={}, status=201))

    assert len(logger.events) == 1
    event = logger.events[0]
    assert event["event"] == "http_request"
    assert event["timestamp"] == "2024-01-01T00:00:00+00:00"
    assert event["requestId"] == event["traceId"] == "req_obs"
    assert event["route"] == "/orders"
    assert event["method"] == "POST"
    assert event["outcome"] == "success"
    assert event["statusCode"] == 201
    assert event["errorCode"] is None
    assert event["status"] == "ok"
    assert isinstance(event["durationMs"], int)


def test_audit_error_event_rethrows(audit):
    """Test errors are logged and re-raised."""
    logger, middleware = audit

    def fails(ctx):
        raise ApiException("Gone.", 404, "not_found")

    with pytest.raises(ApiException):
        middleware(context_for(), fails)

    event = logger.events[0]
    assert event["outcome"] == "error"
    assert event["statusCode"] == 404
    assert event["errorCode"] == "not_found"
    assert event["error"] == "Gone."
    assert event["status"] == "error"


def test_logging_audit_logger(caplog):
    """Test events are written as prefixed JSON lines."""
    caplog.set_level(logging.INFO, logger="routekit.audit")
    LoggingAuditLogger().log({"event": "http_request", "route": "/x"})

    message = caplog.records[-1].getMessage()
    assert message.startswith("[routekit] ")
    assert json.loads(message[len("[routekit] "):]) == {"event": "http_request", "route": "/x"}


def test_metrics_success():
    """Test request count and duration per route, method and status class."""
    sink = InMemoryMetricSink()
    middleware = MetricsMiddleware(sink, clock=Ticker())
    middleware(context_for(), lambda ctx: {"ok": True})

    labels = {"route": "/orders", "method": "GET", "status_class": "2xx"}
    assert sink.counter("routekit_requests_total", labels) == 1
    assert sink.observed("routekit_request_duration_seconds", labels) == [0.25]
    assert sink.counter("routekit_errors_total", {**labels, "error_code": "unknown"}) == 0


def test_metrics_error_rethrows():
    """Test raised errors are counted with their code."""
    sink = InMemoryMetricSink()
    middleware = MetricsMiddleware(sink, clock=Ticker(), metric_prefix="app_")

    def limited(ctx):
        raise ApiException("Slow down.", 429, "rate_limited")

    with pytest.raises(ApiException):
        middleware(context_for(), limited)

    labels = {"route": "/orders", "method": "GET", "status_class": "4xx"}
    assert sink.counter("app_requests_total", labels) == 1
    assert sink.counter("app_errors_total", {**labels, "error_code": "rate_limited"}) == 1


def test_metrics_error_response():
    """Test error envelopes returned as results are counted."""
    sink = InMemoryMetricSink()
    middleware = MetricsMiddleware(sink, clock=Ticker())
    middleware(context_for(), lambda ctx: Response.error("conflict", "Conflict.", 409))

    labels = {"route": "/orders", "method": "GET", "status_class": "4xx", "error_code": "conflict"}
    assert sink.counter("routekit_errors_total", labels) == 1


def test_prometheus_sink_render():
    """Test metrics are exposed in the text format."""
    sink = PrometheusMetricSink()
    middleware = MetricsMiddleware(sink, clock=Ticker())
    middleware(context_for(), lambda ctx: {"ok": True})

    output = sink.render()
    assert 'routekit_requests_total{method="GET",route="/orders",status_class="2xx"} 1.0' in output
    assert "routekit_request_duration_seconds_bucket" in output


def test_prometheus_sink_label_mismatch():
    """Test a metric cannot change its label set."""
    sink = PrometheusMetricSink()
    sink.increment("jobs_total", {"queue": "a"})
    with pytest.raises(ValueError):
        sink.increment("jobs_total", {"other": "b"})


def test_programming_error_reported_consistently(audit, dispatcher):
    """Test client, audit and metrics agree on the status of an unexpected error."""
    logger, audit_middleware = audit
    sink = InMemoryMetricSink()
    router = Router.make("acme", "v1")
    router.middleware([audit_middleware, MetricsMiddleware(sink, clock=Ticker())])
    router.get("/orders", lambda: None + 1)
    router.register(dispatcher)

    result = dispatcher.find("GET", "/orders")["callback"](HttpRequest())

    assert result["status"] == 500
    assert result["body"]["error"]["code"] == "internal_error"
    assert logger.events[0]["statusCode"] == 500
    assert logger.events[0]["errorCode"] == "internal_error"
    labels = {"route": "/orders", "method": "GET", "status_class": "5xx"}
    assert sink.counter("routekit_errors_total", {**labels, "error_code": "internal_error"}) == 1


def test_invalid_input_reported_consistently(audit):
    """Test a ValueError is audited as the 400 the client receives."""
    logger, middleware = audit

    def invalid(ctx):
        raise ValueError("Bad value.")

    with pytest.raises(ValueError):
        middleware(context_for(), invalid)

    assert logger.events[0]["statusCode"] == 400
    assert logger.events[0]["errorCode"] == "invalid_request"
