"""Metric sinks used by the metrics middleware."""

import json
import threading
from typing import Dict, List, Optional, Protocol, Tuple, Union

from prometheus_client import CollectorRegistry, Counter, Histogram, generate_latest

Labels = Dict[str, str]


class MetricSink(Protocol):
    def increment(self, name: str, labels: Optional[Labels] = None, value: float = 1.0) -> None: ...

    def observe(self, name: str, value: float, labels: Optional[Labels] = None) -> None: ...


def series_key(name: str, labels: Optional[Labels] = None) -> str:
    return name + "|" + json.dumps(dict(sorted((labels or {}).items())), separators=(",", ":"))


class InMemoryMetricSink:
    """Keeps counters and raw observations in memory, keyed by name and labels."""

    def __init__(self):
        self.counters: Dict[str, float] = {}
        self.observations: Dict[str, List[float]] = {}
        self._lock = threading.Lock()

    def increment(self, name: str, labels: Optional[Labels] = None, value: float = 1.0) -> None:
        key = series_key(name, labels)
        with self._lock:
            self.counters[key] = self.counters.get(key, 0.0) + value

    def observe(self, name: str, value: float, labels: Optional[Labels] = None) -> None:
        key = series_key(name, labels)
        with self._lock:
            self.observations.setdefault(key, []).append(value)

    def counter(self, name: str, labels: Optional[Labels] = None) -> float:
        return self.counters.get(series_key(name, labels), 0.0)

    def observed(self, name: str, labels: Optional[Labels] = None) -> List[float]:
        return list(self.observations.get(series_key(name, labels), []))


class PrometheusMetricSink:
    """Publishes metrics through prometheus_client on a private registry."""

    def __init__(self, registry: Optional[CollectorRegistry] = None):
        self.registry = registry or CollectorRegistry()
        self._metrics: Dict[str, Tuple[Tuple[str, ...], Union[Counter, Histogram]]] = {}
        self._lock = threading.Lock()

    def _metric(self, kind: type, name: str, labelnames: Tuple[str, ...]) -> Union[Counter, Histogram]:
        with self._lock:
            existing = self._metrics.get(name)
            if existing is not None:
                known_labels, metric = existing
                if known_labels != labelnames or not isinstance(metric, kind):
                    raise ValueError(f"Metric {name} already registered with labels {known_labels}")
                return metric

            description = name.replace("_", " ")
            metric = kind(name, description, labelnames=labelnames, registry=self.registry)
            self._metrics[name] = (labelnames, metric)
            return metric

    def increment(self, name: str, labels: Optional[Labels] = None, value: float = 1.0) -> None:
        labels = labels or {}
        metric = self._metric(Counter, name, tuple(sorted(labels)))
        (metric.labels(**labels) if labels else metric).inc(value)

    def observe(self, name: str, value: float, labels: Optional[Labels] = None) -> None:
        labels = labels or {}
        metric = self._metric(Histogram, name, tuple(sorted(labels)))
        (metric.labels(**labels) if labels else metric).observe(value)

    def render(self) -> str:
        """Text exposition format of every metric in the registry."""
        return generate_latest(self.registry).decode("utf-8")
