"""
Named metric registry backed by prometheus_client.

Metrics are addressed by dot-separated names (``package.Resource.method``).
Each name is exported to a ``CollectorRegistry`` under a sanitised Prometheus
name: timers as ``<name>_seconds`` histograms and meters as ``<name>_total``
counters.
"""

import re
import time
import threading
from typing import Callable, Dict, List, Optional, Sequence, Type, Union

from prometheus_client import CollectorRegistry, Counter, Histogram, generate_latest

from .config import get_settings
from .errors import MetricNameError, MetricTypeConflictError
from .logging import get_logger

_INVALID_CHARS = re.compile(r"[^a-zA-Z0-9_:]")


def name(first, *parts: Optional[str]) -> str:
    """Join name parts with dots, skipping empty parts.

    A class or function as ``first`` contributes its fully qualified name.
    """
    if isinstance(first, str) or first is None:
        head = first or ""
    else:
        head = f"{first.__module__}.{first.__qualname__}"

    names = [head] if head else []
    names.extend(part for part in parts if part)
    return ".".join(names)


def prometheus_name(metric_name: str) -> str:
    """Convert a dotted metric name into a valid Prometheus metric name."""
    sanitized = _INVALID_CHARS.sub("_", metric_name)
    if sanitized[:1].isdigit():
        sanitized = f"_{sanitized}"
    return sanitized


def _sample_value(collector, suffix: str) -> float:
    for metric in collector.collect():
        for sample in metric.samples:
            if sample.name.endswith(suffix):
                return sample.value
    return 0.0


class TimerContext:
    """A running measurement started by ``Timer.time()``."""

    def __init__(self, timer: "Timer"):
        self._timer = timer
        self._start = time.perf_counter()
        self._elapsed: Optional[float] = None

    def stop(self) -> float:
        """Record the elapsed time once and return it in seconds."""
        if self._elapsed is None:
            self._elapsed = time.perf_counter() - self._start
            self._timer.update(self._elapsed)
        return self._elapsed

    def __enter__(self) -> "TimerContext":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.stop()


class Timer:
    """Measures durations of an operation."""

    kind = "timer"

    def __init__(self, metric_name: str, histogram: Histogram):
        self.name = metric_name
        self._histogram = histogram

    @classmethod
    def create(cls, metric_name: str, registry: CollectorRegistry, namespace: str = "",
               buckets: Sequence[float] = Histogram.DEFAULT_BUCKETS) -> "Timer":
        histogram = Histogram(
            f"{prometheus_name(metric_name)}_seconds",
            f"Timer {metric_name}",
            namespace=namespace,
            buckets=buckets,
            registry=registry
        )
        return cls(metric_name, histogram)

    @property
    def collector(self) -> Histogram:
        return self._histogram

    def update(self, seconds: float) -> None:
        self._histogram.observe(seconds)

    def time(self) -> TimerContext:
        return TimerContext(self)

    @property
    def count(self) -> int:
        return int(_sample_value(self._histogram, "_count"))

    @property
    def total_seconds(self) -> float:
        return _sample_value(self._histogram, "_sum")


class Meter:
    """Counts events and reports their mean rate."""

    kind = "meter"

    def __init__(self, metric_name: str, counter: Counter):
        self.name = metric_name
        self._counter = counter
        self._created = time.monotonic()

    @classmethod
    def create(cls, metric_name: str, registry: CollectorRegistry, namespace: str = "") -> "Meter":
        counter = Counter(
            prometheus_name(metric_name),
            f"Meter {metric_name}",
            namespace=namespace,
            registry=registry
        )
        return cls(metric_name, counter)

    @property
    def collector(self) -> Counter:
        return self._counter

    def mark(self, n: int = 1) -> None:
        self._counter.inc(n)

    @property
    def count(self) -> int:
        return int(_sample_value(self._counter, "_total"))

    @property
    def mean_rate(self) -> float:
        """Events per second since the meter was created."""
        elapsed = time.monotonic() - self._created
        if elapsed <= 0:
            return 0.0
        return self.count / elapsed


Metric = Union[Timer, Meter]


class MetricRegistry:
    """Get-or-create store of named timers and meters."""

    def __init__(self, collector_registry: Optional[CollectorRegistry] = None,
                 namespace: Optional[str] = None, buckets: Optional[Sequence[float]] = None):
        settings = get_settings()
        self.collector_registry = collector_registry or CollectorRegistry()
        self.namespace = settings.namespace if namespace is None else namespace
        self.buckets = tuple(buckets) if buckets is not None else settings.timer_buckets
        self.logger = get_logger("resource_metrics.registry")
        self._metrics: Dict[str, Metric] = {}
        self._lock = threading.Lock()

    def timer(self, metric_name: str) -> Timer:
        """Get or create the timer registered under ``metric_name``."""
        return self._get_or_add(metric_name, Timer)

    def meter(self, metric_name: str) -> Meter:
        """Get or create the meter registered under ``metric_name``."""
        return self._get_or_add(metric_name, Meter)

    def _get_or_add(self, metric_name: str, kind: Type[Metric]):
        if not metric_name:
            raise MetricNameError("Metric name must not be empty")

        with self._lock:
            existing = self._metrics.get(metric_name)
            if existing is not None:
                if isinstance(existing, kind):
                    return existing
                raise MetricTypeConflictError(metric_name, existing.kind, kind.kind)

            options = {"buckets": self.buckets} if kind is Timer else {}
            try:
                metric = kind.create(
                    metric_name,
                    self.collector_registry,
                    namespace=self.namespace,
                    **options
                )
            except ValueError as e:
                raise MetricNameError(
                    f"Cannot export metric {metric_name}",
                    {"name": metric_name, "error": str(e)}
                ) from e

            self._metrics[metric_name] = metric

        self.logger.debug("Metric created", metric=metric_name, kind=kind.kind)
        return metric

    def remove(self, metric_name: str) -> bool:
        """Remove a metric and unregister it from Prometheus."""
        with self._lock:
            metric = self._metrics.pop(metric_name, None)
            if metric is None:
                return False
            self.collector_registry.unregister(metric.collector)
        return True

    def names(self) -> List[str]:
        with self._lock:
            return sorted(self._metrics)

    def timers(self) -> Dict[str, Timer]:
        with self._lock:
            return {k: v for k, v in self._metrics.items() if isinstance(v, Timer)}

    def meters(self) -> Dict[str, Meter]:
        with self._lock:
            return {k: v for k, v in self._metrics.items() if isinstance(v, Meter)}

    def generate_latest(self) -> bytes:
        """Render the registry in Prometheus text format."""
        return generate_latest(self.collector_registry)


class SharedMetricRegistries:
    """Process-wide registries addressed by name."""

    _registries: Dict[str, MetricRegistry] = {}
    _lock = threading.Lock()

    @classmethod
    def get_or_create(cls, registry_name: str,
                      factory: Optional[Callable[[], MetricRegistry]] = None) -> MetricRegistry:
        """Return the registry named ``registry_name``, creating it with ``factory`` if missing."""
        with cls._lock:
            registry = cls._registries.get(registry_name)
            if registry is None:
                registry = factory() if factory is not None else MetricRegistry()
                cls._registries[registry_name] = registry
            return registry

    @classmethod
    def add(cls, registry_name: str, registry: MetricRegistry) -> MetricRegistry:
        """Register ``registry`` unless the name is taken; return the one in use."""
        with cls._lock:
            return cls._registries.setdefault(registry_name, registry)

    @classmethod
    def remove(cls, registry_name: str) -> None:
        with cls._lock:
            cls._registries.pop(registry_name, None)

    @classmethod
    def clear(cls) -> None:
        with cls._lock:
            cls._registries.clear()

    @classmethod
    def names(cls) -> List[str]:
        with cls._lock:
            return sorted(cls._registries)
