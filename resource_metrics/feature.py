"""
Dynamic feature that binds metric annotations to resource methods.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Callable, FrozenSet, List, Optional, Union

from .annotations import ExceptionMetered, Metered, Timed, get_annotation
from .config import MetricsSettings, get_settings
from .errors import ConfigurationError
from .interceptors import (
    ExceptionMeteredInterceptor,
    MeteredInterceptor,
    ReaderInterceptor,
    TimedInterceptor,
    WriterInterceptor,
)
from .logging import get_logger
from .naming import choose_name
from .registry import MetricRegistry, SharedMetricRegistries


@dataclass(frozen=True)
class ResourceInfo:
    """The resource method a route dispatches to."""
    resource_method: Callable
    resource_class: Optional[type] = None
    path: Optional[str] = None
    methods: FrozenSet[str] = field(default_factory=frozenset)

    @classmethod
    def from_endpoint(cls, endpoint: Callable, path: Optional[str] = None,
                      methods=None) -> "ResourceInfo":
        owner = getattr(endpoint, "__self__", None)
        return cls(
            resource_method=endpoint,
            resource_class=type(owner) if owner is not None else None,
            path=path,
            methods=frozenset(methods or ())
        )


class FeatureContext:
    """Collects the interceptors registered for one resource method."""

    def __init__(self):
        self.reader_interceptors: List[ReaderInterceptor] = []
        self.writer_interceptors: List[WriterInterceptor] = []

    def register(self, component) -> "FeatureContext":
        registered = False
        if isinstance(component, ReaderInterceptor):
            self.reader_interceptors.append(component)
            registered = True
        if isinstance(component, WriterInterceptor):
            self.writer_interceptors.append(component)
            registered = True
        if not registered:
            raise ConfigurationError(
                "Only reader and writer interceptors can be registered",
                {"component": type(component).__name__}
            )
        return self

    @property
    def empty(self) -> bool:
        return not (self.reader_interceptors or self.writer_interceptors)


class DynamicFeature(ABC):
    """Configures interceptors for each resource method at registration time."""

    @abstractmethod
    def configure(self, resource_info: ResourceInfo, context: FeatureContext) -> None:
        """Register interceptors for ``resource_info`` with ``context``."""


class MetricsFeature(DynamicFeature):
    """Attach timers and meters to methods decorated with ``timed``,
    ``metered`` and ``exception_metered``.

    ``registry`` is either a ``MetricRegistry`` or the name of a shared
    registry; by default the configured ``registry_name`` is used.
    """

    def __init__(self, registry: Union[MetricRegistry, str, None] = None,
                 settings: Optional[MetricsSettings] = None):
        self.settings = settings or get_settings()
        if registry is None:
            registry = self.settings.registry_name
        if isinstance(registry, str):
            registry = SharedMetricRegistries.get_or_create(registry, self._create_registry)
        self.registry = registry
        self.logger = get_logger("resource_metrics.feature")

    def _create_registry(self) -> MetricRegistry:
        return MetricRegistry(
            namespace=self.settings.namespace,
            buckets=self.settings.timer_buckets
        )

    def configure(self, resource_info: ResourceInfo, context: FeatureContext) -> None:
        method = resource_info.resource_method

        annotation = get_annotation(method, Timed)
        if annotation is not None:
            metric_name = choose_name(annotation.name, annotation.absolute, method)
            timer = self.registry.timer(metric_name)
            context.register(TimedInterceptor(timer))
            self._registered(resource_info, metric_name, "timer")

        annotation = get_annotation(method, Metered)
        if annotation is not None:
            metric_name = choose_name(annotation.name, annotation.absolute, method)
            meter = self.registry.meter(metric_name)
            context.register(MeteredInterceptor(meter))
            self._registered(resource_info, metric_name, "meter")

        annotation = get_annotation(method, ExceptionMetered)
        if annotation is not None:
            metric_name = choose_name(
                annotation.name,
                annotation.absolute,
                method,
                self.settings.exception_suffix
            )
            meter = self.registry.meter(metric_name)
            context.register(ExceptionMeteredInterceptor(meter, annotation.cause))
            self._registered(resource_info, metric_name, "exception_meter")

    def _registered(self, resource_info: ResourceInfo, metric_name: str, kind: str) -> None:
        self.logger.debug(
            "Metric interceptor registered",
            path=resource_info.path,
            metric=metric_name,
            kind=kind
        )
