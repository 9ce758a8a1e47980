"""
Annotation-driven metrics for FastAPI resource methods.

This package aggregates the building blocks used to instrument routes:

- annotations: ``timed``, ``metered`` and ``exception_metered`` decorators
- naming: metric name resolution for resource methods
- registry: named timers and meters backed by prometheus_client
- interceptors: reader/writer chains and the metric interceptors
- feature: ``MetricsFeature``, the annotation-to-metric binder
- routing: FastAPI route class and app helpers
- config: settings via pydantic-settings
- logging: structured logging via structlog
- errors: configuration-time error types
"""

from .annotations import ExceptionMetered, Metered, Timed, exception_metered, metered, timed
from .errors import ConfigurationError, MetricNameError, MetricsFeatureError, MetricTypeConflictError
from .feature import DynamicFeature, FeatureContext, MetricsFeature, ResourceInfo
from .registry import Meter, MetricRegistry, SharedMetricRegistries, Timer, name
from .routing import InstrumentedRoute, instrument_app, instrumented_route_class, register_features

__all__ = [
    "ConfigurationError",
    "DynamicFeature",
    "ExceptionMetered",
    "FeatureContext",
    "InstrumentedRoute",
    "Meter",
    "Metered",
    "MetricNameError",
    "MetricRegistry",
    "MetricTypeConflictError",
    "MetricsFeature",
    "MetricsFeatureError",
    "ResourceInfo",
    "SharedMetricRegistries",
    "Timed",
    "Timer",
    "exception_metered",
    "instrument_app",
    "instrumented_route_class",
    "metered",
    "name",
    "register_features",
    "timed",
]
