"""
Error types raised while wiring metrics to resource methods.
"""

from typing import Dict, Any, Optional


class MetricsFeatureError(Exception):
    """Base exception for metric wiring errors."""
    
    def __init__(self, code: str, message: str, details: Optional[Dict[str, Any]] = None):
        self.code = code
        self.message = message
        self.details = details or {}
        super().__init__(message)


class MetricNameError(MetricsFeatureError):
    """A metric name is empty or cannot be exported."""
    
    def __init__(self, message: str = "Invalid metric name", details: Optional[Dict[str, Any]] = None):
        super().__init__("METRIC_NAME_ERROR", message, details)


class MetricTypeConflictError(MetricsFeatureError):
    """A name is already registered for a different kind of metric."""
    
    def __init__(self, name: str, existing: str, requested: str):
        super().__init__(
            "METRIC_TYPE_CONFLICT",
            f"{name} is already used for a different type of metric",
            {"name": name, "existing": existing, "requested": requested}
        )


class ConfigurationError(MetricsFeatureError):
    """Invalid annotation or interceptor registration."""
    
    def __init__(self, message: str = "Invalid metrics configuration", details: Optional[Dict[str, Any]] = None):
        super().__init__("CONFIGURATION_ERROR", message, details)
