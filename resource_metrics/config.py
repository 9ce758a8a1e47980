"""
Configuration for resource metrics.
"""

from typing import Tuple

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict
from prometheus_client.metrics import Histogram


class MetricsSettings(BaseSettings):
    """Settings read from RESOURCE_METRICS_* environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="RESOURCE_METRICS_",
        env_file=".env",
        case_sensitive=False,
        extra="allow"
    )
    
    # Environment
    env: str = Field(default="local")
    log_level: str = Field(default="info")
    
    # Registry
    registry_name: str = Field(default="default")
    namespace: str = Field(default="")
    timer_buckets: Tuple[float, ...] = Field(default=Histogram.DEFAULT_BUCKETS)
    
    # Naming
    exception_suffix: str = Field(default="exceptions")
    
    # Exposition
    metrics_path: str = Field(default="/metrics")


def get_settings() -> MetricsSettings:
    """Get resource metrics settings."""
    return MetricsSettings()
