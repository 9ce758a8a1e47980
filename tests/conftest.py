"""
Shared fixtures for resource metrics tests.
"""

import pytest
from prometheus_client import CollectorRegistry

from resource_metrics.registry import MetricRegistry, SharedMetricRegistries


@pytest.fixture
def registry():
    """Create an isolated metric registry."""
    return MetricRegistry(CollectorRegistry())


@pytest.fixture(autouse=True)
def clear_shared_registries():
    """Keep shared registries from leaking between tests."""
    SharedMetricRegistries.clear()
    yield
    SharedMetricRegistries.clear()
