import os
from typing import List

import pytest

# Disable OTLP export during tests to prevent connection errors
os.environ["OTEL_EXPORTER_OTLP_ENDPOINT"] = "none"

# Import package AFTER setting the environment variable
from src.delivery.deployment import (
    CanaryStage,
    DeploymentEvent,
    DeploymentEventBus,
    DeploymentMetrics,
    DeploymentStrategy,
    DeploymentThresholds,
    OperationTarget,
)


def _make_metrics(**overrides) -> DeploymentMetrics:
    """Healthy observation with selected fields replaced."""
    values = {
        "error_rate": 0.005,
        "latency_p50": 50.0,
        "latency_p95": 200.0,
        "latency_p99": 400.0,
        "throughput": 100.0,
        "sample_size": 1000,
    }
    values.update(overrides)
    return DeploymentMetrics(**values)


@pytest.fixture
def target():
    return OperationTarget(name="checkout", version="v2.0.0", namespace="payments")


@pytest.fixture
def two_stages():
    return (
        CanaryStage(percentage=10, min_duration_ms=1),
        CanaryStage(percentage=100, min_duration_ms=1),
    )


@pytest.fixture
def canary_strategy(target, two_stages):
    return DeploymentStrategy(
        target=target,
        mode="canary",
        thresholds=DeploymentThresholds(error_rate=0.01),
        stages=two_stages,
    )


@pytest.fixture
def event_bus():
    return DeploymentEventBus()


@pytest.fixture
def recorded_events(event_bus) -> List[DeploymentEvent]:
    """Every event emitted on event_bus, in order."""
    events: List[DeploymentEvent] = []
    event_bus.on(events.append)
    return events


@pytest.fixture
def make_metrics():
    """Factory for healthy observations; keyword arguments override fields."""
    return _make_metrics
