"""Prometheus recording of rollout lifecycle events.

Example:
    >>> bus = DeploymentEventBus()
    >>> detach = DeploymentMetricsRecorder("checkout").attach(bus)
"""
from typing import Callable, Dict

from src.delivery.deployment.events import (
    DeploymentEvent,
    DeploymentEventBus,
    DeploymentEventType,
)
from src.delivery.monitoring.metrics import (
    BLUE_GREEN_SWAPS,
    CANDIDATE_TRAFFIC,
    COMPLETIONS,
    ROLLBACKS,
    STAGE_EVENTS,
)


class DeploymentMetricsRecorder:
    """Event bus listener that updates Prometheus metrics for one target."""

    def __init__(self, target: str):
        self.target = target
        # Every event type must have a handler
        self._handlers: Dict[DeploymentEventType, Callable[[DeploymentEvent], None]] = {
            DeploymentEventType.STAGE_STARTED: self._on_stage_started,
            DeploymentEventType.STAGE_PASSED: self._on_stage_result,
            DeploymentEventType.STAGE_FAILED: self._on_stage_result,
            DeploymentEventType.ROLLED_BACK: self._on_rolled_back,
            DeploymentEventType.COMPLETED: self._on_completed,
            DeploymentEventType.BLUE_GREEN_SWAPPED: self._on_swapped,
        }
        missing = set(DeploymentEventType) - set(self._handlers)
        if missing:
            raise ValueError(f"No metric handler for event types: {sorted(t.value for t in missing)}")

    def attach(self, bus: DeploymentEventBus) -> Callable[[], None]:
        return bus.on(self)

    def __call__(self, event: DeploymentEvent) -> None:
        self._handlers[event.type](event)

    def _on_stage_started(self, event: DeploymentEvent) -> None:
        STAGE_EVENTS.labels(target=self.target, event_type=event.type.value).inc()
        stage = event.payload["stage"]
        CANDIDATE_TRAFFIC.labels(target=self.target).set(min(max(stage.percentage, 0), 100))

    def _on_stage_result(self, event: DeploymentEvent) -> None:
        STAGE_EVENTS.labels(target=self.target, event_type=event.type.value).inc()

    def _on_rolled_back(self, event: DeploymentEvent) -> None:
        ROLLBACKS.labels(target=self.target).inc()
        CANDIDATE_TRAFFIC.labels(target=self.target).set(0)

    def _on_completed(self, event: DeploymentEvent) -> None:
        mode = event.payload["strategy"].mode.value
        COMPLETIONS.labels(target=self.target, mode=mode).inc()

    def _on_swapped(self, event: DeploymentEvent) -> None:
        BLUE_GREEN_SWAPS.labels(target=self.target).inc()
        CANDIDATE_TRAFFIC.labels(target=self.target).set(100)
