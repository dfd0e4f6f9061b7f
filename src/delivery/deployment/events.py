"""In-process publish/subscribe for rollout lifecycle events.

Listeners are the only observability surface of a rollout. A listener that
raises is logged and skipped; it can never break the deployment.
"""
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable, Dict, List, Tuple

from loguru import logger

from src.delivery.monitoring.metrics import LISTENER_FAILURES


class DeploymentEventType(str, Enum):
    STAGE_STARTED = "stage_started"
    STAGE_PASSED = "stage_passed"
    STAGE_FAILED = "stage_failed"
    ROLLED_BACK = "rolled_back"
    COMPLETED = "completed"
    BLUE_GREEN_SWAPPED = "blue_green_swapped"


@dataclass(frozen=True)
class DeploymentEvent:
    """Lifecycle event.

    Payload keys by type:
        stage_started: stage
        stage_passed / stage_failed: stage, metrics, analysis
        rolled_back: stage, reasons
        completed / blue_green_swapped: strategy
    """
    type: DeploymentEventType
    payload: Dict[str, Any] = field(default_factory=dict)
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


Listener = Callable[[DeploymentEvent], None]


class DeploymentEventBus:
    """Synchronous fan-out of deployment events."""

    def __init__(self):
        # (token, listener); the token identifies one registration
        self._listeners: List[Tuple[object, Listener]] = []

    @property
    def listener_count(self) -> int:
        return len(self._listeners)

    def on(self, listener: Listener) -> Callable[[], None]:
        """Register a listener.

        Returns:
            Idempotent function removing this registration
        """
        token = object()
        self._listeners.append((token, listener))

        def unsubscribe() -> None:
            self._listeners = [entry for entry in self._listeners if entry[0] is not token]

        return unsubscribe

    def emit(self, event: DeploymentEvent) -> None:
        """Deliver event to a snapshot of the current listeners, in order."""
        for _, listener in list(self._listeners):
            try:
                listener(event)
            except Exception:
                LISTENER_FAILURES.labels(event_type=event.type.value).inc()
                logger.exception(f"Deployment event listener failed on {event.type.value}")
