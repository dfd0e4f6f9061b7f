"""Monitoring components for rollouts."""

from .metrics import (
    STAGE_EVENTS,
    ROLLBACKS,
    COMPLETIONS,
    BLUE_GREEN_SWAPS,
    CANDIDATE_TRAFFIC,
    LISTENER_FAILURES,
    ROLLBACK_FAILURES,
)

from .tracing import (
    tracer,
    setup_tracing,
    set_span_attributes,
    record_exception,
)

__all__ = [
    # Prometheus metrics
    "STAGE_EVENTS",
    "ROLLBACKS",
    "COMPLETIONS",
    "BLUE_GREEN_SWAPS",
    "CANDIDATE_TRAFFIC",
    "LISTENER_FAILURES",
    "ROLLBACK_FAILURES",
    # Tracing
    "tracer",
    "setup_tracing",
    "set_span_attributes",
    "record_exception",
]
