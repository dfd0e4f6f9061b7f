"""Example: progressive rollout behind an nginx canary ingress.

Shifts traffic to the candidate in stages, gating each stage on Prometheus
metrics and reverting the ingress weight to 0 on regression.

Expected environment variables:
- SERVICE: Service label in Prometheus (default: checkout)
- VERSION: Candidate version label
- CANARY_INGRESS: Name of the canary ingress
- MODE: canary or blue-green
- PROMETHEUS_URL / INGRESS_NAMESPACE: see src.delivery.core.config
"""
import asyncio
import os
import sys

from loguru import logger

from src.delivery.core.logging import setup_logging
from src.delivery.deployment import (
    CanaryStage,
    DeploymentEvent,
    DeploymentEventBus,
    DeploymentEventType,
    DeploymentStrategy,
    DeploymentThresholds,
    NginxIngressRouter,
    OperationTarget,
    PrometheusMetricsProvider,
    RolloutStatus,
    StageThresholds,
    create_coordinator,
)
from src.delivery.monitoring.recorder import DeploymentMetricsRecorder
from src.delivery.monitoring.tracing import setup_tracing


def audit_listener(event: DeploymentEvent) -> None:
    """Write a one-line audit entry per lifecycle event."""
    payload = event.payload
    if event.type == DeploymentEventType.STAGE_STARTED:
        logger.info(f"[audit] {event.type.value} {payload['stage'].name}")
    elif event.type in (DeploymentEventType.STAGE_PASSED, DeploymentEventType.STAGE_FAILED):
        logger.info(
            f"[audit] {event.type.value} {payload['stage'].name} "
            f"error_rate={payload['metrics'].error_rate} reasons={list(payload['analysis'].reasons)}"
        )
    elif event.type == DeploymentEventType.ROLLED_BACK:
        logger.warning(f"[audit] rolled back at {payload['stage'].name}: {payload['reasons']}")
    elif event.type in (DeploymentEventType.COMPLETED, DeploymentEventType.BLUE_GREEN_SWAPPED):
        logger.info(f"[audit] {event.type.value} {payload['strategy'].target.version}")
    else:
        raise ValueError(f"Unhandled event type: {event.type}")


async def main() -> int:
    setup_logging()
    setup_tracing()

    service = os.getenv("SERVICE", "checkout")
    version = os.getenv("VERSION", "v1.3.0")

    strategy = DeploymentStrategy(
        target=OperationTarget(name=service, version=version),
        mode=os.getenv("MODE", "canary"),
        thresholds=DeploymentThresholds(error_rate=0.01, latency_p99=500),
        stages=(
            CanaryStage(percentage=5, min_duration_ms=5 * 60_000, label="smoke"),
            CanaryStage(percentage=25, min_duration_ms=10 * 60_000, hold_after_ms=60_000),
            CanaryStage(
                percentage=100,
                min_duration_ms=15 * 60_000,
                thresholds=StageThresholds(latency_p99=400),
                label="full",
            ),
        ),
    )

    bus = DeploymentEventBus()
    bus.on(audit_listener)
    DeploymentMetricsRecorder(service).attach(bus)

    router = NginxIngressRouter(os.getenv("CANARY_INGRESS", f"{service}-canary"))
    async with PrometheusMetricsProvider(service=service, version=version) as provider:
        coordinator = create_coordinator(
            strategy,
            metrics_provider=provider,
            apply_traffic_split=router.apply,
            rollback=router.revert,
            event_bus=bus,
        )
        result = await coordinator.run()

    logger.info(f"Rollout finished: {result.to_dict()}")
    return 0 if result.status == RolloutStatus.COMPLETED else 1


if __name__ == "__main__":
    sys.exit(asyncio.run(main()))
