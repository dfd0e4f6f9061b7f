"""Top-level progressive delivery state machine.

For each stage in order: apply the traffic split, run the canary stage,
and on a failed analysis roll back and stop. When every stage passes the
rollout completes, signalling a blue-green swap first when the strategy
asks for one.

Infrastructure errors (traffic routing, metrics, rollback) are never
caught here. There is no retry and no per-stage deadline; wrap ``run()``
in ``asyncio.wait_for`` when a bound is needed.

Example:
    >>> coordinator = create_coordinator(
    >>>     strategy,
    >>>     metrics_provider=PrometheusMetricsProvider(),
    >>>     apply_traffic_split=router.apply,
    >>>     rollback=router.revert,
    >>> )
    >>> result = await coordinator.run()
"""
import asyncio
import uuid
from typing import Awaitable, Callable, Optional, Union

from loguru import logger

from src.delivery.core.callables import maybe_await
from src.delivery.core.logging import rollout_id
from src.delivery.monitoring.tracing import tracer, set_span_attributes, record_exception

from .canary_analyzer import CanaryAnalyzer
from .controller import CanaryController, MetricsProvider
from .events import DeploymentEvent, DeploymentEventBus, DeploymentEventType
from .models import (
    CanaryStage,
    DeploymentMetrics,
    DeploymentMode,
    DeploymentResult,
    DeploymentStrategy,
    RolloutStatus,
    TrafficSplit,
)
from .rollback import RollbackCallback, RollbackManager, RollbackProcedure
from .traffic import TrafficShifter


ApplyTrafficSplit = Callable[[CanaryStage, TrafficSplit], Union[None, Awaitable[None]]]


class DeploymentCoordinator:
    """Drives a full rollout for one strategy.

    Holds no state between runs; calling ``run()`` again starts over from
    the first stage.
    """

    def __init__(
        self,
        strategy: DeploymentStrategy,
        controller: CanaryController,
        traffic_shifter: TrafficShifter,
        rollback_manager: RollbackManager,
        event_bus: DeploymentEventBus,
        apply_traffic_split: ApplyTrafficSplit,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.strategy = strategy
        self.controller = controller
        self.traffic_shifter = traffic_shifter
        self.rollback_manager = rollback_manager
        self.event_bus = event_bus
        self.apply_traffic_split = apply_traffic_split
        self._sleep = sleep

    async def run(self) -> DeploymentResult:
        """Execute every stage until one fails or all pass.

        Returns:
            DeploymentResult with status completed, or rolled_back plus the
            failed stage and its reasons
        """
        token = rollout_id.set(uuid.uuid4().hex)
        target = self.strategy.target
        try:
            with tracer.start_as_current_span("deployment.run") as span:
                set_span_attributes(
                    span,
                    target=target.name,
                    version=target.version,
                    mode=self.strategy.mode.value,
                )
                logger.info(
                    f"Starting {self.strategy.mode.value} rollout of "
                    f"{target.name}@{target.version}"
                )
                try:
                    result = await self._run_stages()
                except Exception as e:
                    logger.error(f"Rollout of {target.name}@{target.version} aborted: {e!r}")
                    record_exception(span, e)
                    raise
                set_span_attributes(span, status=result.status.value)
                return result
        finally:
            rollout_id.reset(token)

    async def _run_stages(self) -> DeploymentResult:
        stages = self.controller.get_stage_list()
        for index, stage in enumerate(stages):
            split = self.traffic_shifter.compute_split(stage)
            logger.info(
                f"Stage {stage.name}: shifting traffic to "
                f"stable={split.stable}% candidate={split.candidate}%"
            )
            await maybe_await(self.apply_traffic_split(stage, split))

            analysis = await self.controller.run_stage(stage)
            if not analysis.passed:
                await self.rollback_manager.execute(stage, ", ".join(analysis.reasons))
                self.event_bus.emit(DeploymentEvent(
                    type=DeploymentEventType.ROLLED_BACK,
                    payload={"stage": stage, "reasons": list(analysis.reasons)},
                ))
                return DeploymentResult(
                    status=RolloutStatus.ROLLED_BACK,
                    failed_stage=stage,
                    reasons=analysis.reasons,
                )

            if stage.hold_after_ms and index < len(stages) - 1:
                logger.info(f"Holding {stage.hold_after_ms}ms after stage {stage.name}")
                await self._sleep(stage.hold_after_ms / 1000)

        if self.strategy.mode == DeploymentMode.BLUE_GREEN:
            self.event_bus.emit(DeploymentEvent(
                type=DeploymentEventType.BLUE_GREEN_SWAPPED,
                payload={"strategy": self.strategy},
            ))
        self.event_bus.emit(DeploymentEvent(
            type=DeploymentEventType.COMPLETED,
            payload={"strategy": self.strategy},
        ))
        target = self.strategy.target
        logger.info(f"Rollout of {target.name}@{target.version} completed")
        return DeploymentResult(status=RolloutStatus.COMPLETED)


def create_coordinator(
    strategy: DeploymentStrategy,
    metrics_provider: MetricsProvider,
    apply_traffic_split: ApplyTrafficSplit,
    rollback: RollbackProcedure,
    on_rollback: Optional[RollbackCallback] = None,
    event_bus: Optional[DeploymentEventBus] = None,
    baseline: Optional[DeploymentMetrics] = None,
) -> DeploymentCoordinator:
    """Wire analyzer, controller, shifter and rollback manager for a strategy.

    Args:
        strategy: Rollout plan and thresholds
        metrics_provider: Async observation window per stage
        apply_traffic_split: Routing hook, sync or async
        rollback: Revert procedure, sync or async
        on_rollback: Optional hook receiving the RollbackAction
        event_bus: Bus to publish on; a new one is created when omitted
        baseline: Pre-deployment observation for throughput drop checks

    Returns:
        Ready-to-run DeploymentCoordinator
    """
    bus = event_bus or DeploymentEventBus()
    analyzer = CanaryAnalyzer(strategy.thresholds, baseline=baseline)
    controller = CanaryController(strategy, analyzer, metrics_provider, bus)
    return DeploymentCoordinator(
        strategy=strategy,
        controller=controller,
        traffic_shifter=TrafficShifter(),
        rollback_manager=RollbackManager(rollback, on_rollback),
        event_bus=bus,
        apply_traffic_split=apply_traffic_split,
    )
