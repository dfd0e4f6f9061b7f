"""Single-stage canary execution."""
from typing import Awaitable, Callable, List, Sequence

from loguru import logger

from src.delivery.monitoring.tracing import tracer, set_span_attributes

from .canary_analyzer import CanaryAnalyzer
from .events import DeploymentEvent, DeploymentEventBus, DeploymentEventType
from .models import (
    DEFAULT_STAGES,
    AnalysisResult,
    CanaryStage,
    DeploymentMetrics,
    DeploymentStrategy,
)


# Waits roughly window_ms, then returns the aggregate for that window
MetricsProvider = Callable[[CanaryStage, int], Awaitable[DeploymentMetrics]]


class CanaryController:
    """Runs one stage at a time: observe, analyze, report."""

    def __init__(
        self,
        strategy: DeploymentStrategy,
        analyzer: CanaryAnalyzer,
        metrics_provider: MetricsProvider,
        event_bus: DeploymentEventBus,
        default_stages: Sequence[CanaryStage] = DEFAULT_STAGES,
    ):
        self.strategy = strategy
        self.analyzer = analyzer
        self.metrics_provider = metrics_provider
        self.event_bus = event_bus
        self._stages = tuple(strategy.stages or default_stages)

    def get_stage_list(self) -> List[CanaryStage]:
        """Return the resolved rollout plan as a new list."""
        return list(self._stages)

    async def run_stage(self, stage: CanaryStage) -> AnalysisResult:
        """Observe one stage window and analyze it.

        Emits stage_started before the metrics window opens and exactly one
        of stage_passed / stage_failed afterwards. Metrics provider errors
        propagate without a result event.
        """
        with tracer.start_as_current_span("canary.stage") as span:
            set_span_attributes(
                span,
                stage=stage.name,
                percentage=float(stage.percentage),
                window_ms=stage.min_duration_ms,
            )
            self.event_bus.emit(DeploymentEvent(
                type=DeploymentEventType.STAGE_STARTED,
                payload={"stage": stage},
            ))
            logger.info(
                f"Stage {stage.name} started, observing for {stage.min_duration_ms}ms"
            )

            metrics = await self.metrics_provider(stage, stage.min_duration_ms)
            analysis = self.analyzer.evaluate(stage, metrics)
            set_span_attributes(span, analysis_status=analysis.status.value)

            event_type = (
                DeploymentEventType.STAGE_PASSED if analysis.passed
                else DeploymentEventType.STAGE_FAILED
            )
            self.event_bus.emit(DeploymentEvent(
                type=event_type,
                payload={"stage": stage, "metrics": metrics, "analysis": analysis},
            ))

            if analysis.passed:
                logger.info(f"Stage {stage.name} passed")
            else:
                logger.warning(f"Stage {stage.name} failed: {list(analysis.reasons)}")
            return analysis
