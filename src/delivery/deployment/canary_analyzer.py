"""Threshold analysis for canary stages.

Turns one stage's observation window into a pass/fail decision with
human-readable reasons. A failing analysis is ordinary data that drives
the automatic rollback path; nothing here raises for a regression.

Example:
    >>> analyzer = CanaryAnalyzer(DeploymentThresholds(error_rate=0.01))
    >>> result = analyzer.evaluate(stage, metrics)
    >>> if not result.passed:
    >>>     print(", ".join(result.reasons))
"""
from typing import List, Optional

from loguru import logger

from .models import (
    AnalysisResult,
    CanaryStage,
    DeploymentMetrics,
    DeploymentThresholds,
)


# (threshold field, metric attribute, label used in reasons, unit)
_CEILING_CHECKS = (
    ("error_rate", "error_rate", "error rate", ""),
    ("latency_p50", "latency_p50", "P50 latency", "ms"),
    ("latency_p95", "latency_p95", "P95 latency", "ms"),
    ("latency_p99", "latency_p99", "P99 latency", "ms"),
)


class CanaryAnalyzer:
    """Evaluates stage metrics against baseline thresholds.

    Stateless apart from its configuration, so identical inputs always
    produce identical results.
    """

    def __init__(
        self,
        thresholds: DeploymentThresholds,
        baseline: Optional[DeploymentMetrics] = None,
    ):
        """Initialize canary analyzer.

        Args:
            thresholds: Baseline pass/fail criteria
            baseline: Pre-deployment observation; throughput drop is
                measured against its throughput
        """
        self.thresholds = thresholds
        self.baseline = baseline

    def evaluate(self, stage: CanaryStage, metrics: DeploymentMetrics) -> AnalysisResult:
        """Evaluate one stage observation.

        Args:
            stage: Stage being analyzed; its thresholds override the baseline
            metrics: Observation for the stage window

        Returns:
            AnalysisResult, failing iff at least one reason was collected
        """
        effective = self.thresholds.merged(stage.thresholds)
        reasons: List[str] = []

        if metrics.sample_size == 0:
            reasons.append("insufficient data: sample size 0")

        for threshold_name, metric_name, label, unit in _CEILING_CHECKS:
            limit = getattr(effective, threshold_name)
            if limit is None:
                continue
            value = getattr(metrics, metric_name)
            if value > limit:
                reasons.append(
                    f"{label} {value}{unit} exceeds threshold {limit}{unit}"
                )

        drop_reason = self._check_throughput_drop(effective, metrics)
        if drop_reason:
            reasons.append(drop_reason)

        if effective.custom_evaluator is not None and not effective.custom_evaluator(metrics):
            reasons.append("custom evaluator rejected metrics")

        result = AnalysisResult.from_reasons(reasons)
        logger.debug(
            f"Stage {stage.name} analysis: {result.status.value} {list(result.reasons)}"
        )
        return result

    def _check_throughput_drop(
        self,
        thresholds: DeploymentThresholds,
        metrics: DeploymentMetrics,
    ) -> Optional[str]:
        """Compare throughput with the pre-deployment baseline.

        Returns:
            Failure reason, or None when the check passes or cannot run
        """
        if thresholds.throughput_drop is None:
            return None
        if self.baseline is None or self.baseline.throughput <= 0:
            logger.debug("Throughput drop threshold set without a usable baseline, skipping")
            return None

        drop = (self.baseline.throughput - metrics.throughput) / self.baseline.throughput
        if drop > thresholds.throughput_drop:
            return (
                f"throughput dropped {drop:.2%} from baseline {self.baseline.throughput} "
                f"(threshold: {thresholds.throughput_drop:.2%})"
            )
        return None
