"""Unit tests for the rollout plan and result model."""
import dataclasses

import pytest

from src.delivery.deployment.models import (
    DEFAULT_STAGES,
    AnalysisResult,
    AnalysisStatus,
    CanaryStage,
    DeploymentMode,
    DeploymentResult,
    DeploymentStrategy,
    DeploymentThresholds,
    RolloutStatus,
    StageThresholds,
)


class TestDeploymentThresholds:
    """Test threshold validation and stage overrides."""

    def test_invalid_thresholds(self):
        """Test validation of invalid thresholds."""
        with pytest.raises(ValueError, match="cannot be negative"):
            DeploymentThresholds(error_rate=-0.1)

        with pytest.raises(ValueError, match="cannot be negative"):
            DeploymentThresholds(error_rate=0.01, latency_p99=-1)

        with pytest.raises(ValueError, match="between 0 and 1"):
            DeploymentThresholds(error_rate=0.01, throughput_drop=1.5)

    @pytest.mark.parametrize("overrides,message", [
        ({"error_rate": -0.01}, "cannot be negative"),
        ({"latency_p50": -5}, "cannot be negative"),
        ({"throughput_drop": -0.1}, "between 0 and 1"),
        ({"throughput_drop": 2}, "between 0 and 1"),
    ])
    def test_invalid_stage_overrides(self, overrides, message):
        """Test stage overrides get the same validation as the baseline."""
        with pytest.raises(ValueError, match=message):
            StageThresholds(**overrides)

        with pytest.raises(ValueError, match=message):
            DeploymentStrategy.from_dict({
                "target": {"name": "search", "version": "v3"},
                "thresholds": {"error_rate": 0.01},
                "stages": [{"percentage": 10, "min_duration_ms": 1, "thresholds": overrides}],
            })

    def test_merged_overrides_only_set_fields(self):
        """Test stage overrides replace only the fields they define."""
        baseline = DeploymentThresholds(error_rate=0.01, latency_p95=300)
        merged = baseline.merged(StageThresholds(latency_p95=500, latency_p99=900))

        assert merged.error_rate == 0.01
        assert merged.latency_p95 == 500
        assert merged.latency_p99 == 900
        assert baseline.latency_p95 == 300

    def test_merged_without_overrides(self):
        """Test missing or empty overrides return the baseline."""
        baseline = DeploymentThresholds(error_rate=0.01)

        assert baseline.merged(None) is baseline
        assert baseline.merged(StageThresholds()) is baseline


class TestDeploymentStrategy:
    """Test strategy construction."""

    def test_mode_string_coerced(self, target):
        strategy = DeploymentStrategy(
            target=target,
            mode="blue-green",
            thresholds=DeploymentThresholds(error_rate=0.01),
        )

        assert strategy.mode is DeploymentMode.BLUE_GREEN
        assert strategy.stages is None

    def test_unknown_mode_rejected(self, target):
        with pytest.raises(ValueError):
            DeploymentStrategy(
                target=target,
                mode="rolling",
                thresholds=DeploymentThresholds(error_rate=0.01),
            )

    def test_stages_frozen_as_tuple(self, target):
        stages = [CanaryStage(percentage=50, min_duration_ms=10)]
        strategy = DeploymentStrategy(
            target=target,
            mode="canary",
            thresholds=DeploymentThresholds(error_rate=0.01),
            stages=stages,
        )
        stages.append(CanaryStage(percentage=100, min_duration_ms=10))

        assert strategy.stages == (CanaryStage(percentage=50, min_duration_ms=10),)

    def test_strategy_is_immutable(self, canary_strategy):
        with pytest.raises(dataclasses.FrozenInstanceError):
            canary_strategy.mode = DeploymentMode.BLUE_GREEN

    def test_from_dict(self):
        """Test creation from plain configuration data."""
        strategy = DeploymentStrategy.from_dict({
            "target": {"name": "search", "version": "v3"},
            "mode": "blue-green",
            "thresholds": {"error_rate": 0.02, "latency_p99": 800},
            "stages": [
                {"percentage": 25, "min_duration_ms": 60_000, "label": "quarter"},
                {
                    "percentage": 100,
                    "min_duration_ms": 120_000,
                    "hold_after_ms": 5_000,
                    "thresholds": {"latency_p99": 1000},
                },
            ],
            "metadata": {"ticket": "OPS-12"},
        })

        assert strategy.target.name == "search"
        assert strategy.mode is DeploymentMode.BLUE_GREEN
        assert strategy.thresholds.latency_p99 == 800
        assert strategy.stages[0].name == "quarter"
        assert strategy.stages[1].thresholds == StageThresholds(latency_p99=1000)
        assert strategy.metadata == {"ticket": "OPS-12"}

        data = strategy.to_dict()
        assert data["mode"] == "blue-green"
        assert data["stages"][1]["hold_after_ms"] == 5_000

    def test_to_dict_from_dict_roundtrip(self, target):
        strategy = DeploymentStrategy(
            target=dataclasses.replace(target, description="checkout API"),
            mode="blue-green",
            thresholds=DeploymentThresholds(error_rate=0.02, latency_p95=300, throughput_drop=0.2),
            stages=(
                CanaryStage(percentage=5, min_duration_ms=1_000, label="smoke"),
                CanaryStage(
                    percentage=100,
                    min_duration_ms=2_000,
                    hold_after_ms=500,
                    thresholds=StageThresholds(latency_p95=450),
                ),
            ),
            metadata={"ticket": "OPS-7"},
        )

        restored = DeploymentStrategy.from_dict(strategy.to_dict())

        assert restored == strategy
        assert restored.target.description == "checkout API"
        assert restored.stages[1].thresholds == StageThresholds(latency_p95=450)

    def test_to_dict_omits_custom_evaluator(self, target):
        strategy = DeploymentStrategy(
            target=target,
            mode="canary",
            thresholds=DeploymentThresholds(error_rate=0.01, custom_evaluator=lambda m: True),
            stages=(
                CanaryStage(
                    percentage=50,
                    min_duration_ms=1,
                    thresholds=StageThresholds(custom_evaluator=lambda m: False),
                ),
            ),
        )

        data = strategy.to_dict()

        assert "custom_evaluator" not in data["thresholds"]
        assert "custom_evaluator" not in data["stages"][0]["thresholds"]
        restored = DeploymentStrategy.from_dict(data)
        assert restored.thresholds.custom_evaluator is None
        assert restored.stages[0].thresholds == StageThresholds()


class TestDefaultStages:
    """Test the default rollout table."""

    def test_default_table(self):
        assert [(s.percentage, s.min_duration_ms) for s in DEFAULT_STAGES] == [
            (1, 300_000),
            (10, 300_000),
            (50, 600_000),
            (100, 900_000),
        ]

    def test_default_table_is_immutable(self):
        assert isinstance(DEFAULT_STAGES, tuple)
        with pytest.raises(dataclasses.FrozenInstanceError):
            DEFAULT_STAGES[0].percentage = 99


class TestResults:
    """Test analysis and rollout results."""

    def test_analysis_from_reasons(self):
        passed = AnalysisResult.from_reasons([])
        failed = AnalysisResult.from_reasons(["error rate 0.02 exceeds threshold 0.01"])

        assert passed.status is AnalysisStatus.PASS
        assert passed.reasons == ()
        assert passed.passed
        assert failed.status is AnalysisStatus.FAIL
        assert not failed.passed
        assert failed.to_dict() == {
            "status": "fail",
            "reasons": ["error rate 0.02 exceeds threshold 0.01"],
        }

    def test_result_to_dict(self):
        stage = CanaryStage(percentage=10, min_duration_ms=1)
        result = DeploymentResult(
            status=RolloutStatus.ROLLED_BACK,
            failed_stage=stage,
            reasons=("boom",),
        )

        assert result.to_dict() == {
            "status": "rolled_back",
            "failed_stage": stage.to_dict(),
            "reasons": ["boom"],
        }
        assert DeploymentResult(status=RolloutStatus.COMPLETED).to_dict()["failed_stage"] is None
