"""Rollout plan, observation and outcome types.

Configuration objects are frozen dataclasses: a strategy is created once
per rollout request and read-only for the duration of a run. Observation
and outcome objects are created fresh per run and discarded with it.
"""
from dataclasses import dataclass, field, fields, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable, Dict, Mapping, Optional, Sequence, Tuple


# Injected predicate; returns False when the observation is unacceptable
CustomEvaluator = Callable[["DeploymentMetrics"], bool]


class DeploymentMode(str, Enum):
    """How the candidate becomes live once every stage passes."""
    CANARY = "canary"
    BLUE_GREEN = "blue-green"


class AnalysisStatus(str, Enum):
    PASS = "pass"
    FAIL = "fail"


class RolloutStatus(str, Enum):
    """Terminal state of a coordinator run."""
    COMPLETED = "completed"
    ROLLED_BACK = "rolled_back"


@dataclass(frozen=True)
class OperationTarget:
    """Identity of the thing being deployed."""
    name: str
    version: str
    namespace: Optional[str] = None
    description: Optional[str] = None


def _validate_thresholds(thresholds) -> None:
    for name in ("error_rate", "latency_p50", "latency_p95", "latency_p99"):
        value = getattr(thresholds, name)
        if value is not None and value < 0:
            raise ValueError(f"Threshold {name} cannot be negative")
    drop = thresholds.throughput_drop
    if drop is not None and not 0 <= drop <= 1:
        raise ValueError("Throughput drop threshold must be between 0 and 1")


def _thresholds_to_dict(thresholds) -> Dict[str, Any]:
    # custom_evaluator is code, not configuration
    return {
        f.name: getattr(thresholds, f.name)
        for f in fields(thresholds)
        if f.name != "custom_evaluator"
    }


@dataclass(frozen=True)
class StageThresholds:
    """Per-stage partial override of the baseline thresholds.

    Only fields that are set replace the baseline value.
    """
    error_rate: Optional[float] = None
    latency_p50: Optional[float] = None
    latency_p95: Optional[float] = None
    latency_p99: Optional[float] = None
    throughput_drop: Optional[float] = None
    custom_evaluator: Optional[CustomEvaluator] = None

    def __post_init__(self):
        _validate_thresholds(self)

    def to_dict(self) -> Dict[str, Any]:
        return _thresholds_to_dict(self)


@dataclass(frozen=True)
class DeploymentThresholds:
    """Baseline pass/fail criteria.

    Rates are fractions (0.01 == 1%), latencies are milliseconds.
    Fields left as None are not checked.
    """
    error_rate: float
    latency_p50: Optional[float] = None
    latency_p95: Optional[float] = None
    latency_p99: Optional[float] = None
    throughput_drop: Optional[float] = None
    custom_evaluator: Optional[CustomEvaluator] = None

    def __post_init__(self):
        """Validate thresholds are reasonable."""
        _validate_thresholds(self)

    def to_dict(self) -> Dict[str, Any]:
        """Serializable thresholds; a custom evaluator is left out."""
        return _thresholds_to_dict(self)

    def merged(self, overrides: Optional[StageThresholds]) -> "DeploymentThresholds":
        """Return thresholds with every field set in overrides applied."""
        if overrides is None:
            return self
        changes = {
            f.name: getattr(overrides, f.name)
            for f in fields(overrides)
            if getattr(overrides, f.name) is not None
        }
        return replace(self, **changes) if changes else self


@dataclass(frozen=True)
class CanaryStage:
    """One rollout step: a traffic percentage and its observation window."""
    percentage: float
    min_duration_ms: int
    hold_after_ms: Optional[int] = None
    thresholds: Optional[StageThresholds] = None
    label: Optional[str] = None

    @property
    def name(self) -> str:
        return self.label or f"{self.percentage:g}%"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "percentage": self.percentage,
            "min_duration_ms": self.min_duration_ms,
            "hold_after_ms": self.hold_after_ms,
            "thresholds": self.thresholds.to_dict() if self.thresholds else None,
            "label": self.label,
        }


DEFAULT_STAGES: Tuple[CanaryStage, ...] = (
    CanaryStage(percentage=1, min_duration_ms=5 * 60_000),
    CanaryStage(percentage=10, min_duration_ms=5 * 60_000),
    CanaryStage(percentage=50, min_duration_ms=10 * 60_000),
    CanaryStage(percentage=100, min_duration_ms=15 * 60_000),
)


@dataclass(frozen=True)
class DeploymentStrategy:
    """Root rollout configuration.

    ``stages`` keeps the caller's order; an empty or missing list means the
    default stage table is used.
    """
    target: OperationTarget
    mode: DeploymentMode
    thresholds: DeploymentThresholds
    stages: Optional[Tuple[CanaryStage, ...]] = None
    metadata: Optional[Mapping[str, Any]] = None

    def __post_init__(self):
        object.__setattr__(self, "mode", DeploymentMode(self.mode))
        if self.stages is not None:
            object.__setattr__(self, "stages", tuple(self.stages))

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "DeploymentStrategy":
        """Create from plain configuration data (e.g. parsed YAML/JSON)."""
        stages = data.get("stages")
        return cls(
            target=OperationTarget(**data["target"]),
            mode=data.get("mode", DeploymentMode.CANARY),
            thresholds=DeploymentThresholds(**data["thresholds"]),
            stages=None if stages is None else tuple(
                _stage_from_dict(stage) for stage in stages
            ),
            metadata=data.get("metadata"),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "target": {
                "name": self.target.name,
                "version": self.target.version,
                "namespace": self.target.namespace,
                "description": self.target.description,
            },
            "mode": self.mode.value,
            "thresholds": self.thresholds.to_dict(),
            "stages": None if self.stages is None else [s.to_dict() for s in self.stages],
            "metadata": dict(self.metadata) if self.metadata else None,
        }


def _stage_from_dict(data: Dict[str, Any]) -> CanaryStage:
    overrides = data.get("thresholds")
    return CanaryStage(
        percentage=data["percentage"],
        min_duration_ms=data["min_duration_ms"],
        hold_after_ms=data.get("hold_after_ms"),
        thresholds=StageThresholds(**overrides) if overrides else None,
        label=data.get("label"),
    )


@dataclass(frozen=True)
class DeploymentMetrics:
    """Aggregated observation for one stage window."""
    error_rate: float
    latency_p50: float
    latency_p95: float
    latency_p99: float
    throughput: float
    sample_size: Optional[int] = None
    timestamp: Optional[datetime] = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "error_rate": self.error_rate,
            "latency_p50": self.latency_p50,
            "latency_p95": self.latency_p95,
            "latency_p99": self.latency_p99,
            "throughput": self.throughput,
            "sample_size": self.sample_size,
            "timestamp": self.timestamp.isoformat() if self.timestamp else None,
        }


@dataclass(frozen=True)
class TrafficSplit:
    """Percent of traffic per version; always sums to 100."""
    stable: float
    candidate: float


@dataclass(frozen=True)
class AnalysisResult:
    status: AnalysisStatus
    reasons: Tuple[str, ...] = ()

    @property
    def passed(self) -> bool:
        return self.status == AnalysisStatus.PASS

    @classmethod
    def from_reasons(cls, reasons: Sequence[str]) -> "AnalysisResult":
        if reasons:
            return cls(status=AnalysisStatus.FAIL, reasons=tuple(reasons))
        return cls(status=AnalysisStatus.PASS)

    def to_dict(self) -> Dict[str, Any]:
        return {"status": self.status.value, "reasons": list(self.reasons)}


@dataclass(frozen=True)
class RollbackAction:
    reason: str
    stage: CanaryStage
    triggered_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


@dataclass(frozen=True)
class DeploymentResult:
    """Outcome of DeploymentCoordinator.run()."""
    status: RolloutStatus
    failed_stage: Optional[CanaryStage] = None
    reasons: Tuple[str, ...] = ()

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "status": self.status.value,
            "failed_stage": self.failed_stage.to_dict() if self.failed_stage else None,
            "reasons": list(self.reasons),
        }
