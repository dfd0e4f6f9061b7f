"""Progressive delivery control loop: plan, shift, analyze, roll back."""

from .models import (
    DEFAULT_STAGES,
    AnalysisResult,
    AnalysisStatus,
    CanaryStage,
    DeploymentMetrics,
    DeploymentMode,
    DeploymentResult,
    DeploymentStrategy,
    DeploymentThresholds,
    OperationTarget,
    RollbackAction,
    RolloutStatus,
    StageThresholds,
    TrafficSplit,
)

from .traffic import TrafficShifter
from .canary_analyzer import CanaryAnalyzer
from .events import DeploymentEvent, DeploymentEventBus, DeploymentEventType
from .rollback import RollbackManager
from .controller import CanaryController
from .coordinator import DeploymentCoordinator, create_coordinator

from .metrics_provider import PrometheusMetricsProvider, PrometheusQueryError
from .ingress import NginxIngressRouter, TrafficRoutingError

__all__ = [
    # Model
    "DEFAULT_STAGES",
    "AnalysisResult",
    "AnalysisStatus",
    "CanaryStage",
    "DeploymentMetrics",
    "DeploymentMode",
    "DeploymentResult",
    "DeploymentStrategy",
    "DeploymentThresholds",
    "OperationTarget",
    "RollbackAction",
    "RolloutStatus",
    "StageThresholds",
    "TrafficSplit",
    # Control loop
    "TrafficShifter",
    "CanaryAnalyzer",
    "DeploymentEvent",
    "DeploymentEventBus",
    "DeploymentEventType",
    "RollbackManager",
    "CanaryController",
    "DeploymentCoordinator",
    "create_coordinator",
    # Adapters
    "PrometheusMetricsProvider",
    "PrometheusQueryError",
    "NginxIngressRouter",
    "TrafficRoutingError",
]
