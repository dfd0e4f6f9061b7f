"""Stage to traffic split mapping."""
from .models import CanaryStage, TrafficSplit


class TrafficShifter:
    """Maps a rollout stage onto a stable/candidate traffic split."""

    def compute_split(self, stage: CanaryStage) -> TrafficSplit:
        candidate = min(max(stage.percentage, 0), 100)
        return TrafficSplit(stable=100 - candidate, candidate=candidate)
