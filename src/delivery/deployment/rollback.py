"""Rollback execution for failed canary stages.

The revert procedure is supplied by the caller and must restore all
traffic to the last known-good version. If it raises, the error is not
absorbed: the automatic safety net itself failed and an operator has to
step in.
"""
from typing import Awaitable, Callable, Optional, Union

from loguru import logger

from src.delivery.core.callables import maybe_await
from src.delivery.monitoring.metrics import ROLLBACK_FAILURES

from .models import CanaryStage, RollbackAction


RollbackProcedure = Callable[[CanaryStage, str], Union[None, Awaitable[None]]]
RollbackCallback = Callable[[RollbackAction], Union[None, Awaitable[None]]]


class RollbackManager:
    """Runs the revert procedure and records what was done."""

    def __init__(
        self,
        rollback: RollbackProcedure,
        on_rollback: Optional[RollbackCallback] = None,
    ):
        """Initialize rollback manager.

        Args:
            rollback: Procedure reverting traffic, sync or async
            on_rollback: Optional hook receiving the recorded action
        """
        self._rollback = rollback
        self._on_rollback = on_rollback

    async def execute(self, stage: CanaryStage, reason: str) -> RollbackAction:
        """Revert traffic for a failed stage.

        Args:
            stage: Stage whose analysis failed
            reason: Joined failure reasons

        Returns:
            RollbackAction describing the completed rollback

        Raises:
            Exception: Whatever the rollback procedure raised, unchanged
        """
        logger.warning(f"Rolling back stage {stage.name}: {reason}")

        try:
            await maybe_await(self._rollback(stage, reason))
        except Exception:
            ROLLBACK_FAILURES.labels(stage=stage.name).inc()
            logger.critical(
                f"Rollback procedure failed at stage {stage.name}; manual intervention required"
            )
            raise

        action = RollbackAction(reason=reason, stage=stage)
        if self._on_rollback is not None:
            await maybe_await(self._on_rollback(action))

        logger.info(f"Rollback complete for stage {stage.name}")
        return action
