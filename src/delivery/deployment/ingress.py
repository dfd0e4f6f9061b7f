"""nginx ingress canary-weight routing.

Shifts traffic by annotating the canary ingress with
``nginx.ingress.kubernetes.io/canary-weight``. ``apply`` matches the
traffic-split hook and ``revert`` matches the rollback procedure.
"""
import asyncio
from typing import List, Optional

from loguru import logger

from src.delivery.core.config import settings

from .models import CanaryStage, TrafficSplit


CANARY_WEIGHT_ANNOTATION = "nginx.ingress.kubernetes.io/canary-weight"


class TrafficRoutingError(RuntimeError):
    """kubectl did not accept the routing change."""


class NginxIngressRouter:
    """Routes candidate traffic through an nginx canary ingress."""

    def __init__(
        self,
        ingress_name: str,
        namespace: Optional[str] = None,
        kubectl: Optional[str] = None,
    ):
        self.ingress_name = ingress_name
        self.namespace = namespace or settings.INGRESS_NAMESPACE
        self.kubectl = kubectl or settings.KUBECTL_BIN

    def _annotate_command(self, weight: int) -> List[str]:
        return [
            self.kubectl, "annotate", "ingress", self.ingress_name,
            f"{CANARY_WEIGHT_ANNOTATION}={weight}",
            "--overwrite",
            "-n", self.namespace,
        ]

    async def set_weight(self, weight: int) -> None:
        """Patch the ingress to send weight% of traffic to the candidate."""
        logger.info(f"Setting canary weight of {self.namespace}/{self.ingress_name} to {weight}%")
        process = await asyncio.create_subprocess_exec(
            *self._annotate_command(weight),
            stdout=asyncio.subprocess.DEVNULL,
            stderr=asyncio.subprocess.PIPE,
        )
        _, stderr = await process.communicate()
        if process.returncode != 0:
            message = stderr.decode(errors="replace").strip()
            logger.error(f"kubectl annotate failed ({process.returncode}): {message}")
            raise TrafficRoutingError(
                f"Failed to set canary weight {weight} on {self.ingress_name}: {message}"
            )

    async def apply(self, stage: CanaryStage, split: TrafficSplit) -> None:
        await self.set_weight(int(round(split.candidate)))

    async def revert(self, stage: CanaryStage, reason: str) -> None:
        logger.warning(f"Reverting {self.ingress_name} to stable after stage {stage.name}: {reason}")
        await self.set_weight(0)
