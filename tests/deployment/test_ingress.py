"""Unit tests for nginx ingress canary-weight routing."""
import pytest
from unittest.mock import AsyncMock, MagicMock, patch

from src.delivery.deployment.ingress import (
    CANARY_WEIGHT_ANNOTATION,
    NginxIngressRouter,
    TrafficRoutingError,
)
from src.delivery.deployment.models import CanaryStage, TrafficSplit


STAGE = CanaryStage(percentage=25, min_duration_ms=1)


def _process(returncode=0, stderr=b""):
    process = MagicMock()
    process.returncode = returncode
    process.communicate = AsyncMock(return_value=(None, stderr))
    return process


class TestNginxIngressRouter:
    """Test kubectl annotation commands."""

    @pytest.fixture
    def router(self):
        return NginxIngressRouter("checkout-canary", namespace="payments", kubectl="kubectl")

    @pytest.mark.asyncio
    async def test_apply_sets_candidate_weight(self, router):
        with patch("asyncio.create_subprocess_exec", AsyncMock(return_value=_process())) as mock_exec:
            await router.apply(STAGE, TrafficSplit(stable=75, candidate=25))

        args = mock_exec.await_args.args
        assert args == (
            "kubectl", "annotate", "ingress", "checkout-canary",
            f"{CANARY_WEIGHT_ANNOTATION}=25",
            "--overwrite",
            "-n", "payments",
        )

    @pytest.mark.asyncio
    async def test_revert_sets_zero_weight(self, router):
        with patch("asyncio.create_subprocess_exec", AsyncMock(return_value=_process())) as mock_exec:
            await router.revert(STAGE, "error rate 0.2 exceeds threshold 0.01")

        assert f"{CANARY_WEIGHT_ANNOTATION}=0" in mock_exec.await_args.args

    @pytest.mark.asyncio
    async def test_kubectl_failure_raises(self, router):
        process = _process(returncode=1, stderr=b"ingress not found")
        with patch("asyncio.create_subprocess_exec", AsyncMock(return_value=process)):
            with pytest.raises(TrafficRoutingError, match="ingress not found"):
                await router.set_weight(50)

    def test_defaults_from_settings(self):
        router = NginxIngressRouter("web-canary")

        assert router.namespace == "default"
        assert router.kubectl == "kubectl"
