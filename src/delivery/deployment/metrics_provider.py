"""Prometheus-backed metrics provider for canary stages.

Waits out the stage observation window, then queries Prometheus for the
candidate version's aggregates over that window. Query failures are
infrastructure failures and propagate; an empty result vector is treated
as "no data" and reported as a zero value.

Example:
    >>> async with PrometheusMetricsProvider(service="checkout", version="v2") as provider:
    >>>     coordinator = create_coordinator(strategy, provider, apply, revert)
    >>>     await coordinator.run()
"""
import asyncio
import math
import warnings
from datetime import datetime, timezone
from typing import Awaitable, Callable, Dict, Optional

import httpx
from loguru import logger

from src.delivery.core.config import settings

from .models import CanaryStage, DeploymentMetrics


DEFAULT_QUERIES: Dict[str, str] = {
    "latency_p50": 'histogram_quantile(0.50, sum(rate(http_request_duration_seconds_bucket{{service="{service}",version="{version}"}}[{window}])) by (le)) * 1000',
    "latency_p95": 'histogram_quantile(0.95, sum(rate(http_request_duration_seconds_bucket{{service="{service}",version="{version}"}}[{window}])) by (le)) * 1000',
    "latency_p99": 'histogram_quantile(0.99, sum(rate(http_request_duration_seconds_bucket{{service="{service}",version="{version}"}}[{window}])) by (le)) * 1000',
    "error_rate": 'sum(rate(http_requests_total{{service="{service}",version="{version}",status_code=~"5.."}}[{window}])) / sum(rate(http_requests_total{{service="{service}",version="{version}"}}[{window}]))',
    "throughput": 'sum(rate(http_requests_total{{service="{service}",version="{version}"}}[{window}]))',
    "sample_size": 'sum(increase(http_requests_total{{service="{service}",version="{version}"}}[{window}]))',
}


class PrometheusQueryError(RuntimeError):
    """Prometheus answered, but not with a successful query result."""


def _count(value: float) -> int:
    # increase() extrapolates, so any observed traffic counts as at least one request
    return math.ceil(value) if value > 0 else 0


class PrometheusMetricsProvider:
    """Observation window backed by Prometheus instant queries.

    Instances are async callables matching the metrics provider contract
    ``(stage, window_ms) -> DeploymentMetrics``.
    """

    def __init__(
        self,
        service: str,
        version: str,
        prometheus_url: Optional[str] = None,
        timeout: Optional[float] = None,
        queries: Optional[Dict[str, str]] = None,
        client: Optional[httpx.AsyncClient] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        """Initialize metrics provider.

        Args:
            service: Service label of the candidate
            version: Version label of the candidate
            prometheus_url: Prometheus server URL
            timeout: Request timeout in seconds
            queries: PromQL templates keyed by metric field
            client: Preconfigured HTTP client (tests, shared pools)
            sleep: Coroutine used to wait out the window
        """
        self.service = service
        self.version = version
        self.prometheus_url = (prometheus_url or settings.PROMETHEUS_URL).rstrip("/")
        self.queries = queries or DEFAULT_QUERIES
        self.client = client or httpx.AsyncClient(
            timeout=timeout or settings.PROMETHEUS_TIMEOUT
        )
        self._sleep = sleep

    async def __call__(self, stage: CanaryStage, window_ms: int) -> DeploymentMetrics:
        """Wait for the window to elapse, then fetch its aggregates.

        Raises:
            httpx.HTTPError: If Prometheus cannot be reached
            PrometheusQueryError: If a query is rejected
        """
        logger.info(f"Observing {self.service}@{self.version} for {window_ms}ms at stage {stage.name}")
        await self._sleep(window_ms / 1000)

        window = f"{max(1, math.ceil(window_ms / 1000))}s"
        values = {}
        for metric_name, template in self.queries.items():
            query = template.format(service=self.service, version=self.version, window=window)
            values[metric_name] = await self._query_prometheus(query)
            logger.debug(f"{metric_name} for {self.version}: {values[metric_name]}")

        return DeploymentMetrics(
            error_rate=values.get("error_rate", 0.0),
            latency_p50=values.get("latency_p50", 0.0),
            latency_p95=values.get("latency_p95", 0.0),
            latency_p99=values.get("latency_p99", 0.0),
            throughput=values.get("throughput", 0.0),
            sample_size=_count(values["sample_size"]) if "sample_size" in values else None,
            timestamp=datetime.now(timezone.utc),
        )

    async def _query_prometheus(self, query: str) -> float:
        """Execute Prometheus query and return value.

        Args:
            query: PromQL query string

        Returns:
            Metric value as float, 0.0 when there is no data
        """
        url = f"{self.prometheus_url}/api/v1/query"
        response = await self.client.get(url, params={"query": query})
        response.raise_for_status()

        data = response.json()
        if data.get("status") != "success":
            raise PrometheusQueryError(f"Prometheus query failed: {data}")

        result = data["data"]["result"]
        if not result:
            warnings.warn(f"No data returned for query: {query}")
            return 0.0

        value_str = result[0]["value"][1]
        try:
            value = float(value_str)
        except (ValueError, TypeError):
            warnings.warn(f"Invalid metric value: {value_str}")
            return 0.0

        # Ratios over an idle window come back as NaN
        if math.isnan(value):
            return 0.0
        return value

    async def close(self):
        """Close HTTP client."""
        await self.client.aclose()

    async def __aenter__(self) -> "PrometheusMetricsProvider":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()
