"""
Metric data collaborator for Chart Orchestrator.

PURPOSE: Fetch numeric series for metric ids under a filter set.
AI CONTEXT: The orchestrator only talks to this Protocol; the data API is external.

REQUEST FORMAT:
    GET {endpoint}?metrics=prs_opened,prs_merged&repository=backend-api&date=7d

RESPONSE FORMAT:
    [{"name": "prs_opened", "values": [14, 22, 25]}, ...]
    ("metricId" or "metric" are accepted in place of "name")

ERROR HANDLING:
Every failure (transport, non-2xx status, malformed body) is raised as
MetricFetchError so callers handle a single exception type.

USAGE:
    fetcher = HttpMetricFetcher("http://localhost:5173/api/dashboard")
    series = await fetcher.fetch_metrics(["prs_opened"], {"date": "7d"})
"""

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from typing import Protocol

import httpx

from .config import Config
from .models import MetricFetchError, MetricSeries

__all__ = ["MetricFetcher", "HttpMetricFetcher"]

logger = logging.getLogger(__name__)


class MetricFetcher(Protocol):
    """
    Protocol for the metric data source.

    Implementations include HttpMetricFetcher for production and in-memory
    fakes for tests.
    """

    async def fetch_metrics(
        self,
        metric_ids: Sequence[str],
        filters: Mapping[str, str],
        endpoint: str | None = None,
    ) -> list[MetricSeries]:
        """
        Fetch series for the given metrics under the given effective filters.

        Args:
            metric_ids: Metric identifiers to load.
            filters: Effective filter set (global merged with per-chart).
            endpoint: Optional URL overriding the implementation's default.

        Returns:
            One MetricSeries per metric, in request order where possible.

        Raises:
            MetricFetchError: On any transport or response failure.
        """
        ...


class HttpMetricFetcher:
    """
    Metric fetcher backed by an HTTP data API.

    Uses an httpx.AsyncClient. When no client is injected, a short-lived
    client is opened per call; inject a shared client to reuse connections
    or an httpx.MockTransport-backed client in tests.
    """

    def __init__(
        self,
        base_url: str | None = None,
        client: httpx.AsyncClient | None = None,
        timeout: float = Config.HTTP_TIMEOUT_SECONDS,
    ) -> None:
        """
        Initialize the fetcher.

        Args:
            base_url: Data endpoint. Default: Config.get_data_url().
            client: Optional shared AsyncClient (not closed by this class).
            timeout: Per-request timeout in seconds for owned clients.
        """
        self.base_url = base_url or Config.get_data_url()
        self._client = client
        self._timeout = timeout

    async def fetch_metrics(
        self,
        metric_ids: Sequence[str],
        filters: Mapping[str, str],
        endpoint: str | None = None,
    ) -> list[MetricSeries]:
        url = endpoint or self.base_url
        if not url:
            raise MetricFetchError("No metric data endpoint configured")

        params = {key: value for key, value in filters.items() if value and key != "metrics"}
        params["metrics"] = ",".join(metric_ids)

        try:
            if self._client is not None:
                response = await self._client.get(url, params=params)
            else:
                async with httpx.AsyncClient(timeout=self._timeout) as client:
                    response = await client.get(url, params=params)
            response.raise_for_status()
            payload = response.json()
        except httpx.HTTPStatusError as e:
            raise MetricFetchError(
                f"Data API returned {e.response.status_code} for {', '.join(metric_ids)}"
            ) from e
        except httpx.HTTPError as e:
            raise MetricFetchError(f"Data API request failed: {e}") from e
        except ValueError as e:
            raise MetricFetchError(f"Data API returned invalid JSON: {e}") from e

        if not isinstance(payload, list):
            raise MetricFetchError(f"Unexpected data API format: {type(payload).__name__}")
        series = [MetricSeries.from_dict(entry) for entry in payload]
        logger.debug("Fetched %d series from %s", len(series), url)
        return series
