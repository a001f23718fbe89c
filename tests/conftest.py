"""
Pytest configuration and shared fixtures for Chart Orchestrator tests.

This module contains:
- FakeMetricFetcher: In-memory metric data source recording every request
- FakeChatClient: Scripted LLM collaborator recording every message list
- Shared fixtures available to all test modules
"""

from __future__ import annotations

import asyncio
from collections.abc import Iterator, Mapping, Sequence

import pytest

from chart_orchestrator.config import Config
from chart_orchestrator.controller import ViewController
from chart_orchestrator.models import ChatMessage, MetricFetchError, MetricSeries
from chart_orchestrator.orchestrator import FetchOrchestrator
from chart_orchestrator.url_store import MemoryUrlStore

# Samples used by the end-to-end scenario: prs_opened/prs_merged under date=7d.
SAMPLE_DATA: dict[str, tuple[float, ...]] = {
    "prs_opened": (14, 22, 25),
    "prs_merged": (13, 20, 24),
    "time_to_merge": (2.5, 2.1, 1.8),
    "active_contributors": (8, 9, 11),
    "bugs_reported": (5, 3, 4),
    "bugs_fixed": (4, 4, 3),
}


class FakeMetricFetcher:
    """
    In-memory metric fetcher for testing.

    Serves SAMPLE_DATA (or a custom mapping) and records every call as a
    (metrics, filters, endpoint) tuple.

    FEATURES:
    - No network I/O
    - failing: metric ids that raise MetricFetchError
    - gates: metric ids whose requests block until the matching
      asyncio.Event is set, for overlap and staleness tests
    """

    def __init__(
        self,
        data: Mapping[str, Sequence[float]] | None = None,
        failing: set[str] | None = None,
    ) -> None:
        """
        Initialize the fake.

        Args:
            data: Metric id -> samples. Default: SAMPLE_DATA.
            failing: Metric ids that fail with MetricFetchError.

        Example:
            >>> fetcher = FakeMetricFetcher(failing={"bugs_fixed"})
            >>> fetcher.calls
            []
        """
        self.data = {k: tuple(v) for k, v in (SAMPLE_DATA if data is None else data).items()}
        self.failing = set(failing or ())
        self.gates: dict[str, asyncio.Event] = {}
        self.calls: list[tuple[tuple[str, ...], dict[str, str], str | None]] = []
        self.in_flight = 0
        self.max_in_flight = 0

    async def fetch_metrics(
        self,
        metric_ids: Sequence[str],
        filters: Mapping[str, str],
        endpoint: str | None = None,
    ) -> list[MetricSeries]:
        self.calls.append((tuple(metric_ids), dict(filters), endpoint))
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            for metric in metric_ids:
                gate = self.gates.get(metric)
                if gate is not None:
                    await gate.wait()
            # Yield once so concurrently started requests overlap
            await asyncio.sleep(0)
            for metric in metric_ids:
                if metric in self.failing:
                    raise MetricFetchError(f"{metric} unavailable")
            return [MetricSeries(m, self.data.get(m, ())) for m in metric_ids]
        finally:
            self.in_flight -= 1

    def requested_metrics(self) -> list[str]:
        """Flat list of metric ids across all calls, in call order."""
        return [metric for metrics, _, _ in self.calls for metric in metrics]


class FakeChatClient:
    """
    Scripted chat collaborator for testing.

    Returns queued replies in order and records each message list sent.
    A queued exception instance is raised instead of returned.
    """

    def __init__(self, *replies: str | Exception) -> None:
        self.replies: list[str | Exception] = list(replies)
        self.requests: list[list[ChatMessage]] = []

    async def complete(self, messages: Sequence[ChatMessage]) -> str:
        self.requests.append(list(messages))
        if not self.replies:
            return "OK."
        reply = self.replies.pop(0)
        if isinstance(reply, Exception):
            raise reply
        return reply


@pytest.fixture(autouse=True)
def reset_config_overrides() -> Iterator[None]:
    """Ensure Config test overrides never leak between tests."""
    yield
    Config.reset_test_overrides()


@pytest.fixture
def store() -> MemoryUrlStore:
    """Fresh in-memory URL store with an empty query."""
    return MemoryUrlStore(path="/dashboard")


@pytest.fixture
def controller(store: MemoryUrlStore) -> ViewController:
    """ViewController over the shared store fixture."""
    return ViewController(store)


@pytest.fixture
def fetcher() -> FakeMetricFetcher:
    """
    Create a FakeMetricFetcher serving SAMPLE_DATA.

    Returns:
        FakeMetricFetcher: A fresh fake with no failing metrics.

    Example:
        >>> def test_fetch(fetcher, orchestrator):
        ...     fetcher.failing.add("bugs_fixed")
    """
    return FakeMetricFetcher()


@pytest.fixture
def orchestrator(fetcher: FakeMetricFetcher) -> FetchOrchestrator:
    """FetchOrchestrator over the shared fetcher fixture."""
    return FetchOrchestrator(fetcher)

