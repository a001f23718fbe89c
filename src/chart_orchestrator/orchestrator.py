"""
Fetch orchestration for Chart Orchestrator.

PURPOSE: Turn a list of ChartSpecs into the minimal set of data requests.
AI CONTEXT: Deduplication, concurrency and result projection live here.

ALGORITHM:
1. For each spec, merge default -> global -> per-chart filters (later wins)
2. For each metric, build a FetchRequestKey(metric, canonical filters)
3. Collapse duplicate keys; each distinct key is fetched once per round
4. Start every distinct request concurrently, wait until all have settled
5. Record values per key; failures record an error and an empty series

KEY CANONICALIZATION:
Filters are serialized as key-sorted compact JSON, so two mappings with the
same entries always produce the same key whatever their insertion order.
fetch_all, project_spec and project_error share request_key(); a diverging
key function would make lookups silently miss.

SUPERSEDING:
Every fetch_all call takes a new generation number. A round that finishes
after a newer round has started is returned with stale=True so consumers can
drop it instead of overwriting fresher data.

USAGE:
    orchestrator = FetchOrchestrator(HttpMetricFetcher())
    result = await orchestrator.fetch_all(specs, {"date": "7d"})
    for spec in specs:
        error = orchestrator.project_error(spec, result.errors, {"date": "7d"})
        series = orchestrator.project_spec(spec, result.values, {"date": "7d"})
"""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from .config import Config
from .models import ChartSpec, FilterDefinition, MetricFetchError, MetricSeries

if TYPE_CHECKING:
    from .fetcher import MetricFetcher

__all__ = [
    "FetchRequestKey",
    "FetchResult",
    "FetchOrchestrator",
    "canonical_filters",
]

logger = logging.getLogger(__name__)


def canonical_filters(filters: Mapping[str, str]) -> str:
    """
    Serialize a filter mapping independently of insertion order.

    Example:
        >>> canonical_filters({"repository": "backend-api", "date": "7d"})
        '{"date":"7d","repository":"backend-api"}'
    """
    return json.dumps(dict(filters), sort_keys=True, separators=(",", ":"), ensure_ascii=False)


@dataclass(frozen=True, order=True)
class FetchRequestKey:
    """
    Deduplication key: one metric under one canonical effective filter set.

    str(key) gives the "metric::filters" form used in JSON responses.
    """

    metric: str
    filters: str

    def __str__(self) -> str:
        return f"{self.metric}::{self.filters}"


@dataclass
class FetchResult:
    """
    Outcome of one fetch round.

    Attributes:
        values: Key -> samples. Every requested key is present; failed keys
            map to an empty tuple so renderers never see a missing key.
        errors: Key -> error message, only for failed keys.
        generation: Round number from the orchestrator's counter.
        stale: True when a newer round started before this one finished.
    """

    values: dict[FetchRequestKey, tuple[float, ...]] = field(default_factory=dict)
    errors: dict[FetchRequestKey, str] = field(default_factory=dict)
    generation: int = 0
    stale: bool = False

    @property
    def request_count(self) -> int:
        """Number of distinct requests issued in this round."""
        return len(self.values)


class FetchOrchestrator:
    """
    Deduplicating, concurrent metric fetcher for a set of charts.

    DESIGN PRINCIPLES:
    1. Minimal: one request per distinct (metric, effective filters)
    2. Isolated: a failing request only affects its own key
    3. All-settled: results are delivered once, after every request finished
    4. Stateless across rounds apart from the generation counter

    THREAD SAFETY:
    Intended for a single asyncio event loop. Rounds may overlap; overlap is
    resolved by the generation counter, not by cancellation.
    """

    def __init__(
        self,
        fetcher: MetricFetcher,
        endpoint: str | None = None,
        default_filters: Mapping[str, str] | None = None,
    ) -> None:
        """
        Initialize the orchestrator.

        Args:
            fetcher: Data collaborator used for every request.
            endpoint: Optional endpoint override passed to the fetcher.
            default_filters: Filters applied beneath the global filter set.
        """
        self.fetcher = fetcher
        self.endpoint = endpoint
        self.default_filters: dict[str, str] = dict(default_filters or {})
        self._generation = 0

    @property
    def generation(self) -> int:
        """Generation number of the most recently started round."""
        return self._generation

    # =========================================================================
    # KEY COMPUTATION
    # =========================================================================

    def effective_filters(
        self,
        spec: ChartSpec,
        global_filters: Mapping[str, str] | None = None,
    ) -> dict[str, str]:
        """
        Merge default, global and per-chart filters for one spec.

        Later layers win per key; the merge is shallow.

        Args:
            spec: Chart whose filters override the global set.
            global_filters: Dashboard-wide filter set.

        Returns:
            New dict with the effective filter set.

        Example:
            >>> spec = ChartSpec("bar", ("prs_opened",), filters={"repository": "backend-api"})
            >>> orchestrator.effective_filters(spec, {"repository": "frontend-ui", "date": "7d"})
            {'repository': 'backend-api', 'date': '7d'}
        """
        merged = dict(self.default_filters)
        merged.update(global_filters or {})
        merged.update(spec.filters or {})
        return merged

    def request_key(self, metric: str, filters: Mapping[str, str]) -> FetchRequestKey:
        """Build the deduplication key for one metric under effective filters."""
        return FetchRequestKey(metric=metric, filters=canonical_filters(filters))

    def keys_for_spec(
        self,
        spec: ChartSpec,
        global_filters: Mapping[str, str] | None = None,
    ) -> list[FetchRequestKey]:
        """Request keys for each of the spec's metrics, in metric order."""
        filters = self.effective_filters(spec, global_filters)
        return [self.request_key(metric, filters) for metric in spec.metrics]

    def plan(
        self,
        specs: Iterable[ChartSpec],
        global_filters: Mapping[str, str] | None = None,
    ) -> dict[FetchRequestKey, dict[str, str]]:
        """
        Compute the distinct requests needed for a set of charts.

        Args:
            specs: Charts to load.
            global_filters: Dashboard-wide filter set.

        Returns:
            Ordered mapping of distinct key -> effective filters to send,
            in order of first appearance.

        Example:
            >>> specs = [ChartSpec("bar", ("prs_opened",)), ChartSpec("line", ("prs_opened",))]
            >>> len(orchestrator.plan(specs, {"date": "7d"}))
            1
        """
        requests: dict[FetchRequestKey, dict[str, str]] = {}
        for spec in specs:
            filters = self.effective_filters(spec, global_filters)
            for metric in spec.metrics:
                key = self.request_key(metric, filters)
                if key not in requests:
                    requests[key] = filters
        return requests

    # =========================================================================
    # FETCHING
    # =========================================================================

    async def _fetch_one(
        self,
        key: FetchRequestKey,
        filters: Mapping[str, str],
    ) -> tuple[float, ...]:
        """
        Fetch a single key's samples.

        Picks the series whose name matches the metric; falls back to the
        first series, then to no samples.
        """
        series = await self.fetcher.fetch_metrics([key.metric], filters, self.endpoint)
        for entry in series:
            if entry.metric == key.metric:
                return entry.values
        return series[0].values if series else ()

    async def fetch_all(
        self,
        specs: Iterable[ChartSpec],
        global_filters: Mapping[str, str] | None = None,
    ) -> FetchResult:
        """
        Fetch data for every chart with one request per distinct key.

        All distinct requests are started without waiting for one another;
        the call returns once every request has settled. Failures never
        propagate: they are logged, recorded in FetchResult.errors, and the
        key's value is an empty tuple.

        Business context: Dashboards commonly show the same metric in several
        charts (e.g. PRs opened in both a velocity and a summary chart).
        Deduplication keeps the data API load proportional to distinct data,
        not to chart count.

        Args:
            specs: Charts to load.
            global_filters: Dashboard-wide filter set.

        Returns:
            FetchResult for this round. Check .stale before applying it.

        Raises:
            asyncio.CancelledError: If the awaiting task is cancelled.

        Example:
            >>> result = await orchestrator.fetch_all(specs, {"date": "7d"})
            >>> result.errors
            {}
        """
        self._generation += 1
        generation = self._generation
        requests = self.plan(specs, global_filters)

        in_flight = {
            key: asyncio.ensure_future(self._fetch_one(key, filters))
            for key, filters in requests.items()
        }
        if in_flight:
            try:
                await asyncio.wait(in_flight.values())
            except asyncio.CancelledError:
                for task in in_flight.values():
                    task.cancel()
                raise

        result = FetchResult(generation=generation)
        for key, task in in_flight.items():
            error = task.exception()
            if error is None:
                result.values[key] = task.result()
                continue
            if isinstance(error, MetricFetchError):
                logger.error(f"Failed to fetch {key.metric}: {error}")
            else:
                logger.error(f"Unexpected error fetching {key.metric}", exc_info=error)
            result.values[key] = ()
            result.errors[key] = Config.FETCH_ERROR_MESSAGE

        result.stale = generation != self._generation
        if result.stale:
            logger.debug(
                "Fetch round %d superseded by round %d", generation, self._generation
            )
        else:
            logger.debug(
                "Fetch round %d: %d requests, %d failed",
                generation,
                len(in_flight),
                len(result.errors),
            )
        return result

    # =========================================================================
    # PROJECTION
    # =========================================================================

    def project_spec(
        self,
        spec: ChartSpec,
        values: Mapping[FetchRequestKey, tuple[float, ...]],
        global_filters: Mapping[str, str] | None = None,
    ) -> list[MetricSeries]:
        """
        Read one chart's series out of a round's value map.

        Args:
            spec: Chart to project.
            values: FetchResult.values from the same round.
            global_filters: The global filters used for that round.

        Returns:
            One MetricSeries per metric in spec order. Missing or failed
            keys yield empty samples.

        Example:
            >>> orchestrator.project_spec(spec, result.values, {"date": "7d"})
            [MetricSeries(metric='prs_opened', values=(14, 22, 25)), ...]
        """
        return [
            MetricSeries(metric=key.metric, values=values.get(key, ()))
            for key in self.keys_for_spec(spec, global_filters)
        ]

    def project_error(
        self,
        spec: ChartSpec,
        errors: Mapping[FetchRequestKey, str],
        global_filters: Mapping[str, str] | None = None,
    ) -> str | None:
        """
        Return the first error among the chart's metrics, if any.

        POLICY: One failed metric marks the whole chart as failed. The chart
        is not rendered with a subset of its metrics.

        Returns:
            Error message, or None when every metric loaded.
        """
        for key in self.keys_for_spec(spec, global_filters):
            if key in errors:
                return errors[key]
        return None

    def available_filters(self) -> list[FilterDefinition]:
        """The fixed global filter catalog for UI controls."""
        return [FilterDefinition.from_dict(entry) for entry in Config.FILTER_CATALOG]
