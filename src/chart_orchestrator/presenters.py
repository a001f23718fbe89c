"""
Presenters for Chart Orchestrator dashboards.

PURPOSE: Testable transformation layer between fetch results and UI.
AI CONTEXT: Pure data transformation - no I/O, no rendering.

DESIGN PRINCIPLES:
1. Presenters receive state + results, return view models (dataclasses)
2. No dependencies on a specific UI framework or charting library
3. Fully unit-testable without mocking
4. Key computation is delegated to the FetchOrchestrator that ran the round

USAGE:
    presenter = DashboardPresenter(orchestrator)
    view = presenter.build(controller.snapshot(), result)
    payload = view.to_dict()
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from .models import ChartSpec, FilterDefinition, MetricSeries, ViewState

if TYPE_CHECKING:
    from .orchestrator import FetchOrchestrator, FetchResult

__all__ = [
    "ChartViewModel",
    "FilterControlViewModel",
    "DashboardViewModel",
    "DashboardPresenter",
]


@dataclass
class ChartViewModel:
    """View model for one chart card."""

    index: int
    spec: ChartSpec
    series: list[MetricSeries] = field(default_factory=list)
    error: str | None = None

    @property
    def title_display(self) -> str:
        """
        Chart heading.

        Falls back to the comma-joined metric ids when the spec has no title,
        matching how the chat prompt lists untitled charts.

        Example:
            >>> ChartViewModel(0, ChartSpec("bar", ("prs_opened", "prs_merged"))).title_display
            'prs_opened, prs_merged'
        """
        return self.spec.title or ", ".join(self.spec.metrics)

    @property
    def has_error(self) -> bool:
        return self.error is not None

    @property
    def status_class(self) -> str:
        """CSS class for the card: 'chart-error', 'chart-empty' or 'chart-ready'."""
        if self.has_error:
            return "chart-error"
        if not any(s.values for s in self.series):
            return "chart-empty"
        return "chart-ready"

    @property
    def groups(self) -> list[list[str]]:
        """Stacking groups: all metrics in one group when stacked, else none."""
        return [list(self.spec.metrics)] if self.spec.stacked else []

    def to_dict(self) -> dict[str, Any]:
        return {
            "index": self.index,
            "title": self.title_display,
            "spec": self.spec.to_dict(),
            "series": [] if self.has_error else [s.to_dict() for s in self.series],
            "groups": self.groups,
            "error": self.error,
            "status": self.status_class,
        }


@dataclass
class FilterControlViewModel:
    """View model for one global filter select control."""

    definition: FilterDefinition
    selected: str = ""

    def to_dict(self) -> dict[str, Any]:
        data = self.definition.to_dict()
        data["selected"] = self.selected
        return data


@dataclass
class DashboardViewModel:
    """Complete dashboard view: filter controls plus chart cards."""

    charts: list[ChartViewModel]
    filters: dict[str, str]
    controls: list[FilterControlViewModel]
    generation: int = 0

    @property
    def failed_count(self) -> int:
        return sum(1 for chart in self.charts if chart.has_error)

    def to_dict(self) -> dict[str, Any]:
        return {
            "generation": self.generation,
            "filters": dict(self.filters),
            "controls": [control.to_dict() for control in self.controls],
            "charts": [chart.to_dict() for chart in self.charts],
        }


class DashboardPresenter:
    """
    Builds DashboardViewModels from a view snapshot and a fetch round.

    POLICY: A chart with any failed metric is shown as failed; its series
    are still projected (empty for the failed metrics) but not rendered.
    """

    def __init__(self, orchestrator: FetchOrchestrator) -> None:
        self.orchestrator = orchestrator

    def build_chart(self, index: int, spec: ChartSpec, state: ViewState, result: FetchResult) -> ChartViewModel:
        return ChartViewModel(
            index=index,
            spec=spec,
            series=self.orchestrator.project_spec(spec, result.values, state.filters),
            error=self.orchestrator.project_error(spec, result.errors, state.filters),
        )

    def build_controls(self, filters: dict[str, str]) -> list[FilterControlViewModel]:
        return [
            FilterControlViewModel(definition=definition, selected=filters.get(definition.key, ""))
            for definition in self.orchestrator.available_filters()
        ]

    def build(self, state: ViewState, result: FetchResult) -> DashboardViewModel:
        """
        Assemble the full dashboard view.

        Args:
            state: The snapshot the round was fetched for.
            result: Fetch round for that snapshot.

        Returns:
            DashboardViewModel with one ChartViewModel per spec, in order.
        """
        return DashboardViewModel(
            charts=[self.build_chart(i, spec, state, result) for i, spec in enumerate(state.specs)],
            filters=dict(state.filters),
            controls=self.build_controls(state.filters),
            generation=result.generation,
        )
