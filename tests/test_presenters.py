"""Tests for presenters module."""

from __future__ import annotations

import pytest
from conftest import FakeMetricFetcher

from chart_orchestrator.config import Config
from chart_orchestrator.models import ChartSpec, MetricSeries, ViewState
from chart_orchestrator.orchestrator import FetchOrchestrator
from chart_orchestrator.presenters import (
    ChartViewModel,
    DashboardPresenter,
    DashboardViewModel,
)


class TestChartViewModel:
    """Tests for ChartViewModel display properties."""

    def test_title_display_uses_title(self) -> None:
        vm = ChartViewModel(0, ChartSpec("bar", ("prs_opened",), title="PRs"))
        assert vm.title_display == "PRs"

    def test_title_display_falls_back_to_metrics(self) -> None:
        vm = ChartViewModel(0, ChartSpec("bar", ("prs_opened", "prs_merged")))
        assert vm.title_display == "prs_opened, prs_merged"

    @pytest.mark.parametrize(
        ("series", "error", "expected"),
        [
            ([MetricSeries("prs_opened", (1,))], None, "chart-ready"),
            ([MetricSeries("prs_opened", ())], None, "chart-empty"),
            ([MetricSeries("prs_opened", (1,))], "Failed to load data", "chart-error"),
        ],
    )
    def test_status_class(self, series: list[MetricSeries], error: str | None, expected: str) -> None:
        vm = ChartViewModel(0, ChartSpec("bar", ("prs_opened",)), series, error)
        assert vm.status_class == expected

    def test_groups_when_stacked(self) -> None:
        vm = ChartViewModel(0, ChartSpec("bar", ("bugs_reported", "bugs_fixed"), stacked=True))
        assert vm.groups == [["bugs_reported", "bugs_fixed"]]

    def test_no_groups_when_not_stacked(self) -> None:
        assert ChartViewModel(0, ChartSpec("bar", ("prs_opened",), stacked=False)).groups == []

    def test_to_dict_hides_series_on_error(self) -> None:
        vm = ChartViewModel(
            2,
            ChartSpec("bar", ("bugs_reported", "bugs_fixed")),
            [MetricSeries("bugs_reported", (5,)), MetricSeries("bugs_fixed", ())],
            "Failed to load data",
        )
        data = vm.to_dict()
        assert data["index"] == 2
        assert data["series"] == []
        assert data["error"] == "Failed to load data"
        assert data["status"] == "chart-error"


class TestDashboardPresenter:
    """Tests for DashboardPresenter.build."""

    @pytest.mark.asyncio
    async def test_end_to_end_view(self, orchestrator: FetchOrchestrator) -> None:
        """Verifies the PR velocity chart under date=7d shows its samples.

        Business context:
        This is the reference dashboard interaction: one bar chart with
        opened and merged PRs for the last seven days.

        Arrangement:
        Fake data: prs_opened [14, 22, 25], prs_merged [13, 20, 24].

        Action:
        fetch_all then build.

        Assertion Strategy:
        Chart series and selected filter control match exactly.
        """
        state = ViewState(
            specs=(ChartSpec("bar", ("prs_opened", "prs_merged"), title="PR Velocity"),),
            filters={"date": "7d"},
        )
        result = await orchestrator.fetch_all(state.specs, state.filters)

        view = DashboardPresenter(orchestrator).build(state, result)
        data = view.to_dict()

        assert data["charts"][0]["series"] == [
            {"metric": "prs_opened", "values": [14, 22, 25]},
            {"metric": "prs_merged", "values": [13, 20, 24]},
        ]
        assert data["charts"][0]["status"] == "chart-ready"
        assert {c["key"]: c["selected"] for c in data["controls"]} == {"repository": "", "date": "7d"}
        assert data["generation"] == result.generation

    @pytest.mark.asyncio
    async def test_failure_marks_only_affected_chart(self) -> None:
        fetcher = FakeMetricFetcher(failing={"bugs_fixed"})
        orchestrator = FetchOrchestrator(fetcher)
        state = ViewState(
            specs=(
                ChartSpec("bar", ("prs_opened",)),
                ChartSpec("bar", ("bugs_reported", "bugs_fixed")),
            )
        )
        result = await orchestrator.fetch_all(state.specs, state.filters)
        view = DashboardPresenter(orchestrator).build(state, result)

        assert [chart.error for chart in view.charts] == [None, Config.FETCH_ERROR_MESSAGE]
        assert view.failed_count == 1

    def test_controls_follow_catalog(self, orchestrator: FetchOrchestrator) -> None:
        controls = DashboardPresenter(orchestrator).build_controls({"repository": "auth-service"})
        assert [(c.definition.key, c.selected) for c in controls] == [
            ("repository", "auth-service"),
            ("date", ""),
        ]


class TestDashboardViewModel:
    def test_empty(self) -> None:
        view = DashboardViewModel(charts=[], filters={}, controls=[])
        assert view.failed_count == 0
        assert view.to_dict() == {"generation": 0, "filters": {}, "controls": [], "charts": []}
