"""Tests for controller module."""

from __future__ import annotations

import logging

import pytest

from chart_orchestrator.codec import build_query
from chart_orchestrator.controller import ViewController
from chart_orchestrator.models import ChartSpec, InvalidChartSpecError, ViewState, ViewUpdate
from chart_orchestrator.url_store import MemoryUrlStore

PRS = ChartSpec("bar", ("prs_opened",), title="PRs")
MERGED = ChartSpec("line", ("prs_merged",))


@pytest.fixture
def states(controller: ViewController) -> list[ViewState]:
    """Subscribe a recorder and drop the immediate initial call."""
    received: list[ViewState] = []
    controller.subscribe(received.append)
    received.clear()
    return received


class TestReads:
    """Tests for state reads."""

    def test_empty_store(self, controller: ViewController) -> None:
        assert controller.get_state() == []
        assert controller.get_filters() == {}

    def test_reads_existing_url(self) -> None:
        store = MemoryUrlStore(build_query([PRS], {"date": "7d"}))
        controller = ViewController(store)
        assert controller.get_state() == [PRS]
        assert controller.get_filters() == {"date": "7d"}

    def test_reads_do_not_write(self, controller: ViewController, store: MemoryUrlStore) -> None:
        """Verifies reading never writes and repeated reads agree.

        Business context:
        Every consumer re-reads the URL; reads that rewrote it would add
        browser history entries on every render.

        Assertion Strategy:
        Two reads are equal and the store's history did not grow.
        """
        controller.add_chart(PRS)
        history = store.history

        first = controller.get_state()
        second = controller.get_state()
        controller.snapshot()

        assert first == second == [PRS]
        assert store.history == history

    def test_returned_list_is_a_copy(self, controller: ViewController) -> None:
        controller.add_chart(PRS)
        controller.get_state().clear()
        assert controller.get_state() == [PRS]

    def test_sees_out_of_band_changes(self, controller: ViewController, store: MemoryUrlStore) -> None:
        controller.add_chart(PRS)
        controller.add_chart(MERGED)
        store.back()
        assert controller.get_state() == [PRS]

    def test_custom_query_key(self, store: MemoryUrlStore) -> None:
        controller = ViewController(store, query_key="charts")
        controller.add_chart(PRS)
        assert store.read().startswith("charts=")
        assert controller.get_state() == [PRS]


class TestAddChart:
    def test_appends_and_writes(self, controller: ViewController, store: MemoryUrlStore) -> None:
        controller.add_chart(PRS)
        controller.add_chart(MERGED)
        assert controller.get_state() == [PRS, MERGED]
        assert len(store.history) == 3

    def test_preserves_filters(self, controller: ViewController) -> None:
        controller.set_filter("date", "7d")
        controller.add_chart(PRS)
        assert controller.get_filters() == {"date": "7d"}

    def test_invalid_spec_rejected_without_write(
        self, controller: ViewController, store: MemoryUrlStore, states: list[ViewState]
    ) -> None:
        with pytest.raises(InvalidChartSpecError):
            controller.add_chart(ChartSpec("bar", ()))
        assert store.history == [""]
        assert states == []

    def test_notifies_once(self, controller: ViewController, states: list[ViewState]) -> None:
        controller.add_chart(PRS)
        assert len(states) == 1
        assert states[0].specs == (PRS,)


class TestUpdateChart:
    """Tests for update_chart including bounds safety."""

    def test_patches_in_place(self, controller: ViewController) -> None:
        controller.add_chart(PRS)
        controller.add_chart(MERGED)
        controller.update_chart(1, {"stacked": True, "title": "Merged"})
        assert controller.get_state() == [
            PRS,
            ChartSpec("line", ("prs_merged",), title="Merged", stacked=True),
        ]

    @pytest.mark.parametrize("index", [99, 1, -1])
    def test_out_of_range_is_noop(
        self,
        controller: ViewController,
        store: MemoryUrlStore,
        states: list[ViewState],
        index: int,
    ) -> None:
        """Verifies update_chart with a stale index changes nothing.

        Business context:
        A chat command can remove a chart while its edit menu is still
        open. The late edit must neither raise nor touch another chart.

        Arrangement:
        One chart in the view, a subscribed recorder.

        Action:
        update_chart with an index outside [0, len).

        Assertion Strategy:
        Specs unchanged, no history entry, no notification.
        """
        controller.add_chart(PRS)
        states.clear()
        history = store.history

        controller.update_chart(index, {"title": "ghost"})

        assert controller.get_state() == [PRS]
        assert store.history == history
        assert states == []

    def test_invalid_patch_rejected(self, controller: ViewController) -> None:
        controller.add_chart(PRS)
        with pytest.raises(InvalidChartSpecError):
            controller.update_chart(0, {"kind": "radar"})
        assert controller.get_state() == [PRS]


class TestRemoveChart:
    def test_removes_by_index(self, controller: ViewController) -> None:
        controller.add_chart(PRS)
        controller.add_chart(MERGED)
        controller.remove_chart(0)
        assert controller.get_state() == [MERGED]

    @pytest.mark.parametrize("index", [5, -1])
    def test_out_of_range_is_noop(
        self, controller: ViewController, states: list[ViewState], index: int
    ) -> None:
        controller.add_chart(PRS)
        states.clear()
        controller.remove_chart(index)
        assert controller.get_state() == [PRS]
        assert states == []


class TestSetFilter:
    def test_sets_value(self, controller: ViewController) -> None:
        controller.set_filter("repository", "backend-api")
        assert controller.get_filters() == {"repository": "backend-api"}

    @pytest.mark.parametrize("cleared", [None, ""])
    def test_empty_clears(self, controller: ViewController, cleared: str | None) -> None:
        controller.set_filter("repository", "backend-api")
        controller.set_filter("repository", cleared)
        assert controller.get_filters() == {}

    def test_preserves_specs(self, controller: ViewController) -> None:
        controller.add_chart(PRS)
        controller.set_filter("date", "7d")
        assert controller.get_state() == [PRS]

    def test_unknown_key_stored(self, controller: ViewController) -> None:
        controller.set_filter("team", "platform")
        assert controller.get_filters() == {"team": "platform"}


class TestApplyViewUpdate:
    """Tests for bulk updates."""

    def test_single_write_single_notification(
        self,
        controller: ViewController,
        store: MemoryUrlStore,
        states: list[ViewState],
    ) -> None:
        """Verifies a bulk update is observed as exactly one change.

        Business context:
        Each notification triggers a fetch round. A chat command that
        replaced charts and filters separately would fetch twice and show
        an intermediate view.

        Arrangement:
        Existing chart and filter; recorder subscribed.

        Action:
        Apply a replace_and_merge update.

        Assertion Strategy:
        One history entry, one notification carrying the final state.
        """
        controller.add_chart(PRS)
        controller.set_filter("date", "30d")
        states.clear()
        entries = len(store.history)

        controller.apply_view_update(
            ViewUpdate.from_dict(
                {
                    "specs": [{"t": "line", "m": ["active_contributors"]}],
                    "filters": {"repository": "backend-api", "date": "7d"},
                }
            )
        )

        assert len(store.history) == entries + 1
        assert len(states) == 1
        assert states[0].specs == (ChartSpec("line", ("active_contributors",)),)
        assert states[0].filters == {"date": "7d", "repository": "backend-api"}

    def test_filters_only_keeps_specs(self, controller: ViewController) -> None:
        controller.add_chart(PRS)
        controller.apply_view_update(ViewUpdate(filters={"date": "7d"}))
        assert controller.get_state() == [PRS]

    def test_merge_keeps_unmentioned_filters(self, controller: ViewController) -> None:
        controller.set_filter("repository", "auth-service")
        controller.apply_view_update(ViewUpdate(filters={"date": "7d"}))
        assert controller.get_filters() == {"repository": "auth-service", "date": "7d"}

    def test_empty_value_clears_filter(self, controller: ViewController) -> None:
        controller.set_filter("repository", "auth-service")
        controller.apply_view_update(ViewUpdate(filters={"repository": ""}))
        assert controller.get_filters() == {}

    def test_specs_only_keeps_filters(self, controller: ViewController) -> None:
        controller.set_filter("date", "7d")
        controller.apply_view_update(ViewUpdate(specs=(MERGED,)))
        assert controller.get_state() == [MERGED]
        assert controller.get_filters() == {"date": "7d"}

    def test_empty_specs_clears_charts(self, controller: ViewController) -> None:
        controller.add_chart(PRS)
        controller.apply_view_update(ViewUpdate(specs=()))
        assert controller.get_state() == []


class TestObservers:
    """Tests for subscribe / unsubscribe / sync."""

    def test_subscribe_calls_immediately(self, controller: ViewController) -> None:
        controller.add_chart(PRS)
        received: list[ViewState] = []
        controller.subscribe(received.append)
        assert received == [ViewState(specs=(PRS,), filters={})]

    def test_unsubscribe_stops_notifications(self, controller: ViewController) -> None:
        received: list[ViewState] = []
        unsubscribe = controller.subscribe(received.append)
        unsubscribe()
        unsubscribe()
        controller.add_chart(PRS)
        assert len(received) == 1
        assert controller.listener_count == 0

    def test_same_listener_twice_is_two_registrations(self, controller: ViewController) -> None:
        received: list[ViewState] = []
        first = controller.subscribe(received.append)
        controller.subscribe(received.append)
        received.clear()

        controller.add_chart(PRS)
        assert len(received) == 2

        first()
        received.clear()
        controller.add_chart(MERGED)
        assert len(received) == 1

    def test_failing_listener_does_not_starve_others(
        self, controller: ViewController, caplog: pytest.LogCaptureFixture
    ) -> None:
        def broken(state: ViewState) -> None:
            raise RuntimeError("render failed")

        received: list[ViewState] = []
        with caplog.at_level(logging.ERROR, logger="chart_orchestrator.controller"):
            controller.subscribe(broken)
            controller.subscribe(received.append)
            controller.add_chart(PRS)

        assert len(received) == 2
        assert "render failed" in caplog.text

    def test_unsubscribe_during_notify(self, controller: ViewController) -> None:
        received: list[str] = []
        unsubscribe_b = None

        def listener_a(state: ViewState) -> None:
            received.append("a")
            if unsubscribe_b is not None:
                unsubscribe_b()

        controller.subscribe(listener_a)
        unsubscribe_b = controller.subscribe(lambda state: received.append("b"))
        received.clear()

        controller.add_chart(PRS)
        controller.add_chart(MERGED)
        assert received == ["a", "b", "a"]

    def test_notifying_flag(self, controller: ViewController) -> None:
        seen: list[bool] = []
        controller.subscribe(lambda state: seen.append(controller.notifying))
        controller.add_chart(PRS)
        assert seen == [False, True]
        assert controller.notifying is False

    def test_sync_idempotent(self, controller: ViewController, store: MemoryUrlStore) -> None:
        """Verifies repeated sync() without a URL change repeats the same state.

        Business context:
        Hosts call sync() on every router event, including ones that did
        not change the query. Each call must re-deliver the same view and
        never write history.

        Arrangement:
        One chart and one filter; recorder subscribed, initial call dropped.

        Action:
        Call sync() twice.

        Assertion Strategy:
        Two equal notifications; store history unchanged.
        """
        controller.add_chart(PRS)
        controller.set_filter("date", "7d")
        received: list[ViewState] = []
        controller.subscribe(received.append)
        received.clear()
        history = store.history

        controller.sync()
        controller.sync()

        assert len(received) == 2
        assert received[0] == received[1] == ViewState(specs=(PRS,), filters={"date": "7d"})
        assert store.history == history

    def test_sync_notifies_after_back(self, controller: ViewController, store: MemoryUrlStore) -> None:
        controller.add_chart(PRS)
        controller.add_chart(MERGED)
        received: list[ViewState] = []
        controller.subscribe(received.append)
        received.clear()

        store.back()
        controller.sync()

        assert [state.specs for state in received] == [(PRS,)]
