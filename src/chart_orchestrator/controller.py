"""
View controller for Chart Orchestrator.

PURPOSE: Single authority for which charts exist and which filters apply.
AI CONTEXT: UI actions and chat commands mutate the view only through here.

ARCHITECTURE:
    UI actions ────┐                         ┌──► subscriber (chart grid)
                   ├──► ViewController ──────┼──► subscriber (DashboardSession)
    chat commands ─┘        │   ▲            └──► ...
                            ▼   │
                         UrlStore (source of truth)

STATES:
- synced: steady state after any mutation; store holds the current view
- notifying: transient, while listeners are iterated
There is no network state here; fetching is a downstream reaction.

MUTATION CYCLE:
read store -> decode -> modify -> encode -> write store -> notify (once)

CONCURRENCY:
Read-modify-write on the store is not atomic. Two interleaved mutations
resolve last-write-wins, which is safe on a single event loop.

USAGE:
    controller = ViewController(MemoryUrlStore())
    unsubscribe = controller.subscribe(lambda state: print(state.specs))
    controller.add_chart(ChartSpec("bar", ("prs_opened",)))
    controller.set_filter("date", "7d")
    unsubscribe()
"""

from __future__ import annotations

import itertools
import logging
from collections.abc import Callable, Mapping
from typing import TYPE_CHECKING, Any

from .codec import build_query, parse_query
from .config import Config
from .models import ChartSpec, ViewState, ViewUpdate

if TYPE_CHECKING:
    from .url_store import UrlStore

__all__ = ["ViewController", "ViewListener"]

logger = logging.getLogger(__name__)

ViewListener = Callable[[ViewState], None]


class ViewController:
    """
    Observable owner of the chart list and global filter set.

    DESIGN PRINCIPLES:
    1. URL-backed: state is decoded fresh on every read, so out-of-band
       changes (back/forward, router navigation) are always visible
    2. One notification per mutation, including bulk updates
    3. Tolerant indices: out-of-range update/remove is a silent no-op
    4. Explicit construction: the store is injected, there is no global

    OBSERVERS:
    Each subscribe() call registers one entry under its own token; the
    returned callable removes only that entry. Subscribing the same callable
    twice yields two notifications per change.
    """

    def __init__(self, store: UrlStore, query_key: str = Config.QUERY_KEY) -> None:
        """
        Initialize the controller over a URL store.

        Args:
            store: UrlStore holding the dashboard query string.
            query_key: Query parameter carrying the chart token.
        """
        self.store = store
        self.query_key = query_key
        self._listeners: dict[int, ViewListener] = {}
        self._tokens = itertools.count()
        self._notify_depth = 0

    # =========================================================================
    # READS
    # =========================================================================

    def _read(self) -> tuple[list[ChartSpec], dict[str, str]]:
        return parse_query(self.store.read(), self.query_key)

    def get_state(self) -> list[ChartSpec]:
        """
        Return the current chart list, decoded fresh from the store.

        Returns:
            New list of ChartSpec snapshots. Mutating the list does not
            affect the view.
        """
        return self._read()[0]

    def get_filters(self) -> dict[str, str]:
        """Return the current global filter set, decoded fresh from the store."""
        return self._read()[1]

    def snapshot(self) -> ViewState:
        """Return specs and filters from a single store read."""
        specs, filters = self._read()
        return ViewState(specs=tuple(specs), filters=filters)

    @property
    def notifying(self) -> bool:
        """True while listeners are being called."""
        return self._notify_depth > 0

    # =========================================================================
    # MUTATIONS
    # =========================================================================

    def _push(self, specs: list[ChartSpec], filters: Mapping[str, str]) -> None:
        """Encode, write the store and notify."""
        self.store.write(build_query(specs, filters, self.query_key))
        self._notify()

    def add_chart(self, spec: ChartSpec) -> None:
        """
        Append a chart to the end of the list.

        Args:
            spec: Chart to add.

        Raises:
            InvalidChartSpecError: If spec violates the persisted-spec
                invariants (e.g. empty metrics). State is unchanged.

        Example:
            >>> controller.add_chart(ChartSpec("line", ("active_contributors",)))
        """
        spec.validate()
        specs, filters = self._read()
        specs.append(spec)
        logger.debug("Adding chart %d: %s", len(specs) - 1, spec.kind)
        self._push(specs, filters)

    def update_chart(self, index: int, patch: Mapping[str, Any]) -> None:
        """
        Merge fields into the chart at index.

        Business context: UI actions race with list changes (a chart can be
        removed by chat while its edit menu is open), so a stale index is
        ignored instead of raising.

        Args:
            index: Position in the chart list. Negative or out-of-range
                indices are a no-op: nothing is written or notified.
            patch: Field name -> new value (kind, metrics, title, stacked,
                filters).

        Raises:
            InvalidChartSpecError: If patch names an unknown field or yields
                an invalid spec. State is unchanged.

        Example:
            >>> controller.update_chart(0, {"stacked": True, "title": "PRs"})
        """
        specs, filters = self._read()
        if not 0 <= index < len(specs):
            logger.debug("Ignoring update of chart %d: %d charts", index, len(specs))
            return
        specs[index] = specs[index].with_patch(patch)
        self._push(specs, filters)

    def remove_chart(self, index: int) -> None:
        """
        Remove the chart at index.

        Args:
            index: Position in the chart list. Negative or out-of-range
                indices are a no-op: nothing is written or notified.
        """
        specs, filters = self._read()
        if not 0 <= index < len(specs):
            logger.debug("Ignoring removal of chart %d: %d charts", index, len(specs))
            return
        del specs[index]
        self._push(specs, filters)

    def set_filter(self, key: str, value: str | None) -> None:
        """
        Set or clear one global filter.

        Args:
            key: Filter key, e.g. 'repository'. Unknown keys are stored as-is.
            value: New value; None or '' clears the filter.
        """
        specs, filters = self._read()
        if value:
            filters[key] = value
        else:
            filters.pop(key, None)
        self._push(specs, filters)

    def apply_view_update(self, update: ViewUpdate) -> None:
        """
        Apply a bulk update with a single write and a single notification.

        Replaces the entire chart list when update.specs is present and
        merges update.filters into the global filter set (empty values
        clear their key).

        Business context: The chat assistant proposes whole views ("show me
        contributors for the backend"). Applying them field by field would
        trigger one fetch round per field.

        Args:
            update: Validated ViewUpdate.

        Example:
            >>> controller.apply_view_update(ViewUpdate.from_dict({
            ...     "specs": [{"t": "line", "m": ["active_contributors"]}],
            ...     "filters": {"repository": "backend-api"},
            ... }))
        """
        specs, filters = self._read()
        if update.specs is not None:
            specs = list(update.specs)
        if update.filters is not None:
            for key, value in update.filters.items():
                if value:
                    filters[key] = value
                else:
                    filters.pop(key, None)
        logger.info(
            "Applying %s view update: %d charts, filters=%s", update.kind, len(specs), filters
        )
        self._push(specs, filters)

    # =========================================================================
    # OBSERVERS
    # =========================================================================

    def subscribe(self, listener: ViewListener) -> Callable[[], None]:
        """
        Register a listener and call it once with the current state.

        Args:
            listener: Called with a ViewState after every change.

        Returns:
            Callable that removes this registration. Calling it more than
            once is harmless.

        Example:
            >>> unsubscribe = controller.subscribe(render)
            >>> unsubscribe()
        """
        token = next(self._tokens)
        self._listeners[token] = listener
        self._call(listener, self.snapshot())

        def unsubscribe() -> None:
            self._listeners.pop(token, None)

        return unsubscribe

    def sync(self) -> None:
        """
        Re-read the store and notify every listener.

        Call after the URL changed through a path this controller did not
        handle (browser back/forward, router navigation, direct writes).
        """
        self._notify()

    @property
    def listener_count(self) -> int:
        return len(self._listeners)

    def _notify(self) -> None:
        state = self.snapshot()
        self._notify_depth += 1
        try:
            for listener in list(self._listeners.values()):
                self._call(listener, state)
        finally:
            self._notify_depth -= 1

    def _call(self, listener: ViewListener, state: ViewState) -> None:
        """Invoke one listener; a failing listener does not starve the rest."""
        try:
            listener(state)
        except Exception:
            logger.exception("View listener %r failed", listener)
