"""
Dashboard session - reacts to view changes with fetch rounds.

PURPOSE: Keep fetched chart data in step with the ViewController.
AI CONTEXT: This is the glue between state (controller) and data (orchestrator).

ARCHITECTURE:
    ViewController ──notify──► DashboardSession ──fetch_all──► FetchOrchestrator
                                      │
                                      └──► DashboardPresenter ──► view listeners

Every controller notification schedules a refresh on the running event loop.
Rounds are not cancelled when a newer one starts; stale rounds are detected
through the orchestrator's generation counter and never published.

USAGE:
    session = DashboardSession(controller, orchestrator)
    session.subscribe(lambda view: render(view.to_dict()))
    session.attach()              # schedules a first refresh
    await session.wait_idle()
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from typing import TYPE_CHECKING

from .config import Config
from .models import ChartSpec, ViewState, ViewUpdate
from .presenters import DashboardPresenter, DashboardViewModel

if TYPE_CHECKING:
    from .controller import ViewController
    from .orchestrator import FetchOrchestrator

__all__ = ["DashboardSession", "ViewModelListener"]

logger = logging.getLogger(__name__)

ViewModelListener = Callable[[DashboardViewModel], None]


class DashboardSession:
    """
    Owns the latest published DashboardViewModel for one controller.

    OPERATIONS:
    - attach/detach: start/stop reacting to controller notifications
    - refresh: run one fetch round and publish it unless superseded
    - ensure_default_charts: install the default layout on an empty view
    - subscribe: receive each published view model
    """

    def __init__(
        self,
        controller: ViewController,
        orchestrator: FetchOrchestrator,
        presenter: DashboardPresenter | None = None,
    ) -> None:
        self.controller = controller
        self.orchestrator = orchestrator
        self.presenter = presenter or DashboardPresenter(orchestrator)
        self.view: DashboardViewModel | None = None
        self._listeners: list[ViewModelListener] = []
        self._unsubscribe: Callable[[], None] | None = None
        self._pending: set[asyncio.Task[DashboardViewModel | None]] = set()

    @property
    def attached(self) -> bool:
        return self._unsubscribe is not None

    def attach(self) -> None:
        """
        Subscribe to the controller.

        The controller calls back immediately, so attaching inside a running
        event loop also schedules the initial refresh.
        """
        if self._unsubscribe is None:
            self._unsubscribe = self.controller.subscribe(self._on_state)

    def detach(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None

    def _on_state(self, state: ViewState) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.debug("No running event loop; refresh must be awaited explicitly")
            return
        task = loop.create_task(self.refresh(state))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def wait_idle(self) -> None:
        """Wait until every scheduled refresh has finished."""
        while self._pending:
            await asyncio.gather(*list(self._pending))

    def ensure_default_charts(self) -> bool:
        """
        Install Config.DEFAULT_CHARTS when the view has no charts.

        Returns:
            True if the default layout was installed.
        """
        if self.controller.get_state():
            return False
        defaults = tuple(ChartSpec.from_dict(entry) for entry in Config.DEFAULT_CHARTS)
        self.controller.apply_view_update(ViewUpdate(specs=defaults))
        return True

    async def refresh(self, state: ViewState | None = None) -> DashboardViewModel | None:
        """
        Fetch data for a view snapshot and publish the resulting view model.

        Args:
            state: Snapshot to load. Default: the controller's current state.

        Returns:
            The published view model, or None when the round was superseded
            by a newer one before it finished.
        """
        state = state or self.controller.snapshot()
        result = await self.orchestrator.fetch_all(state.specs, state.filters)
        if result.stale:
            logger.debug("Discarding stale fetch round %d", result.generation)
            return None

        view = self.presenter.build(state, result)
        self.view = view
        for listener in list(self._listeners):
            try:
                listener(view)
            except Exception:
                logger.exception("View model listener %r failed", listener)
        return view

    def subscribe(self, listener: ViewModelListener) -> Callable[[], None]:
        """
        Register a view model listener.

        The listener is called immediately when a view model has already
        been published.

        Returns:
            Callable removing the listener.
        """
        self._listeners.append(listener)
        if self.view is not None:
            listener(self.view)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe
