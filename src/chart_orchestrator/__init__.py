"""
Chart Orchestrator.

PURPOSE: Keep a metrics dashboard's charts, filters and data in sync with the URL.
AI CONTEXT: This package is the state/data layer behind the dashboard UI and chat assistant.

PACKAGE STRUCTURE:
- config.py: Configuration constants, filter catalog, env settings
- models.py: Data models (ChartSpec, ViewState, ViewUpdate, MetricSeries)
- codec.py: ChartSpec list <-> URL query token
- url_store.py: Injectable URL storage (browser history stand-in)
- controller.py: ViewController - observable owner of specs + filters
- fetcher.py: Metric data collaborator (HTTP)
- orchestrator.py: Deduplicated, concurrent metric fetching
- chat.py: Chat assistant and VIEW_UPDATE command parsing
- presenters.py: View models for chart/filter rendering
- session.py: Wires controller notifications to fetch rounds
- web/: FastAPI JSON API

QUICK START:
    store = MemoryUrlStore("c=[{\"t\":\"bar\",\"m\":[\"prs_opened\"]}]&date=7d")
    controller = ViewController(store)
    orchestrator = FetchOrchestrator(HttpMetricFetcher())
    result = await orchestrator.fetch_all(controller.get_state(), controller.get_filters())

    # Launch the web API
    python -m chart_orchestrator dashboard
"""

from chart_orchestrator.__version__ import (
    __author__,
    __copyright__,
    __description__,
    __license__,
    __title__,
    __version__,
    __version_date__,
)

__all__ = [
    "__version__",
    "__version_date__",
    "__title__",
    "__description__",
    "__author__",
    "__license__",
    "__copyright__",
]
