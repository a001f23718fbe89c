"""
Web API module for Chart Orchestrator.

PURPOSE: FastAPI JSON endpoints exposing the orchestration layer over HTTP.
AI CONTEXT: The request's own query string is the view state - no server-side sessions.

FEATURES:
- Decode a dashboard URL and return fetched chart data
- Apply validated bulk view updates, returning the new query string
- Run one chat turn that may reconfigure the view
- Publish the global filter catalog

USAGE:
    # Via CLI
    chart-orchestrator dashboard

    # Programmatically
    from chart_orchestrator.web import create_app
    app = create_app()
    # Run with uvicorn
"""

from .app import create_app, run_dashboard

__all__ = ["create_app", "run_dashboard"]
