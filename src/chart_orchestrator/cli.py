"""
CLI entry point for Chart Orchestrator.

PURPOSE: Command-line interface for the JSON API and for working with dashboard URLs.
AI CONTEXT: Main entry points for package execution.

USAGE:
    # Run the JSON API (default)
    python -m chart_orchestrator

    # Or via CLI command (after install)
    chart-orchestrator

    # Run with subcommands
    chart-orchestrator dashboard                # Start the JSON API
    chart-orchestrator decode 'c=[...]&date=7d'  # Print specs and filters
    chart-orchestrator encode view.json         # Print the query for a view
    chart-orchestrator fetch 'c=[...]&date=7d'   # Fetch and print chart data
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from functools import lru_cache
from typing import TYPE_CHECKING, Any, TextIO

from .config import Config

if TYPE_CHECKING:
    from .orchestrator import FetchOrchestrator

# Constants
PROG_NAME = "chart-orchestrator"
LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


@lru_cache(maxsize=1)
def _get_logger() -> logging.Logger:
    """Get module logger (cached for thread safety)."""
    logging.basicConfig(level=logging.INFO, format=LOG_FORMAT)
    return logging.getLogger(__name__)


def _log(message: str, *, emoji: str = "") -> None:
    """Log message with optional emoji prefix for CLI output.

    Args:
        message: The message to log.
        emoji: Optional emoji prefix for visual CLI feedback.
    """
    prefix = f"{emoji} " if emoji else ""
    _get_logger().info(f"{prefix}{message}")


def run_dashboard(host: str = Config.DEFAULT_HOST, port: int = Config.DEFAULT_PORT) -> None:
    """
    Launch the Chart Orchestrator JSON API.

    Business context: The API lets any frontend, bot or export job resolve a
    shared dashboard URL into chart data and apply chat-driven view changes.

    Args:
        host: Network interface to bind to. Default '127.0.0.1' for
            local-only access. Use '0.0.0.0' for network access.
        port: TCP port for the HTTP server. Default 8000.

    Returns:
        None. Blocks until server shutdown (Ctrl+C).

    Raises:
        OSError: If port is already in use.

    Example:
        >>> # From command line:
        >>> # chart-orchestrator dashboard --port 3000
        >>> run_dashboard(port=3000)
        🚀 Starting API at http://127.0.0.1:3000
    """
    from .web import run_dashboard as start_web

    _log(f"Starting API at http://{host}:{port}", emoji="🚀")
    _log("Press Ctrl+C to stop")
    start_web(host=host, port=port)


def run_decode(query: str, out: TextIO | None = None) -> None:
    """
    Print the specs and filters held by a dashboard query or URL.

    Malformed chart tokens degrade to an empty chart list, exactly as the
    dashboard itself would show them.

    Args:
        query: Query string or full dashboard URL.
        out: Output stream. Default: stdout.

    Example:
        >>> run_decode('c=[{"t":"bar","m":["prs_opened"]}]&date=7d')
        {
          "specs": [{"t": "bar", "m": ["prs_opened"]}],
          "filters": {"date": "7d"}
        }
    """
    from .codec import parse_query
    from .models import ViewState

    specs, filters = parse_query(query)
    state = ViewState(specs=tuple(specs), filters=filters)
    # Note: Using print() intentionally for stdout piping support
    print(json.dumps(state.to_dict(), indent=2), file=out or sys.stdout)


def run_encode(document: str, out: TextIO | None = None) -> None:
    """
    Print the readable query for a JSON view document.

    Args:
        document: JSON text of the form {"specs": [...], "filters": {...}}.
            Specs use the wire form (t, m, ti, s, f).
        out: Output stream. Default: stdout.

    Raises:
        ViewUpdateError: If the document is not a valid view.
        json.JSONDecodeError: If the document is not JSON.

    Example:
        >>> run_encode('{"specs": [{"t": "line", "m": ["active_contributors"]}]}')
        c=[{"t":"line","m":["active_contributors"]}]
    """
    from .codec import build_query
    from .models import ViewUpdate

    update = ViewUpdate.from_dict(json.loads(document))
    print(build_query(update.specs or (), update.filters or {}), file=out or sys.stdout)


async def _fetch_view(query: str, orchestrator: FetchOrchestrator) -> dict[str, Any]:
    from .controller import ViewController
    from .session import DashboardSession
    from .url_store import MemoryUrlStore

    session = DashboardSession(ViewController(MemoryUrlStore(query)), orchestrator)
    view = await session.refresh()
    return view.to_dict() if view is not None else {}


def run_fetch(
    query: str,
    orchestrator: FetchOrchestrator | None = None,
    out: TextIO | None = None,
) -> int:
    """
    Fetch data for every chart in a dashboard query and print the view.

    Business context: Reproduces what a shared link shows without a
    browser, which is how empty or failing charts are usually debugged.

    Args:
        query: Query string or full dashboard URL.
        orchestrator: Optional FetchOrchestrator for testability. Defaults
            to one backed by HttpMetricFetcher(Config.get_data_url()).
        out: Output stream. Default: stdout.

    Returns:
        0 when every chart loaded, 1 when at least one chart failed.
    """
    from .fetcher import HttpMetricFetcher
    from .orchestrator import FetchOrchestrator as Orchestrator

    orchestrator = orchestrator or Orchestrator(HttpMetricFetcher())
    view = asyncio.run(_fetch_view(query, orchestrator))
    print(json.dumps(view, indent=2), file=out or sys.stdout)

    failed = [chart for chart in view.get("charts", []) if chart["error"]]
    for chart in failed:
        _log(f"Chart {chart['index']} ({chart['title']}): {chart['error']}", emoji="⚠️")
    return 1 if failed else 0


def _read_document(source: str) -> str:
    if source == "-":
        return sys.stdin.read()
    with open(source, encoding="utf-8") as f:
        return f.read()


def main(argv: list[str] | None = None) -> int:
    """
    Main CLI entry point for Chart Orchestrator.

    Parses command-line arguments and dispatches to the appropriate
    subcommand handler. If no subcommand is specified, defaults to running
    the JSON API.

    Subcommands:
    - dashboard [--host HOST] [--port PORT]: Run the JSON API (default)
    - decode QUERY: Print specs and filters of a query or URL
    - encode [FILE]: Print the query for a JSON view document ('-' = stdin)
    - fetch QUERY: Fetch and print chart data for a query or URL

    Args:
        argv: Argument list. Default: sys.argv[1:].

    Returns:
        Exit code: 0 for success, 1 when fetch saw failed charts, 2 for an
        invalid encode document.

    Raises:
        SystemExit: On --help or argument parsing errors.

    Example:
        >>> # From command line:
        >>> # chart-orchestrator decode 'c=[]&repository=backend-api'
        >>> sys.exit(main())  # Typical usage pattern
    """
    from .__version__ import __version__
    from .models import ViewUpdateError

    parser = argparse.ArgumentParser(
        prog=PROG_NAME,
        description="Chart Orchestrator - URL-backed chart dashboards with chat view updates",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # Dashboard command
    dashboard_parser = subparsers.add_parser(
        "dashboard",
        help="Run the JSON API",
    )
    dashboard_parser.add_argument(
        "--host",
        default=Config.DEFAULT_HOST,
        help=f"Bind address (default: {Config.DEFAULT_HOST})",
    )
    dashboard_parser.add_argument(
        "--port",
        type=int,
        default=Config.DEFAULT_PORT,
        help=f"Port number (default: {Config.DEFAULT_PORT})",
    )

    # Decode command
    decode_parser = subparsers.add_parser(
        "decode",
        help="Print specs and filters of a dashboard query",
    )
    decode_parser.add_argument("query", help="Query string or dashboard URL")

    # Encode command
    encode_parser = subparsers.add_parser(
        "encode",
        help="Print the query for a JSON view document",
    )
    encode_parser.add_argument(
        "source",
        nargs="?",
        default="-",
        help="JSON file with {specs, filters} (default: stdin)",
    )

    # Fetch command
    fetch_parser = subparsers.add_parser(
        "fetch",
        help="Fetch and print chart data for a dashboard query",
    )
    fetch_parser.add_argument("query", help="Query string or dashboard URL")

    args = parser.parse_args(argv)

    if args.command == "decode":
        run_decode(args.query)
    elif args.command == "encode":
        try:
            run_encode(_read_document(args.source))
        except (json.JSONDecodeError, ViewUpdateError) as e:
            _log(f"Invalid view document: {e}", emoji="❌")
            return 2
    elif args.command == "fetch":
        return run_fetch(args.query)
    elif args.command == "dashboard":
        run_dashboard(host=args.host, port=args.port)
    else:
        # Default: run the API on default host/port
        run_dashboard()

    return 0


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())
