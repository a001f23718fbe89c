"""Version information for chart-orchestrator."""

__version__ = "0.4.0"
__version_date__ = "2026-10-19"

__title__ = "chart_orchestrator"
__description__ = "URL-backed chart configuration, request deduplication and chat-driven view updates"

__author__ = "Mark Grandau"

__license__ = "MIT"
__copyright__ = "Copyright 2025 Mark Grandau"

__all__ = [
    "__version__",
    "__version_date__",
    "__title__",
    "__description__",
    "__author__",
    "__license__",
    "__copyright__",
]
