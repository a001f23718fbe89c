"""
Configuration for Chart Orchestrator.

PURPOSE: Centralized configuration constants and runtime settings.
AI CONTEXT: All configurable values live here - modify this file to change behavior.

CONFIGURATION CATEGORIES:
- URL State: Query parameter name for the chart list
- Charts: Valid chart kinds, known metrics, default dashboard layout
- Filters: The fixed global filter catalog shown to the UI
- HTTP: Timeouts and LLM API constants
- Web: Default host and port for the JSON API

ENVIRONMENT VARIABLES:
- CHART_ORCHESTRATOR_DATA_URL: Metric data endpoint (default: unset)
- CHART_ORCHESTRATOR_CHAT_URL: Chat proxy endpoint (default: unset)
- CHART_ORCHESTRATOR_LLM_API_KEY: Direct LLM API key (default: unset)

USAGE:
    from chart_orchestrator.config import Config
    key = Config.QUERY_KEY
    data_url = Config.get_data_url()
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Any, ClassVar


@dataclass(frozen=True)
class Config:
    """
    Immutable configuration container for Chart Orchestrator.

    DESIGN: Frozen dataclass ensures configuration immutability at runtime.
    All values are class-level constants - no instance creation needed.

    URL LAYOUT:
        /dashboard?c=[{"t":"bar","m":["prs_opened"]}]&repository=backend-api&date=7d
                   └── QUERY_KEY: chart list   └── one parameter per global filter
    """

    # =========================================================================
    # URL STATE
    # =========================================================================
    QUERY_KEY: ClassVar[str] = "c"

    READABLE_ESCAPES: ClassVar[tuple[tuple[str, str], ...]] = (
        ("%5B", "["),
        ("%5D", "]"),
        ("%7B", "{"),
        ("%7D", "}"),
        ("%22", '"'),
        ("%2C", ","),
        ("%3A", ":"),
    )
    """
    Percent-escapes reverted after form-encoding the query string.
    None of these characters is a query delimiter, so parsing is unaffected.
    """

    # =========================================================================
    # CHARTS
    # =========================================================================
    CHART_KINDS: ClassVar[frozenset[str]] = frozenset(
        {
            "line",
            "bar",
            "area",
            "spline",
            "pie",
            "donut",
        }
    )

    METRICS: ClassVar[tuple[str, ...]] = (
        "prs_opened",
        "prs_merged",
        "time_to_merge",
        "active_contributors",
        "bugs_reported",
        "bugs_fixed",
        "health_score",
        "review_cycles",
        "sla_compliance",
        "code_coverage",
        "api_latency_ms",
    )
    """Metric identifiers advertised to the chat assistant. Not enforced on specs."""

    DEFAULT_CHARTS: ClassVar[tuple[dict[str, Any], ...]] = (
        {"t": "bar", "m": ["prs_opened", "prs_merged"], "ti": "PR Velocity"},
        {"t": "area", "m": ["time_to_merge"], "ti": "Time to Merge (Avg Days)"},
        {"t": "line", "m": ["active_contributors"], "ti": "Active Contributors"},
        {"t": "bar", "m": ["bugs_reported", "bugs_fixed"], "ti": "Quality: Bugs"},
    )
    """Layout installed when a dashboard opens with no charts in the URL."""

    # =========================================================================
    # GLOBAL FILTER CATALOG
    # =========================================================================
    FILTER_CATALOG: ClassVar[tuple[dict[str, Any], ...]] = (
        {
            "key": "repository",
            "label": "Repository",
            "type": "select",
            "options": (
                {"value": "", "label": "All Repositories"},
                {"value": "frontend-ui", "label": "Frontend UI"},
                {"value": "backend-api", "label": "Backend API"},
                {"value": "auth-service", "label": "Auth Service"},
            ),
        },
        {
            "key": "date",
            "label": "Date Range",
            "type": "select",
            "options": (
                {"value": "30d", "label": "Last 30 Days"},
                {"value": "7d", "label": "Last 7 Days"},
            ),
        },
    )

    # =========================================================================
    # FETCHING
    # =========================================================================
    HTTP_TIMEOUT_SECONDS: ClassVar[float] = 30.0
    FETCH_ERROR_MESSAGE: ClassVar[str] = "Failed to load data"

    # =========================================================================
    # CHAT / LLM
    # =========================================================================
    LLM_API_URL: ClassVar[str] = "https://api.perplexity.ai/chat/completions"
    LLM_MODEL: ClassVar[str] = "sonar"
    LLM_TEMPERATURE: ClassVar[float] = 0.2
    LLM_TOP_P: ClassVar[float] = 0.9
    CHAT_GREETING: ClassVar[str] = (
        "Hello! I have access to the dashboard metrics. "
        "Ask me about the PR velocity, SLA status, or contributors."
    )
    CHAT_ERROR_REPLY: ClassVar[str] = (
        "Sorry, I encountered an error. Please check your configuration."
    )

    # =========================================================================
    # WEB
    # =========================================================================
    DEFAULT_HOST: ClassVar[str] = "127.0.0.1"
    DEFAULT_PORT: ClassVar[int] = 8000

    # =========================================================================
    # COMPUTED PROPERTIES
    # =========================================================================
    @classmethod
    def filter_keys(cls) -> tuple[str, ...]:
        """
        List the keys of every catalogued global filter.

        Returns:
            Filter keys in catalog order, e.g. ('repository', 'date').

        Example:
            >>> Config.filter_keys()
            ('repository', 'date')
        """
        return tuple(entry["key"] for entry in cls.FILTER_CATALOG)

    # =========================================================================
    # ENVIRONMENT-BASED SETTINGS (runtime configurable)
    # =========================================================================
    _data_url_override: ClassVar[str | None] = None
    _chat_url_override: ClassVar[str | None] = None
    _api_key_override: ClassVar[str | None] = None

    @classmethod
    def get_data_url(cls) -> str | None:
        """
        Get the metric data endpoint used by HttpMetricFetcher.

        Uses a priority system: test overrides take precedence, then the
        CHART_ORCHESTRATOR_DATA_URL environment variable. Empty values are
        treated as unset.

        Business context: The dashboard never owns metric data; it asks an
        upstream service. Deployments point at their own data API here.

        Returns:
            Endpoint URL, or None when no data source is configured.

        Example:
            >>> # With env var: CHART_ORCHESTRATOR_DATA_URL=http://localhost:5173/api/dashboard
            >>> Config.get_data_url()
            'http://localhost:5173/api/dashboard'
        """
        if cls._data_url_override is not None:
            return cls._data_url_override or None
        return os.environ.get("CHART_ORCHESTRATOR_DATA_URL") or None

    @classmethod
    def get_chat_url(cls) -> str | None:
        """
        Get the chat proxy endpoint.

        Returns:
            Proxy URL, or None to fall back to a direct LLM API call.
        """
        if cls._chat_url_override is not None:
            return cls._chat_url_override or None
        return os.environ.get("CHART_ORCHESTRATOR_CHAT_URL") or None

    @classmethod
    def get_llm_api_key(cls) -> str | None:
        """
        Get the API key for direct (non-proxied) LLM calls.

        Returns:
            API key, or None if not configured.
        """
        if cls._api_key_override is not None:
            return cls._api_key_override or None
        return os.environ.get("CHART_ORCHESTRATOR_LLM_API_KEY") or None

    @classmethod
    def set_test_overrides(
        cls,
        data_url: str | None = None,
        chat_url: str | None = None,
        api_key: str | None = None,
    ) -> None:
        """
        Set test overrides for environment-based settings.

        Allows tests to control endpoints and credentials without modifying
        environment variables. Pass an empty string to force a setting to
        "unset" regardless of the environment. Must call
        reset_test_overrides() in test teardown.

        Args:
            data_url: Override for the metric data endpoint. None to clear.
            chat_url: Override for the chat proxy endpoint. None to clear.
            api_key: Override for the LLM API key. None to clear.

        Example:
            >>> Config.set_test_overrides(data_url="http://test/api/data")
            >>> Config.get_data_url()
            'http://test/api/data'
            >>> Config.reset_test_overrides()  # Clean up
        """
        cls._data_url_override = data_url
        cls._chat_url_override = chat_url
        cls._api_key_override = api_key

    @classmethod
    def reset_test_overrides(cls) -> None:
        """Reset all test overrides to use environment variables."""
        cls._data_url_override = None
        cls._chat_url_override = None
        cls._api_key_override = None
