"""
State codec for Chart Orchestrator.

PURPOSE: Serialize the chart list and global filters to and from a URL query.
AI CONTEXT: All URL encoding/decoding goes through this module.

QUERY LAYOUT:
    c=[{"t":"bar","m":["prs_opened","prs_merged"],"ti":"PR Velocity"}]&repository=backend-api&date=7d
    └─ Config.QUERY_KEY: compact JSON array of ChartSpec wire dicts
                                                                      └─ one parameter per global filter

ERROR HANDLING STRATEGY:
- Missing token: Return empty list
- JSON corruption / non-list token: Log error, return empty list
- Single malformed chart in a valid list: Log warning, skip that chart
- decode_specs never raises to the caller

READABILITY:
Form-encoding escapes {}[]":, which makes shared URLs unreadable. After
encoding, those escapes are reverted (Config.READABLE_ESCAPES). None of the
characters is a query delimiter, so the decoded value is unchanged.

USAGE:
    token = encode_specs(specs)
    specs = decode_specs(token)
    query = build_query(specs, {"date": "7d"})
    specs, filters = parse_query(query)
"""

from __future__ import annotations

import json
import logging
from collections.abc import Iterable, Mapping
from urllib.parse import parse_qsl, urlencode, urlsplit

from .config import Config
from .models import ChartSpec, InvalidChartSpecError

__all__ = [
    "encode_specs",
    "decode_specs",
    "build_query",
    "parse_query",
    "make_readable",
]

logger = logging.getLogger(__name__)


def encode_specs(specs: Iterable[ChartSpec]) -> str:
    """
    Serialize ChartSpecs to the compact JSON token stored in the URL.

    Args:
        specs: Ordered chart specifications.

    Returns:
        JSON array string without insignificant whitespace. Non-ASCII
        titles are kept as-is; the URL encoder escapes them later.

    Example:
        >>> encode_specs([ChartSpec("bar", ("prs_opened",))])
        '[{"t":"bar","m":["prs_opened"]}]'
    """
    return json.dumps(
        [spec.to_dict() for spec in specs],
        separators=(",", ":"),
        ensure_ascii=False,
    )


def decode_specs(token: str | None) -> list[ChartSpec]:
    """
    Parse the URL token back into ChartSpecs.

    Business context: A bad link must never break the dashboard. Decode
    failures degrade to an empty view (or drop only the broken chart) and
    are logged for debugging instead of propagating.

    Args:
        token: JSON array string from the query, or None when absent.

    Returns:
        List of validated ChartSpecs. Empty on any token-level failure.

    Example:
        >>> decode_specs('[{"t":"line","m":["active_contributors"]}]')
        [ChartSpec(kind='line', metrics=('active_contributors',), title=None, stacked=None, filters=None)]
        >>> decode_specs("not json")
        []
    """
    if not token:
        return []
    try:
        raw = json.loads(token)
    except json.JSONDecodeError as e:
        logger.error(f"Chart state parse error: {e}")
        return []
    if not isinstance(raw, list):
        logger.error(f"Chart state parse error: expected a list, got {type(raw).__name__}")
        return []

    specs: list[ChartSpec] = []
    for position, item in enumerate(raw):
        try:
            specs.append(ChartSpec.from_dict(item))
        except InvalidChartSpecError as e:
            logger.warning(f"Skipping chart {position}: {e}")
    return specs


def make_readable(query: str) -> str:
    """
    Revert the percent-escapes of {}[]":, in an encoded query string.

    Args:
        query: Form-encoded query string.

    Returns:
        Same query with Config.READABLE_ESCAPES applied.
    """
    for escaped, char in Config.READABLE_ESCAPES:
        query = query.replace(escaped, char)
    return query


def build_query(
    specs: Iterable[ChartSpec],
    filters: Mapping[str, str] | None = None,
    query_key: str = Config.QUERY_KEY,
) -> str:
    """
    Build the full dashboard query string.

    The chart token comes first, followed by one parameter per global filter
    in mapping order. Filters with empty values are unset and omitted.

    Args:
        specs: Ordered chart specifications.
        filters: Global filter set.
        query_key: Parameter holding the chart token.

    Returns:
        Readable query string without the leading '?'.

    Example:
        >>> build_query([ChartSpec("bar", ("prs_opened",))], {"date": "7d"})
        'c=[{"t":"bar","m":["prs_opened"]}]&date=7d'
    """
    params: list[tuple[str, str]] = [(query_key, encode_specs(specs))]
    for key, value in (filters or {}).items():
        if key == query_key or not value:
            continue
        params.append((key, value))
    return make_readable(urlencode(params))


def parse_query(
    query: str,
    query_key: str = Config.QUERY_KEY,
) -> tuple[list[ChartSpec], dict[str, str]]:
    """
    Split a query string (or full URL) into chart specs and global filters.

    Every non-empty parameter other than the chart token is a global filter;
    keys outside the filter catalog are passed through opaquely. When a
    parameter repeats, its first occurrence wins.

    Args:
        query: Query string with or without '?', or an absolute/relative URL.
        query_key: Parameter holding the chart token.

    Returns:
        Tuple of (specs, filters). Never raises for malformed chart tokens.

    Example:
        >>> parse_query("/dashboard?c=[]&repository=backend-api")
        ([], {'repository': 'backend-api'})
    """
    # '?' is legal inside a query, so only real URLs are split
    if query.startswith("/") or "://" in query.split("?", 1)[0]:
        query = urlsplit(query).query
    query = query.removeprefix("?").split("#", 1)[0]

    token: str | None = None
    filters: dict[str, str] = {}
    for key, value in parse_qsl(query, keep_blank_values=True):
        if key == query_key:
            if token is None:
                token = value
        elif value and key not in filters:
            filters[key] = value
    return decode_specs(token), filters
