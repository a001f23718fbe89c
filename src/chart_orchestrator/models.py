"""
Data models for Chart Orchestrator.

PURPOSE: Type-safe dataclasses representing the dashboard's view configuration.
AI CONTEXT: These models define the URL wire format and the chat command schema.

MODEL HIERARCHY:
- ChartSpec: One chart (kind, metrics, title, stacking, per-chart filters)
- ViewState: Snapshot of all ChartSpecs plus the global filter set
- ViewUpdate: Validated bulk command proposed by the chat assistant
- MetricSeries: One metric's ordered numeric samples
- FilterDefinition / FilterOption: Catalog entries for global filter controls
- ChatMessage: One message in the assistant conversation

SERIALIZATION:
All models have to_dict() for JSON and from_dict() for loading untrusted input.
ChartSpec uses compact wire keys (t, m, ti, s, f) to keep URLs short.

USAGE:
    spec = ChartSpec.from_dict({"t": "bar", "m": ["prs_opened", "prs_merged"]})
    update = ViewUpdate.from_dict({"filters": {"repository": "backend-api"}})
"""

from __future__ import annotations

import dataclasses
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

from .config import Config

__all__ = [
    "ChartOrchestratorError",
    "InvalidChartSpecError",
    "ViewUpdateError",
    "MetricFetchError",
    "ChatConfigurationError",
    "ChatRequestError",
    "ChartSpec",
    "MetricSeries",
    "FilterOption",
    "FilterDefinition",
    "ViewState",
    "ViewUpdate",
    "ChatMessage",
]


# =============================================================================
# ERRORS
# =============================================================================


class ChartOrchestratorError(Exception):
    """Base class for every error raised by this package."""


class InvalidChartSpecError(ChartOrchestratorError, ValueError):
    """A chart specification failed validation."""


class ViewUpdateError(ChartOrchestratorError, ValueError):
    """A bulk view-update payload has an unknown or invalid shape."""


class MetricFetchError(ChartOrchestratorError):
    """The metric data collaborator could not deliver data."""


class ChatConfigurationError(ChartOrchestratorError):
    """Neither a chat proxy endpoint nor an LLM API key is configured."""


class ChatRequestError(ChartOrchestratorError):
    """The chat collaborator returned an error or an unreadable response."""


# =============================================================================
# VALIDATION HELPERS
# =============================================================================


def _validate_filters(value: Any, *, where: str) -> dict[str, str]:
    """
    Validate a filter mapping of string keys to string values.

    Args:
        value: Candidate mapping from untrusted input.
        where: Context label used in error messages.

    Returns:
        A new plain dict with the same entries.

    Raises:
        InvalidChartSpecError: If value is not a mapping of str -> str.
    """
    if not isinstance(value, Mapping):
        raise InvalidChartSpecError(f"{where}: filters must be an object, got {type(value).__name__}")
    result: dict[str, str] = {}
    for key, item in value.items():
        if not isinstance(key, str) or not isinstance(item, str):
            raise InvalidChartSpecError(f"{where}: filter {key!r} must map a string to a string")
        result[key] = item
    return result


# =============================================================================
# CHART SPEC
# =============================================================================


@dataclass(frozen=True)
class ChartSpec:
    """
    Declarative configuration of one dashboard chart.

    LIFECYCLE:
    1. Created by an "add chart" action or a bulk replace from chat
    2. Patched in place by index (partial-field merge)
    3. Destroyed by explicit removal or by a bulk replace

    WIRE FORMAT (inside the URL token):
        {"t": "bar", "m": ["prs_opened"], "ti": "PRs", "s": true, "f": {"date": "7d"}}
        Optional keys (ti, s, f) are omitted when absent.

    INVARIANTS:
    - kind is one of Config.CHART_KINDS
    - metrics is non-empty once a spec is persisted; a zero-metric spec may
      exist transiently but validate() rejects it
    - Instances are immutable; metrics is stored as a tuple

    Note: filters holds a dict, so instances compare by value but are not
    hashable.
    """

    kind: str
    metrics: tuple[str, ...]
    title: str | None = None
    stacked: bool | None = None
    filters: dict[str, str] | None = None

    def __post_init__(self) -> None:
        """Normalize metrics to a tuple and copy filters so snapshots never alias."""
        object.__setattr__(self, "metrics", tuple(self.metrics))
        if self.filters is not None:
            object.__setattr__(self, "filters", dict(self.filters))

    def validate(self) -> ChartSpec:
        """
        Check the persisted-spec invariants.

        Business context: Anything written to the URL is read back by every
        other consumer, so invalid specs are rejected at the mutation
        boundary instead of surfacing later as blank charts.

        Returns:
            self, to allow chaining.

        Raises:
            InvalidChartSpecError: On unknown kind, empty or non-string
                metrics, or wrongly typed optional fields.

        Example:
            >>> ChartSpec("bar", ()).validate()
            Traceback (most recent call last):
            ...
            InvalidChartSpecError: chart spec: metrics must not be empty
        """
        if not isinstance(self.kind, str) or self.kind not in Config.CHART_KINDS:
            raise InvalidChartSpecError(f"chart spec: unknown chart kind {self.kind!r}")
        if not self.metrics:
            raise InvalidChartSpecError("chart spec: metrics must not be empty")
        if not all(isinstance(metric, str) and metric for metric in self.metrics):
            raise InvalidChartSpecError("chart spec: metrics must be non-empty strings")
        if self.title is not None and not isinstance(self.title, str):
            raise InvalidChartSpecError("chart spec: title must be a string")
        if self.stacked is not None and not isinstance(self.stacked, bool):
            raise InvalidChartSpecError("chart spec: stacked must be a boolean")
        if self.filters is not None:
            _validate_filters(self.filters, where="chart spec")
        return self

    def with_patch(self, patch: Mapping[str, Any]) -> ChartSpec:
        """
        Return a copy with the given fields replaced.

        Args:
            patch: Field name -> new value. Field names are the Python
                attribute names (kind, metrics, title, stacked, filters).

        Returns:
            New validated ChartSpec.

        Raises:
            InvalidChartSpecError: If patch names an unknown field or the
                merged spec is invalid.

        Example:
            >>> spec = ChartSpec("bar", ("prs_opened",))
            >>> spec.with_patch({"kind": "line"}).kind
            'line'
        """
        known = {f.name for f in dataclasses.fields(self)}
        unknown = sorted(set(patch) - known)
        if unknown:
            raise InvalidChartSpecError(f"chart spec: unknown field(s) {', '.join(unknown)}")
        return dataclasses.replace(self, **dict(patch)).validate()

    def to_dict(self) -> dict[str, Any]:
        """Convert to the compact wire form, omitting absent optional fields."""
        data: dict[str, Any] = {"t": self.kind, "m": list(self.metrics)}
        if self.title is not None:
            data["ti"] = self.title
        if self.stacked is not None:
            data["s"] = self.stacked
        if self.filters is not None:
            data["f"] = dict(self.filters)
        return data

    @classmethod
    def from_dict(cls, data: Any) -> ChartSpec:
        """
        Build and validate a ChartSpec from its wire form.

        Tolerates missing optional keys (defaulting to None) and ignores
        unknown keys, so URLs written by older or newer versions still load.

        Args:
            data: Decoded JSON object from the URL or a chat command.

        Returns:
            Validated ChartSpec.

        Raises:
            InvalidChartSpecError: If data is not an object or any field is
                missing or invalid.

        Example:
            >>> ChartSpec.from_dict({"t": "pie", "m": ["bugs_fixed"], "ti": "Bugs"})
            ChartSpec(kind='pie', metrics=('bugs_fixed',), title='Bugs', stacked=None, filters=None)
        """
        if not isinstance(data, Mapping):
            raise InvalidChartSpecError(
                f"chart spec: expected an object, got {type(data).__name__}"
            )
        metrics = data.get("m")
        if not isinstance(metrics, list):
            raise InvalidChartSpecError("chart spec: 'm' must be a list of metric ids")
        filters = data.get("f")
        spec = cls(
            kind=data.get("t"),  # type: ignore[arg-type]
            metrics=tuple(metrics),
            title=data.get("ti"),
            stacked=data.get("s"),
            filters=_validate_filters(filters, where="chart spec") if filters is not None else None,
        )
        return spec.validate()


# =============================================================================
# METRIC DATA
# =============================================================================


@dataclass(frozen=True)
class MetricSeries:
    """One metric's ordered numeric samples."""

    metric: str
    values: tuple[float, ...] = ()

    def __post_init__(self) -> None:
        object.__setattr__(self, "values", tuple(self.values))

    def to_dict(self) -> dict[str, Any]:
        return {"metric": self.metric, "values": list(self.values)}

    @classmethod
    def from_dict(cls, data: Any) -> MetricSeries:
        """
        Parse one entry of a data-endpoint response.

        Accepts 'metric', 'metricId' or 'name' for the identifier, since the
        data API and older clients disagree on the field name.

        Raises:
            MetricFetchError: If the entry is malformed.
        """
        if not isinstance(data, Mapping):
            raise MetricFetchError(f"malformed series entry: {data!r}")
        metric = data.get("metric") or data.get("metricId") or data.get("name")
        values = data.get("values", [])
        if not isinstance(metric, str) or not isinstance(values, list):
            raise MetricFetchError(f"malformed series entry: {data!r}")
        if not all(isinstance(v, int | float) and not isinstance(v, bool) for v in values):
            raise MetricFetchError(f"non-numeric samples for {metric!r}")
        return cls(metric=metric, values=tuple(values))


# =============================================================================
# FILTER CATALOG
# =============================================================================


@dataclass(frozen=True)
class FilterOption:
    """One selectable value of a global filter."""

    value: str
    label: str

    def to_dict(self) -> dict[str, str]:
        return {"value": self.value, "label": self.label}


@dataclass(frozen=True)
class FilterDefinition:
    """
    A recognized global filter and its valid values.

    Business context: The UI renders one control per definition; the chat
    assistant is told the same options so its commands stay in range.
    """

    key: str
    label: str
    type: str = "select"
    options: tuple[FilterOption, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        return {
            "key": self.key,
            "label": self.label,
            "type": self.type,
            "options": [option.to_dict() for option in self.options],
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> FilterDefinition:
        return cls(
            key=data["key"],
            label=data["label"],
            type=data.get("type", "select"),
            options=tuple(
                FilterOption(value=o["value"], label=o["label"]) for o in data.get("options", ())
            ),
        )


# =============================================================================
# VIEW STATE / COMMANDS
# =============================================================================


@dataclass(frozen=True)
class ViewState:
    """
    Read-only snapshot of what the dashboard shows.

    Handed to ViewController subscribers; every notification carries a fresh
    snapshot decoded from the URL.
    """

    specs: tuple[ChartSpec, ...] = ()
    filters: dict[str, str] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(self, "specs", tuple(self.specs))
        object.__setattr__(self, "filters", dict(self.filters))

    def to_dict(self) -> dict[str, Any]:
        return {
            "specs": [spec.to_dict() for spec in self.specs],
            "filters": dict(self.filters),
        }


@dataclass(frozen=True)
class ViewUpdate:
    """
    Bulk view change proposed by the chat assistant.

    A tagged variant over two optional parts, validated on parse:

    KINDS:
    - "replace_specs": specs only - replace the entire chart list
    - "merge_filters": filters only - merge into the global filter set
    - "replace_and_merge": both

    Filter values of "" (or null in JSON) clear that key.
    """

    specs: tuple[ChartSpec, ...] | None = None
    filters: dict[str, str] | None = None

    def __post_init__(self) -> None:
        if self.specs is not None:
            object.__setattr__(self, "specs", tuple(self.specs))
        if self.filters is not None:
            object.__setattr__(self, "filters", dict(self.filters))

    @property
    def kind(self) -> str:
        """Variant tag derived from which parts are present."""
        if self.specs is not None and self.filters is not None:
            return "replace_and_merge"
        if self.specs is not None:
            return "replace_specs"
        return "merge_filters"

    @classmethod
    def from_dict(cls, payload: Any) -> ViewUpdate:
        """
        Validate an untrusted command payload.

        Business context: The payload is produced by a language model and
        embedded in free text, so it is treated as hostile input. Unknown
        top-level keys are ignored; anything else that does not match the
        schema is rejected as a whole.

        Args:
            payload: Decoded JSON value, expected shape
                {"specs": [ChartSpec wire form...], "filters": {key: value}}.

        Returns:
            Validated ViewUpdate with at least one part present.

        Raises:
            ViewUpdateError: If payload is not an object, carries neither
                part, or any part is invalid.

        Example:
            >>> ViewUpdate.from_dict({"filters": {"date": "7d"}}).kind
            'merge_filters'
        """
        if not isinstance(payload, Mapping):
            raise ViewUpdateError(f"view update must be an object, got {type(payload).__name__}")
        raw_specs = payload.get("specs")
        raw_filters = payload.get("filters")
        if raw_specs is None and raw_filters is None:
            raise ViewUpdateError("view update carries neither 'specs' nor 'filters'")

        specs: tuple[ChartSpec, ...] | None = None
        if raw_specs is not None:
            if not isinstance(raw_specs, list):
                raise ViewUpdateError("view update 'specs' must be a list")
            try:
                specs = tuple(ChartSpec.from_dict(item) for item in raw_specs)
            except InvalidChartSpecError as e:
                raise ViewUpdateError(str(e)) from e

        filters: dict[str, str] | None = None
        if raw_filters is not None:
            if not isinstance(raw_filters, Mapping):
                raise ViewUpdateError("view update 'filters' must be an object")
            filters = {}
            for key, value in raw_filters.items():
                if value is None:
                    value = ""
                if not isinstance(key, str) or not isinstance(value, str):
                    raise ViewUpdateError(f"view update filter {key!r} must be a string")
                filters[key] = value

        return cls(specs=specs, filters=filters)

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {}
        if self.specs is not None:
            data["specs"] = [spec.to_dict() for spec in self.specs]
        if self.filters is not None:
            data["filters"] = dict(self.filters)
        return data


@dataclass(frozen=True)
class ChatMessage:
    """One message of the assistant conversation."""

    role: str
    content: str

    def to_dict(self) -> dict[str, str]:
        return {"role": self.role, "content": self.content}
