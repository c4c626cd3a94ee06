from collections.abc import Mapping
from datetime import datetime
from typing import Any, Protocol

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from toggle_analysis.common.timestamps import format_timestamp, parse_timestamp

# Statistics are opaque payloads relayed exactly as received, so they are typed Any:
# no coercion ("0.50" stays a string) and no shape check (a 3-item interval is kept).
StatValue = Any


class _WireModel(BaseModel):
    """Base for models exchanged with the analysis API (camelCase on the wire)."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ScopeKeys(BaseModel):
    """Identifies the toggle whose analysis is shown."""

    model_config = ConfigDict(frozen=True)

    project_key: str
    environment_key: str
    toggle_key: str

    @property
    def path(self) -> str:
        return f"/{self.project_key}/{self.environment_key}/{self.toggle_key}"

    def __str__(self) -> str:
        return f"{self.project_key}/{self.environment_key}/{self.toggle_key}"


class DistributionPoint(BaseModel):
    x: StatValue
    y: StatValue


class VariationStat(_WireModel):
    distribution_points: list[DistributionPoint] = Field(
        default_factory=list,
        validation_alias=AliasChoices(
            "distributionPoints", "distributionChart", "distribution_points"
        ),
    )
    mean: StatValue = None
    winning_percentage: StatValue = None
    credible_interval: StatValue = None
    sample_size: StatValue = None


class AnalysisResult(BaseModel):
    """Per-variation statistics as an explicit sequence of ``(key, stat)`` pairs.

    The API delivers a JSON object keyed by variation index; its insertion order
    is the display order, so it is captured here rather than left to a mapping.
    """

    model_config = ConfigDict(frozen=True)

    entries: tuple[tuple[str, VariationStat], ...] = ()

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any] | None) -> "AnalysisResult":
        if not data:
            return cls()
        entries = []
        for key, stat in data.items():
            if not isinstance(stat, VariationStat):
                stat = VariationStat.model_validate(stat)
            entries.append((str(key), stat))
        return cls(entries=tuple(entries))

    @property
    def is_empty(self) -> bool:
        return not self.entries

    def keys(self) -> list[str]:
        return [key for key, _ in self.entries]


class Variation(BaseModel):
    index: int
    name: str = ""
    value: str | None = None
    description: str | None = None


class TimeWindow(BaseModel):
    """A committed analysis window; both bounds are canonical timestamps."""

    model_config = ConfigDict(frozen=True)

    start: str
    end: str

    @field_validator("start", "end", mode="before")
    @classmethod
    def normalize_timestamp(cls, v) -> str:
        return format_timestamp(v)

    def as_params(self) -> dict[str, str]:
        return {"start": self.start, "end": self.end}

    @property
    def start_at(self) -> datetime:
        return parse_timestamp(self.start)

    @property
    def end_at(self) -> datetime:
        return parse_timestamp(self.end)


class IterationMarker(_WireModel):
    """A collection checkpoint shown on the timeline; unknown fields are kept as-is."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="allow")

    start: str | None = None
    stop: str | None = None


class EventInfo(_WireModel):
    name: str
    metric_type: str | None = None
    event_type: str | None = None
    matcher: str | None = None
    url: str | None = None


class TargetingSnapshot(_WireModel):
    variations: list[Variation] = Field(default_factory=list)
    track_access_events: bool = False
    allow_enable_track_events: bool = True

    @field_validator("variations", mode="before")
    @classmethod
    def assign_variation_indices(cls, v):
        """Targeting payloads list variations positionally; the position is the index."""
        if not v:
            return []
        indexed = []
        for position, item in enumerate(v):
            if isinstance(item, dict) and "index" not in item:
                item = {**item, "index": position}
            indexed.append(item)
        return indexed


class AnalysisFetch(BaseModel):
    """Response of an analysis fetch: the result and the window the server used."""

    data: AnalysisResult = Field(default_factory=AnalysisResult)
    start: str
    end: str

    @field_validator("data", mode="before")
    @classmethod
    def coerce_mapping(cls, v):
        if v is None:
            return AnalysisResult()
        if isinstance(v, AnalysisResult):
            return v
        return AnalysisResult.from_mapping(v)


class ChartSeries(BaseModel):
    model_config = ConfigDict(frozen=True)

    label: str
    values: tuple[StatValue, ...] = ()


class TableRow(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    mean: StatValue
    winning_percentage: StatValue
    credible_interval: StatValue
    sample_size: StatValue


class ViewModel(BaseModel):
    """Display-ready derivation of an AnalysisResult. Never mutated after creation."""

    model_config = ConfigDict(frozen=True)

    has_data: bool = False
    chart_series: tuple[ChartSeries, ...] = ()
    table_rows: tuple[TableRow, ...] = ()
    axis_labels: tuple[StatValue, ...] = ()


class AnalysisPanel(BaseModel):
    """Everything the presentation layer needs to draw the results panel."""

    view_model: ViewModel
    window: TimeWindow | None
    location: str
    collection_enabled: bool
    allow_enable_collection: bool
    busy: bool
    confirmation_pending: bool
    iterations: list[IterationMarker]
    event: EventInfo | None
    event_summary: str | None
    show_event_tip: bool
    notifications: list[str]


class AnalysisBackend(Protocol):
    """Collaborator contract for everything the controller fetches or commands.

    Implementations raise ``AnalysisClientError`` (or a subclass) on failure.
    """

    async def fetch_analysis(self, scope: ScopeKeys, window: TimeWindow | None) -> AnalysisFetch:
        ...

    async def fetch_iteration_markers(self, scope: ScopeKeys) -> list[IterationMarker]:
        ...

    async def request_collection_state(self, scope: ScopeKeys, desired: bool) -> bool:
        ...

    async def fetch_targeting(self, scope: ScopeKeys) -> TargetingSnapshot:
        ...

    async def fetch_event_info(self, scope: ScopeKeys) -> EventInfo | None:
        ...
