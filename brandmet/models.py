"""Core domain models used by the reporting engine."""

from collections.abc import Mapping as MappingABC
from dataclasses import dataclass, field, fields, is_dataclass
from datetime import date, datetime
from typing import Any, Dict, Mapping, Optional, Tuple, Union, get_args, get_origin, get_type_hints

SUMMARY_METRICS = (
    "visibility",
    "share_of_answer",
    "sentiment",
    "appearance_rate",
    "average_position",
)
GROUP_DIMENSIONS = ("query", "topic", "source")
MOVER_METRICS = ("visibility", "share_of_answer", "sentiment", "average_position")
SEVERITY_ORDER = {"high": 0, "medium": 1, "low": 2}
PERIOD_DAYS_CHOICES = (7, 30, 60, 90)


@dataclass(frozen=True)
class MetricRecord:
    """A single answer-engine measurement for one entity."""

    entity_id: str
    query_id: Optional[str]
    topic: Optional[str]
    source_domain: Optional[str]
    collector_type: str
    visibility_index: float
    share_of_answer: float
    sentiment_score: float
    has_brand_presence: bool
    first_position: Optional[int]
    positions: Tuple[int, ...]
    timestamp: datetime


@dataclass(frozen=True)
class PeriodSummary:
    """Aggregated metrics for one entity over one date range."""

    visibility: float = 0.0
    share_of_answer: float = 0.0
    sentiment: float = 0.0
    appearance_rate: float = 0.0
    average_position: float = 0.0
    record_count: int = 0

    def metric(self, name: str) -> float:
        if name not in SUMMARY_METRICS:
            raise ValueError(f"Unknown summary metric: {name}")
        return getattr(self, name)


@dataclass(frozen=True)
class Delta:
    absolute: float = 0.0
    percentage: float = 0.0


@dataclass(frozen=True)
class SummaryDeltas:
    visibility: Delta = Delta()
    share_of_answer: Delta = Delta()
    sentiment: Delta = Delta()
    appearance_rate: Delta = Delta()
    average_position: Delta = Delta()


@dataclass(frozen=True)
class TrendPoint:
    window_start: date
    window_end: date
    value: float


@dataclass(frozen=True)
class TopMoverItem:
    """A query, topic or citation source whose metric moved between periods."""

    name: str
    group_key: str
    metric: str
    change_absolute: float
    change_percentage: float
    current_value: float
    previous_value: float
    impact_score: Optional[float] = None


@dataclass(frozen=True)
class MoverRanking:
    gains: Tuple[TopMoverItem, ...] = ()
    losses: Tuple[TopMoverItem, ...] = ()


@dataclass(frozen=True)
class LandscapeDeltas:
    visibility: Delta = Delta()
    share_of_answer: Delta = Delta()


@dataclass(frozen=True)
class CompetitiveLandscapeEntry:
    name: str
    is_brand: bool
    current: PeriodSummary
    deltas: LandscapeDeltas
    website_url: str = ""
    entity_id: Optional[str] = None


@dataclass(frozen=True)
class SummaryFact:
    """Deterministic finding handed to narrative generation."""

    type: str
    severity: str
    description: str
    metrics: Mapping[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class EntityRef:
    entity_id: str
    name: str
    website_url: str = ""


@dataclass(frozen=True)
class BrandProfile:
    brand_id: str
    name: str
    customer_scope: str
    website_url: str = ""


@dataclass(frozen=True)
class ReportRequest:
    brand_id: str
    period_days: int
    end_date: Optional[date] = None


@dataclass(frozen=True)
class ReportPeriods:
    """Inclusive current and comparison date ranges of a report."""

    period_start: date
    period_end: date
    comparison_start: date
    comparison_end: date


@dataclass(frozen=True)
class BrandPerformance:
    current: PeriodSummary
    previous: PeriodSummary
    deltas: SummaryDeltas
    trends: Mapping[str, Tuple[TrendPoint, ...]] = field(default_factory=dict)


@dataclass(frozen=True)
class ProviderPerformance:
    current: PeriodSummary
    previous: PeriodSummary
    deltas: SummaryDeltas


@dataclass(frozen=True)
class TrafficSummary:
    """Answer-engine attributed site traffic for one period."""

    sessions: float = 0.0
    conversions: float = 0.0
    revenue: Optional[float] = None


@dataclass(frozen=True)
class TrafficAttribution:
    current: TrafficSummary
    previous: TrafficSummary
    sessions: Delta
    conversions: Delta
    revenue: Optional[Delta] = None


@dataclass(frozen=True)
class ReportDataSnapshot:
    """Everything a report shows, assembled once per generation run."""

    brand: BrandProfile
    periods: ReportPeriods
    brand_performance: Optional[BrandPerformance] = None
    provider_performance: Mapping[str, ProviderPerformance] = field(default_factory=dict)
    competitive_landscape: Tuple[CompetitiveLandscapeEntry, ...] = ()
    top_movers: Mapping[str, Mapping[str, MoverRanking]] = field(default_factory=dict)
    traffic: Optional[TrafficAttribution] = None
    facts: Tuple[SummaryFact, ...] = ()

    def to_dict(self) -> Dict:
        return to_primitive(self)


@dataclass(frozen=True)
class ExecutiveReport:
    brand_id: str
    periods: ReportPeriods
    snapshot: ReportDataSnapshot
    narrative: str
    generated_at: datetime
    generated_by: Optional[str] = None
    report_id: Optional[str] = None

    def to_dict(self) -> Dict:
        return to_primitive(self)


def to_primitive(value: Any) -> Any:
    """Convert models into JSON-ready dicts, lists and ISO date strings."""
    if is_dataclass(value) and not isinstance(value, type):
        return {item.name: to_primitive(getattr(value, item.name)) for item in fields(value)}
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, Mapping):
        return {str(key): to_primitive(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [to_primitive(item) for item in value]
    return value


def from_primitive(model: type, data: Any) -> Any:
    """Rebuild a model from the output of ``to_primitive``."""
    return _decode(model, data)


def _decode(annotation: Any, value: Any) -> Any:
    if value is None:
        return None

    origin = get_origin(annotation)
    args = get_args(annotation)
    if origin is Union:
        inner = [arg for arg in args if arg is not type(None)]
        return _decode(inner[0], value)
    if is_dataclass(annotation):
        hints = get_type_hints(annotation)
        return annotation(
            **{
                item.name: _decode(hints[item.name], value[item.name])
                for item in fields(annotation)
                if item.name in value
            }
        )
    if origin is tuple:
        return tuple(_decode(args[0], item) for item in value)
    if origin in (MappingABC, dict):
        return {key: _decode(args[1], item) for key, item in value.items()}
    if annotation is datetime:
        return datetime.fromisoformat(value)
    if annotation is date:
        return date.fromisoformat(value)
    if annotation is float:
        return float(value)
    return value
