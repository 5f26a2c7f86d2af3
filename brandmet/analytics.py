"""Pure analytics functions that work on metric records."""

from datetime import date, timedelta
from math import fsum
from typing import Callable, Dict, Iterable, List, Optional, Tuple

import structlog

from .models import (
    SUMMARY_METRICS,
    Delta,
    MetricRecord,
    MoverRanking,
    PeriodSummary,
    ProviderPerformance,
    SummaryDeltas,
    TopMoverItem,
)

logger = structlog.get_logger(__name__)

POSITION_SOURCES = ("positions", "first_position")

_GROUP_KEYS: Dict[str, Callable[[MetricRecord], Optional[str]]] = {
    "query": lambda record: record.query_id,
    "topic": lambda record: record.topic,
    "source": lambda record: record.source_domain,
}


def summarize_records(
    records: Iterable[MetricRecord],
    position_source: str = "positions",
) -> PeriodSummary:
    """
    Reduce a record set into a single period summary.

    Empty input yields the all-zero summary. Records without a ranked
    position are left out of the position average instead of counting as 0.
    """
    if position_source not in POSITION_SOURCES:
        raise ValueError(f"Unknown position source: {position_source}")

    records_list = list(records)
    if not records_list:
        return PeriodSummary()

    total = len(records_list)
    visibility = fsum(record.visibility_index for record in records_list) / total * 100
    share_of_answer = fsum(record.share_of_answer for record in records_list) / total
    sentiment = fsum(record.sentiment_score for record in records_list) / total
    present = sum(1 for record in records_list if record.has_brand_presence)

    if position_source == "positions":
        ranked = [
            fsum(record.positions) / len(record.positions)
            for record in records_list
            if record.positions
        ]
    else:
        ranked = [
            float(record.first_position)
            for record in records_list
            if record.first_position is not None
        ]
    average_position = fsum(ranked) / len(ranked) if ranked else 0.0

    return PeriodSummary(
        visibility=round(visibility, 2),
        share_of_answer=round(share_of_answer, 2),
        sentiment=round(sentiment, 2),
        appearance_rate=round(present / total * 100, 2),
        average_position=round(average_position, 2),
        record_count=total,
    )


def compute_delta(current: float, previous: float) -> Delta:
    """Absolute and percentage change; a zero baseline yields 0%."""
    absolute = current - previous
    percentage = (absolute / previous) * 100 if previous != 0 else 0.0
    return Delta(absolute=round(absolute, 2), percentage=round(percentage, 2))


def compute_summary_deltas(current: PeriodSummary, previous: PeriodSummary) -> SummaryDeltas:
    return SummaryDeltas(
        **{
            metric: compute_delta(current.metric(metric), previous.metric(metric))
            for metric in SUMMARY_METRICS
        }
    )


def build_trend_windows(
    end_date: date,
    window_count: int = 12,
    window_days: int = 7,
) -> List[Tuple[date, date]]:
    """
    Split the span ending at ``end_date`` into contiguous inclusive windows.

    Windows are returned oldest first and the last one ends on ``end_date``.
    """
    if window_count < 1:
        raise ValueError("window_count must be at least 1")
    if window_days < 1:
        raise ValueError("window_days must be at least 1")

    first_start = end_date - timedelta(days=window_count * window_days - 1)
    windows = []
    for index in range(window_count):
        window_start = first_start + timedelta(days=index * window_days)
        windows.append((window_start, window_start + timedelta(days=window_days - 1)))
    return windows


def group_records(
    records: Iterable[MetricRecord],
    group_by: str,
) -> Dict[str, List[MetricRecord]]:
    """Group records by query, topic or citation source; keyless records are skipped."""
    if group_by not in _GROUP_KEYS:
        raise ValueError(f"Unknown grouping: {group_by}")

    key_of = _GROUP_KEYS[group_by]
    groups: Dict[str, List[MetricRecord]] = {}
    for record in records:
        key = key_of(record)
        if not key:
            continue
        groups.setdefault(key, []).append(record)
    return groups


def rank_top_movers(
    current_records: Iterable[MetricRecord],
    previous_records: Iterable[MetricRecord],
    group_by: str,
    metric: str,
    top_k: int = 5,
    impact_lookup: Optional[Callable[[str], Optional[float]]] = None,
    name_resolver: Optional[Callable[[str], Optional[str]]] = None,
    position_source: str = "positions",
) -> MoverRanking:
    """
    Rank the groups whose metric moved most between two periods.

    A group seen in only one period counts as 0 in the other. For
    ``average_position`` a lower value is better, so gains are negative
    changes.
    """
    if metric not in SUMMARY_METRICS:
        raise ValueError(f"Unknown summary metric: {metric}")
    if top_k < 0:
        raise ValueError("top_k must not be negative")

    current_groups = group_records(current_records, group_by)
    previous_groups = group_records(previous_records, group_by)
    inverted = metric == "average_position"

    candidates = []
    for key in sorted(set(current_groups) | set(previous_groups)):
        current = summarize_records(current_groups.get(key, ()), position_source)
        previous = summarize_records(previous_groups.get(key, ()), position_source)
        if current.visibility == 0 and previous.visibility == 0:
            continue

        current_value = current.metric(metric)
        previous_value = previous.metric(metric)
        if inverted and (current_value == 0 or previous_value == 0):
            continue

        delta = compute_delta(current_value, previous_value)
        if delta.absolute == 0:
            continue
        candidates.append((key, delta, current_value, previous_value))

    improved = [item for item in candidates if (item[1].absolute < 0) == inverted]
    declined = [item for item in candidates if (item[1].absolute > 0) == inverted]

    impacts: Dict[str, Optional[float]] = {}
    if impact_lookup is not None:
        for key, _, _, _ in candidates:
            impacts[key] = _safe_impact(impact_lookup, key)

    def order(items: list, most_negative_first: bool) -> list:
        def sort_key(item):
            key, delta, current_value, _ = item
            change = delta.absolute if most_negative_first else -delta.absolute
            ranking = (change, -current_value, key)
            if impact_lookup is not None:
                return (-(impacts.get(key) or 0.0),) + ranking
            return ranking

        return sorted(items, key=sort_key)[:top_k]

    gains = order(improved, most_negative_first=inverted)
    losses = order(declined, most_negative_first=not inverted)

    def to_item(item) -> TopMoverItem:
        key, delta, current_value, previous_value = item
        return TopMoverItem(
            name=_resolve_name(name_resolver, key),
            group_key=key,
            metric=metric,
            change_absolute=delta.absolute,
            change_percentage=delta.percentage,
            current_value=current_value,
            previous_value=previous_value,
            impact_score=impacts.get(key),
        )

    return MoverRanking(
        gains=tuple(to_item(item) for item in gains),
        losses=tuple(to_item(item) for item in losses),
    )


def summarize_by_provider(
    current_records: Iterable[MetricRecord],
    previous_records: Iterable[MetricRecord],
    position_source: str = "positions",
) -> Dict[str, ProviderPerformance]:
    """
    Break brand performance down by the answer engine that produced each record.

    Failures are not contained here; the report assembler drops the whole
    provider section when this raises.
    """
    if position_source not in POSITION_SOURCES:
        raise ValueError(f"Unknown position source: {position_source}")

    current_groups = _group_by_provider(current_records)
    previous_groups = _group_by_provider(previous_records)

    by_provider: Dict[str, ProviderPerformance] = {}
    for provider in sorted(set(current_groups) | set(previous_groups)):
        current = summarize_records(current_groups.get(provider, ()), position_source)
        previous = summarize_records(previous_groups.get(provider, ()), position_source)
        by_provider[provider] = ProviderPerformance(
            current=current,
            previous=previous,
            deltas=compute_summary_deltas(current, previous),
        )
    return by_provider


def _group_by_provider(records: Iterable[MetricRecord]) -> Dict[str, List[MetricRecord]]:
    groups: Dict[str, List[MetricRecord]] = {}
    for record in records:
        groups.setdefault(record.collector_type or "unknown", []).append(record)
    return groups


def _resolve_name(resolver: Optional[Callable[[str], Optional[str]]], key: str) -> str:
    if resolver is None:
        return key
    try:
        name = resolver(key)
    except Exception as exc:
        logger.warning("name_resolution_failed", group_key=key, error=str(exc))
        return key
    return name or key


def _safe_impact(lookup: Callable[[str], Optional[float]], key: str) -> Optional[float]:
    try:
        score = lookup(key)
    except Exception as exc:
        logger.warning("impact_lookup_failed", group_key=key, error=str(exc))
        return None
    return float(score) if score is not None else None

