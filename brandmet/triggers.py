"""Rule-based detection of report-worthy events."""

from dataclasses import dataclass
from typing import List

from .models import SEVERITY_ORDER, ReportDataSnapshot, SummaryFact


@dataclass(frozen=True)
class TriggerThresholds:
    visibility_change_pct: float = 15.0
    sentiment_shift: float = 0.5
    competitor_soa_gain: float = 10.0
    share_of_answer_change_pct: float = 15.0
    traffic_change_pct: float = 20.0


def detect_summary_facts(
    snapshot: ReportDataSnapshot,
    thresholds: TriggerThresholds = TriggerThresholds(),
) -> List[SummaryFact]:
    """
    Evaluate the fixed rule set against an assembled snapshot.

    Rules run in a fixed order and the result is sorted by severity,
    keeping rule order among facts of equal severity.
    """
    facts: List[SummaryFact] = []
    performance = snapshot.brand_performance

    if performance is not None:
        facts.extend(_visibility_facts(snapshot, thresholds))
        facts.extend(_sentiment_facts(snapshot, thresholds))
    facts.extend(_competitive_threat_facts(snapshot, thresholds))
    if performance is not None:
        facts.extend(_share_of_answer_facts(snapshot, thresholds))
    facts.extend(_traffic_facts(snapshot, thresholds))

    return sorted(facts, key=lambda fact: SEVERITY_ORDER[fact.severity])


def _visibility_facts(snapshot: ReportDataSnapshot, thresholds: TriggerThresholds) -> List[SummaryFact]:
    performance = snapshot.brand_performance
    delta = performance.deltas.visibility
    metrics = {
        "percentage_change": delta.percentage,
        "absolute_change": delta.absolute,
        "current_value": performance.current.visibility,
    }
    if delta.percentage > thresholds.visibility_change_pct:
        return [
            SummaryFact(
                type="visibility_gain",
                severity="high",
                description=f"Significant visibility improvement of {delta.percentage:.1f}%",
                metrics=metrics,
            )
        ]
    if delta.percentage < -thresholds.visibility_change_pct:
        return [
            SummaryFact(
                type="visibility_loss",
                severity="high",
                description=f"Significant visibility decline of {abs(delta.percentage):.1f}%",
                metrics=metrics,
            )
        ]
    return []


def _sentiment_facts(snapshot: ReportDataSnapshot, thresholds: TriggerThresholds) -> List[SummaryFact]:
    performance = snapshot.brand_performance
    delta = performance.deltas.sentiment
    metrics = {
        "absolute_change": delta.absolute,
        "current_value": performance.current.sentiment,
    }
    if delta.absolute > thresholds.sentiment_shift:
        return [
            SummaryFact(
                type="sentiment_shift",
                severity="medium",
                description=f"Material sentiment improvement of +{delta.absolute:.2f}",
                metrics=metrics,
            )
        ]
    if delta.absolute < -thresholds.sentiment_shift:
        return [
            SummaryFact(
                type="sentiment_shift",
                severity="high",
                description=f"Material sentiment deterioration of {delta.absolute:.2f}",
                metrics=metrics,
            )
        ]
    return []


def _competitive_threat_facts(
    snapshot: ReportDataSnapshot,
    thresholds: TriggerThresholds,
) -> List[SummaryFact]:
    facts = []
    for entry in snapshot.competitive_landscape:
        if entry.is_brand:
            continue
        gain = entry.deltas.share_of_answer.absolute
        if gain > thresholds.competitor_soa_gain:
            facts.append(
                SummaryFact(
                    type="competitive_threat",
                    severity="high",
                    description=f"{entry.name} gained {gain:.1f} percentage points in SOA",
                    metrics={
                        "competitor": entry.name,
                        "soa_gain": gain,
                        "current_soa": entry.current.share_of_answer,
                    },
                )
            )
    return facts


def _share_of_answer_facts(
    snapshot: ReportDataSnapshot,
    thresholds: TriggerThresholds,
) -> List[SummaryFact]:
    performance = snapshot.brand_performance
    delta = performance.deltas.share_of_answer
    metrics = {
        "percentage_change": delta.percentage,
        "absolute_change": delta.absolute,
        "current_value": performance.current.share_of_answer,
    }
    if delta.percentage > thresholds.share_of_answer_change_pct:
        return [
            SummaryFact(
                type="share_of_answer_gain",
                severity="high",
                description=f"Strong SOA growth of {delta.percentage:.1f}%",
                metrics=metrics,
            )
        ]
    if delta.percentage < -thresholds.share_of_answer_change_pct:
        return [
            SummaryFact(
                type="share_of_answer_loss",
                severity="high",
                description=f"Concerning SOA decline of {abs(delta.percentage):.1f}%",
                metrics=metrics,
            )
        ]
    return []


def _traffic_facts(snapshot: ReportDataSnapshot, thresholds: TriggerThresholds) -> List[SummaryFact]:
    traffic = snapshot.traffic
    if traffic is None:
        return []

    change = traffic.sessions.percentage
    metrics = {
        "sessions_change": change,
        "conversions_change": traffic.conversions.percentage,
    }
    if change > thresholds.traffic_change_pct:
        return [
            SummaryFact(
                type="traffic_change",
                severity="high",
                description=f"AEO traffic increased by {change:.1f}%",
                metrics=metrics,
            )
        ]
    if change < -thresholds.traffic_change_pct:
        return [
            SummaryFact(
                type="traffic_change",
                severity="high",
                description=f"AEO traffic decreased by {abs(change):.1f}%",
                metrics=metrics,
            )
        ]
    return []
