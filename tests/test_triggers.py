from datetime import date

from brandmet.models import (
    BrandPerformance,
    BrandProfile,
    CompetitiveLandscapeEntry,
    Delta,
    LandscapeDeltas,
    PeriodSummary,
    ReportDataSnapshot,
    ReportPeriods,
    SummaryDeltas,
    TrafficAttribution,
    TrafficSummary,
)
from brandmet.triggers import TriggerThresholds, detect_summary_facts

PERIODS = ReportPeriods(
    period_start=date(2026, 3, 25),
    period_end=date(2026, 3, 31),
    comparison_start=date(2026, 3, 18),
    comparison_end=date(2026, 3, 24),
)
BRAND = BrandProfile(brand_id="brand-1", name="Acme", customer_scope="cust-1")


def _snapshot(deltas=SummaryDeltas(), landscape=(), traffic=None, with_performance=True):
    performance = None
    if with_performance:
        performance = BrandPerformance(
            current=PeriodSummary(visibility=46.0, share_of_answer=23.0, sentiment=0.4),
            previous=PeriodSummary(visibility=40.0, share_of_answer=20.0, sentiment=0.1),
            deltas=deltas,
        )
    return ReportDataSnapshot(
        brand=BRAND,
        periods=PERIODS,
        brand_performance=performance,
        competitive_landscape=tuple(landscape),
        traffic=traffic,
    )


def _competitor(name, soa_gain, is_brand=False):
    return CompetitiveLandscapeEntry(
        name=name,
        is_brand=is_brand,
        current=PeriodSummary(visibility=30.0, share_of_answer=35.0),
        deltas=LandscapeDeltas(share_of_answer=Delta(absolute=soa_gain, percentage=0.0)),
    )


def test_no_facts_for_quiet_period():
    assert detect_summary_facts(_snapshot()) == []


def test_visibility_gain_and_loss_rules():
    gain = detect_summary_facts(_snapshot(SummaryDeltas(visibility=Delta(6.0, 15.01))))
    loss = detect_summary_facts(_snapshot(SummaryDeltas(visibility=Delta(-8.0, -20.0))))
    edge = detect_summary_facts(_snapshot(SummaryDeltas(visibility=Delta(6.0, 15.0))))

    assert [(fact.type, fact.severity) for fact in gain] == [("visibility_gain", "high")]
    assert gain[0].metrics["percentage_change"] == 15.01
    assert [(fact.type, fact.severity) for fact in loss] == [("visibility_loss", "high")]
    assert "20.0%" in loss[0].description
    assert edge == []


def test_sentiment_rules_have_asymmetric_severity():
    up = detect_summary_facts(_snapshot(SummaryDeltas(sentiment=Delta(0.6, 0.0))))
    down = detect_summary_facts(_snapshot(SummaryDeltas(sentiment=Delta(-0.6, 0.0))))

    assert [(fact.type, fact.severity) for fact in up] == [("sentiment_shift", "medium")]
    assert [(fact.type, fact.severity) for fact in down] == [("sentiment_shift", "high")]


def test_one_threat_per_qualifying_competitor():
    landscape = [
        _competitor("Acme", 25.0, is_brand=True),
        _competitor("Rival", 12.0),
        _competitor("Minor", 10.0),
        _competitor("Upstart", 18.5),
    ]

    facts = detect_summary_facts(_snapshot(landscape=landscape))

    assert [fact.metrics["competitor"] for fact in facts] == ["Rival", "Upstart"]
    assert all(fact.type == "competitive_threat" for fact in facts)
    assert facts[1].description == "Upstart gained 18.5 percentage points in SOA"


def test_share_of_answer_rules():
    gain = detect_summary_facts(_snapshot(SummaryDeltas(share_of_answer=Delta(4.0, 20.0))))
    loss = detect_summary_facts(_snapshot(SummaryDeltas(share_of_answer=Delta(-4.0, -16.0))))

    assert [fact.type for fact in gain] == ["share_of_answer_gain"]
    assert [fact.type for fact in loss] == ["share_of_answer_loss"]


def test_traffic_rule_only_with_traffic_data():
    traffic = TrafficAttribution(
        current=TrafficSummary(sessions=75),
        previous=TrafficSummary(sessions=100),
        sessions=Delta(-25.0, -25.0),
        conversions=Delta(0.0, 0.0),
    )

    facts = detect_summary_facts(_snapshot(traffic=traffic))

    assert [(fact.type, fact.severity) for fact in facts] == [("traffic_change", "high")]
    assert facts[0].description == "AEO traffic decreased by 25.0%"
    assert detect_summary_facts(_snapshot()) == []


def test_facts_sorted_by_severity_keeping_rule_order():
    deltas = SummaryDeltas(
        visibility=Delta(10.0, 25.0),
        sentiment=Delta(0.7, 0.0),
        share_of_answer=Delta(5.0, 30.0),
    )
    landscape = [_competitor("Rival", 11.0)]

    facts = detect_summary_facts(_snapshot(deltas, landscape=landscape))

    assert [fact.type for fact in facts] == [
        "visibility_gain",
        "competitive_threat",
        "share_of_answer_gain",
        "sentiment_shift",
    ]
    assert [fact.severity for fact in facts] == ["high", "high", "high", "medium"]


def test_rules_without_brand_performance_still_check_competitors():
    facts = detect_summary_facts(
        _snapshot(landscape=[_competitor("Rival", 11.0)], with_performance=False)
    )

    assert [fact.type for fact in facts] == ["competitive_threat"]


def test_custom_thresholds():
    thresholds = TriggerThresholds(visibility_change_pct=5.0)

    facts = detect_summary_facts(
        _snapshot(SummaryDeltas(visibility=Delta(3.0, 7.5))), thresholds
    )

    assert [fact.type for fact in facts] == ["visibility_gain"]
