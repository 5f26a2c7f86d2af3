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
    SummaryFact,
)
from brandmet.narrative import build_fallback_narrative, identify_competitive_threats, normalize_bullets

PERIODS = ReportPeriods(date(2026, 3, 25), date(2026, 3, 31), date(2026, 3, 18), date(2026, 3, 24))
BRAND = BrandProfile(brand_id="brand-1", name="Acme", customer_scope="cust-1")


def _entry(name, soa_gain=0.0, visibility_gain=0.0, is_brand=False):
    return CompetitiveLandscapeEntry(
        name=name,
        is_brand=is_brand,
        current=PeriodSummary(),
        deltas=LandscapeDeltas(
            visibility=Delta(visibility_gain, 0.0),
            share_of_answer=Delta(soa_gain, 0.0),
        ),
    )


def test_identify_competitive_threats_orders_by_soa_gain():
    landscape = [
        _entry("Acme", soa_gain=30.0, is_brand=True),
        _entry("Quiet", soa_gain=1.0),
        _entry("Visible", visibility_gain=12.0),
        _entry("Rival", soa_gain=6.0),
        _entry("Upstart", soa_gain=9.0),
    ]

    threats = identify_competitive_threats(landscape)

    assert [entry.name for entry in threats] == ["Upstart", "Rival", "Visible"]


def test_fallback_narrative_from_brand_metrics():
    snapshot = ReportDataSnapshot(
        brand=BRAND,
        periods=PERIODS,
        brand_performance=BrandPerformance(
            current=PeriodSummary(visibility=60.0, share_of_answer=30.0),
            previous=PeriodSummary(visibility=40.0, share_of_answer=20.0),
            deltas=SummaryDeltas(
                visibility=Delta(20.0, 50.0),
                share_of_answer=Delta(10.0, 50.0),
            ),
        ),
        competitive_landscape=(_entry("Rival", soa_gain=20.0),),
    )
    facts = [
        SummaryFact("visibility_gain", "high", "Significant visibility improvement of 50.0%"),
        SummaryFact("share_of_answer_gain", "high", "Strong SOA growth of 50.0%"),
    ]

    narrative = build_fallback_narrative(facts, snapshot)

    assert narrative.splitlines() == [
        "• Brand visibility increased 50.0% to 60.0%",
        "• Share of Answer grew 50.0% vs prior period",
        "• Rival gained 20.0% SOA, requires attention",
    ]


def test_fallback_narrative_is_never_empty():
    snapshot = ReportDataSnapshot(brand=BRAND, periods=PERIODS)

    narrative = build_fallback_narrative([], snapshot)

    lines = narrative.splitlines()
    assert len(lines) == 3
    assert all(line.startswith("• ") for line in lines)


def test_fallback_narrative_mentions_uncovered_high_facts():
    snapshot = ReportDataSnapshot(
        brand=BRAND,
        periods=PERIODS,
        brand_performance=BrandPerformance(
            current=PeriodSummary(visibility=40.0),
            previous=PeriodSummary(visibility=40.0),
            deltas=SummaryDeltas(sentiment=Delta(-0.2, 0.0)),
        ),
    )
    facts = [SummaryFact("sentiment_shift", "high", "Material sentiment deterioration of -0.60")]

    lines = build_fallback_narrative(facts, snapshot).splitlines()

    assert lines[0] == "• Brand visibility remained stable at 40.0%"
    assert lines[1] == "• Material sentiment deterioration of -0.60"
    assert len(lines) == 3


def test_normalize_bullets():
    text = "Summary:\n- Visibility rose 12%\n* SOA steady\n\n•  Rival gained share\n- \n"

    assert normalize_bullets(text) == "• Visibility rose 12%\n• SOA steady\n• Rival gained share"
    assert normalize_bullets("Plain prose only.") == "Plain prose only."
