"""Deterministic executive narrative used when no generator output is available."""

from typing import Iterable, List, Sequence

from .models import CompetitiveLandscapeEntry, ReportDataSnapshot, SummaryFact

MIN_BULLETS = 3
MAX_BULLETS = 5
FILLER_BULLET = "Monitor key metrics and competitive landscape for emerging trends"


def identify_competitive_threats(
    landscape: Iterable[CompetitiveLandscapeEntry],
    soa_threshold: float = 5.0,
    visibility_threshold: float = 10.0,
    limit: int = 3,
) -> List[CompetitiveLandscapeEntry]:
    """Competitors with a notable share-of-answer or visibility gain, largest SOA gain first."""
    threats = [
        entry
        for entry in landscape
        if not entry.is_brand
        and (
            entry.deltas.share_of_answer.absolute > soa_threshold
            or entry.deltas.visibility.absolute > visibility_threshold
        )
    ]
    threats.sort(key=lambda entry: -entry.deltas.share_of_answer.absolute)
    return threats[:limit]


def build_fallback_narrative(
    facts: Sequence[SummaryFact],
    snapshot: ReportDataSnapshot,
    soa_threshold: float = 5.0,
    visibility_threshold: float = 10.0,
) -> str:
    """Assemble three to five bullet points straight from the metrics and facts."""
    bullets: List[str] = []
    covered = {"visibility_gain", "visibility_loss", "competitive_threat", "traffic_change"}
    performance = snapshot.brand_performance

    if performance is not None:
        visibility = performance.deltas.visibility
        current = performance.current
        if visibility.percentage != 0:
            direction = "increased" if visibility.percentage > 0 else "decreased"
            bullets.append(
                f"Brand visibility {direction} {abs(visibility.percentage):.1f}% "
                f"to {current.visibility:.1f}%"
            )
        else:
            bullets.append(f"Brand visibility remained stable at {current.visibility:.1f}%")

        share = performance.deltas.share_of_answer
        sentiment = performance.deltas.sentiment
        if abs(share.percentage) > 10:
            direction = "grew" if share.percentage > 0 else "declined"
            bullets.append(f"Share of Answer {direction} {abs(share.percentage):.1f}% vs prior period")
            covered.update({"share_of_answer_gain", "share_of_answer_loss"})
        elif abs(sentiment.absolute) > 0.3:
            direction = "improved" if sentiment.absolute > 0 else "declined"
            bullets.append(f"Brand sentiment {direction} by {abs(sentiment.absolute):.2f} points")
            covered.add("sentiment_shift")

    threats = identify_competitive_threats(
        snapshot.competitive_landscape,
        soa_threshold=soa_threshold,
        visibility_threshold=visibility_threshold,
    )
    if threats:
        top = threats[0]
        bullets.append(
            f"{top.name} gained {top.deltas.share_of_answer.absolute:.1f}% SOA, requires attention"
        )

    if snapshot.traffic is not None:
        change = snapshot.traffic.sessions.percentage
        direction = "increased" if change > 0 else "decreased"
        bullets.append(f"AEO-attributed traffic {direction} {abs(change):.1f}%")

    for fact in facts:
        if len(bullets) >= MAX_BULLETS:
            break
        if fact.severity == "high" and fact.type not in covered:
            bullets.append(fact.description)

    while len(bullets) < MIN_BULLETS:
        bullets.append(FILLER_BULLET)

    return "\n".join(f"• {bullet}" for bullet in bullets[:MAX_BULLETS])


def normalize_bullets(text: str) -> str:
    """Keep at most five bullet lines of generated text in the report's bullet style."""
    bullets = []
    for line in text.splitlines():
        stripped = line.strip()
        if stripped[:1] in ("-", "•", "*"):
            stripped = stripped[1:].strip()
            if stripped:
                bullets.append(stripped)

    if not bullets:
        return text.strip()
    return "\n".join(f"• {bullet}" for bullet in bullets[:MAX_BULLETS])
