"""Application service orchestrating collaborators and pure analytics."""

import asyncio
from dataclasses import replace
from datetime import date, datetime, timedelta, timezone
from typing import Awaitable, Dict, List, Optional, Sequence, Tuple

import structlog

from .analytics import (
    build_trend_windows,
    compute_delta,
    compute_summary_deltas,
    rank_top_movers,
    summarize_by_provider,
    summarize_records,
)
from .config import Settings, get_settings
from .errors import EntityNotFound, InvalidReportRequest
from .models import (
    GROUP_DIMENSIONS,
    MOVER_METRICS,
    PERIOD_DAYS_CHOICES,
    SUMMARY_METRICS,
    BrandPerformance,
    BrandProfile,
    CompetitiveLandscapeEntry,
    EntityRef,
    ExecutiveReport,
    LandscapeDeltas,
    MoverRanking,
    PeriodSummary,
    ProviderPerformance,
    ReportDataSnapshot,
    ReportPeriods,
    ReportRequest,
    SummaryFact,
    TrafficAttribution,
    TrafficSummary,
    TrendPoint,
)
from .narrative import build_fallback_narrative, normalize_bullets
from .ports import (
    CompetitorRegistry,
    EntityDirectory,
    MetricRecordSource,
    NarrativeGenerator,
    ReportStore,
    TrafficSource,
)
from .triggers import detect_summary_facts

logger = structlog.get_logger(__name__)


class ReportService:
    """Facade that turns raw visibility records into executive reports."""

    def __init__(
        self,
        source: MetricRecordSource,
        directory: EntityDirectory,
        competitors: CompetitorRegistry,
        narrative: Optional[NarrativeGenerator] = None,
        store: Optional[ReportStore] = None,
        traffic: Optional[TrafficSource] = None,
        settings: Optional[Settings] = None,
    ):
        self.source = source
        self.directory = directory
        self.competitors = competitors
        self.narrative = narrative
        self.store = store
        self.traffic = traffic
        self.settings = settings or get_settings()

    def aggregate_period(
        self,
        entity_id: str,
        customer_scope: str,
        start_date: date,
        end_date: date,
    ) -> PeriodSummary:
        records = self.source.fetch(entity_id, customer_scope, start_date, end_date)
        return summarize_records(records, self.settings.average_position_source)

    def compute_trend(
        self,
        entity_id: str,
        customer_scope: str,
        end_date: date,
        metric: str = "visibility",
        window_count: Optional[int] = None,
        window_days: Optional[int] = None,
    ) -> Tuple[TrendPoint, ...]:
        trends = self.compute_trends(
            entity_id,
            customer_scope,
            end_date,
            metrics=(metric,),
            window_count=window_count,
            window_days=window_days,
        )
        return trends[metric]

    def compute_trends(
        self,
        entity_id: str,
        customer_scope: str,
        end_date: date,
        metrics: Sequence[str] = SUMMARY_METRICS,
        window_count: Optional[int] = None,
        window_days: Optional[int] = None,
    ) -> Dict[str, Tuple[TrendPoint, ...]]:
        """
        Build one fixed-length series per metric from a single aggregation per window.

        A window that cannot be fetched is logged and reported as 0 so every
        series keeps exactly ``window_count`` points.
        """
        for metric in metrics:
            if metric not in SUMMARY_METRICS:
                raise ValueError(f"Unknown summary metric: {metric}")
        if window_count is None:
            window_count = self.settings.trend_window_count
        if window_days is None:
            window_days = self.settings.trend_window_days

        series: Dict[str, List[TrendPoint]] = {metric: [] for metric in metrics}
        for window_start, window_end in build_trend_windows(end_date, window_count, window_days):
            try:
                summary = self.aggregate_period(entity_id, customer_scope, window_start, window_end)
            except EntityNotFound:
                raise
            except Exception as exc:
                logger.warning(
                    "trend_window_failed",
                    entity_id=entity_id,
                    window_start=window_start.isoformat(),
                    error=str(exc),
                )
                summary = PeriodSummary()
            for metric in metrics:
                series[metric].append(TrendPoint(window_start, window_end, summary.metric(metric)))

        return {metric: tuple(points) for metric, points in series.items()}

    def compute_brand_performance(self, brand: BrandProfile, periods: ReportPeriods) -> BrandPerformance:
        current = self.aggregate_period(
            brand.brand_id, brand.customer_scope, periods.period_start, periods.period_end
        )
        previous = self.aggregate_period(
            brand.brand_id, brand.customer_scope, periods.comparison_start, periods.comparison_end
        )
        return BrandPerformance(
            current=current,
            previous=previous,
            deltas=compute_summary_deltas(current, previous),
        )

    def compute_provider_performance(
        self,
        brand: BrandProfile,
        periods: ReportPeriods,
    ) -> Dict[str, ProviderPerformance]:
        current, previous = self._fetch_both_periods(brand, periods)
        return summarize_by_provider(current, previous, self.settings.average_position_source)

    def compute_top_movers(
        self,
        brand: BrandProfile,
        periods: ReportPeriods,
        group_by: str,
    ) -> Dict[str, MoverRanking]:
        """Rank gains and losses of one dimension for every mover metric."""
        current, previous = self._fetch_both_periods(brand, periods)
        impact_lookup = self.directory.impact_score if group_by == "source" else None
        name_resolver = self.directory.resolve_name if group_by == "query" else None

        return {
            metric: rank_top_movers(
                current,
                previous,
                group_by=group_by,
                metric=metric,
                top_k=self.settings.top_movers_limit,
                impact_lookup=impact_lookup,
                name_resolver=name_resolver,
                position_source=self.settings.average_position_source,
            )
            for metric in MOVER_METRICS
        }

    async def build_competitive_landscape(
        self,
        brand: BrandProfile,
        competitors: Sequence[EntityRef],
        start_date: date,
        end_date: date,
        comparison_start: Optional[date] = None,
        comparison_end: Optional[date] = None,
    ) -> List[CompetitiveLandscapeEntry]:
        """
        Compare the brand with each tracked competitor.

        A competitor whose metrics cannot be computed is logged and left
        out; the rest of the landscape is still returned. Entries are
        ordered by current visibility, brand included.
        """
        if comparison_start is None or comparison_end is None:
            comparison_end = start_date - timedelta(days=1)
            comparison_start = comparison_end - (end_date - start_date)
        ranges = (start_date, end_date, comparison_start, comparison_end)

        brand_ref = EntityRef(brand.brand_id, brand.name, brand.website_url)
        brand_entry = await asyncio.to_thread(
            self._landscape_entry, brand_ref, brand.customer_scope, True, *ranges
        )

        results = await asyncio.gather(
            *(
                asyncio.to_thread(
                    self._landscape_entry, competitor, brand.customer_scope, False, *ranges
                )
                for competitor in competitors
            ),
            return_exceptions=True,
        )

        entries = [brand_entry]
        for competitor, result in zip(competitors, results):
            if isinstance(result, Exception):
                logger.warning(
                    "competitor_summary_failed",
                    brand_id=brand.brand_id,
                    competitor_id=competitor.entity_id,
                    competitor=competitor.name,
                    error=str(result),
                )
                continue
            if isinstance(result, BaseException):
                raise result
            entries.append(result)

        entries.sort(key=lambda entry: -entry.current.visibility)
        return entries

    def compute_traffic(self, brand: BrandProfile, periods: ReportPeriods) -> Optional[TrafficAttribution]:
        if self.traffic is None:
            return None

        current = self.traffic.fetch_traffic(brand.brand_id, periods.period_start, periods.period_end)
        if current is None:
            return None
        previous = self.traffic.fetch_traffic(
            brand.brand_id, periods.comparison_start, periods.comparison_end
        ) or TrafficSummary()

        revenue = None
        if current.revenue is not None and previous.revenue is not None:
            revenue = compute_delta(current.revenue, previous.revenue)
        return TrafficAttribution(
            current=current,
            previous=previous,
            sessions=compute_delta(current.sessions, previous.sessions),
            conversions=compute_delta(current.conversions, previous.conversions),
            revenue=revenue,
        )

    def generate_narrative(
        self,
        facts: Sequence[SummaryFact],
        snapshot: ReportDataSnapshot,
        feedback: Optional[str] = None,
    ) -> str:
        """Ask the narrative generator for prose, falling back to the templated bullets."""
        if self.narrative is not None:
            try:
                text = self.narrative.generate(facts, snapshot, feedback)
            except Exception as exc:
                logger.warning(
                    "narrative_generation_failed",
                    brand_id=snapshot.brand.brand_id,
                    error=str(exc),
                )
            else:
                if text and text.strip():
                    return normalize_bullets(text)
                logger.warning("narrative_generation_empty", brand_id=snapshot.brand.brand_id)

        return build_fallback_narrative(
            facts,
            snapshot,
            soa_threshold=self.settings.competitive_threat_soa_threshold,
            visibility_threshold=self.settings.competitive_threat_visibility_threshold,
        )

    async def generate_report(
        self,
        request: ReportRequest,
        generated_by: Optional[str] = None,
    ) -> ExecutiveReport:
        """
        Assemble, narrate and persist one executive report.

        Brand resolution must succeed before anything else runs. After that
        each section is computed concurrently and a failing section is left
        out of the snapshot instead of failing the report.
        """
        periods = compute_report_periods(request.period_days, request.end_date)
        brand = await asyncio.to_thread(self.directory.get_brand, request.brand_id)
        log = logger.bind(brand_id=brand.brand_id)
        log.info(
            "report_generation_started",
            period_start=periods.period_start.isoformat(),
            period_end=periods.period_end.isoformat(),
            comparison_start=periods.comparison_start.isoformat(),
            comparison_end=periods.comparison_end.isoformat(),
        )

        branches: Dict[str, Awaitable] = {
            "brand_performance": asyncio.to_thread(self.compute_brand_performance, brand, periods),
            "trends": asyncio.to_thread(
                self.compute_trends, brand.brand_id, brand.customer_scope, periods.period_end
            ),
            "provider_performance": asyncio.to_thread(
                self.compute_provider_performance, brand, periods
            ),
            "competitive_landscape": self._landscape_branch(brand, periods),
        }
        for dimension in GROUP_DIMENSIONS:
            branches[f"top_movers.{dimension}"] = asyncio.to_thread(
                self.compute_top_movers, brand, periods, dimension
            )
        if self.traffic is not None:
            branches["traffic"] = asyncio.to_thread(self.compute_traffic, brand, periods)

        results = await asyncio.gather(
            *(self._guard(name, brand.brand_id, branch) for name, branch in branches.items())
        )
        outcome = dict(zip(branches, results))

        performance = outcome["brand_performance"]
        if performance is not None and outcome["trends"] is not None:
            performance = replace(performance, trends=outcome["trends"])

        snapshot = ReportDataSnapshot(
            brand=brand,
            periods=periods,
            brand_performance=performance,
            provider_performance=outcome["provider_performance"] or {},
            competitive_landscape=tuple(outcome["competitive_landscape"] or ()),
            top_movers={
                dimension: outcome[f"top_movers.{dimension}"]
                for dimension in GROUP_DIMENSIONS
                if outcome[f"top_movers.{dimension}"] is not None
            },
            traffic=outcome.get("traffic"),
        )
        facts = detect_summary_facts(snapshot, self.settings.trigger_thresholds())
        snapshot = replace(snapshot, facts=tuple(facts))

        narrative = await asyncio.to_thread(self.generate_narrative, facts, snapshot)
        report = ExecutiveReport(
            brand_id=brand.brand_id,
            periods=periods,
            snapshot=snapshot,
            narrative=narrative,
            generated_at=datetime.now(timezone.utc),
            generated_by=generated_by,
        )
        report = await self._persist(report)

        log.info(
            "report_generation_complete",
            report_id=report.report_id,
            facts=len(facts),
            omitted=[name for name, result in outcome.items() if result is None],
        )
        return report

    async def regenerate_narrative(self, report: ExecutiveReport, feedback: str) -> ExecutiveReport:
        """Produce a new report with narrative regenerated from reviewer feedback."""
        snapshot = report.snapshot
        narrative = await asyncio.to_thread(
            self.generate_narrative, list(snapshot.facts), snapshot, feedback
        )
        regenerated = replace(
            report,
            narrative=narrative,
            generated_at=datetime.now(timezone.utc),
            report_id=None,
        )
        return await self._persist(regenerated)

    def get_report(self, report_id: str) -> Optional[ExecutiveReport]:
        if self.store is None:
            return None
        return self.store.get(report_id)

    def get_latest_report(self, brand_id: str) -> Optional[ExecutiveReport]:
        if self.store is None:
            return None
        return self.store.get_latest(brand_id)

    def list_reports(self, brand_id: str, limit: Optional[int] = None) -> List[ExecutiveReport]:
        if self.store is None:
            return []
        return list(self.store.list_reports(brand_id, limit or self.settings.report_list_limit))

    async def _landscape_branch(
        self,
        brand: BrandProfile,
        periods: ReportPeriods,
    ) -> List[CompetitiveLandscapeEntry]:
        competitors = await asyncio.to_thread(self.competitors.list_competitors, brand.brand_id)
        return await self.build_competitive_landscape(
            brand,
            list(competitors),
            periods.period_start,
            periods.period_end,
            periods.comparison_start,
            periods.comparison_end,
        )

    def _landscape_entry(
        self,
        entity: EntityRef,
        customer_scope: str,
        is_brand: bool,
        start_date: date,
        end_date: date,
        comparison_start: date,
        comparison_end: date,
    ) -> CompetitiveLandscapeEntry:
        current = self.aggregate_period(entity.entity_id, customer_scope, start_date, end_date)
        previous = self.aggregate_period(entity.entity_id, customer_scope, comparison_start, comparison_end)
        return CompetitiveLandscapeEntry(
            name=entity.name,
            is_brand=is_brand,
            current=current,
            deltas=LandscapeDeltas(
                visibility=compute_delta(current.visibility, previous.visibility),
                share_of_answer=compute_delta(current.share_of_answer, previous.share_of_answer),
            ),
            website_url=entity.website_url,
            entity_id=entity.entity_id,
        )

    def _fetch_both_periods(self, brand: BrandProfile, periods: ReportPeriods):
        current = self.source.fetch(
            brand.brand_id, brand.customer_scope, periods.period_start, periods.period_end
        )
        previous = self.source.fetch(
            brand.brand_id, brand.customer_scope, periods.comparison_start, periods.comparison_end
        )
        return list(current), list(previous)

    async def _guard(self, name: str, brand_id: str, branch: Awaitable):
        try:
            return await branch
        except Exception as exc:
            logger.warning("report_branch_failed", brand_id=brand_id, branch=name, error=str(exc))
            return None

    async def _persist(self, report: ExecutiveReport) -> ExecutiveReport:
        if self.store is None:
            return report
        report_id = await asyncio.to_thread(self.store.save, report)
        return replace(report, report_id=report_id)


def compute_report_periods(period_days: int, end_date: Optional[date] = None) -> ReportPeriods:
    """Current period ending on ``end_date`` (default today, UTC) and the equal-length period before it."""
    if period_days not in PERIOD_DAYS_CHOICES:
        raise InvalidReportRequest(
            f"period_days must be one of {', '.join(str(days) for days in PERIOD_DAYS_CHOICES)}"
        )
    if end_date is None:
        end_date = datetime.now(timezone.utc).date()

    period_start = end_date - timedelta(days=period_days - 1)
    comparison_end = period_start - timedelta(days=1)
    comparison_start = comparison_end - timedelta(days=period_days - 1)
    return ReportPeriods(
        period_start=period_start,
        period_end=end_date,
        comparison_start=comparison_start,
        comparison_end=comparison_end,
    )
