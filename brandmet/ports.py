"""Port definitions for the collaborators the reporting core talks to."""

from datetime import date
from typing import Optional, Protocol, Sequence

from .models import (
    BrandProfile,
    EntityRef,
    ExecutiveReport,
    MetricRecord,
    ReportDataSnapshot,
    SummaryFact,
    TrafficSummary,
)


class MetricRecordSource(Protocol):
    """Supplies typed metric records for a brand or competitor."""

    def fetch(
        self,
        entity_id: str,
        customer_scope: str,
        start_date: date,
        end_date: date,
    ) -> Sequence[MetricRecord]:
        """Return records in the inclusive range; raise EntityNotFound for unknown entities."""


class EntityDirectory(Protocol):
    def get_brand(self, brand_id: str) -> BrandProfile:
        """Return the brand identity or raise EntityNotFound."""

    def resolve_name(self, group_key: str) -> Optional[str]:
        """Return a display label for a grouping key, if one is known."""

    def impact_score(self, source_domain: str) -> Optional[float]:
        """Return the authority weight of a citation source."""


class CompetitorRegistry(Protocol):
    def list_competitors(self, brand_id: str) -> Sequence[EntityRef]:
        """Return the competitors tracked for a brand."""


class TrafficSource(Protocol):
    def fetch_traffic(
        self,
        brand_id: str,
        start_date: date,
        end_date: date,
    ) -> Optional[TrafficSummary]:
        """Return attributed traffic for a period, or None when not connected."""


class NarrativeGenerator(Protocol):
    def generate(
        self,
        facts: Sequence[SummaryFact],
        snapshot: ReportDataSnapshot,
        feedback: Optional[str] = None,
    ) -> str:
        """Turn facts and the snapshot into executive prose."""


class ReportStore(Protocol):
    def save(self, report: ExecutiveReport) -> str:
        """Persist a report and return its identifier."""

    def get(self, report_id: str) -> Optional[ExecutiveReport]:
        """Return a stored report."""

    def get_latest(self, brand_id: str) -> Optional[ExecutiveReport]:
        """Return the most recently generated report of a brand."""

    def list_reports(self, brand_id: str, limit: int = 20) -> Sequence[ExecutiveReport]:
        """Return a brand's reports, newest first."""
