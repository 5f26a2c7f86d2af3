"""SQLAlchemy adapters for BrandMet's collaborator ports."""

import json
import math
import uuid
from datetime import date, datetime, time, timedelta
from typing import Any, Optional, Sequence

from sqlalchemy import text
from sqlalchemy.orm import Session, sessionmaker

from ..errors import EntityNotFound
from ..models import (
    BrandProfile,
    EntityRef,
    ExecutiveReport,
    MetricRecord,
    ReportDataSnapshot,
    ReportPeriods,
    from_primitive,
)


class SQLAlchemyMetricRecordSource:
    """Fetches raw metric rows and maps them to typed records.

    Every call opens its own session so concurrent report branches can share
    one adapter instance.
    """

    def __init__(self, session_factory: sessionmaker):
        self.session_factory = session_factory

    def fetch(
        self,
        entity_id: str,
        customer_scope: str,
        start_date: date,
        end_date: date,
    ) -> Sequence[MetricRecord]:
        with self.session_factory() as db:
            if not _entity_exists(db, entity_id):
                raise EntityNotFound("Entity", entity_id)

            rows = db.execute(
                text(
                    """
                    SELECT entity_id, query_id, topic, source_domain, collector_type,
                           visibility_index, share_of_answers, sentiment_score,
                           has_brand_presence, first_position, positions, processed_at
                    FROM metric_records
                    WHERE entity_id = :entity_id
                      AND customer_id = :customer_id
                      AND processed_at >= :start_at
                      AND processed_at < :end_before
                    ORDER BY processed_at, query_id
                    """
                ),
                {
                    "entity_id": entity_id,
                    "customer_id": customer_scope,
                    "start_at": datetime.combine(start_date, time.min),
                    "end_before": datetime.combine(end_date + timedelta(days=1), time.min),
                },
            ).fetchall()

        return [
            MetricRecord(
                entity_id=str(row.entity_id),
                query_id=_optional_text(row.query_id),
                topic=_optional_text(row.topic),
                source_domain=_optional_text(row.source_domain),
                collector_type=_optional_text(row.collector_type) or "unknown",
                visibility_index=_clamp(_float_or_zero(row.visibility_index), 0.0, 1.0),
                share_of_answer=_clamp(_float_or_zero(row.share_of_answers), 0.0, 100.0),
                sentiment_score=_clamp(_float_or_zero(row.sentiment_score), -1.0, 1.0),
                has_brand_presence=bool(row.has_brand_presence),
                first_position=_positive_int(row.first_position),
                positions=tuple(_parse_position_list(row.positions)),
                timestamp=_parse_datetime(row.processed_at),
            )
            for row in rows
        ]


class SQLAlchemyEntityDirectory:
    """Brand identity, query labels and citation-source authority."""

    def __init__(self, session_factory: sessionmaker):
        self.session_factory = session_factory

    def get_brand(self, brand_id: str) -> BrandProfile:
        with self.session_factory() as db:
            row = db.execute(
                text("SELECT id, name, customer_id, homepage_url FROM brands WHERE id = :brand_id"),
                {"brand_id": brand_id},
            ).first()

        if row is None:
            raise EntityNotFound("Brand", brand_id)
        return BrandProfile(
            brand_id=str(row.id),
            name=row.name or "Brand",
            customer_scope=str(row.customer_id),
            website_url=row.homepage_url or "",
        )

    def resolve_name(self, group_key: str) -> Optional[str]:
        with self.session_factory() as db:
            return db.execute(
                text("SELECT query_text FROM generated_queries WHERE id = :query_id"),
                {"query_id": group_key},
            ).scalar()

    def impact_score(self, source_domain: str) -> Optional[float]:
        with self.session_factory() as db:
            score = db.execute(
                text("SELECT impact_score FROM source_authority WHERE domain = :domain"),
                {"domain": source_domain},
            ).scalar()
        return float(score) if score is not None else None


class SQLAlchemyCompetitorRegistry:
    def __init__(self, session_factory: sessionmaker):
        self.session_factory = session_factory

    def list_competitors(self, brand_id: str) -> Sequence[EntityRef]:
        with self.session_factory() as db:
            rows = db.execute(
                text(
                    """
                    SELECT id, competitor_name, competitor_url
                    FROM brand_competitors
                    WHERE brand_id = :brand_id
                    ORDER BY competitor_name
                    """
                ),
                {"brand_id": brand_id},
            ).fetchall()

        return [
            EntityRef(
                entity_id=str(row.id),
                name=row.competitor_name,
                website_url=row.competitor_url or "",
            )
            for row in rows
        ]


class SQLAlchemyReportStore:
    """Stores generated reports as immutable rows with a JSON snapshot."""

    def __init__(self, session_factory: sessionmaker):
        self.session_factory = session_factory

    def save(self, report: ExecutiveReport) -> str:
        report_id = str(uuid.uuid4())
        periods = report.periods
        with self.session_factory() as db:
            db.execute(
                text(
                    """
                    INSERT INTO executive_reports (
                        id, brand_id, report_period_start, report_period_end,
                        comparison_period_start, comparison_period_end,
                        data_snapshot, executive_summary, generated_at, generated_by
                    ) VALUES (
                        :id, :brand_id, :report_period_start, :report_period_end,
                        :comparison_period_start, :comparison_period_end,
                        :data_snapshot, :executive_summary, :generated_at, :generated_by
                    )
                    """
                ),
                {
                    "id": report_id,
                    "brand_id": report.brand_id,
                    "report_period_start": periods.period_start.isoformat(),
                    "report_period_end": periods.period_end.isoformat(),
                    "comparison_period_start": periods.comparison_start.isoformat(),
                    "comparison_period_end": periods.comparison_end.isoformat(),
                    "data_snapshot": json.dumps(report.snapshot.to_dict()),
                    "executive_summary": report.narrative,
                    "generated_at": report.generated_at.isoformat(),
                    "generated_by": report.generated_by,
                },
            )
            db.commit()
        return report_id

    def get(self, report_id: str) -> Optional[ExecutiveReport]:
        with self.session_factory() as db:
            row = db.execute(
                text(f"{_REPORT_COLUMNS} WHERE id = :report_id"),
                {"report_id": report_id},
            ).first()
        return _report_from_row(row) if row is not None else None

    def get_latest(self, brand_id: str) -> Optional[ExecutiveReport]:
        reports = self.list_reports(brand_id, limit=1)
        return reports[0] if reports else None

    def list_reports(self, brand_id: str, limit: int = 20) -> Sequence[ExecutiveReport]:
        with self.session_factory() as db:
            rows = db.execute(
                text(
                    f"{_REPORT_COLUMNS} WHERE brand_id = :brand_id "
                    "ORDER BY generated_at DESC LIMIT :limit"
                ),
                {"brand_id": brand_id, "limit": limit},
            ).fetchall()
        return [_report_from_row(row) for row in rows]


_REPORT_COLUMNS = """
    SELECT id, brand_id, report_period_start, report_period_end,
           comparison_period_start, comparison_period_end,
           data_snapshot, executive_summary, generated_at, generated_by
    FROM executive_reports
"""


def _entity_exists(db: Session, entity_id: str) -> bool:
    found = db.execute(
        text(
            """
            SELECT 1 FROM brands WHERE id = :entity_id
            UNION ALL
            SELECT 1 FROM brand_competitors WHERE id = :entity_id
            """
        ),
        {"entity_id": entity_id},
    ).first()
    return found is not None


def _report_from_row(row) -> ExecutiveReport:
    snapshot_data = row.data_snapshot
    if isinstance(snapshot_data, str):
        snapshot_data = json.loads(snapshot_data)

    return ExecutiveReport(
        report_id=str(row.id),
        brand_id=str(row.brand_id),
        periods=ReportPeriods(
            period_start=_parse_date(row.report_period_start),
            period_end=_parse_date(row.report_period_end),
            comparison_start=_parse_date(row.comparison_period_start),
            comparison_end=_parse_date(row.comparison_period_end),
        ),
        snapshot=from_primitive(ReportDataSnapshot, snapshot_data),
        narrative=row.executive_summary or "",
        generated_at=_parse_datetime(row.generated_at),
        generated_by=row.generated_by,
    )


def _parse_position_list(raw_positions: Any) -> list[int]:
    if raw_positions is None:
        return []
    if isinstance(raw_positions, str):
        try:
            raw_positions = json.loads(raw_positions)
        except json.JSONDecodeError:
            return []
    if isinstance(raw_positions, list):
        values = []
        for value in raw_positions:
            position = _positive_int(value)
            if position is not None:
                values.append(position)
        return values
    return []


def _positive_int(value: Any) -> Optional[int]:
    try:
        number = int(value)
    except (TypeError, ValueError):
        return None
    return number if number > 0 else None


def _float_or_zero(value: Any) -> float:
    try:
        number = float(value) if value is not None else 0.0
    except (TypeError, ValueError):
        return 0.0
    return number if math.isfinite(number) else 0.0


def _clamp(value: float, low: float, high: float) -> float:
    return min(max(value, low), high)


def _optional_text(value: Any) -> Optional[str]:
    if value is None:
        return None
    value = str(value).strip()
    return value or None


def _parse_datetime(value: Any) -> datetime:
    if isinstance(value, datetime):
        return value
    return datetime.fromisoformat(str(value))


def _parse_date(value: Any) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return date.fromisoformat(str(value)[:10])
