"""Adapters for integrating BrandMet with storage."""

from .sqlalchemy_repo import (
    SQLAlchemyCompetitorRegistry,
    SQLAlchemyEntityDirectory,
    SQLAlchemyMetricRecordSource,
    SQLAlchemyReportStore,
)

__all__ = [
    "SQLAlchemyMetricRecordSource",
    "SQLAlchemyEntityDirectory",
    "SQLAlchemyCompetitorRegistry",
    "SQLAlchemyReportStore",
]
