"""BrandMet - period-over-period brand visibility reporting for answer engines."""

from .analytics import (
    build_trend_windows,
    compute_delta,
    compute_summary_deltas,
    rank_top_movers,
    summarize_by_provider,
    summarize_records,
)
from .errors import BrandMetError, EntityNotFound, InvalidReportRequest
from .narrative import build_fallback_narrative
from .service import ReportService, compute_report_periods
from .triggers import TriggerThresholds, detect_summary_facts

__all__ = [
    "ReportService",
    "compute_report_periods",
    "summarize_records",
    "compute_delta",
    "compute_summary_deltas",
    "build_trend_windows",
    "rank_top_movers",
    "summarize_by_provider",
    "detect_summary_facts",
    "TriggerThresholds",
    "build_fallback_narrative",
    "BrandMetError",
    "EntityNotFound",
    "InvalidReportRequest",
]

__version__ = "0.1.0"
