"""Engine configuration using pydantic-settings."""

from functools import lru_cache
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from .triggers import TriggerThresholds


class Settings(BaseSettings):
    """Settings loaded from ``BRANDMET_`` environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="BRANDMET_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Logging
    log_level: str = "INFO"
    log_json: bool = False

    # Aggregation
    average_position_source: Literal["positions", "first_position"] = "positions"
    trend_window_count: int = Field(default=12, ge=1)
    trend_window_days: int = Field(default=7, ge=1)
    top_movers_limit: int = Field(default=5, ge=0)

    # Summary fact triggers
    visibility_change_threshold: float = 15.0
    sentiment_shift_threshold: float = 0.5
    competitor_soa_gain_threshold: float = 10.0
    share_of_answer_change_threshold: float = 15.0
    traffic_change_threshold: float = 20.0

    # Fallback narrative
    competitive_threat_soa_threshold: float = 5.0
    competitive_threat_visibility_threshold: float = 10.0

    report_list_limit: int = Field(default=20, ge=1)

    def trigger_thresholds(self) -> TriggerThresholds:
        return TriggerThresholds(
            visibility_change_pct=self.visibility_change_threshold,
            sentiment_shift=self.sentiment_shift_threshold,
            competitor_soa_gain=self.competitor_soa_gain_threshold,
            share_of_answer_change_pct=self.share_of_answer_change_threshold,
            traffic_change_pct=self.traffic_change_threshold,
        )


@lru_cache
def get_settings() -> Settings:
    return Settings()
