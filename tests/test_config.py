import structlog

from brandmet.config import Settings
from brandmet.logging import setup_logging
from brandmet.triggers import TriggerThresholds


def test_defaults():
    settings = Settings(_env_file=None)

    assert settings.average_position_source == "positions"
    assert settings.trend_window_count == 12
    assert settings.trend_window_days == 7
    assert settings.top_movers_limit == 5
    assert settings.trigger_thresholds() == TriggerThresholds()


def test_environment_overrides(monkeypatch):
    monkeypatch.setenv("BRANDMET_VISIBILITY_CHANGE_THRESHOLD", "25")
    monkeypatch.setenv("BRANDMET_AVERAGE_POSITION_SOURCE", "first_position")
    monkeypatch.setenv("BRANDMET_TOP_MOVERS_LIMIT", "3")

    settings = Settings(_env_file=None)

    assert settings.trigger_thresholds().visibility_change_pct == 25.0
    assert settings.average_position_source == "first_position"
    assert settings.top_movers_limit == 3


def test_setup_logging_renders_json(capsys):
    setup_logging(Settings(_env_file=None, log_json=True, log_level="DEBUG"))
    try:
        structlog.get_logger("brandmet.test").info("report_generation_started", brand_id="brand-1")
    finally:
        structlog.reset_defaults()

    output = capsys.readouterr().out
    assert '"event": "report_generation_started"' in output
    assert '"brand_id": "brand-1"' in output
