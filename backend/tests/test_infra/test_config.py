"""Tests for Settings — env loading and derived tenant configuration."""

from timetrust.config import Settings
from timetrust.logging_config import setup_logging


def test_defaults(monkeypatch):
    monkeypatch.delenv("TIMETRUST_STRICTNESS_PROFILE", raising=False)
    settings = Settings(_env_file=None)
    assert settings.profile() is None
    assert settings.anomaly_confidence_floor == 0.6
    assert not settings.audit_sink_enabled
    tenant = settings.tenant_settings()
    assert tenant.max_daily_hours == 12.0
    assert tenant.restricted_hours is None


def test_env_prefix(monkeypatch):
    monkeypatch.setenv("TIMETRUST_STRICTNESS_PROFILE", "strict")
    monkeypatch.setenv("TIMETRUST_MAX_DAILY_HOURS", "10")
    monkeypatch.setenv("TIMETRUST_RESTRICTED_HOURS_START", "22:00")
    monkeypatch.setenv("TIMETRUST_RESTRICTED_HOURS_END", "06:00")
    settings = Settings(_env_file=None)

    assert settings.profile().mode == "strict"
    tenant = settings.tenant_settings()
    assert tenant.max_daily_hours == 10.0
    assert tenant.restricted_hours.start == "22:00"
    assert tenant.restricted_hours.end == "06:00"


def test_half_configured_window_is_ignored(monkeypatch):
    monkeypatch.setenv("TIMETRUST_RESTRICTED_HOURS_START", "22:00")
    monkeypatch.delenv("TIMETRUST_RESTRICTED_HOURS_END", raising=False)
    assert Settings(_env_file=None).tenant_settings().restricted_hours is None


def test_setup_logging_returns_package_logger():
    logger = setup_logging("DEBUG")
    assert logger.name == "timetrust"
    assert logger.level == 10
