"""TimeTrust configuration — tenant defaults, strictness, audit sink."""

from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict

from timetrust.models.entry import RestrictedHours, TenantSettings
from timetrust.models.strictness import STRICTNESS_PROFILES, StrictnessProfile

StrictnessName = Literal["strict", "neutral", "relaxed"]


class Settings(BaseSettings):
    """Engine settings loaded from environment variables (prefix TIMETRUST_)."""

    # Strictness preset applied by the facade ("" = literal default cutoffs)
    strictness_profile: StrictnessName | Literal[""] = ""

    # Tenant defaults
    max_daily_hours: float = 12.0
    restricted_hours_start: str = ""  # "HH:MM", empty = no restricted window
    restricted_hours_end: str = ""
    weekend_work_requires_approval: bool = False
    require_notes_for_billable: bool = True

    # Anomaly detection
    anomaly_confidence_floor: float = 0.6

    # Aggregation cache
    aggregation_cache_ttl_seconds: float = 300.0

    # Audit sink
    audit_sink_enabled: bool = False
    database_url: str = "sqlite:///data/timetrust.db"

    # Logging
    log_level: str = "INFO"

    model_config = SettingsConfigDict(
        env_prefix="TIMETRUST_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    def tenant_settings(self) -> TenantSettings:
        """Build the default TenantSettings from env-configured values."""
        restricted = None
        if self.restricted_hours_start and self.restricted_hours_end:
            restricted = RestrictedHours(
                start=self.restricted_hours_start,
                end=self.restricted_hours_end,
            )
        return TenantSettings(
            max_daily_hours=self.max_daily_hours,
            restricted_hours=restricted,
            weekend_work_requires_approval=self.weekend_work_requires_approval,
            require_notes_for_billable=self.require_notes_for_billable,
        )

    def profile(self) -> StrictnessProfile | None:
        """Resolve the configured strictness preset, None when unset."""
        if not self.strictness_profile:
            return None
        return STRICTNESS_PROFILES[self.strictness_profile]


settings = Settings()
