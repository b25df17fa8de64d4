"""Application Configuration — environment-driven settings via pydantic-settings.

Invariants:
    - All secrets come from environment variables (never hardcoded)
    - get_settings() is cached (lru_cache) — single instance per process
    - Smart-timing thresholds are validated here, so the core policy is always well-formed

Design Decisions:
    - pydantic-settings over raw os.environ: validation, type coercion, .env file support (ADR: developer UX)
    - Defaults provided for all non-secret settings: works out-of-the-box with docker-compose
"""

from datetime import timedelta
from functools import lru_cache

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from chatly.core.smart_timing import SmartTimingPolicy


class Settings(BaseSettings):
    """Application settings from environment variables."""

    model_config = SettingsConfigDict(env_file=".env", case_sensitive=False)

    # Database
    database_url: str = (
        "postgresql+asyncpg://chatly:chatly@db:5432/chatly"
    )

    @field_validator("database_url", mode="before")
    @classmethod
    def convert_postgres_url(cls, v: str) -> str:
        """Managed hosts provide postgresql:// but asyncpg needs postgresql+asyncpg://."""
        if isinstance(v, str) and v.startswith("postgresql://"):
            return v.replace("postgresql://", "postgresql+asyncpg://", 1)
        return v

    database_pool_size: int = 20
    database_max_overflow: int = 10

    # Smart notification timing
    night_start_hour: int = Field(22, ge=0, le=23)
    night_end_hour: int = Field(6, ge=0, le=23)
    morning_delivery_hour: int = Field(9, ge=0, le=23)
    low_battery_threshold: float = Field(0.20, ge=0.0, le=1.0)
    battery_batch_delay_minutes: int = Field(30, ge=1)
    min_defer_seconds: int = Field(60, ge=0)
    notification_timezone: str = "UTC"

    # Metering & accounts
    quota_max_cas_attempts: int = Field(5, ge=1)
    username_max_attempts: int = Field(5, ge=1)
    deletion_grace_period_days: int = 30

    # Per-client in-memory services
    client_idle_timeout_minutes: int = Field(60, ge=1)

    # API
    cors_origins: list[str] = ["http://localhost:5173"]

    # Observability
    log_level: str = "INFO"
    log_format: str = "json"

    def smart_timing_policy(self) -> SmartTimingPolicy:
        return SmartTimingPolicy(
            night_start_hour=self.night_start_hour,
            night_end_hour=self.night_end_hour,
            morning_delivery_hour=self.morning_delivery_hour,
            low_battery_threshold=self.low_battery_threshold,
            battery_batch_delay=timedelta(minutes=self.battery_batch_delay_minutes),
            min_defer=timedelta(seconds=self.min_defer_seconds),
        )


@lru_cache
def get_settings() -> Settings:
    return Settings()
