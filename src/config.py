"""
Configuration module for the booking flow engine.

Loads environment variables (optionally from a ``.env`` file) and provides
the timing, storage and presentation settings used by the flow controller.
"""
from typing import Optional
from pydantic_settings import BaseSettings
from pydantic import Field


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    Attributes:
        environment: Deployment environment used to pick the logging profile
        idle_timeout_seconds: Inactivity before a session counts as abandoned
        tick_interval_seconds: Interval of the elapsed-time counter
        autosave_debounce_seconds: Delay before step changes are persisted
        snapshot_max_age_seconds: Age after which a saved snapshot is discarded
        storage_url: SQLAlchemy URL of the durable key/value store
    """

    environment: str = Field(
        default="development",
        alias="BOOKING_ENVIRONMENT",
        description="development, production or test"
    )

    log_level: Optional[str] = Field(
        default=None,
        alias="BOOKING_LOG_LEVEL",
        description="Minimum loguru level; overrides the environment profile"
    )

    # Timers
    idle_timeout_seconds: float = Field(
        default=300.0,
        gt=0,
        alias="BOOKING_IDLE_TIMEOUT_SECONDS",
        description="Idle time before abandonment is reported"
    )

    tick_interval_seconds: float = Field(
        default=1.0,
        gt=0,
        alias="BOOKING_TICK_INTERVAL_SECONDS",
        description="Elapsed-time counter interval"
    )

    autosave_debounce_seconds: float = Field(
        default=1.0,
        ge=0,
        alias="BOOKING_AUTOSAVE_DEBOUNCE_SECONDS",
        description="Debounce delay for snapshot auto-save"
    )

    submission_timeout_seconds: float = Field(
        default=30.0,
        gt=0,
        alias="BOOKING_SUBMISSION_TIMEOUT_SECONDS",
        description="Upper bound for the injected submission call"
    )

    track_abandonment: bool = Field(
        default=True,
        alias="BOOKING_TRACK_ABANDONMENT",
        description="Arm the idle abandonment timer"
    )

    # Persistence
    storage_url: str = Field(
        default="sqlite:///booking_flow.db",
        alias="BOOKING_STORAGE_URL",
        description="SQLAlchemy URL for snapshot storage"
    )

    storage_key: str = Field(
        default="booking_progress_state",
        alias="BOOKING_STORAGE_KEY",
        description="Key under which the snapshot is stored"
    )

    snapshot_max_age_seconds: float = Field(
        default=86400.0,
        gt=0,
        alias="BOOKING_SNAPSHOT_MAX_AGE_SECONDS",
        description="Snapshots older than this are discarded"
    )

    snapshot_schema_version: str = Field(
        default="1.0.0",
        alias="BOOKING_SNAPSHOT_SCHEMA_VERSION",
        description="Schema version written into and required from snapshots"
    )

    # Flow and presentation
    strict_archetypes: bool = Field(
        default=False,
        alias="BOOKING_STRICT_ARCHETYPES",
        description="Raise on unknown archetypes instead of falling back"
    )

    mode_breakpoint_px: int = Field(
        default=768,
        gt=0,
        alias="BOOKING_MODE_BREAKPOINT_PX",
        description="Viewport width below which the full-page flow is used"
    )

    class Config:
        env_file = ".env"
        case_sensitive = False
        extra = "ignore"
        populate_by_name = True


# Global settings instance
_settings: Optional[Settings] = None


def get_settings() -> Settings:
    """
    Get or create the global settings instance.

    Returns:
        Settings instance with loaded configuration
    """
    global _settings

    if _settings is None:
        _settings = Settings()

    return _settings


def reset_settings() -> None:
    """Drop the cached settings so the next call re-reads the environment."""
    global _settings
    _settings = None
