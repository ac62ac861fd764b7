"""
Configuration management for Household Calendar.

Uses Pydantic Settings for type-safe environment variable loading.
Configured via .env file in project root.
"""

from functools import lru_cache
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    All settings can be configured via .env file or environment variables.
    """

    # Python & Application
    python_env: Literal["development", "production"] = Field(
        default="development",
        description="Application environment"
    )
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="INFO",
        description="Logging level"
    )

    # Database
    database_url: str = Field(
        default="sqlite:///./data/household_calendar.db",
        description="Database connection URL for calendar storage"
    )

    # API Configuration
    api_host: str = Field(
        default="0.0.0.0",
        description="API server host"
    )
    api_port: int = Field(
        default=8000,
        description="API server port"
    )

    # Reminder scheduling
    reminder_check_interval_seconds: int = Field(
        default=300,
        gt=0,
        description="How often the reminder scheduler rescans upcoming events"
    )
    upcoming_window_hours: int = Field(
        default=24,
        gt=0,
        description="Look-ahead window for upcoming events"
    )
    upcoming_event_limit: int = Field(
        default=50,
        gt=0,
        description="Maximum events fetched per scheduler pass"
    )
    schedule_all_event_limit: int = Field(
        default=100,
        gt=0,
        description="Maximum events fetched when scheduling all reminders"
    )
    notification_duration_ms: int = Field(
        default=5000,
        gt=0,
        description="Default auto-hide duration for in-app notifications"
    )

    # Series expansion
    series_horizon_days: int = Field(
        default=365,
        gt=0,
        description="Generation horizon for series without an end date"
    )
    max_series_instances: int = Field(
        default=100,
        gt=0,
        description="Occurrence cap when expanding a whole series"
    )
    max_range_instances: int = Field(
        default=50,
        gt=0,
        description="Occurrence cap when expanding a visible range"
    )

    # Platform notifications (optional)
    reminder_webhook_url: str = Field(
        default="",
        description="Endpoint that receives reminder notifications"
    )
    reminder_webhook_secret: str = Field(
        default="",
        description="Shared secret for HMAC-SHA256 reminder signatures"
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    @property
    def is_development(self) -> bool:
        """Check if running in development mode."""
        return self.python_env == "development"

    @property
    def is_production(self) -> bool:
        """Check if running in production mode."""
        return self.python_env == "production"

    @property
    def uses_postgresql(self) -> bool:
        """Check if PostgreSQL is the configured database."""
        return "postgresql" in self.database_url.lower()

    @property
    def uses_webhook_notifications(self) -> bool:
        """Check if reminders are also pushed to a webhook."""
        return bool(self.reminder_webhook_url)

    def validate_production_config(self) -> None:
        """
        Validate configuration for production environment.

        Raises:
            ValueError: If required production settings are missing or invalid
        """
        if not self.is_production:
            return

        errors = []

        if self.uses_webhook_notifications:
            if not self.reminder_webhook_url.lower().startswith("https://"):
                errors.append("REMINDER_WEBHOOK_URL must use HTTPS in production.")
            if not self.reminder_webhook_secret:
                errors.append(
                    "REMINDER_WEBHOOK_SECRET is required when REMINDER_WEBHOOK_URL is set."
                )

        if errors:
            raise ValueError("Production configuration errors:\n- " + "\n- ".join(errors))


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached settings instance.

    This function is cached to ensure we only load settings once.
    Use this function throughout the application to access settings.

    Returns:
        Settings instance loaded from environment

    Example:
        >>> from household_calendar.config import get_settings
        >>> settings = get_settings()
        >>> print(settings.database_url)
    """
    return Settings()
