"""
Settings and configuration for the Busy Times Service.
"""

from services.common.settings import (
    AliasChoices,
    BaseSettings,
    Field,
    SettingsConfigDict,
)


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    db_url_busy_times: str = Field(
        default=...,
        description="Database connection string holding users, bookings and event types",
        validation_alias=AliasChoices("DB_URL_BUSY_TIMES"),
    )

    office_service_url: str = Field(
        default=...,
        description="URL for the office service that reads connected calendars",
        validation_alias=AliasChoices("OFFICE_SERVICE_URL"),
    )

    api_busy_times_office_key: str = Field(
        default=...,  # required
        description="API key for the busy times service to access the office service",
        validation_alias=AliasChoices("API_BUSY_TIMES_OFFICE_KEY"),
    )

    api_frontend_busy_times_key: str = Field(
        default=...,  # required
        description="Frontend API key to access the busy times service",
        validation_alias=AliasChoices("API_FRONTEND_BUSY_TIMES_KEY"),
    )

    calendar_request_timeout: float = Field(
        default=30.0,
        description="Timeout in seconds for connected calendar lookups",
        validation_alias=AliasChoices("CALENDAR_REQUEST_TIMEOUT"),
    )

    allow_partial_calendar_results: bool = Field(
        default=False,
        description="Return busy times from the calendars that answered when others failed",
        validation_alias=AliasChoices("ALLOW_PARTIAL_CALENDAR_RESULTS"),
    )

    busy_times_concurrent_lookups: bool = Field(
        default=False,
        description="Run the booking and connected calendar lookups concurrently",
        validation_alias=AliasChoices("BUSY_TIMES_CONCURRENT_LOOKUPS"),
    )

    # Logging configuration
    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR)",
        validation_alias=AliasChoices("LOG_LEVEL"),
    )
    log_format: str = Field(
        default="json",
        description="Log format (json or text)",
        validation_alias=AliasChoices("LOG_FORMAT"),
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )


_settings: Settings | None = None


def get_settings() -> Settings:
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings
