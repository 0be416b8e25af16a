from functools import lru_cache

from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from netex_calendar.services.calendar_validator import ValidationLevel

DEFAULT_COUNTRY_CODE = "NO"
DEFAULT_TIMEZONE = "Europe/Oslo"
DEFAULT_MAX_SERVICE_EXCEPTIONS = 500
DEFAULT_OPERATING_DAYS = 365


class CalendarConfig(BaseSettings):
    """Configuration for calendar resolution.

    Automatically loads from NETEX_CALENDAR_* environment variables and .env file.
    Blank country/timezone values and a zero exception cap fall back to the
    defaults; a negative cap is kept so configuration validation can report it.
    """

    model_config = SettingsConfigDict(
        env_prefix="NETEX_CALENDAR_", env_file=".env", extra="ignore"
    )

    enable_holiday_detection: bool = False
    enable_seasonal_patterns: bool = False
    enable_school_calendar: bool = False
    enable_weekend_adjustments: bool = True
    max_service_exceptions: int = DEFAULT_MAX_SERVICE_EXCEPTIONS
    default_operating_days: int = DEFAULT_OPERATING_DAYS
    holiday_country_code: str = DEFAULT_COUNTRY_CODE
    timezone_name: str = DEFAULT_TIMEZONE

    @field_validator("holiday_country_code")
    @classmethod
    def _default_country(cls, value: str) -> str:
        return value.strip().upper() or DEFAULT_COUNTRY_CODE

    @field_validator("timezone_name")
    @classmethod
    def _default_timezone(cls, value: str) -> str:
        return value.strip() or DEFAULT_TIMEZONE

    @field_validator("max_service_exceptions")
    @classmethod
    def _default_max_exceptions(cls, value: int) -> int:
        return value or DEFAULT_MAX_SERVICE_EXCEPTIONS

    @field_validator("default_operating_days")
    @classmethod
    def _default_operating_days(cls, value: int) -> int:
        return value or DEFAULT_OPERATING_DAYS


class CalendarServiceConfig(CalendarConfig):
    """Configuration for the end-to-end calendar conversion service."""

    validation_level: ValidationLevel = ValidationLevel.STANDARD
    optimize_calendar_dates: bool = False
    consolidate_similar_patterns: bool = False

    @field_validator("validation_level", mode="before")
    @classmethod
    def _parse_level(cls, value: object) -> object:
        # Accept level names ("strict") as well as numbers from the environment
        if isinstance(value, str):
            if value.strip().isdigit():
                return ValidationLevel(int(value))
            return ValidationLevel.from_name(value)
        return value

    def calendar_config(self) -> CalendarConfig:
        """Get the subset of settings used by the calendar manager."""
        return CalendarConfig(**self.model_dump(include=set(CalendarConfig.model_fields)))


class GeneratorOptimizations(BaseModel):
    """Toggles for the optimizing GTFS calendar generator."""

    merge_compatible_calendars: bool = True
    minimize_calendar_dates: bool = True
    use_calendar_for_regular_service: bool = True
    max_calendar_dates_per_service: int = Field(default=100, ge=0)
    prefer_calendar_over_dates: bool = True


@lru_cache
def get_calendar_config() -> CalendarConfig:
    """Get calendar configuration (cached singleton).

    Returns:
        CalendarConfig with values from .env file or environment variables.
    """
    return CalendarConfig()


@lru_cache
def get_service_config() -> CalendarServiceConfig:
    """Get calendar service configuration (cached singleton)."""
    return CalendarServiceConfig()
