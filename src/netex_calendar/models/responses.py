from pydantic import BaseModel, Field

from netex_calendar.models.calendar import OperatingPeriod, ServicePattern
from netex_calendar.models.gtfs import Calendar, CalendarDate


class HealthResponse(BaseModel):
    """Health check response."""

    status: str
    version: str
    timestamp: str


class CalendarSummary(BaseModel):
    """Diagnostic tallies over generated GTFS calendar rows."""

    total_calendars: int
    total_calendar_dates: int
    services_by_type: dict[str, int] = Field(
        default_factory=dict, description="Calendars per shape: weekday, weekend, daily, other"
    )
    exceptions_by_type: dict[str, int] = Field(
        default_factory=dict, description="Calendar dates per exception: added, removed"
    )


class ValidationIssue(BaseModel):
    level: str = Field(description="Validation level the issue was found at")
    code: str
    message: str
    entity: str = Field(description="Entity kind, e.g. ServicePattern or Configuration")
    entity_id: str = ""
    suggestion: str | None = None
    context: dict[str, str] = Field(default_factory=dict)


class ConversionStats(BaseModel):
    total_service_patterns: int = 0
    total_operating_periods: int = 0
    total_calendars: int = 0
    total_calendar_dates: int = 0
    total_exceptions: int = 0
    holidays_detected: int = 0
    seasonal_variations: int = 0
    patterns_by_type: dict[str, int] = Field(default_factory=dict)
    processing_time_by_stage: dict[str, float] = Field(
        default_factory=dict, description="Seconds spent per pipeline stage"
    )


class ConversionResult(BaseModel):
    """Everything produced by one NeTEx to GTFS calendar conversion."""

    calendars: list[Calendar]
    calendar_dates: list[CalendarDate]
    service_patterns: list[ServicePattern] = Field(default_factory=list)
    operating_periods: list[OperatingPeriod] = Field(default_factory=list)
    conversion_stats: ConversionStats = Field(default_factory=ConversionStats)
    validation_issues: list[ValidationIssue] = Field(default_factory=list)
    processing_duration: float = Field(default=0.0, description="Total seconds")


class HolidayResult(BaseModel):
    date: str = Field(description="Holiday date in YYYY-MM-DD format")
    name: str
    type: str
    weekday: str


class GetHolidaysResponse(BaseModel):
    country_code: str
    year: int
    holidays: list[HolidayResult]
    count: int = Field(description="Number of holidays returned")


class CheckHolidayResponse(BaseModel):
    date: str = Field(description="Queried date in YYYY-MM-DD format")
    country_code: str
    is_holiday: bool
    holiday: HolidayResult | None = None


class ServiceDatesResponse(BaseModel):
    pattern_id: str
    start_date: str
    end_date: str
    dates: list[str] = Field(description="Operating dates in YYYY-MM-DD format")
    count: int


class ActiveServicesResponse(BaseModel):
    date: str = Field(description="Queried date in YYYY-MM-DD format")
    weekday: str
    service_ids: list[str] = Field(description="Services running on the date, sorted")
    count: int


class ValidateCalendarResponse(BaseModel):
    level: str
    issues: list[str]
    gtfs_issues: list[str] = Field(
        default_factory=list, description="GTFS rule violations (level independent)"
    )
    valid: bool
