from datetime import date

from netex_calendar.app import mcp
from netex_calendar.data.config import CalendarServiceConfig, get_calendar_config
from netex_calendar.models.calendar import CalendarDocument
from netex_calendar.models.responses import (
    ActiveServicesResponse,
    ConversionResult,
    ServiceDatesResponse,
    ValidateCalendarResponse,
)
from netex_calendar.services.active_services import (
    get_active_services as _get_active_services,
)
from netex_calendar.services.calendar_manager import CalendarManager
from netex_calendar.services.calendar_service import CalendarService
from netex_calendar.services.calendar_validator import ValidationLevel

# Upper bound on day-by-day iteration requested through the tool surface
MAX_SERVICE_DATE_SPAN_DAYS = 3660


def _service_for(document: CalendarDocument, validation_level: str) -> CalendarService:
    config = CalendarServiceConfig(validation_level=ValidationLevel.from_name(validation_level))
    service = CalendarService(config)
    service.load_document(document)
    return service


@mcp.tool()
def convert_calendar(
    document: CalendarDocument, validation_level: str = "standard"
) -> ConversionResult:
    """Convert service patterns and operating periods into GTFS calendar rows.

    Regular patterns spanning more than 30 days become calendar.txt rows;
    other patterns are expanded into calendar_dates.txt entries. Validation
    issues are reported alongside the rows and never block conversion.

    Args:
        document: Service patterns, operating periods and seasonal patterns.
        validation_level: One of minimal, standard, strict, detailed.

    Returns:
        ConversionResult with calendars, calendar_dates, issues and stats.
    """
    return _service_for(document, validation_level).convert()


@mcp.tool()
def validate_calendar(
    document: CalendarDocument, validation_level: str = "standard"
) -> ValidateCalendarResponse:
    """Validate a calendar document without converting it.

    Higher levels run more checks: strict adds date-range sanity and season
    day caps, detailed adds special days, overlapping operating periods and
    unreferenced patterns.

    Args:
        document: Service patterns, operating periods and seasonal patterns.
        validation_level: One of minimal, standard, strict, detailed.

    Returns:
        ValidateCalendarResponse with issues and GTFS rule violations.
    """
    service = _service_for(document, validation_level)
    issues = service.processor.validate()
    issues.extend(
        service.validator.validate_calendar_consistency(
            document.service_patterns, document.operating_periods
        )
    )
    gtfs_issues = service.validator.validate_against_gtfs_rules(document.service_patterns)
    return ValidateCalendarResponse(
        level=service.validator.level.name.title(),
        issues=issues,
        gtfs_issues=gtfs_issues,
        valid=not issues and not gtfs_issues,
    )


@mcp.tool()
def get_service_dates(
    document: CalendarDocument, pattern_id: str, start_date: str, end_date: str | None = None
) -> ServiceDatesResponse:
    """List the dates on which a service pattern operates.

    Applies the validity period, dated exceptions, special days and weekly
    operating days, in that order of precedence.

    Args:
        document: Calendar document containing the pattern.
        pattern_id: Id of the service pattern to resolve.
        start_date: First date of the range, YYYY-MM-DD.
        end_date: Last date of the range (inclusive), YYYY-MM-DD. Defaults to
                  default_operating_days days from start_date.

    Returns:
        ServiceDatesResponse with the operating dates.
    """
    service = _service_for(document, "minimal")
    start = date.fromisoformat(start_date)
    end = date.fromisoformat(end_date) if end_date else service.default_end_date(start)
    if end < start:
        raise ValueError("end_date must not be before start_date")
    if (end - start).days > MAX_SERVICE_DATE_SPAN_DAYS:
        raise ValueError(f"Date range is limited to {MAX_SERVICE_DATE_SPAN_DAYS} days")

    dates = service.get_service_dates(pattern_id, start, end)
    return ServiceDatesResponse(
        pattern_id=pattern_id,
        start_date=start.isoformat(),
        end_date=end.isoformat(),
        dates=[d.isoformat() for d in dates],
        count=len(dates),
    )


@mcp.tool()
async def get_active_services(date_str: str | None = None) -> ActiveServicesResponse:
    """List the services running on a date in the stored GTFS calendar.

    Reads the database written by 'netex-calendar convert' and applies
    calendar.txt weekday ranges and calendar_dates.txt additions/removals.

    Args:
        date_str: Date in YYYY-MM-DD format. Defaults to today in the
                  configured timezone.

    Returns:
        ActiveServicesResponse with the service ids running that day.
    """
    if date_str:
        query_date = date.fromisoformat(date_str)
    else:
        query_date = CalendarManager(get_calendar_config()).today()
    return await _get_active_services(query_date)
