from datetime import date

from netex_calendar.app import mcp
from netex_calendar.models.calendar import Holiday
from netex_calendar.models.responses import CheckHolidayResponse, GetHolidaysResponse, HolidayResult
from netex_calendar.services.holiday_detector import HolidayDetector


def _holiday_result(holiday: Holiday) -> HolidayResult:
    return HolidayResult(
        date=holiday.date.isoformat(),
        name=holiday.name,
        type=holiday.type.value,
        weekday=holiday.date.strftime("%A"),
    )


@mcp.tool()
def get_holidays(year: int, country_code: str = "NO") -> GetHolidaysResponse:
    """Get the public holidays for a country and year.

    Includes fixed-date holidays, Easter-relative holidays (Maundy Thursday
    through Whit Monday) and country-specific movable holidays such as
    Swedish Midsummer. Unknown country codes return a generic set
    (New Year's Day and Christmas Day).

    Args:
        year: Gregorian calendar year (e.g., 2025).
        country_code: ISO 3166 alpha-2 code. Tables exist for NO, SE, DK and FI.

    Returns:
        GetHolidaysResponse with holidays sorted by date.
    """
    detector = HolidayDetector(country_code)
    holidays = sorted(detector.get_holidays(year), key=lambda h: h.date)
    return GetHolidaysResponse(
        country_code=detector.country_code,
        year=year,
        holidays=[_holiday_result(h) for h in holidays],
        count=len(holidays),
    )


@mcp.tool()
def check_holiday(date_str: str, country_code: str = "NO") -> CheckHolidayResponse:
    """Check whether a date is a public holiday.

    Args:
        date_str: Date in YYYY-MM-DD format.
        country_code: ISO 3166 alpha-2 code (default NO).

    Returns:
        CheckHolidayResponse with the matching holiday, if any.
    """
    query_date = date.fromisoformat(date_str)
    detector = HolidayDetector(country_code)
    holiday = detector.is_holiday(query_date)
    return CheckHolidayResponse(
        date=query_date.isoformat(),
        country_code=detector.country_code,
        is_holiday=holiday is not None,
        holiday=_holiday_result(holiday) if holiday else None,
    )
