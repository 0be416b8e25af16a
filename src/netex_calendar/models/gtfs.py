"""Pydantic models for GTFS calendar output."""

from datetime import date, datetime

from pydantic import BaseModel

from netex_calendar.models.calendar import Weekday

GTFS_DATE_FORMAT = "%Y%m%d"

# GTFS weekday column names indexed by weekday (0=Monday, 6=Sunday)
WEEKDAY_COLUMNS = [
    "monday",
    "tuesday",
    "wednesday",
    "thursday",
    "friday",
    "saturday",
    "sunday",
]

SERVICE_ADDED = 1
SERVICE_REMOVED = 2


def format_gtfs_date(d: date) -> str:
    """Convert a date to GTFS date format (YYYYMMDD).

    Args:
        d: Date object.

    Returns:
        Date string in YYYYMMDD format.
    """
    return f"{d.year:04d}{d.month:02d}{d.day:02d}"


def parse_gtfs_date(date_str: str) -> date:
    """Parse a GTFS date string (YYYYMMDD).

    Raises:
        ValueError: If the string is not eight digits forming a real date.
    """
    cleaned = date_str.strip()
    if len(cleaned) != 8 or not cleaned.isdigit():
        raise ValueError(f"Invalid GTFS date format: {date_str}")
    return datetime.strptime(cleaned, GTFS_DATE_FORMAT).date()


class Calendar(BaseModel):
    """GTFS calendar entity for service patterns."""

    service_id: str
    monday: int = 0
    tuesday: int = 0
    wednesday: int = 0
    thursday: int = 0
    friday: int = 0
    saturday: int = 0
    sunday: int = 0
    start_date: str  # YYYYMMDD
    end_date: str  # YYYYMMDD

    @classmethod
    def from_weekdays(
        cls,
        service_id: str,
        weekdays: set[Weekday],
        start_date: date,
        end_date: date,
    ) -> "Calendar":
        """Build a calendar row whose weekday flags mirror a set of weekdays."""
        flags = {column: int(Weekday(i) in weekdays) for i, column in enumerate(WEEKDAY_COLUMNS)}
        return cls(
            service_id=service_id,
            start_date=format_gtfs_date(start_date),
            end_date=format_gtfs_date(end_date),
            **flags,
        )

    def operating_weekdays(self) -> set[Weekday]:
        """Get the weekdays flagged as operating."""
        return {
            Weekday(i) for i, column in enumerate(WEEKDAY_COLUMNS) if getattr(self, column) == 1
        }

    def weekday_flags(self) -> tuple[int, ...]:
        return tuple(getattr(self, column) for column in WEEKDAY_COLUMNS)


class CalendarDate(BaseModel):
    """GTFS calendar_dates entity for service exceptions."""

    service_id: str
    date: str  # YYYYMMDD
    exception_type: int  # 1=added, 2=removed
