"""Pydantic models for NeTEx service calendars.

These models describe *when* a service runs before it is flattened into GTFS.
They are deliberately permissive: a pattern with an inverted validity period or
an empty id still constructs, and the validator reports the problem.
"""

import datetime as dt
from enum import Enum, IntEnum
from typing import Any

from pydantic import BaseModel, Field


class Weekday(IntEnum):
    """Day of week, numbered like date.weekday() (0=Monday)."""

    MONDAY = 0
    TUESDAY = 1
    WEDNESDAY = 2
    THURSDAY = 3
    FRIDAY = 4
    SATURDAY = 5
    SUNDAY = 6

    @classmethod
    def of(cls, d: dt.date) -> "Weekday":
        """Get the weekday of a date."""
        return cls(d.weekday())


WEEKDAYS = frozenset({
    Weekday.MONDAY,
    Weekday.TUESDAY,
    Weekday.WEDNESDAY,
    Weekday.THURSDAY,
    Weekday.FRIDAY,
})
WEEKEND = frozenset({Weekday.SATURDAY, Weekday.SUNDAY})
ALL_DAYS = WEEKDAYS | WEEKEND


class ServicePatternType(str, Enum):
    """Kind of operating rule a pattern describes."""

    REGULAR = "Regular"
    SEASONAL = "Seasonal"
    SPECIAL_EVENT = "SpecialEvent"
    SCHOOL_TERM = "SchoolTerm"
    HOLIDAY = "Holiday"
    WEEKEND = "Weekend"
    NIGHT_SERVICE = "NightService"
    REPLACEMENT_SERVICE = "ReplacementService"


class ExceptionType(str, Enum):
    """Type of a dated service exception.

    Only ADDED and REMOVED have a direct GTFS counterpart (exception_type 1/2).
    """

    ADDED = "Added"
    REMOVED = "Removed"
    MODIFIED = "Modified"
    REPLACED = "Replaced"


class Season(str, Enum):
    SPRING = "Spring"
    SUMMER = "Summer"
    AUTUMN = "Autumn"
    WINTER = "Winter"
    SCHOOL_TERM = "SchoolTerm"
    SCHOOL_HOLIDAY = "SchoolHoliday"


class ChangeType(str, Enum):
    FREQUENCY = "Frequency"
    ROUTE = "Route"
    OPERATING_DAYS = "OperatingDays"
    TIMINGS = "Timings"
    CANCELLATION = "Cancellation"


class SpecialDayType(str, Enum):
    HOLIDAY = "Holiday"
    EVENT = "Event"
    MAINTENANCE = "Maintenance"
    STRIKE = "Strike"
    WEATHER = "Weather"


class ServiceMode(str, Enum):
    """How service runs on a special day."""

    NORMAL = "Normal"
    REDUCED = "Reduced"
    HOLIDAY = "Holiday"
    SUSPENDED = "Suspended"
    REPLACEMENT = "Replacement"


class HolidayBehavior(str, Enum):
    """How a pattern treats public holidays."""

    AS_WEEKDAY = "AsWeekday"
    AS_WEEKEND = "AsWeekend"
    SPECIAL_SCHEDULE = "SpecialSchedule"
    NO_SERVICE = "NoService"


class HolidayType(str, Enum):
    PUBLIC = "Public"
    RELIGIOUS = "Religious"
    CULTURAL = "Cultural"
    COMMERCIAL = "Commercial"
    SCHOOL = "School"
    BANK = "Bank"


class Observance(str, Enum):
    """Rule for moving a holiday that falls on a weekend.

    - ACTUAL: never moved
    - MONDAY: Saturday/Sunday observed on the following Monday
    - FRIDAY: Saturday/Sunday observed on the preceding Friday
    - NEAREST: Saturday observed Friday, Sunday observed Monday
    """

    ACTUAL = "Actual"
    MONDAY = "Monday"
    FRIDAY = "Friday"
    NEAREST = "Nearest"


class ValidityPeriod(BaseModel):
    """Inclusive date range during which a pattern applies."""

    start_date: dt.date | None = None
    end_date: dt.date | None = None

    def contains(self, d: dt.date) -> bool:
        if self.start_date is None or self.end_date is None:
            return False
        return self.start_date <= d <= self.end_date


class AlternativeService(BaseModel):
    """Replacement service offered while a pattern is not running."""

    service_id: str = ""
    description: str = ""
    routes: list[str] = Field(default_factory=list)


class ServiceException(BaseModel):
    """A single dated deviation from the weekly pattern."""

    date: dt.date | None = None
    type: ExceptionType
    reason: str = ""
    alternative: AlternativeService | None = None


class ServiceChange(BaseModel):
    type: ChangeType
    description: str = ""
    parameters: dict[str, Any] = Field(default_factory=dict)


class SeasonalVariation(BaseModel):
    season: Season
    start_date: dt.date | None = None
    end_date: dt.date | None = None
    changes: list[ServiceChange] = Field(default_factory=list)


class SpecialDay(BaseModel):
    date: dt.date | None = None
    name: str = ""
    type: SpecialDayType = SpecialDayType.EVENT
    service_mode: ServiceMode = ServiceMode.NORMAL


class ServicePattern(BaseModel):
    """One operating rule: weekly days plus dated exceptions and special days."""

    id: str
    name: str = ""
    type: ServicePatternType = ServicePatternType.REGULAR
    validity_period: ValidityPeriod | None = None
    operating_days: set[Weekday] = Field(default_factory=set)
    non_operating_days: set[Weekday] = Field(default_factory=set)
    exceptions: list[ServiceException] = Field(default_factory=list)
    seasonal_variations: list[SeasonalVariation] = Field(default_factory=list)
    special_days: dict[dt.date, SpecialDay] = Field(default_factory=dict)
    holiday_behavior: HolidayBehavior = HolidayBehavior.AS_WEEKDAY

    def add_special_day(self, special_day: SpecialDay) -> None:
        """Store a special day under its own date."""
        if special_day.date is None:
            raise ValueError(f"Special day {special_day.name!r} has no date")
        self.special_days[special_day.date] = special_day

    def special_day_for(self, d: dt.date) -> SpecialDay | None:
        return self.special_days.get(d)


class SeasonDefinition(BaseModel):
    """A recurring season expressed as month/day bounds, e.g. Summer = 6/1-8/31."""

    season: Season
    start_month: int
    start_day: int
    end_month: int
    end_day: int
    characteristics: dict[str, Any] = Field(default_factory=dict)


class SeasonTransition(BaseModel):
    from_season: Season
    to_season: Season
    duration: dt.timedelta = dt.timedelta(0)
    gradual_change: bool = False


class SeasonalPattern(BaseModel):
    id: str
    name: str = ""
    seasons: list[SeasonDefinition] = Field(default_factory=list)
    transitions: list[SeasonTransition] = Field(default_factory=list)


class OperatingPeriod(BaseModel):
    """A date range served by a base pattern plus named overrides.

    Priority is a tie-break hint for callers; overlapping periods are reported
    by the validator rather than arbitrated here.
    """

    id: str
    name: str = ""
    start_date: dt.date | None = None
    end_date: dt.date | None = None
    base_pattern: ServicePattern | None = None
    overrides: dict[str, ServicePattern] = Field(default_factory=dict)
    priority: int = 0


class Holiday(BaseModel):
    """A public, religious or cultural holiday on a concrete date."""

    date: dt.date
    name: str
    type: HolidayType = HolidayType.PUBLIC
    is_national: bool = True
    is_regional: bool = False
    regions: list[str] = Field(default_factory=list)
    observance: Observance = Observance.ACTUAL


class CalendarDocument(BaseModel):
    """Serialized bundle of calendar entities, as produced by a NeTEx adapter."""

    service_patterns: list[ServicePattern] = Field(default_factory=list)
    operating_periods: list[OperatingPeriod] = Field(default_factory=list)
    seasonal_patterns: list[SeasonalPattern] = Field(default_factory=list)
