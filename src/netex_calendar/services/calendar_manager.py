"""Calendar manager: resolves NeTEx service patterns into GTFS calendars.

Implements the GTFS service day resolution for a pattern:
1. Dates outside the validity period never operate
2. A dated exception decides the day (ADDED operates, REMOVED does not)
3. Otherwise a special day decides it (SUSPENDED does not operate)
4. Otherwise the weekly operating days decide it
"""

import logging
import threading
from collections.abc import Callable, Iterator
from datetime import date, datetime, timedelta
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from netex_calendar.data.config import CalendarConfig
from netex_calendar.models.calendar import (
    ExceptionType,
    HolidayBehavior,
    OperatingPeriod,
    SeasonalPattern,
    SeasonDefinition,
    ServiceMode,
    ServicePattern,
    SpecialDay,
    Weekday,
)
from netex_calendar.models.gtfs import (
    SERVICE_ADDED,
    SERVICE_REMOVED,
    Calendar,
    CalendarDate,
    format_gtfs_date,
)
from netex_calendar.services.holiday_detector import HolidayDetector

logger = logging.getLogger(__name__)

SeasonExceptionHook = Callable[[SeasonalPattern, SeasonDefinition], list[CalendarDate]]


class PatternNotFoundError(ValueError):
    """Raised when a service pattern id is not registered."""

    def __init__(self, pattern_id: str):
        super().__init__(f"Service pattern not found: {pattern_id}")
        self.pattern_id = pattern_id


class PatternProcessingError(ValueError):
    """Raised when a pattern cannot be turned into GTFS calendar rows."""

    def __init__(self, pattern_id: str, message: str):
        super().__init__(f"Failed to process service pattern {pattern_id}: {message}")
        self.pattern_id = pattern_id


def no_season_exceptions(
    seasonal_pattern: SeasonalPattern, season: SeasonDefinition
) -> list[CalendarDate]:
    """Default season exception hook: emits nothing.

    Seasonal rules are agency specific; supply a hook to CalendarManager to
    turn season definitions into calendar dates.
    """
    return []


def iter_dates(start: date, end: date) -> Iterator[date]:
    """Yield every date from start to end inclusive."""
    current = start
    while current <= end:
        yield current
        current += timedelta(days=1)


def is_service_operating(pattern: ServicePattern, d: date) -> bool:
    """Check whether a pattern operates on a date.

    The first ADDED or REMOVED exception on the date decides it; other
    exception types are skipped.
    """
    validity = pattern.validity_period
    if validity is None or not validity.contains(d):
        return False

    operating = Weekday.of(d) in pattern.operating_days

    for exception in pattern.exceptions:
        if exception.date != d:
            continue
        if exception.type == ExceptionType.ADDED:
            return True
        if exception.type == ExceptionType.REMOVED:
            return False

    special_day = pattern.special_day_for(d)
    if special_day is not None:
        if special_day.service_mode in (
            ServiceMode.NORMAL,
            ServiceMode.REDUCED,
            ServiceMode.REPLACEMENT,
        ):
            return True
        if special_day.service_mode == ServiceMode.SUSPENDED:
            return False

    return operating


def exception_type_code(exception_type: ExceptionType) -> int:
    """Map an exception type to a GTFS exception_type (ADDED=1, anything else=2)."""
    return SERVICE_ADDED if exception_type == ExceptionType.ADDED else SERVICE_REMOVED


def special_day_type_code(special_day: SpecialDay) -> int | None:
    """Map a special day's service mode to a GTFS exception_type.

    Returns None for modes with no calendar effect (HOLIDAY).
    """
    if special_day.service_mode in (
        ServiceMode.NORMAL,
        ServiceMode.REDUCED,
        ServiceMode.REPLACEMENT,
    ):
        return SERVICE_ADDED
    if special_day.service_mode == ServiceMode.SUSPENDED:
        return SERVICE_REMOVED
    return None


def holiday_type_code(behavior: HolidayBehavior) -> int | None:
    """Map a pattern's holiday behavior to a GTFS exception_type.

    Returns None when holidays run as a normal weekday.
    """
    if behavior in (HolidayBehavior.AS_WEEKEND, HolidayBehavior.NO_SERVICE):
        return SERVICE_REMOVED
    if behavior == HolidayBehavior.SPECIAL_SCHEDULE:
        return SERVICE_ADDED
    return None


def pattern_exception_dates(pattern: ServicePattern, service_id: str) -> list[CalendarDate]:
    """Build calendar dates for a pattern's exceptions and special days."""
    calendar_dates: list[CalendarDate] = []

    for exception in pattern.exceptions:
        if exception.date is None:
            continue
        calendar_dates.append(
            CalendarDate(
                service_id=service_id,
                date=format_gtfs_date(exception.date),
                exception_type=exception_type_code(exception.type),
            )
        )

    for day, special_day in sorted(pattern.special_days.items()):
        code = special_day_type_code(special_day)
        if code is None:
            continue
        calendar_dates.append(
            CalendarDate(
                service_id=service_id,
                date=format_gtfs_date(special_day.date or day),
                exception_type=code,
            )
        )

    return calendar_dates


def consolidate_calendar_dates(calendar_dates: list[CalendarDate]) -> list[CalendarDate]:
    """Deduplicate calendar dates and sort them by service id, then date.

    When a (service_id, date) pair has both an added and a removed entry, the
    removal wins.
    """
    unique: dict[tuple[str, str], CalendarDate] = {}
    for calendar_date in calendar_dates:
        key = (calendar_date.service_id, calendar_date.date)
        existing = unique.get(key)
        if existing is None or (
            calendar_date.exception_type == SERVICE_REMOVED
            and existing.exception_type == SERVICE_ADDED
        ):
            unique[key] = calendar_date

    return sorted(unique.values(), key=lambda cd: (cd.service_id, cd.date))


def qualified_service_id(period_id: str, pattern_key: str) -> str:
    """Service id for a pattern used inside an operating period."""
    return f"{period_id}_{pattern_key}"


class CalendarManager:
    """Owns service patterns, seasonal patterns and operating periods.

    Registration and generation are guarded by a re-entrant lock, so a manager
    may be shared between threads.
    """

    def __init__(
        self,
        config: CalendarConfig | None = None,
        season_exception_hook: SeasonExceptionHook | None = None,
    ):
        """Initialize the manager.

        Args:
            config: Calendar configuration. Defaults to environment settings.
            season_exception_hook: Callable producing calendar dates for a
                season definition. Defaults to emitting no dates.
        """
        self.config = config if config is not None else CalendarConfig()
        self.holiday_detector = HolidayDetector(
            self.config.holiday_country_code,
            apply_observance=self.config.enable_weekend_adjustments,
        )
        self.season_exception_hook = season_exception_hook or no_season_exceptions

        self._service_patterns: dict[str, ServicePattern] = {}
        self._seasonal_patterns: dict[str, SeasonalPattern] = {}
        self._operating_periods: dict[str, OperatingPeriod] = {}
        self._calendars: dict[str, Calendar] = {}
        self._calendar_dates: dict[str, list[CalendarDate]] = {}
        self._lock = threading.RLock()
        self._timezone: ZoneInfo | None = None

    @property
    def timezone(self) -> ZoneInfo:
        """Configured timezone, or UTC when the name is not a valid IANA zone."""
        if self._timezone is None:
            try:
                self._timezone = ZoneInfo(self.config.timezone_name)
            except (ZoneInfoNotFoundError, ValueError):
                logger.warning(
                    f"Invalid timezone {self.config.timezone_name!r}, falling back to UTC"
                )
                self._timezone = ZoneInfo("UTC")
        return self._timezone

    def today(self) -> date:
        """Current date in the configured timezone."""
        return datetime.now(self.timezone).date()

    # Registration

    def add_service_pattern(self, pattern: ServicePattern) -> None:
        with self._lock:
            self._service_patterns[pattern.id] = pattern

    def add_seasonal_pattern(self, pattern: SeasonalPattern) -> None:
        with self._lock:
            self._seasonal_patterns[pattern.id] = pattern

    def add_operating_period(self, period: OperatingPeriod) -> None:
        with self._lock:
            self._operating_periods[period.id] = period

    def get_service_pattern(self, pattern_id: str) -> ServicePattern | None:
        return self._service_patterns.get(pattern_id)

    @property
    def service_patterns(self) -> list[ServicePattern]:
        with self._lock:
            return list(self._service_patterns.values())

    @property
    def seasonal_patterns(self) -> list[SeasonalPattern]:
        with self._lock:
            return list(self._seasonal_patterns.values())

    @property
    def operating_periods(self) -> list[OperatingPeriod]:
        with self._lock:
            return list(self._operating_periods.values())

    def get_calendars(self) -> dict[str, Calendar]:
        """Calendars produced by the last generation, keyed by service id."""
        return dict(self._calendars)

    def get_calendar_dates(self) -> dict[str, list[CalendarDate]]:
        """Calendar dates produced by the last generation, keyed by service id."""
        return {service_id: list(dates) for service_id, dates in self._calendar_dates.items()}

    # Resolution

    def is_service_operating(self, pattern: ServicePattern, d: date) -> bool:
        return is_service_operating(pattern, d)

    def get_effective_dates(self, pattern_id: str, start: date, end: date) -> list[date]:
        """Get every date in [start, end] on which a registered pattern operates.

        Raises:
            PatternNotFoundError: If the pattern id is not registered.
        """
        pattern = self.get_service_pattern(pattern_id)
        if pattern is None:
            raise PatternNotFoundError(pattern_id)
        return [d for d in iter_dates(start, end) if is_service_operating(pattern, d)]

    def generate_gtfs_calendar(
        self, reference_date: date | None = None
    ) -> tuple[list[Calendar], list[CalendarDate]]:
        """Generate GTFS calendars and calendar dates for everything registered.

        Args:
            reference_date: Date whose year (and the next) receives holiday
                exceptions. Defaults to today in the configured timezone.

        Returns:
            Tuple of (calendars, consolidated calendar dates).

        Raises:
            PatternProcessingError: If a pattern lacks the data for a calendar row.
        """
        with self._lock:
            calendars: list[Calendar] = []
            calendar_dates: list[CalendarDate] = []
            # Caches are replaced only once generation has succeeded
            calendars_by_id: dict[str, Calendar] = {}
            dates_by_service: dict[str, list[CalendarDate]] = {}

            for pattern in self._service_patterns.values():
                calendar, dates = self.process_service_pattern(pattern)
                calendars.append(calendar)
                calendars_by_id[calendar.service_id] = calendar
                calendar_dates.extend(dates)

            for period in self._operating_periods.values():
                period_calendars, period_dates = self.process_operating_period(period)
                calendars.extend(period_calendars)
                calendar_dates.extend(period_dates)

            if self.config.enable_seasonal_patterns:
                calendar_dates.extend(self.generate_seasonal_exceptions())

            if self.config.enable_holiday_detection:
                year = (reference_date or self.today()).year
                calendar_dates.extend(self.generate_holiday_exceptions(year))

            consolidated = consolidate_calendar_dates(calendar_dates)
            for calendar_date in consolidated:
                dates_by_service.setdefault(calendar_date.service_id, []).append(calendar_date)
            self._calendars = calendars_by_id
            self._calendar_dates = dates_by_service
            self._warn_on_exception_volume()

            logger.info(
                f"Generated {len(calendars)} calendars and {len(consolidated)} calendar dates"
            )
            return calendars, consolidated

    def process_service_pattern(
        self, pattern: ServicePattern, service_id: str | None = None
    ) -> tuple[Calendar, list[CalendarDate]]:
        """Convert a pattern into a calendar row and its exception dates.

        Raises:
            PatternProcessingError: If the pattern has no complete validity period.
        """
        service_id = service_id or pattern.id
        validity = pattern.validity_period
        if validity is None or validity.start_date is None or validity.end_date is None:
            raise PatternProcessingError(pattern.id, "no base calendar (validity period)")

        calendar = Calendar.from_weekdays(
            service_id, pattern.operating_days, validity.start_date, validity.end_date
        )
        return calendar, pattern_exception_dates(pattern, service_id)

    def process_operating_period(
        self, period: OperatingPeriod
    ) -> tuple[list[Calendar], list[CalendarDate]]:
        """Convert an operating period's base pattern and overrides.

        Service ids are qualified with the period id so patterns shared between
        periods never collide.
        """
        calendars: list[Calendar] = []
        calendar_dates: list[CalendarDate] = []

        members: list[tuple[str, ServicePattern]] = []
        if period.base_pattern is not None:
            members.append((period.base_pattern.id, period.base_pattern))
        members.extend(sorted(period.overrides.items()))

        for key, pattern in members:
            try:
                calendar, dates = self.process_service_pattern(
                    pattern, qualified_service_id(period.id, key)
                )
            except PatternProcessingError as e:
                raise PatternProcessingError(
                    pattern.id, f"in operating period {period.id}: {e}"
                ) from e
            calendars.append(calendar)
            calendar_dates.extend(dates)

        return calendars, calendar_dates

    def generate_seasonal_exceptions(self) -> list[CalendarDate]:
        """Collect calendar dates from the season exception hook."""
        calendar_dates: list[CalendarDate] = []
        for seasonal_pattern in self._seasonal_patterns.values():
            for season in seasonal_pattern.seasons:
                calendar_dates.extend(self.season_exception_hook(seasonal_pattern, season))
        return calendar_dates

    def generate_holiday_exceptions(self, year: int) -> list[CalendarDate]:
        """Map holidays of ``year`` and ``year + 1`` through each pattern's behavior."""
        calendar_dates: list[CalendarDate] = []
        for holiday_year in (year, year + 1):
            for holiday in self.holiday_detector.get_holidays(holiday_year):
                holiday_date = format_gtfs_date(holiday.date)
                for pattern in self._service_patterns.values():
                    code = holiday_type_code(pattern.holiday_behavior)
                    if code is None:
                        continue
                    calendar_dates.append(
                        CalendarDate(
                            service_id=pattern.id, date=holiday_date, exception_type=code
                        )
                    )
        return calendar_dates

    def consolidate_calendar_dates(self, calendar_dates: list[CalendarDate]) -> list[CalendarDate]:
        return consolidate_calendar_dates(calendar_dates)

    def _warn_on_exception_volume(self) -> None:
        limit = self.config.max_service_exceptions
        if limit <= 0:
            return
        for service_id, dates in self._calendar_dates.items():
            if len(dates) > limit:
                logger.warning(
                    f"Service {service_id} has {len(dates):,} calendar dates "
                    f"(max_service_exceptions={limit})"
                )
