"""Typed NeTEx calendar adapter.

Turns ServiceCalendarFrame elements (DayType, OperatingPeriod,
UicOperatingPeriod, DayTypeAssignment) into service patterns and operating
periods, and registers them with a CalendarManager.
"""

import logging
import re
from datetime import date, datetime, timedelta

from netex_calendar.models.calendar import (
    ALL_DAYS,
    WEEKDAYS,
    WEEKEND,
    ExceptionType,
    HolidayBehavior,
    OperatingPeriod,
    ServiceException,
    ServicePattern,
    ServicePatternType,
    ValidityPeriod,
    Weekday,
)
from netex_calendar.models.gtfs import parse_gtfs_date
from netex_calendar.models.netex import (
    DayTypeAssignmentElement,
    DayTypeElement,
    NeTExCalendarElement,
    OperatingPeriodElement,
    ServiceCalendarFrame,
    UicOperatingPeriodElement,
)
from netex_calendar.services.calendar_manager import CalendarManager
from netex_calendar.services.calendar_validator import CalendarValidator

logger = logging.getLogger(__name__)

# NeTEx DayOfWeekEnumeration tokens
DAY_OF_WEEK_TOKENS: dict[str, frozenset[Weekday]] = {
    "monday": frozenset({Weekday.MONDAY}),
    "tuesday": frozenset({Weekday.TUESDAY}),
    "wednesday": frozenset({Weekday.WEDNESDAY}),
    "thursday": frozenset({Weekday.THURSDAY}),
    "friday": frozenset({Weekday.FRIDAY}),
    "saturday": frozenset({Weekday.SATURDAY}),
    "sunday": frozenset({Weekday.SUNDAY}),
    "weekdays": WEEKDAYS,
    "weekend": WEEKEND,
    "everyday": ALL_DAYS,
}

# NeTEx HolidayTypeEnumeration tokens that change holiday behavior
HOLIDAY_TYPE_BEHAVIOR: dict[str, HolidayBehavior] = {
    "notholiday": HolidayBehavior.NO_SERVICE,
    "anyholiday": HolidayBehavior.SPECIAL_SCHEDULE,
    "publicholiday": HolidayBehavior.SPECIAL_SCHEDULE,
}

ISO_DURATION_RE = re.compile(
    r"^PT(?:(?P<hours>\d+(?:\.\d+)?)H)?(?:(?P<minutes>\d+(?:\.\d+)?)M)?"
    r"(?:(?P<seconds>\d+(?:\.\d+)?)S)?$"
)
ISO_DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")


class NeTExReferenceError(ValueError):
    """Raised when an element references an id that was never processed."""

    def __init__(self, element_id: str, ref: str, kind: str):
        super().__init__(f"{element_id} references unknown {kind} {ref}")
        self.element_id = element_id
        self.ref = ref


class NeTExCalendarProcessor:
    """Converts NeTEx calendar elements for a CalendarManager.

    Processed day types and operating periods are kept by id so later
    assignments can reference them.
    """

    def __init__(self, manager: CalendarManager, validator: CalendarValidator | None = None):
        self.manager = manager
        self.validator = validator or CalendarValidator()
        self.timezone = manager.timezone
        self._day_types: dict[str, ServicePattern] = {}
        self._operating_periods: dict[str, OperatingPeriod] = {}
        # Day type id -> (period, period-bounded copy) for every period assignment
        self._period_members: dict[str, list[tuple[OperatingPeriod, ServicePattern]]] = {}

    def process_frame(self, frame: ServiceCalendarFrame) -> None:
        """Process every element of a frame and register the results.

        Elements are handled in dependency order: day types, then periods,
        then assignments (by their ``order``). Day types that end up with no
        validity period are not registered.

        Raises:
            NeTExReferenceError: If an assignment references an unknown id.
            ValueError: If a date or bit string cannot be parsed.
        """
        elements = frame.elements
        for element in elements:
            if isinstance(element, DayTypeElement):
                self.process_day_type(element)
        for element in elements:
            if isinstance(element, OperatingPeriodElement):
                self.process_operating_period(element)
            elif isinstance(element, UicOperatingPeriodElement):
                self.process_uic_operating_period(element)

        assignments = [e for e in elements if isinstance(e, DayTypeAssignmentElement)]
        for assignment in sorted(assignments, key=lambda a: a.order):
            self.process_day_type_assignment(assignment)

        self.register()
        logger.info(
            f"Processed frame {frame.id or '<unnamed>'}: {len(self._day_types)} day types, "
            f"{len(self._operating_periods)} operating periods"
        )

    def process_element(self, element: NeTExCalendarElement) -> None:
        """Process a single element of any supported kind."""
        if isinstance(element, DayTypeElement):
            self.process_day_type(element)
        elif isinstance(element, OperatingPeriodElement):
            self.process_operating_period(element)
        elif isinstance(element, UicOperatingPeriodElement):
            self.process_uic_operating_period(element)
        elif isinstance(element, DayTypeAssignmentElement):
            self.process_day_type_assignment(element)
        else:
            raise TypeError(f"Unsupported NeTEx element: {type(element).__name__}")

    def register(self) -> None:
        """Register processed patterns and periods with the manager."""
        for pattern in self._day_types.values():
            if pattern.validity_period is None:
                logger.warning(f"Day type {pattern.id} has no assignments, not registered")
                continue
            self.manager.add_service_pattern(pattern)
        for period in self._operating_periods.values():
            self.manager.add_operating_period(period)

    def process_day_type(self, element: DayTypeElement) -> ServicePattern:
        """Convert a DayType into a service pattern without a validity period.

        Unknown day-of-week or holiday tokens are skipped with a warning.
        """
        operating_days: set[Weekday] = set()
        for token in element.days_of_week:
            days = DAY_OF_WEEK_TOKENS.get(token.strip().lower())
            if days is None:
                logger.warning(f"Day type {element.id}: unknown day of week {token!r}")
                continue
            operating_days.update(days)

        holiday_behavior = HolidayBehavior.AS_WEEKDAY
        for token in element.holiday_types:
            behavior = HOLIDAY_TYPE_BEHAVIOR.get(token.strip().lower())
            if behavior is not None:
                holiday_behavior = behavior

        if operating_days and operating_days <= WEEKEND:
            pattern_type = ServicePatternType.WEEKEND
        elif not operating_days and holiday_behavior == HolidayBehavior.SPECIAL_SCHEDULE:
            pattern_type = ServicePatternType.HOLIDAY
        else:
            pattern_type = ServicePatternType.REGULAR

        pattern = ServicePattern(
            id=element.id,
            name=element.name,
            type=pattern_type,
            operating_days=operating_days,
            non_operating_days=set(ALL_DAYS - operating_days) if operating_days else set(),
            holiday_behavior=holiday_behavior,
        )
        self._day_types[element.id] = pattern
        return pattern

    def process_operating_period(self, element: OperatingPeriodElement) -> OperatingPeriod:
        """Convert an OperatingPeriod; patterns are attached by assignments."""
        period = OperatingPeriod(
            id=element.id,
            name=element.name,
            start_date=self.parse_netex_date(element.from_date),
            end_date=self.parse_netex_date(element.to_date),
        )
        self._operating_periods[element.id] = period
        return period

    def process_uic_operating_period(self, element: UicOperatingPeriodElement) -> OperatingPeriod:
        """Convert a UicOperatingPeriod bitmask into an operating period.

        Bit ``i`` of ``valid_day_bits`` stands for ``from_date + i`` days; every
        ``1`` becomes an ADDED exception of the period's base pattern. Bits past
        ``to_date`` are ignored.

        Raises:
            ValueError: If the bit string holds anything but 0 and 1.
        """
        start = self.parse_netex_date(element.from_date)
        end = self.parse_netex_date(element.to_date)
        bits = element.valid_day_bits.strip()
        if set(bits) - {"0", "1"}:
            raise ValueError(f"UicOperatingPeriod {element.id}: invalid valid day bits")

        exceptions = []
        for offset, bit in enumerate(bits):
            day = start + timedelta(days=offset)
            if day > end:
                break
            if bit == "1":
                exceptions.append(
                    ServiceException(date=day, type=ExceptionType.ADDED, reason="UIC valid day")
                )

        base_pattern = ServicePattern(
            id=f"{element.id}_days",
            name=element.name,
            validity_period=ValidityPeriod(start_date=start, end_date=end),
            exceptions=exceptions,
        )
        period = OperatingPeriod(
            id=element.id,
            name=element.name,
            start_date=start,
            end_date=end,
            base_pattern=base_pattern,
        )
        self._operating_periods[element.id] = period
        return period

    def process_day_type_assignment(self, element: DayTypeAssignmentElement) -> None:
        """Apply a DayTypeAssignment to its day type.

        A period assignment attaches a copy of the day type bounded to the
        period, as the period's base pattern (or an override when a base is
        already set), and widens the standalone day type's validity to cover
        the period. Dated assignments also reach every period copy whose
        range holds the date. A dated assignment adds an ADDED or REMOVED
        exception depending on ``is_available``.

        Raises:
            NeTExReferenceError: If the day type or period is unknown.
            ValueError: If the assignment names neither a period nor a date.
        """
        pattern = self._day_types.get(element.day_type_ref)
        if pattern is None:
            raise NeTExReferenceError(element.id, element.day_type_ref, "day type")

        if element.operating_period_ref is not None:
            period = self._operating_periods.get(element.operating_period_ref)
            if period is None:
                raise NeTExReferenceError(
                    element.id, element.operating_period_ref, "operating period"
                )
            if period.start_date is not None and period.end_date is not None:
                widen_validity(pattern, period.start_date, period.end_date)

            member = bounded_to_period(pattern, period)
            if period.base_pattern is None or period.base_pattern.id == pattern.id:
                period.base_pattern = member
            else:
                period.overrides[pattern.id] = member
            self._period_members.setdefault(pattern.id, []).append((period, member))
            return

        if element.date is None:
            raise ValueError(f"DayTypeAssignment {element.id} has no period or date")

        day = self.parse_netex_date(element.date)
        exception_type = ExceptionType.ADDED if element.is_available else ExceptionType.REMOVED
        exception = ServiceException(
            date=day, type=exception_type, reason=f"DayTypeAssignment {element.id}"
        )
        pattern.exceptions.append(exception)
        for period, member in self._period_members.get(pattern.id, []):
            if period_contains(period, day):
                member.exceptions.append(exception.model_copy())
        # Date-list day types get their validity from their dates
        if not pattern.operating_days:
            widen_validity(pattern, day, day)
        elif not (pattern.validity_period and pattern.validity_period.contains(day)):
            logger.warning(
                f"DayTypeAssignment {element.id}: {day.isoformat()} is outside the "
                f"validity of day type {pattern.id}"
            )

    def parse_netex_date(self, value: str) -> date:
        """Parse a NeTEx date or dateTime.

        Accepts ``YYYY-MM-DDTHH:MM:SS`` with or without a UTC offset (offset
        values are converted to the configured timezone), ``YYYY-MM-DD`` and
        ``YYYYMMDD``.

        Raises:
            ValueError: If the value matches none of the formats.
        """
        cleaned = value.strip()
        try:
            if "T" in cleaned:
                parsed = datetime.fromisoformat(cleaned)
                if parsed.tzinfo is not None:
                    parsed = parsed.astimezone(self.timezone)
                return parsed.date()
            if ISO_DATE_RE.match(cleaned):
                return date.fromisoformat(cleaned)
            return parse_gtfs_date(cleaned)
        except ValueError as e:
            raise ValueError(f"Unable to parse NeTEx date: {value}") from e

    def parse_netex_time(self, value: str) -> timedelta:
        """Parse a NeTEx time of day or ISO-8601 duration into an offset from midnight.

        Accepts ``HH:MM`` and ``HH:MM:SS`` (hours may exceed 23 for services
        running past midnight) and ``PT#H#M#S`` durations.

        Raises:
            ValueError: If the value is in an unsupported format.
        """
        cleaned = value.strip()
        if ":" in cleaned:
            parts = cleaned.split(":")
            if len(parts) not in (2, 3) or not all(p.isdigit() for p in parts):
                raise ValueError(f"Invalid time format: {value}")
            hours, minutes = int(parts[0]), int(parts[1])
            seconds = int(parts[2]) if len(parts) == 3 else 0
            return timedelta(hours=hours, minutes=minutes, seconds=seconds)

        match = ISO_DURATION_RE.match(cleaned)
        if match is None or not any(match.groupdict().values()):
            raise ValueError(f"Unsupported time format: {value}")
        return timedelta(
            hours=float(match["hours"] or 0),
            minutes=float(match["minutes"] or 0),
            seconds=float(match["seconds"] or 0),
        )

    def validate(self) -> list[str]:
        """Validate everything registered with the manager, prefixed by entity id."""
        issues: list[str] = []
        for pattern in self.manager.service_patterns:
            for issue in self.validator.validate_service_pattern(pattern):
                issues.append(f"Pattern {pattern.id}: {issue}")
        for period in self.manager.operating_periods:
            for issue in self.validator.validate_operating_period(period):
                issues.append(f"Operating period {period.id}: {issue}")
        for seasonal in self.manager.seasonal_patterns:
            for issue in self.validator.validate_seasonal_pattern(seasonal):
                issues.append(f"Seasonal pattern {seasonal.id}: {issue}")
        return issues


def widen_validity(pattern: ServicePattern, start: date, end: date) -> None:
    """Extend a pattern's validity period to cover [start, end]."""
    validity = pattern.validity_period
    if validity is None or validity.start_date is None or validity.end_date is None:
        pattern.validity_period = ValidityPeriod(start_date=start, end_date=end)
        return
    validity.start_date = min(validity.start_date, start)
    validity.end_date = max(validity.end_date, end)


def period_contains(period: OperatingPeriod, d: date) -> bool:
    """Inclusive range test; an open-ended bound accepts every date."""
    if period.start_date is not None and d < period.start_date:
        return False
    return period.end_date is None or d <= period.end_date


def bounded_to_period(pattern: ServicePattern, period: OperatingPeriod) -> ServicePattern:
    """Copy a day type for use inside one operating period.

    The copy's validity is the period's range and it keeps only the
    exceptions and special days falling inside it.
    """
    member = pattern.model_copy(deep=True)
    if period.start_date is None or period.end_date is None:
        return member

    member.validity_period = ValidityPeriod(start_date=period.start_date, end_date=period.end_date)
    member.exceptions = [
        e for e in member.exceptions if e.date is None or period_contains(period, e.date)
    ]
    member.special_days = {
        d: special_day
        for d, special_day in member.special_days.items()
        if period_contains(period, d)
    }
    return member
