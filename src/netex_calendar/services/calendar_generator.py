"""Optimizing GTFS calendar generator.

Second resolution path over a CalendarManager's patterns. Regular patterns
become weekly calendar rows; short or exception-heavy patterns are expanded
into one ADDED calendar date per operating day instead.
"""

import logging
from collections import Counter
from datetime import date, timedelta

from netex_calendar.data.config import GeneratorOptimizations
from netex_calendar.models.calendar import OperatingPeriod, ServicePattern
from netex_calendar.models.gtfs import (
    SERVICE_ADDED,
    SERVICE_REMOVED,
    Calendar,
    CalendarDate,
    format_gtfs_date,
    parse_gtfs_date,
)
from netex_calendar.models.responses import CalendarSummary
from netex_calendar.services.calendar_manager import (
    CalendarManager,
    PatternProcessingError,
    consolidate_calendar_dates,
    is_service_operating,
    iter_dates,
    pattern_exception_dates,
    qualified_service_id,
)

logger = logging.getLogger(__name__)

# Patterns must span more than this to be worth a weekly calendar row
MIN_CALENDAR_SPAN = timedelta(days=30)


class GTFSCalendarGenerator:
    """Generates calendar and calendar_dates rows with optional optimizations."""

    def __init__(
        self,
        manager: CalendarManager,
        optimizations: GeneratorOptimizations | None = None,
    ):
        self.manager = manager
        self.optimizations = optimizations or GeneratorOptimizations()

    def set_optimizations(self, optimizations: GeneratorOptimizations) -> None:
        self.optimizations = optimizations

    def generate_gtfs_calendars(self) -> tuple[list[Calendar], list[CalendarDate]]:
        """Generate calendars and calendar dates for all registered entities.

        Returns:
            Tuple of (calendars sorted by service id, calendar dates with one
            row per service and date, sorted by service id then date).

        Raises:
            PatternProcessingError: If a pattern has no complete validity period.
        """
        calendars: list[Calendar] = []
        calendar_dates: list[CalendarDate] = []

        for pattern in self.manager.service_patterns:
            calendar, dates = self.process_service_pattern(pattern)
            if calendar is not None:
                calendars.append(calendar)
            calendar_dates.extend(dates)

        for period in self.manager.operating_periods:
            period_calendars, period_dates = self.process_operating_period(period)
            calendars.extend(period_calendars)
            calendar_dates.extend(period_dates)

        if self.optimizations.merge_compatible_calendars:
            calendars = self.merge_compatible_calendars(calendars)
        if self.optimizations.minimize_calendar_dates:
            calendar_dates = self.minimize_calendar_dates(calendar_dates, calendars)

        calendars.sort(key=lambda c: c.service_id)
        calendar_dates = consolidate_calendar_dates(calendar_dates)

        logger.debug(
            f"Generator produced {len(calendars)} calendars and {len(calendar_dates)} dates"
        )
        return calendars, calendar_dates

    def process_service_pattern(
        self, pattern: ServicePattern, service_id: str | None = None
    ) -> tuple[Calendar | None, list[CalendarDate]]:
        """Convert one pattern, choosing between a weekly row and expanded dates.

        Raises:
            PatternProcessingError: If the pattern has no complete validity period.
        """
        service_id = service_id or pattern.id
        validity = pattern.validity_period
        if validity is None or validity.start_date is None or validity.end_date is None:
            raise PatternProcessingError(pattern.id, "no base calendar (validity period)")

        calendar: Calendar | None = None
        if self.should_use_calendar(pattern):
            calendar = Calendar.from_weekdays(
                service_id, pattern.operating_days, validity.start_date, validity.end_date
            )

        calendar_dates = self.resolve_exception_dates(pattern, service_id)

        if calendar is None:
            # Expanded dates already cover every operating day
            calendar_dates = [cd for cd in calendar_dates if cd.exception_type == SERVICE_REMOVED]
            for d in self.generate_service_dates(pattern):
                calendar_dates.append(
                    CalendarDate(
                        service_id=service_id,
                        date=format_gtfs_date(d),
                        exception_type=SERVICE_ADDED,
                    )
                )

        return calendar, calendar_dates

    def resolve_exception_dates(
        self, pattern: ServicePattern, service_id: str
    ) -> list[CalendarDate]:
        """One calendar date per exception or special day date inside the validity.

        Each date is typed by how it resolves, so an exception and a special
        day on the same date never produce conflicting rows.
        """
        validity = pattern.validity_period
        if validity is None:
            return []

        exception_dates = {cd.date for cd in pattern_exception_dates(pattern, service_id)}
        calendar_dates: list[CalendarDate] = []
        for gtfs_date in sorted(exception_dates):
            d = parse_gtfs_date(gtfs_date)
            if not validity.contains(d):
                continue
            operating = is_service_operating(pattern, d)
            calendar_dates.append(
                CalendarDate(
                    service_id=service_id,
                    date=gtfs_date,
                    exception_type=SERVICE_ADDED if operating else SERVICE_REMOVED,
                )
            )
        return calendar_dates

    def process_operating_period(
        self, period: OperatingPeriod
    ) -> tuple[list[Calendar], list[CalendarDate]]:
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
            if calendar is not None:
                calendars.append(calendar)
            calendar_dates.extend(dates)

        return calendars, calendar_dates

    def should_use_calendar(self, pattern: ServicePattern) -> bool:
        """Decide whether a pattern is represented by a weekly calendar row.

        Requires at least one operating day, no more exceptions and special
        days than the per-service cap, and a validity span over 30 days. With
        ``prefer_calendar_over_dates`` off, the weekly row must also need fewer
        rows than listing every operating date.
        """
        if not self.optimizations.use_calendar_for_regular_service:
            return False

        validity = pattern.validity_period
        if validity is None or validity.start_date is None or validity.end_date is None:
            return False

        exception_count = len(pattern.exceptions) + len(pattern.special_days)
        if not (
            pattern.operating_days
            and exception_count <= self.optimizations.max_calendar_dates_per_service
            and validity.end_date - validity.start_date > MIN_CALENDAR_SPAN
        ):
            return False
        if self.optimizations.prefer_calendar_over_dates:
            return True
        return len(self.generate_service_dates(pattern)) > 1 + exception_count

    def generate_service_dates(self, pattern: ServicePattern) -> list[date]:
        """Every date in the pattern's validity period on which it operates."""
        validity = pattern.validity_period
        if validity is None or validity.start_date is None or validity.end_date is None:
            return []
        return [
            d
            for d in iter_dates(validity.start_date, validity.end_date)
            if is_service_operating(pattern, d)
        ]

    def merge_compatible_calendars(self, calendars: list[Calendar]) -> list[Calendar]:
        """Keep one calendar per distinct weekday flags + date range.

        The representative is the lowest service id of each group. Services
        referring to dropped ids are not rewritten.
        """
        groups: dict[tuple, Calendar] = {}
        for calendar in sorted(calendars, key=lambda c: c.service_id):
            key = (*calendar.weekday_flags(), calendar.start_date, calendar.end_date)
            groups.setdefault(key, calendar)

        merged = list(groups.values())
        if len(merged) < len(calendars):
            logger.debug(f"Merged {len(calendars)} calendars into {len(merged)}")
        return merged

    def minimize_calendar_dates(
        self, calendar_dates: list[CalendarDate], calendars: list[Calendar]
    ) -> list[CalendarDate]:
        """Extension point for dropping dates implied by a calendar row.

        Returns the dates unchanged; no minimization heuristic is applied.
        """
        return list(calendar_dates)

    def generate_calendar_summary(
        self, calendars: list[Calendar], calendar_dates: list[CalendarDate]
    ) -> CalendarSummary:
        """Tally calendars by weekly shape and calendar dates by exception type."""
        services_by_type: Counter[str] = Counter()
        for calendar in calendars:
            services_by_type[classify_calendar(calendar)] += 1

        exceptions_by_type: Counter[str] = Counter()
        for calendar_date in calendar_dates:
            if calendar_date.exception_type == SERVICE_ADDED:
                exceptions_by_type["added"] += 1
            elif calendar_date.exception_type == SERVICE_REMOVED:
                exceptions_by_type["removed"] += 1

        return CalendarSummary(
            total_calendars=len(calendars),
            total_calendar_dates=len(calendar_dates),
            services_by_type=dict(services_by_type),
            exceptions_by_type=dict(exceptions_by_type),
        )


def classify_calendar(calendar: Calendar) -> str:
    """Classify a calendar row as weekday, weekend, daily or other."""
    flags = calendar.weekday_flags()
    operating_days = sum(flags)
    weekend = flags[5] == 1 and flags[6] == 1

    if operating_days == 5 and flags[5] == 0 and flags[6] == 0:
        return "weekday"
    if operating_days == 2 and weekend:
        return "weekend"
    if operating_days == 7:
        return "daily"
    return "other"
