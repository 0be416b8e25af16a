"""Rule checks for service patterns, operating periods and seasonal patterns.

The validator never mutates its input and never raises for semantically
invalid entities; every check returns an ordered list of human-readable
issues. Each ValidationLevel runs every check of the levels below it.
"""

from collections.abc import Iterable, Mapping
from datetime import date, timedelta
from enum import IntEnum

from netex_calendar.models.calendar import (
    ExceptionType,
    OperatingPeriod,
    SeasonalPattern,
    SeasonalVariation,
    SeasonDefinition,
    SeasonTransition,
    ServiceException,
    ServicePattern,
    SpecialDay,
    Weekday,
)
from netex_calendar.models.gtfs import format_gtfs_date


class ValidationLevel(IntEnum):
    """How thorough validation is; higher levels include all lower checks."""

    MINIMAL = 0
    STANDARD = 1
    STRICT = 2
    DETAILED = 3

    @classmethod
    def from_name(cls, name: str) -> "ValidationLevel":
        """Look up a level by case-insensitive name.

        Raises:
            ValueError: If the name is not a known level.
        """
        try:
            return cls[name.strip().upper()]
        except KeyError as e:
            raise ValueError(f"Unknown validation level: {name}") from e


MAX_VALIDITY = timedelta(days=5 * 365)
MIN_VALIDITY = timedelta(days=1)
MAX_TRANSITION = timedelta(days=30)

# Highest legal day number for months shorter than 31 days (February allows leap years)
MONTH_DAY_CAPS = {2: 29, 4: 30, 6: 30, 9: 30, 11: 30}

MONTH_NAMES = [
    "",
    "January",
    "February",
    "March",
    "April",
    "May",
    "June",
    "July",
    "August",
    "September",
    "October",
    "November",
    "December",
]


class CalendarValidator:
    """Validates calendar entities at a configurable level of detail."""

    def __init__(self, level: ValidationLevel = ValidationLevel.STANDARD):
        self.level = level

    def set_validation_level(self, level: ValidationLevel) -> None:
        self.level = level

    def validate_service_pattern(self, pattern: ServicePattern | None) -> list[str]:
        """Validate a single service pattern.

        Args:
            pattern: Pattern to check. ``None`` is reported as an issue.

        Returns:
            Ordered list of issue descriptions (empty when valid).
        """
        if pattern is None:
            return ["Service pattern is missing"]

        issues: list[str] = []

        if not pattern.id:
            issues.append("Service pattern missing ID")
        if not pattern.name and self.level >= ValidationLevel.STANDARD:
            issues.append("Service pattern missing name")

        validity = pattern.validity_period
        if validity is None:
            issues.append("Service pattern missing validity period")
        else:
            if validity.start_date is None:
                issues.append("Service pattern validity period missing start date")
            if validity.end_date is None:
                issues.append("Service pattern validity period missing end date")
            if validity.start_date is not None and validity.end_date is not None:
                if validity.start_date > validity.end_date:
                    issues.append("Service pattern start date is after end date")
                if self.level >= ValidationLevel.STRICT:
                    duration = validity.end_date - validity.start_date
                    if duration > MAX_VALIDITY:
                        issues.append(
                            "Service pattern validity period is unusually long (>5 years)"
                        )
                    if duration < MIN_VALIDITY:
                        issues.append("Service pattern validity period is very short (<1 day)")

        if not pattern.operating_days and not pattern.exceptions:
            issues.append("Service pattern has no operating days or exceptions")

        if self.level >= ValidationLevel.STRICT:
            for day in sorted(pattern.operating_days & pattern.non_operating_days):
                issues.append(
                    f"Day {Weekday(day).name.title()} is both operating and non-operating"
                )

        issues.extend(self._validate_exceptions(pattern.exceptions))

        if self.level >= ValidationLevel.STANDARD:
            issues.extend(self._validate_seasonal_variations(pattern.seasonal_variations))

        if self.level >= ValidationLevel.DETAILED:
            issues.extend(self._validate_special_days(pattern.special_days))

        return issues

    def validate_operating_period(self, period: OperatingPeriod | None) -> list[str]:
        """Validate an operating period and the patterns it carries."""
        if period is None:
            return ["Operating period is missing"]

        issues: list[str] = []

        if not period.id:
            issues.append("Operating period missing ID")
        if not period.name and self.level >= ValidationLevel.STANDARD:
            issues.append("Operating period missing name")

        if period.start_date is None:
            issues.append("Operating period missing start date")
        if period.end_date is None:
            issues.append("Operating period missing end date")
        if (
            period.start_date is not None
            and period.end_date is not None
            and period.start_date > period.end_date
        ):
            issues.append("Operating period start date is after end date")

        if period.base_pattern is None and not period.overrides:
            issues.append("Operating period has no base pattern or overrides")

        if period.base_pattern is not None:
            for issue in self.validate_service_pattern(period.base_pattern):
                issues.append(f"Base pattern: {issue}")

        if self.level >= ValidationLevel.STANDARD:
            for override_id, override in period.overrides.items():
                for issue in self.validate_service_pattern(override):
                    issues.append(f"Override pattern {override_id}: {issue}")

        if self.level >= ValidationLevel.STRICT and period.priority < 0:
            issues.append("Operating period priority cannot be negative")

        return issues

    def validate_seasonal_pattern(self, pattern: SeasonalPattern | None) -> list[str]:
        """Validate a seasonal pattern's season definitions and transitions."""
        if pattern is None:
            return ["Seasonal pattern is missing"]

        issues: list[str] = []

        if not pattern.id:
            issues.append("Seasonal pattern missing ID")
        if not pattern.name and self.level >= ValidationLevel.STANDARD:
            issues.append("Seasonal pattern missing name")
        if not pattern.seasons:
            issues.append("Seasonal pattern has no seasons defined")

        for i, season in enumerate(pattern.seasons):
            for issue in self._validate_season_definition(season):
                issues.append(f"Season {i}: {issue}")

        if self.level >= ValidationLevel.STRICT:
            for i, transition in enumerate(pattern.transitions):
                for issue in self._validate_season_transition(transition):
                    issues.append(f"Transition {i}: {issue}")

        return issues

    def validate_calendar_consistency(
        self,
        patterns: Iterable[ServicePattern | None],
        periods: Iterable[OperatingPeriod | None],
    ) -> list[str]:
        """Check overlaps between periods and patterns no period references.

        Only runs at DETAILED level.
        """
        if self.level < ValidationLevel.DETAILED:
            return []

        issues: list[str] = []
        period_list = list(periods)
        present_periods: list[OperatingPeriod] = []
        for period in period_list:
            if period is None:
                issues.append("Operating period is missing")
            else:
                present_periods.append(period)

        for i, first in enumerate(present_periods):
            for second in present_periods[i + 1 :]:
                if periods_overlap(first, second):
                    issues.append(f"Operating periods {first.id} and {second.id} overlap")

        referenced: set[str] = set()
        for period in present_periods:
            if period.base_pattern is not None:
                referenced.add(period.base_pattern.id)
            for override in period.overrides.values():
                referenced.add(override.id)

        for pattern in patterns:
            if pattern is None:
                issues.append("Service pattern is missing")
            elif pattern.id not in referenced:
                issues.append(
                    f"Service pattern {pattern.id} is not referenced by any operating period"
                )

        return issues

    def validate_against_gtfs_rules(
        self, patterns: Iterable[ServicePattern | None]
    ) -> list[str]:
        """Check GTFS-specific constraints, independent of validation level."""
        issues: list[str] = []

        for pattern in patterns:
            if pattern is None:
                issues.append("Service pattern is missing")
                continue

            if not pattern.operating_days and not pattern.exceptions:
                issues.append(
                    f"Pattern {pattern.id} has no operating days or exceptions (violates GTFS)"
                )

            validity = pattern.validity_period
            if validity is not None:
                bounds = [validity.start_date, validity.end_date]
                if any(d is None or len(format_gtfs_date(d)) != 8 for d in bounds):
                    issues.append(f"Pattern {pattern.id} date format issue")

            for exception in pattern.exceptions:
                if exception.type not in (ExceptionType.ADDED, ExceptionType.REMOVED):
                    issues.append(
                        f"Pattern {pattern.id} has invalid exception type {exception.type.value}"
                    )

        return issues

    def _validate_exceptions(self, exceptions: list[ServiceException]) -> list[str]:
        issues: list[str] = []
        seen: dict[date, ServiceException] = {}

        for i, exception in enumerate(exceptions):
            if exception.date is None:
                issues.append(f"Exception {i} missing date")
                continue

            if self.level >= ValidationLevel.STANDARD:
                existing = seen.get(exception.date)
                if existing is not None:
                    date_str = exception.date.isoformat()
                    if existing.type != exception.type:
                        issues.append(f"Conflicting exceptions for date {date_str}")
                    else:
                        issues.append(f"Duplicate exception for date {date_str}")
                if not exception.reason:
                    issues.append(f"Exception {i} missing reason")
            seen[exception.date] = exception

            if (
                exception.alternative is not None
                and self.level >= ValidationLevel.DETAILED
                and not exception.alternative.service_id
            ):
                issues.append(f"Exception {i} alternative missing service ID")

        return issues

    def _validate_seasonal_variations(self, variations: list[SeasonalVariation]) -> list[str]:
        issues: list[str] = []

        for i, variation in enumerate(variations):
            if variation.start_date is None:
                issues.append(f"Seasonal variation {i} missing start date")
            if variation.end_date is None:
                issues.append(f"Seasonal variation {i} missing end date")
            if (
                variation.start_date is not None
                and variation.end_date is not None
                and variation.start_date > variation.end_date
            ):
                issues.append(f"Seasonal variation {i} start date after end date")
            if not variation.changes:
                issues.append(f"Seasonal variation {i} has no changes defined")

            for j, change in enumerate(variation.changes):
                if not change.description:
                    issues.append(f"Seasonal variation {i} change {j} missing description")

        return issues

    def _validate_special_days(self, special_days: Mapping[date, SpecialDay]) -> list[str]:
        issues: list[str] = []

        for key, special_day in special_days.items():
            key_str = key.isoformat() if isinstance(key, date) else str(key)
            if special_day.date is None:
                issues.append(f"Special day {key_str} has no date")
            elif special_day.date.isoformat() != key_str:
                issues.append(f"Special day {key_str} date mismatch")
            if not special_day.name:
                issues.append(f"Special day {key_str} missing name")

        return issues

    def _validate_season_definition(self, season: SeasonDefinition) -> list[str]:
        issues: list[str] = []

        if not 1 <= season.start_month <= 12:
            issues.append("Invalid start month")
        if not 1 <= season.end_month <= 12:
            issues.append("Invalid end month")
        if not 1 <= season.start_day <= 31:
            issues.append("Invalid start day")
        if not 1 <= season.end_day <= 31:
            issues.append("Invalid end day")

        if self.level >= ValidationLevel.STRICT:
            for label, month, day in (
                ("Start", season.start_month, season.start_day),
                ("End", season.end_month, season.end_day),
            ):
                cap = MONTH_DAY_CAPS.get(month)
                if cap is not None and day > cap:
                    issues.append(f"{label} day too high for {MONTH_NAMES[month]}")

        return issues

    def _validate_season_transition(self, transition: SeasonTransition) -> list[str]:
        issues: list[str] = []
        if transition.duration < timedelta(0):
            issues.append("Transition duration cannot be negative")
        if transition.duration > MAX_TRANSITION:
            issues.append("Transition duration is unusually long (>30 days)")
        return issues


def periods_overlap(first: OperatingPeriod, second: OperatingPeriod) -> bool:
    """Open-interval overlap test; periods with missing dates never overlap."""
    if None in (first.start_date, first.end_date, second.start_date, second.end_date):
        return False
    return first.start_date < second.end_date and second.start_date < first.end_date
