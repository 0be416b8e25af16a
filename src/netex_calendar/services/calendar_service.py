"""End-to-end NeTEx to GTFS calendar conversion service."""

import logging
import time
from collections import Counter
from datetime import date, timedelta
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from netex_calendar.data.config import (
    CalendarServiceConfig,
    GeneratorOptimizations,
    get_service_config,
)
from netex_calendar.models.calendar import (
    CalendarDocument,
    Holiday,
    OperatingPeriod,
    ServicePattern,
)
from netex_calendar.models.netex import ServiceCalendarFrame
from netex_calendar.models.responses import ConversionResult, ConversionStats, ValidationIssue
from netex_calendar.services.calendar_generator import GTFSCalendarGenerator
from netex_calendar.services.calendar_manager import (
    CalendarManager,
    PatternNotFoundError,
    SeasonExceptionHook,
    consolidate_calendar_dates,
)
from netex_calendar.services.calendar_validator import CalendarValidator, ValidationLevel
from netex_calendar.services.netex_processor import NeTExCalendarProcessor

logger = logging.getLogger(__name__)


class CalendarService:
    """Wires the manager, NeTEx processor, validator and generator together."""

    def __init__(
        self,
        config: CalendarServiceConfig | None = None,
        season_exception_hook: SeasonExceptionHook | None = None,
        optimizations: GeneratorOptimizations | None = None,
    ):
        self.config = config if config is not None else get_service_config()
        self.manager = CalendarManager(self.config.calendar_config(), season_exception_hook)
        self.validator = CalendarValidator(self.config.validation_level)
        self.processor = NeTExCalendarProcessor(self.manager, self.validator)
        self.generator = GTFSCalendarGenerator(self.manager, optimizations)
        self._last_result: ConversionResult | None = None

    def convert(self, frame: ServiceCalendarFrame | None = None) -> ConversionResult:
        """Run the conversion pipeline over everything registered.

        Stages: NeTEx processing (when a frame is given), validation (Standard
        level and above), GTFS generation, then the optional calendar-date
        deduplication and calendar consolidation. Validation issues are
        reported in the result and never stop generation.

        Args:
            frame: Optional NeTEx frame to process before generating.

        Returns:
            ConversionResult with rows, registered entities, issues and stats.

        Raises:
            NeTExReferenceError: If the frame has dangling references.
            PatternProcessingError: If a pattern cannot produce calendar rows.
        """
        started = time.perf_counter()
        timings: dict[str, float] = {}

        stage_start = time.perf_counter()
        if frame is not None:
            self.processor.process_frame(frame)
        timings["netex_processing"] = time.perf_counter() - stage_start

        stage_start = time.perf_counter()
        issues: list[ValidationIssue] = []
        if self.config.validation_level >= ValidationLevel.STANDARD:
            issues = self._validate_all_service_patterns()
        timings["validation"] = time.perf_counter() - stage_start

        stage_start = time.perf_counter()
        calendars, calendar_dates = self.generator.generate_gtfs_calendars()
        timings["gtfs_generation"] = time.perf_counter() - stage_start

        stage_start = time.perf_counter()
        if self.config.optimize_calendar_dates:
            calendar_dates = consolidate_calendar_dates(calendar_dates)
        if self.config.consolidate_similar_patterns:
            calendars = self.generator.merge_compatible_calendars(calendars)
            calendars.sort(key=lambda c: c.service_id)
        timings["optimization"] = time.perf_counter() - stage_start

        result = ConversionResult(
            calendars=calendars,
            calendar_dates=calendar_dates,
            service_patterns=self.manager.service_patterns,
            operating_periods=self.manager.operating_periods,
            validation_issues=issues,
            processing_duration=time.perf_counter() - started,
        )
        result.conversion_stats = self._calculate_stats(result, timings)
        self._last_result = result

        logger.info(
            f"Converted {len(result.service_patterns)} patterns into {len(calendars)} calendars "
            f"and {len(calendar_dates)} calendar dates ({len(issues)} validation issues)"
        )
        return result

    def load_document(self, document: CalendarDocument) -> None:
        """Register the entities of a serialized calendar document."""
        for pattern in document.service_patterns:
            self.manager.add_service_pattern(pattern)
        for period in document.operating_periods:
            self.manager.add_operating_period(period)
        for seasonal in document.seasonal_patterns:
            self.manager.add_seasonal_pattern(seasonal)

    def add_custom_service_pattern(self, pattern: ServicePattern) -> None:
        """Register a pattern, validating it first at Standard level and above.

        Raises:
            ValueError: If validation reports any issue.
        """
        if self.config.validation_level >= ValidationLevel.STANDARD:
            issues = self.validator.validate_service_pattern(pattern)
            if issues:
                raise ValueError(f"Service pattern validation failed: {'; '.join(issues)}")
        self.manager.add_service_pattern(pattern)

    def add_custom_operating_period(self, period: OperatingPeriod) -> None:
        """Register an operating period, validating it first at Standard level and above.

        Raises:
            ValueError: If validation reports any issue.
        """
        if self.config.validation_level >= ValidationLevel.STANDARD:
            issues = self.validator.validate_operating_period(period)
            if issues:
                raise ValueError(f"Operating period validation failed: {'; '.join(issues)}")
        self.manager.add_operating_period(period)

    def get_service_dates(
        self, pattern_id: str, start: date, end: date | None = None
    ) -> list[date]:
        """Dates in [start, end] on which a registered pattern operates.

        Without ``end``, the range covers ``default_operating_days`` days from
        ``start``.

        Raises:
            PatternNotFoundError: If the pattern id is not registered.
        """
        if end is None:
            end = self.default_end_date(start)
        return self.manager.get_effective_dates(pattern_id, start, end)

    def default_end_date(self, start: date) -> date:
        """Last day of the default service horizon starting at ``start``."""
        return start + timedelta(days=self.config.default_operating_days - 1)

    def is_service_operating(self, pattern_id: str, d: date) -> bool:
        """Check a registered pattern on a date.

        Raises:
            PatternNotFoundError: If the pattern id is not registered.
        """
        pattern = self.manager.get_service_pattern(pattern_id)
        if pattern is None:
            raise PatternNotFoundError(pattern_id)
        return self.manager.is_service_operating(pattern, d)

    def get_holidays(self, year: int) -> list[Holiday]:
        return self.manager.holiday_detector.get_holidays(year)

    def validate_configuration(self) -> list[ValidationIssue]:
        """Report configuration problems as issues instead of raising."""
        issues: list[ValidationIssue] = []
        level = ValidationLevel.STANDARD.name.title()

        try:
            ZoneInfo(self.config.timezone_name)
        except (ZoneInfoNotFoundError, ValueError):
            issues.append(
                ValidationIssue(
                    level=level,
                    code="INVALID_TIMEZONE",
                    message=f"Invalid timezone: {self.config.timezone_name}",
                    entity="Configuration",
                    suggestion="Use an IANA timezone name such as Europe/Oslo",
                )
            )

        country = self.config.holiday_country_code
        if len(country) != 2 or not country.isalpha():
            issues.append(
                ValidationIssue(
                    level=level,
                    code="INVALID_COUNTRY_CODE",
                    message=f"Invalid country code: {country}",
                    entity="Configuration",
                    suggestion="Use an ISO 3166-1 alpha-2 country code",
                )
            )

        if self.config.max_service_exceptions < 0:
            issues.append(
                ValidationIssue(
                    level=level,
                    code="INVALID_MAX_EXCEPTIONS",
                    message="Max service exceptions cannot be negative",
                    entity="Configuration",
                )
            )

        if self.config.default_operating_days < 1:
            issues.append(
                ValidationIssue(
                    level=level,
                    code="INVALID_DEFAULT_OPERATING_DAYS",
                    message="Default operating days must be positive",
                    entity="Configuration",
                )
            )

        return issues

    def get_conversion_summary(self) -> dict:
        """Counts and switches describing the service's current state."""
        last = self._last_result
        return {
            "service_patterns_count": len(self.manager.service_patterns),
            "operating_periods_count": len(self.manager.operating_periods),
            "calendars_count": len(last.calendars) if last else 0,
            "calendar_dates_count": len(last.calendar_dates) if last else 0,
            "holiday_detection_enabled": self.config.enable_holiday_detection,
            "seasonal_patterns_enabled": self.config.enable_seasonal_patterns,
            "school_calendar_enabled": self.config.enable_school_calendar,
            "validation_level": self.config.validation_level.name.title(),
        }

    def _validate_all_service_patterns(self) -> list[ValidationIssue]:
        level = self.config.validation_level.name.title()
        issues: list[ValidationIssue] = []
        for pattern in self.manager.service_patterns:
            for message in self.validator.validate_service_pattern(pattern):
                issues.append(
                    ValidationIssue(
                        level=level,
                        code="SERVICE_PATTERN_INVALID",
                        message=message,
                        entity="ServicePattern",
                        entity_id=pattern.id,
                    )
                )
        return issues

    def _calculate_stats(
        self, result: ConversionResult, timings: dict[str, float]
    ) -> ConversionStats:
        patterns_by_type: Counter[str] = Counter()
        total_exceptions = 0
        seasonal_variations = 0
        for pattern in result.service_patterns:
            total_exceptions += len(pattern.exceptions)
            seasonal_variations += len(pattern.seasonal_variations)
            patterns_by_type[pattern.type.value] += 1

        holidays_detected = 0
        if self.config.enable_holiday_detection:
            holidays_detected = len(self.get_holidays(self.manager.today().year))

        return ConversionStats(
            total_service_patterns=len(result.service_patterns),
            total_operating_periods=len(result.operating_periods),
            total_calendars=len(result.calendars),
            total_calendar_dates=len(result.calendar_dates),
            total_exceptions=total_exceptions,
            holidays_detected=holidays_detected,
            seasonal_variations=seasonal_variations,
            patterns_by_type=dict(patterns_by_type),
            processing_time_by_stage=timings,
        )
