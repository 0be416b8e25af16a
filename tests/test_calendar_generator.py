"""Tests for the optimizing GTFS calendar generator."""

from datetime import date

import pytest

from netex_calendar.data.config import CalendarConfig, GeneratorOptimizations
from netex_calendar.models.calendar import (
    ALL_DAYS,
    WEEKDAYS,
    WEEKEND,
    ExceptionType,
    OperatingPeriod,
    ServiceException,
    ServiceMode,
    ServicePattern,
    SpecialDay,
    ValidityPeriod,
    Weekday,
)
from netex_calendar.models.gtfs import Calendar, CalendarDate
from netex_calendar.services.calendar_generator import GTFSCalendarGenerator, classify_calendar
from netex_calendar.services.calendar_manager import CalendarManager, PatternProcessingError


def make_pattern(
    pattern_id: str,
    days: frozenset[Weekday] = WEEKDAYS,
    start: date = date(2024, 1, 1),
    end: date = date(2024, 12, 31),
    **kwargs,
) -> ServicePattern:
    return ServicePattern(
        id=pattern_id,
        name=pattern_id,
        validity_period=ValidityPeriod(start_date=start, end_date=end),
        operating_days=set(days),
        **kwargs,
    )


def make_generator(*patterns: ServicePattern, **optimizations) -> GTFSCalendarGenerator:
    manager = CalendarManager(CalendarConfig())
    for pattern in patterns:
        manager.add_service_pattern(pattern)
    return GTFSCalendarGenerator(manager, GeneratorOptimizations(**optimizations))


class TestShouldUseCalendar:
    def test_regular_long_pattern_uses_calendar(self) -> None:
        """Test regular long pattern uses calendar."""
        generator = make_generator()
        assert generator.should_use_calendar(make_pattern("WD")) is True

    def test_thirty_day_span_is_too_short(self) -> None:
        """Test thirty day span is too short."""
        generator = make_generator()
        pattern = make_pattern("WD", end=date(2024, 1, 31))
        assert generator.should_use_calendar(pattern) is False

    def test_thirty_one_day_span_is_long_enough(self) -> None:
        """Test thirty one day span is long enough."""
        generator = make_generator()
        pattern = make_pattern("WD", end=date(2024, 2, 1))
        assert generator.should_use_calendar(pattern) is True

    def test_no_operating_days(self) -> None:
        """Test no operating days."""
        generator = make_generator()
        assert generator.should_use_calendar(make_pattern("X", days=frozenset())) is False

    def test_too_many_exceptions(self) -> None:
        """Test too many exceptions."""
        generator = make_generator(max_calendar_dates_per_service=1)
        pattern = make_pattern(
            "WD",
            exceptions=[
                ServiceException(date=date(2024, 1, 3), type=ExceptionType.REMOVED),
                ServiceException(date=date(2024, 1, 4), type=ExceptionType.REMOVED),
            ],
        )
        assert generator.should_use_calendar(pattern) is False

    def test_disabled_by_option(self) -> None:
        """Test disabled by option."""
        generator = make_generator(use_calendar_for_regular_service=False)
        assert generator.should_use_calendar(make_pattern("WD")) is False

    def test_dates_preferred_when_fewer_rows(self) -> None:
        """Test a sparse pattern is expanded once calendar rows are not preferred."""
        pattern = make_pattern("MON", days=frozenset({Weekday.MONDAY}), end=date(2024, 2, 15))
        generator = make_generator(prefer_calendar_over_dates=False)

        assert generator.should_use_calendar(pattern) is True
        pattern.exceptions = [
            ServiceException(date=d, type=ExceptionType.REMOVED)
            for d in (date(2024, 1, 8), date(2024, 1, 15), date(2024, 1, 22))
        ]
        assert generator.should_use_calendar(pattern) is False
        assert make_generator().should_use_calendar(pattern) is True


class TestGenerateGTFSCalendars:
    """Tests for GTFSCalendarGenerator.generate_gtfs_calendars."""

    def test_regular_pattern_emits_calendar_and_exceptions(self) -> None:
        """Test regular pattern emits calendar and exceptions."""
        pattern = make_pattern(
            "WD",
            exceptions=[ServiceException(date=date(2024, 5, 17), type=ExceptionType.REMOVED)],
        )
        calendars, calendar_dates = make_generator(pattern).generate_gtfs_calendars()

        assert [c.service_id for c in calendars] == ["WD"]
        assert calendars[0].weekday_flags() == (1, 1, 1, 1, 1, 0, 0)
        assert [(cd.date, cd.exception_type) for cd in calendar_dates] == [("20240517", 2)]

    def test_short_pattern_expanded_to_dates(self) -> None:
        """Test short pattern expanded to dates."""
        pattern = make_pattern("SHORT", end=date(2024, 1, 14))
        calendars, calendar_dates = make_generator(pattern).generate_gtfs_calendars()

        assert calendars == []
        assert [cd.date for cd in calendar_dates] == [
            "20240101",
            "20240102",
            "20240103",
            "20240104",
            "20240105",
            "20240108",
            "20240109",
            "20240110",
            "20240111",
            "20240112",
        ]
        assert all(cd.exception_type == 1 for cd in calendar_dates)

    def test_expanded_dates_respect_exceptions(self) -> None:
        """Test expanded dates respect exceptions."""
        pattern = make_pattern(
            "SHORT",
            end=date(2024, 1, 7),
            exceptions=[ServiceException(date=date(2024, 1, 3), type=ExceptionType.REMOVED)],
        )
        _, calendar_dates = make_generator(pattern).generate_gtfs_calendars()

        added = [cd.date for cd in calendar_dates if cd.exception_type == 1]
        removed = [cd.date for cd in calendar_dates if cd.exception_type == 2]
        assert added == ["20240101", "20240102", "20240104", "20240105"]
        assert removed == ["20240103"]

    def test_one_row_per_date_when_expanded(self) -> None:
        """Test an exception and a special day on one date yield a single row."""
        pattern = make_pattern(
            "S",
            end=date(2024, 1, 10),
            exceptions=[ServiceException(date=date(2024, 1, 6), type=ExceptionType.ADDED)],
        )
        pattern.add_special_day(
            SpecialDay(date=date(2024, 1, 6), name="Strike", service_mode=ServiceMode.SUSPENDED)
        )

        _, calendar_dates = make_generator(pattern).generate_gtfs_calendars()

        keys = [(cd.service_id, cd.date) for cd in calendar_dates]
        assert len(keys) == len(set(keys))
        assert ("S", "20240106", 1) in [
            (cd.service_id, cd.date, cd.exception_type) for cd in calendar_dates
        ]

    def test_exception_rows_follow_resolution(self) -> None:
        """Test a weekly calendar gets one row per exception date, typed by resolution."""
        pattern = make_pattern(
            "WD",
            exceptions=[
                ServiceException(date=date(2024, 3, 1), type=ExceptionType.REMOVED),
                ServiceException(date=date(2024, 3, 1), type=ExceptionType.ADDED),
            ],
        )
        pattern.add_special_day(
            SpecialDay(date=date(2024, 3, 2), name="Fair", service_mode=ServiceMode.NORMAL)
        )

        calendars, calendar_dates = make_generator(pattern).generate_gtfs_calendars()

        assert [c.service_id for c in calendars] == ["WD"]
        assert [(cd.date, cd.exception_type) for cd in calendar_dates] == [
            ("20240301", 2),
            ("20240302", 1),
        ]

    def test_missing_validity_raises(self) -> None:
        """Test missing validity raises."""
        generator = make_generator(ServicePattern(id="BROKEN", operating_days=set(WEEKDAYS)))
        with pytest.raises(PatternProcessingError) as exc_info:
            generator.generate_gtfs_calendars()
        assert exc_info.value.pattern_id == "BROKEN"

    def test_merge_keeps_lowest_service_id(self) -> None:
        """Test merge keeps lowest service ID."""
        generator = make_generator(make_pattern("B"), make_pattern("A"))
        calendars, _ = generator.generate_gtfs_calendars()
        assert [c.service_id for c in calendars] == ["A"]

    def test_merge_disabled_keeps_all(self) -> None:
        """Test merge disabled keeps all."""
        generator = make_generator(
            make_pattern("B"), make_pattern("A"), merge_compatible_calendars=False
        )
        calendars, _ = generator.generate_gtfs_calendars()
        assert [c.service_id for c in calendars] == ["A", "B"]

    def test_different_ranges_not_merged(self) -> None:
        """Test different ranges not merged."""
        generator = make_generator(make_pattern("A"), make_pattern("B", end=date(2024, 6, 30)))
        calendars, _ = generator.generate_gtfs_calendars()
        assert len(calendars) == 2

    def test_operating_period_ids_are_qualified(self) -> None:
        """Test operating period IDs are qualified."""
        manager = CalendarManager(CalendarConfig())
        manager.add_operating_period(
            OperatingPeriod(
                id="P1",
                base_pattern=make_pattern("BASE"),
                overrides={"weekend": make_pattern("WE", days=WEEKEND)},
            )
        )
        calendars, _ = GTFSCalendarGenerator(manager).generate_gtfs_calendars()
        assert [c.service_id for c in calendars] == ["P1_BASE", "P1_weekend"]

    def test_output_sorted(self) -> None:
        """Test output sorted."""
        generator = make_generator(
            make_pattern("Z", end=date(2024, 1, 3)),
            make_pattern("A", end=date(2024, 1, 2)),
        )
        _, calendar_dates = generator.generate_gtfs_calendars()
        keys = [(cd.service_id, cd.date) for cd in calendar_dates]
        assert keys == sorted(keys)
        assert keys[0] == ("A", "20240101")

    def test_minimize_passes_dates_through(self) -> None:
        """Test minimize passes dates through."""
        generator = make_generator()
        dates = [CalendarDate(service_id="A", date="20240101", exception_type=1)]
        assert generator.minimize_calendar_dates(dates, []) == dates


class TestCalendarSummary:
    def test_classifies_calendars_and_exceptions(self) -> None:
        """Test classifies calendars and exceptions."""
        generator = make_generator()
        calendars = [
            Calendar.from_weekdays("WD", set(WEEKDAYS), date(2024, 1, 1), date(2024, 12, 31)),
            Calendar.from_weekdays("WE", set(WEEKEND), date(2024, 1, 1), date(2024, 12, 31)),
            Calendar.from_weekdays("ALL", set(ALL_DAYS), date(2024, 1, 1), date(2024, 12, 31)),
            Calendar.from_weekdays("MON", {Weekday.MONDAY}, date(2024, 1, 1), date(2024, 12, 31)),
        ]
        calendar_dates = [
            CalendarDate(service_id="WD", date="20240101", exception_type=2),
            CalendarDate(service_id="WD", date="20240106", exception_type=1),
            CalendarDate(service_id="WE", date="20240107", exception_type=2),
        ]

        summary = generator.generate_calendar_summary(calendars, calendar_dates)

        assert summary.model_dump() == {
            "total_calendars": 4,
            "total_calendar_dates": 3,
            "services_by_type": {"weekday": 1, "weekend": 1, "daily": 1, "other": 1},
            "exceptions_by_type": {"removed": 2, "added": 1},
        }

    def test_classify_calendar_other_for_six_days(self) -> None:
        """Test classify calendar other for six days."""
        calendar = Calendar.from_weekdays(
            "X", set(ALL_DAYS - {Weekday.SUNDAY}), date(2024, 1, 1), date(2024, 12, 31)
        )
        assert classify_calendar(calendar) == "other"
