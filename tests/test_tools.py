"""Tests for the MCP calendar and holiday tools."""

from datetime import date
from pathlib import Path

import pytest

from netex_calendar.data.calendar_store import GTFSCalendarStore
from netex_calendar.models.calendar import (
    WEEKDAYS,
    WEEKEND,
    CalendarDocument,
    ExceptionType,
    OperatingPeriod,
    ServiceException,
    ServicePattern,
    ValidityPeriod,
)
from netex_calendar.services.calendar_manager import PatternNotFoundError
from netex_calendar.tools.calendar_tools import (
    convert_calendar,
    get_active_services,
    get_service_dates,
    validate_calendar,
)
from netex_calendar.tools.holiday_tools import check_holiday, get_holidays


def make_pattern(pattern_id: str, days=WEEKDAYS, **kwargs) -> ServicePattern:
    fields = {
        "id": pattern_id,
        "name": pattern_id,
        "validity_period": ValidityPeriod(start_date=date(2024, 1, 1), end_date=date(2024, 12, 31)),
        "operating_days": set(days),
    }
    fields.update(kwargs)
    return ServicePattern(**fields)


@pytest.fixture
def document() -> CalendarDocument:
    weekday = make_pattern(
        "WD",
        exceptions=[
            ServiceException(
                date=date(2024, 5, 17), type=ExceptionType.REMOVED, reason="Constitution Day"
            )
        ],
    )
    weekend = make_pattern("WE", WEEKEND)
    return CalendarDocument(
        service_patterns=[weekday, weekend],
        operating_periods=[
            OperatingPeriod(
                id="Y2024",
                name="2024",
                start_date=date(2024, 1, 1),
                end_date=date(2024, 12, 31),
                base_pattern=weekday,
                overrides={"weekend": weekend},
            )
        ],
    )


class TestHolidayTools:
    """Tests for get_holidays and check_holiday."""

    def test_get_holidays_sorted(self) -> None:
        """Test get holidays sorted."""
        response = get_holidays(2024, "no")

        assert response.country_code == "NO"
        assert response.year == 2024
        assert response.count == 12
        dates = [h.date for h in response.holidays]
        assert dates == sorted(dates)
        assert response.holidays[0].name == "New Year's Day"
        assert response.holidays[0].weekday == "Monday"

    def test_check_holiday(self) -> None:
        """Test check holiday."""
        response = check_holiday("2024-05-17")

        assert response.is_holiday is True
        assert response.holiday is not None
        assert response.holiday.name == "Constitution Day"
        assert response.holiday.type == "Public"

    def test_check_non_holiday(self) -> None:
        """Test check non holiday."""
        response = check_holiday("2024-05-16", "SE")
        assert response.is_holiday is False
        assert response.holiday is None
        assert response.country_code == "SE"

    def test_check_invalid_date(self) -> None:
        """Test check invalid date."""
        with pytest.raises(ValueError):
            check_holiday("17.05.2024")


class TestConvertCalendar:
    def test_convert(self, document: CalendarDocument) -> None:
        """Test convert."""
        result = convert_calendar(document)

        service_ids = [c.service_id for c in result.calendars]
        # WD and Y2024_WD share flags and dates; the lowest id is kept
        assert service_ids == ["WD", "WE"]
        assert ("WD", "20240517", 2) in [
            (cd.service_id, cd.date, cd.exception_type) for cd in result.calendar_dates
        ]
        assert result.validation_issues == []
        assert result.conversion_stats.total_operating_periods == 1

    def test_invalid_level(self, document: CalendarDocument) -> None:
        """Test invalid level."""
        with pytest.raises(ValueError):
            convert_calendar(document, "paranoid")


class TestValidateCalendar:
    def test_valid_document(self, document: CalendarDocument) -> None:
        """Test valid document."""
        response = validate_calendar(document, "detailed")
        assert response.level == "Detailed"
        assert response.issues == []
        assert response.gtfs_issues == []
        assert response.valid is True

    def test_orphan_only_reported_at_detailed(self, document: CalendarDocument) -> None:
        """Test orphan only reported at detailed."""
        document.service_patterns.append(make_pattern("ORPHAN"))

        assert validate_calendar(document, "standard").valid is True

        response = validate_calendar(document, "detailed")
        assert response.issues == [
            "Service pattern ORPHAN is not referenced by any operating period"
        ]
        assert response.valid is False

    def test_gtfs_issues_at_any_level(self) -> None:
        """Test GTFS issues at any level."""
        document = CalendarDocument(
            service_patterns=[
                make_pattern(
                    "MOD",
                    exceptions=[
                        ServiceException(
                            date=date(2024, 3, 1), type=ExceptionType.MODIFIED, reason="Works"
                        )
                    ],
                )
            ]
        )

        response = validate_calendar(document, "minimal")

        assert response.issues == []
        assert response.gtfs_issues == ["Pattern MOD has invalid exception type Modified"]
        assert response.valid is False


class TestGetServiceDates:
    def test_service_dates(self, document: CalendarDocument) -> None:
        """Test service dates."""
        response = get_service_dates(document, "WD", "2024-05-13", "2024-05-19")

        assert response.dates == [
            "2024-05-13",
            "2024-05-14",
            "2024-05-15",
            "2024-05-16",
        ]
        assert response.count == 4

    def test_end_date_defaults_to_operating_horizon(self, document: CalendarDocument) -> None:
        """Test a missing end date covers default_operating_days days."""
        response = get_service_dates(document, "WD", "2024-12-30")

        assert response.end_date == "2025-12-29"
        assert response.dates == ["2024-12-30", "2024-12-31"]

    def test_reversed_range(self, document: CalendarDocument) -> None:
        """Test reversed range."""
        with pytest.raises(ValueError, match="end_date"):
            get_service_dates(document, "WD", "2024-05-19", "2024-05-13")

    def test_range_too_long(self, document: CalendarDocument) -> None:
        """Test range too long."""
        with pytest.raises(ValueError, match="limited"):
            get_service_dates(document, "WD", "2000-01-01", "2024-01-01")

    def test_unknown_pattern(self, document: CalendarDocument) -> None:
        """Test unknown pattern."""
        with pytest.raises(PatternNotFoundError):
            get_service_dates(document, "NOPE", "2024-01-01", "2024-01-31")


class TestGetActiveServices:
    """Tests for the get_active_services tool."""

    async def test_reads_configured_database(
        self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        """Test the tool resolves dates against NETEX_CALENDAR_DB_PATH."""
        db_path = tmp_path / "calendar.db"
        result = convert_calendar(CalendarDocument(service_patterns=[make_pattern("WD")]))
        await GTFSCalendarStore(db_path).save(result.calendars, result.calendar_dates)
        monkeypatch.setenv("NETEX_CALENDAR_DB_PATH", str(db_path))

        weekday = await get_active_services("2024-05-16")
        weekend = await get_active_services("2024-05-18")

        assert weekday.service_ids == ["WD"]
        assert weekday.weekday == "Thursday"
        assert weekend.count == 0

    async def test_invalid_date(self) -> None:
        """Test a malformed date is rejected before opening the database."""
        with pytest.raises(ValueError):
            await get_active_services("16.05.2024")
