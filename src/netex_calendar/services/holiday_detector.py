"""Holiday detection for European transit calendars.

Computes fixed-date, Easter-relative and weekday-searched holidays per country,
merges caller-registered holidays and adds observed-date copies for holidays
that move when they fall on a weekend.
"""

import logging
from datetime import date, timedelta

from netex_calendar.models.calendar import Holiday, HolidayType, Observance, Weekday

logger = logging.getLogger(__name__)

# Fixed-date holidays per country: (month, day, name, type)
FIXED_HOLIDAYS: dict[str, list[tuple[int, int, str, HolidayType]]] = {
    "NO": [
        (1, 1, "New Year's Day", HolidayType.PUBLIC),
        (5, 1, "Labour Day", HolidayType.PUBLIC),
        (5, 17, "Constitution Day", HolidayType.PUBLIC),
        (12, 25, "Christmas Day", HolidayType.RELIGIOUS),
        (12, 26, "Boxing Day", HolidayType.RELIGIOUS),
    ],
    "SE": [
        (1, 1, "New Year's Day", HolidayType.PUBLIC),
        (1, 6, "Epiphany", HolidayType.RELIGIOUS),
        (5, 1, "Labour Day", HolidayType.PUBLIC),
        (6, 6, "National Day", HolidayType.PUBLIC),
        (12, 25, "Christmas Day", HolidayType.RELIGIOUS),
        (12, 26, "Boxing Day", HolidayType.RELIGIOUS),
    ],
    "DK": [
        (1, 1, "New Year's Day", HolidayType.PUBLIC),
        (12, 25, "Christmas Day", HolidayType.RELIGIOUS),
        (12, 26, "Boxing Day", HolidayType.RELIGIOUS),
    ],
    "FI": [
        (1, 1, "New Year's Day", HolidayType.PUBLIC),
        (1, 6, "Epiphany", HolidayType.RELIGIOUS),
        (5, 1, "May Day", HolidayType.PUBLIC),
        (12, 6, "Independence Day", HolidayType.PUBLIC),
        (12, 25, "Christmas Day", HolidayType.RELIGIOUS),
        (12, 26, "Boxing Day", HolidayType.RELIGIOUS),
    ],
}

# Used for any country without its own table
GENERIC_FIXED_HOLIDAYS: list[tuple[int, int, str, HolidayType]] = [
    (1, 1, "New Year's Day", HolidayType.PUBLIC),
    (12, 25, "Christmas Day", HolidayType.RELIGIOUS),
]

# Easter-relative holidays shared by all countries: (offset in days, name)
EASTER_HOLIDAYS: list[tuple[int, str]] = [
    (-3, "Maundy Thursday"),
    (-2, "Good Friday"),
    (0, "Easter Sunday"),
    (1, "Easter Monday"),
    (39, "Ascension Day"),
    (49, "Whit Sunday"),
    (50, "Whit Monday"),
]

OBSERVED_SUFFIX = " (Observed)"


def calculate_easter(year: int) -> date:
    """Calculate Easter Sunday for a Gregorian year.

    Uses the anonymous Gregorian algorithm (Meeus/Jones/Butcher).

    Args:
        year: Gregorian calendar year.

    Returns:
        Date of Easter Sunday.
    """
    a = year % 19
    b = year // 100
    c = year % 100
    d = b // 4
    e = b % 4
    f = (b + 8) // 25
    g = (b - f + 1) // 3
    h = (19 * a + b - d - g + 15) % 30
    i = c // 4
    k = c % 4
    l = (32 + 2 * e + 2 * i - h - k) % 7  # noqa: E741
    m = (a + 11 * h + 22 * l) // 451
    month = (h + l - 7 * m + 114) // 31
    day = ((h + l - 7 * m + 114) % 31) + 1
    return date(year, month, day)


def get_observed_date(actual: date, observance: Observance) -> date:
    """Calculate the date a holiday is observed on.

    Weekdays are never shifted, whatever the rule.

    Args:
        actual: The holiday's calendar date.
        observance: Observance rule for the holiday.

    Returns:
        The observed date (equal to ``actual`` when no shift applies).
    """
    weekday = Weekday.of(actual)
    if weekday not in (Weekday.SATURDAY, Weekday.SUNDAY):
        return actual

    saturday = weekday == Weekday.SATURDAY
    if observance == Observance.MONDAY:
        return actual + timedelta(days=2 if saturday else 1)
    if observance == Observance.FRIDAY:
        return actual - timedelta(days=1 if saturday else 2)
    if observance == Observance.NEAREST:
        return actual + timedelta(days=-1 if saturday else 1)
    return actual


def find_first_weekday_in_range(start: date, end: date, weekday: Weekday) -> date:
    """Find the first date in [start, end] falling on ``weekday``.

    Falls back to ``end`` when the window holds no such day.
    """
    current = start
    while current <= end:
        if Weekday.of(current) == weekday:
            return current
        current += timedelta(days=1)
    return end


class HolidayDetector:
    """Detects public holidays for a country code.

    Unknown country codes degrade to a generic New Year's Day and Christmas Day
    set instead of failing.
    """

    def __init__(self, country_code: str = "NO", apply_observance: bool = True):
        """Initialize the detector.

        Args:
            country_code: ISO 3166 alpha-2 country code (case-insensitive).
            apply_observance: Whether to emit "(Observed)" copies for holidays
                that move off a weekend.
        """
        self.country_code = country_code.strip().upper()
        self.apply_observance = apply_observance
        self._custom_holidays: dict[str, Holiday] = {}

        if self.country_code not in FIXED_HOLIDAYS:
            logger.debug(
                f"No holiday table for country {self.country_code!r}, using generic holidays"
            )

    def add_custom_holiday(self, holiday: Holiday) -> None:
        """Register a caller-defined holiday.

        Holidays are keyed by date and name, so registering the same pair again
        replaces the earlier entry.
        """
        key = f"{holiday.date.isoformat()}_{holiday.name}"
        self._custom_holidays[key] = holiday

    def get_holidays(self, year: int) -> list[Holiday]:
        """Get all holidays for a year.

        Order: fixed, Easter-relative, variable, custom; each observed copy
        directly follows its source holiday.
        """
        holidays: list[Holiday] = []
        holidays.extend(self._fixed_holidays(year))
        holidays.extend(self._easter_holidays(year))
        holidays.extend(self._variable_holidays(year))
        holidays.extend(h for h in self._custom_holidays.values() if h.date.year == year)

        if self.apply_observance:
            holidays = self._apply_observance_rules(holidays)
        return holidays

    def get_holidays_in_range(self, start: date, end: date) -> list[Holiday]:
        """Get all holidays between two dates (inclusive), across year boundaries."""
        result: list[Holiday] = []
        for year in range(start.year, end.year + 1):
            result.extend(h for h in self.get_holidays(year) if start <= h.date <= end)
        return result

    def is_holiday(self, d: date) -> Holiday | None:
        """Get the holiday falling on a date, if any."""
        for holiday in self.get_holidays(d.year):
            if holiday.date == d:
                return holiday
        return None

    def _fixed_holidays(self, year: int) -> list[Holiday]:
        table = FIXED_HOLIDAYS.get(self.country_code, GENERIC_FIXED_HOLIDAYS)
        return [
            Holiday(date=date(year, month, day), name=name, type=holiday_type)
            for month, day, name, holiday_type in table
        ]

    def _easter_holidays(self, year: int) -> list[Holiday]:
        easter = calculate_easter(year)
        return [
            Holiday(
                date=easter + timedelta(days=offset),
                name=name,
                type=HolidayType.RELIGIOUS,
            )
            for offset, name in EASTER_HOLIDAYS
        ]

    def _variable_holidays(self, year: int) -> list[Holiday]:
        holidays: list[Holiday] = []

        if self.country_code == "SE":
            midsummer_eve = find_first_weekday_in_range(
                date(year, 6, 19), date(year, 6, 25), Weekday.FRIDAY
            )
            holidays.append(
                Holiday(date=midsummer_eve, name="Midsummer Eve", type=HolidayType.CULTURAL)
            )
            holidays.append(
                Holiday(
                    date=midsummer_eve + timedelta(days=1),
                    name="Midsummer Day",
                    type=HolidayType.CULTURAL,
                )
            )
            # Window spans the October/November boundary
            all_saints = find_first_weekday_in_range(
                date(year, 10, 31), date(year, 11, 6), Weekday.SATURDAY
            )
            holidays.append(
                Holiday(date=all_saints, name="All Saints' Day", type=HolidayType.RELIGIOUS)
            )
        elif self.country_code == "DK":
            holidays.append(
                Holiday(
                    date=calculate_easter(year) + timedelta(days=26),
                    name="Great Prayer Day",
                    type=HolidayType.RELIGIOUS,
                )
            )

        return holidays

    def _apply_observance_rules(self, holidays: list[Holiday]) -> list[Holiday]:
        result: list[Holiday] = []
        for holiday in holidays:
            result.append(holiday)
            if holiday.observance == Observance.ACTUAL:
                continue
            observed = get_observed_date(holiday.date, holiday.observance)
            if observed != holiday.date:
                result.append(
                    holiday.model_copy(
                        update={"date": observed, "name": holiday.name + OBSERVED_SUFFIX}
                    )
                )
        return result
