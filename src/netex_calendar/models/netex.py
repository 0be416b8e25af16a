"""Typed NeTEx calendar elements consumed by the calendar processor.

An XML reader is expected to map NeTEx ServiceCalendarFrame content onto these
models. Each element kind carries a ``kind`` literal so a mixed list can be
validated as a discriminated union.
"""

from typing import Annotated, Literal

from pydantic import BaseModel, Field


class DayTypeElement(BaseModel):
    """NeTEx DayType with its PropertyOfDay."""

    kind: Literal["DayType"] = "DayType"
    id: str
    name: str = ""
    # DayOfWeekEnumeration tokens, e.g. ["Monday", "Tuesday"] or ["Weekdays"]
    days_of_week: list[str] = Field(default_factory=list)
    # HolidayTypeEnumeration tokens, e.g. ["NotHoliday"] or ["AnyHoliday"]
    holiday_types: list[str] = Field(default_factory=list)


class OperatingPeriodElement(BaseModel):
    """NeTEx OperatingPeriod (FromDate/ToDate as xsd:dateTime or xsd:date)."""

    kind: Literal["OperatingPeriod"] = "OperatingPeriod"
    id: str
    name: str = ""
    from_date: str
    to_date: str


class UicOperatingPeriodElement(BaseModel):
    """NeTEx UicOperatingPeriod: a bitmask of service days starting at FromDate."""

    kind: Literal["UicOperatingPeriod"] = "UicOperatingPeriod"
    id: str
    name: str = ""
    from_date: str
    to_date: str
    valid_day_bits: str


class DayTypeAssignmentElement(BaseModel):
    """NeTEx DayTypeAssignment linking a DayType to a period or a single date."""

    kind: Literal["DayTypeAssignment"] = "DayTypeAssignment"
    id: str
    day_type_ref: str
    operating_period_ref: str | None = None
    date: str | None = None
    is_available: bool = True
    order: int = 0


NeTExCalendarElement = Annotated[
    DayTypeElement
    | OperatingPeriodElement
    | UicOperatingPeriodElement
    | DayTypeAssignmentElement,
    Field(discriminator="kind"),
]


class ServiceCalendarFrame(BaseModel):
    """Calendar content of a NeTEx ServiceCalendarFrame."""

    id: str = ""
    elements: list[NeTExCalendarElement] = Field(default_factory=list)
