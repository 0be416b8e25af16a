import argparse
import asyncio
import json
import logging
from datetime import UTC, datetime
from pathlib import Path

from netex_calendar.app import mcp
from netex_calendar.data.database import get_db_path
from netex_calendar.models.responses import HealthResponse
from netex_calendar.tools import calendar_tools, holiday_tools  # noqa: F401  (registers tools)


@mcp.tool()
def health() -> HealthResponse:
    """Check if the NeTEx calendar MCP server is running and healthy.

    Returns the server status, version, and current timestamp.
    """
    from netex_calendar import __version__

    return HealthResponse(
        status="ok",
        version=__version__,
        timestamp=datetime.now(UTC).isoformat(),
    )


def run_holidays(year: int, country_code: str) -> None:
    """Print the holidays of a year."""
    from netex_calendar.services.holiday_detector import HolidayDetector

    detector = HolidayDetector(country_code)
    print(f"\nHolidays for {detector.country_code} {year}:")
    for holiday in sorted(detector.get_holidays(year), key=lambda h: h.date):
        print(f"  {holiday.date.isoformat()}  {holiday.date:%a}  {holiday.name}")


async def run_convert(document_path: Path, db_path: Path, level: str) -> None:
    """Convert a calendar document and write the rows to SQLite."""
    from netex_calendar.data.calendar_store import GTFSCalendarStore
    from netex_calendar.data.config import CalendarServiceConfig
    from netex_calendar.models.calendar import CalendarDocument
    from netex_calendar.services.calendar_service import CalendarService
    from netex_calendar.services.calendar_validator import ValidationLevel

    document = CalendarDocument.model_validate(json.loads(document_path.read_text()))
    service = CalendarService(
        CalendarServiceConfig(validation_level=ValidationLevel.from_name(level))
    )
    for issue in service.validate_configuration():
        print(f"  [config] {issue.message}")
    service.load_document(document)
    result = service.convert()

    for issue in result.validation_issues:
        print(f"  [{issue.entity_id}] {issue.message}")

    store = GTFSCalendarStore(db_path)
    row_counts = await store.save(result.calendars, result.calendar_dates)

    print("\nConversion complete. Row counts:")
    for table, count in row_counts.items():
        print(f"  {table}: {count:,}")


def main() -> None:
    parser = argparse.ArgumentParser(
        prog="netex-calendar",
        description="NeTEx to GTFS calendar MCP Server",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Enable verbose logging",
    )
    subparsers = parser.add_subparsers(dest="command")

    # holidays command
    holidays_parser = subparsers.add_parser(
        "holidays",
        help="List the public holidays of a year",
    )
    holidays_parser.add_argument("year", type=int, help="Calendar year")
    holidays_parser.add_argument(
        "--country",
        default="NO",
        help="ISO 3166 alpha-2 country code (default: NO)",
    )

    # convert command
    convert_parser = subparsers.add_parser(
        "convert",
        help="Convert a calendar document (JSON) into a GTFS calendar SQLite database",
    )
    convert_parser.add_argument(
        "document",
        type=Path,
        help="Path to a calendar document JSON file",
    )
    convert_parser.add_argument(
        "--db",
        type=Path,
        default=get_db_path(),
        help="SQLite database path (default: data/calendar.db or NETEX_CALENDAR_DB_PATH env var)",
    )
    convert_parser.add_argument(
        "--level",
        default="standard",
        choices=["minimal", "standard", "strict", "detailed"],
        help="Validation level (default: standard)",
    )

    args = parser.parse_args()

    if args.command in ("holidays", "convert"):
        # Configure logging
        log_level = logging.DEBUG if args.verbose else logging.INFO
        logging.basicConfig(
            level=log_level,
            format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        )

    if args.command == "holidays":
        run_holidays(args.year, args.country)
    elif args.command == "convert":
        asyncio.run(run_convert(args.document, args.db, args.level))
    else:
        # Default: run MCP server
        mcp.run()


if __name__ == "__main__":
    main()
