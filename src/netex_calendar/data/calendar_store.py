"""SQLite store for generated GTFS calendar and calendar_dates rows."""

import logging
from datetime import date
from pathlib import Path
from typing import Any

import aiosqlite

from netex_calendar.models.gtfs import (
    SERVICE_ADDED,
    SERVICE_REMOVED,
    WEEKDAY_COLUMNS,
    Calendar,
    CalendarDate,
    format_gtfs_date,
)
from netex_calendar.services.calendar_manager import consolidate_calendar_dates

logger = logging.getLogger(__name__)

SCHEMA_SQL = """
-- calendar
CREATE TABLE calendar (
    service_id TEXT PRIMARY KEY,
    monday INTEGER NOT NULL,
    tuesday INTEGER NOT NULL,
    wednesday INTEGER NOT NULL,
    thursday INTEGER NOT NULL,
    friday INTEGER NOT NULL,
    saturday INTEGER NOT NULL,
    sunday INTEGER NOT NULL,
    start_date TEXT NOT NULL,
    end_date TEXT NOT NULL
);

-- calendar_dates
CREATE TABLE calendar_dates (
    service_id TEXT NOT NULL,
    date TEXT NOT NULL,
    exception_type INTEGER NOT NULL,
    PRIMARY KEY (service_id, date)
);
"""

INDEX_SQL = """
CREATE INDEX idx_calendar_dates_date ON calendar_dates(date);
"""

# Table name -> columns, in GTFS file order
TABLE_COLUMNS: dict[str, list[str]] = {
    "calendar": ["service_id", *WEEKDAY_COLUMNS, "start_date", "end_date"],
    "calendar_dates": ["service_id", "date", "exception_type"],
}

# Chunk size for bulk inserts
CHUNK_SIZE = 10000


class GTFSCalendarStore:
    """Writes generated calendar rows into a SQLite database."""

    def __init__(self, db_path: Path):
        """Initialize the store.

        Args:
            db_path: Path where the SQLite database will be created.
        """
        self.db_path = Path(db_path)

    async def save(
        self, calendars: list[Calendar], calendar_dates: list[CalendarDate]
    ) -> dict[str, int]:
        """Replace the database with the given rows.

        Uses atomic swap: writes into a temp DB, then replaces the target DB.
        Calendar dates are consolidated first so each (service_id, date) pair
        is stored once, a removal winning over an addition.

        Returns:
            Dictionary with row counts per table.
        """
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        temp_db = self.db_path.with_suffix(".tmp.db")

        try:
            temp_db.unlink(missing_ok=True)

            async with aiosqlite.connect(temp_db) as db:
                await db.execute("PRAGMA journal_mode=OFF")
                await db.execute("PRAGMA synchronous=OFF")

                await db.executescript(SCHEMA_SQL)
                row_counts = {
                    "calendar": await self._insert_rows(
                        db, "calendar", [c.model_dump() for c in calendars]
                    ),
                    "calendar_dates": await self._insert_rows(
                        db,
                        "calendar_dates",
                        [cd.model_dump() for cd in consolidate_calendar_dates(calendar_dates)],
                    ),
                }
                await db.executescript(INDEX_SQL)
                await db.commit()

            # atomic swap
            temp_db.replace(self.db_path)

            logger.info(f"Calendar store written: {self.db_path}")
            return row_counts

        except Exception:
            temp_db.unlink(missing_ok=True)
            raise

    async def _insert_rows(
        self, db: aiosqlite.Connection, table_name: str, rows: list[dict[str, Any]]
    ) -> int:
        columns = TABLE_COLUMNS[table_name]
        placeholders = ",".join(["?"] * len(columns))
        insert_sql = f"INSERT INTO {table_name} ({','.join(columns)}) VALUES ({placeholders})"

        total_rows = 0
        for start in range(0, len(rows), CHUNK_SIZE):
            chunk = [tuple(row[col] for col in columns) for row in rows[start : start + CHUNK_SIZE]]
            await db.executemany(insert_sql, chunk)
            total_rows += len(chunk)

        logger.info(f"  Wrote {total_rows:,} rows into {table_name}")
        return total_rows


ACTIVE_SERVICES_SQL = """
    SELECT service_id FROM calendar
    WHERE start_date <= :day AND end_date >= :day AND {weekday_column} = 1
      AND service_id NOT IN (
          SELECT service_id FROM calendar_dates WHERE date = :day AND exception_type = :removed
      )
    UNION
    SELECT service_id FROM calendar_dates WHERE date = :day AND exception_type = :added
"""


async def get_active_service_ids(db: aiosqlite.Connection, query_date: date) -> set[str]:
    """Service ids running on a date according to the stored rows.

    A calendar row runs when the date is in its range and its weekday flag
    is set, unless a removal row exists for that date; an addition row runs
    on its date regardless of calendar rows. Stored dates are unique per
    service, so the two never disagree.
    """
    sql = ACTIVE_SERVICES_SQL.format(weekday_column=WEEKDAY_COLUMNS[query_date.weekday()])
    params = {
        "day": format_gtfs_date(query_date),
        "added": SERVICE_ADDED,
        "removed": SERVICE_REMOVED,
    }
    async with db.execute(sql, params) as cursor:
        return {row[0] async for row in cursor}


async def get_table_counts(db_path: Path) -> dict[str, int]:
    """Get row counts for the calendar tables in the database."""
    counts: dict[str, int] = {}
    async with aiosqlite.connect(db_path) as db:
        for table_name in TABLE_COLUMNS:
            async with db.execute(f"SELECT COUNT(*) FROM {table_name}") as cursor:
                row = await cursor.fetchone()
                counts[table_name] = row[0] if row else 0
    return counts
