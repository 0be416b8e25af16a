"""Read access to the stored GTFS calendar database."""

import os
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from pathlib import Path

import aiosqlite

DEFAULT_DB_PATH = "data/calendar.db"


def get_db_path() -> Path:
    """Database path from NETEX_CALENDAR_DB_PATH, or data/calendar.db."""
    return Path(os.environ.get("NETEX_CALENDAR_DB_PATH", DEFAULT_DB_PATH))


@asynccontextmanager
async def get_db(db_path: Path | None = None) -> AsyncIterator[aiosqlite.Connection]:
    """Open the calendar database read-only.

    Writes go through GTFSCalendarStore, which swaps in a whole new file, so
    readers never hold a writable connection.

    Raises:
        FileNotFoundError: If no database has been written yet.
    """
    if db_path is None:
        db_path = get_db_path()

    if not db_path.exists():
        raise FileNotFoundError(
            f"Database not found at {db_path}. "
            "Run 'netex-calendar convert <document.json>' to create it."
        )

    async with aiosqlite.connect(f"{db_path.resolve().as_uri()}?mode=ro", uri=True) as db:
        db.row_factory = aiosqlite.Row
        yield db
