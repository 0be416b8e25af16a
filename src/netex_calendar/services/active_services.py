"""Lookups against the stored GTFS calendar database."""

import logging
from datetime import date
from pathlib import Path

from netex_calendar.data.calendar_store import get_active_service_ids
from netex_calendar.data.database import get_db
from netex_calendar.models.responses import ActiveServicesResponse

logger = logging.getLogger(__name__)


async def get_active_services(
    query_date: date, db_path: Path | None = None
) -> ActiveServicesResponse:
    """Get the services running on a date from the stored calendar rows.

    Args:
        query_date: Date to resolve.
        db_path: Optional database path (defaults to NETEX_CALENDAR_DB_PATH).

    Returns:
        ActiveServicesResponse with the sorted service ids.

    Raises:
        FileNotFoundError: If no calendar database has been written.
    """
    async with get_db(db_path) as db:
        service_ids = sorted(await get_active_service_ids(db, query_date))

    logger.debug(f"{len(service_ids)} services active on {query_date.isoformat()}")
    return ActiveServicesResponse(
        date=query_date.isoformat(),
        weekday=f"{query_date:%A}",
        service_ids=service_ids,
        count=len(service_ids),
    )
