# database.py
import asyncio
from typing import Any, Awaitable, Optional

from databases import Database
from sqlalchemy import create_engine

from delivery_service.config import DATABASE_URL, DB_TIMEOUT_SECONDS
from delivery_service.errors import ServiceUnavailable
from delivery_service.models import metadata

# Async DB for actual queries
database = Database(DATABASE_URL)

# Sync engine for create_tables()
SYNC_DATABASE_URL = DATABASE_URL.replace("+asyncpg", "").replace("+aiosqlite", "")
engine = create_engine(SYNC_DATABASE_URL)


def create_tables():
    metadata.create_all(engine)


def row_to_dict(row, table) -> Optional[dict]:
    """Plain dict of a fetched row, keyed by the table's column names."""
    if row is None:
        return None
    return {column.name: row[column.name] for column in table.c}


async def bounded(operation: Awaitable[Any], timeout: Optional[float] = None) -> Any:
    """
    Run one service operation under the request-scoped persistence timeout.
    """
    try:
        return await asyncio.wait_for(operation, timeout or DB_TIMEOUT_SECONDS)
    except asyncio.TimeoutError:
        raise ServiceUnavailable("Persistence call timed out")
