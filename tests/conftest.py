"""Pytest configuration and fixtures."""

import os
import tempfile

_DB_DIR = tempfile.mkdtemp(prefix="delivery-tests-")
os.environ["DATABASE_URL"] = f"sqlite:///{_DB_DIR}/delivery.db"
os.environ["USE_AWS"] = "false"
os.environ.pop("ORDER_SERVICE_URL", None)

from typing import AsyncGenerator  # noqa: E402

import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402

from delivery_service import registry  # noqa: E402
from delivery_service.database import create_tables, database, engine  # noqa: E402
from delivery_service.main import app  # noqa: E402
from delivery_service.models import metadata  # noqa: E402
from delivery_service.schemas import DriverStatus  # noqa: E402


@pytest_asyncio.fixture
async def db() -> AsyncGenerator:
    """Fresh schema and a connected database for each test."""
    metadata.drop_all(engine)
    create_tables()
    await database.connect()
    yield database
    await database.disconnect()
    metadata.drop_all(engine)


@pytest_asyncio.fixture
async def test_client(db) -> AsyncGenerator[AsyncClient, None]:
    """HTTP client bound to the app without a network."""
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client


@pytest.fixture
def add_driver(db):
    """Register a driver at a location with the given onboarding status."""

    async def _add(driver_id: str, lat: float, lon: float,
                   status: DriverStatus = DriverStatus.APPROVED, name: str = None) -> dict:
        await registry.upsert_location(driver_id, lat, lon, driver_name=name or f"Driver {driver_id}")
        await registry.set_status(driver_id, status)
        return await registry.get_driver(driver_id)

    return _add
