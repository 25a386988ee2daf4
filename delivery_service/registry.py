# registry.py
"""
Driver location registry.

One long-lived row per driver holding its last known coordinates, whether it
can take a delivery right now and its onboarding status. Rows are created by
driver registration or by a driver's first location ping.
"""
from datetime import datetime
from typing import List, Optional, Union

from sqlalchemy import select

from delivery_service.database import database, row_to_dict
from delivery_service.errors import DriverNotFound, DriverOnDelivery, InvalidStatus
from delivery_service.log import get_logger
from delivery_service.models import deliveries, driver_locations
from delivery_service.schemas import DriverStatus

logger = get_logger("registry")


def parse_status(raw: Union[str, DriverStatus]) -> DriverStatus:
    """Map a free-form status string onto DriverStatus, rejecting anything else."""
    if isinstance(raw, DriverStatus):
        return raw
    try:
        return DriverStatus(str(raw).strip().upper())
    except ValueError:
        raise InvalidStatus(str(raw))


async def get_driver(driver_id: str) -> dict:
    row = await database.fetch_one(
        driver_locations.select().where(driver_locations.c.driver_id == driver_id)
    )
    if not row:
        raise DriverNotFound(driver_id)
    return row_to_dict(row, driver_locations)


async def _find(driver_id: str) -> Optional[dict]:
    row = await database.fetch_one(
        driver_locations.select().where(driver_locations.c.driver_id == driver_id)
    )
    return row_to_dict(row, driver_locations)


async def register_driver(driver_id: str, driver_name: Optional[str] = None,
                          user_id: Optional[str] = None) -> bool:
    """
    Add a freshly registered driver at (0, 0), available and PENDING.
    Returns False when the driver is already known; the existing row is left as is.
    """
    if await _find(driver_id):
        logger.info(f"[Registry] Driver {driver_id} already registered")
        return False

    now = datetime.utcnow()
    await database.execute(
        driver_locations.insert().values(
            driver_id=driver_id,
            driver_name=driver_name,
            latitude=0.0,
            longitude=0.0,
            is_available=True,
            status=DriverStatus.PENDING.value,
            user_id=user_id,
            created_at=now,
            updated_at=now,
        )
    )
    logger.info(f"[Registry] New driver registered: {driver_id}")
    return True


async def upsert_location(driver_id: str, latitude: float, longitude: float,
                          driver_name: Optional[str] = None,
                          user_id: Optional[str] = None) -> dict:
    """
    Record a location ping. The first ping of an unknown driver registers it
    (available, PENDING); later pings only move it and never change
    availability or status.
    """
    now = datetime.utcnow()
    existing = await _find(driver_id)

    if not existing:
        values = dict(
            driver_id=driver_id,
            driver_name=driver_name,
            latitude=latitude,
            longitude=longitude,
            is_available=True,
            status=DriverStatus.PENDING.value,
            user_id=user_id,
            created_at=now,
            updated_at=now,
        )
        await database.execute(driver_locations.insert().values(**values))
        logger.info(f"[Registry] Driver {driver_id} registered by first location ping")
        return values

    update_vals = {"latitude": latitude, "longitude": longitude, "updated_at": now}
    if driver_name is not None:
        update_vals["driver_name"] = driver_name
    if user_id is not None:
        update_vals["user_id"] = user_id

    await database.execute(
        driver_locations.update()
        .where(driver_locations.c.driver_id == driver_id)
        .values(**update_vals)
    )
    return {**existing, **update_vals}


async def list_drivers() -> List[dict]:
    rows = await database.fetch_all(
        select(driver_locations).order_by(driver_locations.c.driver_id.asc())
    )
    return [row_to_dict(r, driver_locations) for r in rows]


async def list_by_status(status: Union[str, DriverStatus]) -> List[dict]:
    status = parse_status(status)
    rows = await database.fetch_all(
        select(driver_locations)
        .where(driver_locations.c.status == status.value)
        .order_by(driver_locations.c.driver_id.asc())
    )
    return [row_to_dict(r, driver_locations) for r in rows]


async def list_by_user(user_id: str) -> List[dict]:
    rows = await database.fetch_all(
        select(driver_locations)
        .where(driver_locations.c.user_id == user_id)
        .order_by(driver_locations.c.driver_id.asc())
    )
    return [row_to_dict(r, driver_locations) for r in rows]


async def list_available(status: Union[str, DriverStatus] = DriverStatus.APPROVED) -> List[dict]:
    """
    Candidate pool for dispatch: available drivers with the given status,
    in a stable order (driver id) so ties resolve deterministically.
    """
    status = parse_status(status)
    rows = await database.fetch_all(
        select(driver_locations)
        .where(driver_locations.c.is_available == True)  # noqa: E712
        .where(driver_locations.c.status == status.value)
        .order_by(driver_locations.c.driver_id.asc())
    )
    return [row_to_dict(r, driver_locations) for r in rows]


async def count_available() -> int:
    return len(await list_available())


async def set_availability(driver_id: str, available: bool) -> None:
    await get_driver(driver_id)
    await database.execute(
        driver_locations.update()
        .where(driver_locations.c.driver_id == driver_id)
        .values(is_available=available, updated_at=datetime.utcnow())
    )
    logger.info(f"[Registry] Driver {driver_id} availability -> {available}")


async def claim_driver(driver_id: str) -> bool:
    """
    Compare-and-set: flip the driver to unavailable only if it is still available.
    Returns False when another dispatch got there first.
    """
    claimed = await database.fetch_one(
        driver_locations.update()
        .where(driver_locations.c.driver_id == driver_id)
        .where(driver_locations.c.is_available == True)  # noqa: E712
        .values(is_available=False, updated_at=datetime.utcnow())
        .returning(driver_locations.c.driver_id)
    )
    return claimed is not None


async def set_status(driver_id: str, status: Union[str, DriverStatus]) -> DriverStatus:
    status = parse_status(status)
    await get_driver(driver_id)
    await database.execute(
        driver_locations.update()
        .where(driver_locations.c.driver_id == driver_id)
        .values(status=status.value, updated_at=datetime.utcnow())
    )
    logger.info(f"[Registry] Driver {driver_id} status -> {status.value}")
    return status


async def delete(driver_id: str) -> None:
    """Remove a driver. Refused while the driver still has an active delivery."""
    await get_driver(driver_id)
    on_delivery = await database.fetch_one(
        select(deliveries.c.id).where(deliveries.c.driver_id == driver_id)
    )
    if on_delivery:
        raise DriverOnDelivery(driver_id)
    await database.execute(
        driver_locations.delete().where(driver_locations.c.driver_id == driver_id)
    )
    logger.info(f"[Registry] Driver {driver_id} deleted")
