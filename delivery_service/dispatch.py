# dispatch.py
"""
Dispatcher: binds a new order to the nearest available, approved driver.

The candidate pool is ranked by haversine distance from the shop. Claiming a
driver is a compare-and-set on its availability flag and happens in the same
transaction as the Delivery insert, so two concurrent dispatches can never
end up with the same driver. A lost race moves on to the next-nearest driver.
"""
from datetime import datetime
from typing import Iterable, List, Optional, Tuple

from delivery_service import archive, registry
from delivery_service.config import DISPATCH_MAX_ATTEMPTS
from delivery_service.database import bounded, database, row_to_dict
from delivery_service.errors import DeliveryAlreadyExists, DispatchConflict, NoDriversAvailable
from delivery_service.events import publish_event
from delivery_service.geo import haversine_km
from delivery_service.log import get_logger
from delivery_service.metrics import DELIVERIES_DISPATCHED, DISPATCH_FAILURES
from delivery_service.models import deliveries
from delivery_service.order_client import notify_driver_assigned
from delivery_service.schemas import DriverStatus

logger = get_logger("dispatch")


def rank_candidates(candidates: Iterable[dict], shop_lat: float, shop_lon: float) -> List[Tuple[float, dict]]:
    """
    Return (distance_km, driver) pairs nearest first.
    The sort is stable, so equal distances keep the pool's order.
    """
    scored = [
        (haversine_km(shop_lat, shop_lon, c["latitude"], c["longitude"]), c)
        for c in candidates
    ]
    return sorted(scored, key=lambda pair: pair[0])


async def get_by_order(order_id: str) -> Optional[dict]:
    row = await database.fetch_one(deliveries.select().where(deliveries.c.order_id == order_id))
    return row_to_dict(row, deliveries)


async def _claim_and_insert(order_id: str, driver: dict, shop_lat: float, shop_lon: float,
                            dest_lat: float, dest_lon: float) -> Optional[dict]:
    now = datetime.utcnow()
    values = dict(
        order_id=order_id,
        driver_id=driver["driver_id"],
        shop_latitude=shop_lat,
        shop_longitude=shop_lon,
        destination_latitude=dest_lat,
        destination_longitude=dest_lon,
        driver_latitude=driver["latitude"],
        driver_longitude=driver["longitude"],
        is_delivered=False,
        created_at=now,
        updated_at=now,
    )
    async with database.transaction():
        if not await registry.claim_driver(driver["driver_id"]):
            return None
        await database.execute(deliveries.insert().values(**values))
        return await get_by_order(order_id)


async def _dispatch(order_id: str, shop_lat: float, shop_lon: float,
                    dest_lat: float, dest_lon: float) -> Tuple[dict, dict, float]:
    if await get_by_order(order_id):
        raise DeliveryAlreadyExists(order_id)
    if await archive.exists_by_order(order_id):
        raise DeliveryAlreadyExists(order_id, "was already delivered")

    pool = await registry.list_available(DriverStatus.APPROVED)
    if not pool:
        DISPATCH_FAILURES.labels(reason="no_drivers").inc()
        logger.warning(f"[Dispatch] No available drivers for order {order_id}")
        raise NoDriversAvailable(order_id)

    ranked = rank_candidates(pool, shop_lat, shop_lon)
    attempts = 0
    for distance, driver in ranked[:DISPATCH_MAX_ATTEMPTS]:
        attempts += 1
        try:
            delivery = await _claim_and_insert(order_id, driver, shop_lat, shop_lon, dest_lat, dest_lon)
        except Exception:
            # unique order_id: a concurrent dispatch for the same order got there first
            if await get_by_order(order_id):
                raise DeliveryAlreadyExists(order_id)
            raise

        if delivery is None:
            logger.info(f"[Dispatch] Driver {driver['driver_id']} taken concurrently, trying next candidate")
            continue

        return delivery, driver, distance

    DISPATCH_FAILURES.labels(reason="conflict").inc()
    raise DispatchConflict(order_id, attempts)


async def create_delivery(order_id: str, shop_lat: float, shop_lon: float,
                          dest_lat: float, dest_lon: float) -> dict:
    """
    Dispatch an order. Only the database work runs under the persistence
    timeout; the event and the order-service call happen after commit.
    """
    delivery, driver, distance = await bounded(
        _dispatch(order_id, shop_lat, shop_lon, dest_lat, dest_lon)
    )

    logger.info(
        f"[Dispatch] Order {order_id} -> driver {driver['driver_id']} ({distance:.3f} km from shop)"
    )
    DELIVERIES_DISPATCHED.inc()
    await publish_event("delivery.dispatched", {
        "order_id": order_id,
        "driver_id": driver["driver_id"],
        "driver_name": driver.get("driver_name"),
        "distance_km": round(distance, 3),
    })
    await notify_driver_assigned(order_id, driver["driver_id"], driver.get("driver_name"))
    return delivery
