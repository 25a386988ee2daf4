# tracker.py
"""
Delivery lifecycle tracker.

Owns an active delivery from dispatch until completion: mirrors driver
position pings into it, answers tracking queries and, on completion, moves it
to the archive and frees the driver in a single transaction.
"""
from datetime import datetime
from typing import Optional

from delivery_service import archive, registry
from delivery_service.config import ETA_FIXED_MINUTES
from delivery_service.database import bounded, database, row_to_dict
from delivery_service.errors import NoActiveDelivery
from delivery_service.eta import EtaEstimator, FixedOffsetEstimator
from delivery_service.events import publish_event
from delivery_service.log import get_logger
from delivery_service.metrics import DELIVERIES_COMPLETED
from delivery_service.models import deliveries

logger = get_logger("tracker")

default_estimator: EtaEstimator = FixedOffsetEstimator(ETA_FIXED_MINUTES)


async def _active_for_driver(driver_id: str) -> Optional[dict]:
    row = await database.fetch_one(
        deliveries.select()
        .where(deliveries.c.driver_id == driver_id)
        .where(deliveries.c.is_delivered == False)  # noqa: E712
    )
    return row_to_dict(row, deliveries)


async def _active_for_order(order_id: str) -> Optional[dict]:
    row = await database.fetch_one(
        deliveries.select()
        .where(deliveries.c.order_id == order_id)
        .where(deliveries.c.is_delivered == False)  # noqa: E712
    )
    return row_to_dict(row, deliveries)


async def update_location(driver_id: str, latitude: float, longitude: float,
                          driver_name: Optional[str] = None,
                          user_id: Optional[str] = None) -> bool:
    """
    Move the driver in the registry and, if it is on a delivery, mirror the
    coordinates into that delivery. Returns True when a delivery was updated.
    """
    async with database.transaction():
        await registry.upsert_location(driver_id, latitude, longitude,
                                       driver_name=driver_name, user_id=user_id)
        active = await _active_for_driver(driver_id)
        if not active:
            return False
        await database.execute(
            deliveries.update()
            .where(deliveries.c.id == active["id"])
            .values(driver_latitude=latitude, driver_longitude=longitude,
                    updated_at=datetime.utcnow())
        )
    return True


async def get_by_driver(driver_id: str) -> dict:
    delivery = await _active_for_driver(driver_id)
    if not delivery:
        raise NoActiveDelivery(f"No active delivery for driver {driver_id}")
    return delivery


async def get_tracking_info(order_id: str, estimator: Optional[EtaEstimator] = None) -> dict:
    delivery = await _active_for_order(order_id)
    if not delivery:
        raise NoActiveDelivery(f"No active delivery for order {order_id}")

    driver = await registry.get_driver(delivery["driver_id"])
    return {
        "order_id": order_id,
        "is_delivered": False,
        "estimated_arrival": (estimator or default_estimator).estimate(delivery),
        "driver_name": driver.get("driver_name"),
        "driver_latitude": delivery["driver_latitude"],
        "driver_longitude": delivery["driver_longitude"],
        "customer_latitude": delivery["destination_latitude"],
        "customer_longitude": delivery["destination_longitude"],
    }


async def _complete(driver_id: str, completed_at: datetime):
    async with database.transaction():
        delivery = await get_by_driver(driver_id)
        archived = await archive.archive(delivery, completed_at)
        await database.execute(deliveries.delete().where(deliveries.c.id == delivery["id"]))
        await registry.set_availability(driver_id, True)
    return delivery, archived


async def mark_delivered(driver_id: str) -> dict:
    """
    Archive the driver's active delivery, remove it and make the driver
    available again, all in one transaction. Calling it again for the same
    driver raises NoActiveDelivery and never archives twice.
    The completion event is published after commit, outside the persistence timeout.
    """
    completed_at = datetime.utcnow()
    delivery, archived = await bounded(_complete(driver_id, completed_at))

    if archived:
        DELIVERIES_COMPLETED.inc()
    logger.info(f"[Tracker] Order {delivery['order_id']} delivered by driver {driver_id}")
    await publish_event("delivery.completed", {
        "order_id": delivery["order_id"],
        "driver_id": driver_id,
        "completed_at": completed_at.isoformat(),
    })
    return {
        "order_id": delivery["order_id"],
        "driver_id": driver_id,
        "latitude": delivery["destination_latitude"],
        "longitude": delivery["destination_longitude"],
        "is_delivered": True,
        "completed_at": completed_at,
    }
