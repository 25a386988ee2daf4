# archive.py
from datetime import datetime
from typing import List, Optional

from sqlalchemy import select

from delivery_service.database import database, row_to_dict
from delivery_service.errors import CompletedDeliveryNotFound
from delivery_service.log import get_logger
from delivery_service.models import completed_deliveries

logger = get_logger("archive")


async def exists_by_order(order_id: str) -> bool:
    row = await database.fetch_one(
        select(completed_deliveries.c.id).where(completed_deliveries.c.order_id == order_id)
    )
    return row is not None


async def archive(delivery: dict, completed_at: Optional[datetime] = None) -> bool:
    """
    Append the finished delivery to the archive.
    Returns False without writing when the order is already archived.
    """
    if await exists_by_order(delivery["order_id"]):
        logger.info(f"[Archive] Order {delivery['order_id']} already archived, skipping")
        return False

    await database.execute(
        completed_deliveries.insert().values(
            order_id=delivery["order_id"],
            driver_id=delivery["driver_id"],
            latitude=delivery["destination_latitude"],
            longitude=delivery["destination_longitude"],
            is_delivered=True,
            completed_at=completed_at or datetime.utcnow(),
        )
    )
    return True


async def list_by_driver(driver_id: str) -> List[dict]:
    rows = await database.fetch_all(
        select(completed_deliveries)
        .where(completed_deliveries.c.driver_id == driver_id)
        .order_by(completed_deliveries.c.id.asc())
    )
    return [row_to_dict(r, completed_deliveries) for r in rows]


async def delete_by_order(order_id: str) -> None:
    if not await exists_by_order(order_id):
        raise CompletedDeliveryNotFound(order_id)
    await database.execute(
        completed_deliveries.delete().where(completed_deliveries.c.order_id == order_id)
    )
    logger.info(f"[Archive] Completed delivery for order {order_id} deleted")
