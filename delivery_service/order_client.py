# order_client.py
from typing import Optional

import httpx

from delivery_service import config
from delivery_service.log import get_logger

logger = get_logger("order-client")


async def notify_driver_assigned(order_id: str, driver_id: str, driver_name: Optional[str],
                                 transport: Optional[httpx.AsyncBaseTransport] = None) -> bool:
    """
    Tell the order service which driver took the order. Best effort: a failure
    is logged and never undoes the dispatch.
    """
    if not config.ORDER_SERVICE_URL:
        return False

    url = f"{config.ORDER_SERVICE_URL.rstrip('/')}/orders/{order_id}/assign-driver"
    try:
        async with httpx.AsyncClient(transport=transport, timeout=config.DB_TIMEOUT_SECONDS) as client:
            r = await client.put(url, json={
                "driver_id": driver_id,
                "driver_name": driver_name,
                "status": "assigned",
            })
            r.raise_for_status()
        logger.info(f"[Order Client] Updated order {order_id} with driver {driver_id}")
        return True
    except httpx.HTTPError as e:
        logger.error(f"[Order Client] Failed to update order-service order {order_id}: {e}")
        return False
