# consumer.py
import asyncio
import json
from datetime import datetime

import aioboto3

from delivery_service import config, dispatch, registry
from delivery_service.database import database
from delivery_service.errors import DeliveryError, NoDriversAvailable, ServiceUnavailable
from delivery_service.events import publish_event
from delivery_service.log import get_logger
from delivery_service.metrics import DELIVERY_EVENTS_PROCESSED
from delivery_service.models import processed_events

logger = get_logger("consumer")

session = aioboto3.Session()


# ------------------------------- EVENT LOGGING -------------------------------
async def already_processed(event_type: str, payload: dict) -> bool:
    """True when this event_id was handled before, so the handler is skipped."""
    event_id = payload.get("event_id")
    if not event_id:
        logger.warning(f"[Event Logging] Missing event_id: {payload}")
        return False

    exists = await database.fetch_one(
        processed_events.select().where(processed_events.c.event_id == event_id)
    )
    if exists:
        logger.info(f"[SKIP] Duplicate {event_type} ({event_id})")
        return True
    return False


async def log_event_to_db(event_type: str, payload: dict, source: str) -> None:
    """
    Records event_id in processed_events. Called only once the handler has
    succeeded, so a failed event is handled again when the queue redelivers it.
    """
    event_id = payload.get("event_id")
    if not event_id:
        return

    await database.execute(
        processed_events.insert().values(
            event_id=event_id,
            event_type=event_type,
            source_service=source,
            processed_at=datetime.utcnow()
        )
    )


# ----------------- EVENT HANDLERS -----------------
async def handle_driver_registered(payload: dict, event_id=None):
    payload = {"event_id": event_id, **payload} if event_id else payload
    driver_id = payload.get("driver_id") or payload.get("id")
    if not driver_id:
        logger.warning(f"[Delivery Consumer] driver.registered without driver id: {payload}")
        return

    if await already_processed("driver.registered", payload):
        return

    await registry.register_driver(str(driver_id), payload.get("name") or payload.get("driver_name"),
                                   payload.get("user_id"))
    await log_event_to_db("driver.registered", payload, "Driver Registration")
    DELIVERY_EVENTS_PROCESSED.labels(event_type="driver.registered").inc()


async def handle_order_created(payload: dict, event_id=None):
    payload = {"event_id": event_id, **payload} if event_id else payload
    order_id = payload.get("order_id") or payload.get("id")
    logger.info(f"[Delivery Consumer] Received order.created for order_id={order_id}")

    coords = ("shop_latitude", "shop_longitude", "destination_latitude", "destination_longitude")
    if not order_id or any(payload.get(k) is None for k in coords):
        logger.info(f"[Delivery Consumer] Order {order_id} has no coordinates, waiting for /delivery/create")
        return

    if await already_processed("order.created", payload):
        return

    try:
        await dispatch.create_delivery(str(order_id), *(float(payload[k]) for k in coords))
    except NoDriversAvailable:
        await publish_event("delivery.pending", {
            "order_id": order_id,
            "reason": "no drivers available",
        })
    except ServiceUnavailable:
        raise
    except DeliveryError as e:
        logger.warning(f"[Delivery Consumer] Dispatch for order {order_id} failed: {e.message}")
    await log_event_to_db("order.created", payload, "Order Service")
    DELIVERY_EVENTS_PROCESSED.labels(event_type="order.created").inc()


HANDLERS = {
    "driver.registered": handle_driver_registered,
    "order.created": handle_order_created,
}


async def dispatch_message(body: dict) -> bool:
    """Route one queue message to its handler. Returns False for unknown types."""
    handler = HANDLERS.get(body.get("type"))
    if not handler:
        return False
    await handler(body.get("data", {}), body.get("event_id"))
    return True


# ------------------------------- SQS CONSUMER -------------------------------
async def poll_queue(queue_url: str):
    if not config.USE_AWS:
        logger.warning("AWS disabled. Skipping SQS polling.")
        return

    async with session.client("sqs", region_name=config.AWS_REGION) as sqs:

        while True:
            try:
                resp = await sqs.receive_message(
                    QueueUrl=queue_url,
                    MaxNumberOfMessages=5,
                    WaitTimeSeconds=10,
                    VisibilityTimeout=30,
                )

                msgs = resp.get("Messages", [])
                if not msgs:
                    await asyncio.sleep(1)
                    continue

                for msg in msgs:
                    try:
                        await dispatch_message(json.loads(msg["Body"]))
                        await sqs.delete_message(
                            QueueUrl=queue_url,
                            ReceiptHandle=msg["ReceiptHandle"]
                        )
                    except Exception:
                        logger.exception("Error processing SQS message")

            except Exception:
                logger.exception("SQS polling error")
                await asyncio.sleep(5)


async def start_delivery_consumer():
    if not config.DELIVERY_QUEUE_URL:
        logger.error("DELIVERY_QUEUE_URL missing.")
        return

    if not database.is_connected:
        await database.connect()

    await poll_queue(config.DELIVERY_QUEUE_URL)


if __name__ == "__main__":
    asyncio.run(start_delivery_consumer())
