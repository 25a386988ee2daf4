# events.py
import json
import uuid
from datetime import datetime
from typing import Optional, Dict, Any

import aioboto3

from delivery_service import config
from delivery_service.log import get_logger
from delivery_service.ws_manager import broadcast_delivery_event

logger = get_logger("events")

session = aioboto3.Session()


def event_targets(event_type: str) -> list:
    """Queues that subscribe to an event type."""
    targets = []
    if event_type.startswith("delivery."):
        if config.ORDER_QUEUE_URL:
            targets.append(config.ORDER_QUEUE_URL)
        if config.NOTIFICATION_QUEUE_URL:
            targets.append(config.NOTIFICATION_QUEUE_URL)
    elif event_type.startswith("driver."):
        if config.NOTIFICATION_QUEUE_URL:
            targets.append(config.NOTIFICATION_QUEUE_URL)
    return targets


async def broadcast_ws_event(event_type: str, data: Dict[str, Any]):
    try:
        await broadcast_delivery_event(event_type, data)
    except Exception as e:
        logger.warning(f"[WS BROADCAST ERROR] {e}")


async def publish_event(
    event_type: str,
    data: Dict[str, Any],
    trace_id: Optional[str] = None,
    broadcast_ws: bool = True
) -> bool:
    """
    Publish a delivery event: log it locally, or send it to SQS and
    EventBridge when AWS is enabled, and optionally push it to WS clients.
    Always adds event_id and timestamp.
    """
    now_iso = datetime.utcnow().isoformat()
    event_id = data.get("event_id") or str(uuid.uuid4())

    data_with_id = dict(data)
    data_with_id["event_id"] = event_id

    body = {
        "type": event_type,
        "data": data_with_id,
        "event_id": event_id,
        "timestamp": now_iso,
        "source": config.SERVICE_NAME,
        "trace_id": trace_id,
    }

    if broadcast_ws:
        await broadcast_ws_event(event_type, data_with_id)

    if not config.USE_AWS:
        logger.info(f"[LOCAL EVENT] {event_type}: {json.dumps(data_with_id, default=str)}")
        return True

    sent = False

    async with session.client("sqs", region_name=config.AWS_REGION) as sqs, \
               session.client("events", region_name=config.AWS_REGION) as evb:

        for queue in event_targets(event_type):
            try:
                await sqs.send_message(QueueUrl=queue, MessageBody=json.dumps(body, default=str))
                sent = True
                logger.info(f"[SQS] Event '{event_type}' sent to {queue}")
            except Exception as e:
                logger.warning(f"[SQS ERROR] Failed to send '{event_type}' to {queue}: {e}")

        if config.EVENT_BUS:
            try:
                await evb.put_events(Entries=[{
                    "Source": config.SERVICE_NAME,
                    "DetailType": event_type,
                    "Detail": json.dumps(data_with_id, default=str),
                    "EventBusName": config.EVENT_BUS,
                }])
                sent = True
                logger.info(f"[EventBridge] Event '{event_type}' sent to {config.EVENT_BUS}")
            except Exception:
                logger.exception(f"[EventBridge ERROR] Failed to send '{event_type}'")

    return sent
