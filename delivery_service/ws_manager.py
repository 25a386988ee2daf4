# ws_manager.py
"""
Live delivery feed over websockets.

A client may follow a single order (customer tracking page) or everything
(admin dashboard). Events are fanned out concurrently and each send is capped
by WS_SEND_TIMEOUT_SECONDS, so a slow client cannot hold up a publish.
"""
import asyncio
import json
from typing import Dict, Optional

from fastapi import WebSocket

from delivery_service import config
from delivery_service.log import get_logger

logger = get_logger("ws")

# websocket -> order_id it follows (None follows every order)
subscribers: Dict[WebSocket, Optional[str]] = {}
subscribers_lock = asyncio.Lock()


async def connect_client(ws: WebSocket, order_id: Optional[str] = None):
    await ws.accept()
    async with subscribers_lock:
        subscribers[ws] = order_id
    logger.info(f"[WS CONNECT] Client following {order_id or 'all orders'}. Total clients: {len(subscribers)}")


async def disconnect_client(ws: WebSocket):
    async with subscribers_lock:
        subscribers.pop(ws, None)
    logger.info(f"[WS DISCONNECT] Total clients: {len(subscribers)}")


def _recipients(data: dict) -> list:
    order_id = data.get("order_id")
    return [ws for ws, followed in subscribers.items() if followed is None or followed == order_id]


async def _send(ws: WebSocket, message: str) -> bool:
    try:
        await asyncio.wait_for(ws.send_text(message), config.WS_SEND_TIMEOUT_SECONDS)
        return True
    except Exception as e:
        logger.warning(f"[WS BROADCAST ERROR] Dropping client: {e!r}")
        return False


async def broadcast_delivery_event(event_type: str, data: dict) -> int:
    """
    Push an event to every client following its order. Clients that fail or
    time out are dropped. Returns the number of clients reached.
    """
    async with subscribers_lock:
        recipients = _recipients(data)
    if not recipients:
        return 0

    message = json.dumps({"type": event_type, "data": data}, default=str)
    results = await asyncio.gather(*(_send(ws, message) for ws in recipients))

    dead = [ws for ws, ok in zip(recipients, results) if not ok]
    if dead:
        async with subscribers_lock:
            for ws in dead:
                subscribers.pop(ws, None)
    return len(recipients) - len(dead)
