"""Tests for queue event handling."""

import pytest

from delivery_service import consumer, dispatch, registry
from delivery_service.schemas import DriverStatus


@pytest.mark.asyncio
async def test_driver_registered_event_adds_driver(db) -> None:
    handled = await consumer.dispatch_message({
        "type": "driver.registered",
        "event_id": "evt-1",
        "data": {"driver_id": "d1", "name": "Kasun", "user_id": "u-1"},
    })

    assert handled is True
    driver = await registry.get_driver("d1")
    assert driver["driver_name"] == "Kasun"
    assert (driver["latitude"], driver["longitude"]) == (0.0, 0.0)
    assert driver["is_available"]
    assert driver["status"] == DriverStatus.PENDING.value


@pytest.mark.asyncio
async def test_duplicate_event_is_skipped(db, monkeypatch) -> None:
    calls = []

    async def _register(driver_id, name=None, user_id=None):
        calls.append(driver_id)
        return True

    monkeypatch.setattr(registry, "register_driver", _register)
    message = {"type": "driver.registered", "event_id": "evt-1", "data": {"driver_id": "d1"}}

    await consumer.dispatch_message(message)
    await consumer.dispatch_message(message)

    assert calls == ["d1"]


@pytest.mark.asyncio
async def test_unknown_event_type_is_ignored(db) -> None:
    assert await consumer.dispatch_message({"type": "payment.completed", "data": {}}) is False


@pytest.mark.asyncio
async def test_order_created_with_coordinates_dispatches(db, add_driver) -> None:
    await add_driver("d1", 6.93, 79.86)

    await consumer.dispatch_message({
        "type": "order.created",
        "event_id": "evt-7",
        "data": {
            "order_id": "order-7",
            "shop_latitude": 6.9271, "shop_longitude": 79.8612,
            "destination_latitude": 6.90, "destination_longitude": 79.87,
        },
    })

    delivery = await dispatch.get_by_order("order-7")
    assert delivery["driver_id"] == "d1"


@pytest.mark.asyncio
async def test_order_created_without_coordinates_waits(db, add_driver) -> None:
    await add_driver("d1", 6.93, 79.86)

    await consumer.dispatch_message({"type": "order.created", "data": {"order_id": "order-8"}})

    assert await dispatch.get_by_order("order-8") is None
    assert (await registry.get_driver("d1"))["is_available"]


@pytest.mark.asyncio
async def test_order_created_without_drivers_publishes_pending(db, monkeypatch) -> None:
    published = []

    async def _publish(event_type, data, trace_id=None, broadcast_ws=True):
        published.append((event_type, data))
        return True

    monkeypatch.setattr(consumer, "publish_event", _publish)

    await consumer.dispatch_message({
        "type": "order.created",
        "event_id": "evt-9",
        "data": {
            "order_id": "order-9",
            "shop_latitude": 6.9271, "shop_longitude": 79.8612,
            "destination_latitude": 6.90, "destination_longitude": 79.87,
        },
    })

    assert published == [("delivery.pending", {"order_id": "order-9", "reason": "no drivers available"})]


ORDER_EVENT = {
    "type": "order.created",
    "event_id": "evt-10",
    "data": {
        "order_id": "order-10",
        "shop_latitude": 6.9271, "shop_longitude": 79.8612,
        "destination_latitude": 6.90, "destination_longitude": 79.87,
    },
}


@pytest.mark.asyncio
async def test_order_created_is_retried_after_store_failure(db, add_driver, monkeypatch) -> None:
    await add_driver("d1", 6.93, 79.86)
    real_create = dispatch.create_delivery
    attempts = []

    async def _flaky_create(*args):
        attempts.append(args[0])
        if len(attempts) == 1:
            raise OSError("connection reset")
        return await real_create(*args)

    monkeypatch.setattr(dispatch, "create_delivery", _flaky_create)

    with pytest.raises(OSError):
        await consumer.dispatch_message(ORDER_EVENT)
    await consumer.dispatch_message(ORDER_EVENT)

    assert attempts == ["order-10", "order-10"]
    assert (await dispatch.get_by_order("order-10"))["driver_id"] == "d1"


@pytest.mark.asyncio
async def test_driver_registered_is_retried_after_store_failure(db, monkeypatch) -> None:
    real_register = registry.register_driver
    attempts = []

    async def _flaky_register(driver_id, name=None, user_id=None):
        attempts.append(driver_id)
        if len(attempts) == 1:
            raise OSError("connection reset")
        return await real_register(driver_id, name, user_id)

    monkeypatch.setattr(registry, "register_driver", _flaky_register)
    message = {"type": "driver.registered", "event_id": "evt-11", "data": {"driver_id": "d2", "name": "Ruwan"}}

    with pytest.raises(OSError):
        await consumer.dispatch_message(message)
    await consumer.dispatch_message(message)

    assert attempts == ["d2", "d2"]
    assert (await registry.get_driver("d2"))["driver_name"] == "Ruwan"
