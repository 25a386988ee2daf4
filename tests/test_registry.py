"""Tests for the driver location registry."""

import pytest

from delivery_service import dispatch, registry
from delivery_service.errors import DriverNotFound, DriverOnDelivery, InvalidStatus
from delivery_service.schemas import DriverStatus


@pytest.mark.parametrize("raw", ["approved", "APPROVED", " Approved "])
def test_parse_status_accepts_any_case(raw: str) -> None:
    assert registry.parse_status(raw) is DriverStatus.APPROVED


def test_parse_status_rejects_unknown() -> None:
    with pytest.raises(InvalidStatus):
        registry.parse_status("on-break")


@pytest.mark.asyncio
async def test_first_ping_registers_pending_available_driver(db) -> None:
    await registry.upsert_location("d1", 6.93, 79.86, driver_name="Nimal", user_id="u1")

    driver = await registry.get_driver("d1")
    assert driver["driver_name"] == "Nimal"
    assert driver["user_id"] == "u1"
    assert driver["is_available"]
    assert driver["status"] == "PENDING"


@pytest.mark.asyncio
async def test_ping_keeps_availability_and_status(db) -> None:
    await registry.upsert_location("d1", 1.0, 1.0, driver_name="Nimal")
    await registry.set_status("d1", "approved")
    await registry.set_availability("d1", False)

    await registry.upsert_location("d1", 2.0, 3.0)

    driver = await registry.get_driver("d1")
    assert (driver["latitude"], driver["longitude"]) == (2.0, 3.0)
    assert driver["driver_name"] == "Nimal"
    assert not driver["is_available"]
    assert driver["status"] == "APPROVED"


@pytest.mark.asyncio
async def test_register_driver_only_once(db) -> None:
    assert await registry.register_driver("d1", "Kamal") is True
    await registry.upsert_location("d1", 5.0, 5.0)

    assert await registry.register_driver("d1", "Someone else") is False
    driver = await registry.get_driver("d1")
    assert driver["driver_name"] == "Kamal"
    assert driver["latitude"] == 5.0


@pytest.mark.asyncio
async def test_list_available_filters_pool(db, add_driver) -> None:
    await add_driver("a", 1.0, 1.0)
    await add_driver("b", 1.0, 1.0, status=DriverStatus.PENDING)
    await add_driver("c", 1.0, 1.0, status=DriverStatus.REJECTED)
    await add_driver("d", 1.0, 1.0)
    await registry.set_availability("d", False)

    pool = await registry.list_available()
    assert [d["driver_id"] for d in pool] == ["a"]

    pending = await registry.list_available("pending")
    assert [d["driver_id"] for d in pending] == ["b"]


@pytest.mark.asyncio
async def test_list_by_status_and_user(db, add_driver) -> None:
    await add_driver("a", 1.0, 1.0)
    await add_driver("b", 1.0, 1.0, status=DriverStatus.REJECTED)
    await registry.upsert_location("c", 0.0, 0.0, user_id="user-7")

    assert [d["driver_id"] for d in await registry.list_by_status("rejected")] == ["b"]
    assert [d["driver_id"] for d in await registry.list_by_user("user-7")] == ["c"]
    assert [d["driver_id"] for d in await registry.list_drivers()] == ["a", "b", "c"]

    with pytest.raises(InvalidStatus):
        await registry.list_by_status("busy")


@pytest.mark.asyncio
async def test_claim_driver_is_compare_and_set(db, add_driver) -> None:
    await add_driver("a", 1.0, 1.0)

    assert await registry.claim_driver("a") is True
    assert await registry.claim_driver("a") is False
    assert await registry.claim_driver("missing") is False
    assert not (await registry.get_driver("a"))["is_available"]


@pytest.mark.asyncio
async def test_unknown_driver_operations_raise_not_found(db) -> None:
    with pytest.raises(DriverNotFound):
        await registry.set_availability("ghost", True)
    with pytest.raises(DriverNotFound):
        await registry.set_status("ghost", DriverStatus.APPROVED)
    with pytest.raises(DriverNotFound):
        await registry.delete("ghost")
    with pytest.raises(DriverNotFound):
        await registry.get_driver("ghost")


@pytest.mark.asyncio
async def test_set_status_rejects_unknown_value_before_lookup(db) -> None:
    with pytest.raises(InvalidStatus):
        await registry.set_status("ghost", "nope")


@pytest.mark.asyncio
async def test_delete_driver(db, add_driver) -> None:
    await add_driver("a", 1.0, 1.0)
    await registry.delete("a")
    assert await registry.list_drivers() == []


@pytest.mark.asyncio
async def test_driver_on_delivery_cannot_be_deleted(db, add_driver) -> None:
    await add_driver("a", 6.93, 79.86)
    await dispatch.create_delivery("order-1", 6.9271, 79.8612, 6.90, 79.87)

    with pytest.raises(DriverOnDelivery):
        await registry.delete("a")

    assert (await registry.get_driver("a"))["driver_id"] == "a"
