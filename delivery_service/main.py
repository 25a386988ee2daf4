import asyncio
from typing import List, Optional

from fastapi import FastAPI, Path, Query, Request, Response, WebSocket, WebSocketDisconnect
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from prometheus_client import generate_latest, CONTENT_TYPE_LATEST
from sqlalchemy.exc import SQLAlchemyError

from delivery_service import archive, config, dispatch, registry, tracker
from delivery_service.consumer import start_delivery_consumer
from delivery_service.database import bounded, database
from delivery_service.errors import DeliveryError, ServiceUnavailable
from delivery_service.events import publish_event
from delivery_service.log import get_logger
from delivery_service.metrics import AVAILABLE_DRIVERS
from delivery_service.schemas import (
    CompletedDelivery, Delivery, DeliveryTracking, DriverLocation,
    DriverRegistration, LocationUpdate, Message,
)
from delivery_service.ws_manager import connect_client, disconnect_client

logger = get_logger()


# -------------------------
# FastAPI app
# -------------------------
app = FastAPI(title="Delivery Service")

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


async def safe_start_delivery_consumer():
    while True:
        try:
            logger.info("📥 Starting SQS consumer loop...")
            await start_delivery_consumer()
            return
        except Exception as e:
            logger.error(f"🔥 SQS consumer crashed: {e}")
            await asyncio.sleep(5)


# -------------------------
# Startup / Shutdown
# -------------------------
@app.on_event("startup")
async def startup():
    await database.connect()
    logger.info("📦 Delivery Service DB connected.")

    if config.USE_AWS and config.DELIVERY_QUEUE_URL:
        logger.info(f"🚀 Starting SQS consumer for Delivery Service… Queue = {config.DELIVERY_QUEUE_URL}")
        asyncio.create_task(safe_start_delivery_consumer())
    else:
        logger.info("SQS consumer disabled (USE_AWS off or DELIVERY_QUEUE_URL unset).")


@app.on_event("shutdown")
async def shutdown():
    await database.disconnect()


# -------------------------
# Error mapping
# -------------------------
@app.exception_handler(DeliveryError)
async def delivery_error_handler(request: Request, exc: DeliveryError):
    if exc.status_code >= 500:
        logger.error(f"[{exc.code}] {request.method} {request.url.path}: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.exception_handler(SQLAlchemyError)
@app.exception_handler(OSError)
async def persistence_error_handler(request: Request, exc: Exception):
    logger.exception(f"[Persistence] {request.method} {request.url.path} failed")
    error = ServiceUnavailable("Delivery store is unavailable")
    return JSONResponse(status_code=error.status_code, content=error.to_dict())


# -------------------------
# Delivery lifecycle
# -------------------------
@app.post("/delivery/update-location", response_model=Message)
async def update_driver_location(body: LocationUpdate):
    await bounded(tracker.update_location(
        body.driver_id, body.latitude, body.longitude,
        driver_name=body.driver_name, user_id=body.user_id,
    ))
    return {"success": True, "message": "Location updated successfully"}


@app.post("/delivery/create", response_model=Message)
async def create_delivery(
    order_id: str = Query(..., alias="orderId", min_length=1),
    shop_latitude: float = Query(..., alias="shopLatitude", ge=-90, le=90),
    shop_longitude: float = Query(..., alias="shopLongitude", ge=-180, le=180),
    destination_latitude: float = Query(..., alias="destinationLatitude", ge=-90, le=90),
    destination_longitude: float = Query(..., alias="destinationLongitude", ge=-180, le=180),
):
    delivery = await dispatch.create_delivery(
        order_id, shop_latitude, shop_longitude, destination_latitude, destination_longitude
    )
    return {"success": True, "message": f"Delivery created! Driver {delivery['driver_id']} assigned"}


@app.post("/delivery/mark-delivered/{driver_id}", response_model=Message)
async def mark_as_delivered(driver_id: str = Path(...)):
    await tracker.mark_delivered(driver_id)
    return {"success": True, "message": "Delivery marked as delivered and driver is now available"}


@app.get("/delivery/by-driver/{driver_id}", response_model=Delivery)
async def get_delivery_by_driver(driver_id: str = Path(...)):
    return await bounded(tracker.get_by_driver(driver_id))


@app.get("/delivery/completed-deliveries/{driver_id}", response_model=List[CompletedDelivery])
async def get_completed_deliveries(driver_id: str = Path(...)):
    return await bounded(archive.list_by_driver(driver_id))


@app.delete("/delivery/completed-deliveries/order/{order_id}", response_model=Message)
async def delete_completed_delivery(order_id: str = Path(...)):
    await bounded(archive.delete_by_order(order_id))
    return {"success": True, "message": f"Completed delivery for order {order_id} deleted successfully"}


# -------------------------
# Driver registry
# -------------------------
@app.get("/delivery/drivers", response_model=List[DriverLocation])
async def list_drivers():
    return await bounded(registry.list_drivers())


@app.get("/delivery/drivers/status/{status}", response_model=List[DriverLocation])
async def list_drivers_by_status(status: str = Path(...)):
    return await bounded(registry.list_by_status(status))


@app.get("/delivery/drivers/user/{user_id}", response_model=List[DriverLocation])
async def list_drivers_by_user(user_id: str = Path(...)):
    return await bounded(registry.list_by_user(user_id))


@app.get("/delivery/drivers/{driver_id}", response_model=DriverLocation)
async def get_driver(driver_id: str = Path(...)):
    return await bounded(registry.get_driver(driver_id))


@app.put("/delivery/drivers/{driver_id}/status", response_model=Message)
async def update_driver_status(driver_id: str = Path(...), status: str = Query(...)):
    new_status = await bounded(registry.set_status(driver_id, status))
    await publish_event("driver.status_updated", {"driver_id": driver_id, "status": new_status.value})
    return {"success": True, "message": f"Driver status updated to {new_status.value}"}


@app.delete("/delivery/drivers/{driver_id}", response_model=Message)
async def delete_driver(driver_id: str = Path(...)):
    await bounded(registry.delete(driver_id))
    return {"success": True, "message": f"Driver {driver_id} deleted successfully"}


@app.get("/delivery/{order_id}", response_model=DeliveryTracking)
async def get_tracking_info(order_id: str = Path(...)):
    return await bounded(tracker.get_tracking_info(order_id))


# -------------------------
# Internal registration
# -------------------------
@app.post("/internal/drivers/register", response_model=DriverLocation)
async def register_driver(body: DriverRegistration):
    await bounded(registry.register_driver(body.driver_id, body.driver_name, body.user_id))
    return await bounded(registry.get_driver(body.driver_id))


@app.websocket("/ws/delivery")
async def delivery_ws(websocket: WebSocket, order_id: Optional[str] = Query(None, alias="orderId")):
    await connect_client(websocket, order_id)
    try:
        while True:
            await websocket.receive_text()
            # Heartbeat
            await websocket.send_text("pong")
    except WebSocketDisconnect:
        pass
    finally:
        await disconnect_client(websocket)


# -------------------------
# Health / Metrics
# -------------------------
@app.get("/health")
async def health():
    return {"status": "delivery-service healthy"}


@app.get("/metrics")
async def metrics():
    AVAILABLE_DRIVERS.set(await bounded(registry.count_available()))
    return Response(generate_latest(), media_type=CONTENT_TYPE_LATEST)
