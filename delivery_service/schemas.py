from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class DriverStatus(str, Enum):
    """Onboarding status of a driver. Only APPROVED drivers are dispatchable."""
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)


class LocationUpdate(CamelModel):
    driver_id: str = Field(..., min_length=1)
    driver_name: Optional[str] = None
    latitude: float = Field(..., ge=-90, le=90)
    longitude: float = Field(..., ge=-180, le=180)
    user_id: Optional[str] = None


class DriverRegistration(CamelModel):
    driver_id: str = Field(..., min_length=1)
    driver_name: Optional[str] = None
    user_id: Optional[str] = None


class DriverLocation(CamelModel):
    driver_id: str
    driver_name: Optional[str] = None
    latitude: float
    longitude: float
    is_available: bool
    status: DriverStatus
    user_id: Optional[str] = None


class Delivery(CamelModel):
    id: int
    order_id: str
    driver_id: str
    shop_latitude: float
    shop_longitude: float
    destination_latitude: float
    destination_longitude: float
    driver_latitude: float
    driver_longitude: float
    is_delivered: bool = False


class CompletedDelivery(CamelModel):
    id: int
    order_id: str
    driver_id: str
    latitude: float
    longitude: float
    is_delivered: bool = True
    completed_at: datetime


class DeliveryTracking(CamelModel):
    order_id: str
    is_delivered: bool = False
    estimated_arrival: datetime
    driver_name: Optional[str] = None
    driver_latitude: float
    driver_longitude: float
    customer_latitude: float
    customer_longitude: float


class Message(BaseModel):
    success: bool = True
    message: str
