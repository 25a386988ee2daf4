# models.py
from datetime import datetime
from sqlalchemy import Table, Column, String, DateTime, Float, Boolean, Integer, MetaData

metadata = MetaData()

driver_locations = Table(
    "driver_locations",
    metadata,
    Column("driver_id", String, primary_key=True),
    Column("driver_name", String, nullable=True),
    Column("latitude", Float, nullable=False, default=0.0),
    Column("longitude", Float, nullable=False, default=0.0),
    Column("is_available", Boolean, nullable=False, default=True),
    Column("status", String, nullable=False, default="PENDING"),
    Column("user_id", String, nullable=True, index=True),
    Column("created_at", DateTime, default=datetime.utcnow),
    Column("updated_at", DateTime, default=datetime.utcnow),
)

deliveries = Table(
    "deliveries",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("order_id", String, nullable=False, unique=True),
    Column("driver_id", String, nullable=False, index=True),
    Column("shop_latitude", Float, nullable=False),
    Column("shop_longitude", Float, nullable=False),
    Column("destination_latitude", Float, nullable=False),
    Column("destination_longitude", Float, nullable=False),
    Column("driver_latitude", Float, nullable=False),
    Column("driver_longitude", Float, nullable=False),
    Column("is_delivered", Boolean, nullable=False, default=False),
    Column("created_at", DateTime, default=datetime.utcnow),
    Column("updated_at", DateTime, default=datetime.utcnow),
)

completed_deliveries = Table(
    "completed_deliveries",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("order_id", String, nullable=False, unique=True),
    Column("driver_id", String, nullable=False, index=True),
    Column("latitude", Float, nullable=False),
    Column("longitude", Float, nullable=False),
    Column("is_delivered", Boolean, nullable=False, default=True),
    Column("completed_at", DateTime, nullable=False, default=datetime.utcnow),
)

processed_events = Table(
    "processed_events",
    metadata,
    Column("event_id", String, primary_key=True),
    Column("event_type", String, nullable=False),
    Column("source_service", String, nullable=False),
    Column("processed_at", DateTime, default=datetime.utcnow),
)
