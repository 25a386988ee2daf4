from prometheus_client import Counter, Gauge

DELIVERIES_DISPATCHED = Counter(
    "deliveries_dispatched_total",
    "Total deliveries bound to a driver"
)

DELIVERIES_COMPLETED = Counter(
    "deliveries_completed_total",
    "Total deliveries archived as delivered"
)

DISPATCH_FAILURES = Counter(
    "dispatch_failures_total",
    "Dispatch attempts that did not produce a delivery",
    ["reason"]
)

DELIVERY_EVENTS_PROCESSED = Counter(
    "delivery_events_processed_total",
    "Total queue events handled by the delivery service",
    ["event_type"]
)

AVAILABLE_DRIVERS = Gauge(
    "available_drivers_total",
    "Drivers currently available and approved for dispatch"
)
