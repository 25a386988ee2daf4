# errors.py
class DeliveryError(Exception):
    """
    Base error for the delivery service.
    Every subclass carries a stable code and the HTTP status it maps to.
    """
    code = "DELIVERY_ERROR"
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict:
        return {"code": self.code, "message": self.message}


class NotFound(DeliveryError):
    code = "NOT_FOUND"
    status_code = 404


class DriverNotFound(NotFound):
    def __init__(self, driver_id: str):
        super().__init__(f"Driver {driver_id} not found")
        self.driver_id = driver_id


class CompletedDeliveryNotFound(NotFound):
    def __init__(self, order_id: str):
        super().__init__(f"No completed delivery found for order {order_id}")
        self.order_id = order_id


class NoActiveDelivery(DeliveryError):
    code = "NO_ACTIVE_DELIVERY"
    status_code = 404


class NoDriversAvailable(DeliveryError):
    code = "NO_DRIVERS_AVAILABLE"
    status_code = 409

    def __init__(self, order_id: str):
        super().__init__(f"No available drivers for order {order_id}")
        self.order_id = order_id


class Conflict(DeliveryError):
    code = "CONFLICT"
    status_code = 409


class DispatchConflict(Conflict):
    def __init__(self, order_id: str, attempts: int):
        super().__init__(f"Drivers for order {order_id} were taken concurrently after {attempts} attempts")
        self.order_id = order_id
        self.attempts = attempts


class DeliveryAlreadyExists(Conflict):
    def __init__(self, order_id: str, reason: str = "already has a delivery"):
        super().__init__(f"Order {order_id} {reason}")
        self.order_id = order_id


class InvalidStatus(DeliveryError):
    code = "INVALID_STATUS"
    status_code = 400

    def __init__(self, status: str):
        super().__init__(f"Invalid driver status: {status}")
        self.status = status


class ServiceUnavailable(DeliveryError):
    code = "SERVICE_UNAVAILABLE"
    status_code = 503


class DriverOnDelivery(Conflict):
    def __init__(self, driver_id: str):
        super().__init__(f"Driver {driver_id} has an active delivery")
        self.driver_id = driver_id
