# eta.py
from datetime import datetime, timedelta
from typing import Optional


class EtaEstimator:
    """Estimates when an in-flight delivery reaches its destination."""

    def estimate(self, delivery: dict, now: Optional[datetime] = None) -> datetime:
        raise NotImplementedError


class FixedOffsetEstimator(EtaEstimator):
    """Placeholder: arrival is always a fixed number of minutes from now."""

    def __init__(self, minutes: int = 15):
        self.offset = timedelta(minutes=minutes)

    def estimate(self, delivery: dict, now: Optional[datetime] = None) -> datetime:
        return (now or datetime.utcnow()) + self.offset
