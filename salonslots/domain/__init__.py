"""
Domain layer - Pure business logic without external dependencies.
"""

from .availability import SLOT_GRANULARITY_MINUTES, SlotCalculator, compute_available_slots
from .exceptions import InvalidArgument
from .models import Cart, DayHours, Service, SlotRequest, TimeRange

__all__ = [
    "SLOT_GRANULARITY_MINUTES",
    "SlotCalculator",
    "compute_available_slots",
    "InvalidArgument",
    "Cart",
    "DayHours",
    "Service",
    "SlotRequest",
    "TimeRange",
]
