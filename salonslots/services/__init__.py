"""
Service layer helpers that orchestrate adapters and domain logic.
"""

from .availability_service import AvailabilityService
from .booking_service import BookingConfirmation, BookingRequest, BookingService

__all__ = ["AvailabilityService", "BookingConfirmation", "BookingRequest", "BookingService"]
