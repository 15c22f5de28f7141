"""
Domain-specific exception hierarchy for the salon booking back end.
"""


class SalonSlotsError(Exception):
    """Base class for all application-level errors."""


class InvalidArgument(SalonSlotsError, ValueError):
    """Raised for malformed dates, times, durations or records."""


class RecordStoreError(SalonSlotsError):
    """Raised when the record store cannot be reached or rejects a request."""


class SlotUnavailableError(SalonSlotsError):
    """Raised when the requested start time is no longer bookable."""


class AppointmentNotFoundError(SalonSlotsError):
    """Raised when no appointment matches a cancellation token."""
