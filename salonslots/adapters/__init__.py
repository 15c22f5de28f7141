"""
Adapters layer - Record store access (hosted REST API or in-memory).
"""

from .record_store import InMemoryRecordStore, RecordStoreProtocol, RestRecordStore
from .repositories import (
    AppointmentRepository,
    BlackoutRepository,
    BusinessHoursRepository,
    ClientRepository,
    ServiceRepository,
)

__all__ = [
    "InMemoryRecordStore",
    "RecordStoreProtocol",
    "RestRecordStore",
    "AppointmentRepository",
    "BlackoutRepository",
    "BusinessHoursRepository",
    "ClientRepository",
    "ServiceRepository",
]
