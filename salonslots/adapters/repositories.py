"""
Typed repositories over the generic record store, one per entity.
"""

import logging
import uuid
from typing import Any, Dict, Iterable, List, Optional, Sequence

from pendulum import Date, Time

from ..domain.exceptions import InvalidArgument
from ..domain.models import (
    DATE_FORMAT,
    TIME_FORMAT,
    DayHours,
    Service,
    TimeRange,
    parse_date,
    validate_duration,
)
from .record_store import RecordStoreProtocol

logger = logging.getLogger(__name__)

STATUS_SCHEDULED = "scheduled"
STATUS_CANCELLED = "cancelled"


def _date_key(day: Any) -> str:
    return parse_date(day).format(DATE_FORMAT)


class BusinessHoursRepository:
    """Weekly opening hours (table ``business_hours``)."""

    TABLE = "business_hours"

    def __init__(self, store: RecordStoreProtocol):
        self._store = store

    def list_day_hours(self) -> List[DayHours]:
        rows = self._store.query(self.TABLE, order_by=["day_of_week"])
        return [DayHours.from_record(row) for row in rows]

    def replace_all(self, day_hours: Iterable[DayHours]) -> List[DayHours]:
        """
        Replace the whole weekly schedule with the given entries.

        New weekdays are inserted first, then existing ones are updated in
        place, and weekdays missing from ``day_hours`` are deleted last, so a
        failed write never leaves the schedule empty.
        """
        entries = list(day_hours)
        weekdays = [entry.weekday for entry in entries]
        if len(set(weekdays)) != len(weekdays):
            raise InvalidArgument(f"Duplicate weekdays in business hours: {sorted(weekdays)}")

        existing = {
            row["day_of_week"] for row in self._store.query(self.TABLE)
            if row.get("day_of_week") is not None
        }

        self._store.insert(self.TABLE, [entry.to_record() for entry in entries if entry.weekday not in existing])
        for entry in entries:
            if entry.weekday in existing:
                self._store.update(self.TABLE, entry.to_record(), {"day_of_week": entry.weekday})

        stale = sorted(existing - set(weekdays))
        removed = self._store.delete(self.TABLE, {"day_of_week": ("in", stale)}) if stale else 0

        logger.info("Saved %d business hours entries, removed %d", len(entries), removed)
        return self.list_day_hours()


class AppointmentRepository:
    """Appointments and their service lines."""

    TABLE = "appointments"
    SERVICES_TABLE = "appointment_services"

    def __init__(self, store: RecordStoreProtocol):
        self._store = store

    def list_for_date(self, day: Any) -> List[Dict[str, Any]]:
        return self._store.query(
            self.TABLE,
            filters={"appointment_date": _date_key(day)},
            order_by=["start_time"],
        )

    def occupied_intervals(self, day: Any) -> List[TimeRange]:
        """Intervals held by every appointment on ``day`` that is not cancelled."""
        intervals = [
            TimeRange.from_record(row)
            for row in self.list_for_date(day)
            if (row.get("status") or "").lower() != STATUS_CANCELLED
        ]
        logger.debug("%d occupied intervals on %s", len(intervals), _date_key(day))
        return intervals

    def create(
        self,
        *,
        client_id: str,
        day: Date,
        start_time: Time,
        end_time: Time,
        total_price: float,
        total_duration_minutes: int,
        notes: Optional[str] = None,
    ) -> Dict[str, Any]:
        """Insert a scheduled appointment with a fresh cancellation token."""
        validate_duration(total_duration_minutes)
        interval = TimeRange(start=start_time, end=end_time)
        if interval.duration_minutes() != total_duration_minutes:
            raise InvalidArgument(
                f"Appointment {interval} does not last {total_duration_minutes} minutes"
            )

        rows = self._store.insert(self.TABLE, [{
            "client_id": client_id,
            "appointment_date": _date_key(day),
            "start_time": interval.start.format(TIME_FORMAT),
            "end_time": interval.end.format(TIME_FORMAT),
            "total_price": total_price,
            "total_duration_minutes": total_duration_minutes,
            "notes": notes,
            "status": STATUS_SCHEDULED,
            "cancellation_token": str(uuid.uuid4()),
        }])
        return rows[0]

    def add_service_lines(self, appointment_id: str, services: Sequence[Service]) -> List[Dict[str, Any]]:
        return self._store.insert(self.SERVICES_TABLE, [
            {"appointment_id": appointment_id, "service_id": service.id, "price": service.price}
            for service in services
        ])

    def cancel_by_token(self, token: str) -> List[Dict[str, Any]]:
        """Mark the appointment holding ``token`` as cancelled; returns updated rows."""
        if not token:
            raise InvalidArgument("Cancellation token must not be empty")
        return self._store.update(
            self.TABLE,
            {"status": STATUS_CANCELLED},
            {"cancellation_token": token},
        )


class BlackoutRepository:
    """Blocked time windows (table ``blocked_time_slots``)."""

    TABLE = "blocked_time_slots"

    def __init__(self, store: RecordStoreProtocol):
        self._store = store

    def blocked_intervals(self, day: Any) -> List[TimeRange]:
        rows = self._store.query(
            self.TABLE,
            filters={"block_date": _date_key(day)},
            order_by=["start_time"],
        )
        return [TimeRange.from_record(row) for row in rows]

    def list_upcoming(self, from_day: Any) -> List[Dict[str, Any]]:
        return self._store.query(
            self.TABLE,
            filters={"block_date": ("gte", _date_key(from_day))},
            order_by=["block_date", "start_time"],
        )

    def create(self, day: Any, start_time: Any, end_time: Any, reason: Optional[str] = None) -> Dict[str, Any]:
        interval = TimeRange(start=start_time, end=end_time, reason=reason)
        rows = self._store.insert(self.TABLE, [{
            "block_date": _date_key(day),
            "start_time": interval.start.format(TIME_FORMAT),
            "end_time": interval.end.format(TIME_FORMAT),
            "reason": reason,
        }])
        logger.info("Blocked %s on %s", interval, _date_key(day))
        return rows[0]

    def delete(self, block_id: str) -> bool:
        return self._store.delete(self.TABLE, {"id": block_id}) > 0


class ClientRepository:
    """Salon clients, identified by their WhatsApp number."""

    TABLE = "clients"

    def __init__(self, store: RecordStoreProtocol):
        self._store = store

    def find_by_whatsapp(self, whatsapp: str) -> Optional[Dict[str, Any]]:
        rows = self._store.query(self.TABLE, filters={"whatsapp": whatsapp})
        return rows[0] if rows else None

    def upsert(
        self,
        *,
        name: str,
        whatsapp: str,
        email: Optional[str] = None,
        notes: Optional[str] = None,
    ) -> Dict[str, Any]:
        """Create the client, or refresh name/email/notes if the number is known."""
        if not name or not whatsapp:
            raise InvalidArgument("Client name and WhatsApp number are required")

        existing = self.find_by_whatsapp(whatsapp)
        if existing:
            rows = self._store.update(
                self.TABLE,
                {"name": name, "email": email, "notes": notes},
                {"id": existing["id"]},
            )
            return rows[0] if rows else existing

        rows = self._store.insert(self.TABLE, [{
            "name": name,
            "whatsapp": whatsapp,
            "email": email,
            "notes": notes,
        }])
        logger.info("Created client %s", rows[0].get("id"))
        return rows[0]


class ServiceRepository:
    """Service catalog (table ``services``)."""

    TABLE = "services"

    def __init__(self, store: RecordStoreProtocol):
        self._store = store

    def list_active(self) -> List[Service]:
        rows = self._store.query(self.TABLE, filters={"is_active": True}, order_by=["name"])
        return [Service.from_record(row) for row in rows]

    def get_many(self, service_ids: Iterable[str]) -> Dict[str, Service]:
        """Return the requested services keyed by id; unknown ids are absent."""
        wanted = sorted(set(service_ids))
        if not wanted:
            return {}
        rows = self._store.query(self.TABLE, filters={"id": ("in", wanted)})
        services = [Service.from_record(row) for row in rows]
        return {service.id: service for service in services}
