"""
Booking and cancellation of appointments.

A booking re-checks availability against a fresh snapshot right before
writing. That narrows the read-then-book race but cannot close it: two
requests passing the check at the same moment can both insert unless the
store itself rejects overlapping rows.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Sequence

import pendulum
from pendulum import Date, Time

from ..adapters.repositories import AppointmentRepository, ClientRepository, ServiceRepository
from ..domain.exceptions import AppointmentNotFoundError, InvalidArgument, SlotUnavailableError
from ..domain.models import TIME_FORMAT, Cart, Service, parse_date, parse_time
from .availability_service import AvailabilityService

logger = logging.getLogger(__name__)


@dataclass
class BookingRequest:
    """
    Everything the booking flow collects from a customer.

    ``service_ids`` may repeat an id to book the same service twice.
    """
    client_name: str
    whatsapp: str
    date: Date
    start_time: Time
    service_ids: List[str] = field(default_factory=list)
    email: Optional[str] = None
    notes: Optional[str] = None

    def __post_init__(self):
        self.date = parse_date(self.date)
        self.start_time = parse_time(self.start_time)


@dataclass(frozen=True)
class BookingConfirmation:
    appointment_id: str
    client_id: str
    date: Date
    start_time: Time
    end_time: Time
    total_price: float
    total_duration_minutes: int
    cancellation_token: str

    def format_display(self) -> str:
        """Format: YYYY-MM-DD HH:MM-HH:MM (N min, $price)"""
        return (
            f"{self.date.format('YYYY-MM-DD')} "
            f"{self.start_time.format(TIME_FORMAT)}-{self.end_time.format(TIME_FORMAT)} "
            f"({self.total_duration_minutes} min, ${self.total_price:.2f})"
        )


class BookingService:
    """Creates and cancels appointments."""

    def __init__(
        self,
        availability_service: AvailabilityService,
        appointment_repository: AppointmentRepository,
        client_repository: ClientRepository,
        service_repository: ServiceRepository,
        advance_days: int = 30,
        today: Callable[[], Date] = lambda: pendulum.today().date(),
    ) -> None:
        self._availability = availability_service
        self._appointments = appointment_repository
        self._clients = client_repository
        self._services = service_repository
        self._advance_days = advance_days
        self._today = today

    def build_cart(self, service_ids: Sequence[str]) -> Cart:
        """
        Resolve service ids against the catalog.

        Raises:
            InvalidArgument: If the selection is empty, or any id is unknown
                or belongs to an inactive service
        """
        if not service_ids:
            raise InvalidArgument("Select at least one service")

        catalog: Dict[str, Service] = self._services.get_many(service_ids)
        unknown = sorted({sid for sid in service_ids if sid not in catalog})
        if unknown:
            raise InvalidArgument(f"Unknown service(s): {', '.join(unknown)}")

        inactive = sorted({sid for sid in service_ids if not catalog[sid].is_active})
        if inactive:
            raise InvalidArgument(f"Service(s) not currently offered: {', '.join(inactive)}")

        cart = Cart()
        for service_id in service_ids:
            cart.add(catalog[service_id])
        return cart

    def _check_booking_window(self, day: Date) -> None:
        today = self._today()
        last_day = today.add(days=self._advance_days)
        if day < today:
            raise InvalidArgument(f"Cannot book {day}: date is in the past")
        if day > last_day:
            raise InvalidArgument(
                f"Cannot book {day}: bookings open at most {self._advance_days} days ahead"
            )

    def book(self, request: BookingRequest) -> BookingConfirmation:
        """
        Book an appointment for the services in ``request``.

        Raises:
            InvalidArgument: On bad input or a date outside the booking window
            SlotUnavailableError: If the start time is not bookable right now
        """
        cart = self.build_cart(request.service_ids)
        duration = cart.total_duration_minutes()
        self._check_booking_window(request.date)

        slots = self._availability.find_slots(request.date, duration)
        if request.start_time not in slots:
            raise SlotUnavailableError(
                f"{request.start_time.format(TIME_FORMAT)} on {request.date} "
                f"is not available for {duration} minutes"
            )

        client = self._clients.upsert(
            name=request.client_name,
            whatsapp=request.whatsapp,
            email=request.email,
            notes=request.notes,
        )

        start = pendulum.naive(
            request.date.year, request.date.month, request.date.day,
            request.start_time.hour, request.start_time.minute,
        )
        end_time = start.add(minutes=duration).time()

        appointment = self._appointments.create(
            client_id=client["id"],
            day=request.date,
            start_time=request.start_time,
            end_time=end_time,
            total_price=cart.total_price(),
            total_duration_minutes=duration,
            notes=request.notes,
        )

        service_units: List[Service] = []
        for item in cart.items:
            service_units.extend([item.service] * item.quantity)
        self._appointments.add_service_lines(appointment["id"], service_units)

        logger.info(
            "Booked appointment %s on %s at %s for client %s",
            appointment["id"],
            request.date,
            request.start_time.format(TIME_FORMAT),
            client["id"],
        )

        return BookingConfirmation(
            appointment_id=appointment["id"],
            client_id=client["id"],
            date=request.date,
            start_time=request.start_time,
            end_time=end_time,
            total_price=cart.total_price(),
            total_duration_minutes=duration,
            cancellation_token=appointment["cancellation_token"],
        )

    def cancel(self, token: str) -> Dict:
        """
        Cancel the appointment identified by its cancellation token.

        Raises:
            AppointmentNotFoundError: If no appointment holds the token
        """
        rows = self._appointments.cancel_by_token(token)
        if not rows:
            raise AppointmentNotFoundError(f"No appointment found for token {token!r}")
        logger.info("Cancelled appointment %s", rows[0].get("id"))
        return rows[0]
