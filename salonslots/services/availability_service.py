"""
Application service for looking up bookable appointment times.

The service fetches the three input snapshots (weekly hours, the day's
appointments, the day's blackout windows) through the repositories and
delegates the actual computation to the domain-level
``compute_available_slots``. Keeping the fetch here leaves the engine pure
and lets tests swap in an in-memory record store.
"""

from __future__ import annotations

import logging
from typing import Any, List

from pendulum import Time

from ..adapters.repositories import (
    AppointmentRepository,
    BlackoutRepository,
    BusinessHoursRepository,
)
from ..domain.availability import compute_available_slots
from ..domain.models import SlotRequest

logger = logging.getLogger(__name__)


class AvailabilityService:
    """Orchestrates snapshot retrieval and slot calculation."""

    def __init__(
        self,
        hours_repository: BusinessHoursRepository,
        appointment_repository: AppointmentRepository,
        blackout_repository: BlackoutRepository,
    ) -> None:
        self._hours = hours_repository
        self._appointments = appointment_repository
        self._blackouts = blackout_repository

    def find_slots(self, day: Any, duration_minutes: int) -> List[Time]:
        """
        Return bookable start times for ``day`` and a summed service duration.

        The request is validated before anything is fetched.
        """
        request = SlotRequest(date=day, service_duration_minutes=duration_minutes)

        day_hours = self._hours.list_day_hours()
        occupied = self._appointments.occupied_intervals(request.date)
        blocked = self._blackouts.blocked_intervals(request.date)

        slots = compute_available_slots(
            date=request.date,
            service_duration_minutes=request.service_duration_minutes,
            day_hours=day_hours,
            occupied_intervals=occupied,
            blocked_intervals=blocked,
        )

        logger.info(
            "%d slot(s) for %s (%d min, %d occupied, %d blocked)",
            len(slots),
            request.date,
            request.service_duration_minutes,
            len(occupied),
            len(blocked),
        )
        return slots
