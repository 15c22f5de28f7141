"""
Core business logic for calculating bookable appointment start times.

Pure domain logic: no record store access, no logging, no I/O. Callers
fetch opening hours, booked appointments and blackout windows first and
pass snapshots in.
"""

from typing import Any, Iterable, List, Mapping, Optional, Union

import pendulum
from pendulum import Date, DateTime, Time

from .models import DayHours, SlotRequest, TimeRange, weekday_index

# Fixed grid on which candidate start times are generated
SLOT_GRANULARITY_MINUTES = 30

DayHoursInput = Union[DayHours, Mapping[str, Any]]
IntervalInput = Union[TimeRange, Mapping[str, Any]]


def _as_day_hours(entry: DayHoursInput) -> DayHours:
    if isinstance(entry, DayHours):
        return entry
    return DayHours.from_record(entry)


def _as_time_range(entry: IntervalInput) -> TimeRange:
    if isinstance(entry, TimeRange):
        return entry
    return TimeRange.from_record(entry)


def _at(day: Date, moment: Time) -> DateTime:
    return pendulum.naive(day.year, day.month, day.day, moment.hour, moment.minute, moment.second)


class SlotCalculator:
    """
    Calculates bookable start times for one salon's weekly opening hours.

    Algorithm:
    1. Resolve the weekday (0 = Sunday) and its opening hours; closed or
       unknown weekdays have no slots
    2. Walk the 30-minute grid from opening time while before closing time
    3. Drop candidates whose service would end after closing
    4. Drop candidates overlapping an occupied or blocked interval
    5. Return the survivors in ascending order
    """

    SLOT_GRANULARITY_MINUTES = SLOT_GRANULARITY_MINUTES

    def __init__(self, day_hours: Iterable[DayHoursInput]):
        self.day_hours: List[DayHours] = [_as_day_hours(entry) for entry in day_hours]

    def hours_for(self, day: Date) -> Optional[DayHours]:
        """
        Return the opening hours for the weekday of ``day``.

        With duplicate entries for a weekday the first one wins. Returns
        None when the weekday has no entry.
        """
        return self._hours_for_weekday(weekday_index(day))

    def _hours_for_weekday(self, weekday: int) -> Optional[DayHours]:
        for entry in self.day_hours:
            if entry.weekday == weekday:
                return entry
        return None

    def find_available_slots(
        self,
        request: SlotRequest,
        occupied_intervals: Iterable[IntervalInput] = (),
        blocked_intervals: Iterable[IntervalInput] = (),
    ) -> List[Time]:
        """
        Find all bookable start times for a request.

        Args:
            request: Date and total service duration to fit
            occupied_intervals: Non-cancelled appointments on that date
            blocked_intervals: Blackout windows on that date

        Returns:
            Ascending list of start times
        """
        unavailable = [_as_time_range(entry) for entry in occupied_intervals]
        unavailable.extend(_as_time_range(entry) for entry in blocked_intervals)

        hours = self._hours_for_weekday(request.weekday)
        if hours is None or hours.is_closed:
            return []

        opening = _at(request.date, hours.open_time)
        closing = _at(request.date, hours.close_time)

        slots: List[Time] = []
        candidate_start = opening

        while candidate_start < closing:
            candidate_end = candidate_start.add(minutes=request.service_duration_minutes)

            # Service has to be finished by closing time
            if candidate_end <= closing:
                candidate = TimeRange(start=candidate_start.time(), end=candidate_end.time())
                if not any(candidate.overlaps(busy) for busy in unavailable):
                    slots.append(candidate_start.time())

            candidate_start = candidate_start.add(minutes=self.SLOT_GRANULARITY_MINUTES)

        return slots


def compute_available_slots(
    date: Any,
    service_duration_minutes: int,
    day_hours: Iterable[DayHoursInput],
    occupied_intervals: Iterable[IntervalInput] = (),
    blocked_intervals: Iterable[IntervalInput] = (),
) -> List[Time]:
    """
    Compute bookable start times for ``date`` and a summed service duration.

    Accepts parsed values or their wire encodings (``YYYY-MM-DD`` dates,
    ``HH:MM`` times and plain record mappings).

    Raises:
        InvalidArgument: On malformed dates, times, records or a
            non-positive duration. A closed or unknown weekday is not an
            error and yields an empty list.
    """
    request = SlotRequest(date=date, service_duration_minutes=service_duration_minutes)
    calculator = SlotCalculator(day_hours=day_hours)
    return calculator.find_available_slots(
        request=request,
        occupied_intervals=occupied_intervals,
        blocked_intervals=blocked_intervals,
    )
