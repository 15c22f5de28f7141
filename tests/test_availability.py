"""
Tests for the availability engine.
"""

import copy

import pytest

from salonslots.domain.availability import (
    SLOT_GRANULARITY_MINUTES,
    SlotCalculator,
    compute_available_slots,
)
from salonslots.domain.exceptions import InvalidArgument
from salonslots.domain.models import DayHours, SlotRequest, TimeRange, format_time, parse_time

MONDAY = "2024-11-25"
SUNDAY = "2024-11-24"
SATURDAY = "2024-11-30"


def _week(**overrides):
    """Monday-Saturday 09:00-18:00, Sunday closed."""
    hours = [DayHours(weekday=0, is_closed=True)]
    hours.extend(DayHours(weekday=day, open_time="09:00", close_time="18:00") for day in range(1, 7))
    for weekday, entry in overrides.items():
        hours[int(weekday.lstrip("d"))] = entry
    return hours


def _grid(start, end):
    """Every 30-minute HH:MM label from start up to and including end."""
    sh, sm = map(int, start.split(":"))
    eh, em = map(int, end.split(":"))
    labels = []
    minutes = sh * 60 + sm
    while minutes <= eh * 60 + em:
        labels.append(f"{minutes // 60:02d}:{minutes % 60:02d}")
        minutes += SLOT_GRANULARITY_MINUTES
    return labels


def _labels(slots):
    return [format_time(slot) for slot in slots]


def _slots(date=MONDAY, duration=60, day_hours=None, occupied=(), blocked=()):
    return _labels(compute_available_slots(
        date=date,
        service_duration_minutes=duration,
        day_hours=_week() if day_hours is None else day_hours,
        occupied_intervals=occupied,
        blocked_intervals=blocked,
    ))


class TestScenarios:
    """Reference scenarios for a Monday opening 09:00-18:00."""

    def test_free_day(self):
        """A: no bookings yields the full grid up to the last fitting start."""
        slots = _slots(duration=60)

        assert slots == _grid("09:00", "17:00")
        assert slots[0] == "09:00"
        assert slots[-1] == "17:00"

    def test_occupied_interval_removes_overlapping_starts(self):
        """B: a 10:00-11:00 appointment removes 09:30, 10:00 and 10:30."""
        slots = _slots(duration=60, occupied=[TimeRange("10:00", "11:00")])

        assert "09:00" in slots  # ends exactly at 10:00
        assert "09:30" not in slots
        assert "10:00" not in slots
        assert "10:30" not in slots
        assert slots == ["09:00"] + _grid("11:00", "17:00")

    def test_duration_longer_than_open_window(self):
        """C: 10 hours never fits a 9 hour day."""
        assert _slots(duration=600) == []

    def test_full_day_blackout(self):
        """D: a block over the whole day removes everything."""
        blocked = [TimeRange("00:00", "23:59")]

        assert _slots(duration=30, blocked=blocked) == []
        assert _slots(duration=240, blocked=blocked, occupied=[TimeRange("09:00", "10:00")]) == []

    def test_missing_weekday_entry(self):
        """E: a weekday absent from the hours is treated as closed."""
        only_weekdays = [DayHours(weekday=day, open_time="09:00", close_time="18:00") for day in range(1, 6)]

        assert _slots(date=SATURDAY, day_hours=only_weekdays) == []

    def test_no_hours_at_all(self):
        assert _slots(day_hours=[]) == []


class TestClosedDays:
    def test_closed_sunday(self):
        assert _slots(date=SUNDAY) == []

    def test_closed_day_ignores_other_inputs(self):
        assert _slots(date=SUNDAY, duration=30, occupied=[TimeRange("10:00", "11:00")]) == []

    def test_sunday_uses_index_zero(self):
        """Weekday 0 is Sunday, not Monday."""
        sunday_only = [DayHours(weekday=0, open_time="10:00", close_time="12:00")]

        assert _slots(date=SUNDAY, duration=60, day_hours=sunday_only) == ["10:00", "10:30", "11:00"]
        assert _slots(date=MONDAY, duration=60, day_hours=sunday_only) == []

    def test_duplicate_weekday_first_entry_wins(self):
        hours = [
            DayHours(weekday=1, open_time="10:00", close_time="11:00"),
            DayHours(weekday=1, open_time="09:00", close_time="18:00"),
        ]

        assert _slots(duration=30, day_hours=hours) == ["10:00", "10:30"]


class TestBoundaries:
    def test_back_to_back_after_appointment(self):
        """A slot may start exactly when an appointment ends."""
        slots = _slots(duration=30, occupied=[TimeRange("09:00", "12:00")])

        assert slots[0] == "12:00"

    def test_blocked_interval_touching_both_sides(self):
        slots = _slots(duration=60, blocked=[TimeRange("12:00", "13:00", reason="Lunch")])

        assert "11:00" in slots
        assert "11:30" not in slots
        assert "12:00" not in slots
        assert "12:30" not in slots
        assert "13:00" in slots

    def test_last_grid_point_that_does_not_fit_is_dropped(self):
        hours = _week(d1=DayHours(weekday=1, open_time="09:00", close_time="10:15"))

        assert _slots(duration=60, day_hours=hours) == ["09:00"]

    def test_grid_starts_at_opening_time(self):
        hours = _week(d1=DayHours(weekday=1, open_time="09:15", close_time="10:45"))

        assert _slots(duration=30, day_hours=hours) == ["09:15", "09:45", "10:15"]

    def test_service_ending_at_closing_time(self):
        slots = _slots(duration=90)

        assert slots[-1] == "16:30"

    def test_short_gap_between_appointments(self):
        occupied = [TimeRange("09:00", "11:00"), TimeRange("11:45", "18:00")]

        assert _slots(duration=30, occupied=occupied) == ["11:00"]
        assert _slots(duration=60, occupied=occupied) == []

    def test_occupied_and_blocked_combine(self):
        slots = _slots(
            duration=60,
            occupied=[TimeRange("09:00", "12:00")],
            blocked=[TimeRange("13:00", "18:00")],
        )

        assert slots == ["12:00"]


class TestWireInputs:
    """Record mappings and strings are accepted and parsed at the boundary."""

    def test_records_with_seconds(self):
        day_hours = [
            {"day_of_week": 1, "start_time": "09:00:00", "end_time": "12:00:00", "is_closed": False},
            {"day_of_week": 0, "start_time": "09:00:00", "end_time": "12:00:00", "is_closed": True},
        ]
        occupied = [{"start_time": "10:00:00", "end_time": "11:00:00", "status": "scheduled"}]
        blocked = [{"start_time": "11:00", "end_time": "11:30", "reason": "Break"}]

        slots = _slots(duration=30, day_hours=day_hours, occupied=occupied, blocked=blocked)

        assert slots == ["09:00", "09:30", "11:30"]

    def test_null_is_closed_means_open(self):
        day_hours = [{"day_of_week": 1, "start_time": "09:00", "end_time": "10:00", "is_closed": None}]

        assert _slots(duration=30, day_hours=day_hours) == ["09:00", "09:30"]


class TestInvalidInput:
    @pytest.mark.parametrize("duration", [0, -15, 30.0, "60", None])
    def test_bad_duration(self, duration):
        with pytest.raises(InvalidArgument):
            _slots(duration=duration)

    def test_bad_duration_on_closed_day_still_raises(self):
        with pytest.raises(InvalidArgument):
            _slots(date=SUNDAY, duration=0)

    @pytest.mark.parametrize("date", ["2024-13-01", "25/11/2024", "", None])
    def test_bad_date(self, date):
        with pytest.raises(InvalidArgument):
            _slots(date=date)

    @pytest.mark.parametrize("date", ["2024-1-5", "2024-11-5", " 2024-11-25", "2024-11-25 "])
    def test_date_must_be_zero_padded(self, date):
        with pytest.raises(InvalidArgument):
            _slots(date=date)

    @pytest.mark.parametrize("value", ["9:00", "09:0", "09:00 ", " 09:00", "0900"])
    def test_interval_time_must_be_zero_padded(self, value):
        with pytest.raises(InvalidArgument):
            _slots(occupied=[{"start_time": value, "end_time": "11:00"}])

    def test_opening_time_must_be_zero_padded(self):
        with pytest.raises(InvalidArgument):
            _slots(day_hours=[{"day_of_week": 1, "start_time": "9:00", "end_time": "18:00"}])

    def test_bad_interval_time(self):
        with pytest.raises(InvalidArgument):
            _slots(occupied=[{"start_time": "10:00", "end_time": "25:00"}])

    def test_inverted_interval(self):
        with pytest.raises(InvalidArgument):
            _slots(blocked=[{"start_time": "12:00", "end_time": "11:00"}])

    def test_bad_day_hours(self):
        with pytest.raises(InvalidArgument):
            _slots(day_hours=[{"day_of_week": 1, "start_time": "18:00", "end_time": "09:00"}])


class TestProperties:
    """Invariants that must hold for any valid input."""

    occupied = [TimeRange("09:30", "10:15"), TimeRange("14:00", "15:30")]
    blocked = [TimeRange("12:00", "12:45")]

    @pytest.mark.parametrize("duration", [15, 30, 45, 60, 95, 180, 540])
    def test_every_slot_fits_and_is_free(self, duration):
        slots = compute_available_slots(MONDAY, duration, _week(), self.occupied, self.blocked)
        closing = parse_time("18:00")

        for slot in slots:
            candidate = TimeRange.from_record({
                "start_time": slot,
                "end_time": _shift(slot, duration),
            })
            assert candidate.end <= closing
            assert not any(candidate.overlaps(busy) for busy in self.occupied + self.blocked)

    @pytest.mark.parametrize("duration", [30, 60, 95])
    def test_strictly_ascending(self, duration):
        slots = compute_available_slots(MONDAY, duration, _week(), self.occupied, self.blocked)

        assert all(earlier < later for earlier, later in zip(slots, slots[1:]))

    def test_idempotent_and_inputs_untouched(self):
        day_hours = _week()
        occupied = list(self.occupied)
        blocked = list(self.blocked)
        snapshot = copy.deepcopy((day_hours, occupied, blocked))

        first = compute_available_slots(MONDAY, 60, day_hours, occupied, blocked)
        second = compute_available_slots(MONDAY, 60, day_hours, occupied, blocked)

        assert first == second
        assert (day_hours, occupied, blocked) == snapshot

    def test_slots_lie_on_the_grid(self):
        slots = compute_available_slots(MONDAY, 45, _week(), self.occupied, self.blocked)

        assert set(_labels(slots)) <= set(_grid("09:00", "17:30"))


class TestSlotCalculator:
    """Tests for the class form of the engine."""

    def test_hours_for(self):
        calculator = SlotCalculator(day_hours=_week())

        assert calculator.hours_for(SUNDAY).is_closed
        assert calculator.hours_for(MONDAY).weekday == 1

    def test_hours_for_missing_weekday(self):
        calculator = SlotCalculator(day_hours=[DayHours(weekday=3, open_time="09:00", close_time="17:00")])

        assert calculator.hours_for(MONDAY) is None

    def test_find_available_slots(self):
        calculator = SlotCalculator(day_hours=_week())
        request = SlotRequest(date=MONDAY, service_duration_minutes=120)

        slots = calculator.find_available_slots(request, occupied_intervals=[TimeRange("11:00", "18:00")])

        assert _labels(slots) == ["09:00"]


def _shift(slot, minutes):
    total = slot.hour * 60 + slot.minute + minutes
    return f"{total // 60:02d}:{total % 60:02d}"
