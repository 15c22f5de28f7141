"""
Domain models for opening hours, booked intervals and the service cart.
"""

import re
from dataclasses import dataclass, field
from datetime import date, datetime, time
from typing import Any, Dict, List, Mapping, Optional

import pendulum
from pendulum import Date, Time

from .exceptions import InvalidArgument

DATE_FORMAT = "YYYY-MM-DD"
TIME_FORMAT = "HH:mm"
TIME_FORMAT_SECONDS = "HH:mm:ss"

# Anchor day used to parse a bare time of day
_EPOCH_DAY = "1970-01-01"

# Wire encodings are zero-padded with no surrounding whitespace
_DATE_PATTERN = re.compile(r"[0-9]{4}-[0-9]{2}-[0-9]{2}")
_TIME_PATTERN = re.compile(r"[0-9]{2}:[0-9]{2}(:[0-9]{2})?")


def parse_date(value: Any) -> Date:
    """
    Parse a ``YYYY-MM-DD`` string (or a date object) into a pendulum Date.

    Raises:
        InvalidArgument: If the value is not a valid calendar date
    """
    if isinstance(value, datetime):
        return pendulum.date(value.year, value.month, value.day)
    if isinstance(value, date):
        return pendulum.date(value.year, value.month, value.day)
    if not isinstance(value, str):
        raise InvalidArgument(f"Expected a date in {DATE_FORMAT} format, got {value!r}")

    if not _DATE_PATTERN.fullmatch(value):
        raise InvalidArgument(f"Invalid date {value!r}, expected {DATE_FORMAT}")

    try:
        return pendulum.from_format(value, DATE_FORMAT).date()
    except ValueError as exc:
        raise InvalidArgument(f"Invalid date {value!r}, expected {DATE_FORMAT}") from exc


def parse_time(value: Any) -> Time:
    """
    Parse a zero-padded 24-hour ``HH:MM`` string into a pendulum Time.

    ``HH:MM:SS`` is accepted too, since SQL ``time`` columns come back
    with seconds.

    Raises:
        InvalidArgument: If the value is not a valid time of day
    """
    if isinstance(value, datetime):
        value = value.time()
    if isinstance(value, time):
        return pendulum.time(value.hour, value.minute, value.second)
    if not isinstance(value, str):
        raise InvalidArgument(f"Expected a time in HH:MM format, got {value!r}")

    match = _TIME_PATTERN.fullmatch(value)
    if not match:
        raise InvalidArgument(f"Invalid time {value!r}, expected HH:MM")
    fmt = TIME_FORMAT_SECONDS if match.group(1) else TIME_FORMAT

    try:
        parsed = pendulum.from_format(f"{_EPOCH_DAY} {value}", f"{DATE_FORMAT} {fmt}")
    except ValueError as exc:
        raise InvalidArgument(f"Invalid time {value!r}, expected HH:MM") from exc

    return parsed.time()


def format_time(value: Any) -> str:
    """Format a time of day as zero-padded ``HH:MM``."""
    return parse_time(value).format(TIME_FORMAT)


def weekday_index(day: Any) -> int:
    """Return the weekday of a date with 0 = Sunday ... 6 = Saturday."""
    return parse_date(day).isoweekday() % 7


def validate_duration(minutes: Any) -> int:
    """Ensure a duration is a positive whole number of minutes."""
    if isinstance(minutes, bool) or not isinstance(minutes, int):
        raise InvalidArgument(f"Duration must be an integer number of minutes, got {minutes!r}")
    if minutes <= 0:
        raise InvalidArgument(f"Duration must be greater than zero, got {minutes}")
    return minutes


@dataclass(frozen=True)
class TimeRange:
    """
    Represents an immutable half-open time-of-day range ``[start, end)``.

    Used for both occupied (appointment) and blocked (blackout) intervals.
    ``reason`` is display-only and never takes part in comparisons.

    Invariant: start must be before end.
    """
    start: Time
    end: Time
    reason: Optional[str] = field(default=None, compare=False)

    def __post_init__(self):
        object.__setattr__(self, "start", parse_time(self.start))
        object.__setattr__(self, "end", parse_time(self.end))
        if self.start >= self.end:
            raise InvalidArgument(f"Start time {self.start} must be before end time {self.end}")

    @classmethod
    def from_record(cls, record: Mapping[str, Any]) -> "TimeRange":
        """Build a range from a record with ``start_time``/``end_time`` columns."""
        try:
            start = record["start_time"]
            end = record["end_time"]
        except KeyError as exc:
            raise InvalidArgument(f"Record is missing column {exc}") from exc
        return cls(start=start, end=end, reason=record.get("reason"))

    def duration_minutes(self) -> int:
        """Return the duration in minutes."""
        start = pendulum.naive(1970, 1, 1, self.start.hour, self.start.minute, self.start.second)
        end = pendulum.naive(1970, 1, 1, self.end.hour, self.end.minute, self.end.second)
        return int((end - start).total_seconds() / 60)

    def overlaps(self, other: "TimeRange") -> bool:
        """Check if this range overlaps with another; touching ends do not count."""
        return self.start < other.end and self.end > other.start

    def __str__(self) -> str:
        return f"{self.start.format(TIME_FORMAT)} - {self.end.format(TIME_FORMAT)}"


@dataclass(frozen=True)
class DayHours:
    """
    Opening hours for one weekday (0 = Sunday ... 6 = Saturday).

    A closed day may omit its times. An open day must open before it closes.
    """
    weekday: int
    is_closed: bool = False
    open_time: Optional[Time] = None
    close_time: Optional[Time] = None

    def __post_init__(self):
        if isinstance(self.weekday, bool) or not isinstance(self.weekday, int) \
                or self.weekday not in range(7):
            raise InvalidArgument(f"Weekday must be between 0 and 6, got {self.weekday!r}")

        if self.open_time is not None:
            object.__setattr__(self, "open_time", parse_time(self.open_time))
        if self.close_time is not None:
            object.__setattr__(self, "close_time", parse_time(self.close_time))

        if self.is_closed:
            return

        if self.open_time is None or self.close_time is None:
            raise InvalidArgument(f"Open weekday {self.weekday} needs both open and close times")
        if self.open_time >= self.close_time:
            raise InvalidArgument(
                f"Opening time {self.open_time} must be before closing time {self.close_time}"
            )

    @classmethod
    def from_record(cls, record: Mapping[str, Any]) -> "DayHours":
        """Build from a ``business_hours`` row (``day_of_week``, ``start_time``, ...)."""
        if "day_of_week" not in record:
            raise InvalidArgument("Business hours record is missing column 'day_of_week'")

        is_closed = record.get("is_closed")
        if is_closed is None:
            is_closed = False
        elif not isinstance(is_closed, bool):
            raise InvalidArgument(f"Business hours 'is_closed' must be a boolean, got {is_closed!r}")

        return cls(
            weekday=record["day_of_week"],
            is_closed=is_closed,
            open_time=record.get("start_time"),
            close_time=record.get("end_time"),
        )

    def to_record(self) -> Dict[str, Any]:
        """Serialize to a ``business_hours`` row."""
        return {
            "day_of_week": self.weekday,
            "is_closed": self.is_closed,
            "start_time": self.open_time.format(TIME_FORMAT) if self.open_time else None,
            "end_time": self.close_time.format(TIME_FORMAT) if self.close_time else None,
        }


@dataclass(frozen=True)
class SlotRequest:
    """A query for bookable start times on one date."""
    date: Date
    service_duration_minutes: int

    def __post_init__(self):
        object.__setattr__(self, "date", parse_date(self.date))
        validate_duration(self.service_duration_minutes)

    @property
    def weekday(self) -> int:
        return weekday_index(self.date)


@dataclass(frozen=True)
class Service:
    """A bookable salon service from the catalog."""
    id: str
    name: str
    price: float
    duration_minutes: int
    is_active: bool = True

    def __post_init__(self):
        validate_duration(self.duration_minutes)
        if self.price < 0:
            raise InvalidArgument(f"Price of service {self.name!r} cannot be negative")

    @classmethod
    def from_record(cls, record: Mapping[str, Any]) -> "Service":
        try:
            return cls(
                id=str(record["id"]),
                name=record["name"],
                price=float(record["price"]),
                duration_minutes=record["duration_minutes"],
                is_active=record.get("is_active") is not False,
            )
        except KeyError as exc:
            raise InvalidArgument(f"Service record is missing column {exc}") from exc


@dataclass
class CartItem:
    service: Service
    quantity: int = 1

    @property
    def subtotal(self) -> float:
        return self.service.price * self.quantity


@dataclass
class Cart:
    """
    Services selected for one booking.

    Adding a service already in the cart increments its quantity; removing
    decrements it and drops the line at zero.
    """
    items: List[CartItem] = field(default_factory=list)

    def _find(self, service_id: str) -> Optional[CartItem]:
        for item in self.items:
            if item.service.id == service_id:
                return item
        return None

    def add(self, service: Service) -> None:
        item = self._find(service.id)
        if item:
            item.quantity += 1
        else:
            self.items.append(CartItem(service=service))

    def remove(self, service_id: str) -> None:
        item = self._find(service_id)
        if item is None:
            return
        if item.quantity > 1:
            item.quantity -= 1
        else:
            self.items.remove(item)

    def clear(self) -> None:
        self.items.clear()

    def contains(self, service_id: str) -> bool:
        return self._find(service_id) is not None

    def total_price(self) -> float:
        return sum(item.subtotal for item in self.items)

    def total_duration_minutes(self) -> int:
        """Summed duration of every service unit; this is what gets booked."""
        return sum(item.service.duration_minutes * item.quantity for item in self.items)

    def item_count(self) -> int:
        return sum(item.quantity for item in self.items)

    def is_empty(self) -> bool:
        return not self.items
