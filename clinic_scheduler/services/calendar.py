"""
Calendar and slot arithmetic for weekly schedules.

Every value handled here is a plain ``datetime.date``. Instants are
collapsed to a calendar day in a single reference offset (UTC) on the way
in, so comparisons are always by (year, month, day) and never drift with
the server's local timezone.
"""
from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone
from typing import Iterator, List, Optional, Tuple, Union

from ..core.exceptions import InvalidInputError
from ..models.schedule import DayOfWeek, Shift

REFERENCE_TZ = timezone.utc
WINDOW_DAYS = 7
WEEKDAY_SHIFTS = (Shift.MORNING, Shift.AFTERNOON)
SATURDAY_SHIFTS = (Shift.MORNING,)

DateLike = Union[date, datetime, str]


@dataclass(frozen=True)
class Slot:
    date: date
    shift: Shift

    @property
    def day_of_week(self) -> DayOfWeek:
        return day_of_week(self.date)


@dataclass(frozen=True)
class ScheduleWindow:
    start: date
    end: date
    doctors_per_shift: int
    slots: Tuple[Slot, ...]

    @property
    def total_slots(self) -> int:
        return len(self.slots)

    @property
    def total_demand(self) -> int:
        return self.total_slots * self.doctors_per_shift

    def contains(self, day: date) -> bool:
        return self.start <= day <= self.end


def to_calendar_date(value: DateLike) -> date:
    """Collapse a date, datetime or ISO string to a calendar day."""
    if isinstance(value, datetime):
        if value.tzinfo is not None:
            value = value.astimezone(REFERENCE_TZ)
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        text = value.strip()
        try:
            if len(text) == 10:
                return date.fromisoformat(text)
            return to_calendar_date(datetime.fromisoformat(text.replace("Z", "+00:00")))
        except ValueError:
            raise InvalidInputError(f"Malformed date: {value!r}")
    raise InvalidInputError(f"Malformed date: {value!r}")


def to_shift(value: Union[Shift, str]) -> Shift:
    try:
        return Shift(value)
    except ValueError:
        raise InvalidInputError(f"Unknown shift: {value!r}")


def today() -> date:
    """Current calendar day in the reference offset."""
    return datetime.now(REFERENCE_TZ).date()


def day_of_week(day: date) -> DayOfWeek:
    return list(DayOfWeek)[day.weekday()]


def normalize_window_start(start: date) -> date:
    """A Sunday start rolls forward to the following Monday."""
    if day_of_week(start) is DayOfWeek.SUNDAY:
        return start + timedelta(days=1)
    return start


def iter_dates(start: date, end: date) -> Iterator[date]:
    current = start
    while current <= end:
        yield current
        current += timedelta(days=1)


def shifts_for_day(day: date, include_saturday: bool = False) -> Tuple[Shift, ...]:
    """Schedulable shifts of a day.

    Monday to Friday carry both shifts. Saturday carries a morning shift
    only in the broader weekly view; Sunday is never scheduled.
    """
    weekday = day.weekday()
    if weekday < 5:
        return WEEKDAY_SHIFTS
    if weekday == 5 and include_saturday:
        return SATURDAY_SHIFTS
    return ()


def build_slots(start: date, end: date, include_saturday: bool = False) -> List[Slot]:
    return [
        Slot(day, shift)
        for day in iter_dates(start, end)
        for shift in shifts_for_day(day, include_saturday)
    ]


def weekday_count(start: date, end: date) -> int:
    return sum(1 for day in iter_dates(start, end) if day.weekday() < 5)


def compute_window(start_date: DateLike, doctors_per_shift: int) -> ScheduleWindow:
    """Derive the 7-day generation window and its Monday-Friday slots."""
    if doctors_per_shift < 1:
        raise InvalidInputError("Number of doctors per shift must be at least 1")

    start = normalize_window_start(to_calendar_date(start_date))
    end = start + timedelta(days=WINDOW_DAYS - 1)
    slots = tuple(build_slots(start, end))
    return ScheduleWindow(
        start=start,
        end=end,
        doctors_per_shift=doctors_per_shift,
        slots=slots,
    )


def current_week(reference: Optional[date] = None) -> Tuple[date, date]:
    """Monday..Sunday of the week containing ``reference`` (default today)."""
    reference = reference or today()
    monday = reference - timedelta(days=reference.weekday())
    return monday, monday + timedelta(days=WINDOW_DAYS - 1)
