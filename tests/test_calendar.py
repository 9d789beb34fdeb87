import pytest
from datetime import date, datetime, timedelta, timezone

from clinic_scheduler.core.exceptions import InvalidInputError
from clinic_scheduler.models.schedule import DayOfWeek, Shift
from clinic_scheduler.services import calendar
from clinic_scheduler.services.calendar import Slot

# 2024-01-01 is a Monday
MONDAY = date(2024, 1, 1)
SUNDAY_BEFORE_NEXT_WEEK = date(2024, 1, 7)

class TestCalendarDates:

    def test_day_of_week(self):
        """Weekday names follow the calendar date."""
        assert calendar.day_of_week(MONDAY) is DayOfWeek.MONDAY
        assert calendar.day_of_week(MONDAY + timedelta(days=5)) is DayOfWeek.SATURDAY
        assert calendar.day_of_week(SUNDAY_BEFORE_NEXT_WEEK) is DayOfWeek.SUNDAY

    def test_to_calendar_date_accepts_dates_and_strings(self):
        assert calendar.to_calendar_date(MONDAY) == MONDAY
        assert calendar.to_calendar_date("2024-01-01") == MONDAY
        assert calendar.to_calendar_date("2024-01-01T08:30:00Z") == MONDAY
        assert calendar.to_calendar_date(datetime(2024, 1, 1, 23, 59)) == MONDAY

    def test_to_calendar_date_uses_reference_offset(self):
        """An evening instant west of UTC already belongs to the next UTC day."""
        eastern = timezone(timedelta(hours=-5))
        instant = datetime(2024, 1, 1, 21, 0, tzinfo=eastern)
        assert calendar.to_calendar_date(instant) == date(2024, 1, 2)
        assert calendar.to_calendar_date("2024-01-01T21:00:00-05:00") == date(2024, 1, 2)

    def test_to_calendar_date_rejects_malformed_input(self):
        with pytest.raises(InvalidInputError):
            calendar.to_calendar_date("next tuesday")
        with pytest.raises(InvalidInputError):
            calendar.to_calendar_date(20240101)

    def test_normalize_window_start(self):
        """Only a Sunday start moves, and only by one day."""
        assert calendar.normalize_window_start(SUNDAY_BEFORE_NEXT_WEEK) == date(2024, 1, 8)
        assert calendar.normalize_window_start(MONDAY) == MONDAY
        wednesday = MONDAY + timedelta(days=2)
        assert calendar.normalize_window_start(wednesday) == wednesday

    def test_current_week(self):
        thursday = MONDAY + timedelta(days=3)
        assert calendar.current_week(thursday) == (MONDAY, MONDAY + timedelta(days=6))
        assert calendar.current_week(SUNDAY_BEFORE_NEXT_WEEK) == (MONDAY, SUNDAY_BEFORE_NEXT_WEEK)

class TestSlots:

    def test_shifts_for_day(self):
        saturday = MONDAY + timedelta(days=5)
        assert calendar.shifts_for_day(MONDAY) == (Shift.MORNING, Shift.AFTERNOON)
        assert calendar.shifts_for_day(saturday) == ()
        assert calendar.shifts_for_day(saturday, include_saturday=True) == (Shift.MORNING,)
        assert calendar.shifts_for_day(SUNDAY_BEFORE_NEXT_WEEK, include_saturday=True) == ()

    def test_build_slots_orders_by_date_then_shift(self):
        slots = calendar.build_slots(MONDAY, MONDAY + timedelta(days=1))
        assert slots == [
            Slot(MONDAY, Shift.MORNING),
            Slot(MONDAY, Shift.AFTERNOON),
            Slot(date(2024, 1, 2), Shift.MORNING),
            Slot(date(2024, 1, 2), Shift.AFTERNOON),
        ]

    def test_weekly_view_includes_saturday_morning(self):
        slots = calendar.build_slots(MONDAY, SUNDAY_BEFORE_NEXT_WEEK, include_saturday=True)
        assert len(slots) == 11
        assert slots[-1] == Slot(date(2024, 1, 6), Shift.MORNING)

class TestComputeWindow:

    def test_monday_window(self):
        window = calendar.compute_window(MONDAY, 2)
        assert window.start == MONDAY
        assert window.end == SUNDAY_BEFORE_NEXT_WEEK
        assert window.total_slots == 10
        assert window.total_demand == 20
        assert {slot.date.weekday() for slot in window.slots} == {0, 1, 2, 3, 4}

    def test_sunday_start_moves_to_monday(self):
        window = calendar.compute_window(SUNDAY_BEFORE_NEXT_WEEK, 1)
        assert window.start == date(2024, 1, 8)
        assert window.end == date(2024, 1, 14)
        assert window.slots[0] == Slot(date(2024, 1, 8), Shift.MORNING)

    def test_midweek_start_spans_seven_days(self):
        """A Wednesday start still covers five weekdays across the weekend."""
        wednesday = MONDAY + timedelta(days=2)
        window = calendar.compute_window(wednesday, 1)
        assert window.end == date(2024, 1, 9)
        assert calendar.weekday_count(window.start, window.end) == 5
        assert window.total_slots == 10
        assert not window.contains(MONDAY)

    def test_rejects_zero_doctors_per_shift(self):
        with pytest.raises(InvalidInputError):
            calendar.compute_window(MONDAY, 0)
