import pytest
from collections import Counter, defaultdict
from datetime import date, timedelta

from clinic_scheduler.core.exceptions import InternalError, InvalidInputError
from clinic_scheduler.models.schedule import Shift
from clinic_scheduler.services import calendar
from clinic_scheduler.services.calendar import Slot
from clinic_scheduler.services.planner import (
    AllocationPlan, PlannedShift, plan_allocation, validate_plan
)

MONDAY = date(2024, 1, 1)
WEEK_SLOTS = calendar.compute_window(MONDAY, 1).slots

def day(offset):
    return MONDAY + timedelta(days=offset)

def occupancy(plan):
    return Counter(planned.slot for planned in plan)

class TestPlanAllocation:

    def test_three_doctors_one_per_shift(self):
        """10 slots over 3 doctors: 4/3/3 and nothing left over."""
        plan = plan_allocation([1, 2, 3], WEEK_SLOTS, 1)

        assert plan.total_demand == 10
        assert plan.shifts_per_doctor == 3
        assert plan.extra_shifts == 1
        assert plan.doctor_totals() == {1: 4, 2: 3, 3: 3}
        assert plan.assigned_count == 10
        assert plan.remaining_demand == 0
        assert plan.under_filled_slots() == []

    def test_full_days_come_first_on_least_filled_days(self):
        plan = plan_allocation([1, 2, 3], WEEK_SLOTS, 1)
        first = [(p.slot.date, p.slot.shift, p.full_day) for p in plan.assignments[1]]
        assert first == [
            (day(0), Shift.MORNING, True),
            (day(0), Shift.AFTERNOON, True),
            (day(1), Shift.MORNING, True),
            (day(1), Shift.AFTERNOON, True),
        ]
        second = [(p.slot.date, p.slot.shift, p.full_day) for p in plan.assignments[2]]
        assert second == [
            (day(2), Shift.MORNING, True),
            (day(2), Shift.AFTERNOON, True),
            (day(3), Shift.MORNING, False),
        ]

    def test_doctor_order_is_by_id(self):
        shuffled = plan_allocation([3, 1, 2], WEEK_SLOTS, 1)
        ordered = plan_allocation([1, 2, 3], WEEK_SLOTS, 1)
        assert list(shuffled) == list(ordered)

    @pytest.mark.parametrize("doctor_count,per_shift,expected", [
        (1, 1, {10}),
        (2, 1, {5}),
        (3, 1, {3, 4}),
        (6, 1, {1, 2}),
        (3, 2, {6, 7}),
        (4, 2, {5}),
    ])
    def test_balance_bound(self, doctor_count, per_shift, expected):
        plan = plan_allocation(range(1, doctor_count + 1), WEEK_SLOTS, per_shift)
        totals = plan.doctor_totals()
        assert set(totals.values()) <= expected
        assert min(totals.values()) >= plan.shifts_per_doctor
        assert plan.assigned_count == plan.total_demand

    @pytest.mark.parametrize("doctor_count", range(1, 26))
    def test_balance_bound_for_every_capacity(self, doctor_count):
        for per_shift in range(1, doctor_count + 1):
            plan = plan_allocation(range(1, doctor_count + 1), WEEK_SLOTS, per_shift)
            totals = plan.doctor_totals()
            assert set(totals.values()) <= {plan.shifts_per_doctor, plan.shifts_per_doctor + 1}
            assert plan.remaining_demand == 0
            assert plan.under_filled_slots() == []
            validate_plan(plan)

    def test_short_doctor_is_topped_up(self):
        """7 doctors at 6 per shift: the last doctor would otherwise stop at 7."""
        plan = plan_allocation(range(1, 8), WEEK_SLOTS, 6)
        assert plan.shifts_per_doctor == 8
        assert plan.doctor_totals()[7] >= 8
        assert sorted(plan.doctor_totals().values()) == [8, 8, 8, 9, 9, 9, 9]
        assert max(occupancy(plan).values()) == 6

    @pytest.mark.parametrize("doctor_count", range(1, 8))
    def test_capacity_and_same_day_rules_hold(self, doctor_count):
        for per_shift in range(1, doctor_count + 1):
            plan = plan_allocation(range(1, doctor_count + 1), WEEK_SLOTS, per_shift)
            assert max(occupancy(plan).values()) <= per_shift
            assert plan.assigned_count <= plan.total_demand
            validate_plan(plan)

            for shifts in plan.assignments.values():
                per_day = defaultdict(list)
                for planned in shifts:
                    per_day[planned.slot.date].append(planned)
                for picks in per_day.values():
                    assert len(picks) == 1 or all(p.full_day for p in picks)

    def test_single_shift_pass_prefers_least_occupied_shift(self):
        """With an odd target the last unit goes to an empty shift."""
        plan = plan_allocation([1, 2], WEEK_SLOTS[:6], 1)
        # 6 slots, 2 doctors: doctor 1 takes Monday plus Tuesday morning
        assert [p.slot for p in plan.assignments[1]] == [
            Slot(day(0), Shift.MORNING),
            Slot(day(0), Shift.AFTERNOON),
            Slot(day(1), Shift.MORNING),
        ]
        assert plan.under_filled_slots() == []

    def test_rejects_more_doctors_per_shift_than_doctors(self):
        with pytest.raises(InvalidInputError) as exc:
            plan_allocation([1, 2, 3], WEEK_SLOTS, 5)
        assert "cannot exceed" in exc.value.detail

    def test_rejects_empty_roster(self):
        with pytest.raises(InvalidInputError):
            plan_allocation([], WEEK_SLOTS, 1)

    def test_rejects_zero_doctors_per_shift(self):
        with pytest.raises(InvalidInputError):
            plan_allocation([1], WEEK_SLOTS, 0)

class TestValidatePlan:

    def _plan(self, assignments, per_shift=1):
        return AllocationPlan(
            doctors_per_shift=per_shift,
            total_demand=len(WEEK_SLOTS) * per_shift,
            shifts_per_doctor=0,
            extra_shifts=0,
            slots=list(WEEK_SLOTS),
            assignments=assignments,
        )

    def test_accepts_full_day_pair(self):
        plan = self._plan({1: [
            PlannedShift(1, Slot(day(0), Shift.MORNING), full_day=True),
            PlannedShift(1, Slot(day(0), Shift.AFTERNOON), full_day=True),
        ]})
        validate_plan(plan)

    def test_rejects_split_day(self):
        plan = self._plan({1: [
            PlannedShift(1, Slot(day(0), Shift.MORNING)),
            PlannedShift(1, Slot(day(0), Shift.AFTERNOON)),
        ]})
        with pytest.raises(InternalError):
            validate_plan(plan)

    def test_rejects_over_filled_slot(self):
        plan = self._plan({
            1: [PlannedShift(1, Slot(day(0), Shift.MORNING))],
            2: [PlannedShift(2, Slot(day(0), Shift.MORNING))],
        })
        with pytest.raises(InternalError):
            validate_plan(plan)

    def test_rejects_slot_outside_window(self):
        saturday = Slot(day(5), Shift.MORNING)
        plan = self._plan({1: [PlannedShift(1, saturday)]})
        with pytest.raises(InternalError):
            validate_plan(plan)
