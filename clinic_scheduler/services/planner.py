"""
Greedy allocation of doctors to weekly shift slots.

The planner is pure: it takes doctor ids, the slot list and a per-slot
capacity, and returns an :class:`AllocationPlan`. Nothing is written to
the database here; the schedule service persists a plan only after
:func:`validate_plan` accepts it.

Each doctor, in ascending id order, is given a target of
``total_demand // doctor_count`` slots (the first ``total_demand %
doctor_count`` doctors get one more). Targets are filled by:

1. a full-day pass, taking both shifts of the least occupied days that
   still have room on both shifts, while at least two units remain;
2. a single-shift pass, taking the least occupied individual shifts on
   days the doctor has not been given anything yet.

A doctor left short by the passes is topped up afterwards by moving
picks along chains of doctors until a slot with room is reached. With
targets in {shifts_per_doctor, shifts_per_doctor + 1} such a chain always
exists, so every target is met and the window is covered.

Slots are never filled beyond capacity. Anything the planner still cannot
place is left as remaining demand for manual assignment.
"""
import logging
from collections import defaultdict, deque
from dataclasses import dataclass, field
from datetime import date
from typing import Dict, Iterable, Iterator, List, Optional, Sequence, Set, Tuple

from ..core.exceptions import InternalError, InvalidInputError
from ..models.schedule import SHIFT_ORDER, Shift
from .calendar import Slot

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PlannedShift:
    doctor_id: int
    slot: Slot
    full_day: bool = False


@dataclass
class AllocationPlan:
    doctors_per_shift: int
    total_demand: int
    shifts_per_doctor: int
    extra_shifts: int
    slots: List[Slot]
    assignments: Dict[int, List[PlannedShift]] = field(default_factory=dict)
    occupancy: Dict[Slot, int] = field(default_factory=dict)

    def __iter__(self) -> Iterator[PlannedShift]:
        for doctor_id in sorted(self.assignments):
            yield from self.assignments[doctor_id]

    @property
    def assigned_count(self) -> int:
        return sum(len(shifts) for shifts in self.assignments.values())

    @property
    def remaining_demand(self) -> int:
        return self.total_demand - self.assigned_count

    def doctor_totals(self) -> Dict[int, int]:
        return {doctor_id: len(shifts) for doctor_id, shifts in self.assignments.items()}

    def under_filled_slots(self) -> List[Slot]:
        return [slot for slot in self.slots if self.occupancy.get(slot, 0) < self.doctors_per_shift]


class _PlanningState:
    """Running tallies for a single planning call."""

    def __init__(self, slots: Sequence[Slot], doctors_per_shift: int):
        self.capacity = doctors_per_shift
        self.occupancy: Dict[Slot, int] = {slot: 0 for slot in slots}
        self.days: Dict[date, List[Shift]] = {}
        for slot in slots:
            self.days.setdefault(slot.date, []).append(slot.shift)
        self.doctor_days: Dict[int, Set[date]] = defaultdict(set)

    def has_room(self, slot: Slot) -> bool:
        return self.occupancy[slot] < self.capacity

    def day_occupancy(self, day: date) -> int:
        return sum(self.occupancy[Slot(day, shift)] for shift in self.days[day])

    def take(self, doctor_id: int, slot: Slot) -> None:
        self.occupancy[slot] += 1
        self.doctor_days[doctor_id].add(slot.date)


def _full_day_candidates(state: _PlanningState, doctor_id: int) -> List[date]:
    taken = state.doctor_days[doctor_id]
    candidates = [
        day for day, shifts in state.days.items()
        if len(shifts) == 2
        and day not in taken
        and all(state.has_room(Slot(day, shift)) for shift in shifts)
    ]
    return sorted(candidates, key=lambda day: (state.day_occupancy(day), day))


def _single_shift_candidates(state: _PlanningState, doctor_id: int) -> List[Slot]:
    taken = state.doctor_days[doctor_id]
    candidates = [
        Slot(day, shift)
        for day, shifts in state.days.items() if day not in taken
        for shift in shifts
        if state.has_room(Slot(day, shift))
    ]
    return sorted(
        candidates,
        key=lambda slot: (state.occupancy[slot], slot.date, SHIFT_ORDER[slot.shift]),
    )


def _assign_doctor(state: _PlanningState, doctor_id: int, target: int) -> List[PlannedShift]:
    planned: List[PlannedShift] = []

    for day in _full_day_candidates(state, doctor_id):
        if target - len(planned) < 2:
            break
        for shift in state.days[day]:
            slot = Slot(day, shift)
            state.take(doctor_id, slot)
            planned.append(PlannedShift(doctor_id, slot, full_day=True))

    for slot in _single_shift_candidates(state, doctor_id):
        if len(planned) >= target:
            break
        # One pick per day: the sibling shift of a day taken in this pass is skipped
        if slot.date in state.doctor_days[doctor_id]:
            continue
        state.take(doctor_id, slot)
        planned.append(PlannedShift(doctor_id, slot))

    return planned


def _augmenting_path(
    holdings: Dict[int, Set[Slot]],
    holders: Dict[Slot, Set[int]],
    state: _PlanningState,
    short: List[int],
) -> Optional[List[Tuple[int, Slot, Optional[Slot]]]]:
    """Find a chain of moves that gives one short doctor an extra slot.

    Each step is ``(doctor, slot taken, slot given up)``. Only the first
    doctor of the chain gains a shift; everyone else trades one slot for
    another, and the last slot taken has free capacity.
    """
    taken_by: Dict[Slot, int] = {}
    gives_up: Dict[int, Slot] = {}
    seen = set(short)
    queue = deque(short)

    while queue:
        doctor_id = queue.popleft()
        for slot in state.occupancy:
            if slot in holdings[doctor_id] or slot in taken_by:
                continue
            taken_by[slot] = doctor_id
            if state.has_room(slot):
                moves = []
                while True:
                    mover = taken_by[slot]
                    given = gives_up.get(mover)
                    moves.append((mover, slot, given))
                    if given is None:
                        return moves
                    slot = given
            for holder in sorted(holders[slot]):
                if holder not in seen:
                    seen.add(holder)
                    gives_up[holder] = slot
                    queue.append(holder)
    return None


def _rebalance(
    state: _PlanningState,
    plan: AllocationPlan,
    targets: Dict[int, int],
) -> None:
    """Top up doctors the greedy passes left below target.

    The single-shift pass can strand a doctor whose only open slots sit on
    days they already work. Picks are then shifted along alternating chains
    until every target is met or no chain exists.
    """
    holdings = {
        doctor_id: {planned.slot for planned in shifts}
        for doctor_id, shifts in plan.assignments.items()
    }
    holders: Dict[Slot, Set[int]] = defaultdict(set)
    for doctor_id, held in holdings.items():
        for slot in held:
            holders[slot].add(doctor_id)

    touched: Set[int] = set()
    while True:
        short = [d for d in sorted(holdings) if len(holdings[d]) < targets[d]]
        if not short:
            break
        moves = _augmenting_path(holdings, holders, state, short)
        if moves is None:
            logger.warning(f"Doctors {short} stay below target; no slot can be freed")
            break
        for doctor_id, slot, given in moves:
            holdings[doctor_id].add(slot)
            holders[slot].add(doctor_id)
            if given is not None:
                holdings[doctor_id].discard(given)
                holders[given].discard(doctor_id)
            touched.add(doctor_id)
        state.occupancy[moves[-1][1]] += 1

    for doctor_id in sorted(touched):
        held = holdings[doctor_id]
        state.doctor_days[doctor_id] = {slot.date for slot in held}
        plan.assignments[doctor_id] = [
            PlannedShift(
                doctor_id,
                slot,
                full_day=all(Slot(slot.date, s) in held for s in state.days[slot.date])
                and len(state.days[slot.date]) == 2,
            )
            for slot in sorted(held, key=lambda s: (s.date, SHIFT_ORDER[s.shift]))
        ]
        logger.debug(f"Doctor {doctor_id} rebalanced to {len(held)} shifts")


def plan_allocation(
    doctor_ids: Iterable[int],
    slots: Sequence[Slot],
    doctors_per_shift: int,
) -> AllocationPlan:
    """Plan which doctors cover which slots of a window."""
    doctors = sorted(set(doctor_ids))
    if doctors_per_shift < 1:
        raise InvalidInputError("Number of doctors per shift must be at least 1")
    if not doctors:
        raise InvalidInputError("No available doctors found")
    if doctors_per_shift > len(doctors):
        raise InvalidInputError(
            f"Number of doctors per shift ({doctors_per_shift}) cannot exceed "
            f"total available doctors ({len(doctors)})"
        )

    total_demand = len(slots) * doctors_per_shift
    shifts_per_doctor, extra_shifts = divmod(total_demand, len(doctors))
    logger.info(
        f"Planning {len(slots)} slots x {doctors_per_shift} doctors = {total_demand} shifts "
        f"for {len(doctors)} doctors ({shifts_per_doctor} each, {extra_shifts} extra)"
    )

    state = _PlanningState(slots, doctors_per_shift)
    plan = AllocationPlan(
        doctors_per_shift=doctors_per_shift,
        total_demand=total_demand,
        shifts_per_doctor=shifts_per_doctor,
        extra_shifts=extra_shifts,
        slots=list(slots),
    )

    targets: Dict[int, int] = {}
    for index, doctor_id in enumerate(doctors):
        targets[doctor_id] = shifts_per_doctor + (1 if index < extra_shifts else 0)
        plan.assignments[doctor_id] = _assign_doctor(state, doctor_id, targets[doctor_id])
        logger.debug(
            f"Doctor {doctor_id}: {len(plan.assignments[doctor_id])}/{targets[doctor_id]} "
            f"shifts planned"
        )

    _rebalance(state, plan, targets)

    plan.occupancy = dict(state.occupancy)
    return plan


def validate_plan(plan: AllocationPlan) -> None:
    """Reject a plan that would break slot capacity or same-day rules.

    A doctor may hold two shifts of one day only as a full-day pair.
    """
    known_slots = set(plan.slots)
    occupancy: Dict[Slot, int] = defaultdict(int)

    for doctor_id, shifts in plan.assignments.items():
        by_day: Dict[date, List[PlannedShift]] = defaultdict(list)
        for planned in shifts:
            if planned.slot not in known_slots:
                raise InternalError(
                    f"Plan assigns doctor {doctor_id} to {planned.slot.date} "
                    f"{planned.slot.shift.value}, outside the window"
                )
            occupancy[planned.slot] += 1
            by_day[planned.slot.date].append(planned)

        for day, picks in by_day.items():
            if len(picks) == 1:
                continue
            shifts_taken = {pick.slot.shift for pick in picks}
            if len(picks) != 2 or len(shifts_taken) != 2 or not all(pick.full_day for pick in picks):
                raise InternalError(
                    f"Plan double-books doctor {doctor_id} on {day}"
                )

    for slot, count in occupancy.items():
        if count > plan.doctors_per_shift:
            raise InternalError(
                f"Plan over-fills {slot.date} {slot.shift.value}: "
                f"{count} > {plan.doctors_per_shift}"
            )
