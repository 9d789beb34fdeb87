from sqlalchemy.orm import Session
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta, timezone
from typing import Dict, List, Optional
import logging

from ..core.config import settings
from ..core.exceptions import (
    ConflictError, InternalError, InvalidInputError, NotFoundError, SchedulingError
)
from ..models.doctor import Doctor
from ..models.schedule import DayOfWeek, ScheduleEntry, Shift
from . import calendar
from .calendar import DateLike
from .planner import plan_allocation, validate_plan
from .repository import DoctorDirectory, ScheduleStore

logger = logging.getLogger(__name__)

@dataclass(frozen=True)
class SlotRef:
    """Identifies one doctor's entry by (doctor, date, shift)."""
    doctor_id: int
    date: date
    shift: Shift

@dataclass(frozen=True)
class RemainingShift:
    date: date
    shift: Shift
    day_of_week: DayOfWeek

@dataclass
class GenerationResult:
    window_start: date
    window_end: date
    doctors_per_shift: int
    total_demand: int
    shifts_per_doctor: int
    extra_shifts: int
    assigned_count: int
    remaining_shifts: List[RemainingShift] = field(default_factory=list)
    doctor_totals: Dict[int, int] = field(default_factory=dict)

    @property
    def remaining_demand(self) -> int:
        return self.total_demand - self.assigned_count

@dataclass
class SwapResult:
    entry_a: ScheduleEntry
    entry_b: ScheduleEntry

class ScheduleService:
    def __init__(self, db: Session):
        self.db = db
        self.directory = DoctorDirectory(db)
        self.store = ScheduleStore(db)

    def generate_schedule(
        self,
        start_date: DateLike,
        doctors_per_shift: int,
        actor_id: Optional[int] = None,
    ) -> GenerationResult:
        """Generate a Monday-Friday schedule for the week starting at start_date.

        The emptiness check, the planning read and every insert share one
        transaction: either the whole window is written or nothing is.
        """
        window = calendar.compute_window(start_date, doctors_per_shift)
        logger.info(
            f"Generating schedule for {window.start} - {window.end} "
            f"({doctors_per_shift} doctors per shift)"
        )

        try:
            # Lock doctor rows before the emptiness check so a waiting
            # generation sees the rows committed by the one ahead of it
            doctors = self.directory.list_available_doctors(lock=True)

            existing = self.store.find_entries_in_window(window.start, window.end)
            if existing:
                raise ConflictError(
                    f"Schedule already exists for the week {window.start} - {window.end}"
                )

            plan = plan_allocation(
                [doctor.id for doctor in doctors], window.slots, doctors_per_shift
            )
            validate_plan(plan)

            for planned in plan:
                self.store.create_entry(
                    planned.doctor_id,
                    planned.slot.date,
                    planned.slot.shift,
                    actor_id=actor_id,
                )
            self.db.commit()
        except SchedulingError:
            self.db.rollback()
            raise
        except IntegrityError as e:
            self.db.rollback()
            logger.warning(f"Concurrent generation detected for {window.start}: {e.orig}")
            raise ConflictError(
                f"Schedule already exists for the week {window.start} - {window.end}"
            )
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Schedule generation failed: {str(e)}")
            raise InternalError(f"Error generating schedule: {str(e)}")

        totals = plan.doctor_totals()
        logger.info(
            f"Assigned {plan.assigned_count}/{plan.total_demand} shifts; "
            f"per doctor: {totals}"
        )
        if plan.remaining_demand:
            logger.info(f"{plan.remaining_demand} shifts left for manual assignment")

        return GenerationResult(
            window_start=window.start,
            window_end=window.end,
            doctors_per_shift=doctors_per_shift,
            total_demand=plan.total_demand,
            shifts_per_doctor=plan.shifts_per_doctor,
            extra_shifts=plan.extra_shifts,
            assigned_count=plan.assigned_count,
            remaining_shifts=self.get_remaining_shifts(
                window.start, window.end, doctors_per_shift, include_saturday=False
            ),
            doctor_totals=totals,
        )

    def get_remaining_shifts(
        self,
        window_start: DateLike,
        window_end: DateLike,
        doctors_per_shift: int,
        include_saturday: bool = True,
    ) -> List[RemainingShift]:
        """Slots in the range staffed by fewer than doctors_per_shift doctors."""
        start = calendar.to_calendar_date(window_start)
        end = calendar.to_calendar_date(window_end)
        if doctors_per_shift < 1:
            raise InvalidInputError("Number of doctors per shift must be at least 1")
        if start > end:
            raise InvalidInputError("Start date must be before or equal to end date")

        remaining = []
        for slot in calendar.build_slots(start, end, include_saturday=include_saturday):
            if self.store.count_entries(slot.date, slot.shift, is_off=False) < doctors_per_shift:
                remaining.append(RemainingShift(slot.date, slot.shift, slot.day_of_week))
        return remaining

    def assign_manually(
        self,
        doctor_id: int,
        day: DateLike,
        shift: Shift,
        actor_id: Optional[int] = None,
    ) -> ScheduleEntry:
        """Assign one doctor to one shift outside of generation."""
        day = calendar.to_calendar_date(day)
        shift = calendar.to_shift(shift)
        logger.info(f"Manual assignment: doctor {doctor_id} -> {day} {shift.value}")

        if day < calendar.today():
            raise InvalidInputError("Cannot assign schedule for past dates")

        try:
            doctor = self.directory.get_doctor(doctor_id)
            if not doctor:
                raise NotFoundError(f"Doctor with ID {doctor_id} not found")

            if self.store.find_entry(doctor_id, day, shift, lock=True):
                raise ConflictError(
                    f"Doctor {doctor_id} is already assigned to {shift.value} shift on {day}"
                )

            same_day = self.store.find_day_entry(doctor_id, day)
            if same_day and same_day.shift != shift:
                raise ConflictError(
                    f"Doctor {doctor_id} is already assigned to {same_day.shift.value} shift on {day}"
                )

            entry = self.store.create_entry(doctor_id, day, shift, actor_id=actor_id)
            self.db.commit()
        except SchedulingError:
            self.db.rollback()
            raise
        except IntegrityError:
            self.db.rollback()
            raise ConflictError(
                f"Doctor {doctor_id} is already assigned to {shift.value} shift on {day}"
            )
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Manual assignment failed: {str(e)}")
            raise InternalError(f"Error assigning doctor: {str(e)}")

        self.db.refresh(entry)
        return entry

    def swap_shifts(
        self,
        first: SlotRef,
        second: SlotRef,
        actor_id: Optional[int] = None,
    ) -> SwapResult:
        """Exchange the doctors of two entries and link them to each other."""
        first_day = calendar.to_calendar_date(first.date)
        second_day = calendar.to_calendar_date(second.date)
        first_shift = calendar.to_shift(first.shift)
        second_shift = calendar.to_shift(second.shift)
        if first.doctor_id == second.doctor_id:
            raise InvalidInputError("Cannot swap shifts between a doctor and themselves")
        if (first_day, first_shift) == (second_day, second_shift):
            raise InvalidInputError("Both entries are in the same slot; nothing to swap")

        try:
            entry_a = self.store.find_entry(first.doctor_id, first_day, first_shift, lock=True)
            entry_b = self.store.find_entry(second.doctor_id, second_day, second_shift, lock=True)
            if not entry_a or not entry_b:
                raise NotFoundError(
                    "Both doctors must have schedules for the specified dates and shifts"
                )
            if entry_a.is_off or entry_b.is_off:
                raise ConflictError(
                    "Cannot swap shifts when either doctor has requested time off"
                )

            doctor_a, doctor_b = entry_a.doctor_id, entry_b.doctor_id
            swapped_ids = (entry_a.id, entry_b.id)
            self._ensure_free(doctor_b, entry_a, swapped_ids)
            self._ensure_free(doctor_a, entry_b, swapped_ids)

            for entry, partner in ((entry_a, entry_b), (entry_b, entry_a)):
                self._unlink_previous_partner(entry, partner, actor_id)

            swapped_at = datetime.now(timezone.utc).replace(tzinfo=None)
            self.store.update_entry(
                entry_a,
                doctor_id=doctor_b,
                swapped_with_id=entry_b.id,
                swapped_at=swapped_at,
                updated_by_id=actor_id,
            )
            self.store.update_entry(
                entry_b,
                doctor_id=doctor_a,
                swapped_with_id=entry_a.id,
                swapped_at=swapped_at,
                updated_by_id=actor_id,
            )
            self.db.commit()
        except SchedulingError:
            self.db.rollback()
            raise
        except IntegrityError:
            self.db.rollback()
            raise ConflictError("Swap would double-book a doctor")
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Shift swap failed: {str(e)}")
            raise InternalError(f"Error swapping shifts: {str(e)}")

        self.db.refresh(entry_a)
        self.db.refresh(entry_b)
        logger.info(
            f"Swapped entries {entry_a.id} and {entry_b.id} "
            f"between doctors {doctor_a} and {doctor_b}"
        )
        return SwapResult(entry_a=entry_a, entry_b=entry_b)

    def _ensure_free(self, doctor_id: int, incoming: ScheduleEntry, swapped_ids) -> None:
        """The receiving doctor must not already work on the incoming entry's day."""
        clash = self.store.find_day_entry(doctor_id, incoming.date, exclude_ids=swapped_ids)
        if clash:
            raise ConflictError(
                f"Doctor {doctor_id} is already assigned to {clash.shift.value} shift on {incoming.date}"
            )

    def _unlink_previous_partner(
        self, entry: ScheduleEntry, partner: ScheduleEntry, actor_id: Optional[int]
    ) -> None:
        if entry.swapped_with_id is None or entry.swapped_with_id == partner.id:
            return
        previous = self.store.get_entry(entry.swapped_with_id)
        if previous is not None and previous.swapped_with_id == entry.id:
            self.store.update_entry(
                previous, swapped_with_id=None, swapped_at=None, updated_by_id=actor_id
            )

    def request_time_off(
        self,
        doctor_id: int,
        day: DateLike,
        shift: Shift,
        actor_id: Optional[int] = None,
    ) -> ScheduleEntry:
        """Mark an existing entry as time off. The row stays in place."""
        day = calendar.to_calendar_date(day)
        shift = calendar.to_shift(shift)
        try:
            entry = self.store.find_entry(doctor_id, day, shift, lock=True)
            if not entry:
                raise NotFoundError("Schedule not found")
            if not entry.is_off:
                self.store.update_entry(entry, is_off=True, updated_by_id=actor_id)
            self.db.commit()
        except SchedulingError:
            self.db.rollback()
            raise
        except SQLAlchemyError as e:
            self.db.rollback()
            raise InternalError(f"Error requesting time off: {str(e)}")

        self.db.refresh(entry)
        return entry

    def list_time_off(self, start: DateLike, end: DateLike) -> List[ScheduleEntry]:
        start, end = self._range(start, end)
        return self.store.find_entries_in_window(start, end, is_off=True)

    def get_doctor_schedule(
        self,
        doctor_id: int,
        start: Optional[DateLike] = None,
        end: Optional[DateLike] = None,
    ) -> List[ScheduleEntry]:
        doctor = self.directory.get_doctor(doctor_id)
        if not doctor:
            raise NotFoundError("Doctor not found")

        start = calendar.to_calendar_date(start) if start else calendar.today()
        end = (
            calendar.to_calendar_date(end) if end
            else start + timedelta(days=settings.SCHEDULE_LOOKAHEAD_DAYS)
        )
        start, end = self._range(start, end)
        return self.store.find_doctor_entries(doctor_id, start, end)

    def get_weekly_schedule(
        self,
        start: Optional[DateLike] = None,
        end: Optional[DateLike] = None,
    ) -> List[Doctor]:
        if not start or not end:
            start, end = calendar.current_week()
        start, end = self._range(start, end)
        return self.directory.find_doctors_with_entries(start, end)

    def get_doctors_by_date(self, day: DateLike) -> List[Doctor]:
        return self.directory.find_doctors_on_date(calendar.to_calendar_date(day))

    def _range(self, start: DateLike, end: DateLike):
        start = calendar.to_calendar_date(start)
        end = calendar.to_calendar_date(end)
        if start > end:
            raise InvalidInputError("Start date must be before or equal to end date")
        return start, end
