from sqlalchemy.orm import Session, contains_eager
from datetime import date
from typing import Iterable, List, Optional

from ..models.doctor import Doctor
from ..models.schedule import ScheduleEntry, Shift
from .calendar import day_of_week

class DoctorDirectory:
    """Read-only queries over the doctor roster."""

    def __init__(self, db: Session):
        self.db = db

    def _active(self):
        return self.db.query(Doctor).filter(Doctor.deleted_at.is_(None))

    def list_available_doctors(self, lock: bool = False) -> List[Doctor]:
        """Doctors eligible for generation, ordered by id."""
        query = self._active().filter(Doctor.is_available.is_(True)).order_by(Doctor.id)
        if lock:
            query = query.with_for_update()
        return query.all()

    def get_doctor(self, doctor_id: int) -> Optional[Doctor]:
        return self._active().filter(Doctor.id == doctor_id).first()

    def find_doctors_on_date(self, day: date) -> List[Doctor]:
        """Doctors holding a working (non-off) entry on the given day."""
        return (
            self._active()
            .join(Doctor.schedules)
            .filter(
                ScheduleEntry.date == day,
                ScheduleEntry.is_off.is_(False),
                ScheduleEntry.deleted_at.is_(None),
            )
            .options(contains_eager(Doctor.schedules))
            .order_by(Doctor.id, ScheduleEntry.shift)
            .populate_existing()
            .all()
        )

    def find_doctors_with_entries(self, start: date, end: date) -> List[Doctor]:
        """Doctors with at least one entry in the range, entries limited to it."""
        return (
            self._active()
            .join(Doctor.schedules)
            .filter(
                ScheduleEntry.date >= start,
                ScheduleEntry.date <= end,
                ScheduleEntry.deleted_at.is_(None),
            )
            .options(contains_eager(Doctor.schedules))
            .order_by(Doctor.id, ScheduleEntry.date, ScheduleEntry.shift)
            .populate_existing()
            .all()
        )

class ScheduleStore:
    """Queries and writes for schedule entries.

    Writes are flushed but never committed here; the calling service owns
    the transaction.
    """

    def __init__(self, db: Session):
        self.db = db

    def _live(self):
        return self.db.query(ScheduleEntry).filter(ScheduleEntry.deleted_at.is_(None))

    def find_entries_in_window(
        self, start: date, end: date, is_off: Optional[bool] = None
    ) -> List[ScheduleEntry]:
        query = self._live().filter(
            ScheduleEntry.date >= start,
            ScheduleEntry.date <= end,
        )
        if is_off is not None:
            query = query.filter(ScheduleEntry.is_off.is_(is_off))
        return query.order_by(ScheduleEntry.date, ScheduleEntry.doctor_id).all()

    def find_doctor_entries(self, doctor_id: int, start: date, end: date) -> List[ScheduleEntry]:
        return (
            self._live()
            .filter(
                ScheduleEntry.doctor_id == doctor_id,
                ScheduleEntry.date >= start,
                ScheduleEntry.date <= end,
            )
            .order_by(ScheduleEntry.date, ScheduleEntry.shift)
            .all()
        )

    def find_entry(
        self, doctor_id: int, day: date, shift: Shift, lock: bool = False
    ) -> Optional[ScheduleEntry]:
        """Entry for an exact (doctor, date, shift), off or not."""
        query = self._live().filter(
            ScheduleEntry.doctor_id == doctor_id,
            ScheduleEntry.date == day,
            ScheduleEntry.shift == shift,
        )
        if lock:
            query = query.with_for_update()
        return query.first()

    def find_day_entry(
        self, doctor_id: int, day: date, exclude_ids: Iterable[int] = ()
    ) -> Optional[ScheduleEntry]:
        """Any working entry the doctor holds on the day."""
        query = self._live().filter(
            ScheduleEntry.doctor_id == doctor_id,
            ScheduleEntry.date == day,
            ScheduleEntry.is_off.is_(False),
        )
        exclude_ids = list(exclude_ids)
        if exclude_ids:
            query = query.filter(ScheduleEntry.id.notin_(exclude_ids))
        return query.first()

    def get_entry(self, entry_id: int) -> Optional[ScheduleEntry]:
        return self._live().filter(ScheduleEntry.id == entry_id).first()

    def count_entries(self, day: date, shift: Shift, is_off: bool = False) -> int:
        return self._live().filter(
            ScheduleEntry.date == day,
            ScheduleEntry.shift == shift,
            ScheduleEntry.is_off.is_(is_off),
        ).count()

    def create_entry(
        self,
        doctor_id: int,
        day: date,
        shift: Shift,
        is_off: bool = False,
        actor_id: Optional[int] = None,
    ) -> ScheduleEntry:
        entry = ScheduleEntry(
            doctor_id=doctor_id,
            date=day,
            day_of_week=day_of_week(day),
            shift=shift,
            is_off=is_off,
            created_by_id=actor_id,
            updated_by_id=actor_id,
        )
        self.db.add(entry)
        self.db.flush()
        return entry

    def update_entry(self, entry: ScheduleEntry, **patch) -> ScheduleEntry:
        for key, value in patch.items():
            setattr(entry, key, value)
        self.db.flush()
        return entry
