from sqlalchemy import (
    Column, Integer, ForeignKey, Date, DateTime, Boolean,
    UniqueConstraint, Enum as SQLEnum
)
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship
import enum

from ..core.database import Base

class Shift(str, enum.Enum):
    MORNING = "MORNING"
    AFTERNOON = "AFTERNOON"

# Member order follows date.weekday() (Monday == 0)
class DayOfWeek(str, enum.Enum):
    MONDAY = "MONDAY"
    TUESDAY = "TUESDAY"
    WEDNESDAY = "WEDNESDAY"
    THURSDAY = "THURSDAY"
    FRIDAY = "FRIDAY"
    SATURDAY = "SATURDAY"
    SUNDAY = "SUNDAY"

SHIFT_ORDER = {Shift.MORNING: 0, Shift.AFTERNOON: 1}

class ScheduleEntry(Base):
    __tablename__ = "schedule_entries"
    __table_args__ = (
        UniqueConstraint("doctor_id", "date", "shift", name="uq_schedule_doctor_date_shift"),
    )
    
    id = Column(Integer, primary_key=True, index=True)
    doctor_id = Column(Integer, ForeignKey("doctors.id"), nullable=False, index=True)
    
    # Slot
    date = Column(Date, nullable=False, index=True)
    day_of_week = Column(SQLEnum(DayOfWeek), nullable=False)
    shift = Column(SQLEnum(Shift), nullable=False)
    
    # Time off keeps the row, it does not free the slot for the doctor
    is_off = Column(Boolean, nullable=False, default=False)
    
    # Swap link, always reciprocal
    swapped_with_id = Column(Integer, ForeignKey("schedule_entries.id"), nullable=True)
    swapped_at = Column(DateTime, nullable=True)
    
    # Audit
    created_by_id = Column(Integer, nullable=True)
    updated_by_id = Column(Integer, nullable=True)
    deleted_at = Column(DateTime, nullable=True)
    
    # Timestamps
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())
    
    # Relationships
    doctor = relationship("Doctor", back_populates="schedules")
    
    def __repr__(self):
        return (
            f"<ScheduleEntry(id={self.id}, doctor_id={self.doctor_id}, "
            f"date='{self.date}', shift='{self.shift}', is_off={self.is_off})>"
        )
