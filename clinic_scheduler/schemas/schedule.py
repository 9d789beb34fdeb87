from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from typing import Dict, List, Optional
import datetime as dt

from ..core.config import settings
from ..models.schedule import DayOfWeek, Shift
from ..services import calendar

# Requests
class GenerateScheduleRequest(BaseModel):
    start_date: dt.date
    doctors_per_shift: int = Field(..., ge=1, description="Number of doctors per shift")

    @field_validator("start_date")
    @classmethod
    def validate_start_date(cls, value: dt.date) -> dt.date:
        # Sunday plans the following week, Monday plans its own week
        if calendar.day_of_week(value) not in (DayOfWeek.SUNDAY, DayOfWeek.MONDAY):
            raise ValueError("Start date must be either a Sunday or a Monday")
        if value < calendar.today():
            raise ValueError("Start date cannot be in the past")
        return value

class ManualAssignmentRequest(BaseModel):
    doctor_id: int = Field(..., gt=0)
    date: dt.date
    shift: Shift

    @field_validator("date")
    @classmethod
    def validate_date(cls, value: dt.date) -> dt.date:
        if value < calendar.today():
            raise ValueError("Cannot assign schedule for past dates")
        return value

class ShiftRef(BaseModel):
    doctor_id: int = Field(..., gt=0)
    date: dt.date
    shift: Shift

class SwapShiftsRequest(BaseModel):
    first: ShiftRef
    second: ShiftRef

    @model_validator(mode="after")
    def validate_dates(self):
        today = calendar.today()
        days = (self.first.date, self.second.date)
        if any(day < today for day in days):
            raise ValueError("Cannot swap shifts on past dates")
        if abs((self.second.date - self.first.date).days) > settings.MAX_SWAP_DISTANCE_DAYS:
            raise ValueError(
                f"Dates must be within {settings.MAX_SWAP_DISTANCE_DAYS} days of each other"
            )
        if any(calendar.day_of_week(day) is DayOfWeek.SUNDAY for day in days):
            raise ValueError("Cannot swap shifts on a Sunday")
        return self

class TimeOffRequest(BaseModel):
    doctor_id: int = Field(..., gt=0)
    date: dt.date
    shift: Shift

# Responses
class ScheduleEntryResponse(BaseModel):
    id: int
    doctor_id: int
    date: dt.date
    day_of_week: DayOfWeek
    shift: Shift
    is_off: bool
    swapped_with_id: Optional[int] = None
    swapped_at: Optional[dt.datetime] = None

    model_config = ConfigDict(from_attributes=True)

class RemainingShiftResponse(BaseModel):
    date: dt.date
    shift: Shift
    day_of_week: DayOfWeek

    model_config = ConfigDict(from_attributes=True)

class GenerateScheduleResponse(BaseModel):
    message: str = "Schedule generated successfully"
    window_start: dt.date
    window_end: dt.date
    doctors_per_shift: int
    total_demand: int
    shifts_per_doctor: int
    extra_shifts: int
    assigned_count: int
    remaining_demand: int
    remaining_shifts: List[RemainingShiftResponse]
    doctor_totals: Dict[int, int]

    model_config = ConfigDict(from_attributes=True)

class SwapShiftsResponse(BaseModel):
    message: str = "Shifts swapped successfully"
    entry_a: ScheduleEntryResponse
    entry_b: ScheduleEntryResponse

    model_config = ConfigDict(from_attributes=True)

class DoctorScheduleResponse(BaseModel):
    id: int
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    specialization: Optional[str] = None
    certifications: List[str] = []
    schedules: List[ScheduleEntryResponse] = []

    model_config = ConfigDict(from_attributes=True)

class WeeklyScheduleResponse(BaseModel):
    start_date: dt.date
    end_date: dt.date
    doctors: List[DoctorScheduleResponse]
