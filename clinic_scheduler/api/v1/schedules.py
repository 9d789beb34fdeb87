from fastapi import APIRouter, Depends, Query
from typing import List, Optional
from datetime import date

from ...api.deps import (
    get_admin_user, get_current_user, get_doctor_user, get_schedule_service
)
from ...core.security import TokenPayload
from ...services import calendar
from ...services.schedule_service import ScheduleService, SlotRef
from ...schemas.schedule import (
    GenerateScheduleRequest, GenerateScheduleResponse, ManualAssignmentRequest,
    SwapShiftsRequest, SwapShiftsResponse, TimeOffRequest,
    ScheduleEntryResponse, RemainingShiftResponse, DoctorScheduleResponse,
    WeeklyScheduleResponse
)

router = APIRouter(prefix="/schedules", tags=["Schedules"])
doctors_router = APIRouter(prefix="/doctors", tags=["Doctors"])

@router.post("/generate", response_model=GenerateScheduleResponse)
async def generate_schedule(
    request: GenerateScheduleRequest,
    service: ScheduleService = Depends(get_schedule_service),
    current_user: TokenPayload = Depends(get_admin_user)
):
    """Generate the Monday-Friday schedule for a week."""
    result = service.generate_schedule(
        request.start_date, request.doctors_per_shift, actor_id=current_user.sub
    )
    return GenerateScheduleResponse.model_validate(result)

@router.post("/manual", response_model=ScheduleEntryResponse)
async def assign_manually(
    request: ManualAssignmentRequest,
    service: ScheduleService = Depends(get_schedule_service),
    current_user: TokenPayload = Depends(get_admin_user)
):
    """Assign a doctor to a single shift."""
    return service.assign_manually(
        request.doctor_id, request.date, request.shift, actor_id=current_user.sub
    )

@router.post("/swap", response_model=SwapShiftsResponse)
async def swap_shifts(
    request: SwapShiftsRequest,
    service: ScheduleService = Depends(get_schedule_service),
    current_user: TokenPayload = Depends(get_admin_user)
):
    """Swap the doctors of two scheduled shifts."""
    result = service.swap_shifts(
        SlotRef(request.first.doctor_id, request.first.date, request.first.shift),
        SlotRef(request.second.doctor_id, request.second.date, request.second.shift),
        actor_id=current_user.sub,
    )
    return SwapShiftsResponse.model_validate(result)

@router.get("/remaining", response_model=List[RemainingShiftResponse])
async def get_remaining_shifts(
    start_date: date,
    end_date: date,
    doctors_per_shift: int = Query(..., ge=1),
    include_saturday: bool = True,
    service: ScheduleService = Depends(get_schedule_service),
    current_user: TokenPayload = Depends(get_current_user)
):
    """List under-staffed shifts in a date range."""
    return service.get_remaining_shifts(
        start_date, end_date, doctors_per_shift, include_saturday=include_saturday
    )

@router.post("/time-off", response_model=ScheduleEntryResponse)
async def request_time_off(
    request: TimeOffRequest,
    service: ScheduleService = Depends(get_schedule_service),
    current_user: TokenPayload = Depends(get_doctor_user)
):
    """Mark a scheduled shift as time off."""
    return service.request_time_off(
        request.doctor_id, request.date, request.shift, actor_id=current_user.sub
    )

@router.get("/time-off", response_model=List[ScheduleEntryResponse])
async def list_time_off(
    start_date: date,
    end_date: date,
    service: ScheduleService = Depends(get_schedule_service),
    current_user: TokenPayload = Depends(get_admin_user)
):
    """List shifts marked as time off in a date range."""
    return service.list_time_off(start_date, end_date)

@router.get("/weekly", response_model=WeeklyScheduleResponse)
async def get_weekly_schedule(
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    service: ScheduleService = Depends(get_schedule_service),
    current_user: TokenPayload = Depends(get_current_user)
):
    """All doctors with their shifts for a week (default: the current week)."""
    if not start_date or not end_date:
        start_date, end_date = calendar.current_week()
    doctors = service.get_weekly_schedule(start_date, end_date)
    return WeeklyScheduleResponse(
        start_date=start_date,
        end_date=end_date,
        doctors=[DoctorScheduleResponse.model_validate(doctor) for doctor in doctors],
    )

@router.get("/by-date", response_model=List[DoctorScheduleResponse])
async def get_doctors_by_date(
    day: date = Query(..., alias="date"),
    service: ScheduleService = Depends(get_schedule_service),
    current_user: TokenPayload = Depends(get_current_user)
):
    """Doctors working on a given day."""
    return service.get_doctors_by_date(day)

@doctors_router.get("/{doctor_id}/schedule", response_model=List[ScheduleEntryResponse])
async def get_doctor_schedule(
    doctor_id: int,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    service: ScheduleService = Depends(get_schedule_service),
    current_user: TokenPayload = Depends(get_current_user)
):
    """A doctor's shifts in a date range (default: the next 30 days)."""
    return service.get_doctor_schedule(doctor_id, start_date, end_date)
