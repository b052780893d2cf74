"""
Attendance Router

Endpoints:
- GET /attendance - Records visible to the caller
- GET /attendance/stats/{activity_id} - Counts per status (owning coordinator, admin)
- GET /attendance/{id} - Record detail
- POST /attendance - Mark one application (owning coordinator, admin)
- POST /attendance/batch - Mark several applications of one activity
"""

from uuid import UUID

from fastapi import APIRouter, Depends, Query

from app.core.auth import CurrentUser, get_current_user
from app.modules.attendance.models import AttendanceStatus
from app.modules.attendance.schemas import (
    AttendanceBatchMark,
    AttendanceMark,
    AttendanceResponse,
)
from app.modules.attendance.service import AttendanceRegister, get_attendance_register

router = APIRouter()


@router.get("", response_model=list[AttendanceResponse])
async def list_attendance(
    activity_id: UUID | None = Query(None),
    student_id: UUID | None = Query(None),
    status_filter: AttendanceStatus | None = Query(None, alias="status"),
    user: CurrentUser = Depends(get_current_user),
    register: AttendanceRegister = Depends(get_attendance_register),
) -> list[AttendanceResponse]:
    records = await register.list_attendance(
        user, activity_id=activity_id, student_id=student_id, status=status_filter
    )
    return [AttendanceResponse.model_validate(r) for r in records]


@router.get("/stats/{activity_id}", response_model=dict[str, int], summary="Attendance Stats")
async def attendance_stats(
    activity_id: UUID,
    user: CurrentUser = Depends(get_current_user),
    register: AttendanceRegister = Depends(get_attendance_register),
) -> dict[str, int]:
    return await register.stats(user, activity_id)


@router.get("/{attendance_id}", response_model=AttendanceResponse)
async def get_attendance(
    attendance_id: UUID,
    user: CurrentUser = Depends(get_current_user),
    register: AttendanceRegister = Depends(get_attendance_register),
) -> AttendanceResponse:
    return AttendanceResponse.model_validate(await register.get(user, attendance_id))


@router.post("", response_model=AttendanceResponse, summary="Mark Attendance")
async def mark_attendance(
    data: AttendanceMark,
    user: CurrentUser = Depends(get_current_user),
    register: AttendanceRegister = Depends(get_attendance_register),
) -> AttendanceResponse:
    return AttendanceResponse.model_validate(await register.mark(user, data))


@router.post("/batch", response_model=list[AttendanceResponse], summary="Batch Mark Attendance")
async def batch_mark_attendance(
    data: AttendanceBatchMark,
    user: CurrentUser = Depends(get_current_user),
    register: AttendanceRegister = Depends(get_attendance_register),
) -> list[AttendanceResponse]:
    records = await register.batch_mark(user, data)
    return [AttendanceResponse.model_validate(r) for r in records]
