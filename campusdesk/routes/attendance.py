from fastapi import APIRouter, Depends, status
from motor.motor_asyncio import AsyncIOMotorDatabase

from .. import attendance
from ..authorization import ActorScope
from ..database import get_db
from ..errors import ok
from ..models import AttendanceMark, BulkAttendance, Role
from ..security import get_scope, require_roles

attendance_router = APIRouter(
    prefix="/attendance", tags=["attendance"], dependencies=[Depends(require_roles(Role.TEACHER))]
)


@attendance_router.post("")
async def mark_attendance(
    payload: AttendanceMark,
    scope: ActorScope = Depends(get_scope),
    db: AsyncIOMotorDatabase = Depends(get_db),
):
    record = await attendance.mark_attendance(db, scope, payload)
    return ok(record, status_code=status.HTTP_201_CREATED)


@attendance_router.post("/bulk")
async def mark_bulk_attendance(
    payload: BulkAttendance,
    scope: ActorScope = Depends(get_scope),
    db: AsyncIOMotorDatabase = Depends(get_db),
):
    records = await attendance.mark_bulk_attendance(db, scope, payload)
    return ok(records, status_code=status.HTTP_201_CREATED, count=len(records))


@attendance_router.get("/course/{course_id}")
async def course_attendance(
    course_id: str, scope: ActorScope = Depends(get_scope), db: AsyncIOMotorDatabase = Depends(get_db)
):
    records = await attendance.course_attendance(db, scope, course_id)
    return ok(records, count=len(records))
