from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, Query, status
from motor.motor_asyncio import AsyncIOMotorDatabase

from .. import workflows
from ..authorization import Action, ActorScope, authorize, ensure
from ..database import LIST_LIMIT, NO_MONGO_ID, get_db, get_or_404
from ..errors import ForbiddenError, ValidationError, ok
from ..models import (
    Actor,
    CourseCreate,
    CourseEnrollment,
    CourseOutlineCreate,
    CourseOutlineRecord,
    CourseRecord,
    Role,
)
from ..scope import course_target
from ..security import get_scope, require_roles

courses_router = APIRouter(prefix="/courses", tags=["courses"])

require_admin = require_roles(Role.ADMIN)


def _check_outline(payload: CourseOutlineCreate) -> None:
    if not payload.program_name or not payload.week_title or not payload.location or not payload.days:
        raise ValidationError("program_name, week_title, location, and non-empty days[] are required.")
    for day in payload.days:
        if not (day.day_name and day.date and day.unit and day.instructor and day.slots):
            raise ValidationError("Each day requires day_name, date, unit, instructor, and non-empty slots[].")
        for slot in day.slots:
            if not (slot.time_start and slot.time_end and slot.topic):
                raise ValidationError("Each slot requires time_start, time_end, and topic.")


@courses_router.post("")
async def create_course(
    payload: CourseCreate,
    actor: Actor = Depends(require_admin),
    db: AsyncIOMotorDatabase = Depends(get_db),
):
    course = CourseRecord(**payload.model_dump(), created_by=actor.id)
    created = await workflows.create_course(db, course.model_dump(mode="json"))
    return ok(created, status_code=status.HTTP_201_CREATED)


@courses_router.post("/{course_id}/students/bulk", dependencies=[Depends(require_admin)])
async def add_students(course_id: str, payload: CourseEnrollment, db: AsyncIOMotorDatabase = Depends(get_db)):
    result = await workflows.enroll_students_in_course(db, course_id, payload.student_ids)
    return ok(result, message=f"{len(result['assigned'])} student(s) added to course")


@courses_router.post("/{course_id}/outline", dependencies=[Depends(require_roles(Role.TEACHER))])
async def add_course_outline(
    course_id: str,
    payload: CourseOutlineCreate,
    scope: ActorScope = Depends(get_scope),
    db: AsyncIOMotorDatabase = Depends(get_db),
):
    course = await get_or_404(db, "courses", course_id, "Course")
    if not scope.profile_id or scope.profile_id not in course.get("teacher_ids", []):
        raise ForbiddenError("You can only add outlines to courses you teach")
    _check_outline(payload)
    outline = CourseOutlineRecord(course_id=course["id"], created_by=scope.account_id, **payload.model_dump())
    doc = outline.model_dump(mode="json")
    await db.course_outlines.insert_one(doc)
    doc.pop("_id", None)
    return ok(doc, status_code=status.HTTP_201_CREATED)


@courses_router.get("/{course_id}/outline")
async def get_course_outlines(
    course_id: str,
    program_name: Optional[str] = Query(None),
    week_title: Optional[str] = Query(None),
    location: Optional[str] = Query(None),
    date: Optional[str] = Query(None),
    scope: ActorScope = Depends(get_scope),
    db: AsyncIOMotorDatabase = Depends(get_db),
):
    course = await get_or_404(db, "courses", course_id, "Course")
    if scope.role == Role.STUDENT:
        if not scope.profile_id or scope.profile_id not in course.get("student_ids", []):
            raise ForbiddenError("You are not enrolled in this course")
    else:
        ensure(authorize(scope, Action.READ, course_target(course)))

    query: Dict[str, Any] = {"course_id": course_id}
    if program_name:
        query["program_name"] = program_name
    if week_title:
        query["week_title"] = week_title
    if location:
        query["location"] = location
    if date:
        query["days.date"] = date
    outlines = await db.course_outlines.find(query, NO_MONGO_ID).sort("created_at", -1).limit(LIST_LIMIT).to_list(LIST_LIMIT)
    return ok(outlines, count=len(outlines))
