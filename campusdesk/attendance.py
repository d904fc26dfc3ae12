import logging
from typing import Any, Dict, List, Optional

from motor.motor_asyncio import AsyncIOMotorDatabase

from .authorization import Action, ActorScope, Kind, authorize, ensure
from .database import LIST_LIMIT, NO_MONGO_ID, find_by_ids, get_or_404, iso_now, missing_ids, unique_ids
from .errors import NotFoundError, ValidationError
from .models import ATTENDANCE_SESSIONS, ATTENDANCE_STATUSES, AttendanceMark, AttendanceRecord, BulkAttendance, Role
from .scope import course_target

logger = logging.getLogger(__name__)


def _check_status(value: str) -> str:
    status = (value or "").strip().lower()
    if status not in ATTENDANCE_STATUSES:
        raise ValidationError("Invalid attendance status", {"allowed": ATTENDANCE_STATUSES})
    return status


def _check_session(value: Optional[str]) -> Optional[str]:
    if not value:
        return None
    session = value.strip().lower()
    if session not in ATTENDANCE_SESSIONS:
        raise ValidationError("Invalid attendance session", {"allowed": ATTENDANCE_SESSIONS})
    return session


def _marker(scope: ActorScope) -> str:
    # Teachers mark under their profile id; leadership under the account id.
    if scope.role == Role.TEACHER:
        return scope.profile_id
    return scope.account_id


async def _course_for_write(db: AsyncIOMotorDatabase, scope: ActorScope, course_id: str) -> Dict[str, Any]:
    course = await get_or_404(db, "courses", course_id, "Course")
    ensure(authorize(scope, Action.CREATE, course_target(course, Kind.ATTENDANCE)))
    return course


async def mark_attendance(db: AsyncIOMotorDatabase, scope: ActorScope, payload: AttendanceMark) -> Dict[str, Any]:
    status = _check_status(payload.status)
    session = _check_session(payload.session)
    student = await get_or_404(db, "students", payload.student_id, "Student")
    course = await _course_for_write(db, scope, payload.course_id)
    if student["id"] not in course.get("student_ids", []):
        raise ValidationError("Student is not enrolled in this course")
    record = AttendanceRecord(
        student_id=student["id"],
        course_id=course["id"],
        date=payload.date or iso_now(),
        status=status,
        session=session,
        marked_by=_marker(scope),
        marked_by_role=scope.role,
    )
    doc = record.model_dump(mode="json")
    await db.attendance.insert_one(doc)
    doc.pop("_id", None)
    return doc


async def mark_bulk_attendance(
    db: AsyncIOMotorDatabase, scope: ActorScope, payload: BulkAttendance
) -> List[Dict[str, Any]]:
    if not payload.attendances:
        raise ValidationError("attendances must not be empty")
    session = _check_session(payload.session)
    course = await _course_for_write(db, scope, payload.course_id)
    statuses = {entry.student_id: _check_status(entry.status) for entry in payload.attendances}
    student_ids = unique_ids(entry.student_id for entry in payload.attendances)
    found = await find_by_ids(db, "students", student_ids, {"_id": 0, "id": 1})
    missing = missing_ids(student_ids, found)
    if missing:
        raise NotFoundError("One or more students not found", {"missing_student_ids": missing})
    not_enrolled = [sid for sid in student_ids if sid not in course.get("student_ids", [])]
    if not_enrolled:
        raise ValidationError("One or more students are not enrolled in this course", {"student_ids": not_enrolled})

    when = payload.date or iso_now()
    docs = [
        AttendanceRecord(
            student_id=sid,
            course_id=course["id"],
            date=when,
            status=statuses[sid],
            session=session,
            marked_by=_marker(scope),
            marked_by_role=scope.role,
        ).model_dump(mode="json")
        for sid in student_ids
    ]
    await db.attendance.insert_many(docs)
    for doc in docs:
        doc.pop("_id", None)
    logger.info("Marked attendance for %d student(s) in course %s", len(docs), course["id"])
    return docs


async def course_attendance(db: AsyncIOMotorDatabase, scope: ActorScope, course_id: str) -> List[Dict[str, Any]]:
    course = await get_or_404(db, "courses", course_id, "Course")
    ensure(authorize(scope, Action.READ, course_target(course, Kind.ATTENDANCE)))
    records = await db.attendance.find({"course_id": course_id}, NO_MONGO_ID).sort("date", -1).to_list(LIST_LIMIT)
    students = await find_by_ids(db, "students", unique_ids(r["student_id"] for r in records), {"_id": 0, "id": 1, "name": 1})
    names = {s["id"]: s.get("name") for s in students}
    for record in records:
        record["student_name"] = names.get(record["student_id"])
    return records


async def student_attendance(db: AsyncIOMotorDatabase, student_id: str) -> List[Dict[str, Any]]:
    return await db.attendance.find({"student_id": student_id}, NO_MONGO_ID).sort("date", -1).to_list(LIST_LIMIT)
