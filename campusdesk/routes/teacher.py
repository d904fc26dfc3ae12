from typing import Any, Dict, List

from fastapi import APIRouter, Depends
from motor.motor_asyncio import AsyncIOMotorDatabase

from ..database import LIST_LIMIT, NO_MONGO_ID, find_by_ids, get_db, unique_ids
from ..errors import ok
from ..models import Actor, Role
from ..scope import require_profile
from ..security import require_roles

teacher_router = APIRouter(prefix="/teacher", tags=["teacher"])

require_teacher = require_roles(Role.TEACHER)


async def _own_courses(db: AsyncIOMotorDatabase, teacher_id: str) -> List[Dict[str, Any]]:
    return await db.courses.find({"teacher_ids": teacher_id}, NO_MONGO_ID).sort("code", 1).to_list(LIST_LIMIT)


async def _enrolled_students(db: AsyncIOMotorDatabase, courses: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    student_ids = unique_ids(sid for course in courses for sid in course.get("student_ids", []))
    students = await find_by_ids(db, "students", student_ids)
    return sorted(students, key=lambda s: (s.get("name") or "").lower())


@teacher_router.get("/me")
async def get_me(actor: Actor = Depends(require_teacher), db: AsyncIOMotorDatabase = Depends(get_db)):
    profile = await require_profile(db, actor)
    campuses = await find_by_ids(db, "campuses", profile.get("campus_ids", []), {"_id": 0, "id": 1, "name": 1})
    return ok({**profile, "email": actor.email, "campuses": campuses})


@teacher_router.get("/dashboard")
async def dashboard(actor: Actor = Depends(require_teacher), db: AsyncIOMotorDatabase = Depends(get_db)):
    profile = await require_profile(db, actor)
    courses = await _own_courses(db, profile["id"])
    students = await _enrolled_students(db, courses)
    campuses = await find_by_ids(db, "campuses", profile.get("campus_ids", []), {"_id": 0, "id": 1, "name": 1, "location": 1})
    return ok({
        "teacher": profile,
        "campuses": campuses,
        "courses": courses,
        "students": students,
        "statistics": {"courses": len(courses), "students": len(students)},
    })


@teacher_router.get("/courses")
async def list_courses(actor: Actor = Depends(require_teacher), db: AsyncIOMotorDatabase = Depends(get_db)):
    profile = await require_profile(db, actor)
    courses = await _own_courses(db, profile["id"])
    return ok(courses, count=len(courses))


@teacher_router.get("/students")
async def list_students(actor: Actor = Depends(require_teacher), db: AsyncIOMotorDatabase = Depends(get_db)):
    profile = await require_profile(db, actor)
    students = await _enrolled_students(db, await _own_courses(db, profile["id"]))
    return ok(students, count=len(students))
