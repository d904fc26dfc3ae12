from fastapi import APIRouter, Depends, status
from motor.motor_asyncio import AsyncIOMotorDatabase

from .. import assessments, attendance, workflows
from ..authorization import Action, ActorScope, authorize, ensure
from ..database import LIST_LIMIT, NO_MONGO_ID, get_db, get_or_404
from ..errors import ok
from ..models import (
    Actor,
    AttendanceMark,
    CoordinatorUpdate,
    Role,
    StudentCreate,
    StudentUpdate,
    TeacherCreate,
    TeacherUpdate,
)
from ..scope import require_coordinator_campus, require_profile, student_target, teacher_target
from ..security import require_roles

coordinator_router = APIRouter(prefix="/coordinator", tags=["coordinator"])

require_coordinator = require_roles(Role.COORDINATOR)


async def coordinator_scope(
    actor: Actor = Depends(require_coordinator),
    db: AsyncIOMotorDatabase = Depends(get_db),
) -> ActorScope:
    return await require_coordinator_campus(db, actor)


async def _scoped_student(db: AsyncIOMotorDatabase, scope: ActorScope, student_id: str, action: Action):
    student = await get_or_404(db, "students", student_id, "Student")
    ensure(authorize(scope, action, await student_target(db, student)))
    return student


async def _scoped_teacher(db: AsyncIOMotorDatabase, scope: ActorScope, teacher_id: str, action: Action):
    teacher = await get_or_404(db, "teachers", teacher_id, "Teacher")
    ensure(authorize(scope, action, teacher_target(teacher)))
    return teacher


@coordinator_router.get("/me")
async def get_me(actor: Actor = Depends(require_coordinator), db: AsyncIOMotorDatabase = Depends(get_db)):
    profile = await require_profile(db, actor)
    campus = None
    if profile.get("campus_id"):
        campus = await db.campuses.find_one({"id": profile["campus_id"]}, NO_MONGO_ID)
    return ok({**profile, "email": actor.email, "campus": campus})


@coordinator_router.put("/me")
async def update_me(
    payload: CoordinatorUpdate,
    actor: Actor = Depends(require_coordinator),
    db: AsyncIOMotorDatabase = Depends(get_db),
):
    profile = await require_profile(db, actor)
    updated = await workflows.update_member(db, Role.COORDINATOR, profile["id"], payload.model_dump(exclude_unset=True))
    return ok(updated)


@coordinator_router.get("/dashboard")
async def dashboard(scope: ActorScope = Depends(coordinator_scope), db: AsyncIOMotorDatabase = Depends(get_db)):
    campus = await get_or_404(db, "campuses", scope.campus_id, "Campus")
    course_ids = [c["id"] for c in await db.courses.find({"campus_id": scope.campus_id}, {"_id": 0, "id": 1}).to_list(LIST_LIMIT)]
    statistics = {
        "students": await db.students.count_documents({"campus_id": scope.campus_id}),
        "courses": len(course_ids),
        "teachers": await db.teachers.count_documents({"campus_ids": scope.campus_id}),
        "attendance_records": await db.attendance.count_documents({"course_id": {"$in": course_ids}}),
    }
    coordinators = await db.coordinators.find(
        {"campus_id": scope.campus_id}, {"_id": 0, "id": 1, "name": 1, "contact_number": 1}
    ).to_list(LIST_LIMIT)
    recent_students = await db.students.find(
        {"campus_id": scope.campus_id}, {"_id": 0, "id": 1, "name": 1, "email": 1, "phone": 1}
    ).sort("created_at", -1).limit(5).to_list(5)
    recent_courses = await db.courses.find(
        {"campus_id": scope.campus_id}, {"_id": 0, "id": 1, "name": 1, "code": 1, "teacher_ids": 1}
    ).sort("created_at", -1).limit(5).to_list(5)
    return ok({
        "campus": {k: campus.get(k) for k in ("id", "name", "location", "address", "contact_number")},
        "coordinators": coordinators,
        "statistics": statistics,
        "recent_students": recent_students,
        "recent_courses": recent_courses,
    })


# Students

@coordinator_router.get("/students")
async def list_students(scope: ActorScope = Depends(coordinator_scope), db: AsyncIOMotorDatabase = Depends(get_db)):
    students = await db.students.find({"campus_id": scope.campus_id}, NO_MONGO_ID).sort("name", 1).to_list(LIST_LIMIT)
    return ok(students, count=len(students))


@coordinator_router.post("/students")
async def create_student(
    payload: StudentCreate,
    scope: ActorScope = Depends(coordinator_scope),
    db: AsyncIOMotorDatabase = Depends(get_db),
):
    fields = payload.model_dump(exclude={"email", "password", "campus_id"})
    account, profile = await workflows.create_member(
        db, Role.STUDENT, payload.email, payload.password, fields, scope.campus_id, scope.account_id
    )
    return ok({"account": account, "profile": profile}, status_code=status.HTTP_201_CREATED)


@coordinator_router.get("/students/{student_id}")
async def get_student(
    student_id: str, scope: ActorScope = Depends(coordinator_scope), db: AsyncIOMotorDatabase = Depends(get_db)
):
    return ok(await _scoped_student(db, scope, student_id, Action.READ))


@coordinator_router.put("/students/{student_id}")
async def update_student(
    student_id: str,
    payload: StudentUpdate,
    scope: ActorScope = Depends(coordinator_scope),
    db: AsyncIOMotorDatabase = Depends(get_db),
):
    await _scoped_student(db, scope, student_id, Action.UPDATE)
    return ok(await workflows.update_member(db, Role.STUDENT, student_id, payload.model_dump(exclude_unset=True)))


# Courses

@coordinator_router.get("/courses")
async def list_courses(scope: ActorScope = Depends(coordinator_scope), db: AsyncIOMotorDatabase = Depends(get_db)):
    courses = await db.courses.find({"campus_id": scope.campus_id}, NO_MONGO_ID).sort("code", 1).to_list(LIST_LIMIT)
    return ok(courses, count=len(courses))


@coordinator_router.post("/courses/{course_id}/assign-teacher/{teacher_id}")
async def assign_teacher(
    course_id: str,
    teacher_id: str,
    scope: ActorScope = Depends(coordinator_scope),
    db: AsyncIOMotorDatabase = Depends(get_db),
):
    course = await workflows.coordinator_assign_teacher(db, scope.campus_id, course_id, teacher_id)
    return ok(course, message="Teacher assigned to course")


@coordinator_router.delete("/courses/{course_id}/unassign-teacher/{teacher_id}")
async def unassign_teacher(
    course_id: str,
    teacher_id: str,
    scope: ActorScope = Depends(coordinator_scope),
    db: AsyncIOMotorDatabase = Depends(get_db),
):
    course = await workflows.coordinator_unassign_teacher(db, scope.campus_id, course_id, teacher_id)
    return ok(course, message="Teacher unassigned from course")


# Attendance and assessments

@coordinator_router.get("/attendance/{student_id}")
async def student_attendance(
    student_id: str, scope: ActorScope = Depends(coordinator_scope), db: AsyncIOMotorDatabase = Depends(get_db)
):
    await _scoped_student(db, scope, student_id, Action.READ)
    records = await attendance.student_attendance(db, student_id)
    return ok(records, count=len(records))


@coordinator_router.post("/attendance")
async def mark_attendance(
    payload: AttendanceMark,
    scope: ActorScope = Depends(coordinator_scope),
    db: AsyncIOMotorDatabase = Depends(get_db),
):
    await _scoped_student(db, scope, payload.student_id, Action.READ)
    record = await attendance.mark_attendance(db, scope, payload)
    return ok(record, status_code=status.HTTP_201_CREATED)


@coordinator_router.get("/assessments/{student_id}")
async def student_assessments(
    student_id: str, scope: ActorScope = Depends(coordinator_scope), db: AsyncIOMotorDatabase = Depends(get_db)
):
    await _scoped_student(db, scope, student_id, Action.READ)
    rows = await assessments.student_rows(db, student_id)
    return ok(rows, count=len(rows))


# Teachers

@coordinator_router.post("/teachers")
async def register_teacher(
    payload: TeacherCreate,
    scope: ActorScope = Depends(coordinator_scope),
    db: AsyncIOMotorDatabase = Depends(get_db),
):
    fields = payload.model_dump(exclude={"email", "password", "campus_id"})
    account, profile = await workflows.create_member(
        db, Role.TEACHER, payload.email, payload.password, fields, scope.campus_id, scope.account_id
    )
    return ok({"account": account, "profile": profile}, status_code=status.HTTP_201_CREATED)


@coordinator_router.get("/teachers")
async def list_teachers(scope: ActorScope = Depends(coordinator_scope), db: AsyncIOMotorDatabase = Depends(get_db)):
    teachers = await db.teachers.find({"campus_ids": scope.campus_id}, NO_MONGO_ID).sort("name", 1).to_list(LIST_LIMIT)
    return ok(teachers, count=len(teachers))


@coordinator_router.get("/teachers/{teacher_id}")
async def get_teacher(
    teacher_id: str, scope: ActorScope = Depends(coordinator_scope), db: AsyncIOMotorDatabase = Depends(get_db)
):
    return ok(await _scoped_teacher(db, scope, teacher_id, Action.READ))


@coordinator_router.put("/teachers/{teacher_id}")
async def update_teacher(
    teacher_id: str,
    payload: TeacherUpdate,
    scope: ActorScope = Depends(coordinator_scope),
    db: AsyncIOMotorDatabase = Depends(get_db),
):
    await _scoped_teacher(db, scope, teacher_id, Action.UPDATE)
    return ok(await workflows.update_member(db, Role.TEACHER, teacher_id, payload.model_dump(exclude_unset=True)))


@coordinator_router.delete("/teachers/{teacher_id}")
async def delete_teacher(
    teacher_id: str, scope: ActorScope = Depends(coordinator_scope), db: AsyncIOMotorDatabase = Depends(get_db)
):
    await _scoped_teacher(db, scope, teacher_id, Action.DELETE)
    await workflows.delete_member(db, Role.TEACHER, teacher_id)
    return ok(message="Teacher deleted")
