from fastapi import APIRouter, Depends, status
from motor.motor_asyncio import AsyncIOMotorDatabase

from ..database import LIST_LIMIT, NO_MONGO_ID, get_db, get_or_404, iso_now
from ..errors import ConflictError, ok
from ..models import (
    Actor,
    CampusBase,
    CampusRecord,
    CampusUpdate,
    CoordinatorAssignment,
    CoordinatorCreate,
    CoordinatorUpdate,
    CourseAssignment,
    CourseCreate,
    CourseRecord,
    CourseUpdate,
    Role,
    StudentAssignment,
    StudentCreate,
    StudentUpdate,
    TeacherAssignment,
    TeacherCreate,
    TeacherUpdate,
)
from ..security import get_actor, require_roles
from .. import workflows

admin_router = APIRouter(prefix="/admin", tags=["admin"], dependencies=[Depends(require_roles(Role.ADMIN))])


# Campuses

@admin_router.post("/campuses")
async def create_campus(
    payload: CampusBase,
    actor: Actor = Depends(get_actor),
    db: AsyncIOMotorDatabase = Depends(get_db),
):
    name = payload.name.strip()
    if await db.campuses.find_one({"name": name}, {"_id": 0, "id": 1}):
        raise ConflictError("Campus name already exists")
    campus = CampusRecord(**{**payload.model_dump(), "name": name}, created_by=actor.id)
    doc = campus.model_dump(mode="json")
    await db.campuses.insert_one(doc)
    doc.pop("_id", None)
    return ok(doc, status_code=status.HTTP_201_CREATED)


@admin_router.get("/campuses")
async def list_campuses(db: AsyncIOMotorDatabase = Depends(get_db)):
    campuses = await db.campuses.find({}, NO_MONGO_ID).sort("name", 1).to_list(LIST_LIMIT)
    return ok(campuses, count=len(campuses))


@admin_router.get("/campuses/{campus_id}")
async def get_campus(campus_id: str, db: AsyncIOMotorDatabase = Depends(get_db)):
    return ok(await get_or_404(db, "campuses", campus_id, "Campus"))


@admin_router.put("/campuses/{campus_id}")
async def update_campus(campus_id: str, payload: CampusUpdate, db: AsyncIOMotorDatabase = Depends(get_db)):
    await get_or_404(db, "campuses", campus_id, "Campus")
    update_data = {k: v for k, v in payload.model_dump(exclude_unset=True).items() if v is not None}
    if "name" in update_data:
        update_data["name"] = update_data["name"].strip()
        clash = await db.campuses.find_one({"name": update_data["name"], "id": {"$ne": campus_id}}, {"_id": 0, "id": 1})
        if clash:
            raise ConflictError("Campus name already exists")
    update_data["updated_at"] = iso_now()
    result = await db.campuses.find_one_and_update(
        {"id": campus_id}, {"$set": update_data}, projection=NO_MONGO_ID, return_document=True
    )
    return ok(result)


@admin_router.delete("/campuses/{campus_id}")
async def delete_campus(campus_id: str, db: AsyncIOMotorDatabase = Depends(get_db)):
    await workflows.delete_campus(db, campus_id)
    return ok(message="Campus deleted")


# Coordinators

@admin_router.post("/coordinators")
async def create_coordinator(
    payload: CoordinatorCreate,
    actor: Actor = Depends(get_actor),
    db: AsyncIOMotorDatabase = Depends(get_db),
):
    account, profile = await workflows.create_member(
        db,
        Role.COORDINATOR,
        payload.email,
        payload.password,
        {"name": payload.name, "contact_number": payload.contact_number},
        payload.campus_id,
        actor.id,
    )
    return ok({"account": account, "profile": profile}, status_code=status.HTTP_201_CREATED)


@admin_router.get("/coordinators")
async def list_coordinators(db: AsyncIOMotorDatabase = Depends(get_db)):
    coordinators = await db.coordinators.find({}, NO_MONGO_ID).sort("name", 1).to_list(LIST_LIMIT)
    return ok(coordinators, count=len(coordinators))


@admin_router.get("/coordinators/{coordinator_id}")
async def get_coordinator(coordinator_id: str, db: AsyncIOMotorDatabase = Depends(get_db)):
    return ok(await get_or_404(db, "coordinators", coordinator_id, "Coordinator"))


@admin_router.put("/coordinators/{coordinator_id}")
async def update_coordinator(
    coordinator_id: str, payload: CoordinatorUpdate, db: AsyncIOMotorDatabase = Depends(get_db)
):
    changes = payload.model_dump(exclude_unset=True)
    return ok(await workflows.update_member(db, Role.COORDINATOR, coordinator_id, changes))


@admin_router.delete("/coordinators/{coordinator_id}")
async def delete_coordinator(coordinator_id: str, db: AsyncIOMotorDatabase = Depends(get_db)):
    await workflows.delete_member(db, Role.COORDINATOR, coordinator_id)
    return ok(message="Coordinator deleted")


# Teachers

@admin_router.post("/teachers")
async def create_teacher(
    payload: TeacherCreate,
    actor: Actor = Depends(get_actor),
    db: AsyncIOMotorDatabase = Depends(get_db),
):
    fields = payload.model_dump(exclude={"email", "password", "campus_id"})
    account, profile = await workflows.create_member(
        db, Role.TEACHER, payload.email, payload.password, fields, payload.campus_id, actor.id
    )
    return ok({"account": account, "profile": profile}, status_code=status.HTTP_201_CREATED)


@admin_router.get("/teachers")
async def list_teachers(db: AsyncIOMotorDatabase = Depends(get_db)):
    teachers = await db.teachers.find({}, NO_MONGO_ID).sort("name", 1).to_list(LIST_LIMIT)
    return ok(teachers, count=len(teachers))


@admin_router.get("/teachers/{teacher_id}")
async def get_teacher(teacher_id: str, db: AsyncIOMotorDatabase = Depends(get_db)):
    return ok(await get_or_404(db, "teachers", teacher_id, "Teacher"))


@admin_router.put("/teachers/{teacher_id}")
async def update_teacher(teacher_id: str, payload: TeacherUpdate, db: AsyncIOMotorDatabase = Depends(get_db)):
    return ok(await workflows.update_member(db, Role.TEACHER, teacher_id, payload.model_dump(exclude_unset=True)))


@admin_router.delete("/teachers/{teacher_id}")
async def delete_teacher(teacher_id: str, db: AsyncIOMotorDatabase = Depends(get_db)):
    await workflows.delete_member(db, Role.TEACHER, teacher_id)
    return ok(message="Teacher deleted")


# Students

@admin_router.post("/students")
async def create_student(
    payload: StudentCreate,
    actor: Actor = Depends(get_actor),
    db: AsyncIOMotorDatabase = Depends(get_db),
):
    fields = payload.model_dump(exclude={"email", "password", "campus_id"})
    account, profile = await workflows.create_member(
        db, Role.STUDENT, payload.email, payload.password, fields, payload.campus_id, actor.id
    )
    return ok({"account": account, "profile": profile}, status_code=status.HTTP_201_CREATED)


@admin_router.get("/students")
async def list_students(db: AsyncIOMotorDatabase = Depends(get_db)):
    students = await db.students.find({}, NO_MONGO_ID).sort("name", 1).to_list(LIST_LIMIT)
    return ok(students, count=len(students))


@admin_router.get("/students/{student_id}")
async def get_student(student_id: str, db: AsyncIOMotorDatabase = Depends(get_db)):
    return ok(await get_or_404(db, "students", student_id, "Student"))


@admin_router.put("/students/{student_id}")
async def update_student(student_id: str, payload: StudentUpdate, db: AsyncIOMotorDatabase = Depends(get_db)):
    return ok(await workflows.update_member(db, Role.STUDENT, student_id, payload.model_dump(exclude_unset=True)))


@admin_router.delete("/students/{student_id}")
async def delete_student(student_id: str, db: AsyncIOMotorDatabase = Depends(get_db)):
    await workflows.delete_member(db, Role.STUDENT, student_id)
    return ok(message="Student deleted")


# Courses

@admin_router.post("/courses")
async def create_course(
    payload: CourseCreate,
    actor: Actor = Depends(get_actor),
    db: AsyncIOMotorDatabase = Depends(get_db),
):
    course = CourseRecord(**payload.model_dump(), created_by=actor.id)
    created = await workflows.create_course(db, course.model_dump(mode="json"))
    return ok(created, status_code=status.HTTP_201_CREATED)


@admin_router.get("/courses")
async def list_courses(db: AsyncIOMotorDatabase = Depends(get_db)):
    courses = await db.courses.find({}, NO_MONGO_ID).sort("code", 1).to_list(LIST_LIMIT)
    return ok(courses, count=len(courses))


@admin_router.get("/courses/{course_id}")
async def get_course(course_id: str, db: AsyncIOMotorDatabase = Depends(get_db)):
    return ok(await get_or_404(db, "courses", course_id, "Course"))


@admin_router.put("/courses/{course_id}")
async def update_course(course_id: str, payload: CourseUpdate, db: AsyncIOMotorDatabase = Depends(get_db)):
    await get_or_404(db, "courses", course_id, "Course")
    update_data = payload.model_dump(exclude_unset=True)
    if update_data.get("code"):
        clash = await db.courses.find_one({"code": update_data["code"], "id": {"$ne": course_id}}, {"_id": 0, "id": 1})
        if clash:
            raise ConflictError("Course code already exists")
    update_data["updated_at"] = iso_now()
    result = await db.courses.find_one_and_update(
        {"id": course_id}, {"$set": update_data}, projection=NO_MONGO_ID, return_document=True
    )
    return ok(result)


@admin_router.delete("/courses/{course_id}")
async def delete_course(course_id: str, db: AsyncIOMotorDatabase = Depends(get_db)):
    await workflows.delete_course(db, course_id)
    return ok(message="Course deleted")


# Assignments

@admin_router.post("/assign/coordinator")
async def assign_coordinator(payload: CoordinatorAssignment, db: AsyncIOMotorDatabase = Depends(get_db)):
    result = await workflows.assign_coordinator_to_campus(db, payload.coordinator_id, payload.campus_id)
    return ok(result, message="Coordinator assigned to campus")


@admin_router.post("/unassign/coordinator/{coordinator_id}")
async def unassign_coordinator(coordinator_id: str, db: AsyncIOMotorDatabase = Depends(get_db)):
    result = await workflows.unassign_coordinator(db, coordinator_id)
    return ok(result, message="Coordinator unassigned from campus")


@admin_router.post("/assign/courses")
async def assign_courses(payload: CourseAssignment, db: AsyncIOMotorDatabase = Depends(get_db)):
    result = await workflows.assign_courses_to_campus(db, payload.course_ids, payload.campus_id)
    return ok(result, message=f"{len(payload.course_ids)} course(s) assigned to campus")


@admin_router.post("/assign/teachers")
async def assign_teacher(payload: TeacherAssignment, db: AsyncIOMotorDatabase = Depends(get_db)):
    result = await workflows.assign_teacher_to_courses(db, payload.teacher_id, payload.course_ids)
    return ok(result, message="Teacher assigned to courses")


@admin_router.post("/assign/students")
async def assign_students(payload: StudentAssignment, db: AsyncIOMotorDatabase = Depends(get_db)):
    result = await workflows.assign_students_to_campus(
        db, payload.student_ids, payload.campus_id, payload.course_ids
    )
    return ok(result, message=f"{len(payload.student_ids)} student(s) assigned to campus")
