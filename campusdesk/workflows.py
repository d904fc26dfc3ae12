"""Multi-document workflows over the identity store and organizational graph.

Each workflow validates everything it needs before the first write, then
performs its writes inside a :class:`~campusdesk.compensation.Compensator` so
a failure part-way through leaves the bidirectional links as they were.
Membership sets are only ever changed with ``$addToSet``/``$pull``.
"""

import logging
from collections import defaultdict
from typing import Any, Dict, List, Optional, Tuple

from motor.motor_asyncio import AsyncIOMotorDatabase

from .compensation import (
    Compensator,
    deleter,
    reinserter,
    restorer,
    set_adder,
    set_puller,
    snapshot,
)
from .database import LIST_LIMIT, NO_MONGO_ID, find_by_ids, get_or_404, iso_now, missing_ids, unique_ids
from .errors import ConflictError, ForbiddenError, NotFoundError, ValidationError
from .models import (
    PROFILE_COLLECTIONS,
    AccountRecord,
    CoordinatorRecord,
    Role,
    StudentRecord,
    TeacherRecord,
)
from .security import MIN_PASSWORD_LENGTH, get_password_hash, normalize_email, public_account

logger = logging.getLogger(__name__)

PROFILE_MODELS = {
    Role.COORDINATOR: CoordinatorRecord,
    Role.TEACHER: TeacherRecord,
    Role.STUDENT: StudentRecord,
}

# Role -> the campus set that lists profiles of that role.
CAMPUS_MEMBERSHIP = {
    Role.COORDINATOR: "coordinator_ids",
    Role.TEACHER: "teacher_ids",
    Role.STUDENT: "student_ids",
}

# Role -> the course set that lists profiles of that role.
COURSE_MEMBERSHIP = {
    Role.TEACHER: "teacher_ids",
    Role.STUDENT: "student_ids",
}


def _label(role: Role) -> str:
    return role.value.capitalize()


def _require_id_list(ids: Any, field: str) -> List[str]:
    if not isinstance(ids, list):
        raise ValidationError(f"{field} must be an array", {"field_type": {field: "Array"}})
    cleaned = unique_ids(ids)
    if not cleaned:
        raise ValidationError(f"{field} must not be empty", {"required_fields": [field]})
    return cleaned


async def _require_all(db: AsyncIOMotorDatabase, collection: str, ids: List[str], kind: str) -> List[Dict[str, Any]]:
    docs = await find_by_ids(db, collection, ids)
    missing = missing_ids(ids, docs)
    if missing:
        raise NotFoundError(f"One or more {kind}s not found", {f"missing_{kind}_ids": missing})
    by_id = {doc["id"]: doc for doc in docs}
    return [by_id[doc_id] for doc_id in ids]


# ---------------------------------------------------------------------------
# Identity + profile registry
# ---------------------------------------------------------------------------

async def create_account(
    db: AsyncIOMotorDatabase,
    email: str,
    password: str,
    role: Role,
    campus_id: Optional[str] = None,
    **fields: Any,
) -> Dict[str, Any]:
    email = normalize_email(email)
    if not email or "@" not in email:
        raise ValidationError("Please include a valid email")
    if not password or len(password) < MIN_PASSWORD_LENGTH:
        raise ValidationError(f"Please enter a password with {MIN_PASSWORD_LENGTH} or more characters")
    if await db.accounts.find_one({"email": email}, {"_id": 0, "id": 1}):
        raise ConflictError("Email already in use")
    account = AccountRecord(email=email, role=role, campus_id=campus_id, **fields)
    doc = account.model_dump(mode="json")
    doc["password_hash"] = get_password_hash(password)
    await db.accounts.insert_one(doc)
    doc.pop("_id", None)
    return doc


async def create_member(
    db: AsyncIOMotorDatabase,
    role: Role,
    email: str,
    password: str,
    profile_fields: Dict[str, Any],
    campus_id: Optional[str],
    created_by: str,
) -> Tuple[Dict[str, Any], Dict[str, Any]]:
    """Create an account and its role profile as one unit, linked to ``campus_id`` when given."""
    if campus_id:
        await get_or_404(db, "campuses", campus_id, "Campus")
    if role == Role.STUDENT and await db.students.find_one({"cnic": profile_fields.get("cnic")}, {"_id": 0, "id": 1}):
        raise ConflictError("A student with this CNIC already exists")

    collection = PROFILE_COLLECTIONS[role]
    async with Compensator(f"create {role.value}") as comp:
        account = await create_account(
            db, email, password, role, campus_id=campus_id,
            name=profile_fields.get("name"), contact_number=profile_fields.get("contact_number"),
        )
        comp.on_failure(deleter(db, "accounts", account["id"]))

        fields = dict(profile_fields)
        if role == Role.TEACHER:
            fields["campus_ids"] = [campus_id] if campus_id else []
        else:
            fields["campus_id"] = campus_id
        if role == Role.STUDENT:
            fields["email"] = account["email"]
        profile = PROFILE_MODELS[role](account_id=account["id"], created_by=created_by, **fields)
        profile_doc = profile.model_dump(mode="json")
        await db[collection].insert_one(profile_doc)
        profile_doc.pop("_id", None)
        comp.on_failure(deleter(db, collection, profile_doc["id"]))

        if campus_id:
            await db.campuses.update_one(
                {"id": campus_id}, {"$addToSet": {CAMPUS_MEMBERSHIP[role]: profile_doc["id"]}}
            )
            comp.on_failure(set_puller(db, "campuses", [campus_id], CAMPUS_MEMBERSHIP[role], [profile_doc["id"]]))

    logger.info("Created %s %s (account %s)", role.value, profile_doc["id"], account["id"])
    return public_account(account), profile_doc


async def update_member(db: AsyncIOMotorDatabase, role: Role, profile_id: str, changes: Dict[str, Any]) -> Dict[str, Any]:
    """Apply profile changes; ``name``/``contact_number`` are mirrored onto the account."""
    collection = PROFILE_COLLECTIONS[role]
    profile = await get_or_404(db, collection, profile_id, _label(role))
    if not changes:
        return profile
    changes["updated_at"] = iso_now()
    updated = await db[collection].find_one_and_update(
        {"id": profile_id}, {"$set": changes}, projection=NO_MONGO_ID, return_document=True
    )
    mirrored = {k: changes[k] for k in ("name", "contact_number") if k in changes}
    if mirrored:
        await db.accounts.update_one({"id": profile["account_id"]}, {"$set": mirrored})
    return updated


async def delete_member(db: AsyncIOMotorDatabase, role: Role, profile_id: str) -> None:
    """Detach a profile from every membership set, then delete it together with its account."""
    collection = PROFILE_COLLECTIONS[role]
    profile = await get_or_404(db, collection, profile_id, _label(role))
    account = await db.accounts.find_one({"id": profile["account_id"]}, NO_MONGO_ID)

    campus_field = CAMPUS_MEMBERSHIP[role]
    campuses = await db.campuses.find({campus_field: profile_id}, {"_id": 0, "id": 1}).to_list(LIST_LIMIT)
    campus_ids = [c["id"] for c in campuses]
    course_field = COURSE_MEMBERSHIP.get(role)
    course_ids: List[str] = []
    if course_field:
        courses = await db.courses.find({course_field: profile_id}, {"_id": 0, "id": 1}).to_list(LIST_LIMIT)
        course_ids = [c["id"] for c in courses]

    async with Compensator(f"delete {role.value}") as comp:
        if campus_ids:
            await db.campuses.update_many({"id": {"$in": campus_ids}}, {"$pull": {campus_field: profile_id}})
            comp.on_failure(set_adder(db, "campuses", campus_ids, campus_field, [profile_id]))
        if course_ids:
            await db.courses.update_many({"id": {"$in": course_ids}}, {"$pull": {course_field: profile_id}})
            comp.on_failure(set_adder(db, "courses", course_ids, course_field, [profile_id]))
        if account:
            await db.accounts.delete_one({"id": account["id"]})
            comp.on_failure(reinserter(db, "accounts", account))
        await db[collection].delete_one({"id": profile_id})

    logger.info("Deleted %s %s and its account", role.value, profile_id)


async def delete_account(db: AsyncIOMotorDatabase, account: Dict[str, Any]) -> None:
    """Delete an account; a linked profile goes with it."""
    role = Role(account["role"])
    collection = PROFILE_COLLECTIONS[role]
    if collection:
        profile = await db[collection].find_one({"account_id": account["id"]}, {"_id": 0, "id": 1})
        if profile:
            await delete_member(db, role, profile["id"])
            return
    await db.accounts.delete_one({"id": account["id"]})


async def delete_campus(db: AsyncIOMotorDatabase, campus_id: str) -> None:
    """Delete a campus, detaching (never deleting) its coordinators, teachers, students and courses."""
    campus = await get_or_404(db, "campuses", campus_id, "Campus")

    coordinators = await db.coordinators.find({"campus_id": campus_id}, {"_id": 0, "id": 1}).to_list(LIST_LIMIT)
    teachers = await db.teachers.find({"campus_ids": campus_id}, {"_id": 0, "id": 1}).to_list(LIST_LIMIT)
    students = await db.students.find({"campus_id": campus_id}, {"_id": 0, "id": 1}).to_list(LIST_LIMIT)
    courses = await db.courses.find({"campus_id": campus_id}, {"_id": 0, "id": 1}).to_list(LIST_LIMIT)
    accounts = await db.accounts.find({"campus_id": campus_id}, {"_id": 0, "id": 1}).to_list(LIST_LIMIT)

    async with Compensator("delete campus") as comp:
        for collection, docs in (
            ("coordinators", coordinators),
            ("students", students),
            ("courses", courses),
            ("accounts", accounts),
        ):
            ids = [d["id"] for d in docs]
            if ids:
                await db[collection].update_many({"id": {"$in": ids}}, {"$set": {"campus_id": None}})
                comp.on_failure(set_field(db, collection, ids, "campus_id", campus_id))
        teacher_ids = [t["id"] for t in teachers]
        if teacher_ids:
            await db.teachers.update_many({"id": {"$in": teacher_ids}}, {"$pull": {"campus_ids": campus_id}})
            comp.on_failure(set_adder(db, "teachers", teacher_ids, "campus_ids", [campus_id]))
        await db.campuses.delete_one({"id": campus_id})

    logger.info(
        "Deleted campus %s (%s); detached %d coordinator(s), %d teacher(s), %d student(s), %d course(s)",
        campus_id, campus.get("name"), len(coordinators), len(teachers), len(students), len(courses),
    )


def set_field(db: AsyncIOMotorDatabase, collection: str, ids: List[str], field: str, value: Any):
    async def undo() -> None:
        await db[collection].update_many({"id": {"$in": ids}}, {"$set": {field: value}})

    return undo


async def create_course(db: AsyncIOMotorDatabase, course_doc: Dict[str, Any]) -> Dict[str, Any]:
    """Insert a course and link it to its campus and teachers."""
    if await db.courses.find_one({"code": course_doc["code"]}, {"_id": 0, "id": 1}):
        raise ConflictError("Course code already exists")
    campus_id = course_doc.get("campus_id")
    if campus_id:
        await get_or_404(db, "campuses", campus_id, "Campus")
    teacher_ids = unique_ids(course_doc.get("teacher_ids", []))
    teachers = await _require_all(db, "teachers", teacher_ids, "teacher") if teacher_ids else []
    course_doc["teacher_ids"] = []

    async with Compensator("create course") as comp:
        await db.courses.insert_one(course_doc)
        course_doc.pop("_id", None)
        comp.on_failure(deleter(db, "courses", course_doc["id"]))
        if campus_id:
            await db.campuses.update_one({"id": campus_id}, {"$addToSet": {"course_ids": course_doc["id"]}})
            comp.on_failure(set_puller(db, "campuses", [campus_id], "course_ids", [course_doc["id"]]))
        for teacher in teachers:
            await _link_teacher(comp, db, teacher, [dict(course_doc)])

    return await get_or_404(db, "courses", course_doc["id"], "Course")


async def delete_course(db: AsyncIOMotorDatabase, course_id: str) -> None:
    course = await get_or_404(db, "courses", course_id, "Course")
    students = await db.students.find({"course_ids": course_id}, {"_id": 0, "id": 1}).to_list(LIST_LIMIT)
    student_ids = [s["id"] for s in students]

    async with Compensator("delete course") as comp:
        if course.get("campus_id"):
            await db.campuses.update_one({"id": course["campus_id"]}, {"$pull": {"course_ids": course_id}})
            comp.on_failure(set_adder(db, "campuses", [course["campus_id"]], "course_ids", [course_id]))
        if student_ids:
            await db.students.update_many({"id": {"$in": student_ids}}, {"$pull": {"course_ids": course_id}})
            comp.on_failure(set_adder(db, "students", student_ids, "course_ids", [course_id]))
        await db.courses.delete_one({"id": course_id})


# ---------------------------------------------------------------------------
# Assignment workflows
# ---------------------------------------------------------------------------

async def assign_coordinator_to_campus(db: AsyncIOMotorDatabase, coordinator_id: str, campus_id: str) -> Dict[str, Any]:
    coordinator = await get_or_404(db, "coordinators", coordinator_id, "Coordinator")
    campus = await get_or_404(db, "campuses", campus_id, "Campus")

    if coordinator.get("campus_id") == campus_id and coordinator_id in campus.get("coordinator_ids", []):
        return {"assigned": [], "already_linked": [coordinator_id], "coordinator": coordinator}

    previous_campus = coordinator.get("campus_id")
    account_snapshot = await snapshot(db, "accounts", [coordinator["account_id"]], ["campus_id"])
    async with Compensator("assign coordinator") as comp:
        if previous_campus and previous_campus != campus_id:
            await db.campuses.update_one({"id": previous_campus}, {"$pull": {"coordinator_ids": coordinator_id}})
            comp.on_failure(set_adder(db, "campuses", [previous_campus], "coordinator_ids", [coordinator_id]))
        await db.coordinators.update_one(
            {"id": coordinator_id}, {"$set": {"campus_id": campus_id, "updated_at": iso_now()}}
        )
        comp.on_failure(restorer(db, "coordinators", [coordinator], ["campus_id"]))
        await db.accounts.update_one({"id": coordinator["account_id"]}, {"$set": {"campus_id": campus_id}})
        comp.on_failure(restorer(db, "accounts", account_snapshot, ["campus_id"]))
        await db.campuses.update_one({"id": campus_id}, {"$addToSet": {"coordinator_ids": coordinator_id}})

    updated = await get_or_404(db, "coordinators", coordinator_id, "Coordinator")
    return {"assigned": [coordinator_id], "already_linked": [], "coordinator": updated}


async def unassign_coordinator(db: AsyncIOMotorDatabase, coordinator_id: str) -> Dict[str, Any]:
    coordinator = await get_or_404(db, "coordinators", coordinator_id, "Coordinator")
    campus_id = coordinator.get("campus_id")
    if not campus_id:
        raise ValidationError("Coordinator is not assigned to a campus")

    account_snapshot = await snapshot(db, "accounts", [coordinator["account_id"]], ["campus_id"])
    async with Compensator("unassign coordinator") as comp:
        await db.campuses.update_one({"id": campus_id}, {"$pull": {"coordinator_ids": coordinator_id}})
        comp.on_failure(set_adder(db, "campuses", [campus_id], "coordinator_ids", [coordinator_id]))
        await db.coordinators.update_one({"id": coordinator_id}, {"$set": {"campus_id": None, "updated_at": iso_now()}})
        comp.on_failure(restorer(db, "coordinators", [coordinator], ["campus_id"]))
        await db.accounts.update_one({"id": coordinator["account_id"]}, {"$set": {"campus_id": None}})
        comp.on_failure(restorer(db, "accounts", account_snapshot, ["campus_id"]))

    return await get_or_404(db, "coordinators", coordinator_id, "Coordinator")


async def assign_courses_to_campus(db: AsyncIOMotorDatabase, course_ids: Any, campus_id: str) -> Dict[str, Any]:
    course_ids = _require_id_list(course_ids, "course_ids")
    campus = await get_or_404(db, "campuses", campus_id, "Campus")
    courses = await _require_all(db, "courses", course_ids, "course")

    campus_courses = set(campus.get("course_ids", []))
    already = [c["id"] for c in courses if c.get("campus_id") == campus_id and c["id"] in campus_courses]
    assigned = [c["id"] for c in courses if c["id"] not in already]

    moved_from: Dict[str, List[str]] = defaultdict(list)
    for course in courses:
        old = course.get("campus_id")
        if old and old != campus_id:
            moved_from[old].append(course["id"])
    newly_listed = [cid for cid in course_ids if cid not in campus_courses]

    async with Compensator("assign courses to campus") as comp:
        for old_campus, ids in moved_from.items():
            await db.campuses.update_one({"id": old_campus}, {"$pull": {"course_ids": {"$in": ids}}})
            comp.on_failure(set_adder(db, "campuses", [old_campus], "course_ids", ids))
        await db.courses.update_many(
            {"id": {"$in": course_ids}}, {"$set": {"campus_id": campus_id, "updated_at": iso_now()}}
        )
        comp.on_failure(restorer(db, "courses", courses, ["campus_id"]))
        await db.campuses.update_one({"id": campus_id}, {"$addToSet": {"course_ids": {"$each": course_ids}}})
        comp.on_failure(set_puller(db, "campuses", [campus_id], "course_ids", newly_listed))

    updated = await find_by_ids(db, "courses", course_ids, {"_id": 0, "id": 1, "name": 1, "code": 1, "campus_id": 1})
    return {
        "campus": campus["name"],
        "assigned": assigned,
        "already_linked": already,
        "assigned_courses": updated,
    }


async def _link_teacher(comp: Compensator, db: AsyncIOMotorDatabase, teacher: Dict[str, Any],
                        courses: List[Dict[str, Any]]) -> Tuple[List[str], List[str]]:
    """Write the teacher/course/campus links, registering each undo step on ``comp``.

    Returns the ``(assigned, already_linked)`` course ids.
    """
    teacher_id = teacher["id"]
    already = [c["id"] for c in courses if teacher_id in c.get("teacher_ids", [])]
    assigned = [c["id"] for c in courses if c["id"] not in already]
    derived_campus_ids = unique_ids(c.get("campus_id") for c in courses)
    campuses = await find_by_ids(db, "campuses", derived_campus_ids, {"_id": 0, "id": 1, "teacher_ids": 1})
    campuses_missing_teacher = [c["id"] for c in campuses if teacher_id not in c.get("teacher_ids", [])]
    account_snapshot = await snapshot(db, "accounts", [teacher["account_id"]], ["campus_id"])

    if assigned:
        await db.courses.update_many(
            {"id": {"$in": assigned}},
            {"$addToSet": {"teacher_ids": teacher_id}, "$set": {"updated_at": iso_now()}},
        )
        comp.on_failure(set_puller(db, "courses", assigned, "teacher_ids", [teacher_id]))
    if campuses_missing_teacher:
        await db.campuses.update_many(
            {"id": {"$in": campuses_missing_teacher}}, {"$addToSet": {"teacher_ids": teacher_id}}
        )
        comp.on_failure(set_puller(db, "campuses", campuses_missing_teacher, "teacher_ids", [teacher_id]))
    if derived_campus_ids:
        await db.teachers.update_one(
            {"id": teacher_id},
            {"$addToSet": {"campus_ids": {"$each": derived_campus_ids}}, "$set": {"updated_at": iso_now()}},
        )
        comp.on_failure(restorer(db, "teachers", [teacher], ["campus_ids"]))
        if account_snapshot and not account_snapshot[0].get("campus_id"):
            await db.accounts.update_one(
                {"id": teacher["account_id"]}, {"$set": {"campus_id": derived_campus_ids[0]}}
            )
            comp.on_failure(restorer(db, "accounts", account_snapshot, ["campus_id"]))
    return assigned, already


async def assign_teacher_to_courses(db: AsyncIOMotorDatabase, teacher_id: str, course_ids: Any) -> Dict[str, Any]:
    """Add the teacher to every course, then link teacher and the courses' campuses both ways.

    The campus links are derived from the courses as stored, never taken from the caller.
    """
    course_ids = _require_id_list(course_ids, "course_ids")
    teacher = await get_or_404(db, "teachers", teacher_id, "Teacher")
    courses = await _require_all(db, "courses", course_ids, "course")

    async with Compensator("assign teacher to courses") as comp:
        assigned, already = await _link_teacher(comp, db, teacher, courses)

    updated_teacher = await get_or_404(db, "teachers", teacher_id, "Teacher")
    updated_courses = await find_by_ids(
        db, "courses", course_ids, {"_id": 0, "id": 1, "name": 1, "code": 1, "campus_id": 1, "teacher_ids": 1}
    )
    return {
        "assigned": assigned,
        "already_linked": already,
        "teacher": updated_teacher,
        "courses": updated_courses,
    }


async def _enroll(comp: Compensator, db: AsyncIOMotorDatabase, student_ids: List[str],
                  courses: List[Dict[str, Any]]) -> None:
    """Link students and courses in both directions; caller has snapshotted ``students.course_ids``."""
    for course in courses:
        new_for_course = [sid for sid in student_ids if sid not in course.get("student_ids", [])]
        if not new_for_course:
            continue
        await db.courses.update_one(
            {"id": course["id"]},
            {"$addToSet": {"student_ids": {"$each": new_for_course}}, "$set": {"updated_at": iso_now()}},
        )
        comp.on_failure(set_puller(db, "courses", [course["id"]], "student_ids", new_for_course))
    await db.students.update_many(
        {"id": {"$in": student_ids}},
        {"$addToSet": {"course_ids": {"$each": [c["id"] for c in courses]}}, "$set": {"updated_at": iso_now()}},
    )


async def assign_students_to_campus(
    db: AsyncIOMotorDatabase, student_ids: Any, campus_id: str, course_ids: Optional[List[str]] = None
) -> Dict[str, Any]:
    student_ids = _require_id_list(student_ids, "student_ids")
    campus = await get_or_404(db, "campuses", campus_id, "Campus")
    students = await _require_all(db, "students", student_ids, "student")
    course_ids = unique_ids(course_ids or [])
    courses = await _require_all(db, "courses", course_ids, "course") if course_ids else []

    campus_students = set(campus.get("student_ids", []))
    already = [s["id"] for s in students if s.get("campus_id") == campus_id and s["id"] in campus_students]
    assigned = [s["id"] for s in students if s["id"] not in already]
    moved_from: Dict[str, List[str]] = defaultdict(list)
    for student in students:
        old = student.get("campus_id")
        if old and old != campus_id:
            moved_from[old].append(student["id"])
    newly_listed = [sid for sid in student_ids if sid not in campus_students]
    account_ids = [s["account_id"] for s in students]
    account_snapshot = await snapshot(db, "accounts", account_ids, ["campus_id"])

    async with Compensator("assign students to campus") as comp:
        for old_campus, ids in moved_from.items():
            await db.campuses.update_one({"id": old_campus}, {"$pull": {"student_ids": {"$in": ids}}})
            comp.on_failure(set_adder(db, "campuses", [old_campus], "student_ids", ids))
        await db.students.update_many(
            {"id": {"$in": student_ids}}, {"$set": {"campus_id": campus_id, "updated_at": iso_now()}}
        )
        comp.on_failure(restorer(db, "students", students, ["campus_id", "course_ids"]))
        await db.accounts.update_many({"id": {"$in": account_ids}}, {"$set": {"campus_id": campus_id}})
        comp.on_failure(restorer(db, "accounts", account_snapshot, ["campus_id"]))
        await db.campuses.update_one({"id": campus_id}, {"$addToSet": {"student_ids": {"$each": student_ids}}})
        comp.on_failure(set_puller(db, "campuses", [campus_id], "student_ids", newly_listed))
        if courses:
            await _enroll(comp, db, student_ids, courses)

    result: Dict[str, Any] = {
        "campus": campus["name"],
        "assigned": assigned,
        "already_linked": already,
        "assigned_students": await find_by_ids(
            db, "students", student_ids, {"_id": 0, "id": 1, "name": 1, "cnic": 1, "campus_id": 1, "course_ids": 1}
        ),
    }
    if courses:
        result["assigned_courses"] = await find_by_ids(
            db, "courses", course_ids, {"_id": 0, "id": 1, "name": 1, "code": 1, "student_ids": 1}
        )
    return result


async def enroll_students_in_course(db: AsyncIOMotorDatabase, course_id: str, student_ids: Any) -> Dict[str, Any]:
    student_ids = _require_id_list(student_ids, "student_ids")
    course = await get_or_404(db, "courses", course_id, "Course")
    students = await _require_all(db, "students", student_ids, "student")
    already = [sid for sid in student_ids if sid in course.get("student_ids", [])]
    assigned = [sid for sid in student_ids if sid not in already]

    async with Compensator("enroll students") as comp:
        comp.on_failure(restorer(db, "students", students, ["course_ids"]))
        await _enroll(comp, db, student_ids, [course])

    return {
        "assigned": assigned,
        "already_linked": already,
        "course": await get_or_404(db, "courses", course_id, "Course"),
    }


# ---------------------------------------------------------------------------
# Coordinator-scoped course staffing
# ---------------------------------------------------------------------------

async def coordinator_assign_teacher(
    db: AsyncIOMotorDatabase, campus_id: str, course_id: str, teacher_id: str
) -> Dict[str, Any]:
    course = await get_or_404(db, "courses", course_id, "Course")
    teacher = await get_or_404(db, "teachers", teacher_id, "Teacher")
    if course.get("campus_id") != campus_id:
        raise ForbiddenError("Course not in your campus")
    account = await db.accounts.find_one({"id": teacher["account_id"]}, {"_id": 0, "campus_id": 1}) or {}
    if campus_id not in teacher.get("campus_ids", []) and account.get("campus_id") != campus_id:
        raise ForbiddenError("Teacher does not belong to your campus")
    if teacher_id in course.get("teacher_ids", []):
        raise ValidationError("Teacher is already assigned to this course")
    await assign_teacher_to_courses(db, teacher_id, [course_id])
    return await get_or_404(db, "courses", course_id, "Course")


async def coordinator_unassign_teacher(
    db: AsyncIOMotorDatabase, campus_id: str, course_id: str, teacher_id: str
) -> Dict[str, Any]:
    """Remove the teacher from one course; campus membership on both sides is kept."""
    course = await get_or_404(db, "courses", course_id, "Course")
    if course.get("campus_id") != campus_id:
        raise ForbiddenError("Course not in your campus")
    if teacher_id not in course.get("teacher_ids", []):
        raise ValidationError("Teacher is not assigned to this course")
    await db.courses.update_one(
        {"id": course_id}, {"$pull": {"teacher_ids": teacher_id}, "$set": {"updated_at": iso_now()}}
    )
    return await get_or_404(db, "courses", course_id, "Course")
