from fastapi import APIRouter, Depends
from motor.motor_asyncio import AsyncIOMotorDatabase

from .. import assessments, attendance, workflows
from ..database import NO_MONGO_ID, find_by_ids, get_db
from ..errors import ok
from ..models import Actor, Role, StudentSelfUpdate
from ..scope import require_profile
from ..security import require_roles

student_router = APIRouter(prefix="/student", tags=["student"])

require_student = require_roles(Role.STUDENT)


@student_router.get("/me")
async def get_me(actor: Actor = Depends(require_student), db: AsyncIOMotorDatabase = Depends(get_db)):
    profile = await require_profile(db, actor)
    campus = None
    if profile.get("campus_id"):
        campus = await db.campuses.find_one({"id": profile["campus_id"]}, {"_id": 0, "id": 1, "name": 1, "location": 1})
    courses = await find_by_ids(db, "courses", profile.get("course_ids", []), {"_id": 0, "id": 1, "name": 1, "code": 1})
    return ok({**profile, "campus": campus, "courses": courses})


@student_router.put("/me")
async def update_me(
    payload: StudentSelfUpdate,
    actor: Actor = Depends(require_student),
    db: AsyncIOMotorDatabase = Depends(get_db),
):
    profile = await require_profile(db, actor)
    updated = await workflows.update_member(db, Role.STUDENT, profile["id"], payload.model_dump(exclude_unset=True))
    return ok(updated)


@student_router.get("/attendance")
async def my_attendance(actor: Actor = Depends(require_student), db: AsyncIOMotorDatabase = Depends(get_db)):
    profile = await require_profile(db, actor)
    records = await attendance.student_attendance(db, profile["id"])
    return ok(records, count=len(records))


@student_router.get("/assessments")
async def my_assessments(actor: Actor = Depends(require_student), db: AsyncIOMotorDatabase = Depends(get_db)):
    profile = await require_profile(db, actor)
    rows = await assessments.student_rows(db, profile["id"])
    return ok(rows, count=len(rows))


@student_router.get("/documents")
async def my_documents(actor: Actor = Depends(require_student), db: AsyncIOMotorDatabase = Depends(get_db)):
    profile = await require_profile(db, actor)
    documents = await db.documents.find({"student_id": profile["id"]}, NO_MONGO_ID).sort("created_at", -1).to_list(200)
    return ok(documents, count=len(documents))
