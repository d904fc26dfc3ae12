"""Assessment batches.

A batch is the set of rows sharing a ``batch_id``; each row is one student's
marks for one course. Rows are keyed by ``(batch_id, course_id, student_id)``
and only ever written through ``UpdateOne(..., upsert=True)`` so repeating a
write never duplicates a student inside a batch.
"""

import logging
import math
from typing import Any, Dict, List, Optional, Tuple

from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import UpdateOne

from .authorization import Action, ActorScope, Kind, authorize, ensure
from .database import LIST_LIMIT, NO_MONGO_ID, find_by_ids, get_or_404, iso_now, missing_ids, new_id, unique_ids
from .errors import NotFoundError, UnexpectedError, ValidationError
from .models import ASSESSMENT_TYPES, AssessmentBatchUpsert, AssessmentEntry, AssessmentMetaUpdate, Role
from .scope import course_target

logger = logging.getLogger(__name__)

META_FIELDS = ["type", "title", "description", "date", "total_marks"]


def normalize_type(value: Optional[str]) -> str:
    assessment_type = str(value or "").strip().lower()
    if assessment_type not in ASSESSMENT_TYPES:
        raise ValidationError("Invalid assessment type", {"allowed": ASSESSMENT_TYPES})
    return assessment_type


def parse_total_marks(value: Any) -> float:
    try:
        total = float(value)
    except (TypeError, ValueError):
        raise ValidationError("total_marks must be a positive number")
    if isinstance(value, bool) or not math.isfinite(total) or total < 1:
        raise ValidationError("total_marks must be a positive number")
    return total


def clamp_marks(marks: Any, total: float) -> float:
    try:
        value = float(marks if marks is not None else 0)
    except (TypeError, ValueError):
        return 0.0
    if not math.isfinite(value):
        return 0.0
    return max(0.0, min(total, value))


async def ensure_course_access(
    db: AsyncIOMotorDatabase, scope: ActorScope, course_id: str, action: Action
) -> Dict[str, Any]:
    course = await get_or_404(db, "courses", course_id, "Course")
    ensure(authorize(scope, action, course_target(course, Kind.ASSESSMENT)))
    return course


async def load_batch(
    db: AsyncIOMotorDatabase, scope: ActorScope, batch_id: str, action: Action
) -> Tuple[Dict[str, Any], Dict[str, Any]]:
    sample = await db.assessments.find_one({"batch_id": batch_id}, NO_MONGO_ID)
    if not sample:
        raise NotFoundError("Assessment batch not found")
    course = await ensure_course_access(db, scope, sample["course_id"], action)
    return sample, course


def _grader(scope: ActorScope) -> Dict[str, Any]:
    if scope.role == Role.TEACHER:
        return {"graded_by": scope.profile_id}
    return {}


async def batch_view(db: AsyncIOMotorDatabase, batch_id: str) -> Dict[str, Any]:
    """Meta plus one entry per row, ordered by student name."""
    rows = await db.assessments.find({"batch_id": batch_id}, NO_MONGO_ID).to_list(LIST_LIMIT)
    if not rows:
        raise NotFoundError("Assessment batch not found")
    students = await find_by_ids(
        db, "students", [r["student_id"] for r in rows], {"_id": 0, "id": 1, "name": 1, "email": 1, "phone": 1}
    )
    by_id = {s["id"]: s for s in students}
    entries = []
    for row in rows:
        student = by_id.get(row["student_id"], {})
        entries.append({
            "student_id": row["student_id"],
            "name": student.get("name"),
            "email": student.get("email"),
            "phone": student.get("phone"),
            "marks": row.get("marks", 0),
            "remarks": row.get("remarks", ""),
        })
    entries.sort(key=lambda e: (e["name"] or "").lower())
    first = rows[0]
    return {
        "batch_id": batch_id,
        "course_id": first["course_id"],
        "meta": {field: first.get(field) for field in META_FIELDS},
        "created_by_role": first.get("created_by_role"),
        "count": len(rows),
        "entries": entries,
    }


async def upsert_batch(
    db: AsyncIOMotorDatabase, scope: ActorScope, payload: AssessmentBatchUpsert
) -> Tuple[Dict[str, Any], bool]:
    """Write every row of a batch. Returns the batch view and whether the batch was created."""
    course = await ensure_course_access(
        db, scope, payload.course_id, Action.UPDATE if payload.batch_id else Action.CREATE
    )
    assessment_type = normalize_type(payload.type)
    title = (payload.title or "").strip()
    if not title:
        raise ValidationError("Title is required")
    total = parse_total_marks(payload.total_marks)
    when = payload.date or iso_now()

    entries = list(payload.entries)
    if not entries:
        roster = unique_ids(course.get("student_ids", []))
        if not roster:
            raise ValidationError(
                "No students provided and course roster is empty; cannot create an assessment batch."
            )
        entries = [AssessmentEntry(student_id=sid) for sid in roster]

    student_ids = unique_ids(e.student_id for e in entries)
    if not student_ids:
        raise ValidationError("No valid student ids in entries")
    found = await find_by_ids(db, "students", student_ids, {"_id": 0, "id": 1})
    missing = missing_ids(student_ids, found)
    if missing:
        logger.warning("Assessment upsert for course %s references missing students: %s", course["id"], missing)
        raise NotFoundError("One or more students not found", {"missing_student_ids": missing})

    created = not payload.batch_id
    batch_id = payload.batch_id or new_id()
    if not created:
        other = await db.assessments.find_one(
            {"batch_id": batch_id, "course_id": {"$ne": course["id"]}}, {"_id": 0, "course_id": 1}
        )
        if other:
            raise ValidationError("Assessment batch belongs to another course")

    latest = {e.student_id.strip(): e for e in entries if e.student_id and e.student_id.strip()}
    operations = []
    for student_id in student_ids:
        entry = latest[student_id]
        operations.append(
            UpdateOne(
                {"batch_id": batch_id, "course_id": course["id"], "student_id": student_id},
                {
                    "$set": {
                        "type": assessment_type,
                        "title": title,
                        "description": payload.description,
                        "total_marks": total,
                        "date": when,
                        "marks": clamp_marks(entry.marks, total),
                        "remarks": entry.remarks or "",
                        "updated_at": iso_now(),
                        **_grader(scope),
                    },
                    "$setOnInsert": {
                        "id": new_id(),
                        "created_by": scope.account_id,
                        "created_by_role": scope.role.value,
                        "created_at": iso_now(),
                    },
                },
                upsert=True,
            )
        )
    result = await db.assessments.bulk_write(operations, ordered=False)
    logger.info(
        "Assessment batch %s on course %s: %d upserted, %d modified",
        batch_id, course["id"], result.upserted_count or 0, result.modified_count or 0,
    )

    written = await db.assessments.count_documents({"batch_id": batch_id, "course_id": course["id"]})
    if written == 0:
        logger.error("Assessment batch %s has no rows after write", batch_id)
        raise UnexpectedError("Failed to create assessment rows; please check the roster and try again.")
    return await batch_view(db, batch_id), created


async def list_course_batches(db: AsyncIOMotorDatabase, scope: ActorScope, course_id: str) -> List[Dict[str, Any]]:
    await ensure_course_access(db, scope, course_id, Action.READ)
    pipeline = [
        {"$match": {"course_id": course_id}},
        {"$group": {
            "_id": "$batch_id",
            "type": {"$first": "$type"},
            "title": {"$first": "$title"},
            "description": {"$first": "$description"},
            "total_marks": {"$first": "$total_marks"},
            "date": {"$first": "$date"},
            "created_by_role": {"$first": "$created_by_role"},
            "count": {"$sum": 1},
        }},
        {"$sort": {"date": -1}},
    ]
    batches = await db.assessments.aggregate(pipeline).to_list(LIST_LIMIT)
    for batch in batches:
        batch["batch_id"] = batch.pop("_id")
    return batches


async def get_batch(db: AsyncIOMotorDatabase, scope: ActorScope, batch_id: str) -> Dict[str, Any]:
    await load_batch(db, scope, batch_id, Action.READ)
    return await batch_view(db, batch_id)


async def update_batch_meta(
    db: AsyncIOMotorDatabase, scope: ActorScope, batch_id: str, payload: AssessmentMetaUpdate
) -> Dict[str, Any]:
    await load_batch(db, scope, batch_id, Action.UPDATE)
    changes = payload.model_dump(exclude_unset=True)
    update: Dict[str, Any] = {}
    if "title" in changes:
        title = (changes["title"] or "").strip()
        if not title:
            raise ValidationError("Title is required")
        update["title"] = title
    if "description" in changes:
        update["description"] = changes["description"]
    if "type" in changes:
        update["type"] = normalize_type(changes["type"])
    if "date" in changes and changes["date"]:
        update["date"] = changes["date"]
    if "total_marks" in changes:
        update["total_marks"] = parse_total_marks(changes["total_marks"])
    if update:
        update["updated_at"] = iso_now()
        await db.assessments.update_many({"batch_id": batch_id}, {"$set": update})
        if "total_marks" in update:
            # Marks stay inside [0, total_marks] after the total shrinks.
            await db.assessments.update_many(
                {"batch_id": batch_id, "marks": {"$gt": update["total_marks"]}},
                {"$set": {"marks": update["total_marks"]}},
            )
    return await batch_view(db, batch_id)


async def update_batch_marks(
    db: AsyncIOMotorDatabase, scope: ActorScope, batch_id: str, entries: List[AssessmentEntry]
) -> Dict[str, Any]:
    """Upsert marks rows; a student new to the batch inherits the batch's shared meta on insert."""
    sample, course = await load_batch(db, scope, batch_id, Action.UPDATE)
    if not entries:
        raise ValidationError("No entries to update")
    student_ids = unique_ids(e.student_id for e in entries)
    if not student_ids:
        raise ValidationError("No valid student ids in entries")
    found = await find_by_ids(db, "students", student_ids, {"_id": 0, "id": 1})
    missing = missing_ids(student_ids, found)
    if missing:
        raise NotFoundError("One or more students not found", {"missing_student_ids": missing})

    total = float(sample.get("total_marks") or 0)
    latest = {e.student_id.strip(): e for e in entries if e.student_id and e.student_id.strip()}
    operations = [
        UpdateOne(
            {"batch_id": batch_id, "course_id": course["id"], "student_id": student_id},
            {
                "$set": {
                    "marks": clamp_marks(latest[student_id].marks, total),
                    "remarks": latest[student_id].remarks or "",
                    "updated_at": iso_now(),
                    **_grader(scope),
                },
                "$setOnInsert": {
                    "id": new_id(),
                    **{field: sample.get(field) for field in META_FIELDS},
                    "created_by": sample.get("created_by"),
                    "created_by_role": sample.get("created_by_role"),
                    "created_at": iso_now(),
                },
            },
            upsert=True,
        )
        for student_id in student_ids
    ]
    await db.assessments.bulk_write(operations, ordered=False)
    return await batch_view(db, batch_id)


async def delete_batch(db: AsyncIOMotorDatabase, scope: ActorScope, batch_id: str) -> int:
    await load_batch(db, scope, batch_id, Action.DELETE)
    result = await db.assessments.delete_many({"batch_id": batch_id})
    logger.info("Deleted assessment batch %s (%d rows)", batch_id, result.deleted_count)
    return result.deleted_count


async def delete_batch_row(db: AsyncIOMotorDatabase, scope: ActorScope, batch_id: str, student_id: str) -> bool:
    """Remove one student's row. Returns True when that was the last row, i.e. the batch is gone."""
    row = await db.assessments.find_one({"batch_id": batch_id, "student_id": student_id}, NO_MONGO_ID)
    if not row:
        raise NotFoundError("Row not found")
    await ensure_course_access(db, scope, row["course_id"], Action.DELETE)
    await db.assessments.delete_one({"batch_id": batch_id, "student_id": student_id})
    remaining = await db.assessments.count_documents({"batch_id": batch_id})
    return remaining == 0


async def student_rows(db: AsyncIOMotorDatabase, student_id: str) -> List[Dict[str, Any]]:
    return await db.assessments.find({"student_id": student_id}, NO_MONGO_ID).sort("date", -1).to_list(LIST_LIMIT)
