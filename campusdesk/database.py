import logging
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional

from fastapi import Request
from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase

from .config import Settings
from .errors import NotFoundError

logger = logging.getLogger(__name__)

# Every collection is addressed by its string ``id``; Mongo's ``_id`` never leaves the store.
NO_MONGO_ID = {"_id": 0}
LIST_LIMIT = 5000


def iso_now() -> str:
    return datetime.now(timezone.utc).isoformat()


def new_id() -> str:
    return str(uuid.uuid4())


def create_client(settings: Settings) -> AsyncIOMotorClient:
    try:
        return AsyncIOMotorClient(settings.mongo_url, serverSelectionTimeoutMS=5000)
    except Exception as e:
        logger.error(f"Failed to create MongoDB client: {e}")
        raise


def get_db(request: Request) -> AsyncIOMotorDatabase:
    return request.app.state.db


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings


async def ensure_indexes(db: AsyncIOMotorDatabase) -> None:
    for name in (
        "accounts", "coordinators", "teachers", "students", "campuses", "courses",
        "attendance", "assessments", "documents", "lesson_plans", "notifications",
    ):
        await db[name].create_index([("id", 1)], unique=True)
    await db.accounts.create_index([("email", 1)], unique=True)
    await db.campuses.create_index([("name", 1)], unique=True)
    await db.courses.create_index([("code", 1)], unique=True)
    await db.students.create_index([("cnic", 1)], unique=True, sparse=True)
    await db.coordinators.create_index([("account_id", 1)])
    await db.teachers.create_index([("account_id", 1)])
    await db.students.create_index([("account_id", 1)])
    await db.students.create_index([("campus_id", 1)])
    await db.teachers.create_index([("campus_ids", 1)])
    await db.courses.create_index([("campus_id", 1)])
    await db.courses.create_index([("teacher_ids", 1)])
    await db.attendance.create_index([("course_id", 1), ("date", -1)])
    await db.attendance.create_index([("student_id", 1)])
    await db.assessments.create_index(
        [("batch_id", 1), ("course_id", 1), ("student_id", 1)], unique=True
    )
    await db.assessments.create_index([("course_id", 1), ("date", -1)])
    await db.documents.create_index([("student_id", 1)])
    await db.lesson_plans.create_index([("created_by", 1), ("is_active", 1)])
    await db.notifications.create_index([("recipient_type", 1), ("created_at", -1)])
    await db.course_outlines.create_index([("course_id", 1), ("created_at", -1)])


async def get_or_404(db: AsyncIOMotorDatabase, collection: str, doc_id: str, label: str) -> Dict[str, Any]:
    doc = await db[collection].find_one({"id": doc_id}, NO_MONGO_ID)
    if not doc:
        raise NotFoundError(f"{label} not found")
    return doc


async def find_by_ids(
    db: AsyncIOMotorDatabase, collection: str, ids: Iterable[str], projection: Optional[Dict[str, Any]] = None
) -> List[Dict[str, Any]]:
    ids = list(ids)
    if not ids:
        return []
    return await db[collection].find({"id": {"$in": ids}}, projection or NO_MONGO_ID).to_list(LIST_LIMIT)


def missing_ids(requested: Iterable[str], found: Iterable[Dict[str, Any]]) -> List[str]:
    """Ids from ``requested`` (in request order, de-duplicated) with no matching document."""
    found_ids = {doc["id"] for doc in found}
    seen = set()
    result = []
    for doc_id in requested:
        if doc_id not in found_ids and doc_id not in seen:
            result.append(doc_id)
        seen.add(doc_id)
    return result


def unique_ids(ids: Iterable[str]) -> List[str]:
    seen = set()
    result = []
    for doc_id in ids:
        doc_id = str(doc_id or "").strip()
        if doc_id and doc_id not in seen:
            seen.add(doc_id)
            result.append(doc_id)
    return result
