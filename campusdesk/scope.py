"""Resolve actor scopes and record targets from the registry and organizational graph."""

from typing import Any, Dict, List, Optional

from motor.motor_asyncio import AsyncIOMotorDatabase

from .authorization import ActorScope, Kind, Target, target
from .database import LIST_LIMIT, NO_MONGO_ID
from .errors import NotFoundError
from .models import PROFILE_COLLECTIONS, Actor, Role


async def find_profile(db: AsyncIOMotorDatabase, role: Role, account_id: str) -> Optional[Dict[str, Any]]:
    collection = PROFILE_COLLECTIONS[role]
    if collection is None:
        return None
    return await db[collection].find_one({"account_id": account_id}, NO_MONGO_ID)


async def resolve_scope(db: AsyncIOMotorDatabase, actor: Actor) -> ActorScope:
    profile = await find_profile(db, actor.role, actor.id)
    if actor.role == Role.COORDINATOR:
        campus_id = profile.get("campus_id") if profile else None
    else:
        campus_id = actor.campus_id
    return ActorScope(
        role=actor.role,
        account_id=actor.id,
        profile_id=profile["id"] if profile else None,
        campus_id=campus_id,
    )


async def require_profile(db: AsyncIOMotorDatabase, actor: Actor) -> Dict[str, Any]:
    profile = await find_profile(db, actor.role, actor.id)
    if not profile:
        raise NotFoundError(f"{actor.role.value.capitalize()} profile not found")
    return profile


async def require_coordinator_campus(db: AsyncIOMotorDatabase, actor: Actor) -> ActorScope:
    scope = await resolve_scope(db, actor)
    if not scope.profile_id or not scope.campus_id:
        raise NotFoundError("Coordinator campus not found")
    return scope


def course_target(course: Dict[str, Any], kind: Kind = Kind.COURSE) -> Target:
    return target(kind, campus_ids=[course.get("campus_id")], teacher_ids=course.get("teacher_ids", []))


def teacher_target(teacher: Dict[str, Any]) -> Target:
    return target(Kind.TEACHER, campus_ids=teacher.get("campus_ids", []), owner_id=teacher["id"])


async def student_target(db: AsyncIOMotorDatabase, student: Dict[str, Any], kind: Kind = Kind.STUDENT) -> Target:
    """A student is reachable by its campus and by every teacher of a course it is enrolled in."""
    teacher_ids: List[str] = []
    if student.get("course_ids"):
        courses = await db.courses.find(
            {"id": {"$in": student["course_ids"]}}, {"_id": 0, "teacher_ids": 1}
        ).to_list(LIST_LIMIT)
        for course in courses:
            teacher_ids.extend(course.get("teacher_ids", []))
    return target(kind, campus_ids=[student.get("campus_id")], teacher_ids=teacher_ids, owner_id=student["id"])


def account_target(account: Dict[str, Any], profile: Optional[Dict[str, Any]] = None) -> Target:
    campus_ids = [account.get("campus_id")]
    if profile:
        campus_ids.append(profile.get("campus_id"))
        campus_ids.extend(profile.get("campus_ids", []))
    return target(
        Kind.ACCOUNT,
        campus_ids=campus_ids,
        owner_id=account["id"],
        role=Role(account["role"]),
    )
