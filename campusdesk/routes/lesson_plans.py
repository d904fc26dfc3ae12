import math
import re
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, Query, status
from motor.motor_asyncio import AsyncIOMotorDatabase

from ..authorization import Action, ActorScope, Kind, authorize, ensure, target
from ..database import NO_MONGO_ID, get_db, iso_now
from ..errors import NotFoundError, ValidationError, ok
from ..models import LESSON_PLAN_CELLS, LESSON_PLAN_SLOTS, LessonPlanCell, LessonPlanCreate, LessonPlanRecord, LessonPlanUpdate, Role
from ..security import get_scope

lesson_plans_router = APIRouter(prefix="/lesson-plans", tags=["lesson-plans"])

SEARCH_FIELDS = ["head.banner_title", "head.program_name", "head.week_label", "cells.text"]
SEARCH_LIMIT = 20


def _check_slots(slots: List[str], day: str) -> List[str]:
    if len(slots) != LESSON_PLAN_SLOTS:
        raise ValidationError(f"{day} must have exactly {LESSON_PLAN_SLOTS} time slots")
    return list(slots)


def _check_cells(cells: List[LessonPlanCell]) -> List[Dict[str, str]]:
    if len(cells) != LESSON_PLAN_CELLS:
        raise ValidationError(f"Must have exactly {LESSON_PLAN_CELLS} topic cells")
    return [{"text": cell.text or ""} for cell in cells]


async def _scoped_plan(db: AsyncIOMotorDatabase, scope: ActorScope, plan_id: str, action: Action) -> Dict[str, Any]:
    plan = await db.lesson_plans.find_one({"id": plan_id, "is_active": True}, NO_MONGO_ID)
    if not plan:
        raise NotFoundError("Lesson plan not found")
    ensure(authorize(scope, action, target(Kind.LESSON_PLAN, owner_id=plan["created_by"])))
    return plan


def _owner_filter(scope: ActorScope) -> Dict[str, Any]:
    query: Dict[str, Any] = {"is_active": True}
    if scope.role != Role.ADMIN:
        query["created_by"] = scope.account_id
    return query


@lesson_plans_router.post("")
async def create_lesson_plan(
    payload: LessonPlanCreate, scope: ActorScope = Depends(get_scope), db: AsyncIOMotorDatabase = Depends(get_db)
):
    if len(payload.times_sat) != LESSON_PLAN_SLOTS or len(payload.times_sun) != LESSON_PLAN_SLOTS \
            or len(payload.cells) != LESSON_PLAN_CELLS:
        raise ValidationError("Invalid structure: 5 Sat slots, 5 Sun slots, 10 cells required")
    plan = LessonPlanRecord(
        created_by=scope.account_id,
        head=payload.head,
        times_sat=payload.times_sat,
        times_sun=payload.times_sun,
        cells=_check_cells(payload.cells),
    )
    doc = plan.model_dump(mode="json")
    await db.lesson_plans.insert_one(doc)
    doc.pop("_id", None)
    return ok(doc, status_code=status.HTTP_201_CREATED, message="Lesson plan created successfully")


@lesson_plans_router.get("")
async def list_lesson_plans(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    scope: ActorScope = Depends(get_scope),
    db: AsyncIOMotorDatabase = Depends(get_db),
):
    query = _owner_filter(scope)
    total = await db.lesson_plans.count_documents(query)
    plans = await db.lesson_plans.find(query, NO_MONGO_ID).sort("saved_at", -1).skip((page - 1) * limit).limit(limit).to_list(limit)
    return ok(
        plans,
        count=len(plans),
        total=total,
        pagination={"page": page, "pages": math.ceil(total / limit), "limit": limit},
    )


@lesson_plans_router.get("/search")
async def search_lesson_plans(
    q: Optional[str] = None, scope: ActorScope = Depends(get_scope), db: AsyncIOMotorDatabase = Depends(get_db)
):
    query = {"is_active": True, "created_by": scope.account_id}
    if q and q.strip():
        pattern = re.escape(q.strip())
        query["$or"] = [{field: {"$regex": pattern, "$options": "i"}} for field in SEARCH_FIELDS]
    plans = await db.lesson_plans.find(query, NO_MONGO_ID).sort("saved_at", -1).limit(SEARCH_LIMIT).to_list(SEARCH_LIMIT)
    return ok(plans, count=len(plans))


@lesson_plans_router.get("/{plan_id}")
async def get_lesson_plan(plan_id: str, scope: ActorScope = Depends(get_scope), db: AsyncIOMotorDatabase = Depends(get_db)):
    return ok(await _scoped_plan(db, scope, plan_id, Action.READ))


@lesson_plans_router.put("/{plan_id}")
async def update_lesson_plan(
    plan_id: str,
    payload: LessonPlanUpdate,
    scope: ActorScope = Depends(get_scope),
    db: AsyncIOMotorDatabase = Depends(get_db),
):
    plan = await _scoped_plan(db, scope, plan_id, Action.UPDATE)
    update_data: Dict[str, Any] = {}
    if payload.head:
        update_data["head"] = {**plan.get("head", {}), **payload.head}
    if payload.times_sat is not None:
        update_data["times_sat"] = _check_slots(payload.times_sat, "Saturday")
    if payload.times_sun is not None:
        update_data["times_sun"] = _check_slots(payload.times_sun, "Sunday")
    if payload.cells is not None:
        update_data["cells"] = _check_cells(payload.cells)
    update_data["updated_at"] = iso_now()
    result = await db.lesson_plans.find_one_and_update(
        {"id": plan_id}, {"$set": update_data}, projection=NO_MONGO_ID, return_document=True
    )
    return ok(result, message="Lesson plan updated successfully")


@lesson_plans_router.delete("/{plan_id}")
async def delete_lesson_plan(
    plan_id: str, scope: ActorScope = Depends(get_scope), db: AsyncIOMotorDatabase = Depends(get_db)
):
    await _scoped_plan(db, scope, plan_id, Action.DELETE)
    await db.lesson_plans.update_one({"id": plan_id}, {"$set": {"is_active": False, "updated_at": iso_now()}})
    return ok(message="Lesson plan deleted successfully")


@lesson_plans_router.post("/{plan_id}/duplicate")
async def duplicate_lesson_plan(
    plan_id: str, scope: ActorScope = Depends(get_scope), db: AsyncIOMotorDatabase = Depends(get_db)
):
    original = await _scoped_plan(db, scope, plan_id, Action.READ)
    head = dict(original.get("head", {}))
    head["banner_title"] = f"{head.get('banner_title', '')} (Copy)"
    copy = LessonPlanRecord(
        created_by=scope.account_id,
        head=head,
        times_sat=list(original["times_sat"]),
        times_sun=list(original["times_sun"]),
        cells=[{"text": cell.get("text", "")} for cell in original["cells"]],
    )
    doc = copy.model_dump(mode="json")
    await db.lesson_plans.insert_one(doc)
    doc.pop("_id", None)
    return ok(doc, status_code=status.HTTP_201_CREATED, message="Lesson plan duplicated successfully")
