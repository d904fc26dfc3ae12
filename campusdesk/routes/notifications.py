from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, Query, status
from motor.motor_asyncio import AsyncIOMotorDatabase

from ..authorization import (
    ActorScope,
    can_create_notification,
    can_read_notification,
    normalize_recipient_type,
    readable_recipient_types,
)
from ..database import LIST_LIMIT, NO_MONGO_ID, get_db
from ..errors import ForbiddenError, NotFoundError, ValidationError, ok
from ..models import RECIPIENT_TYPES, NotificationCreate, NotificationRecord, Role
from ..security import get_scope

notifications_router = APIRouter(prefix="/notifications", tags=["notifications"])


@notifications_router.post("")
async def create_notification(
    payload: NotificationCreate, scope: ActorScope = Depends(get_scope), db: AsyncIOMotorDatabase = Depends(get_db)
):
    recipient_type = normalize_recipient_type(payload.recipient_type)
    if recipient_type not in RECIPIENT_TYPES:
        raise ValidationError("Invalid recipient type", {"allowed": RECIPIENT_TYPES})
    if not can_create_notification(scope.role, recipient_type):
        raise ForbiddenError("Not allowed to create this type of notification")
    subject = (payload.subject or "").strip()
    message = (payload.message or "").strip()
    if not subject or not message:
        raise ValidationError("Subject and message are required")
    record = NotificationRecord(
        recipient_type=recipient_type,
        subject=subject,
        message=message,
        schedule=payload.schedule,
        created_by=scope.account_id,
        created_by_role=scope.role,
    )
    doc = record.model_dump(mode="json")
    await db.notifications.insert_one(doc)
    doc.pop("_id", None)
    return ok(doc, status_code=status.HTTP_201_CREATED)


@notifications_router.get("")
async def list_notifications(
    recipient_type: Optional[str] = Query(None),
    scope: ActorScope = Depends(get_scope),
    db: AsyncIOMotorDatabase = Depends(get_db),
):
    audience = readable_recipient_types(scope.role)
    wanted = normalize_recipient_type(recipient_type) if recipient_type else None
    if wanted:
        audience = [wanted] if wanted in audience else []

    clauses: List[Dict[str, Any]] = []
    if audience:
        clauses.append({"recipient_type": {"$in": audience}})
    if scope.role == Role.TEACHER:
        # Teachers also see what they wrote themselves; the audience rule below trims the rest.
        own: Dict[str, Any] = {"created_by": scope.account_id}
        if wanted:
            own["recipient_type"] = wanted
        clauses.append(own)
    if not clauses:
        return ok([], count=0)

    query = clauses[0] if len(clauses) == 1 else {"$or": clauses}
    notifications = await db.notifications.find(query, NO_MONGO_ID).sort("created_at", -1).limit(LIST_LIMIT).to_list(LIST_LIMIT)
    notifications = [n for n in notifications if can_read_notification(scope, n)]
    return ok(notifications, count=len(notifications))


@notifications_router.get("/{notification_id}")
async def get_notification(
    notification_id: str, scope: ActorScope = Depends(get_scope), db: AsyncIOMotorDatabase = Depends(get_db)
):
    notification = await db.notifications.find_one({"id": notification_id}, NO_MONGO_ID)
    if not notification:
        raise NotFoundError("Notification not found")
    if not can_read_notification(scope, notification):
        raise ForbiddenError("Not authorized to view this notification")
    return ok(notification)
