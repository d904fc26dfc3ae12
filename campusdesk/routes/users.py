from typing import Any, Dict, Optional, Tuple

from fastapi import APIRouter, Depends
from motor.motor_asyncio import AsyncIOMotorDatabase

from .. import workflows
from ..authorization import Action, ActorScope, authorize, ensure
from ..database import LIST_LIMIT, get_db, get_or_404, iso_now
from ..errors import ConflictError, ForbiddenError, ValidationError, ok
from ..models import AccountUpdate, Role
from ..scope import account_target, find_profile
from ..security import get_scope, normalize_email, public_account, require_roles

users_router = APIRouter(prefix="/users", tags=["users"])

ADMIN_ONLY_FIELDS = {"active"}


async def _scoped_account(
    db: AsyncIOMotorDatabase, scope: ActorScope, account_id: str, action: Action
) -> Tuple[Dict[str, Any], Dict[str, Any]]:
    account = await get_or_404(db, "accounts", account_id, "User")
    profile = await find_profile(db, Role(account["role"]), account["id"])
    ensure(authorize(scope, action, account_target(account, profile)))
    return account, profile


@users_router.get("", dependencies=[Depends(require_roles(Role.ADMIN))])
async def list_users(role: Optional[str] = None, db: AsyncIOMotorDatabase = Depends(get_db)):
    query = {"role": role} if role else {}
    accounts = await db.accounts.find(query, {"_id": 0, "password_hash": 0}).sort("email", 1).to_list(LIST_LIMIT)
    return ok(accounts, count=len(accounts))


@users_router.get("/{account_id}")
async def get_user(
    account_id: str, scope: ActorScope = Depends(get_scope), db: AsyncIOMotorDatabase = Depends(get_db)
):
    account, profile = await _scoped_account(db, scope, account_id, Action.READ)
    return ok({"account": public_account(account), "profile": profile})


@users_router.put("/{account_id}")
async def update_user(
    account_id: str,
    payload: AccountUpdate,
    scope: ActorScope = Depends(get_scope),
    db: AsyncIOMotorDatabase = Depends(get_db),
):
    account, _ = await _scoped_account(db, scope, account_id, Action.UPDATE)
    update_data = {k: v for k, v in payload.model_dump(exclude_unset=True).items() if v is not None}
    if "campus_id" in update_data:
        # Campus moves go through the assignment workflows so profile and campus sets follow.
        raise ValidationError("Use the campus assignment endpoints to move an account between campuses")
    if scope.role != Role.ADMIN and ADMIN_ONLY_FIELDS & update_data.keys():
        raise ForbiddenError("Only admins can change active status")
    if "email" in update_data:
        update_data["email"] = normalize_email(update_data["email"])
        if "@" not in update_data["email"]:
            raise ValidationError("Please include a valid email")
        clash = await db.accounts.find_one({"email": update_data["email"], "id": {"$ne": account_id}}, {"_id": 0, "id": 1})
        if clash:
            raise ConflictError("Email already in use")
    update_data["updated_at"] = iso_now()
    result = await db.accounts.find_one_and_update(
        {"id": account_id}, {"$set": update_data}, projection={"_id": 0, "password_hash": 0}, return_document=True
    )
    if "email" in update_data and account["role"] == Role.STUDENT.value:
        await db.students.update_one({"account_id": account_id}, {"$set": {"email": update_data["email"]}})
    return ok(result)


@users_router.delete("/{account_id}")
async def delete_user(
    account_id: str, scope: ActorScope = Depends(get_scope), db: AsyncIOMotorDatabase = Depends(get_db)
):
    account, _ = await _scoped_account(db, scope, account_id, Action.DELETE)
    await workflows.delete_account(db, account)
    return ok(message="User deleted")
