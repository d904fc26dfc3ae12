import logging
from typing import Any, Dict

from fastapi import APIRouter, Depends, status
from motor.motor_asyncio import AsyncIOMotorDatabase

from ..config import Settings
from ..database import NO_MONGO_ID, get_app_settings, get_db
from ..errors import AuthenticationError, ValidationError, ok
from ..models import AdminRegister, AuthLogin, Role
from ..scope import find_profile
from ..security import create_access_token, get_current_account, normalize_email, public_account, verify_password
from ..workflows import create_account

logger = logging.getLogger(__name__)

auth_router = APIRouter(prefix="/auth", tags=["auth"])


def _issue_token(account: Dict[str, Any], settings: Settings) -> str:
    return create_access_token(
        {"sub": account["id"], "role": account["role"]},
        settings.jwt_secret,
        settings.jwt_expire_minutes,
    )


@auth_router.post("/admin/register")
async def register_admin(
    payload: AdminRegister,
    db: AsyncIOMotorDatabase = Depends(get_db),
    settings: Settings = Depends(get_app_settings),
):
    if not payload.name.strip():
        raise ValidationError("Name is required")
    if not payload.contact_number.strip():
        raise ValidationError("Contact number is required")
    account = await create_account(
        db,
        payload.email,
        payload.password,
        Role.ADMIN,
        name=payload.name.strip(),
        contact_number=payload.contact_number.strip(),
    )
    logger.info("Registered admin %s", account["email"])
    return ok(public_account(account), status_code=status.HTTP_201_CREATED, token=_issue_token(account, settings))


@auth_router.post("/login")
async def login(
    payload: AuthLogin,
    db: AsyncIOMotorDatabase = Depends(get_db),
    settings: Settings = Depends(get_app_settings),
):
    email = normalize_email(payload.email)
    if not email or not payload.password:
        raise ValidationError("Please provide an email and password")
    account = await db.accounts.find_one({"email": email}, NO_MONGO_ID)
    if not account or not verify_password(payload.password, account.get("password_hash") or ""):
        raise AuthenticationError("Invalid credentials")
    if not account.get("active", True):
        raise AuthenticationError("Account is deactivated")
    profile = await find_profile(db, Role(account["role"]), account["id"])
    return ok(
        {"account": public_account(account), "profile": profile},
        token=_issue_token(account, settings),
    )


@auth_router.get("/me")
async def get_me(
    account: Dict[str, Any] = Depends(get_current_account),
    db: AsyncIOMotorDatabase = Depends(get_db),
):
    profile = await find_profile(db, Role(account["role"]), account["id"])
    return ok({"account": public_account(account), "profile": profile})


@auth_router.post("/logout")
async def logout(account: Dict[str, Any] = Depends(get_current_account)):
    return ok(message="Logged out")
