from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, Optional

import jwt
from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from passlib.context import CryptContext

from .authorization import ActorScope
from .database import NO_MONGO_ID
from .errors import AuthenticationError, ForbiddenError, UnexpectedError
from .models import Actor, Role
from .scope import resolve_scope

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")
security = HTTPBearer(auto_error=False)

MIN_PASSWORD_LENGTH = 6


def get_password_hash(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    return pwd_context.verify(plain_password, hashed_password)


def normalize_email(email: Optional[str]) -> str:
    return (email or "").strip().lower()


def create_access_token(data: Dict[str, Any], secret: str, expires_minutes: int) -> str:
    if not secret:
        raise UnexpectedError("JWT secret not configured")
    to_encode = data.copy()
    to_encode["exp"] = datetime.now(timezone.utc) + timedelta(minutes=expires_minutes)
    return jwt.encode(to_encode, secret, algorithm="HS256")


def public_account(account: Dict[str, Any]) -> Dict[str, Any]:
    """Strip the credential hash before an account goes into a response."""
    return {k: v for k, v in account.items() if k not in ("password_hash", "_id")}


async def get_current_account(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> Dict[str, Any]:
    if not credentials:
        raise AuthenticationError("Not authorized to access this route")
    secret = request.app.state.settings.jwt_secret
    if not secret:
        raise UnexpectedError("JWT secret not configured")
    try:
        payload = jwt.decode(credentials.credentials, secret, algorithms=["HS256"])
    except jwt.PyJWTError:
        raise AuthenticationError("Not authorized to access this route")
    account_id = payload.get("sub")
    if not account_id:
        raise AuthenticationError("Not authorized to access this route")
    account = await request.app.state.db.accounts.find_one({"id": account_id}, NO_MONGO_ID)
    if not account:
        raise AuthenticationError("Not authorized to access this route")
    if not account.get("active", True):
        raise AuthenticationError("Account is deactivated")
    return account


async def get_actor(account: Dict[str, Any] = Depends(get_current_account)) -> Actor:
    return Actor(
        id=account["id"],
        role=Role(account["role"]),
        email=account["email"],
        campus_id=account.get("campus_id"),
    )


def require_roles(*roles: Role) -> Callable:
    """Route dependency admitting only the given roles."""

    async def dependency(actor: Actor = Depends(get_actor)) -> Actor:
        if actor.role not in roles:
            raise ForbiddenError(f"User role {actor.role.value} is not authorized to access this route")
        return actor

    return dependency


async def get_scope(request: Request, actor: Actor = Depends(get_actor)) -> ActorScope:
    return await resolve_scope(request.app.state.db, actor)
