"""Password hashing, JWT issuance and the FastAPI auth dependencies."""

import logging
from datetime import timedelta
from typing import Any, Dict, Literal, Optional

from bson import ObjectId
from fastapi import Depends, Request
from jose import ExpiredSignatureError, JWTError, jwt
from passlib.context import CryptContext
from pydantic import BaseModel

from config import get_settings
from database import ADMINS, get_collection, is_object_id, utcnow
from errors import Forbidden, Unauthorized

logger = logging.getLogger(__name__)

settings = get_settings()
pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto", bcrypt__rounds=settings.bcrypt_rounds)


class CurrentAdmin(BaseModel):
    id: str
    username: str
    email: str
    role: Literal["admin", "super_admin"]
    isActive: bool = True

    @property
    def oid(self) -> ObjectId:
        return ObjectId(self.id)


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(plain: str, hashed: str) -> bool:
    if not hashed:
        return False
    return pwd_context.verify(plain, hashed)


def _encode(admin_id: str, lifetime: timedelta) -> str:
    payload = {"id": admin_id, "exp": utcnow() + lifetime}
    return jwt.encode(payload, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def create_access_token(admin_id: str) -> str:
    return _encode(admin_id, timedelta(hours=settings.access_token_expire_hours))


def create_refresh_token(admin_id: str) -> str:
    return _encode(admin_id, timedelta(days=settings.refresh_token_expire_days))


def decode_token(token: str) -> Dict[str, Any]:
    """Verify signature and expiry; raise Unauthorized with a distinct message for each."""
    try:
        return jwt.decode(token, settings.jwt_secret, algorithms=[settings.jwt_algorithm])
    except ExpiredSignatureError:
        raise Unauthorized("Token expired.")
    except JWTError:
        raise Unauthorized("Invalid token.")


def _bearer_token(request: Request) -> Optional[str]:
    auth_header = request.headers.get("Authorization", "")
    if not auth_header.startswith("Bearer "):
        return None
    return auth_header.removeprefix("Bearer ").strip() or None


def _resolve_admin(token: str) -> CurrentAdmin:
    payload = decode_token(token)
    admin_id = payload.get("id")
    if not is_object_id(admin_id):
        raise Unauthorized("Invalid token.")
    doc = get_collection(ADMINS).find_one({"_id": ObjectId(admin_id)}, {"passwordHash": 0})
    if not doc or not doc.get("isActive", False):
        raise Unauthorized("Invalid token or admin account inactive.")
    return CurrentAdmin(
        id=str(doc["_id"]),
        username=doc["username"],
        email=doc["email"],
        role=doc.get("role", "admin"),
        isActive=doc.get("isActive", True),
    )


def get_current_admin(request: Request) -> CurrentAdmin:
    """Dependency: the authenticated, active admin behind the Bearer token."""
    token = _bearer_token(request)
    if not token:
        raise Unauthorized("Access denied. No token provided.")
    return _resolve_admin(token)


def require_super_admin(admin: CurrentAdmin = Depends(get_current_admin)) -> CurrentAdmin:
    if admin.role != "super_admin":
        raise Forbidden("Access denied. Super admin rights required.")
    return admin


def get_optional_admin(request: Request) -> Optional[CurrentAdmin]:
    """Dependency: resolve the admin when a valid token is present, else None. Never rejects."""
    token = _bearer_token(request)
    if not token:
        return None
    try:
        return _resolve_admin(token)
    except Unauthorized as exc:
        logger.debug("Ignoring bad credential on optional-auth route: %s", exc.message)
        return None
