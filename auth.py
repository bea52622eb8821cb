"""Authentication routes: signup, login, profile and password change."""

import logging
from typing import Any, Dict, Optional

from bson import ObjectId
from fastapi import APIRouter, Depends
from pymongo.errors import DuplicateKeyError

from database import ADMINS, create_document, get_collection, serialize, utcnow
from errors import DuplicateError, NotFoundError, Unauthorized, ValidationError, ok
from schemas import ChangePasswordRequest, LoginRequest, ProfileUpdate, SignupRequest
from security import (
    CurrentAdmin,
    create_access_token,
    create_refresh_token,
    get_current_admin,
    hash_password,
    verify_password,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])

ADMIN_SAFE_PROJECTION = {"passwordHash": 0}


def admin_public(doc: Dict[str, Any]) -> Dict[str, Any]:
    return serialize({k: v for k, v in doc.items() if k != "passwordHash"})


def find_conflicting_admin(username: Optional[str], email: Optional[str], exclude_id: Optional[ObjectId] = None) -> Optional[Dict[str, Any]]:
    """Single combined lookup for another account holding the username or email."""
    clauses = []
    if username:
        clauses.append({"username": username})
    if email:
        clauses.append({"email": email})
    if not clauses:
        return None
    query: Dict[str, Any] = {"$or": clauses}
    if exclude_id is not None:
        query["_id"] = {"$ne": exclude_id}
    return get_collection(ADMINS).find_one(query, {"_id": 1, "username": 1, "email": 1})


def conflict_field(existing: Dict[str, Any], email: Optional[str]) -> str:
    return "email" if email and existing.get("email") == email else "username"


def duplicate_key_field(exc: DuplicateKeyError) -> str:
    """Name the unique admin field a DuplicateKeyError collided on."""
    key_value = (exc.details or {}).get("keyValue") or {}
    return "username" if "username" in key_value else "email"


def create_admin_account(username: str, email: str, password: str, role: str = "admin") -> Dict[str, Any]:
    existing = find_conflicting_admin(username, email)
    if existing:
        raise DuplicateError(conflict_field(existing, email), "Admin with this email or username already exists")
    try:
        return create_document(ADMINS, {
            "username": username,
            "email": email,
            "passwordHash": hash_password(password),
            "role": role,
            "isActive": True,
            "lastLogin": None,
        })
    except DuplicateKeyError as exc:
        raise DuplicateError(duplicate_key_field(exc), "Admin with this email or username already exists")


def _token_pair(admin_id: str) -> Dict[str, str]:
    return {"token": create_access_token(admin_id), "refreshToken": create_refresh_token(admin_id)}


@router.post("/signup", status_code=201)
def signup(req: SignupRequest):
    admin = create_admin_account(req.username, req.email, req.password, req.role)
    admin_id = str(admin["_id"])
    logger.info("Admin %s signed up (%s)", req.username, req.role)
    return ok(
        {
            "admin": {"id": admin_id, "username": admin["username"], "email": admin["email"], "role": admin["role"]},
            **_token_pair(admin_id),
        },
        message="Admin created successfully",
    )


@router.post("/login")
def login(req: LoginRequest):
    admins = get_collection(ADMINS)
    admin = admins.find_one({"email": req.email})
    if not admin:
        raise Unauthorized("Invalid email or password")
    if not admin.get("isActive", False):
        raise Unauthorized("Admin account is inactive")
    if not verify_password(req.password, admin.get("passwordHash", "")):
        raise Unauthorized("Invalid email or password")

    now = utcnow()
    admins.update_one({"_id": admin["_id"]}, {"$set": {"lastLogin": now}})
    admin_id = str(admin["_id"])
    logger.info("Admin %s logged in", admin["username"])
    return ok(
        {
            "admin": {
                "id": admin_id,
                "username": admin["username"],
                "email": admin["email"],
                "role": admin.get("role", "admin"),
                "lastLogin": now,
            },
            **_token_pair(admin_id),
        },
        message="Login successful",
    )


@router.get("/profile")
def get_profile(admin: CurrentAdmin = Depends(get_current_admin)):
    doc = get_collection(ADMINS).find_one({"_id": admin.oid}, ADMIN_SAFE_PROJECTION)
    if not doc:
        raise NotFoundError("Admin not found")
    return ok({"admin": admin_public(doc)})


@router.put("/profile")
def update_profile(req: ProfileUpdate, admin: CurrentAdmin = Depends(get_current_admin)):
    updates = req.model_dump(exclude_none=True)
    if not updates:
        raise ValidationError("Nothing to update")
    existing = find_conflicting_admin(updates.get("username"), updates.get("email"), exclude_id=admin.oid)
    if existing:
        raise DuplicateError(conflict_field(existing, updates.get("email")), "Username or email already exists")
    updates["updatedAt"] = utcnow()
    try:
        get_collection(ADMINS).update_one({"_id": admin.oid}, {"$set": updates})
    except DuplicateKeyError as exc:
        raise DuplicateError(duplicate_key_field(exc), "Username or email already exists")
    doc = get_collection(ADMINS).find_one({"_id": admin.oid}, ADMIN_SAFE_PROJECTION)
    return ok({"admin": admin_public(doc)}, message="Profile updated successfully")


@router.put("/change-password")
def change_password(req: ChangePasswordRequest, admin: CurrentAdmin = Depends(get_current_admin)):
    admins = get_collection(ADMINS)
    doc = admins.find_one({"_id": admin.oid})
    if not doc or not verify_password(req.currentPassword, doc.get("passwordHash", "")):
        raise ValidationError("Current password is incorrect")
    admins.update_one(
        {"_id": admin.oid},
        {"$set": {"passwordHash": hash_password(req.newPassword), "updatedAt": utcnow()}},
    )
    logger.info("Admin %s changed password", admin.username)
    return ok(message="Password changed successfully")
