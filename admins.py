"""Staff dashboards and super-admin account management."""

import logging
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends
from pymongo.errors import DuplicateKeyError

from auth import (
    ADMIN_SAFE_PROJECTION,
    admin_public,
    conflict_field,
    create_admin_account,
    duplicate_key_field,
    find_conflicting_admin,
)
from database import ADMINS, CLIENTS, CONTACTS, DEMOS, get_collection, get_documents, objid, utcnow
from demos import conversion_totals
from errors import DuplicateError, NotFoundError, ValidationError, ok
from leads import date_range_filter, recent, status_totals
from schemas import AdminCreate, AdminRole, AdminUpdate
from security import CurrentAdmin, get_current_admin, require_super_admin
from utils import PageParams, count_by, search_filter

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin", tags=["admin"])

CONTACT_BLOCK = {
    "newContacts": "new",
    "inProgressContacts": "in_progress",
    "resolvedContacts": "resolved",
    "closedContacts": "closed",
}
DEMO_BLOCK = {
    "pendingDemos": "pending",
    "scheduledDemos": "demo_scheduled",
    "completedDemos": "demo_completed",
    "acceptedDemos": "demo_accepted",
    "convertedDemos": "converted",
}
RECENT_WINDOW = timedelta(days=30)


# ---------- Dashboard ----------

def compute_contact_block(match: Dict[str, Any]) -> Dict[str, int]:
    counts = count_by(CONTACTS, "status", match)
    return {"totalContacts": sum(counts.values()), **status_totals(counts, CONTACT_BLOCK)}


def compute_demo_block(match: Dict[str, Any]) -> Dict[str, Any]:
    counts = count_by(DEMOS, "status", match)
    return {
        "totalDemos": sum(counts.values()),
        **status_totals(counts, DEMO_BLOCK),
        "totalConversionValue": conversion_totals(match)["total"],
    }


def compute_business_type_stats(match: Dict[str, Any], top: int = 10) -> List[Dict[str, Any]]:
    counts = count_by(DEMOS, "businessType", match)
    ranked = sorted(counts.items(), key=lambda kv: (-kv[1], kv[0]))[:top]
    return [{"_id": business_type, "count": count} for business_type, count in ranked]


@router.get("/dashboard")
def dashboard(
    startDate: Optional[datetime] = None,
    endDate: Optional[datetime] = None,
    admin: CurrentAdmin = Depends(get_current_admin),
):
    match = date_range_filter(startDate, endDate)
    return ok({
        "contacts": compute_contact_block(match),
        "demos": compute_demo_block(match),
        "recentActivities": {
            "contacts": recent(CONTACTS, match, ["name", "email", "subject", "status", "createdAt"]),
            "demos": recent(DEMOS, match, ["name", "email", "business", "status", "createdAt"]),
        },
        "businessTypeStats": compute_business_type_stats(match),
    })


@router.get("/system-stats")
def system_stats(admin: CurrentAdmin = Depends(get_current_admin)):
    since = {"createdAt": {"$gte": utcnow() - RECENT_WINDOW}}
    admins = get_collection(ADMINS)
    contacts = get_collection(CONTACTS)
    demos = get_collection(DEMOS)
    return ok({
        "totalAdmins": admins.count_documents({}),
        "activeAdmins": admins.count_documents({"isActive": True}),
        "totalContacts": contacts.count_documents({}),
        "totalDemos": demos.count_documents({}),
        "recentContacts": contacts.count_documents(since),
        "recentDemos": demos.count_documents(since),
    })


# ---------- Admin accounts ----------

@router.get("/admins")
def list_admins(
    page: PageParams = Depends(),
    search: Optional[str] = None,
    role: Optional[AdminRole] = None,
    isActive: Optional[bool] = None,
    admin: CurrentAdmin = Depends(require_super_admin),
):
    filters: Dict[str, Any] = search_filter(search, ("username", "email"))
    if role:
        filters["role"] = role
    if isActive is not None:
        filters["isActive"] = isActive
    docs = get_documents(
        ADMINS, filters, sort=page.sort, skip=page.skip, limit=page.limit, projection=ADMIN_SAFE_PROJECTION
    )
    total = get_collection(ADMINS).count_documents(filters)
    return ok({"admins": [admin_public(d) for d in docs], "pagination": page.meta(total)})


@router.post("/admins", status_code=201)
def create_admin(req: AdminCreate, admin: CurrentAdmin = Depends(require_super_admin)):
    created = create_admin_account(req.username, req.email, req.password, req.role)
    logger.info("Admin %s created by %s", req.username, admin.username)
    return ok({"admin": admin_public(created)}, message="Admin created successfully")


@router.put("/admins/{admin_id}")
def update_admin(admin_id: str, req: AdminUpdate, admin: CurrentAdmin = Depends(require_super_admin)):
    oid = objid(admin_id)
    admins = get_collection(ADMINS)
    if not admins.find_one({"_id": oid}, {"_id": 1}):
        raise NotFoundError("Admin not found")
    updates = req.model_dump(exclude_none=True)
    if not updates:
        raise ValidationError("Nothing to update")
    existing = find_conflicting_admin(updates.get("username"), updates.get("email"), exclude_id=oid)
    if existing:
        raise DuplicateError(conflict_field(existing, updates.get("email")), "Username or email already exists")
    updates["updatedAt"] = utcnow()
    try:
        admins.update_one({"_id": oid}, {"$set": updates})
    except DuplicateKeyError as exc:
        raise DuplicateError(duplicate_key_field(exc), "Username or email already exists")
    doc = admins.find_one({"_id": oid}, ADMIN_SAFE_PROJECTION)
    return ok({"admin": admin_public(doc)}, message="Admin updated successfully")


@router.delete("/admins/{admin_id}")
def delete_admin(admin_id: str, admin: CurrentAdmin = Depends(require_super_admin)):
    """Hard delete, then clear every assignment that pointed at the account."""
    oid = objid(admin_id)
    if oid == admin.oid:
        raise ValidationError("You cannot delete your own account")
    result = get_collection(ADMINS).delete_one({"_id": oid})
    if result.deleted_count == 0:
        raise NotFoundError("Admin not found")

    now = utcnow()
    for name in (CONTACTS, DEMOS):
        get_collection(name).update_many(
            {"assignedTo": oid}, {"$unset": {"assignedTo": ""}, "$set": {"updatedAt": now}}
        )
    get_collection(CLIENTS).update_many(
        {"assignedSalesRep": oid}, {"$unset": {"assignedSalesRep": ""}, "$set": {"updatedAt": now}}
    )
    logger.info("Admin %s deleted by %s", admin_id, admin.username)
    return ok(message="Admin deleted successfully")
