"""
Client records: the converted, billed business accounts.

A client document carries eight sections (identity, classification,
domainHosting, databaseSystem, billing, serviceSupport,
automationNotifications, attachmentsNotes). The append-only logs
(internal notes, ongoing issues, issue history) only change through
their dedicated `$push` endpoints.
"""
import logging
import secrets
import string
import time
from datetime import timedelta
from typing import Any, Dict, List, Optional

from bson import ObjectId
from fastapi import APIRouter, Depends, Query
from pymongo import ASCENDING, ReturnDocument
from pymongo.errors import DuplicateKeyError

from database import CLIENTS, create_document, get_collection, get_documents, objid, utcnow
from errors import DuplicateError, NotFoundError, ValidationError, ok
from leads import exact_filters
from schemas import (
    BillingCycle,
    ClientBusinessType,
    ClientCreate,
    ClientStatus,
    ClientUpdate,
    InternalNoteCreate,
    IssueCreate,
    PaymentUpdate,
)
from security import CurrentAdmin, get_current_admin
from utils import ADMIN_NAME_ONLY, ADMIN_PUBLIC_FIELDS, PageParams, count_by, flatten_update, present, present_one, search_filter

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/client", tags=["client"])

SEARCH_FIELDS = ("businessName", "ownerContactName", "email", "clientId", "domainHosting.subdomain")
LIST_REFS = {
    "assignedSalesRep": ADMIN_PUBLIC_FIELDS,
    "serviceSupport.ongoingIssues.assignedTo": ADMIN_NAME_ONLY,
    "attachmentsNotes.internalNotes.addedBy": ADMIN_NAME_ONLY,
}
DETAIL_REFS = {
    "assignedSalesRep": ADMIN_PUBLIC_FIELDS,
    "serviceSupport.customFeaturesRequested.assignedTo": ADMIN_NAME_ONLY,
    "serviceSupport.ongoingIssues.assignedTo": ADMIN_NAME_ONLY,
    "attachmentsNotes.internalNotes.addedBy": ADMIN_PUBLIC_FIELDS,
}
UPCOMING_WINDOW = timedelta(days=30)
CYCLE_MONTHS = {"monthly": 1, "quarterly": 3, "yearly": 12}
CLIENT_ID_ALPHABET = string.ascii_uppercase + string.digits


# ---------- Helpers ----------

def generate_client_id() -> str:
    """CL + epoch milliseconds + 4 random uppercase base36 characters."""
    suffix = "".join(secrets.choice(CLIENT_ID_ALPHABET) for _ in range(4))
    return f"CL{int(time.time() * 1000)}{suffix}"


def monthly_amount(fee: Optional[float], cycle: Optional[str]) -> float:
    """Normalize a maintenance fee to a per-month figure; unknown cycles count as quarterly."""
    if not fee:
        return 0.0
    return fee / CYCLE_MONTHS.get(cycle or "", 3)


def compute_monthly_revenue(clients: List[Dict[str, Any]]) -> float:
    total = 0.0
    for c in clients:
        billing = c.get("billing") or {}
        fee = (billing.get("maintenanceFee") or {}).get("amount")
        total += monthly_amount(fee, billing.get("billingCycle"))
    return total


def apply_client_defaults(data: Dict[str, Any]) -> Dict[str, Any]:
    """Fill the section defaults every stored client carries."""
    data.setdefault("onboardingDate", utcnow())
    address = data.setdefault("businessAddress", {})
    address.setdefault("country", "India")

    hosting = data.setdefault("domainHosting", {})
    hosting.setdefault("dnsStatus", "pending")
    hosting.setdefault("frontendHostingPlatform", "netlify")
    hosting.setdefault("backendHostingPlatform", "render")
    hosting.setdefault("sslCertificateStatus", "pending")

    data.setdefault("databaseSystem", {}).setdefault("backupFrequency", "weekly")

    billing = data.setdefault("billing", {})
    setup = billing.setdefault("setupCost", {})
    setup.setdefault("paid", False)
    setup.setdefault("amount", 0)
    billing.setdefault("maintenanceFee", {}).setdefault("currency", "INR")
    billing.setdefault("lastPaymentDate", None)
    dues = billing.setdefault("pendingDues", {})
    dues.setdefault("amount", 0)
    dues.setdefault("description", "")

    support = data.setdefault("serviceSupport", {})
    support.setdefault("supportTicketsCount", 0)
    support.setdefault("serviceLevel", "basic")
    support.setdefault("customFeaturesRequested", [])
    support.setdefault("issuesHistory", [])
    support.setdefault("ongoingIssues", [])

    automation = data.setdefault("automationNotifications", {})
    for toggle in ("autoEmailAlerts", "backupCompleted", "paymentReminder", "sslExpiry", "domainRenewal", "supportSlaReminder"):
        automation.setdefault(toggle, True)
    channels = automation.setdefault("notificationSettings", {})
    channels.setdefault("emailNotifications", True)
    channels.setdefault("smsNotifications", False)
    channels.setdefault("whatsappNotifications", False)

    data.setdefault("attachmentsNotes", {}).setdefault("internalNotes", [])
    return data


def _reference_ids(data: Dict[str, Any]) -> Dict[str, Any]:
    """Store admin references as ObjectIds."""
    if data.get("assignedSalesRep"):
        data["assignedSalesRep"] = ObjectId(data["assignedSalesRep"])
    for feature in (data.get("serviceSupport") or {}).get("customFeaturesRequested") or []:
        if feature.get("assignedTo"):
            feature["assignedTo"] = ObjectId(feature["assignedTo"])
    return data


def find_conflicting_client(email: Optional[str], client_id: Optional[str], exclude_id: Optional[ObjectId] = None) -> Optional[str]:
    """Name of the unique field (email or clientId) another client already holds."""
    clauses = []
    if email:
        clauses.append({"email": email})
    if client_id:
        clauses.append({"clientId": client_id})
    if not clauses:
        return None
    query: Dict[str, Any] = {"$or": clauses}
    if exclude_id is not None:
        query["_id"] = {"$ne": exclude_id}
    existing = get_collection(CLIENTS).find_one(query, {"email": 1, "clientId": 1})
    if not existing:
        return None
    return "email" if email and existing.get("email") == email else "clientId"


def _duplicate_key_field(exc: DuplicateKeyError) -> str:
    key_value = (exc.details or {}).get("keyValue") or {}
    if "clientId" in key_value or "clientId" in str(exc):
        return "clientId"
    return "email"


def _load(oid: ObjectId) -> Dict[str, Any]:
    doc = get_collection(CLIENTS).find_one({"_id": oid})
    if not doc:
        raise NotFoundError("Client not found")
    return doc


def _push(client_id: str, push: Dict[str, Any]) -> Dict[str, Any]:
    doc = get_collection(CLIENTS).find_one_and_update(
        {"_id": objid(client_id)},
        {"$push": push, "$set": {"updatedAt": utcnow()}},
        return_document=ReturnDocument.AFTER,
    )
    if not doc:
        raise NotFoundError("Client not found")
    return present_one(doc, DETAIL_REFS)


# ---------- Create / list ----------

@router.post("", status_code=201)
def create_client(req: ClientCreate, admin: CurrentAdmin = Depends(get_current_admin)):
    data = _reference_ids(req.model_dump(exclude_none=True))
    data.setdefault("clientId", generate_client_id())
    data.setdefault("assignedSalesRep", admin.oid)
    apply_client_defaults(data)

    field = find_conflicting_client(data["email"], data["clientId"])
    if field:
        raise DuplicateError(field, f"Client with this {field} already exists")
    try:
        created = create_document(CLIENTS, data)
    except DuplicateKeyError as exc:
        field = _duplicate_key_field(exc)
        raise DuplicateError(field, f"Client with this {field} already exists")
    logger.info("Client %s (%s) created by %s", created["clientId"], created["businessName"], admin.username)
    return ok({"client": present_one(created, DETAIL_REFS)}, message="Client created successfully")


@router.get("")
def list_clients(
    page: PageParams = Depends(),
    status: Optional[ClientStatus] = None,
    businessType: Optional[ClientBusinessType] = None,
    serviceLevel: Optional[str] = None,
    assignedSalesRep: Optional[str] = None,
    dnsStatus: Optional[str] = None,
    billingCycle: Optional[BillingCycle] = None,
    search: Optional[str] = None,
    admin: CurrentAdmin = Depends(get_current_admin),
):
    filters = exact_filters(status=status, businessType=businessType, assignedSalesRep=assignedSalesRep)
    filters.update(exact_filters(**{
        "serviceSupport.serviceLevel": serviceLevel,
        "domainHosting.dnsStatus": dnsStatus,
        "billing.billingCycle": billingCycle,
    }))
    filters.update(search_filter(search, SEARCH_FIELDS))

    docs = get_documents(CLIENTS, filters, sort=page.sort, skip=page.skip, limit=page.limit)
    total = get_collection(CLIENTS).count_documents(filters)
    upcoming = get_documents(
        CLIENTS,
        {"billing.nextPaymentDate": {"$lte": utcnow() + UPCOMING_WINDOW}, "status": "active"},
        sort=[("billing.nextPaymentDate", ASCENDING)],
        limit=10,
        projection={"businessName": 1, "clientId": 1, "billing.nextPaymentDate": 1, "billing.maintenanceFee": 1},
    )
    return ok({
        "clients": present(docs, LIST_REFS),
        "pagination": page.meta(total),
        "statusCounts": count_by(CLIENTS, "status"),
        "billingCycleCounts": count_by(CLIENTS, "billing.billingCycle"),
        "upcomingPayments": present(upcoming),
    })


@router.get("/dashboard-stats")
def dashboard_stats(admin: CurrentAdmin = Depends(get_current_admin)):
    clients = get_collection(CLIENTS)
    active = get_documents(CLIENTS, {"status": "active"}, projection={"billing.maintenanceFee": 1, "billing.billingCycle": 1})
    return ok({
        "totalClients": clients.count_documents({}),
        "activeClients": len(active),
        "suspendedClients": clients.count_documents({"status": "suspended"}),
        "overduePayments": clients.count_documents({"status": "active", "billing.nextPaymentDate": {"$lt": utcnow()}}),
        "clientsWithIssues": clients.count_documents({"serviceSupport.ongoingIssues.0": {"$exists": True}}),
        "estimatedMonthlyRevenue": round(compute_monthly_revenue(active), 2),
    })


@router.get("/client-id/{client_code}")
def get_client_by_code(client_code: str, admin: CurrentAdmin = Depends(get_current_admin)):
    doc = get_collection(CLIENTS).find_one({"clientId": client_code})
    if not doc:
        raise NotFoundError("Client not found")
    return ok({"client": present_one(doc, DETAIL_REFS)})


# ---------- Single client ----------

@router.get("/{client_id}")
def get_client(client_id: str, admin: CurrentAdmin = Depends(get_current_admin)):
    return ok({"client": present_one(_load(objid(client_id)), DETAIL_REFS)})


@router.put("/{client_id}")
def update_client(client_id: str, req: ClientUpdate, admin: CurrentAdmin = Depends(get_current_admin)):
    oid = objid(client_id)
    current = _load(oid)
    data = _reference_ids(req.model_dump(exclude_unset=True, exclude_none=True))
    if not data:
        raise ValidationError("Nothing to update")

    field = find_conflicting_client(data.get("email"), data.get("clientId"), exclude_id=oid)
    if field:
        raise DuplicateError(field, f"Client with this {field} already exists")

    status = data.get("status", current.get("status"))
    next_payment = (data.get("billing") or {}).get("nextPaymentDate") or (current.get("billing") or {}).get("nextPaymentDate")
    if status == "active" and not next_payment:
        raise ValidationError(
            "Next payment date is required for active clients",
            errors=[{"field": "billing.nextPaymentDate", "message": "Required when status is active"}],
        )

    updates = flatten_update(data)
    updates["updatedAt"] = utcnow()
    try:
        doc = get_collection(CLIENTS).find_one_and_update(
            {"_id": oid}, {"$set": updates}, return_document=ReturnDocument.AFTER
        )
    except DuplicateKeyError as exc:
        field = _duplicate_key_field(exc)
        raise DuplicateError(field, f"Client with this {field} already exists")
    if not doc:
        raise NotFoundError("Client not found")
    return ok({"client": present_one(doc, DETAIL_REFS)}, message="Client updated successfully")


@router.post("/{client_id}/notes")
def add_internal_note(client_id: str, req: InternalNoteCreate, admin: CurrentAdmin = Depends(get_current_admin)):
    entry = {"note": req.note, "addedBy": admin.oid, "addedDate": utcnow(), "isPrivate": req.isPrivate}
    client = _push(client_id, {"attachmentsNotes.internalNotes": entry})
    return ok({"client": client}, message="Internal note added successfully")


@router.post("/{client_id}/issues")
def add_ongoing_issue(client_id: str, req: IssueCreate, admin: CurrentAdmin = Depends(get_current_admin)):
    assignee = ObjectId(req.assignedTo) if req.assignedTo else admin.oid
    entry = {"issue": req.issue, "priority": req.priority, "reportedDate": utcnow(), "assignedTo": assignee}
    client = _push(client_id, {"serviceSupport.ongoingIssues": entry})
    return ok({"client": client}, message="Ongoing issue added successfully")


@router.put("/{client_id}/payment")
def update_payment(client_id: str, req: PaymentUpdate, admin: CurrentAdmin = Depends(get_current_admin)):
    oid = objid(client_id)
    current = _load(oid)
    updates: Dict[str, Any] = {}
    if req.paymentDate:
        updates["billing.lastPaymentDate"] = req.paymentDate
    if req.nextPaymentDate:
        updates["billing.nextPaymentDate"] = req.nextPaymentDate
    if req.paymentMethod:
        updates["billing.paymentMethod"] = req.paymentMethod
    if req.amount and req.amount > 0:
        dues = ((current.get("billing") or {}).get("pendingDues") or {}).get("amount") or 0
        updates["billing.pendingDues.amount"] = max(0, dues - req.amount)
    updates["updatedAt"] = utcnow()

    doc = get_collection(CLIENTS).find_one_and_update(
        {"_id": oid}, {"$set": updates}, return_document=ReturnDocument.AFTER
    )
    if not doc:
        raise NotFoundError("Client not found")
    logger.info("Payment recorded for client %s by %s", doc.get("clientId"), admin.username)
    return ok({"client": present_one(doc, DETAIL_REFS)}, message="Payment information updated successfully")


@router.delete("/{client_id}")
def delete_client(
    client_id: str,
    permanent: bool = Query(False),
    admin: CurrentAdmin = Depends(get_current_admin),
):
    oid = objid(client_id)
    clients = get_collection(CLIENTS)
    if permanent:
        if clients.delete_one({"_id": oid}).deleted_count == 0:
            raise NotFoundError("Client not found")
        logger.info("Client %s permanently deleted by %s", client_id, admin.username)
        return ok(message="Client permanently deleted")

    result = clients.update_one({"_id": oid}, {"$set": {"status": "terminated", "updatedAt": utcnow()}})
    if result.matched_count == 0:
        raise NotFoundError("Client not found")
    logger.info("Client %s terminated by %s", client_id, admin.username)
    return ok(message="Client terminated successfully")
