"""
Onboarding lifecycle: the five-step public application form.

Steps 1-4 fill personalDetails, businessDetails, planDetails and
paymentDetails; step 5 sets the free-text notes. A record is editable by
anyone while it is a Draft and by staff afterwards. Submission requires
steps 1-4 to have been saved at least once.

    Draft -> Submitted -> Under Review -> Approved | Rejected

Staff may set any of the five statuses directly.
"""
import logging
from typing import Any, Dict, List, Optional, get_args

from bson import ObjectId
from fastapi import APIRouter, Body, Depends
from fastapi.exceptions import RequestValidationError
from pydantic import ValidationError as SchemaError
from pymongo import ReturnDocument

from database import ONBOARDINGS, create_document, get_collection, get_documents, objid, utcnow
from errors import Forbidden, InvalidStateError, NotFoundError, ValidationError, ok
from schemas import (
    BusinessDetails,
    NoteCreate,
    OnboardingPayload,
    OnboardingStatus,
    OnboardingStatusUpdate,
    PaymentDetails,
    PersonalDetails,
    PlanDetails,
    StepNotes,
)
from security import CurrentAdmin, get_current_admin, get_optional_admin
from utils import ADMIN_PUBLIC_FIELDS, PageParams, count_by, present, present_one, search_filter

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/onboarding", tags=["onboarding"])

TAMIL_NADU_DISTRICTS = (
    "Ariyalur", "Chengalpattu", "Chennai", "Coimbatore", "Cuddalore", "Dharmapuri",
    "Dindigul", "Erode", "Kallakurichi", "Kanchipuram", "Kanyakumari", "Karur",
    "Krishnagiri", "Madurai", "Mayiladuthurai", "Nagapattinam", "Namakkal", "Nilgiris",
    "Perambalur", "Pudukkottai", "Ramanathapuram", "Ranipet", "Salem", "Sivaganga",
    "Tenkasi", "Thanjavur", "Theni", "Thoothukudi", "Tiruchirappalli", "Tirunelveli",
    "Tirupattur", "Tiruppur", "Tiruvallur", "Tiruvannamalai", "Tiruvarur", "Vellore",
    "Viluppuram", "Virudhunagar",
)

STATUSES = get_args(OnboardingStatus)
STEP_SECTIONS = {1: "personalDetails", 2: "businessDetails", 3: "planDetails", 4: "paymentDetails"}
STEP_MODELS = {1: PersonalDetails, 2: BusinessDetails, 3: PlanDetails, 4: PaymentDetails, 5: StepNotes}
REQUIRED_STEPS = (1, 2, 3, 4)
LAST_STEP = 5
COST_KEYS = ("constant", "hosting", "domain", "storage", "maintenance", "websiteCost")
SEARCH_FIELDS = (
    "personalDetails.name",
    "personalDetails.fatherName",
    "businessDetails.businessName",
    "personalDetails.phoneNumber1",
)
STAFF_REFS = {"reviewedBy": ADMIN_PUBLIC_FIELDS, "adminNotes.addedBy": ADMIN_PUBLIC_FIELDS}


# ---------- Pure helpers ----------

def default_sections() -> Dict[str, Any]:
    return {
        "personalDetails": {"state": "Tamil Nadu"},
        "businessDetails": {},
        "planDetails": {"accessType": "Lifetime Access", "customPricing": False, "pricingData": {}},
        "paymentDetails": {
            "planPrice": 0,
            "projectPrice": 0,
            "hostingYearlyPrice": 0,
            "additionalCosts": {key: 0 for key in COST_KEYS},
            "totalAmount": 0,
        },
    }


def merge_section(current: Optional[Dict[str, Any]], updates: Dict[str, Any]) -> Dict[str, Any]:
    """Shallow merge: replace the given leaf fields, keep their siblings."""
    return {**(current or {}), **updates}


def deep_merge(current: Optional[Dict[str, Any]], updates: Dict[str, Any]) -> Dict[str, Any]:
    merged = dict(current or {})
    for key, value in updates.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def calculate_total(payment: Dict[str, Any]) -> Dict[str, Any]:
    """Recompute totalAmount whenever planPrice is present; it is never taken from input."""
    if payment.get("planPrice") is None:
        return payment
    costs = payment.get("additionalCosts") or {}
    total = (
        payment.get("planPrice", 0)
        + (payment.get("projectPrice") or 0)
        + (payment.get("hostingYearlyPrice") or 0)
        + sum(costs.get(key) or 0 for key in COST_KEYS)
    )
    return {**payment, "totalAmount": total}


def complete_step(completed: List[int], current_step: int, step: int) -> Dict[str, Any]:
    """Mark `step` saved and advance currentStep without ever moving it back."""
    steps = list(completed)
    if step not in steps:
        steps.append(step)
    return {"completedSteps": steps, "currentStep": min(LAST_STEP, max(current_step, step + 1))}


def missing_steps(completed: List[int]) -> List[int]:
    return [step for step in REQUIRED_STEPS if step not in completed]


# ---------- Persistence helpers ----------

def _load(onboarding_id: str) -> Dict[str, Any]:
    doc = get_collection(ONBOARDINGS).find_one({"_id": objid(onboarding_id, label="onboarding ID")})
    if not doc:
        raise NotFoundError("Onboarding not found")
    return doc


def _ensure_editable(doc: Dict[str, Any], admin: Optional[CurrentAdmin]) -> None:
    if doc.get("status") != "Draft" and admin is None:
        raise Forbidden("Cannot edit submitted onboarding")


def _save(oid: ObjectId, changes: Dict[str, Any]) -> Dict[str, Any]:
    changes["updatedAt"] = utcnow()
    doc = get_collection(ONBOARDINGS).find_one_and_update(
        {"_id": oid}, {"$set": changes}, return_document=ReturnDocument.AFTER
    )
    if not doc:
        raise NotFoundError("Onboarding not found")
    return doc


def _render(doc: Dict[str, Any], admin: Optional[CurrentAdmin]) -> Dict[str, Any]:
    return present_one(doc, STAFF_REFS if admin else None)


def _validate_step(step: int, payload: Dict[str, Any]) -> Dict[str, Any]:
    try:
        model = STEP_MODELS[step].model_validate(payload)
    except SchemaError as exc:
        raise RequestValidationError(exc.errors())
    return model.model_dump(exclude_unset=True)


# ---------- Public ----------

@router.get("/districts")
def get_districts():
    return ok(sorted(TAMIL_NADU_DISTRICTS))


@router.get("/stats")
def onboarding_stats(admin: CurrentAdmin = Depends(get_current_admin)):
    counts = count_by(ONBOARDINGS, "status")
    recent = get_documents(
        ONBOARDINGS,
        sort=[("createdAt", -1)],
        limit=5,
        projection={"personalDetails.name": 1, "businessDetails.businessName": 1, "status": 1, "createdAt": 1},
    )
    return ok({
        "totalOnboardings": get_collection(ONBOARDINGS).count_documents({}),
        "statusCounts": {status: counts.get(status, 0) for status in STATUSES},
        "recentOnboardings": present(recent),
    })


@router.post("", status_code=201)
def create_onboarding(req: OnboardingPayload):
    data = req.model_dump(exclude_unset=True)
    doc = default_sections()
    for section in STEP_SECTIONS.values():
        if data.get(section):
            doc[section] = deep_merge(doc[section], data[section])
    doc["paymentDetails"] = calculate_total(doc["paymentDetails"])
    doc.update({
        "notes": data.get("notes"),
        "status": "Draft",
        "currentStep": 1,
        "completedSteps": [],
        "submittedAt": None,
        "reviewedAt": None,
        "reviewedBy": None,
        "adminNotes": [],
    })
    created = create_document(ONBOARDINGS, doc)
    logger.info("Onboarding %s started", created["_id"])
    return ok(present_one(created), message="Onboarding created successfully")


@router.get("")
def list_onboardings(
    page: PageParams = Depends(),
    status: Optional[OnboardingStatus] = None,
    search: Optional[str] = None,
    admin: Optional[CurrentAdmin] = Depends(get_optional_admin),
):
    """Anonymous callers get the same page without resolved admin references."""
    filters: Dict[str, Any] = search_filter(search, SEARCH_FIELDS)
    if status:
        filters["status"] = status
    docs = get_documents(ONBOARDINGS, filters, sort=page.sort, skip=page.skip, limit=page.limit)
    total = get_collection(ONBOARDINGS).count_documents(filters)
    return ok({
        "onboardings": present(docs, STAFF_REFS if admin else None),
        "pagination": page.meta(total),
    })


# ---------- Single onboarding ----------

@router.get("/{onboarding_id}")
def get_onboarding(onboarding_id: str, admin: CurrentAdmin = Depends(get_current_admin)):
    return ok(_render(_load(onboarding_id), admin))


@router.put("/{onboarding_id}")
def update_onboarding(
    onboarding_id: str,
    req: OnboardingPayload,
    admin: Optional[CurrentAdmin] = Depends(get_optional_admin),
):
    doc = _load(onboarding_id)
    _ensure_editable(doc, admin)
    data = req.model_dump(exclude_unset=True)
    if not data:
        raise ValidationError("Nothing to update")

    changes: Dict[str, Any] = {}
    for section in STEP_SECTIONS.values():
        if data.get(section) is not None:
            changes[section] = deep_merge(doc.get(section), data[section])
    if "notes" in data:
        changes["notes"] = data["notes"]
    payment = changes.get("paymentDetails", doc.get("paymentDetails") or {})
    changes["paymentDetails"] = calculate_total(payment)

    saved = _save(doc["_id"], changes)
    return ok(_render(saved, admin), message="Onboarding updated successfully")


@router.put("/{onboarding_id}/step/{step}")
def update_onboarding_step(
    onboarding_id: str,
    step: int,
    payload: Dict[str, Any] = Body(...),
    admin: Optional[CurrentAdmin] = Depends(get_optional_admin),
):
    if step < 1 or step > LAST_STEP:
        raise ValidationError("Invalid step number")
    doc = _load(onboarding_id)
    _ensure_editable(doc, admin)
    fields = _validate_step(step, payload)

    changes: Dict[str, Any] = {}
    if step in STEP_SECTIONS:
        section = STEP_SECTIONS[step]
        changes[section] = merge_section(doc.get(section), fields)
    elif fields.get("notes"):
        changes["notes"] = fields["notes"]
    payment = changes.get("paymentDetails", doc.get("paymentDetails") or {})
    changes["paymentDetails"] = calculate_total(payment)
    changes.update(complete_step(doc.get("completedSteps") or [], doc.get("currentStep") or 1, step))

    saved = _save(doc["_id"], changes)
    return ok(_render(saved, admin), message=f"Step {step} updated successfully")


@router.post("/{onboarding_id}/submit")
def submit_onboarding(onboarding_id: str, admin: Optional[CurrentAdmin] = Depends(get_optional_admin)):
    doc = _load(onboarding_id)
    if doc.get("status") != "Draft":
        raise InvalidStateError("Onboarding already submitted")
    missing = missing_steps(doc.get("completedSteps") or [])
    if missing:
        raise InvalidStateError(
            "Please complete all required steps",
            errors=[{"field": "completedSteps", "message": f"Step {step} is not completed"} for step in missing],
            data={"missingSteps": missing},
        )
    saved = _save(doc["_id"], {"status": "Submitted", "submittedAt": utcnow()})
    logger.info("Onboarding %s submitted", onboarding_id)
    return ok(_render(saved, admin), message="Onboarding submitted successfully")


@router.put("/{onboarding_id}/status")
def update_onboarding_status(
    onboarding_id: str,
    req: OnboardingStatusUpdate,
    admin: CurrentAdmin = Depends(get_current_admin),
):
    doc = _load(onboarding_id)
    saved = _save(doc["_id"], {"status": req.status, "reviewedAt": utcnow(), "reviewedBy": admin.oid})
    logger.info("Onboarding %s moved from %s to %s by %s", onboarding_id, doc.get("status"), req.status, admin.username)
    return ok(_render(saved, admin), message="Status updated successfully")


@router.post("/{onboarding_id}/notes")
def add_onboarding_note(onboarding_id: str, req: NoteCreate, admin: CurrentAdmin = Depends(get_current_admin)):
    oid = objid(onboarding_id, label="onboarding ID")
    now = utcnow()
    doc = get_collection(ONBOARDINGS).find_one_and_update(
        {"_id": oid},
        {
            "$push": {"adminNotes": {"note": req.note, "addedBy": admin.oid, "addedAt": now}},
            "$set": {"updatedAt": now},
        },
        return_document=ReturnDocument.AFTER,
    )
    if not doc:
        raise NotFoundError("Onboarding not found")
    return ok(_render(doc, admin), message="Note added successfully")


@router.delete("/{onboarding_id}")
def delete_onboarding(onboarding_id: str, admin: CurrentAdmin = Depends(get_current_admin)):
    oid = objid(onboarding_id, label="onboarding ID")
    if get_collection(ONBOARDINGS).delete_one({"_id": oid}).deleted_count == 0:
        raise NotFoundError("Onboarding not found")
    logger.info("Onboarding %s deleted by %s", onboarding_id, admin.username)
    return ok(message="Onboarding deleted successfully")
