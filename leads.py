"""
Operations shared by the two public lead-intake collections
(contact messages and demo requests): staff updates, the append-only
admin-note log, deletion and the paginated triage listing.
"""
from datetime import datetime
from typing import Any, Dict, List, Optional

from bson import ObjectId
from pymongo import ReturnDocument

from database import get_collection, get_documents, objid, utcnow
from errors import NotFoundError, ValidationError
from schemas import as_utc
from security import CurrentAdmin
from utils import ADMIN_NAME_ONLY, ADMIN_PUBLIC_FIELDS, PageParams, count_by, present, present_one

LIST_REFS = {"assignedTo": ADMIN_PUBLIC_FIELDS, "adminNotes.addedBy": ADMIN_NAME_ONLY}
DETAIL_REFS = {"assignedTo": ADMIN_PUBLIC_FIELDS, "adminNotes.addedBy": ADMIN_PUBLIC_FIELDS}

NOTE_MIN, NOTE_MAX = 5, 500


def new_lead(fields: Dict[str, Any], initial_status: str) -> Dict[str, Any]:
    return {
        **fields,
        "status": initial_status,
        "priority": "medium",
        "assignedTo": None,
        "adminNotes": [],
        "customerResponse": "pending",
    }


def list_leads(
    collection: str,
    filters: Dict[str, Any],
    page: PageParams,
    extra_counts: Optional[Dict[str, str]] = None,
) -> Dict[str, Any]:
    """Filtered page of leads plus the collection-wide status summary.

    `extra_counts` maps response keys to fields to group by, e.g.
    {"businessTypeCounts": "businessType"}.
    """
    docs = get_documents(collection, filters, sort=page.sort, skip=page.skip, limit=page.limit)
    total = get_collection(collection).count_documents(filters)
    result = {
        "items": present(docs, LIST_REFS),
        "pagination": page.meta(total),
        "statusCounts": count_by(collection, "status"),
    }
    for key, field in (extra_counts or {}).items():
        result[key] = count_by(collection, field)
    return result


def get_lead(collection: str, lead_id: str, label: str) -> Dict[str, Any]:
    doc = get_collection(collection).find_one({"_id": objid(lead_id)})
    if not doc:
        raise NotFoundError(f"{label} not found")
    return present_one(doc, DETAIL_REFS)


def update_lead(collection: str, lead_id: str, updates: Dict[str, Any], label: str) -> Dict[str, Any]:
    oid = objid(lead_id)
    if updates.get("assignedTo"):
        updates["assignedTo"] = ObjectId(updates["assignedTo"])
    updates["updatedAt"] = utcnow()
    doc = get_collection(collection).find_one_and_update(
        {"_id": oid}, {"$set": updates}, return_document=ReturnDocument.AFTER
    )
    if not doc:
        raise NotFoundError(f"{label} not found")
    return present_one(doc, DETAIL_REFS)


def add_note(collection: str, lead_id: str, note: str, admin: CurrentAdmin, label: str) -> Dict[str, Any]:
    """Append {note, addedBy, addedAt} with a single atomic $push."""
    oid = objid(lead_id)
    note = (note or "").strip()
    if not NOTE_MIN <= len(note) <= NOTE_MAX:
        raise ValidationError(f"Note must be between {NOTE_MIN}-{NOTE_MAX} characters")
    now = utcnow()
    doc = get_collection(collection).find_one_and_update(
        {"_id": oid},
        {
            "$push": {"adminNotes": {"note": note, "addedBy": admin.oid, "addedAt": now}},
            "$set": {"updatedAt": now},
        },
        return_document=ReturnDocument.AFTER,
    )
    if not doc:
        raise NotFoundError(f"{label} not found")
    return present_one(doc, DETAIL_REFS)


def delete_lead(collection: str, lead_id: str, label: str) -> None:
    result = get_collection(collection).delete_one({"_id": objid(lead_id)})
    if result.deleted_count == 0:
        raise NotFoundError(f"{label} not found")


def date_range_filter(start: Optional[datetime], end: Optional[datetime]) -> Dict[str, Any]:
    """createdAt window; applied only when both ends are given."""
    if start and end:
        return {"createdAt": {"$gte": as_utc(start), "$lte": as_utc(end)}}
    return {}


def exact_filters(**fields: Any) -> Dict[str, Any]:
    """Keep only the provided query parameters; ids become ObjectIds."""
    out: Dict[str, Any] = {}
    for key, value in fields.items():
        if value is None or value == "":
            continue
        if key in ("assignedTo", "assignedSalesRep"):
            value = objid(value, label="assignee ID")
        out[key] = value
    return out


def status_totals(counts: Dict[str, int], names: Dict[str, str]) -> Dict[str, int]:
    """Rename per-status counts to dashboard keys, zero-filling missing ones."""
    return {key: counts.get(status, 0) for key, status in names.items()}


def recent(collection: str, match: Dict[str, Any], fields: List[str], limit: int = 5) -> List[Dict[str, Any]]:
    projection = {f: 1 for f in fields}
    return present(get_documents(collection, match, sort=[("createdAt", -1)], limit=limit, projection=projection))
