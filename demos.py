"""Demo requests: public booking, staff scheduling and conversion tracking."""

import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends

from database import DEMOS, create_document, get_collection
from errors import ValidationError, ok
from leads import (
    add_note,
    date_range_filter,
    delete_lead,
    exact_filters,
    get_lead,
    list_leads,
    new_lead,
    status_totals,
    update_lead,
)
from schemas import DemoBusinessType, DemoCreate, DemoPriority, DemoResponse, DemoStatus, DemoUpdate, NoteCreate
from security import CurrentAdmin, get_current_admin
from utils import PageParams, count_by, search_filter

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/demo", tags=["demo"])

LABEL = "Demo request"
SEARCH_FIELDS = ("name", "email", "business")

ANALYTICS_STATUSES = {
    "pendingRequests": "pending",
    "scheduledDemos": "demo_scheduled",
    "completedDemos": "demo_completed",
    "acceptedDemos": "demo_accepted",
    "convertedLeads": "converted",
}


def conversion_totals(match: Dict[str, Any]) -> Dict[str, float]:
    """Sum and mean of conversionValue over every demo inside `match`."""
    pipeline: List[Dict[str, Any]] = []
    if match:
        pipeline.append({"$match": match})
    pipeline.append({
        "$group": {"_id": None, "total": {"$sum": "$conversionValue"}, "average": {"$avg": "$conversionValue"}}
    })
    rows = list(get_collection(DEMOS).aggregate(pipeline))
    if not rows:
        return {"total": 0, "average": 0}
    return {"total": rows[0]["total"] or 0, "average": rows[0]["average"] or 0}


def compute_demo_analytics(match: Dict[str, Any]) -> Dict[str, Any]:
    counts = count_by(DEMOS, "status", match)
    conversion = conversion_totals(match)
    return {
        "totalRequests": sum(counts.values()),
        **status_totals(counts, ANALYTICS_STATUSES),
        "totalConversionValue": conversion["total"],
        "avgConversionValue": conversion["average"],
    }


@router.post("", status_code=201)
def create_demo(req: DemoCreate):
    doc = new_lead(req.model_dump(), initial_status="pending")
    doc.update({
        "demoDate": None,
        "demoNotes": None,
        "customerFeedback": None,
        "conversionValue": 0,
        "followUpDate": None,
    })
    created = create_document(DEMOS, doc)
    logger.info("Demo request %s received from %s", created["_id"], req.business)
    return ok(
        {
            "id": str(created["_id"]),
            "name": req.name,
            "business": req.business,
            "businessType": req.businessType,
            "status": "pending",
        },
        message="Demo request submitted successfully",
    )


@router.get("")
def list_demos(
    page: PageParams = Depends(),
    status: Optional[DemoStatus] = None,
    businessType: Optional[DemoBusinessType] = None,
    assignedTo: Optional[str] = None,
    customerResponse: Optional[DemoResponse] = None,
    priority: Optional[DemoPriority] = None,
    search: Optional[str] = None,
    admin: CurrentAdmin = Depends(get_current_admin),
):
    filters = exact_filters(
        status=status,
        businessType=businessType,
        assignedTo=assignedTo,
        customerResponse=customerResponse,
        priority=priority,
    )
    filters.update(search_filter(search, SEARCH_FIELDS))
    result = list_leads(DEMOS, filters, page, extra_counts={"businessTypeCounts": "businessType"})
    return ok({"demos": result.pop("items"), **result})


# Declared before /{demo_id} so "analytics" is not taken for an id.
@router.get("/analytics")
def demo_analytics(
    startDate: Optional[datetime] = None,
    endDate: Optional[datetime] = None,
    admin: CurrentAdmin = Depends(get_current_admin),
):
    return ok({"analytics": compute_demo_analytics(date_range_filter(startDate, endDate))})


@router.get("/{demo_id}")
def get_demo(demo_id: str, admin: CurrentAdmin = Depends(get_current_admin)):
    return ok({"demo": get_lead(DEMOS, demo_id, LABEL)})


@router.put("/{demo_id}")
def update_demo(demo_id: str, req: DemoUpdate, admin: CurrentAdmin = Depends(get_current_admin)):
    updates = req.model_dump(exclude_unset=True, exclude_none=True)
    if not updates:
        raise ValidationError("Nothing to update")
    demo = update_lead(DEMOS, demo_id, updates, LABEL)
    return ok({"demo": demo}, message="Demo request updated successfully")


@router.post("/{demo_id}/notes")
def add_demo_note(demo_id: str, req: NoteCreate, admin: CurrentAdmin = Depends(get_current_admin)):
    demo = add_note(DEMOS, demo_id, req.note, admin, LABEL)
    return ok({"demo": demo}, message="Admin note added successfully")


@router.delete("/{demo_id}")
def delete_demo(demo_id: str, admin: CurrentAdmin = Depends(get_current_admin)):
    delete_lead(DEMOS, demo_id, LABEL)
    logger.info("Demo request %s deleted by %s", demo_id, admin.username)
    return ok(message="Demo request deleted successfully")
