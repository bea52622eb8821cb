"""Contact messages: public submission, staff triage."""

import logging
from typing import Optional

from fastapi import APIRouter, Depends

from database import CONTACTS, create_document
from errors import ValidationError, ok
from leads import add_note, delete_lead, exact_filters, get_lead, list_leads, new_lead, update_lead
from schemas import ContactCreate, ContactPriority, ContactResponse, ContactStatus, ContactUpdate, NoteCreate
from security import CurrentAdmin, get_current_admin
from utils import PageParams, search_filter

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/contact", tags=["contact"])

LABEL = "Contact message"
SEARCH_FIELDS = ("name", "email", "subject", "message")


@router.post("", status_code=201)
def create_contact(req: ContactCreate):
    doc = new_lead(req.model_dump(), initial_status="new")
    doc.update({"customerFeedback": None, "issueSolved": False})
    created = create_document(CONTACTS, doc)
    logger.info("Contact message %s received from %s", created["_id"], req.email)
    return ok(
        {"id": str(created["_id"]), "name": req.name, "email": req.email, "subject": req.subject, "status": "new"},
        message="Contact message submitted successfully",
    )


@router.get("")
def list_contacts(
    page: PageParams = Depends(),
    status: Optional[ContactStatus] = None,
    priority: Optional[ContactPriority] = None,
    assignedTo: Optional[str] = None,
    customerResponse: Optional[ContactResponse] = None,
    issueSolved: Optional[bool] = None,
    search: Optional[str] = None,
    admin: CurrentAdmin = Depends(get_current_admin),
):
    filters = exact_filters(
        status=status,
        priority=priority,
        assignedTo=assignedTo,
        customerResponse=customerResponse,
        issueSolved=issueSolved,
    )
    filters.update(search_filter(search, SEARCH_FIELDS))
    result = list_leads(CONTACTS, filters, page)
    return ok({"contacts": result.pop("items"), **result})


@router.get("/{contact_id}")
def get_contact(contact_id: str, admin: CurrentAdmin = Depends(get_current_admin)):
    return ok({"contact": get_lead(CONTACTS, contact_id, LABEL)})


@router.put("/{contact_id}")
def update_contact(contact_id: str, req: ContactUpdate, admin: CurrentAdmin = Depends(get_current_admin)):
    updates = req.model_dump(exclude_unset=True, exclude_none=True)
    if not updates:
        raise ValidationError("Nothing to update")
    contact = update_lead(CONTACTS, contact_id, updates, LABEL)
    return ok({"contact": contact}, message="Contact message updated successfully")


@router.post("/{contact_id}/notes")
def add_contact_note(contact_id: str, req: NoteCreate, admin: CurrentAdmin = Depends(get_current_admin)):
    contact = add_note(CONTACTS, contact_id, req.note, admin, LABEL)
    return ok({"contact": contact}, message="Admin note added successfully")


@router.delete("/{contact_id}")
def delete_contact(contact_id: str, admin: CurrentAdmin = Depends(get_current_admin)):
    delete_lead(CONTACTS, contact_id, LABEL)
    logger.info("Contact message %s deleted by %s", contact_id, admin.username)
    return ok(message="Contact message deleted successfully")
