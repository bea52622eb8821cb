#!/usr/bin/env python3
"""
Contact -> Client Migration Script

One-time transform of every stored contact message into a client record
with defaulted section values. Contacts whose email already belongs to a
client are skipped. Review the migrated clients afterwards: business type,
billing amounts, hosting and database details are placeholders.

Usage:
    # Dry run (preview only)
    python scripts/migrate_contacts_to_clients.py --dry-run

    # Actual migration
    python scripts/migrate_contacts_to_clients.py
"""

import argparse
import logging
import re
import secrets
import string
import sys
import time
from datetime import datetime, timedelta
from pathlib import Path
from typing import Any, Dict, Optional

# Add project root to path
PROJECT_ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from pymongo.errors import PyMongoError

from clients import apply_client_defaults, generate_client_id
from database import CLIENTS, CONTACTS, create_document, get_collection, utcnow

logging.basicConfig(level=logging.INFO, format="%(asctime)s - %(levelname)s - %(message)s")
logger = logging.getLogger(__name__)

DEFAULT_MAINTENANCE_FEE = 1000
PLACEHOLDER_URI = "mongodb://localhost:27017/placeholder"
_SLUG_ALPHABET = string.ascii_lowercase + string.digits


def _slug(name: str) -> str:
    return re.sub(r"[^a-z0-9]", "", (name or "").lower())


def contact_to_client(contact: Dict[str, Any], now: Optional[datetime] = None) -> Dict[str, Any]:
    """Build the client document for one contact message (not persisted)."""
    now = now or utcnow()
    slug = _slug(contact.get("name", ""))
    resolved = contact.get("status") == "resolved"
    created = contact.get("createdAt") or now

    client = {
        "clientId": generate_client_id(),
        "businessName": contact.get("subject") or f"Business - {contact.get('name')}",
        "ownerContactName": contact.get("name"),
        "email": contact.get("email"),
        "phone": contact.get("phone"),
        "businessAddress": {"street": "", "city": "", "state": "", "pincode": "", "country": "India"},
        "onboardingDate": created,
        "businessType": "other",
        "businessCategory": "",
        "targetAudience": "",
        "businessDescription": contact.get("message"),
        "domainHosting": {
            "subdomain": slug + "".join(secrets.choice(_SLUG_ALPHABET) for _ in range(4)),
            "websiteThemeTemplate": "default",
        },
        "databaseSystem": {
            "databaseName": f"db_{slug}_{int(time.time() * 1000)}",
            "connectionUri": PLACEHOLDER_URI,
            "lastBackupDate": None,
            "backendRepoLink": "",
        },
        "billing": {
            "maintenanceFee": {"amount": DEFAULT_MAINTENANCE_FEE, "currency": "INR"},
            "billingCycle": "monthly",
            "nextPaymentDate": now + timedelta(days=30),
            "paymentMethod": "upi",
        },
        "serviceSupport": {
            "supportTicketsCount": 1,
            "lastSupportRequestDate": created,
            "issuesHistory": [{
                "issue": contact.get("message"),
                "fix": "",
                "reportedDate": created,
                "resolvedDate": contact.get("updatedAt") if resolved else None,
                "status": "resolved" if resolved else "open",
            }],
            "ongoingIssues": [] if resolved else [{
                "issue": contact.get("message"),
                "priority": contact.get("priority") or "medium",
                "reportedDate": created,
                "assignedTo": contact.get("assignedTo"),
            }],
        },
        "attachmentsNotes": {
            "clientSpecificInstructions": "",
            "internalNotes": [
                {"note": n.get("note"), "addedBy": n.get("addedBy"), "addedDate": n.get("addedAt"), "isPrivate": True}
                for n in contact.get("adminNotes") or []
            ],
        },
        "status": "inactive" if contact.get("status") == "closed" else "active",
        "createdAt": created,
        "updatedAt": contact.get("updatedAt") or now,
    }
    if contact.get("assignedTo"):
        client["assignedSalesRep"] = contact["assignedTo"]
    return apply_client_defaults(client)


def migrate(dry_run: bool = False) -> Dict[str, int]:
    stats = {"processed": 0, "migrated": 0, "skipped": 0}
    clients = get_collection(CLIENTS)
    for contact in get_collection(CONTACTS).find({}):
        stats["processed"] += 1
        if clients.find_one({"email": contact.get("email")}, {"_id": 1}):
            logger.warning("Client with email %s already exists, skipping", contact.get("email"))
            stats["skipped"] += 1
            continue
        doc = contact_to_client(contact)
        if dry_run:
            logger.info("[dry-run] Would migrate %s (%s) to client %s", contact.get("name"), contact.get("email"), doc["clientId"])
            stats["migrated"] += 1
            continue
        try:
            create_document(CLIENTS, doc)
        except PyMongoError as exc:
            logger.error("Error migrating contact %s: %s", contact.get("email"), exc)
            stats["skipped"] += 1
            continue
        logger.info("Migrated contact %s (%s) to client %s", contact.get("name"), contact.get("email"), doc["clientId"])
        stats["migrated"] += 1
    return stats


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Convert contact messages into client records")
    parser.add_argument("--dry-run", action="store_true", help="preview without writing")
    args = parser.parse_args(argv)

    stats = migrate(dry_run=args.dry_run)
    logger.info(
        "Migration summary: migrated=%d skipped=%d processed=%d",
        stats["migrated"], stats["skipped"], stats["processed"],
    )
    return 0


if __name__ == "__main__":
    sys.exit(main())
