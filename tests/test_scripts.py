"""Operational scripts: first super admin, activation toggle, contact migration."""

from datetime import datetime, timezone

from bson import ObjectId

from scripts.activate_admin import main as activate_main
from scripts.create_admin import create_super_admin
from scripts.migrate_contacts_to_clients import contact_to_client, migrate

CREATED = datetime(2024, 5, 1, tzinfo=timezone.utc)


def contact(**overrides):
    doc = {
        "_id": ObjectId(),
        "name": "Ravi Kumar",
        "email": "ravi@shopmail.com",
        "phone": "9876543210",
        "subject": "Billing software query",
        "message": "Need GST invoices for my shop.",
        "status": "new",
        "priority": "high",
        "assignedTo": None,
        "adminNotes": [],
        "createdAt": CREATED,
        "updatedAt": CREATED,
    }
    doc.update(overrides)
    return doc


class TestCreateSuperAdmin:
    def test_creates_once(self, mongo):
        assert create_super_admin()["role"] == "super_admin"
        assert create_super_admin() is None
        assert mongo.admins.count_documents({"role": "super_admin"}) == 1


class TestActivateAdmin:
    def test_deactivate_and_reactivate(self, mongo, admin):
        assert activate_main(["--email", "STAFFER@company.com", "--active", "false"]) == 0
        assert mongo.admins.find_one({"_id": admin["_id"]})["isActive"] is False
        assert activate_main(["-e", "staffer@company.com"]) == 0
        assert mongo.admins.find_one({"_id": admin["_id"]})["isActive"] is True

    def test_unknown_email(self, mongo):
        assert activate_main(["--email", "ghost@company.com"]) == 1


class TestContactMigration:
    def test_open_contact_becomes_active_client_with_issue(self, admin):
        note = {"note": "Asked for a demo", "addedBy": admin["_id"], "addedAt": CREATED}
        client = contact_to_client(contact(assignedTo=admin["_id"], adminNotes=[note]))

        assert client["businessName"] == "Billing software query"
        assert client["businessType"] == "other"
        assert client["status"] == "active"
        assert client["assignedSalesRep"] == admin["_id"]
        assert client["domainHosting"]["subdomain"].startswith("ravikumar")
        assert len(client["domainHosting"]["subdomain"]) == len("ravikumar") + 4
        assert client["billing"]["maintenanceFee"] == {"amount": 1000, "currency": "INR"}
        assert client["billing"]["pendingDues"]["amount"] == 0
        assert client["serviceSupport"]["ongoingIssues"][0]["priority"] == "high"
        assert client["serviceSupport"]["issuesHistory"][0]["status"] == "open"
        assert client["attachmentsNotes"]["internalNotes"][0]["isPrivate"] is True

    def test_resolved_and_closed_contacts(self):
        resolved = contact_to_client(contact(status="resolved"))
        assert resolved["serviceSupport"]["ongoingIssues"] == []
        assert resolved["serviceSupport"]["issuesHistory"][0]["status"] == "resolved"

        closed = contact_to_client(contact(status="closed", subject=""))
        assert closed["status"] == "inactive"
        assert closed["businessName"] == "Business - Ravi Kumar"

    def test_migrate_skips_existing_client_emails(self, mongo):
        mongo.contactmessages.insert_many([contact(), contact(email="new@shopmail.com")])
        mongo.clients.insert_one({"clientId": "CL1", "email": "ravi@shopmail.com"})

        stats = migrate()
        assert stats == {"processed": 2, "migrated": 1, "skipped": 1}
        assert mongo.clients.count_documents({}) == 2

    def test_dry_run_writes_nothing(self, mongo):
        mongo.contactmessages.insert_one(contact())
        assert migrate(dry_run=True)["migrated"] == 1
        assert mongo.clients.count_documents({}) == 0
