"""Contact messages and demo requests: public intake and staff triage."""

from datetime import datetime, timedelta, timezone

import pytest
from bson import ObjectId

BASE_TIME = datetime(2025, 1, 1, tzinfo=timezone.utc)


def seed_contacts(mongo, count, **overrides):
    docs = []
    for i in range(count):
        docs.append({
            "name": f"Customer {i:02d}",
            "email": f"customer{i:02d}@shopmail.com",
            "phone": "9876543210",
            "subject": f"Question number {i}",
            "message": "Please call me back about pricing.",
            "status": "new",
            "priority": "medium",
            "assignedTo": None,
            "adminNotes": [],
            "customerResponse": "pending",
            "issueSolved": False,
            "createdAt": BASE_TIME + timedelta(minutes=i),
            "updatedAt": BASE_TIME + timedelta(minutes=i),
            **overrides,
        })
    mongo.contactmessages.insert_many(docs)
    return docs


# ---------------------------------------------------------------------------
# Contact messages
# ---------------------------------------------------------------------------

class TestContactIntake:
    def test_public_submission_gets_defaults(self, api, mongo, contact_payload):
        res = api.post("/api/contact", json=contact_payload)
        assert res.status_code == 201
        assert res.json()["message"] == "Contact message submitted successfully"

        stored = mongo.contactmessages.find_one({"email": "ravi@shopmail.com"})
        assert stored["status"] == "new"
        assert stored["priority"] == "medium"
        assert stored["adminNotes"] == []
        assert stored["issueSolved"] is False
        assert stored["createdAt"] is not None

    @pytest.mark.parametrize("field,value", [
        ("phone", "12345"),
        ("phone", "5876543210"),
        ("email", "not-an-email"),
        ("subject", "Hi"),
        ("message", "too short"),
    ])
    def test_invalid_fields_are_rejected(self, api, contact_payload, field, value):
        res = api.post("/api/contact", json={**contact_payload, field: value})
        assert res.status_code == 400
        assert res.json()["errors"][0]["field"] == field

    def test_listing_requires_staff(self, api):
        assert api.get("/api/contact").status_code == 401


class TestContactTriage:
    def test_pagination_returns_second_page(self, api, mongo, admin_headers):
        seed_contacts(mongo, 25)
        res = api.get("/api/contact?page=2&limit=10", headers=admin_headers)
        assert res.status_code == 200
        data = res.json()["data"]
        assert len(data["contacts"]) == 10
        assert data["pagination"] == {"page": 2, "limit": 10, "total": 25, "pages": 3}
        # newest first: records 11th-20th are indices 14..5
        assert [c["name"] for c in data["contacts"]] == [f"Customer {i:02d}" for i in range(14, 4, -1)]
        assert data["statusCounts"] == {"new": 25}

    def test_pages_do_not_overlap_when_timestamps_tie(self, api, mongo, admin_headers):
        seed_contacts(mongo, 25, createdAt=BASE_TIME)
        seen = []
        for page in (1, 2, 3):
            res = api.get(f"/api/contact?page={page}&limit=10", headers=admin_headers)
            seen.extend(c["_id"] for c in res.json()["data"]["contacts"])
        assert len(seen) == 25
        assert len(set(seen)) == 25

    def test_filters_and_search(self, api, mongo, admin_headers):
        seed_contacts(mongo, 3)
        seed_contacts(mongo, 2, status="resolved", issueSolved=True, name="Anand Traders")
        res = api.get("/api/contact?status=resolved&issueSolved=true&search=anand", headers=admin_headers)
        data = res.json()["data"]
        assert data["pagination"]["total"] == 2
        assert data["statusCounts"] == {"new": 3, "resolved": 2}

    def test_search_treats_input_literally(self, api, mongo, admin_headers):
        seed_contacts(mongo, 2)
        res = api.get("/api/contact?search=.*", headers=admin_headers)
        assert res.json()["data"]["pagination"]["total"] == 0

    def test_update_assigns_and_populates(self, api, mongo, admin, admin_headers, contact_payload):
        api.post("/api/contact", json=contact_payload)
        contact_id = str(mongo.contactmessages.find_one()["_id"])
        res = api.put(
            f"/api/contact/{contact_id}",
            json={"status": "in_progress", "assignedTo": str(admin["_id"])},
            headers=admin_headers,
        )
        assert res.status_code == 200
        contact = res.json()["data"]["contact"]
        assert contact["status"] == "in_progress"
        assert contact["assignedTo"]["username"] == "staffer"
        assert mongo.contactmessages.find_one()["assignedTo"] == admin["_id"]

    def test_add_note_appends(self, api, mongo, admin_headers, contact_payload):
        api.post("/api/contact", json=contact_payload)
        contact_id = str(mongo.contactmessages.find_one()["_id"])
        for text in ("Called the customer", "Sent pricing sheet"):
            res = api.post(f"/api/contact/{contact_id}/notes", json={"note": text}, headers=admin_headers)
            assert res.status_code == 200
        notes = res.json()["data"]["contact"]["adminNotes"]
        assert [n["note"] for n in notes] == ["Called the customer", "Sent pricing sheet"]
        assert notes[0]["addedBy"]["username"] == "staffer"
        assert res.json()["message"] == "Admin note added successfully"

    @pytest.mark.parametrize("note", ["abc", "x" * 501])
    def test_note_length_bounds(self, api, mongo, admin_headers, contact_payload, note):
        api.post("/api/contact", json=contact_payload)
        contact_id = str(mongo.contactmessages.find_one()["_id"])
        res = api.post(f"/api/contact/{contact_id}/notes", json={"note": note}, headers=admin_headers)
        assert res.status_code == 400

    def test_malformed_id_is_rejected_before_lookup(self, api, admin_headers):
        res = api.get("/api/contact/not-an-id", headers=admin_headers)
        assert res.status_code == 400
        assert res.json()["message"] == "Invalid ID format"

    def test_unknown_id_is_not_found(self, api, admin_headers):
        res = api.get(f"/api/contact/{ObjectId()}", headers=admin_headers)
        assert res.status_code == 404
        assert res.json()["message"] == "Contact message not found"

    def test_delete(self, api, mongo, admin_headers, contact_payload):
        api.post("/api/contact", json=contact_payload)
        contact_id = str(mongo.contactmessages.find_one()["_id"])
        assert api.delete(f"/api/contact/{contact_id}", headers=admin_headers).status_code == 200
        assert mongo.contactmessages.count_documents({}) == 0
        assert api.delete(f"/api/contact/{contact_id}", headers=admin_headers).status_code == 404


# ---------------------------------------------------------------------------
# Demo requests
# ---------------------------------------------------------------------------

class TestDemoRequests:
    def test_public_booking(self, api, mongo, demo_payload):
        res = api.post("/api/demo", json=demo_payload)
        assert res.status_code == 201
        stored = mongo.demorequests.find_one()
        assert stored["status"] == "pending"
        assert stored["priority"] == "medium"
        assert stored["conversionValue"] == 0

    def test_unknown_business_type_is_rejected(self, api, demo_payload):
        res = api.post("/api/demo", json={**demo_payload, "businessType": "spaceship"})
        assert res.status_code == 400

    def test_list_includes_business_type_counts(self, api, admin_headers, demo_payload):
        api.post("/api/demo", json=demo_payload)
        api.post("/api/demo", json={**demo_payload, "email": "two@jewellers.com", "businessType": "restaurant"})
        data = api.get("/api/demo", headers=admin_headers).json()["data"]
        assert data["pagination"]["total"] == 2
        assert data["businessTypeCounts"] == {"retail-store": 1, "restaurant": 1}
        assert data["statusCounts"] == {"pending": 2}

    def test_conversion_and_analytics(self, api, mongo, admin_headers, demo_payload):
        for i, value in enumerate((5000, 15000)):
            api.post("/api/demo", json={**demo_payload, "email": f"lead{i}@jewellers.com"})
            demo_id = str(mongo.demorequests.find_one({"email": f"lead{i}@jewellers.com"})["_id"])
            res = api.put(
                f"/api/demo/{demo_id}",
                json={"status": "converted", "conversionValue": value, "demoDate": "2025-03-01T10:00:00"},
                headers=admin_headers,
            )
            assert res.status_code == 200
        api.post("/api/demo", json={**demo_payload, "email": "pending@jewellers.com"})

        analytics = api.get("/api/demo/analytics", headers=admin_headers).json()["data"]["analytics"]
        assert analytics["totalRequests"] == 3
        assert analytics["pendingRequests"] == 1
        assert analytics["convertedLeads"] == 2
        assert analytics["totalConversionValue"] == 20000
        assert analytics["avgConversionValue"] == pytest.approx(20000 / 3)

    def test_conversion_value_counts_for_any_status(self, api, mongo, admin_headers, demo_payload):
        api.post("/api/demo", json=demo_payload)
        demo_id = str(mongo.demorequests.find_one()["_id"])
        api.put(
            f"/api/demo/{demo_id}",
            json={"status": "demo_accepted", "conversionValue": 9000},
            headers=admin_headers,
        )

        analytics = api.get("/api/demo/analytics", headers=admin_headers).json()["data"]["analytics"]
        assert analytics["acceptedDemos"] == 1
        assert analytics["totalConversionValue"] == 9000
        assert analytics["avgConversionValue"] == 9000

        dashboard = api.get("/api/admin/dashboard", headers=admin_headers).json()["data"]
        assert dashboard["demos"]["totalConversionValue"] == 9000

    def test_analytics_date_window(self, api, mongo, admin_headers):
        mongo.demorequests.insert_many([
            {"name": "Early", "email": "early@shop.com", "status": "converted", "conversionValue": 4000,
             "createdAt": datetime(2024, 1, 10, tzinfo=timezone.utc)},
            {"name": "Late", "email": "late@shop.com", "status": "pending", "conversionValue": 0,
             "createdAt": datetime(2024, 6, 10, tzinfo=timezone.utc)},
        ])
        res = api.get(
            "/api/demo/analytics?startDate=2024-01-01T00:00:00Z&endDate=2024-02-01T00:00:00Z",
            headers=admin_headers,
        )
        analytics = res.json()["data"]["analytics"]
        assert analytics["totalRequests"] == 1
        assert analytics["convertedLeads"] == 1
        assert analytics["pendingRequests"] == 0
        assert analytics["totalConversionValue"] == 4000

    def test_negative_conversion_value_is_rejected(self, api, mongo, admin_headers, demo_payload):
        api.post("/api/demo", json=demo_payload)
        demo_id = str(mongo.demorequests.find_one()["_id"])
        res = api.put(f"/api/demo/{demo_id}", json={"conversionValue": -1}, headers=admin_headers)
        assert res.status_code == 400

    def test_note_on_missing_demo(self, api, admin_headers):
        res = api.post(f"/api/demo/{ObjectId()}/notes", json={"note": "Follow up call"}, headers=admin_headers)
        assert res.status_code == 404
        assert res.json()["message"] == "Demo request not found"
