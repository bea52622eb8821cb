"""Dashboards and super-admin account management."""

from datetime import datetime, timedelta, timezone

from bson import ObjectId


def lead(status, created, **extra):
    return {"name": "Lead", "email": "lead@shopmail.com", "status": status, "adminNotes": [], "createdAt": created, **extra}


class TestDashboard:
    def test_blocks_are_zero_filled(self, api, admin_headers):
        data = api.get("/api/admin/dashboard", headers=admin_headers).json()["data"]
        assert data["contacts"] == {
            "totalContacts": 0, "newContacts": 0, "inProgressContacts": 0, "resolvedContacts": 0, "closedContacts": 0,
        }
        assert data["demos"]["totalDemos"] == 0
        assert data["demos"]["totalConversionValue"] == 0
        assert data["businessTypeStats"] == []

    def test_counts_recent_and_business_types(self, api, mongo, admin_headers):
        now = datetime.now(timezone.utc)
        mongo.contactmessages.insert_many([
            lead("new", now), lead("new", now), lead("resolved", now), lead("closed", now),
        ])
        mongo.demorequests.insert_many([
            lead("pending", now, businessType="restaurant"),
            lead("converted", now, businessType="restaurant", conversionValue=4000),
            lead("converted", now, businessType="healthcare", conversionValue=6000),
        ])
        data = api.get("/api/admin/dashboard", headers=admin_headers).json()["data"]
        assert data["contacts"]["totalContacts"] == 4
        assert data["contacts"]["newContacts"] == 2
        assert data["demos"]["convertedDemos"] == 2
        assert data["demos"]["totalConversionValue"] == 10000
        assert data["businessTypeStats"] == [{"_id": "restaurant", "count": 2}, {"_id": "healthcare", "count": 1}]
        assert len(data["recentActivities"]["contacts"]) == 4
        recent_demo = data["recentActivities"]["demos"][0]
        assert recent_demo["email"] == "lead@shopmail.com"
        assert "businessType" not in recent_demo

    def test_date_range(self, api, mongo, admin_headers):
        mongo.contactmessages.insert_many([
            lead("new", datetime(2024, 1, 10, tzinfo=timezone.utc)),
            lead("new", datetime(2024, 6, 10, tzinfo=timezone.utc)),
        ])
        res = api.get(
            "/api/admin/dashboard?startDate=2024-01-01T00:00:00Z&endDate=2024-02-01T00:00:00Z",
            headers=admin_headers,
        )
        assert res.json()["data"]["contacts"]["totalContacts"] == 1

    def test_system_stats(self, api, mongo, admin_headers, make_admin):
        make_admin("sleepy", "sleepy@company.com", active=False)
        now = datetime.now(timezone.utc)
        mongo.contactmessages.insert_many([lead("new", now), lead("new", now - timedelta(days=60))])
        mongo.demorequests.insert_one(lead("pending", now - timedelta(days=2)))
        data = api.get("/api/admin/system-stats", headers=admin_headers).json()["data"]
        assert data == {
            "totalAdmins": 2,
            "activeAdmins": 1,
            "totalContacts": 2,
            "totalDemos": 1,
            "recentContacts": 1,
            "recentDemos": 1,
        }


class TestAdminManagement:
    def test_list_filters(self, api, super_headers, make_admin):
        make_admin("ops1", "ops1@company.com")
        make_admin("ops2", "ops2@company.com", active=False)
        data = api.get("/api/admin/admins?isActive=false", headers=super_headers).json()["data"]
        assert [a["username"] for a in data["admins"]] == ["ops2"]
        assert "passwordHash" not in data["admins"][0]

        data = api.get("/api/admin/admins?search=OPS&sortBy=username&order=asc", headers=super_headers).json()["data"]
        assert [a["username"] for a in data["admins"]] == ["ops1", "ops2"]

    def test_create_and_duplicate(self, api, super_headers):
        body = {"username": "helper", "email": "helper@company.com", "password": "Helper123"}
        assert api.post("/api/admin/admins", json=body, headers=super_headers).status_code == 201
        res = api.post("/api/admin/admins", json={**body, "email": "other@company.com"}, headers=super_headers)
        assert res.status_code == 400
        assert res.json()["errors"][0]["field"] == "username"

    def test_update_role_and_active_flag(self, api, super_headers, admin):
        res = api.put(
            f"/api/admin/admins/{admin['_id']}",
            json={"role": "super_admin", "isActive": False},
            headers=super_headers,
        )
        assert res.status_code == 200
        assert res.json()["data"]["admin"]["role"] == "super_admin"
        assert res.json()["data"]["admin"]["isActive"] is False

    def test_update_duplicate_against_other_account(self, api, super_headers, admin):
        res = api.put(f"/api/admin/admins/{admin['_id']}", json={"username": "chief"}, headers=super_headers)
        assert res.status_code == 400

    def test_cannot_delete_self(self, api, super_admin, super_headers):
        res = api.delete(f"/api/admin/admins/{super_admin['_id']}", headers=super_headers)
        assert res.status_code == 400
        assert res.json()["message"] == "You cannot delete your own account"

    def test_delete_cascades_to_assignments_only(self, api, mongo, super_headers, admin):
        now = datetime.now(timezone.utc)
        mongo.contactmessages.insert_many([lead("new", now, assignedTo=admin["_id"]), lead("new", now)])
        mongo.demorequests.insert_one(lead("pending", now, assignedTo=admin["_id"]))
        mongo.clients.insert_one({"clientId": "CL1", "email": "c@biz.com", "assignedSalesRep": admin["_id"]})

        res = api.delete(f"/api/admin/admins/{admin['_id']}", headers=super_headers)
        assert res.status_code == 200

        assert mongo.admins.find_one({"_id": admin["_id"]}) is None
        assert mongo.contactmessages.count_documents({}) == 2
        assert mongo.demorequests.count_documents({}) == 1
        assert mongo.clients.count_documents({}) == 1
        assert mongo.contactmessages.count_documents({"assignedTo": admin["_id"]}) == 0
        assert mongo.demorequests.count_documents({"assignedTo": admin["_id"]}) == 0
        assert "assignedSalesRep" not in mongo.clients.find_one()

    def test_delete_unknown_admin(self, api, super_headers):
        assert api.delete(f"/api/admin/admins/{ObjectId()}", headers=super_headers).status_code == 404
