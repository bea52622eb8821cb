"""Shared test infrastructure for the Business Admin API test suite.

Provides:
- mongo: in-memory mongomock database patched into `database.db`
- api: FastAPI TestClient over the full app
- make_admin: factory for admin accounts
- admin / super_admin with matching auth header fixtures
- contact_payload / demo_payload / client_payload: valid request bodies
"""

import os

# Configure before any application module reads settings.
os.environ["DATABASE_URL"] = ""
os.environ["DATABASE_NAME"] = ""
os.environ["BCRYPT_ROUNDS"] = "4"
os.environ["JWT_SECRET"] = "test-secret"
os.environ["ENVIRONMENT"] = "development"

from datetime import timedelta

import mongomock
import pytest
from fastapi.testclient import TestClient

import database
from auth import create_admin_account
from main import app
from security import create_access_token

PASSWORD = "Passw0rd"


# ---------------------------------------------------------------------------
# Database
# ---------------------------------------------------------------------------

@pytest.fixture(autouse=True)
def mongo(monkeypatch):
    """Fresh in-memory database per test, with the production indexes."""
    fake = mongomock.MongoClient(tz_aware=True)["business_admin_test"]
    monkeypatch.setattr(database, "db", fake)
    database.ensure_indexes()
    return fake


@pytest.fixture
def api():
    return TestClient(app)


# ---------------------------------------------------------------------------
# Admins
# ---------------------------------------------------------------------------

@pytest.fixture
def make_admin():
    def _make(username="staffer", email="staffer@company.com", password=PASSWORD, role="admin", active=True):
        doc = create_admin_account(username, email, password, role)
        if not active:
            database.get_collection(database.ADMINS).update_one({"_id": doc["_id"]}, {"$set": {"isActive": False}})
            doc["isActive"] = False
        return doc
    return _make


def bearer(admin_doc) -> dict:
    return {"Authorization": f"Bearer {create_access_token(str(admin_doc['_id']))}"}


@pytest.fixture
def admin(make_admin):
    return make_admin()


@pytest.fixture
def admin_headers(admin):
    return bearer(admin)


@pytest.fixture
def super_admin(make_admin):
    return make_admin("chief", "chief@company.com", role="super_admin")


@pytest.fixture
def super_headers(super_admin):
    return bearer(super_admin)


# ---------------------------------------------------------------------------
# Payload factories
# ---------------------------------------------------------------------------

@pytest.fixture
def contact_payload():
    return {
        "name": "Ravi Kumar",
        "email": "ravi@shopmail.com",
        "phone": "9876543210",
        "subject": "Billing software query",
        "message": "I would like to know more about your billing plans.",
    }


@pytest.fixture
def demo_payload():
    return {
        "name": "Meena",
        "business": "Meena Jewellers",
        "phone": "8123456789",
        "email": "meena@jewellers.com",
        "businessType": "retail-store",
        "currentSoftware": "tally",
        "preferredTime": "Weekday mornings",
    }


@pytest.fixture
def client_payload():
    return {
        "businessName": "Sri Lakshmi Jewellery",
        "ownerContactName": "Lakshmi",
        "email": "owner@srilakshmi.com",
        "phone": "9445566778",
        "businessType": "jewellery",
        "domainHosting": {"subdomain": "SriLakshmi"},
        "databaseSystem": {
            "databaseName": "db_srilakshmi",
            "connectionUri": "mongodb://db.internal:27017/srilakshmi",
        },
        "billing": {
            "maintenanceFee": {"amount": 1200},
            "billingCycle": "monthly",
            "paymentMethod": "upi",
            "nextPaymentDate": "2030-01-15T00:00:00Z",
        },
    }


@pytest.fixture
def expired_token():
    from security import _encode

    def _make(admin_doc):
        return _encode(str(admin_doc["_id"]), timedelta(seconds=-5))
    return _make


@pytest.fixture
def headers_for():
    """Auth headers for any admin document."""
    return bearer
