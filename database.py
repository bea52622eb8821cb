"""
MongoDB access layer.

`db` is None until DATABASE_URL and DATABASE_NAME are configured; every
route goes through `get_collection`, which fails loudly in that case.
"""
import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple

from bson import ObjectId
from bson.errors import InvalidId
from pymongo import ASCENDING, DESCENDING, MongoClient
from pymongo.collection import Collection

from config import get_settings
from errors import InternalError, ValidationError

logger = logging.getLogger(__name__)

ADMINS = "admins"
CONTACTS = "contactmessages"
DEMOS = "demorequests"
CLIENTS = "clients"
ONBOARDINGS = "onboardings"

settings = get_settings()

client: Optional[MongoClient] = None
db = None

if settings.database_url and settings.database_name:
    client = MongoClient(settings.database_url, tz_aware=True)
    db = client[settings.database_name]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def get_collection(name: str) -> Collection:
    if db is None:
        raise InternalError("Database not configured")
    return db[name]


def is_object_id(value: Any) -> bool:
    return isinstance(value, str) and ObjectId.is_valid(value) and len(value) == 24


def objid(id_str: str, label: str = "ID") -> ObjectId:
    if not is_object_id(id_str):
        raise ValidationError(f"Invalid {label} format", errors=[{"field": "id", "message": f"Invalid {label} format"}])
    try:
        return ObjectId(id_str)
    except (InvalidId, TypeError):
        raise ValidationError(f"Invalid {label} format")


def serialize(value: Any) -> Any:
    """Make a Mongo document JSON friendly (ObjectId -> str), recursively."""
    if isinstance(value, ObjectId):
        return str(value)
    if isinstance(value, dict):
        return {k: serialize(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [serialize(v) for v in value]
    return value


def create_document(collection_name: str, data: Dict[str, Any]) -> Dict[str, Any]:
    """Insert a document stamped with createdAt/updatedAt and return it with its _id."""
    now = utcnow()
    doc = {**data}
    doc.setdefault("createdAt", now)
    doc.setdefault("updatedAt", now)
    result = get_collection(collection_name).insert_one(doc)
    doc["_id"] = result.inserted_id
    return doc


def get_documents(
    collection_name: str,
    filter_dict: Optional[Dict[str, Any]] = None,
    sort: Optional[List[Tuple[str, int]]] = None,
    skip: int = 0,
    limit: Optional[int] = None,
    projection: Optional[Dict[str, Any]] = None,
) -> List[Dict[str, Any]]:
    cursor = get_collection(collection_name).find(filter_dict or {}, projection)
    if sort:
        cursor = cursor.sort(sort)
    if skip:
        cursor = cursor.skip(skip)
    if limit:
        cursor = cursor.limit(limit)
    return list(cursor)


def ensure_indexes() -> None:
    """Create the unique and query indexes the application relies on."""
    admins = get_collection(ADMINS)
    admins.create_index("username", unique=True)
    admins.create_index("email", unique=True)

    clients = get_collection(CLIENTS)
    clients.create_index("clientId", unique=True)
    clients.create_index("email", unique=True)
    clients.create_index("businessName")
    clients.create_index([("status", ASCENDING), ("createdAt", DESCENDING)])
    clients.create_index("domainHosting.subdomain")
    clients.create_index("assignedSalesRep")
    clients.create_index("billing.nextPaymentDate")

    for name in (CONTACTS, DEMOS):
        coll = get_collection(name)
        coll.create_index([("status", ASCENDING), ("createdAt", DESCENDING)])
        coll.create_index("email")
        coll.create_index("assignedTo")
    get_collection(DEMOS).create_index("businessType")

    onboardings = get_collection(ONBOARDINGS)
    onboardings.create_index([("status", ASCENDING), ("createdAt", DESCENDING)])
    onboardings.create_index("personalDetails.name")
    onboardings.create_index("businessDetails.businessName")
    logger.info("MongoDB indexes ensured")
