"""
MongoDB access for the booking API.

`db` is None when DATABASE_URL is not configured; callers check for that the
same way the routes do (see main.get_db).
"""

import logging
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Any, Dict, List, Optional

from bson import ObjectId
from pydantic import BaseModel
from pymongo import ASCENDING, MongoClient

from config import Config

logger = logging.getLogger(__name__)

client: Optional[MongoClient] = None
db = None

if Config.DATABASE_URL:
    client = MongoClient(Config.DATABASE_URL)
    db = client[Config.DATABASE_NAME]


def to_document(data: Any) -> Dict[str, Any]:
    """Turn a model (or dict) into a BSON-safe document: dates and decimals become strings."""
    if isinstance(data, BaseModel):
        return data.model_dump(mode="json")
    out = {}
    for k, v in data.items():
        if isinstance(v, Decimal):
            out[k] = str(v)
        elif isinstance(v, date) and not isinstance(v, datetime):
            out[k] = v.isoformat()
        else:
            out[k] = v
    return out


def create_document(database, collection: str, data: Any) -> str:
    doc = to_document(data)
    now = datetime.now(timezone.utc)
    doc.update({"created_at": now, "updated_at": now})
    result = database[collection].insert_one(doc)
    return str(result.inserted_id)


def get_documents(database, collection: str, query: Optional[Dict[str, Any]] = None, sort=None) -> List[Dict[str, Any]]:
    cursor = database[collection].find(query or {})
    if sort:
        cursor = cursor.sort(sort)
    return list(cursor)


def serialize_value(v):
    if isinstance(v, ObjectId):
        return str(v)
    if isinstance(v, datetime):
        if v.tzinfo is None:
            v = v.replace(tzinfo=timezone.utc)
        return v.astimezone(timezone.utc).isoformat()
    return v


def serialize_doc(doc: dict) -> dict:
    out = {k: serialize_value(v) for k, v in doc.items() if k != "_id"}
    out["id"] = str(doc["_id"])
    return out


def oid(id_str: str) -> Optional[ObjectId]:
    """Parse an id, None when it is not a valid ObjectId."""
    if not ObjectId.is_valid(id_str):
        return None
    return ObjectId(id_str)


def ensure_indexes(database) -> None:
    database["booking"].create_index("booking_code", unique=True)
    database["booking"].create_index([("vehicle_id", ASCENDING), ("start_date", ASCENDING)])
    database["blackoutdate"].create_index([("vehicle_id", ASCENDING), ("date", ASCENDING)], unique=True)
    database["vehicle"].create_index("slug", unique=True)
    database["employee"].create_index("username", unique=True)
    logger.info("MongoDB indexes ensured")
