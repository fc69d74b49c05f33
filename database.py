"""
MongoDB access.

`db` is None when DATABASE_URL / DATABASE_NAME are not set; callers check
for that and answer "Database not configured".
"""
import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional, Union

from bson import ObjectId
from bson.errors import InvalidId
from pydantic import BaseModel
from pymongo import ASCENDING, DESCENDING, MongoClient

import config
from errors import InvalidIdError

log = logging.getLogger("storefront.database")

PASSWORD_RESET_TTL_SECONDS = 900

client: Optional[MongoClient] = None
db = None

if config.DATABASE_URL and config.DATABASE_NAME:
    try:
        client = MongoClient(config.DATABASE_URL, serverSelectionTimeoutMS=5000)
        db = client[config.DATABASE_NAME]
        log.info("MongoDB client ready for database %s", config.DATABASE_NAME)
    except Exception as e:
        log.error("Could not create MongoDB client: %s", e)
        db = None
else:
    log.warning("DATABASE_URL or DATABASE_NAME not set, running without a database")


def now_utc() -> datetime:
    return datetime.now(timezone.utc)


def oid(id_str: Any) -> ObjectId:
    if isinstance(id_str, ObjectId):
        return id_str
    try:
        return ObjectId(id_str)
    except (InvalidId, TypeError):
        raise InvalidIdError()


def create_document(collection_name: str, data: Union[BaseModel, Dict[str, Any]], database=None) -> str:
    database = db if database is None else database
    doc = data.model_dump() if isinstance(data, BaseModel) else dict(data)
    if doc.get("created_at") is None:
        doc["created_at"] = now_utc()
    doc["updated_at"] = now_utc()
    result = database[collection_name].insert_one(doc)
    return str(result.inserted_id)


def ensure_indexes(database) -> None:
    """Declares the unique, compound and TTL indexes the collections rely on."""
    database["user"].create_index("email", unique=True)
    database["user"].create_index("azure_id", unique=True, sparse=True)
    database["category"].create_index("name", unique=True)
    database["category"].create_index("slug", unique=True)
    database["sub"].create_index("name", unique=True)
    database["sub"].create_index("slug", unique=True)
    database["product"].create_index("slug", unique=True)
    database["product"].create_index("price")
    database["product"].create_index([("created_at", DESCENDING)])
    database["comment"].create_index([("product", ASCENDING), ("user", ASCENDING)], unique=True)
    database["password_reset_token"].create_index("token", unique=True)
    database["password_reset_token"].create_index("created_at", expireAfterSeconds=PASSWORD_RESET_TTL_SECONDS)
    log.info("Indexes ensured")


def database_status(database=None) -> Dict[str, Any]:
    database = db if database is None else database
    response: Dict[str, Any] = {
        "database": "❌ Not Available",
        "database_url": "✅ Set" if config.DATABASE_URL else "❌ Not Set",
        "database_name": "✅ Set" if config.DATABASE_NAME else "❌ Not Set",
        "connection_status": "Not Connected",
        "collections": [],
    }
    if database is None:
        return response
    response["database"] = "✅ Available"
    try:
        response["collections"] = database.list_collection_names()[:10]
        response["database"] = "✅ Connected & Working"
        response["connection_status"] = "Connected"
    except Exception as e:
        response["database"] = f"⚠️ Connected but Error: {str(e)[:50]}"
    return response


def serialize_doc(value: Any) -> Any:
    """Turns a Mongo document into JSON-ready data: `_id` becomes `id`, ObjectIds become strings."""
    if isinstance(value, ObjectId):
        return str(value)
    if isinstance(value, list):
        return [serialize_doc(v) for v in value]
    if isinstance(value, dict):
        doc = {}
        for k, v in value.items():
            if k == "_id":
                doc["id"] = serialize_doc(v)
            elif k != "__v":
                doc[k] = serialize_doc(v)
        return doc
    return value
