"""
MongoDB access helpers.

The client is created at import time; pymongo connects lazily so importing
this module never blocks. Routers receive the database through the `get_db`
dependency so tests can swap in another database.
"""
import logging
from datetime import datetime, timezone
from typing import Any, List, Optional, Type, Union

from bson import ObjectId
from bson.errors import InvalidId
from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError
from pymongo import ASCENDING, DESCENDING, MongoClient
from pymongo.database import Database

import config
from errors import ValidationError

logger = logging.getLogger(__name__)

client = MongoClient(config.DATABASE_URL)
db = client[config.DATABASE_NAME]


def get_db() -> Database:
    return db


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    # pymongo hands back naive datetimes unless the client is tz aware
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def create_document(database: Database, collection_name: str, data: Union[BaseModel, dict]) -> str:
    """Insert a document stamped with createdAt/updatedAt and return its id as a string."""
    if isinstance(data, BaseModel):
        doc = data.model_dump(by_alias=True)
    else:
        doc = dict(data)
    now = utcnow()
    doc.setdefault("createdAt", now)
    doc["updatedAt"] = now
    result = database[collection_name].insert_one(doc)
    return str(result.inserted_id)


READ_ONLY_FIELDS = ("_id", "createdAt", "updatedAt")


def validate_document(model: Type[BaseModel], data: dict) -> dict:
    """Validate raw data against a schema and return it in stored (alias) form."""
    try:
        return model.model_validate(data).model_dump(by_alias=True)
    except PydanticValidationError as exc:
        raise ValidationError(f"Invalid {model.__name__} data", errors=exc.errors(include_url=False))


def stored_keys(model: Type[BaseModel], data: dict) -> dict:
    """Rename field names to their stored aliases; unknown keys pass through."""
    aliases = {name: field.alias or name for name, field in model.model_fields.items()}
    return {aliases.get(k, k): v for k, v in data.items()}


def merge_document(model: Type[BaseModel], stored: dict, changes: dict) -> dict:
    """Apply a partial update on top of the stored document and re-validate the result."""
    current = {k: v for k, v in stored.items() if k not in READ_ONLY_FIELDS}
    patch = {k: v for k, v in stored_keys(model, changes).items() if k not in READ_ONLY_FIELDS}
    return validate_document(model, {**current, **patch})


def get_documents(
    database: Database,
    collection_name: str,
    filter_dict: Optional[dict] = None,
    limit: Optional[int] = None,
    sort: Optional[List[tuple]] = None,
) -> List[dict]:
    cursor = database[collection_name].find(filter_dict or {})
    if sort:
        cursor = cursor.sort(sort)
    if limit:
        cursor = cursor.limit(limit)
    return list(cursor)


def parse_object_id(value: str) -> ObjectId:
    try:
        return ObjectId(value)
    except (InvalidId, TypeError):
        raise ValidationError("Invalid ID")


def serialize_doc(doc: Any) -> Any:
    """Make a raw Mongo document JSON friendly (ObjectId -> str, recursively)."""
    if isinstance(doc, ObjectId):
        return str(doc)
    if isinstance(doc, dict):
        return {k: serialize_doc(v) for k, v in doc.items()}
    if isinstance(doc, list):
        return [serialize_doc(v) for v in doc]
    return doc


def ensure_indexes(database: Database) -> None:
    database["product"].create_index([("id", ASCENDING)], unique=True)
    database["product"].create_index([("collection", ASCENDING)])
    database["product"].create_index([("isActive", ASCENDING)])
    database["order"].create_index([("orderId", ASCENDING)], unique=True)
    database["order"].create_index([("userId", ASCENDING)])
    database["order"].create_index([("createdAt", DESCENDING)])
    database["order"].create_index([("paymentDetails.razorpay_payment_id", ASCENDING)])
    database["cart"].create_index([("userId", ASCENDING)], unique=True)
    database["user"].create_index([("phone", ASCENDING)], unique=True)
    database["collection"].create_index([("normalizedName", ASCENDING)], unique=True)
    database["bestselling"].create_index([("productId", ASCENDING)], unique=True)
    logger.info("Indexes ensured on %s", database.name)
