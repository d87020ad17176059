"""
Storefront collections (Mens, Womens, ...) as managed from the admin panel.

A collection is keyed by its normalized name: whitespace runs collapse to
underscores, so "Home Textiles" and "home  textiles" are different names but
"Home Textiles" and "Home   Textiles" collide.
"""
import logging
import re
from typing import List, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel
from pymongo import ASCENDING, DESCENDING, ReturnDocument
from pymongo.database import Database
from pymongo.errors import DuplicateKeyError

from database import create_document, get_db, parse_object_id, serialize_doc, utcnow
from errors import Conflict, NotFound, ValidationError
from schemas import Collection

logger = logging.getLogger(__name__)

DEFAULT_COLLECTIONS = ["Mens", "Womens", "Kids", "Home Textiles", "Accessories"]
DISPLAY_ORDER = [("order", ASCENDING), ("createdAt", ASCENDING)]

router = APIRouter(prefix="/api/collections", tags=["collections"])


def normalize_name(name: str) -> str:
    return re.sub(r"\s+", "_", name.strip())


def display_name(normalized: str) -> str:
    return normalized.replace("_", " ")


def _find(db: Database, collection_id: str) -> dict:
    doc = db["collection"].find_one({"_id": parse_object_id(collection_id)})
    if not doc:
        raise NotFound("Collection not found")
    return doc


def _listing(db: Database, filt: dict) -> dict:
    docs = list(db["collection"].find(filt).sort(DISPLAY_ORDER))
    return {"success": True, "data": serialize_doc(docs)}


# ----------------------- Models -----------------------
class CollectionBody(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    name: Optional[str] = None
    enabled: Optional[bool] = None
    image: Optional[str] = None
    offer_enabled: Optional[bool] = None
    is_default: Optional[bool] = None
    order: Optional[int] = None


class BulkEntry(CollectionBody):
    id: Optional[str] = None


class BulkUpdateBody(BaseModel):
    collections: Optional[List[BulkEntry]] = None


# ----------------------- Queries -----------------------
@router.get("")
def all_collections(db: Database = Depends(get_db)):
    return _listing(db, {})


@router.get("/enabled")
def enabled_collections(db: Database = Depends(get_db)):
    return _listing(db, {"enabled": True})


@router.get("/offers")
def offer_collections(db: Database = Depends(get_db)):
    return _listing(db, {"enabled": True, "offerEnabled": True})


@router.get("/{name}")
def collection_by_name(name: str, db: Database = Depends(get_db)):
    doc = db["collection"].find_one({"normalizedName": normalize_name(name.replace("-", " "))})
    if not doc:
        raise NotFound("Collection not found")
    return {"success": True, "data": serialize_doc(doc)}


# ----------------------- Admin -----------------------
@router.post("", status_code=201)
def create_collection(body: CollectionBody, db: Database = Depends(get_db)):
    if not body.name or not body.name.strip():
        raise ValidationError("Collection name is required")
    normalized = normalize_name(body.name)
    if db["collection"].find_one({"normalizedName": normalized}):
        raise Conflict("Collection already exists")

    last = db["collection"].find_one(sort=[("order", DESCENDING)])
    collection = Collection(
        name=display_name(normalized),
        normalized_name=normalized,
        enabled=True if body.enabled is None else body.enabled,
        image=body.image or "",
        offer_enabled=bool(body.offer_enabled),
        is_default=bool(body.is_default),
        order=last.get("order", 0) + 1 if last else 0,
    )
    try:
        inserted_id = create_document(db, "collection", collection)
    except DuplicateKeyError:
        raise Conflict("Collection already exists")

    logger.info("Collection created: %s", collection.name)
    doc = db["collection"].find_one({"_id": parse_object_id(inserted_id)})
    return {"success": True, "message": "Collection created successfully", "data": serialize_doc(doc)}


@router.post("/bulk-update")
def bulk_update_collections(body: BulkUpdateBody, db: Database = Depends(get_db)):
    if body.collections is None:
        raise ValidationError("Collections array is required")

    updated = []
    for entry in body.collections:
        if not entry.id:
            continue
        changes = entry.model_dump(by_alias=True, include={"enabled", "image", "offer_enabled", "order"}, exclude_none=True)
        changes["updatedAt"] = utcnow()
        doc = db["collection"].find_one_and_update(
            {"_id": parse_object_id(entry.id)}, {"$set": changes}, return_document=ReturnDocument.AFTER
        )
        if doc:
            updated.append(doc)

    logger.info("Bulk update touched %d collections", len(updated))
    return {"success": True, "message": "Collections updated successfully", "data": serialize_doc(updated)}


@router.post("/seed", status_code=201)
def seed_default_collections(db: Database = Depends(get_db)):
    if db["collection"].count_documents({}) > 0:
        raise ValidationError("Collections already exist. Clear database first if you want to reseed.")

    for index, name in enumerate(DEFAULT_COLLECTIONS):
        collection = Collection(name=name, normalized_name=normalize_name(name), is_default=True, order=index)
        create_document(db, "collection", collection)

    logger.info("Seeded %d default collections", len(DEFAULT_COLLECTIONS))
    docs = list(db["collection"].find().sort(DISPLAY_ORDER))
    return {"success": True, "message": "Default collections seeded successfully", "data": serialize_doc(docs)}


@router.put("/{collection_id}")
def update_collection(collection_id: str, body: CollectionBody, db: Database = Depends(get_db)):
    doc = _find(db, collection_id)
    changes = body.model_dump(by_alias=True, include={"enabled", "image", "offer_enabled", "order"}, exclude_none=True)

    if body.name is not None:
        normalized = normalize_name(body.name)
        if not normalized:
            raise ValidationError("Collection name is required")
        if db["collection"].find_one({"normalizedName": normalized, "_id": {"$ne": doc["_id"]}}):
            raise Conflict("Collection name already exists")
        changes["name"] = display_name(normalized)
        changes["normalizedName"] = normalized

    changes["updatedAt"] = utcnow()
    try:
        doc = db["collection"].find_one_and_update(
            {"_id": doc["_id"]}, {"$set": changes}, return_document=ReturnDocument.AFTER
        )
    except DuplicateKeyError:
        raise Conflict("Collection name already exists")

    logger.info("Collection updated: %s", doc.get("name"))
    return {"success": True, "message": "Collection updated successfully", "data": serialize_doc(doc)}


@router.delete("/{collection_id}")
def delete_collection(collection_id: str, db: Database = Depends(get_db)):
    doc = _find(db, collection_id)
    if doc.get("isDefault"):
        raise ValidationError("Cannot delete default collections")
    db["collection"].delete_one({"_id": doc["_id"]})
    logger.info("Collection deleted: %s", doc.get("name"))
    return {"success": True, "message": "Collection deleted successfully"}


def _toggle(db: Database, collection_id: str, field: str) -> dict:
    doc = _find(db, collection_id)
    return db["collection"].find_one_and_update(
        {"_id": doc["_id"]},
        {"$set": {field: not doc.get(field, False), "updatedAt": utcnow()}},
        return_document=ReturnDocument.AFTER,
    )


@router.patch("/{collection_id}/toggle-enabled")
def toggle_collection_enabled(collection_id: str, db: Database = Depends(get_db)):
    doc = _toggle(db, collection_id, "enabled")
    state = "enabled" if doc["enabled"] else "disabled"
    logger.info("Collection %s: %s", state, doc.get("name"))
    return {"success": True, "message": f"Collection {state} successfully", "data": serialize_doc(doc)}


@router.patch("/{collection_id}/toggle-offer")
def toggle_offer_enabled(collection_id: str, db: Database = Depends(get_db)):
    doc = _toggle(db, collection_id, "offerEnabled")
    state = "enabled" if doc["offerEnabled"] else "disabled"
    logger.info("Offer %s: %s", state, doc.get("name"))
    return {"success": True, "message": f"Offer {state} successfully", "data": serialize_doc(doc)}
