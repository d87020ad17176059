"""
Small admin-managed content types: quotes, nav items, media, care
instructions and the countdown ("timing") banner, plus the storefront search.

Quotes, nav items and media share one CRUD shape, so their routers come from
``crud_router``.
"""
import logging
from typing import Optional, Type

from fastapi import APIRouter, Depends, Query
from pymongo import ASCENDING, DESCENDING, ReturnDocument
from pymongo.database import Database

from catalog import contains_ci
from database import (
    create_document,
    get_db,
    get_documents,
    merge_document,
    parse_object_id,
    serialize_doc,
    utcnow,
    validate_document,
)
from errors import NotFound, ValidationError
from schemas import Document, Instruction, Media, NavItem, Quote, TimingBanner

logger = logging.getLogger(__name__)


def _get(db: Database, collection: str, item_id: str, label: str) -> dict:
    doc = db[collection].find_one({"_id": parse_object_id(item_id)})
    if not doc:
        raise NotFound(f"{label} not found")
    return doc


def crud_router(prefix: str, model: Type[Document], collection: str, label: str,
                sort=None, clear_all: bool = False) -> APIRouter:
    router = APIRouter(prefix=prefix, tags=[collection])
    sort = sort or [("createdAt", DESCENDING)]

    @router.post("", status_code=201)
    def create_item(body: dict, db: Database = Depends(get_db)):
        inserted_id = create_document(db, collection, validate_document(model, body))
        logger.info("%s created: %s", label, inserted_id)
        doc = db[collection].find_one({"_id": parse_object_id(inserted_id)})
        return {"success": True, "message": f"{label} created successfully", "data": serialize_doc(doc)}

    @router.get("")
    def list_items(db: Database = Depends(get_db)):
        return {"success": True, "data": serialize_doc(get_documents(db, collection, sort=sort))}

    @router.put("/{item_id}")
    def update_item(item_id: str, body: dict, db: Database = Depends(get_db)):
        stored = _get(db, collection, item_id, label)
        changes = merge_document(model, stored, body)
        changes["updatedAt"] = utcnow()
        doc = db[collection].find_one_and_update(
            {"_id": stored["_id"]}, {"$set": changes}, return_document=ReturnDocument.AFTER
        )
        return {"success": True, "message": f"{label} updated successfully", "data": serialize_doc(doc)}

    @router.delete("/{item_id}")
    def delete_item(item_id: str, db: Database = Depends(get_db)):
        result = db[collection].delete_one({"_id": parse_object_id(item_id)})
        if not result.deleted_count:
            raise NotFound(f"{label} not found")
        logger.info("%s deleted: %s", label, item_id)
        return {"success": True, "message": f"{label} deleted successfully"}

    if clear_all:
        @router.delete("")
        def clear_items(db: Database = Depends(get_db)):
            result = db[collection].delete_many({})
            logger.info("Cleared %d %s documents", result.deleted_count, collection)
            return {"success": True, "message": f"All {label.lower()}s cleared", "deletedCount": result.deleted_count}

    return router


quotes_router = crud_router("/api/quotes", Quote, "quote", "Quote", clear_all=True)
nav_router = crud_router("/api/navbar", NavItem, "navitem", "Nav item",
                         sort=[("order", ASCENDING), ("createdAt", ASCENDING)], clear_all=True)
media_router = crud_router("/api/media", Media, "media", "Media")


# ----------------------- Instructions -----------------------
instructions_router = APIRouter(prefix="/api/instructions", tags=["instructions"])


@instructions_router.post("", status_code=201)
def create_instruction(body: dict, db: Database = Depends(get_db)):
    inserted_id = create_document(db, "instruction", validate_document(Instruction, body))
    doc = db["instruction"].find_one({"_id": parse_object_id(inserted_id)})
    logger.info("Instruction created: %s", doc.get("title"))
    return {"success": True, "message": "Instruction created successfully", "data": serialize_doc(doc)}


@instructions_router.get("")
def list_instructions(is_active: Optional[bool] = Query(None, alias="isActive"), db: Database = Depends(get_db)):
    filt = {} if is_active is None else {"isActive": is_active}
    docs = list(db["instruction"].find(filt).sort("createdAt", DESCENDING))
    return {"success": True, "count": len(docs), "data": serialize_doc(docs)}


@instructions_router.get("/{instruction_id}")
def get_instruction(instruction_id: str, db: Database = Depends(get_db)):
    return {"success": True, "data": serialize_doc(_get(db, "instruction", instruction_id, "Instruction"))}


@instructions_router.put("/{instruction_id}")
def update_instruction(instruction_id: str, body: dict, db: Database = Depends(get_db)):
    stored = _get(db, "instruction", instruction_id, "Instruction")
    changes = merge_document(Instruction, stored, body)
    changes["updatedAt"] = utcnow()
    doc = db["instruction"].find_one_and_update(
        {"_id": stored["_id"]}, {"$set": changes}, return_document=ReturnDocument.AFTER
    )
    return {"success": True, "message": "Instruction updated successfully", "data": serialize_doc(doc)}


@instructions_router.delete("/{instruction_id}")
def deactivate_instruction(instruction_id: str, db: Database = Depends(get_db)):
    doc = db["instruction"].find_one_and_update(
        {"_id": parse_object_id(instruction_id)},
        {"$set": {"isActive": False, "updatedAt": utcnow()}},
        return_document=ReturnDocument.AFTER,
    )
    if not doc:
        raise NotFound("Instruction not found")
    return {"success": True, "message": "Instruction deleted successfully", "data": serialize_doc(doc)}


@instructions_router.delete("/{instruction_id}/permanent")
def delete_instruction_permanently(instruction_id: str, db: Database = Depends(get_db)):
    doc = db["instruction"].find_one_and_delete({"_id": parse_object_id(instruction_id)})
    if not doc:
        raise NotFound("Instruction not found")
    logger.info("Instruction permanently deleted: %s", instruction_id)
    return {"success": True, "message": "Instruction permanently deleted"}


# ----------------------- Timing banner -----------------------
timing_banner_router = APIRouter(prefix="/api/timing-banner", tags=["timing-banner"])


@timing_banner_router.post("")
def save_timing_banner(body: dict, db: Database = Depends(get_db)):
    # single document; the latest save wins
    stored = db["timingbanner"].find_one()
    if stored:
        changes = merge_document(TimingBanner, stored, body)
        changes["updatedAt"] = utcnow()
        doc = db["timingbanner"].find_one_and_update(
            {"_id": stored["_id"]}, {"$set": changes}, return_document=ReturnDocument.AFTER
        )
        message = "Timing banner updated successfully"
    else:
        inserted_id = create_document(db, "timingbanner", validate_document(TimingBanner, body))
        doc = db["timingbanner"].find_one({"_id": parse_object_id(inserted_id)})
        message = "Timing banner created successfully"
    return {"success": True, "message": message, "data": serialize_doc(doc)}


@timing_banner_router.get("")
def get_timing_banner(db: Database = Depends(get_db)):
    doc = db["timingbanner"].find_one()
    if not doc:
        raise NotFound("Timing banner not found")
    return {"success": True, "data": serialize_doc(doc)}


# ----------------------- Search -----------------------
search_router = APIRouter(prefix="/api/search", tags=["search"])


@search_router.get("")
def smart_search(q: Optional[str] = None, limit: int = 20, db: Database = Depends(get_db)):
    if not q or not q.strip():
        raise ValidationError("Search query is required")
    pattern = contains_ci(q.strip())
    products = list(
        db["product"]
        .find(
            {
                "isActive": True,
                "$or": [
                    {"title": pattern},
                    {"description": pattern},
                    {"collection": pattern},
                    {"colors": pattern},
                ],
            }
        )
        .sort("createdAt", DESCENDING)
        .limit(limit)
    )
    collections = list(db["collection"].find({"enabled": True, "name": pattern}).sort("order", ASCENDING))
    return {
        "success": True,
        "query": q.strip(),
        "products": serialize_doc(products),
        "collections": serialize_doc(collections),
        "count": len(products) + len(collections),
    }
