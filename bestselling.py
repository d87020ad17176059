"""
Curated best-selling list.

Entries point at products by their external id and carry their own display
order. Reads join entries with active products; an entry whose product has
been deactivated or deleted is simply not shown until ``/sync`` drops it.
"""
import logging
from typing import List, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel
from pymongo import ASCENDING, DESCENDING
from pymongo.database import Database
from pymongo.errors import DuplicateKeyError

from database import create_document, get_db, serialize_doc, utcnow
from errors import NotFound, ValidationError
from schemas import BestSelling

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/bestselling", tags=["bestselling"])


def _with_entry(product: dict, entry: dict) -> dict:
    product = serialize_doc(product)
    product["bestSellingOrder"] = entry.get("order", 0)
    product["bestSellingId"] = str(entry["_id"])
    return product


def best_selling_products(db: Database) -> List[dict]:
    entries = list(db["bestselling"].find({"isActive": True}).sort([("order", ASCENDING), ("createdAt", ASCENDING)]))
    ids = [e["productId"] for e in entries]
    products = {p["id"]: p for p in db["product"].find({"id": {"$in": ids}, "isActive": True})}
    return [_with_entry(products[e["productId"]], e) for e in entries if e["productId"] in products]


# ----------------------- Models -----------------------
class AddBody(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    product_id: Optional[str] = None


class ReorderItem(AddBody):
    order: int = 0


class ReorderBody(BaseModel):
    items: Optional[List[ReorderItem]] = None


# ----------------------- Routes -----------------------
@router.get("")
def list_best_selling(db: Database = Depends(get_db)):
    products = best_selling_products(db)
    return {"success": True, "products": products, "count": len(products)}


@router.post("", status_code=201)
def add_best_selling(body: AddBody, db: Database = Depends(get_db)):
    if not body.product_id:
        raise ValidationError("Product ID is required")
    product = db["product"].find_one({"id": body.product_id, "isActive": True})
    if not product:
        raise NotFound("Product not found or inactive")
    if db["bestselling"].find_one({"productId": body.product_id}):
        raise ValidationError("Product is already in best selling list")

    last = db["bestselling"].find_one(sort=[("order", DESCENDING)])
    entry = BestSelling(product_id=body.product_id, order=last.get("order", 0) + 1 if last else 0)
    try:
        create_document(db, "bestselling", entry)
    except DuplicateKeyError:
        raise ValidationError("Product is already in best selling list")

    logger.info("Added %s to best selling", body.product_id)
    stored = db["bestselling"].find_one({"productId": body.product_id})
    return {"success": True, "message": "Product added to best selling", "product": _with_entry(product, stored)}


@router.put("/reorder")
def reorder_best_selling(body: ReorderBody, db: Database = Depends(get_db)):
    if body.items is None:
        raise ValidationError("Items array is required")
    now = utcnow()
    for item in body.items:
        db["bestselling"].update_one({"productId": item.product_id}, {"$set": {"order": item.order, "updatedAt": now}})
    logger.info("Reordered %d best selling entries", len(body.items))
    return {"success": True, "message": "Best selling order updated successfully"}


@router.delete("/clear/all")
def clear_best_selling(db: Database = Depends(get_db)):
    result = db["bestselling"].delete_many({})
    logger.info("Cleared %d best selling entries", result.deleted_count)
    return {
        "success": True,
        "message": f"Cleared {result.deleted_count} best selling items",
        "deletedCount": result.deleted_count,
    }


@router.post("/sync")
def sync_best_selling(db: Database = Depends(get_db)):
    ids = [e["productId"] for e in db["bestselling"].find({}, {"productId": 1})]
    active = {p["id"] for p in db["product"].find({"id": {"$in": ids}, "isActive": True}, {"id": 1})}
    stale = [pid for pid in ids if pid not in active]
    if stale:
        db["bestselling"].delete_many({"productId": {"$in": stale}})
        logger.info("Removed %d stale best selling entries", len(stale))
    return {"success": True, "message": "Best selling synced successfully", "removedCount": len(stale)}


@router.delete("/{product_id}")
def remove_best_selling(product_id: str, db: Database = Depends(get_db)):
    if not db["bestselling"].find_one_and_delete({"productId": product_id}):
        raise NotFound("Product not found in best selling list")
    logger.info("Removed %s from best selling", product_id)
    return {"success": True, "message": "Product removed from best selling", "productId": product_id}


@router.patch("/{product_id}/toggle")
def toggle_best_selling(product_id: str, db: Database = Depends(get_db)):
    entry = db["bestselling"].find_one({"productId": product_id})
    if not entry:
        raise NotFound("Product not found in best selling list")
    active = not entry.get("isActive", True)
    db["bestselling"].update_one({"_id": entry["_id"]}, {"$set": {"isActive": active, "updatedAt": utcnow()}})
    return {
        "success": True,
        "message": f"Best selling {'activated' if active else 'deactivated'}",
        "isActive": active,
    }
