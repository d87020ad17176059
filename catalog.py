"""
Product catalog administration and browsing.

Products are addressed by their external ``id`` everywhere; the Mongo
``_id`` is only echoed back for the admin panel.
"""
import logging
import re
from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel
from pymongo import ASCENDING, DESCENDING, ReturnDocument
from pymongo.database import Database
from pymongo.errors import DuplicateKeyError

from database import create_document, get_db, merge_document, serialize_doc, stored_keys, utcnow
from errors import Conflict, NotFound, ValidationError
from schemas import Product
from stock import label_for_product, quantity_path

logger = logging.getLogger(__name__)

BUDGET_PRICE = 499
COMPUTED_FIELDS = ("id", "stock")

router = APIRouter(prefix="/api/products", tags=["products"])


def exact_ci(value: str) -> dict:
    return {"$regex": f"^{re.escape(value.strip())}$", "$options": "i"}


def contains_ci(value: str) -> dict:
    return {"$regex": re.escape(value), "$options": "i"}


def _find_product(db: Database, product_id: str) -> dict:
    product = db["product"].find_one({"id": product_id})
    if not product:
        raise NotFound("Product not found")
    return product


# ----------------------- Models -----------------------
class ProductPayload(Product):
    pass


class StockUpdateBody(BaseModel):
    size: Optional[str] = None
    color: Optional[str] = None
    quantity: Optional[int] = None


class BatchBody(BaseModel):
    ids: Optional[List[str]] = None


# ----------------------- Browsing -----------------------
# fixed paths must be registered before /{product_id}
@router.get("/search/query")
def search_products(query: Optional[str] = None, db: Database = Depends(get_db)):
    if not query:
        raise ValidationError("Search query is required")
    pattern = contains_ci(query)
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
    )
    return {"products": serialize_doc(products), "count": len(products)}


@router.get("/newarrivals/all")
def new_arrivals(limit: int = 20, db: Database = Depends(get_db)):
    products = list(db["product"].find({"isActive": True}).sort("createdAt", DESCENDING).limit(limit))
    return {"products": serialize_doc(products), "count": len(products)}


@router.get("/price/range")
def products_by_price(
    min_price: Optional[float] = Query(None, alias="min"),
    max_price: Optional[float] = Query(None, alias="max"),
    db: Database = Depends(get_db),
):
    filt: dict = {"isActive": True}
    price: dict = {}
    if min_price is not None:
        price["$gte"] = min_price
    if max_price is not None:
        price["$lte"] = max_price
    if price:
        filt["sellingPrice"] = price
    products = list(db["product"].find(filt).sort("sellingPrice", ASCENDING))
    return {"products": serialize_doc(products), "count": len(products)}


@router.get("/below499")
def products_below_499(limit: int = 50, skip: int = 0, db: Database = Depends(get_db)):
    filt = {"isActive": True, "sellingPrice": {"$lte": BUDGET_PRICE}}
    products = list(db["product"].find(filt).sort("sellingPrice", ASCENDING).skip(skip).limit(limit))
    total = db["product"].count_documents(filt)
    return {"success": True, "products": serialize_doc(products), "count": len(products), "totalCount": total}


@router.get("/collection/{collection}")
def products_by_collection(collection: str, db: Database = Depends(get_db)):
    name = collection.strip().replace("-", " ")
    products = list(
        db["product"].find({"collection": exact_ci(name), "isActive": True}).sort("createdAt", DESCENDING)
    )
    logger.info("Found %d products in collection %r", len(products), name)
    return {"success": True, "products": serialize_doc(products), "count": len(products), "collection": name}


# ----------------------- CRUD -----------------------
@router.post("", status_code=201)
def create_product(payload: ProductPayload, db: Database = Depends(get_db)):
    if db["product"].find_one({"id": payload.id}):
        raise Conflict("Product with this ID already exists")
    doc = payload.model_dump(by_alias=True)
    if payload.stock_details:
        doc["stock"] = label_for_product(doc)
    try:
        create_document(db, "product", doc)
    except DuplicateKeyError:
        raise Conflict("Product with this ID already exists")
    logger.info("Product created: %s (collection %s)", payload.id, payload.collection)
    return {"message": "Product created successfully", "product": serialize_doc(_find_product(db, payload.id))}


@router.get("")
def list_products(
    collection: Optional[str] = None,
    stock: Optional[str] = None,
    is_active: Optional[bool] = Query(None, alias="isActive"),
    limit: int = 0,
    skip: int = 0,
    sort_by: str = Query("createdAt", alias="sortBy"),
    sort_order: str = Query("desc", alias="sortOrder"),
    db: Database = Depends(get_db),
):
    filt: dict = {}
    if collection:
        filt["collection"] = exact_ci(collection)
    if stock:
        filt["stock"] = stock
    if is_active is not None:
        filt["isActive"] = is_active

    direction = ASCENDING if sort_order == "asc" else DESCENDING
    cursor = db["product"].find(filt).sort(sort_by, direction).skip(skip)
    if limit:
        cursor = cursor.limit(limit)
    products = list(cursor)
    total = db["product"].count_documents(filt)
    page = skip // (limit or 10) + 1 if skip else 1
    return {"products": serialize_doc(products), "totalCount": total, "currentPage": page}


@router.post("/batch")
def products_by_ids(body: BatchBody, db: Database = Depends(get_db)):
    if not body.ids:
        raise ValidationError("Product IDs array is required")
    products = list(db["product"].find({"id": {"$in": body.ids}, "isActive": True}))
    if not products:
        raise NotFound("No products found for the given IDs")
    return serialize_doc(products)


@router.get("/{product_id}")
def get_product(product_id: str, db: Database = Depends(get_db)):
    return {"product": serialize_doc(_find_product(db, product_id))}


@router.put("/{product_id}")
def update_product(product_id: str, update: dict, db: Database = Depends(get_db)):
    for key in update:
        if "." in key or key.startswith("$"):
            raise ValidationError(f"Invalid field name: {key}")

    patch = {key: value for key, value in stored_keys(Product, update).items() if key not in COMPUTED_FIELDS}
    stored = _find_product(db, product_id)
    merged = merge_document(Product, stored, patch)
    touched = set(patch)
    changes = {key: value for key, value in merged.items() if key in touched}
    # the label always follows the cells, never the request
    changes["stock"] = label_for_product(merged)
    changes["updatedAt"] = utcnow()

    product = db["product"].find_one_and_update(
        {"id": product_id}, {"$set": changes}, return_document=ReturnDocument.AFTER
    )
    if not product:
        raise NotFound("Product not found")
    logger.info("Product updated: %s", product_id)
    return {"message": "Product updated successfully", "product": serialize_doc(product)}


@router.delete("/{product_id}")
def delete_product(product_id: str, db: Database = Depends(get_db)):
    product = db["product"].find_one_and_update(
        {"id": product_id},
        {"$set": {"isActive": False, "updatedAt": utcnow()}},
        return_document=ReturnDocument.AFTER,
    )
    if not product:
        raise NotFound("Product not found")
    return {"message": "Product deleted successfully", "product": serialize_doc(product)}


@router.delete("/{product_id}/permanent")
def permanently_delete_product(product_id: str, db: Database = Depends(get_db)):
    product = db["product"].find_one_and_delete({"id": product_id})
    if not product:
        raise NotFound("Product not found")
    logger.info("Product permanently deleted: %s", product_id)
    return {"message": "Product permanently deleted", "product": serialize_doc(product)}


@router.patch("/{product_id}/stock")
def update_stock_quantity(product_id: str, body: StockUpdateBody, db: Database = Depends(get_db)):
    if not body.size or not body.color or body.quantity is None:
        raise ValidationError("size, color and quantity are required")
    if body.quantity < 0:
        raise ValidationError("Quantity cannot be negative")
    if any("." in part or part.startswith("$") for part in (body.size, body.color)):
        raise ValidationError("Invalid size or color")

    product = db["product"].find_one_and_update(
        {"id": product_id},
        {"$set": {quantity_path(body.size, body.color): body.quantity, "updatedAt": utcnow()}},
        return_document=ReturnDocument.AFTER,
    )
    if not product:
        raise NotFound("Product not found")
    product["stock"] = label_for_product(product)
    db["product"].update_one({"_id": product["_id"]}, {"$set": {"stock": product["stock"]}})
    logger.info("Stock for %s %s/%s set to %d", product_id, body.size, body.color, body.quantity)
    return {"message": "Stock updated successfully", "product": serialize_doc(product)}
