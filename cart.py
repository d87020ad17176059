"""
Cart workflow.

One cart document per owner. Totals are computed when the cart is read and
never stored. Every mutation re-checks live stock for the touched line.
"""
import logging
from typing import Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel
from pymongo import ReturnDocument
from pymongo.database import Database

from database import get_db, serialize_doc, utcnow
from errors import InsufficientStock, NotFound, ValidationError
from schemas import Cart, CartItem
from stock import available_quantity, find_cell

logger = logging.getLogger(__name__)

GUEST_KEY = "guest"
_GUEST_ALIASES = {"", "guest", "null", "undefined", "none"}


class CartOwner(BaseModel):
    model_config = ConfigDict(frozen=True)

    user_id: Optional[str] = None

    @classmethod
    def guest(cls) -> "CartOwner":
        return cls(user_id=None)

    @classmethod
    def resolve(cls, raw: Optional[str]) -> "CartOwner":
        if raw is None or raw.strip().lower() in _GUEST_ALIASES:
            return cls.guest()
        return cls(user_id=raw.strip())

    @property
    def is_guest(self) -> bool:
        return self.user_id is None

    @property
    def key(self) -> str:
        return GUEST_KEY if self.is_guest else self.user_id


def cart_owner(user_id: str) -> CartOwner:
    return CartOwner.resolve(user_id)


def with_totals(cart: dict) -> dict:
    items = cart.get("items") or []
    cart = serialize_doc(cart)
    cart["totalItems"] = sum(int(i.get("quantity", 0)) for i in items)
    cart["totalPrice"] = round(sum(float(i.get("price", 0)) * int(i.get("quantity", 0)) for i in items), 2)
    return cart


def get_or_create_cart(db: Database, owner: CartOwner) -> dict:
    now = utcnow()
    return db["cart"].find_one_and_update(
        {"userId": owner.key},
        {"$setOnInsert": dict(Cart(user_id=owner.key).model_dump(by_alias=True), createdAt=now, updatedAt=now)},
        upsert=True,
        return_document=ReturnDocument.AFTER,
    )


def _existing_cart(db: Database, owner: CartOwner) -> dict:
    cart = db["cart"].find_one({"userId": owner.key})
    if not cart:
        raise NotFound("Cart not found")
    return cart


def _save_items(db: Database, cart: dict, items: list) -> dict:
    return db["cart"].find_one_and_update(
        {"_id": cart["_id"]},
        {"$set": {"items": items, "updatedAt": utcnow()}},
        return_document=ReturnDocument.AFTER,
    )


def _check_index(cart: dict, index: int) -> None:
    if index < 0 or index >= len(cart.get("items") or []):
        raise ValidationError("Invalid item index")


def add_to_cart(db: Database, owner: CartOwner, product_id, selected_size, selected_color, quantity) -> dict:
    if not product_id or not selected_size or not selected_color or not quantity:
        raise ValidationError("Missing required fields: productId, selectedSize, selectedColor, quantity")
    if quantity < 1:
        raise ValidationError("Quantity must be at least 1")

    product = db["product"].find_one({"id": product_id})
    if not product:
        raise NotFound("Product not found")

    cell = find_cell(product, selected_size, selected_color)
    available = available_quantity(product, selected_size, selected_color)
    if cell is None or available < quantity:
        raise InsufficientStock("Insufficient stock", available=available, availableStock=available)

    cart = get_or_create_cart(db, owner)
    items = list(cart.get("items") or [])
    for item in items:
        if (
            item.get("productId") == product_id
            and item.get("selectedSize") == selected_size
            and item.get("selectedColor") == selected_color
        ):
            combined = int(item.get("quantity", 0)) + quantity
            if combined > available:
                raise InsufficientStock(
                    "Cannot add more items. Stock limit reached",
                    available=available,
                    availableStock=available,
                    currentCartQuantity=item.get("quantity", 0),
                )
            item["quantity"] = combined
            logger.info("Cart %s: %s %s/%s now x%d", owner.key, product_id, selected_size, selected_color, combined)
            break
    else:
        images = cell.get("images") or []
        color_images = (product.get("colorImages") or {}).get(selected_color) or []
        line = CartItem(
            product_id=product_id,
            title=product.get("title", ""),
            image=images[0] if images else (color_images[0] if color_images else ""),
            price=product.get("sellingPrice") or product.get("price") or 0,
            original_price=product.get("price"),
            discount=product.get("discount") or 0,
            selected_size=selected_size,
            selected_color=selected_color,
            quantity=quantity,
            collection=product.get("collection"),
        )
        items.append(line.model_dump(by_alias=True))
        logger.info("Cart %s: added %s %s/%s x%d", owner.key, product_id, selected_size, selected_color, quantity)

    return _save_items(db, cart, items)


def update_cart_item(db: Database, owner: CartOwner, index: int, quantity: Optional[int]) -> dict:
    if quantity is None or quantity < 1:
        raise ValidationError("Quantity must be at least 1")
    cart = _existing_cart(db, owner)
    _check_index(cart, index)
    items = list(cart["items"])
    item = items[index]

    product = db["product"].find_one({"id": item.get("productId")})
    if not product:
        raise NotFound("Product not found")
    available = available_quantity(product, item.get("selectedSize"), item.get("selectedColor"))
    if find_cell(product, item.get("selectedSize"), item.get("selectedColor")) is None or available < quantity:
        raise InsufficientStock("Insufficient stock", available=available, availableStock=available)

    item["quantity"] = quantity
    return _save_items(db, cart, items)


def remove_cart_item(db: Database, owner: CartOwner, index: int) -> dict:
    cart = _existing_cart(db, owner)
    _check_index(cart, index)
    items = list(cart["items"])
    items.pop(index)
    return _save_items(db, cart, items)


def clear_cart(db: Database, owner: CartOwner) -> dict:
    cart = _existing_cart(db, owner)
    return _save_items(db, cart, [])


def cart_count(db: Database, owner: CartOwner) -> int:
    cart = db["cart"].find_one({"userId": owner.key})
    if not cart:
        return 0
    return sum(int(i.get("quantity", 0)) for i in cart.get("items") or [])


# ----------------------- Routes -----------------------
router = APIRouter(prefix="/api/cart", tags=["cart"])


class AddToCartBody(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    product_id: Optional[str] = None
    selected_size: Optional[str] = None
    selected_color: Optional[str] = None
    quantity: Optional[int] = None


class UpdateQuantityBody(BaseModel):
    quantity: Optional[int] = None


@router.get("/{user_id}")
def get_cart_route(owner: CartOwner = Depends(cart_owner), db: Database = Depends(get_db)):
    return {"cart": with_totals(get_or_create_cart(db, owner))}


@router.get("/{user_id}/count")
def cart_count_route(owner: CartOwner = Depends(cart_owner), db: Database = Depends(get_db)):
    return {"count": cart_count(db, owner)}


@router.post("/{user_id}/add")
def add_to_cart_route(body: AddToCartBody, owner: CartOwner = Depends(cart_owner), db: Database = Depends(get_db)):
    cart = add_to_cart(db, owner, body.product_id, body.selected_size, body.selected_color, body.quantity)
    return {"message": "Item added to cart successfully", "cart": with_totals(cart)}


@router.put("/{user_id}/update/{item_index}")
def update_cart_item_route(
    item_index: int,
    body: UpdateQuantityBody,
    owner: CartOwner = Depends(cart_owner),
    db: Database = Depends(get_db),
):
    cart = update_cart_item(db, owner, item_index, body.quantity)
    return {"message": "Cart item updated successfully", "cart": with_totals(cart)}


@router.delete("/{user_id}/remove/{item_index}")
def remove_cart_item_route(item_index: int, owner: CartOwner = Depends(cart_owner), db: Database = Depends(get_db)):
    cart = remove_cart_item(db, owner, item_index)
    return {"message": "Item removed from cart successfully", "cart": with_totals(cart)}


@router.delete("/{user_id}/clear")
def clear_cart_route(owner: CartOwner = Depends(cart_owner), db: Database = Depends(get_db)):
    cart = clear_cart(db, owner)
    return {"message": "Cart cleared successfully", "cart": with_totals(cart)}
