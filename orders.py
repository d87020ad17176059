"""
Order workflow: placement (with or without an online payment), queries,
cancellation and administrative status changes.
"""
import logging
import random
import time
from typing import List, Optional

from bson import ObjectId
from fastapi import APIRouter, Depends
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel
from pymongo import DESCENDING, ReturnDocument
from pymongo.database import Database
from pymongo.errors import DuplicateKeyError, PyMongoError

import config
from cart import CartOwner
from database import create_document, get_db, serialize_doc, utcnow
from errors import AlreadyCancelled, Conflict, InvalidStatus, NotCancellable, NotFound, ValidationError
from payments import RazorpayClient, get_payment_client
from schemas import (
    Order,
    OrderItem,
    OrderStatus,
    PaymentDetails,
    PaymentMethod,
    PaymentStatus,
    ShippingAddress,
    StatusEntry,
)
from security import get_optional_user
from stock import LineRequest, Reservation, release_stock, reserve_stock

logger = logging.getLogger(__name__)

REQUIRED_ADDRESS_FIELDS = ("street", "village", "district", "state", "pincode", "country")
NON_CANCELLABLE = (OrderStatus.SHIPPED.value, OrderStatus.DELIVERED.value)


class PlaceOrderBody(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    user_id: Optional[str] = None
    user_email: Optional[str] = None
    user_name: Optional[str] = None
    items: List[OrderItem] = Field(default_factory=list)
    total_amount: Optional[float] = None
    payment_method: Optional[str] = None
    shipping_address: Optional[ShippingAddress] = None
    payment_details: Optional[PaymentDetails] = None


def generate_order_id(now_ms: Optional[int] = None) -> str:
    now_ms = int(time.time() * 1000) if now_ms is None else now_ms
    stamp = str(now_ms)[-8:]
    suffix = random.randint(10000, 99999)
    return f"{config.ORDER_ID_PREFIX}_{stamp}_{suffix}"


def _payment_method(body: PlaceOrderBody) -> str:
    if not body.payment_method:
        return PaymentMethod.ONLINE.value
    try:
        return PaymentMethod(body.payment_method).value
    except ValueError:
        raise ValidationError(f"Invalid payment method: {body.payment_method}")


def validate_placement(body: PlaceOrderBody, require_payment: bool = False) -> str:
    """Check a placement request and return the resolved payment method."""
    if not body.user_id or not body.items or body.total_amount is None or not body.shipping_address:
        raise ValidationError("Missing required fields")
    if body.total_amount <= 0:
        raise ValidationError("Total amount must be greater than zero")

    address = body.shipping_address
    if any(not getattr(address, field) for field in REQUIRED_ADDRESS_FIELDS):
        raise ValidationError("Incomplete shipping address")

    for item in body.items:
        if not item.resolved_id:
            raise ValidationError(f"Product ID missing for item: {item.title}")

    method = _payment_method(body)
    if require_payment and method == PaymentMethod.ONLINE.value:
        if not body.payment_details or not body.payment_details.razorpay_payment_id:
            raise ValidationError("Payment details are required for online payment")
    return method


def _clear_cart(db: Database, user_id: str) -> None:
    owner = CartOwner.resolve(user_id)
    try:
        db["cart"].update_one({"userId": owner.key}, {"$set": {"items": [], "updatedAt": utcnow()}})
    except PyMongoError as exc:
        logger.warning("Could not clear cart for %s after order: %s", owner.key, exc)


def place_order(
    db: Database,
    body: PlaceOrderBody,
    user: Optional[dict] = None,
    require_payment: bool = False,
) -> dict:
    method = validate_placement(body, require_payment)

    lines = [
        LineRequest(
            product_id=item.resolved_id,
            size=item.selected_size,
            color=item.selected_color,
            quantity=item.quantity,
            title=item.title,
        )
        for item in body.items
    ]
    reservations = reserve_stock(db, lines)

    now = utcnow()
    payment_details = None
    note = "Order placed by user"
    if require_payment and method == PaymentMethod.ONLINE.value:
        payment_details = PaymentDetails(
            razorpay_order_id=body.payment_details.razorpay_order_id,
            razorpay_payment_id=body.payment_details.razorpay_payment_id,
            payment_status=PaymentStatus.COMPLETED,
            paid_at=now,
        )
        note = f"Order placed with online payment ({payment_details.razorpay_payment_id})"

    user = user or {}
    order = Order(
        order_id=generate_order_id(),
        user_id=body.user_id,
        user_email=body.user_email or user.get("email") or "N/A",
        user_name=body.user_name or user.get("name") or "Customer",
        items=body.items,
        total_amount=body.total_amount,
        payment_method=method,
        payment_details=payment_details,
        shipping_address=body.shipping_address,
        status=OrderStatus.ORDER_PLACED,
        status_history=[StatusEntry(status=OrderStatus.ORDER_PLACED, timestamp=now, note=note)],
    )
    doc = order.model_dump(by_alias=True, exclude_none=True)

    try:
        create_document(db, "order", doc)
    except DuplicateKeyError:
        release_stock(db, reservations)
        raise Conflict("Order id already exists, please retry")
    except PyMongoError:
        logger.exception("Order insert failed, releasing reserved stock")
        release_stock(db, reservations)
        raise

    logger.info("Order %s placed by %s (%d items, %s)", order.order_id, body.user_id, len(body.items), method)
    _clear_cart(db, body.user_id)
    return db["order"].find_one({"orderId": order.order_id})


def _order_filter(order_id: str) -> dict:
    if ObjectId.is_valid(order_id):
        return {"$or": [{"orderId": order_id}, {"_id": ObjectId(order_id)}]}
    return {"orderId": order_id}


def list_user_orders(db: Database, user_id: str) -> List[dict]:
    return list(db["order"].find({"userId": user_id}).sort("createdAt", DESCENDING))


def get_order(db: Database, order_id: str) -> dict:
    order = db["order"].find_one(_order_filter(order_id))
    if not order:
        raise NotFound("Order not found")
    return order


def cancel_order(db: Database, order_id: str) -> dict:
    order = get_order(db, order_id)
    status = order.get("status")
    if status == OrderStatus.CANCELLED.value:
        raise AlreadyCancelled("Order already cancelled")
    if status in NON_CANCELLABLE:
        raise NotCancellable("Cannot cancel order that has been shipped or delivered")

    now = utcnow()
    entry = StatusEntry(status=OrderStatus.CANCELLED, timestamp=now, note="Order cancelled by user")
    # guarded on the status we just checked so only one cancel restores stock
    updated = db["order"].find_one_and_update(
        {"_id": order["_id"], "status": status},
        {
            "$set": {"status": OrderStatus.CANCELLED.value, "updatedAt": now},
            "$push": {"statusHistory": entry.model_dump(by_alias=True)},
        },
        return_document=ReturnDocument.AFTER,
    )
    if updated is None:
        raise Conflict("Order was updated by another request, please retry")

    restored = release_stock(db, [Reservation.from_order_item(i) for i in updated.get("items") or []])
    logger.info("Order %s cancelled, %d stock cells restored", updated.get("orderId"), restored)
    return updated


def update_order_status(db: Database, order_id: str, status: Optional[str], note: Optional[str] = None) -> dict:
    try:
        target = OrderStatus(status)
    except ValueError:
        raise InvalidStatus("Invalid status")

    now = utcnow()
    entry = StatusEntry(status=target, timestamp=now, note=note or f"Order status updated to {target.value}")
    updated = db["order"].find_one_and_update(
        _order_filter(order_id),
        {
            "$set": {"status": target.value, "updatedAt": now},
            "$push": {"statusHistory": entry.model_dump(by_alias=True)},
        },
        return_document=ReturnDocument.AFTER,
    )
    if not updated:
        raise NotFound("Order not found")
    logger.info("Order %s moved to %s", updated.get("orderId"), target.value)
    return updated


# ----------------------- Routes -----------------------
router = APIRouter(prefix="/api/orders", tags=["orders"])


class GatewayOrderBody(BaseModel):
    amount: Optional[float] = None
    currency: str = "INR"
    receipt: Optional[str] = None


class VerifyPaymentBody(BaseModel):
    razorpay_order_id: Optional[str] = None
    razorpay_payment_id: Optional[str] = None
    razorpay_signature: Optional[str] = None


class StatusBody(BaseModel):
    status: Optional[str] = None
    note: Optional[str] = None


def _placed(order: dict) -> dict:
    return {
        "success": True,
        "message": "Order placed successfully",
        "orderId": order["orderId"],
        "order": serialize_doc(order),
    }


@router.post("/place", status_code=201)
def place_order_route(body: PlaceOrderBody, user=Depends(get_optional_user), db: Database = Depends(get_db)):
    return _placed(place_order(db, body, user))


@router.post("/create-razorpay-order")
def create_gateway_order_route(body: GatewayOrderBody, client: RazorpayClient = Depends(get_payment_client)):
    order = client.create_order(body.amount, body.currency, body.receipt)
    return {"success": True, "order": order, "key_id": client.key_id}


@router.post("/verify-payment")
def verify_payment_route(body: VerifyPaymentBody, client: RazorpayClient = Depends(get_payment_client)):
    client.verify_signature(body.razorpay_order_id, body.razorpay_payment_id, body.razorpay_signature)
    return {
        "success": True,
        "message": "Payment verified successfully",
        "paymentId": body.razorpay_payment_id,
        "orderId": body.razorpay_order_id,
    }


@router.post("/place-with-payment", status_code=201)
def place_with_payment_route(body: PlaceOrderBody, user=Depends(get_optional_user), db: Database = Depends(get_db)):
    return _placed(place_order(db, body, user, require_payment=True))


@router.get("/user/{user_id}")
def user_orders_route(user_id: str, db: Database = Depends(get_db)):
    orders = list_user_orders(db, user_id)
    return {"success": True, "count": len(orders), "orders": serialize_doc(orders)}


@router.get("/{order_id}")
def get_order_route(order_id: str, db: Database = Depends(get_db)):
    return {"success": True, "order": serialize_doc(get_order(db, order_id))}


@router.patch("/{order_id}/cancel")
def cancel_order_route(order_id: str, db: Database = Depends(get_db)):
    order = cancel_order(db, order_id)
    return {"success": True, "message": "Order cancelled successfully", "order": serialize_doc(order)}


@router.patch("/{order_id}/status")
def update_status_route(order_id: str, body: StatusBody, db: Database = Depends(get_db)):
    order = update_order_status(db, order_id, body.status, body.note)
    return {"success": True, "message": "Order status updated successfully", "order": serialize_doc(order)}
