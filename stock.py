"""
Stock cell bookkeeping.

A stock cell is the counter stored at ``stockDetails.<size>.<color>.quantity``
on a product document. Orders reserve stock by decrementing cells and give it
back on cancellation.

Reservation is all-or-nothing: every line is validated against the current
catalog before anything is written, and each decrement is a conditional
``$inc`` that only matches while enough units remain. If one of those
conditional writes loses a race, the decrements already applied are released
before the error is raised.
"""
import logging
from typing import Any, Dict, Iterable, List, Optional, Tuple

from pydantic import BaseModel
from pymongo import ReturnDocument
from pymongo.database import Database

import config
from database import utcnow
from errors import InsufficientStock, InvalidSelection, NotFound
from schemas import StockLabel

logger = logging.getLogger(__name__)


class LineRequest(BaseModel):
    product_id: str
    size: str
    color: str
    quantity: int
    title: str = ""


class Reservation(BaseModel):
    product_id: str
    size: str
    color: str
    quantity: int

    @classmethod
    def from_order_item(cls, item: Dict[str, Any]) -> "Reservation":
        return cls(
            product_id=item.get("id") or item.get("productId") or "",
            size=item.get("selectedSize") or "",
            color=item.get("selectedColor") or "",
            quantity=parse_quantity(item.get("quantity")),
        )


def parse_quantity(value: Any) -> int:
    """Read a stored quantity leniently: anything unreadable counts as 0."""
    if value is None or isinstance(value, bool):
        return 0
    try:
        return int(value)
    except (TypeError, ValueError):
        pass
    try:
        return int(float(value))
    except (TypeError, ValueError):
        return 0


def quantity_path(size: str, color: str) -> str:
    return f"stockDetails.{size}.{color}.quantity"


def find_cell(product: Optional[dict], size: str, color: str) -> Optional[dict]:
    if not product:
        return None
    size_map = (product.get("stockDetails") or {}).get(size)
    if not isinstance(size_map, dict):
        return None
    cell = size_map.get(color)
    return cell if isinstance(cell, dict) else None


def available_quantity(product: Optional[dict], size: str, color: str) -> int:
    cell = find_cell(product, size, color)
    return parse_quantity(cell.get("quantity")) if cell else 0


def label_after_decrement(quantity: int, current: Optional[str]) -> str:
    if quantity <= 0:
        return StockLabel.OUT_OF_STOCK.value
    if quantity < config.LOW_STOCK_THRESHOLD:
        return StockLabel.LOW_STOCK.value
    return current or StockLabel.IN_STOCK.value


def label_for_quantity(quantity: int) -> str:
    if quantity <= 0:
        return StockLabel.OUT_OF_STOCK.value
    if quantity < config.LOW_STOCK_THRESHOLD:
        return StockLabel.LOW_STOCK.value
    return StockLabel.IN_STOCK.value


def label_for_product(product: dict) -> str:
    """Summary label over every cell of a product."""
    total = 0
    for colors in (product.get("stockDetails") or {}).values():
        if isinstance(colors, dict):
            total += sum(parse_quantity((c or {}).get("quantity")) for c in colors.values())
    return label_for_quantity(total)


def _check_keys(size: str, color: str, title: str) -> None:
    # size/color become path segments of a dotted update
    for part in (size, color):
        if not part or "." in part or part.startswith("$"):
            raise InvalidSelection(f"Selection {size}/{color} not available for {title}")


def _normalize_cell(db: Database, product: dict, size: str, color: str) -> None:
    """Rewrite a stored quantity that is not an int (string, float, bool) as an int."""
    cell = find_cell(product, size, color)
    if cell is None:
        return
    raw = cell.get("quantity")
    if isinstance(raw, int) and not isinstance(raw, bool):
        return
    path = quantity_path(size, color)
    fixed = parse_quantity(raw)
    db["product"].update_one({"_id": product["_id"], path: raw}, {"$set": {path: fixed}})
    cell["quantity"] = fixed
    logger.warning("Normalized stock cell %s/%s of %s from %r to %d", size, color, product.get("id"), raw, fixed)


def plan_reservations(db: Database, lines: Iterable[LineRequest]) -> List[Reservation]:
    """Validate every line against the catalog without writing any stock."""
    products: Dict[str, dict] = {}
    claimed: Dict[Tuple[str, str, str], int] = {}
    planned = []

    for line in lines:
        product = products.get(line.product_id)
        if product is None:
            product = db["product"].find_one({"id": line.product_id})
            if not product:
                raise NotFound(f"Product not found: {line.title or line.product_id}")
            products[line.product_id] = product

        title = product.get("title") or line.title
        _check_keys(line.size, line.color, title)
        size_map = (product.get("stockDetails") or {}).get(line.size)
        if not isinstance(size_map, dict):
            raise InvalidSelection(f"Size {line.size} not available for {title}")
        if not isinstance(size_map.get(line.color), dict):
            raise InvalidSelection(f"Color {line.color} not available for {title}")

        _normalize_cell(db, product, line.size, line.color)
        key = (line.product_id, line.size, line.color)
        available = available_quantity(product, line.size, line.color) - claimed.get(key, 0)
        if available < line.quantity:
            raise InsufficientStock(
                f"Insufficient stock for {title}. Available: {available}, Requested: {line.quantity}",
                available=available,
            )
        claimed[key] = claimed.get(key, 0) + line.quantity
        planned.append(
            Reservation(product_id=line.product_id, size=line.size, color=line.color, quantity=line.quantity)
        )

    return planned


def _decrement(db: Database, reservation: Reservation) -> None:
    path = quantity_path(reservation.size, reservation.color)
    updated = db["product"].find_one_and_update(
        {"id": reservation.product_id, path: {"$gte": reservation.quantity}},
        {"$inc": {path: -reservation.quantity}, "$set": {"updatedAt": utcnow()}},
        return_document=ReturnDocument.AFTER,
    )
    if updated is None:
        current = db["product"].find_one({"id": reservation.product_id})
        available = available_quantity(current, reservation.size, reservation.color)
        title = (current or {}).get("title") or reservation.product_id
        raise InsufficientStock(
            f"Insufficient stock for {title}. Available: {available}, Requested: {reservation.quantity}",
            available=available,
        )

    remaining = available_quantity(updated, reservation.size, reservation.color)
    label = label_after_decrement(remaining, updated.get("stock"))
    if label != updated.get("stock"):
        db["product"].update_one({"_id": updated["_id"]}, {"$set": {"stock": label}})
    logger.info(
        "Reserved %d x %s/%s of %s, %d left",
        reservation.quantity, reservation.size, reservation.color, reservation.product_id, remaining,
    )


def reserve_stock(db: Database, lines: Iterable[LineRequest]) -> List[Reservation]:
    """Decrement stock for every line, or for none of them."""
    planned = plan_reservations(db, lines)
    committed: List[Reservation] = []
    try:
        for reservation in planned:
            _decrement(db, reservation)
            committed.append(reservation)
    except Exception:
        if committed:
            logger.warning("Reservation failed after %d decrements, releasing them", len(committed))
            release_stock(db, committed)
        raise
    return committed


def release_stock(db: Database, reservations: Iterable[Reservation]) -> int:
    """
    Add reserved units back to their cells.

    Missing products or cells are skipped with a warning; returns the number
    of cells actually restored.
    """
    restored = 0
    for reservation in reservations:
        if reservation.quantity <= 0:
            continue
        product = db["product"].find_one({"id": reservation.product_id})
        if find_cell(product, reservation.size, reservation.color) is None:
            logger.warning(
                "Skipping stock restore for %s %s/%s: product or cell missing",
                reservation.product_id, reservation.size, reservation.color,
            )
            continue
        _normalize_cell(db, product, reservation.size, reservation.color)

        cell_path = f"stockDetails.{reservation.size}.{reservation.color}"
        path = quantity_path(reservation.size, reservation.color)
        updated = db["product"].find_one_and_update(
            {"_id": product["_id"], cell_path: {"$exists": True}},
            {"$inc": {path: reservation.quantity}, "$set": {"updatedAt": utcnow()}},
            return_document=ReturnDocument.AFTER,
        )
        if updated is None:
            continue
        quantity = available_quantity(updated, reservation.size, reservation.color)
        db["product"].update_one({"_id": updated["_id"]}, {"$set": {"stock": label_for_quantity(quantity)}})
        restored += 1
        logger.info(
            "Restored %d x %s/%s of %s, now %d",
            reservation.quantity, reservation.size, reservation.color, reservation.product_id, quantity,
        )
    return restored
