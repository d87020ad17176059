from datetime import datetime, timezone

import httpx
import mongomock
import pytest
from fastapi.testclient import TestClient

import main
from database import ensure_indexes, get_db
from payments import RazorpayClient, get_payment_client
from sms import SmsError, get_sms_sender

GATEWAY_SECRET = "test_secret"


class FakeSender:
    configured = True

    def __init__(self):
        self.sent = []
        self.fail = False

    def send(self, phone, body):
        if self.fail:
            raise SmsError("Twilio service not configured")
        self.sent.append((phone, body))
        return "SM123"


def gateway_handler(request: httpx.Request) -> httpx.Response:
    if request.url.path.endswith("/orders"):
        return httpx.Response(200, json={"id": "order_TEST123", "amount": 49900, "currency": "INR", "status": "created"})
    return httpx.Response(404, json={"error": "not found"})


@pytest.fixture
def db():
    database = mongomock.MongoClient()["storefront_test"]
    ensure_indexes(database)
    return database


@pytest.fixture
def sms():
    return FakeSender()


@pytest.fixture
def gateway():
    return RazorpayClient("rzp_test_key", GATEWAY_SECRET, transport=httpx.MockTransport(gateway_handler))


@pytest.fixture
def client(db, sms, gateway):
    main.app.dependency_overrides[get_db] = lambda: db
    main.app.dependency_overrides[get_sms_sender] = lambda: sms
    main.app.dependency_overrides[get_payment_client] = lambda: gateway
    yield TestClient(main.app)
    main.app.dependency_overrides.clear()


@pytest.fixture
def make_product(db):
    def _make(product_id="P1", quantity=3, size="M", color="Red", **fields):
        doc = {
            "id": product_id,
            "collection": "Womens",
            "title": f"Silk Saree {product_id}",
            "description": "Handwoven silk",
            "price": 1200,
            "sellingPrice": 999,
            "discount": 17,
            "stock": "In Stock",
            "stockDetails": {size: {color: {"quantity": quantity, "images": [f"{product_id}-{color}.jpg"]}}},
            "colors": color,
            "isActive": True,
            "createdAt": datetime.now(timezone.utc),
        }
        doc.update(fields)
        db["product"].insert_one(doc)
        return doc

    return _make


@pytest.fixture
def order_payload():
    def _payload(*items, user_id="user-1", total=1998, method="online", **fields):
        body = {
            "userId": user_id,
            "userName": "Asha",
            "items": list(items) or [line()],
            "totalAmount": total,
            "paymentMethod": method,
            "shippingAddress": ADDRESS,
        }
        body.update(fields)
        return body

    return _payload


ADDRESS = {
    "street": "12 Temple St",
    "village": "Erode",
    "district": "Erode",
    "state": "Tamil Nadu",
    "pincode": "638001",
    "country": "India",
}


def line(product_id="P1", quantity=2, size="M", color="Red", title=None):
    return {
        "id": product_id,
        "title": title or f"Silk Saree {product_id}",
        "price": 999,
        "quantity": quantity,
        "selectedSize": size,
        "selectedColor": color,
    }


def cell_quantity(db, product_id="P1", size="M", color="Red"):
    return db["product"].find_one({"id": product_id})["stockDetails"][size][color]["quantity"]
