import base64
import json

import httpx
import pytest

from conftest import GATEWAY_SECRET
from errors import InternalError, PaymentVerificationFailed, ValidationError
from payments import RazorpayClient


def test_signature_round_trip(gateway):
    signature = gateway.sign("order_1", "pay_1")
    gateway.verify_signature("order_1", "pay_1", signature)


def test_tampered_signature_fails(gateway):
    signature = gateway.sign("order_1", "pay_1")
    with pytest.raises(PaymentVerificationFailed):
        gateway.verify_signature("order_1", "pay_2", signature)
    with pytest.raises(PaymentVerificationFailed):
        gateway.verify_signature("order_1", "pay_1", signature[:-1] + ("0" if signature[-1] != "0" else "1"))


def test_missing_verification_parameters(gateway):
    with pytest.raises(ValidationError, match="Missing payment verification parameters"):
        gateway.verify_signature("order_1", "", "sig")


def test_signing_without_secret_is_an_internal_error():
    with pytest.raises(InternalError):
        RazorpayClient("key", "").sign("order_1", "pay_1")


def test_create_order_posts_amount_in_paise():
    seen = {}

    def handler(request):
        seen["path"] = request.url.path
        seen["auth"] = request.headers["authorization"]
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json={"id": "order_XYZ", "amount": seen["body"]["amount"]})

    client = RazorpayClient("rzp_key", GATEWAY_SECRET, transport=httpx.MockTransport(handler))
    order = client.create_order(499.5, receipt="r-1")

    assert order["id"] == "order_XYZ"
    assert seen["path"].endswith("/orders")
    assert seen["body"] == {"amount": 49950, "currency": "INR", "receipt": "r-1", "payment_capture": 1}
    expected = base64.b64encode(f"rzp_key:{GATEWAY_SECRET}".encode()).decode()
    assert seen["auth"] == f"Basic {expected}"


def test_create_order_gateway_error():
    client = RazorpayClient("rzp_key", GATEWAY_SECRET, transport=httpx.MockTransport(lambda r: httpx.Response(502)))
    with pytest.raises(InternalError, match="Failed to create Razorpay order"):
        client.create_order(100)


def test_create_order_requires_amount(gateway):
    with pytest.raises(ValidationError, match="Amount is required"):
        gateway.create_order(None)


def test_create_razorpay_order_route(client):
    resp = client.post("/api/orders/create-razorpay-order", json={"amount": 499})
    assert resp.status_code == 200
    data = resp.json()
    assert data["order"]["id"] == "order_TEST123"
    assert data["key_id"] == "rzp_test_key"


def test_verify_payment_route(client, gateway):
    signature = gateway.sign("order_1", "pay_1")

    ok = client.post(
        "/api/orders/verify-payment",
        json={"razorpay_order_id": "order_1", "razorpay_payment_id": "pay_1", "razorpay_signature": signature},
    )
    bad = client.post(
        "/api/orders/verify-payment",
        json={"razorpay_order_id": "order_1", "razorpay_payment_id": "pay_1", "razorpay_signature": "deadbeef"},
    )

    assert ok.status_code == 200
    assert ok.json()["paymentId"] == "pay_1"
    assert bad.status_code == 400
    assert bad.json() == {"success": False, "message": "Payment verification failed"}
