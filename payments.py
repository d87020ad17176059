"""
Razorpay adapter.

Two things are needed from the gateway: creating an order (the payment intent
the hosted checkout pays against) and checking the signature the checkout
hands back, which is HMAC-SHA256 over "<order_id>|<payment_id>" keyed with
the account secret.
"""
import hashlib
import hmac
import logging
import time
from typing import Optional

import httpx

import config
from errors import InternalError, PaymentVerificationFailed, ValidationError

logger = logging.getLogger(__name__)


class RazorpayClient:
    def __init__(
        self,
        key_id: str,
        key_secret: str,
        base_url: str = config.RAZORPAY_API_URL,
        timeout: float = 10.0,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        self.key_id = key_id
        self.key_secret = key_secret
        self.base_url = base_url
        self.timeout = timeout
        self.transport = transport

    def _require_credentials(self) -> None:
        if not self.key_id or not self.key_secret:
            raise InternalError("Payment gateway is not configured")

    def sign(self, order_id: str, payment_id: str) -> str:
        if not self.key_secret:
            raise InternalError("Payment gateway is not configured")
        message = f"{order_id}|{payment_id}".encode()
        return hmac.new(self.key_secret.encode(), message, hashlib.sha256).hexdigest()

    def verify_signature(self, order_id: str, payment_id: str, signature: str) -> None:
        if not order_id or not payment_id or not signature:
            raise ValidationError("Missing payment verification parameters")
        expected = self.sign(order_id, payment_id)
        if not hmac.compare_digest(expected.encode(), signature.encode()):
            logger.warning("Payment verification failed for gateway order %s", order_id)
            raise PaymentVerificationFailed("Payment verification failed")
        logger.info("Payment %s verified for gateway order %s", payment_id, order_id)

    def create_order(self, amount: Optional[float], currency: str = "INR", receipt: Optional[str] = None) -> dict:
        if not amount or amount <= 0:
            raise ValidationError("Amount is required")
        self._require_credentials()

        payload = {
            "amount": int(round(amount * 100)),  # paise
            "currency": currency or "INR",
            "receipt": receipt or f"receipt_{int(time.time() * 1000)}",
            "payment_capture": 1,
        }
        try:
            with httpx.Client(
                base_url=self.base_url,
                auth=(self.key_id, self.key_secret),
                timeout=self.timeout,
                transport=self.transport,
            ) as client:
                response = client.post("/orders", json=payload)
                response.raise_for_status()
                order = response.json()
        except httpx.HTTPError as exc:
            logger.error("Razorpay order creation failed: %s", exc)
            extra = {"error": str(exc)} if config.is_development() else {}
            raise InternalError("Failed to create Razorpay order", **extra)

        logger.info("Razorpay order created: %s", order.get("id"))
        return order


def get_payment_client() -> RazorpayClient:
    return RazorpayClient(config.RAZORPAY_KEY_ID, config.RAZORPAY_KEY_SECRET)
