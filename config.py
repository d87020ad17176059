"""
Runtime configuration.

Everything is read from the environment once at import time. Secrets default
to development values so the app boots locally without a .env file.
"""
import logging
import os
import sys

DATABASE_URL = os.getenv("DATABASE_URL", "mongodb://localhost:27017")
DATABASE_NAME = os.getenv("DATABASE_NAME", "storefront")

JWT_SECRET = os.getenv("JWT_SECRET", "devsecret")
JWT_ALGO = os.getenv("JWT_ALGO", "HS256")
JWT_EXPIRE_DAYS = int(os.getenv("JWT_EXPIRE_DAYS", "30"))

RAZORPAY_KEY_ID = os.getenv("RAZORPAY_KEY_ID", "")
RAZORPAY_KEY_SECRET = os.getenv("RAZORPAY_KEY_SECRET", "")
RAZORPAY_API_URL = os.getenv("RAZORPAY_API_URL", "https://api.razorpay.com/v1")

TWILIO_ACCOUNT_SID = os.getenv("TWILIO_ACCOUNT_SID", "").strip()
TWILIO_AUTH_TOKEN = os.getenv("TWILIO_AUTH_TOKEN", "").strip()
TWILIO_PHONE_NUMBER = os.getenv("TWILIO_PHONE_NUMBER", "").strip()
SMS_SENDER_NAME = os.getenv("SMS_SENDER_NAME", "Prabha Tex")

APP_ENV = os.getenv("APP_ENV", "production")
CORS_ORIGINS = [o.strip() for o in os.getenv("CORS_ORIGINS", "*").split(",") if o.strip()]
PORT = int(os.getenv("PORT", "8000"))
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

ORDER_ID_PREFIX = os.getenv("ORDER_ID_PREFIX", "CKT")
LOW_STOCK_THRESHOLD = int(os.getenv("LOW_STOCK_THRESHOLD", "5"))
OTP_TTL_MINUTES = int(os.getenv("OTP_TTL_MINUTES", "5"))


def is_development() -> bool:
    return APP_ENV.lower() == "development"


def setup_logging() -> None:
    """Configure the root logger; module loggers propagate to it."""
    root = logging.getLogger()
    root.setLevel(LOG_LEVEL.upper())
    if any(isinstance(h, logging.StreamHandler) and h.stream is sys.stdout for h in root.handlers):
        return
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(logging.Formatter("%(asctime)s - %(name)s - [%(levelname)-7s] - %(message)s"))
    root.addHandler(handler)
    logging.getLogger(__name__).info("Logging configured at %s", LOG_LEVEL.upper())
