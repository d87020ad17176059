"""
Phone + password accounts with OTP verification over SMS.

Signup is two steps: request an OTP (creates an unverified user), then verify
it (marks the phone verified and issues a session token). Password reset
follows the same OTP pattern.
"""
import hmac
import logging
import re
import secrets
from datetime import timedelta
from typing import Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel
from pymongo import ReturnDocument
from pymongo.database import Database
from pymongo.errors import DuplicateKeyError

import config
from database import as_utc, create_document, get_db, serialize_doc, utcnow
from errors import Conflict, NotFound, Unauthorized, ValidationError
from schemas import User
from security import PUBLIC_USER_PROJECTION, check_password, create_token, get_current_user, hash_password
from sms import SmsError, TwilioSender, get_sms_sender, otp_message

logger = logging.getLogger(__name__)

PHONE_RE = re.compile(r"^[6-9]\d{9}$")
MIN_PASSWORD = 6
INVALID_PHONE = "Please provide a valid 10-digit Indian phone number"

router = APIRouter(prefix="/api/auth", tags=["auth"])


# ----------------------- Helpers -----------------------
def normalize_phone(phone: Optional[str]) -> str:
    return re.sub(r"\D", "", phone or "")


def require_valid_phone(phone: Optional[str]) -> str:
    digits = normalize_phone(phone)
    if not PHONE_RE.match(digits):
        raise ValidationError(INVALID_PHONE)
    return digits


def generate_otp() -> str:
    return str(100000 + secrets.randbelow(900000))


def otp_matches(user: dict, otp: str) -> bool:
    stored = user.get("otp")
    if not stored or not otp:
        return False
    return hmac.compare_digest(str(stored), str(otp))


def otp_expired(user: dict) -> bool:
    expiry = user.get("otpExpiry")
    return expiry is None or utcnow() > as_utc(expiry)


def check_otp(user: dict, otp: str) -> None:
    if not otp_matches(user, otp):
        raise ValidationError("Invalid OTP")
    if otp_expired(user):
        raise ValidationError("OTP expired. Please request a new OTP.")


def send_otp(sender: TwilioSender, phone: str, otp: str, purpose: str) -> dict:
    """Deliver the OTP; SMS trouble never fails the request."""
    try:
        sender.send(phone, otp_message(otp, purpose))
        return {"success": True, "message": "OTP sent successfully to your phone"}
    except SmsError as exc:
        logger.warning("OTP SMS for %s failed: %s", purpose, exc)
        response = {"success": True, "message": f"OTP generated (SMS failed - {exc})"}
        if config.is_development():
            response["otp"] = otp
        return response


def session_payload(user: dict) -> dict:
    return {
        "id": str(user["_id"]),
        "name": user.get("name"),
        "phone": user.get("phone"),
        "isPhoneVerified": user.get("isPhoneVerified", False),
        "token": create_token(str(user["_id"])),
    }


# ----------------------- Models -----------------------
class SignupOtpBody(BaseModel):
    phone: Optional[str] = None
    name: Optional[str] = None
    password: Optional[str] = None


class PhoneOtpBody(BaseModel):
    phone: Optional[str] = None
    otp: Optional[str] = None


class LoginBody(BaseModel):
    phone: Optional[str] = None
    password: Optional[str] = None


class PhoneBody(BaseModel):
    phone: Optional[str] = None


class ResetPasswordBody(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    phone: Optional[str] = None
    otp: Optional[str] = None
    new_password: Optional[str] = None


class ProfileBody(BaseModel):
    name: Optional[str] = None
    phone: Optional[str] = None


class ChangePasswordBody(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    current_password: Optional[str] = None
    new_password: Optional[str] = None


# ----------------------- Signup -----------------------
@router.post("/send-signup-otp")
def send_signup_otp(body: SignupOtpBody, db: Database = Depends(get_db), sender: TwilioSender = Depends(get_sms_sender)):
    if not body.phone or not body.name or not body.password:
        raise ValidationError("Phone, name, and password are required")
    phone = require_valid_phone(body.phone)
    if len(body.password) < MIN_PASSWORD:
        raise ValidationError("Password must be at least 6 characters")
    name = body.name.strip()
    if len(name) < 2:
        raise ValidationError("Name must be at least 2 characters")
    if len(name) > 50:
        raise ValidationError("Name cannot exceed 50 characters")

    existing = db["user"].find_one({"phone": phone})
    if existing and existing.get("isPhoneVerified"):
        raise Conflict("Phone number already registered")

    otp = generate_otp()
    expiry = utcnow() + timedelta(minutes=config.OTP_TTL_MINUTES)
    password_hash = hash_password(body.password)

    if existing:
        # signup restarted before verification: refresh the pending user
        db["user"].update_one(
            {"_id": existing["_id"]},
            {"$set": {"name": name, "password": password_hash, "otp": otp, "otpExpiry": expiry, "updatedAt": utcnow()}},
        )
    else:
        user = User(name=name, phone=phone, password=password_hash, is_phone_verified=False, otp=otp, otp_expiry=expiry)
        try:
            create_document(db, "user", user)
        except DuplicateKeyError:
            raise Conflict("Phone number already registered")

    logger.info("Signup OTP issued for %s", phone[-4:].rjust(10, "*"))
    return send_otp(sender, phone, otp, "signup")


@router.post("/verify-signup-otp", status_code=201)
def verify_signup_otp(body: PhoneOtpBody, db: Database = Depends(get_db)):
    if not body.phone or not body.otp:
        raise ValidationError("Phone and OTP are required")
    phone = require_valid_phone(body.phone)

    user = db["user"].find_one({"phone": phone, "isPhoneVerified": False})
    if not user:
        raise NotFound("No signup request found or OTP expired. Please start signup again.")
    if not user.get("otp") or not user.get("otpExpiry"):
        raise ValidationError("No OTP requested or OTP expired")
    check_otp(user, body.otp)

    user = db["user"].find_one_and_update(
        {"_id": user["_id"]},
        {"$set": {"isPhoneVerified": True, "updatedAt": utcnow()}, "$unset": {"otp": "", "otpExpiry": ""}},
        return_document=ReturnDocument.AFTER,
    )
    logger.info("Signup verified for user %s", user["_id"])
    return {"success": True, "message": "Signup successful", "data": session_payload(user)}


# ----------------------- Login -----------------------
@router.post("/login")
def login(body: LoginBody, db: Database = Depends(get_db)):
    if not body.phone or not body.password:
        raise ValidationError("Phone and password are required")
    phone = require_valid_phone(body.phone)

    user = db["user"].find_one({"phone": phone, "isPhoneVerified": True})
    if not user:
        raise Unauthorized("Invalid phone number or password, or phone not verified")
    if not check_password(body.password, user.get("password")):
        raise Unauthorized("Invalid phone number or password")

    logger.info("Login for user %s", user["_id"])
    return {"success": True, "message": "Login successful", "data": session_payload(user)}


# ----------------------- Password reset -----------------------
@router.post("/forgot-password")
def forgot_password(body: PhoneBody, db: Database = Depends(get_db), sender: TwilioSender = Depends(get_sms_sender)):
    if not body.phone:
        raise ValidationError("Phone number is required")
    phone = require_valid_phone(body.phone)

    user = db["user"].find_one({"phone": phone})
    if not user:
        return {"success": True, "message": "If the phone number is registered, OTP will be sent"}

    otp = generate_otp()
    expiry = utcnow() + timedelta(minutes=config.OTP_TTL_MINUTES)
    db["user"].update_one({"_id": user["_id"]}, {"$set": {"otp": otp, "otpExpiry": expiry}})
    return send_otp(sender, phone, otp, "password reset")


@router.post("/verify-reset-otp")
def verify_reset_otp(body: PhoneOtpBody, db: Database = Depends(get_db)):
    if not body.phone or not body.otp:
        raise ValidationError("Phone and OTP are required")
    user = db["user"].find_one({"phone": normalize_phone(body.phone)})
    if not user:
        raise NotFound("User not found")
    check_otp(user, body.otp)
    return {"success": True, "message": "OTP verified successfully. You can now reset your password."}


@router.post("/reset-password")
def reset_password(body: ResetPasswordBody, db: Database = Depends(get_db)):
    if not body.phone or not body.otp or not body.new_password:
        raise ValidationError("Phone, OTP and new password are required")
    if len(body.new_password) < MIN_PASSWORD:
        raise ValidationError("Password must be at least 6 characters")
    user = db["user"].find_one({"phone": normalize_phone(body.phone)})
    if not user:
        raise NotFound("User not found")
    check_otp(user, body.otp)

    db["user"].update_one(
        {"_id": user["_id"]},
        {
            "$set": {"password": hash_password(body.new_password), "updatedAt": utcnow()},
            "$unset": {"otp": "", "otpExpiry": ""},
        },
    )
    logger.info("Password reset for user %s", user["_id"])
    return {"success": True, "message": "Password reset successful. You can now login with new password."}


@router.post("/check-phone")
def check_phone(body: PhoneBody, db: Database = Depends(get_db)):
    if not body.phone:
        raise ValidationError("Phone number is required")
    phone = require_valid_phone(body.phone)
    taken = db["user"].find_one({"phone": phone}) is not None
    return {"success": True, "data": {"available": not taken}}


# ----------------------- Profile -----------------------
@router.get("/profile")
def get_profile(user=Depends(get_current_user)):
    return {"success": True, "data": serialize_doc(user)}


@router.put("/profile")
def update_profile(body: ProfileBody, user=Depends(get_current_user), db: Database = Depends(get_db)):
    update = {}
    if body.name:
        update["name"] = body.name.strip()
    if body.phone:
        phone = require_valid_phone(body.phone)
        if db["user"].find_one({"phone": phone, "_id": {"$ne": user["_id"]}}):
            raise Conflict("Phone number already in use")
        update["phone"] = phone
    update["updatedAt"] = utcnow()

    try:
        updated = db["user"].find_one_and_update(
            {"_id": user["_id"]},
            {"$set": update},
            projection=PUBLIC_USER_PROJECTION,
            return_document=ReturnDocument.AFTER,
        )
    except DuplicateKeyError:
        raise Conflict("Phone number already in use")
    return {"success": True, "message": "Profile updated successfully", "data": serialize_doc(updated)}


@router.put("/change-password")
def change_password(body: ChangePasswordBody, user=Depends(get_current_user), db: Database = Depends(get_db)):
    if not body.current_password or not body.new_password:
        raise ValidationError("Current and new password are required")
    if len(body.new_password) < MIN_PASSWORD:
        raise ValidationError("New password must be at least 6 characters")

    stored = db["user"].find_one({"_id": user["_id"]}, {"password": 1})
    if not stored:
        raise NotFound("User not found")
    if not check_password(body.current_password, stored.get("password")):
        raise ValidationError("Current password is incorrect")

    db["user"].update_one(
        {"_id": user["_id"]},
        {"$set": {"password": hash_password(body.new_password), "updatedAt": utcnow()}},
    )
    return {"success": True, "message": "Password changed successfully"}
