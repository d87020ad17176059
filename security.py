import logging
from datetime import timedelta
from typing import Optional

import bcrypt
import jwt
from bson import ObjectId
from fastapi import Depends, Header
from pymongo.database import Database

import config
from database import get_db, utcnow
from errors import Unauthorized

logger = logging.getLogger(__name__)

PUBLIC_USER_PROJECTION = {"password": 0, "otp": 0, "otpExpiry": 0}


def hash_password(password: str) -> str:
    return bcrypt.hashpw(password.encode(), bcrypt.gensalt(rounds=12)).decode()


def check_password(password: str, password_hash: Optional[str]) -> bool:
    if not password_hash:
        return False
    try:
        return bcrypt.checkpw(password.encode(), password_hash.encode())
    except ValueError:
        # not a bcrypt hash
        return False


def create_token(user_id: str) -> str:
    payload = {
        "id": str(user_id),
        "exp": utcnow() + timedelta(days=config.JWT_EXPIRE_DAYS),
    }
    return jwt.encode(payload, config.JWT_SECRET, algorithm=config.JWT_ALGO)


def decode_token(token: str) -> dict:
    try:
        return jwt.decode(token, config.JWT_SECRET, algorithms=[config.JWT_ALGO])
    except jwt.ExpiredSignatureError:
        raise Unauthorized("Token expired, please login again")
    except jwt.InvalidTokenError:
        raise Unauthorized("Invalid token")


def _bearer(authorization: Optional[str]) -> Optional[str]:
    if not authorization:
        return None
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()


def _load_user(db: Database, payload: dict) -> Optional[dict]:
    user_id = payload.get("id")
    if not user_id or not ObjectId.is_valid(user_id):
        return None
    return db["user"].find_one({"_id": ObjectId(user_id)}, PUBLIC_USER_PROJECTION)


def get_current_user(authorization: Optional[str] = Header(None), db: Database = Depends(get_db)) -> dict:
    token = _bearer(authorization)
    if not token:
        raise Unauthorized("Not authorized, no token provided")
    user = _load_user(db, decode_token(token))
    if not user:
        raise Unauthorized("User not found or token invalid")
    return user


def get_optional_user(authorization: Optional[str] = Header(None), db: Database = Depends(get_db)) -> Optional[dict]:
    token = _bearer(authorization)
    if not token:
        return None
    try:
        return _load_user(db, decode_token(token))
    except Unauthorized:
        logger.info("Ignoring invalid bearer token on a public route")
        return None
