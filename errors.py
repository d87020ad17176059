"""
Error taxonomy shared by every router.

Each error is an HTTPException carrying a human readable message plus optional
extra fields that end up next to the message in the JSON envelope.
"""
from typing import Any, Optional

from fastapi import HTTPException


class AppError(HTTPException):
    status_code = 500
    default_message = "Something went wrong"

    def __init__(self, message: Optional[str] = None, **extra: Any):
        self.message = message or self.default_message
        self.extra = extra
        super().__init__(status_code=self.status_code, detail=self.message)


class ValidationError(AppError):
    status_code = 400
    default_message = "Invalid request"


class InvalidSelection(AppError):
    status_code = 400
    default_message = "Selected option is not available"


class InsufficientStock(AppError):
    status_code = 400
    default_message = "Insufficient stock"

    def __init__(self, message: Optional[str] = None, available: int = 0, **extra: Any):
        self.available = available
        super().__init__(message, available=available, **extra)


class InvalidStatus(AppError):
    status_code = 400
    default_message = "Invalid status"


class AlreadyCancelled(AppError):
    status_code = 400
    default_message = "Order already cancelled"


class NotCancellable(AppError):
    status_code = 400
    default_message = "Cannot cancel order that has been shipped or delivered"


class PaymentVerificationFailed(AppError):
    status_code = 400
    default_message = "Payment verification failed"


class Unauthorized(AppError):
    status_code = 401
    default_message = "Not authorized"


class NotFound(AppError):
    status_code = 404
    default_message = "Not found"


class Conflict(AppError):
    status_code = 409
    default_message = "Already exists"


class InternalError(AppError):
    status_code = 500
    default_message = "Internal server error"
