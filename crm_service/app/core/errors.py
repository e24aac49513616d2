from enum import Enum
from typing import List, Optional

from pydantic import BaseModel
from sqlalchemy.exc import IntegrityError


class ErrorCode(str, Enum):
    VALIDATION_ERROR = "VALIDATION_ERROR"
    INVALID_UUID = "INVALID_UUID"

    UNAUTHORIZED = "UNAUTHORIZED"

    NOT_FOUND = "NOT_FOUND"
    CUSTOMER_NOT_FOUND = "CUSTOMER_NOT_FOUND"
    PHONE_NOT_FOUND = "PHONE_NOT_FOUND"
    ADDRESS_NOT_FOUND = "ADDRESS_NOT_FOUND"
    NOTE_NOT_FOUND = "NOTE_NOT_FOUND"
    REMINDER_NOT_FOUND = "REMINDER_NOT_FOUND"
    USER_NOT_FOUND = "USER_NOT_FOUND"

    EMAIL_ALREADY_EXISTS = "EMAIL_ALREADY_EXISTS"
    DUPLICATE_RESOURCE = "DUPLICATE_RESOURCE"

    METHOD_NOT_ALLOWED = "METHOD_NOT_ALLOWED"
    INTERNAL_SERVER_ERROR = "INTERNAL_SERVER_ERROR"


# --- Wire Shapes ---
class ErrorDetail(BaseModel):
    field: str
    message: str


class ErrorBody(BaseModel):
    code: ErrorCode
    message: str
    details: Optional[List[ErrorDetail]] = None


class ErrorEnvelope(BaseModel):
    error: ErrorBody


# --- Exceptions ---
class AppError(Exception):
    """Base for every error that is allowed to reach the client."""

    status_code: int = 500
    code: ErrorCode = ErrorCode.INTERNAL_SERVER_ERROR
    message: str = "Internal server error"

    def __init__(self, message: Optional[str] = None, code: Optional[ErrorCode] = None):
        if message is not None:
            self.message = message
        if code is not None:
            self.code = code
        super().__init__(self.message)

    def details(self) -> Optional[List[ErrorDetail]]:
        return None

    def to_envelope(self) -> ErrorEnvelope:
        return ErrorEnvelope(
            error=ErrorBody(code=self.code, message=self.message, details=self.details())
        )


class ValidationFailedError(AppError):
    status_code = 400
    code = ErrorCode.VALIDATION_ERROR
    message = "Validation failed"

    def __init__(self, errors: List[ErrorDetail], message: Optional[str] = None):
        self.errors = errors
        super().__init__(message)

    def details(self) -> Optional[List[ErrorDetail]]:
        return self.errors


class InvalidIdentifierError(AppError):
    status_code = 400
    code = ErrorCode.INVALID_UUID
    message = "Invalid UUID format"


class UnauthenticatedError(AppError):
    status_code = 401
    code = ErrorCode.UNAUTHORIZED
    message = "Authentication required"


class NotFoundError(AppError):
    status_code = 404
    code = ErrorCode.NOT_FOUND
    message = "Resource not found"

    def __init__(self, resource: str):
        self.resource = resource
        code = ErrorCode.__members__.get(f"{resource.upper()}_NOT_FOUND", ErrorCode.NOT_FOUND)
        super().__init__(f"{resource} not found", code)


class ConflictError(AppError):
    status_code = 409
    code = ErrorCode.DUPLICATE_RESOURCE
    message = "Duplicate value detected"


class InternalError(AppError):
    status_code = 500
    code = ErrorCode.INTERNAL_SERVER_ERROR
    message = "Internal server error"


# --- Store Translation ---
UNIQUE_VIOLATION = "23505"

# constraint name -> (code, message)
UNIQUE_CONSTRAINTS = {
    "uq_customers_email_user_id": (
        ErrorCode.EMAIL_ALREADY_EXISTS, "A customer with this email already exists"
    ),
    "uq_customer_phones_customer_id_phone_number": (
        ErrorCode.DUPLICATE_RESOURCE, "This phone number already exists for the customer"
    ),
    "uq_users_email": (
        ErrorCode.EMAIL_ALREADY_EXISTS, "A user with this email already exists"
    ),
}


def is_unique_violation(exc: IntegrityError) -> bool:
    orig = exc.orig
    sqlstate = getattr(orig, "sqlstate", None) or getattr(orig, "pgcode", None)
    if sqlstate:
        return sqlstate == UNIQUE_VIOLATION
    text = str(orig).lower()
    return "duplicate key" in text or "unique constraint" in text


def translate_integrity_error(exc: IntegrityError) -> Optional[ConflictError]:
    """
    Maps a store uniqueness violation to a ConflictError.
    Returns None for any other integrity failure so the caller re-raises it.
    """
    if not is_unique_violation(exc):
        return None

    text = str(exc.orig)
    for constraint, (code, message) in UNIQUE_CONSTRAINTS.items():
        if constraint in text:
            return ConflictError(message, code)
    return ConflictError()
