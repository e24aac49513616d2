from datetime import datetime
from typing import Annotated, Optional

from pydantic import AfterValidator, Field

from app.schemas.validation import EmailAddress, OptionalText, RequestModel, ResponseModel

PASSWORD_MIN_LENGTH = 6


def _check_password(value: str) -> str:
    if len(value) < PASSWORD_MIN_LENGTH:
        raise ValueError(f"Password must be at least {PASSWORD_MIN_LENGTH} characters long")
    return value


Password = Annotated[str, AfterValidator(_check_password)]


class SignupRequest(RequestModel):
    email: EmailAddress
    password: Password
    display_name: Optional[OptionalText] = None


class LoginRequest(RequestModel):
    email: EmailAddress
    password: Password


class SignupResponse(ResponseModel):
    message: str = "User created successfully"
    user_id: str
    token: str


class LoginResponse(ResponseModel):
    user_id: str
    token: str


class UserRead(ResponseModel):
    id: str
    email: str
    display_name: str
    email_verified: bool
    photo_url: Optional[str] = Field(default=None, alias="photoURL")
    disabled: bool
    last_sign_in_time: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime
