import uuid
from datetime import datetime
from typing import Annotated, Any, List, Optional

from pydantic import Field, StringConstraints, ValidationInfo, field_validator
from pydantic.alias_generators import to_camel

from app.schemas.validation import (
    EmailAddress,
    OptionalText,
    RequestModel,
    RequiredText,
    ResponseModel,
)

NoteText = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1, max_length=512)]


# --- Phones ---
class PhoneCreate(RequestModel):
    phone_number: RequiredText
    designation: RequiredText


class PhoneRead(ResponseModel):
    id: uuid.UUID
    phone_number: str
    designation: str
    created_at: datetime
    updated_at: datetime


# --- Addresses ---
class AddressCreate(RequestModel):
    address_line1: RequiredText = Field(alias="addressLine1")
    address_line2: Optional[OptionalText] = Field(default=None, alias="addressLine2")
    city: RequiredText
    state_province: Optional[OptionalText] = None
    postal_code: Optional[OptionalText] = None
    region: Optional[OptionalText] = None
    district: Optional[OptionalText] = None
    country: RequiredText
    address_type: Optional[OptionalText] = None


class AddressRead(ResponseModel):
    id: uuid.UUID
    address_line1: str = Field(alias="addressLine1")
    address_line2: Optional[str] = Field(default=None, alias="addressLine2")
    city: str
    state_province: Optional[str] = None
    postal_code: Optional[str] = None
    region: Optional[str] = None
    district: Optional[str] = None
    country: str
    address_type: Optional[str] = None
    created_at: datetime
    updated_at: datetime


# --- Notes ---
class NoteCreate(RequestModel):
    note: NoteText


class NoteRead(ResponseModel):
    id: uuid.UUID
    note: str
    created_at: datetime
    updated_at: datetime


# --- Customers ---
class CustomerCreate(RequestModel):
    first_name: RequiredText
    last_name: RequiredText
    email: EmailAddress
    phones: Optional[List[PhoneCreate]] = None
    addresses: Optional[List[AddressCreate]] = None


class CustomerReplace(RequestModel):
    """PUT body: every scalar field is replaced."""
    first_name: RequiredText
    last_name: RequiredText
    email: EmailAddress


class CustomerPatch(RequestModel):
    first_name: Optional[RequiredText] = None
    last_name: Optional[RequiredText] = None
    email: Optional[EmailAddress] = None

    @field_validator("first_name", "last_name", "email", mode="before")
    @classmethod
    def reject_null(cls, v: Any, info: ValidationInfo) -> Any:
        # Omit a field to keep it; null is not a value for a required column
        if v is None:
            raise ValueError(f"{to_camel(info.field_name)} must not be null")
        return v


class CustomerSummary(ResponseModel):
    id: uuid.UUID
    first_name: str
    last_name: str
    email: str


class CustomerRead(CustomerSummary):
    created_at: datetime
    updated_at: datetime


class CustomerDetail(CustomerRead):
    phones: List[PhoneRead] = Field(default_factory=list)
    addresses: List[AddressRead] = Field(default_factory=list)
    notes: List[NoteRead] = Field(default_factory=list)
