import uuid
from datetime import datetime
from typing import Annotated, Any, Optional

from pydantic import AwareDatetime, Field, StringConstraints, ValidationInfo, field_validator
from pydantic.alias_generators import to_camel

from app.schemas.common import ReminderPriority
from app.schemas.customer import CustomerSummary
from app.schemas.validation import RequestModel, ResponseModel

ReminderText = Annotated[str, StringConstraints(max_length=1000)]


class ReminderCreate(RequestModel):
    """Body for POST and PUT. On PUT, omitted optional fields keep their stored values."""
    description: Optional[ReminderText] = None
    due_date: AwareDatetime
    priority: ReminderPriority = ReminderPriority.MEDIUM


class ReminderPatch(RequestModel):
    description: Optional[ReminderText] = None
    due_date: Optional[AwareDatetime] = None
    priority: Optional[ReminderPriority] = None
    # explicit null reopens the reminder
    date_completed: Optional[AwareDatetime] = None

    @field_validator("due_date", "priority", mode="before")
    @classmethod
    def reject_null(cls, v: Any, info: ValidationInfo) -> Any:
        if v is None:
            raise ValueError(f"{to_camel(info.field_name)} must not be null")
        return v


class ReminderRead(ResponseModel):
    id: uuid.UUID
    customer_id: uuid.UUID
    user_id: str
    description: Optional[str] = None
    due_date: datetime
    date_completed: Optional[datetime] = None
    priority: ReminderPriority
    created_at: datetime
    updated_at: datetime


class ReminderWithCustomer(ReminderRead):
    customer: Optional[CustomerSummary] = None


# --- Analytics ---
class ReminderCounts(ResponseModel):
    total: int
    active: int
    overdue: int
    completed: int


class ReminderAnalytics(ResponseModel):
    counts: ReminderCounts
    completion_rate: float = Field(ge=0, le=1)
