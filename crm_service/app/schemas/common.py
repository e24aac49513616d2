import uuid
from dataclasses import dataclass
from enum import Enum
from typing import Optional

class ReminderPriority(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"

class ReminderStatus(str, Enum):
    ACTIVE = "active"
    OVERDUE = "overdue"
    COMPLETED = "completed"
    ALL = "all"

class SearchTier(str, Enum):
    SHORT = "short"
    MEDIUM = "medium"
    LONG = "long"

@dataclass(frozen=True)
class OwnedPath:
    """Validated path identifiers of a customer-scoped request, plus who is asking."""
    subject_id: str
    customer_id: uuid.UUID
    child_id: Optional[uuid.UUID] = None
