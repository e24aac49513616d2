from app.models.base import Base, TimestampMixin
from app.models.user import User
from app.models.customer import Customer, CustomerPhone, CustomerAddress, CustomerNote
from app.models.reminder import CustomerReminder

__all__ = [
    "Base", "TimestampMixin",
    "User",
    "Customer", "CustomerPhone", "CustomerAddress", "CustomerNote",
    "CustomerReminder",
]
