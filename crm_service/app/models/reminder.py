import uuid
from datetime import datetime
from typing import Optional
from sqlalchemy import String, ForeignKey, DateTime, Enum as SAEnum
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy.dialects.postgresql import UUID

from app.models.base import Base, TimestampMixin
from app.schemas.common import ReminderPriority

class CustomerReminder(Base, TimestampMixin):
    __tablename__ = "customer_reminders"

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    customer_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("customers.id", ondelete="CASCADE"), nullable=False, index=True
    )
    # Denormalized owner so global reminder queries skip the customer join
    user_id: Mapped[str] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )

    description: Mapped[Optional[str]] = mapped_column(String(1000))
    due_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, index=True)
    # NULL means open
    date_completed: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), index=True)

    priority: Mapped[ReminderPriority] = mapped_column(
        SAEnum(ReminderPriority, native_enum=False, values_callable=lambda e: [m.value for m in e]),
        default=ReminderPriority.MEDIUM,
        server_default=ReminderPriority.MEDIUM.value,
        nullable=False,
    )

    customer: Mapped["Customer"] = relationship("Customer")
