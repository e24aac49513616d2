from datetime import datetime
from typing import Optional
from sqlalchemy import String, Boolean, DateTime
from sqlalchemy.orm import Mapped, mapped_column

from app.models.base import Base, TimestampMixin

class User(Base, TimestampMixin):
    """Local mirror of an auth-provider account. Never hard-deleted here."""
    __tablename__ = "users"

    # Auth provider subject id (Firebase uid)
    id: Mapped[str] = mapped_column(String(128), primary_key=True)
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    display_name: Mapped[str] = mapped_column(String(255), nullable=False)
    email_verified: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    photo_url: Mapped[Optional[str]] = mapped_column(String(1024))
    disabled: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    last_sign_in_time: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
