import uuid
from typing import List, Optional
from sqlalchemy import String, ForeignKey, UniqueConstraint, Index, Computed, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy.dialects.postgresql import UUID, TSVECTOR

from app.models.base import Base, TimestampMixin

SEARCH_VECTOR_SQL = (
    "to_tsvector('english', "
    "coalesce(first_name, '') || ' ' || coalesce(last_name, '') || ' ' || coalesce(email, ''))"
)
SEARCH_TEXT_SQL = (
    "lower(coalesce(first_name, '') || ' ' || coalesce(last_name, '') || ' ' || coalesce(email, ''))"
)

PHONE_UNIQUE_INDEX = "uq_customer_phones_customer_id_phone_number"

class Customer(Base, TimestampMixin):
    __tablename__ = "customers"

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id: Mapped[str] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )

    first_name: Mapped[str] = mapped_column(String(128), nullable=False)
    last_name: Mapped[str] = mapped_column(String(128), nullable=False)
    email: Mapped[str] = mapped_column(String(255), nullable=False)

    # Maintained by the store on every write
    search_vector: Mapped[Optional[str]] = mapped_column(
        TSVECTOR, Computed(SEARCH_VECTOR_SQL, persisted=True), deferred=True
    )
    search_text: Mapped[Optional[str]] = mapped_column(
        Text, Computed(SEARCH_TEXT_SQL, persisted=True), deferred=True
    )

    phones: Mapped[List["CustomerPhone"]] = relationship(
        "CustomerPhone", back_populates="customer",
        cascade="all, delete-orphan", passive_deletes=True, order_by="CustomerPhone.created_at",
    )
    addresses: Mapped[List["CustomerAddress"]] = relationship(
        "CustomerAddress", back_populates="customer",
        cascade="all, delete-orphan", passive_deletes=True, order_by="CustomerAddress.created_at",
    )
    notes: Mapped[List["CustomerNote"]] = relationship(
        "CustomerNote", back_populates="customer",
        cascade="all, delete-orphan", passive_deletes=True, order_by="CustomerNote.created_at",
    )

    # One customer per email per owner; different owners may share an email
    __table_args__ = (
        UniqueConstraint("email", "user_id", name="uq_customers_email_user_id"),
        Index("ix_customers_search_vector", "search_vector", postgresql_using="gin"),
        Index(
            "ix_customers_search_text_trgm", "search_text",
            postgresql_using="gin", postgresql_ops={"search_text": "gin_trgm_ops"},
        ),
    )


class CustomerPhone(Base, TimestampMixin):
    __tablename__ = "customer_phones"

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    customer_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("customers.id", ondelete="CASCADE"), nullable=False, index=True
    )
    phone_number: Mapped[str] = mapped_column(String(128), nullable=False)
    designation: Mapped[str] = mapped_column(String(128), nullable=False)

    # Per-customer uniqueness is optional (PHONE_UNIQUE_PER_CUSTOMER); its index is created by init_data
    customer: Mapped["Customer"] = relationship("Customer", back_populates="phones")


class CustomerAddress(Base, TimestampMixin):
    __tablename__ = "customer_addresses"

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    customer_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("customers.id", ondelete="CASCADE"), nullable=False, index=True
    )

    address_line1: Mapped[str] = mapped_column(String(128), nullable=False)
    address_line2: Mapped[Optional[str]] = mapped_column(String(128))
    city: Mapped[str] = mapped_column(String(128), nullable=False)
    # Optional since not every country uses states or postal codes
    state_province: Mapped[Optional[str]] = mapped_column(String(128))
    postal_code: Mapped[Optional[str]] = mapped_column(String(128))
    region: Mapped[Optional[str]] = mapped_column(String(128))
    district: Mapped[Optional[str]] = mapped_column(String(128))
    country: Mapped[str] = mapped_column(String(128), nullable=False)
    address_type: Mapped[Optional[str]] = mapped_column(String(128))

    customer: Mapped["Customer"] = relationship("Customer", back_populates="addresses")


class CustomerNote(Base, TimestampMixin):
    __tablename__ = "customer_notes"

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    customer_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("customers.id", ondelete="CASCADE"), nullable=False, index=True
    )
    note: Mapped[str] = mapped_column(String(512), nullable=False)

    customer: Mapped["Customer"] = relationship("Customer", back_populates="notes")
