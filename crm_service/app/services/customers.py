import uuid
from typing import List, Optional

import structlog
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app.core.errors import ConflictError, ErrorCode, NotFoundError, translate_integrity_error
from app.core.firebase import AuthProvider
from app.models.customer import Customer, CustomerAddress, CustomerPhone
from app.schemas.customer import CustomerCreate, CustomerPatch, CustomerReplace
from app.services.search import search_customers
from app.services.users import ensure_user_exists

logger = structlog.get_logger()

EMAIL_TAKEN_MESSAGE = "A customer with this email already exists"
DUPLICATE_PHONE_MESSAGE = "This phone number already exists for the customer"

CHILD_COLLECTIONS = (
    selectinload(Customer.phones),
    selectinload(Customer.addresses),
    selectinload(Customer.notes),
)


async def resolve_owned_customer(
    session: AsyncSession,
    customer_id: uuid.UUID,
    subject_id: str,
    with_children: bool = False,
) -> Customer:
    """
    Single lookup on (id, owner). A customer that does not exist and one owned
    by somebody else produce the same CUSTOMER_NOT_FOUND.
    """
    stmt = select(Customer).where(Customer.id == customer_id, Customer.user_id == subject_id)
    if with_children:
        stmt = stmt.options(*CHILD_COLLECTIONS)

    result = await session.execute(stmt)
    customer = result.scalar_one_or_none()
    if customer is None:
        raise NotFoundError("Customer")
    return customer


async def commit_or_conflict(session: AsyncSession) -> None:
    """Commits, turning a store uniqueness violation into a ConflictError."""
    try:
        await session.commit()
    except IntegrityError as e:
        await session.rollback()
        conflict = translate_integrity_error(e)
        if conflict:
            logger.info("write_conflict", code=conflict.code.value)
            raise conflict from e
        raise


class CustomerService:
    def __init__(self, session: AsyncSession, provider: AuthProvider, phone_unique: bool = True):
        self.session = session
        self.provider = provider
        self.phone_unique = phone_unique

    async def _email_taken(self, subject_id: str, email: str, exclude_id: Optional[uuid.UUID] = None) -> bool:
        stmt = select(Customer.id).where(Customer.user_id == subject_id, Customer.email == email)
        if exclude_id is not None:
            stmt = stmt.where(Customer.id != exclude_id)
        result = await self.session.execute(stmt.limit(1))
        return result.scalar_one_or_none() is not None

    async def list(self, subject_id: str) -> List[Customer]:
        stmt = (
            select(Customer)
            .where(Customer.user_id == subject_id)
            .options(*CHILD_COLLECTIONS)
            .order_by(Customer.last_name.asc(), Customer.first_name.asc())
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def get(self, subject_id: str, customer_id: uuid.UUID) -> Customer:
        return await resolve_owned_customer(self.session, customer_id, subject_id, with_children=True)

    async def search(self, subject_id: str, query: str) -> List[Customer]:
        return await search_customers(self.session, subject_id, query)

    async def create(self, subject_id: str, data: CustomerCreate) -> Customer:
        await ensure_user_exists(self.session, self.provider, subject_id)

        if await self._email_taken(subject_id, data.email):
            raise ConflictError(EMAIL_TAKEN_MESSAGE, ErrorCode.EMAIL_ALREADY_EXISTS)

        phones = data.phones or []
        if self.phone_unique:
            numbers = [p.phone_number for p in phones]
            if len(numbers) != len(set(numbers)):
                raise ConflictError(DUPLICATE_PHONE_MESSAGE, ErrorCode.DUPLICATE_RESOURCE)

        # Children are attached up front so the collections are loaded for the response
        customer = Customer(
            user_id=subject_id,
            first_name=data.first_name,
            last_name=data.last_name,
            email=data.email,
            phones=[CustomerPhone(**p.model_dump()) for p in phones],
            addresses=[CustomerAddress(**a.model_dump()) for a in data.addresses or []],
            notes=[],
        )
        self.session.add(customer)
        await commit_or_conflict(self.session)

        logger.info("customer_created", customer_id=str(customer.id),
                    phones=len(customer.phones), addresses=len(customer.addresses))
        return customer

    async def _apply(self, subject_id: str, customer_id: uuid.UUID, fields: dict) -> Customer:
        customer = await resolve_owned_customer(self.session, customer_id, subject_id)

        email = fields.get("email")
        if email is not None and email != customer.email:
            if await self._email_taken(subject_id, email, exclude_id=customer.id):
                raise ConflictError(EMAIL_TAKEN_MESSAGE, ErrorCode.EMAIL_ALREADY_EXISTS)

        for key, value in fields.items():
            setattr(customer, key, value)
        await commit_or_conflict(self.session)

        logger.info("customer_updated", customer_id=str(customer.id), fields=sorted(fields))
        return customer

    async def replace(self, subject_id: str, customer_id: uuid.UUID, data: CustomerReplace) -> Customer:
        return await self._apply(subject_id, customer_id, data.model_dump())

    async def patch(self, subject_id: str, customer_id: uuid.UUID, data: CustomerPatch) -> Customer:
        return await self._apply(subject_id, customer_id, data.model_dump(exclude_unset=True))

    async def delete(self, subject_id: str, customer_id: uuid.UUID) -> None:
        customer = await resolve_owned_customer(self.session, customer_id, subject_id)
        # Children go with it through ON DELETE CASCADE
        await self.session.delete(customer)
        await self.session.commit()
        logger.info("customer_deleted", customer_id=str(customer_id))
