"""
Generic access to customer-owned child rows (phones, addresses, notes, reminders).

Every operation first resolves the parent through resolve_owned_customer, then
queries the child filtered by the parent id. Subclasses only declare the model,
the resource name and any extra scoping or uniqueness rule.
"""
import uuid
from typing import Any, Dict, List, Optional, Type

import structlog
from pydantic import BaseModel
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.errors import ConflictError, ErrorCode, NotFoundError
from app.models.base import Base
from app.models.customer import CustomerAddress, CustomerNote, CustomerPhone
from app.schemas.common import OwnedPath
from app.services.customers import DUPLICATE_PHONE_MESSAGE, commit_or_conflict, resolve_owned_customer

logger = structlog.get_logger()


class NestedResourceService:
    model: Type[Base]
    resource: str = "Resource"

    def __init__(self, session: AsyncSession):
        self.session = session

    # --- Hooks ---
    def scope(self, path: OwnedPath) -> list:
        return [self.model.customer_id == path.customer_id]

    def ordering(self) -> list:
        return [self.model.created_at.asc()]

    def owned_values(self, path: OwnedPath) -> Dict[str, Any]:
        return {"customer_id": path.customer_id}

    async def check_unique(self, path: OwnedPath, values: Dict[str, Any], exclude_id: Optional[uuid.UUID] = None) -> None:
        return None

    # --- Operations ---
    async def _get_child(self, path: OwnedPath):
        stmt = select(self.model).where(self.model.id == path.child_id, *self.scope(path))
        result = await self.session.execute(stmt)
        child = result.scalar_one_or_none()
        if child is None:
            raise NotFoundError(self.resource)
        return child

    async def list(self, path: OwnedPath) -> List[Any]:
        await resolve_owned_customer(self.session, path.customer_id, path.subject_id)
        stmt = select(self.model).where(*self.scope(path)).order_by(*self.ordering())
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def get(self, path: OwnedPath):
        await resolve_owned_customer(self.session, path.customer_id, path.subject_id)
        return await self._get_child(path)

    async def create(self, path: OwnedPath, data: BaseModel):
        await resolve_owned_customer(self.session, path.customer_id, path.subject_id)

        values = data.model_dump()
        await self.check_unique(path, values)

        child = self.model(**values, **self.owned_values(path))
        self.session.add(child)
        await commit_or_conflict(self.session)

        logger.info(f"{self.resource.lower()}_created", customer_id=str(path.customer_id), child_id=str(child.id))
        return child

    async def update(self, path: OwnedPath, fields: Dict[str, Any]):
        """Applies the given fields only. Replace semantics come from passing every field."""
        await resolve_owned_customer(self.session, path.customer_id, path.subject_id)
        child = await self._get_child(path)

        await self.check_unique(path, fields, exclude_id=child.id)
        for key, value in fields.items():
            setattr(child, key, value)
        await commit_or_conflict(self.session)

        logger.info(f"{self.resource.lower()}_updated", customer_id=str(path.customer_id), child_id=str(child.id))
        return child

    async def replace(self, path: OwnedPath, data: BaseModel):
        # Omitted optional fields (and their defaults) leave the stored values alone
        return await self.update(path, data.model_dump(exclude_unset=True))

    async def delete(self, path: OwnedPath) -> None:
        await resolve_owned_customer(self.session, path.customer_id, path.subject_id)
        child = await self._get_child(path)

        await self.session.delete(child)
        await self.session.commit()
        logger.info(f"{self.resource.lower()}_deleted", customer_id=str(path.customer_id), child_id=str(path.child_id))


class PhoneService(NestedResourceService):
    model = CustomerPhone
    resource = "Phone"

    def __init__(self, session: AsyncSession, phone_unique: bool = True):
        super().__init__(session)
        self.phone_unique = phone_unique

    async def check_unique(self, path: OwnedPath, values: Dict[str, Any], exclude_id: Optional[uuid.UUID] = None) -> None:
        number = values.get("phone_number")
        if not self.phone_unique or number is None:
            return

        stmt = select(CustomerPhone.id).where(
            CustomerPhone.customer_id == path.customer_id,
            CustomerPhone.phone_number == number,
        )
        if exclude_id is not None:
            stmt = stmt.where(CustomerPhone.id != exclude_id)

        result = await self.session.execute(stmt.limit(1))
        if result.scalar_one_or_none() is not None:
            raise ConflictError(DUPLICATE_PHONE_MESSAGE, ErrorCode.DUPLICATE_RESOURCE)


class AddressService(NestedResourceService):
    model = CustomerAddress
    resource = "Address"


class NoteService(NestedResourceService):
    model = CustomerNote
    resource = "Note"
