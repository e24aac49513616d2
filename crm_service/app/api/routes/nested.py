"""
Routers for customer-owned child collections.

Each collection gets the same five routes under /customers/{customer_id}/<name>;
the guard and the service decide everything that differs.
"""
from typing import Callable, List, Type

from fastapi import APIRouter, Depends, Response, status
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import NestedResourceGuard, address_guard, get_app_settings, note_guard, phone_guard
from app.core.config import Settings
from app.core.database import get_db
from app.schemas.common import OwnedPath
from app.schemas.customer import AddressCreate, AddressRead, NoteCreate, NoteRead, PhoneCreate, PhoneRead
from app.services.nested import AddressService, NestedResourceService, NoteService, PhoneService


def build_nested_router(
    name: str,
    guard: NestedResourceGuard,
    get_service: Callable[..., NestedResourceService],
    create_schema: Type[BaseModel],
    read_schema: Type[BaseModel],
) -> APIRouter:
    router = APIRouter(prefix=f"/customers/{{customer_id}}/{name}", tags=[name])

    @router.get("", response_model=List[read_schema], name=f"list_{name}")
    async def list_children(
        path: OwnedPath = Depends(guard),
        service: NestedResourceService = Depends(get_service),
    ):
        return await service.list(path)

    @router.post("", response_model=read_schema, status_code=status.HTTP_201_CREATED, name=f"create_{name}")
    async def create_child(
        data: create_schema,
        path: OwnedPath = Depends(guard),
        service: NestedResourceService = Depends(get_service),
    ):
        return await service.create(path, data)

    @router.get("/{child_id}", response_model=read_schema, name=f"get_{name}")
    async def get_child(
        path: OwnedPath = Depends(guard),
        service: NestedResourceService = Depends(get_service),
    ):
        return await service.get(path)

    @router.put("/{child_id}", response_model=read_schema, name=f"replace_{name}")
    async def replace_child(
        data: create_schema,
        path: OwnedPath = Depends(guard),
        service: NestedResourceService = Depends(get_service),
    ):
        return await service.replace(path, data)

    @router.delete(
        "/{child_id}", status_code=status.HTTP_204_NO_CONTENT, response_class=Response, name=f"delete_{name}"
    )
    async def delete_child(
        path: OwnedPath = Depends(guard),
        service: NestedResourceService = Depends(get_service),
    ):
        await service.delete(path)
        return Response(status_code=status.HTTP_204_NO_CONTENT)

    return router


# --- Service Factories ---
def get_phone_service(db: AsyncSession = Depends(get_db), settings: Settings = Depends(get_app_settings)) -> PhoneService:
    return PhoneService(db, phone_unique=settings.PHONE_UNIQUE_PER_CUSTOMER)


def get_address_service(db: AsyncSession = Depends(get_db)) -> AddressService:
    return AddressService(db)


def get_note_service(db: AsyncSession = Depends(get_db)) -> NoteService:
    return NoteService(db)


phones_router = build_nested_router("phones", phone_guard, get_phone_service, PhoneCreate, PhoneRead)
addresses_router = build_nested_router("addresses", address_guard, get_address_service, AddressCreate, AddressRead)
notes_router = build_nested_router("notes", note_guard, get_note_service, NoteCreate, NoteRead)
