from typing import List, Optional

from fastapi import APIRouter, Depends, Query, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import customer_guard, get_app_settings, get_auth_provider, get_current_subject
from app.core.config import Settings
from app.core.database import get_db
from app.core.firebase import AuthProvider
from app.schemas.common import OwnedPath
from app.schemas.customer import (
    CustomerCreate,
    CustomerDetail,
    CustomerPatch,
    CustomerRead,
    CustomerReplace,
)
from app.services.customers import CustomerService

router = APIRouter(prefix="/customers", tags=["customers"])


def get_customer_service(
    db: AsyncSession = Depends(get_db),
    provider: AuthProvider = Depends(get_auth_provider),
    settings: Settings = Depends(get_app_settings),
) -> CustomerService:
    return CustomerService(db, provider, phone_unique=settings.PHONE_UNIQUE_PER_CUSTOMER)


@router.get("", response_model=List[CustomerDetail])
async def list_customers(
    subject_id: str = Depends(get_current_subject),
    service: CustomerService = Depends(get_customer_service),
):
    return await service.list(subject_id)


@router.post("", response_model=CustomerDetail, status_code=status.HTTP_201_CREATED)
async def create_customer(
    data: CustomerCreate,
    subject_id: str = Depends(get_current_subject),
    service: CustomerService = Depends(get_customer_service),
):
    return await service.create(subject_id, data)


# Registered before /{customer_id} so "search" is not taken for an id
@router.get("/search", response_model=List[CustomerRead])
async def search_customers(
    query: Optional[str] = Query(default=None),
    subject_id: str = Depends(get_current_subject),
    service: CustomerService = Depends(get_customer_service),
):
    return await service.search(subject_id, query)


@router.get("/{customer_id}", response_model=CustomerDetail)
async def get_customer(
    path: OwnedPath = Depends(customer_guard),
    service: CustomerService = Depends(get_customer_service),
):
    return await service.get(path.subject_id, path.customer_id)


@router.put("/{customer_id}", response_model=CustomerRead)
async def replace_customer(
    data: CustomerReplace,
    path: OwnedPath = Depends(customer_guard),
    service: CustomerService = Depends(get_customer_service),
):
    return await service.replace(path.subject_id, path.customer_id, data)


@router.patch("/{customer_id}", response_model=CustomerRead)
async def patch_customer(
    data: CustomerPatch,
    path: OwnedPath = Depends(customer_guard),
    service: CustomerService = Depends(get_customer_service),
):
    return await service.patch(path.subject_id, path.customer_id, data)


@router.delete("/{customer_id}", status_code=status.HTTP_204_NO_CONTENT, response_class=Response)
async def delete_customer(
    path: OwnedPath = Depends(customer_guard),
    service: CustomerService = Depends(get_customer_service),
):
    await service.delete(path.subject_id, path.customer_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
