from typing import List, Literal, Optional, Union

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import get_current_subject, reminder_guard
from app.api.routes.nested import build_nested_router
from app.core.database import get_db
from app.schemas.common import OwnedPath, ReminderStatus
from app.schemas.reminder import (
    ReminderAnalytics,
    ReminderCreate,
    ReminderPatch,
    ReminderRead,
    ReminderWithCustomer,
)
from app.services.reminders import ReminderService, list_reminders_for_subject, reminder_analytics


def get_reminder_service(db: AsyncSession = Depends(get_db)) -> ReminderService:
    return ReminderService(db)


# --- Customer Reminders ---
customer_reminders_router = build_nested_router(
    "reminders", reminder_guard, get_reminder_service, ReminderCreate, ReminderRead
)


@customer_reminders_router.patch("/{child_id}", response_model=ReminderRead, name="patch_reminders")
async def patch_reminder(
    data: ReminderPatch,
    path: OwnedPath = Depends(reminder_guard),
    service: ReminderService = Depends(get_reminder_service),
):
    return await service.patch(path, data)


# --- All Reminders Of The Subject ---
router = APIRouter(prefix="/reminders", tags=["reminders"])


@router.get("/analytics", response_model=ReminderAnalytics)
async def get_reminder_analytics(
    subject_id: str = Depends(get_current_subject),
    db: AsyncSession = Depends(get_db),
):
    return await reminder_analytics(db, subject_id)


@router.get("", response_model=None)
async def list_reminders(
    status: ReminderStatus = Query(default=ReminderStatus.ALL),
    include: Optional[Literal["customer"]] = Query(default=None),
    subject_id: str = Depends(get_current_subject),
    db: AsyncSession = Depends(get_db),
) -> List[Union[ReminderWithCustomer, ReminderRead]]:
    include_customer = include == "customer"
    reminders = await list_reminders_for_subject(db, subject_id, status, include_customer)
    # Serialize explicitly: the customer relationship is only loaded when requested
    if include_customer:
        return [ReminderWithCustomer.model_validate(r) for r in reminders]
    return [ReminderRead.model_validate(r) for r in reminders]
