from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

import structlog
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app.models.reminder import CustomerReminder
from app.schemas.common import OwnedPath, ReminderStatus
from app.schemas.reminder import ReminderAnalytics, ReminderCounts, ReminderPatch
from app.services.nested import NestedResourceService

logger = structlog.get_logger()

# Open reminders first, then soonest due
REMINDER_ORDERING = (
    CustomerReminder.date_completed.asc().nulls_first(),
    CustomerReminder.due_date.asc(),
)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def status_filter(status: ReminderStatus, now: datetime) -> list:
    if status == ReminderStatus.ACTIVE:
        return [CustomerReminder.date_completed.is_(None)]
    if status == ReminderStatus.OVERDUE:
        return [CustomerReminder.date_completed.is_(None), CustomerReminder.due_date < now]
    if status == ReminderStatus.COMPLETED:
        return [CustomerReminder.date_completed.is_not(None)]
    return []


class ReminderService(NestedResourceService):
    """Customer-scoped reminders. Rows also carry the owner id, which every query filters on."""
    model = CustomerReminder
    resource = "Reminder"

    def scope(self, path: OwnedPath) -> list:
        return [
            CustomerReminder.customer_id == path.customer_id,
            CustomerReminder.user_id == path.subject_id,
        ]

    def ordering(self) -> list:
        return list(REMINDER_ORDERING)

    def owned_values(self, path: OwnedPath) -> Dict[str, Any]:
        return {"customer_id": path.customer_id, "user_id": path.subject_id}

    async def patch(self, path: OwnedPath, data: ReminderPatch) -> CustomerReminder:
        # exclude_unset keeps an explicit dateCompleted: null, which reopens the reminder
        fields = data.model_dump(exclude_unset=True)
        reminder = await self.update(path, fields)
        if "date_completed" in fields:
            logger.info(
                "reminder_completion_changed",
                reminder_id=str(reminder.id),
                completed=reminder.date_completed is not None,
            )
        return reminder


async def list_reminders_for_subject(
    session: AsyncSession,
    subject_id: str,
    status: ReminderStatus = ReminderStatus.ALL,
    include_customer: bool = False,
    now: Optional[datetime] = None,
) -> List[CustomerReminder]:
    now = now or _utcnow()
    stmt = (
        select(CustomerReminder)
        .where(CustomerReminder.user_id == subject_id, *status_filter(status, now))
        .order_by(*REMINDER_ORDERING)
    )
    if include_customer:
        stmt = stmt.options(selectinload(CustomerReminder.customer))

    result = await session.execute(stmt)
    return list(result.scalars().all())


async def reminder_analytics(
    session: AsyncSession, subject_id: str, now: Optional[datetime] = None
) -> ReminderAnalytics:
    now = now or _utcnow()
    open_ = CustomerReminder.date_completed.is_(None)

    stmt = select(
        func.count(CustomerReminder.id),
        func.count(CustomerReminder.id).filter(CustomerReminder.date_completed.is_not(None)),
        func.count(CustomerReminder.id).filter(open_, CustomerReminder.due_date < now),
    ).where(CustomerReminder.user_id == subject_id)

    result = await session.execute(stmt)
    total, completed, overdue = result.one()
    total, completed, overdue = int(total or 0), int(completed or 0), int(overdue or 0)

    completion_rate = round(completed / total, 2) if total else 0.0
    return ReminderAnalytics(
        counts=ReminderCounts(
            total=total,
            active=total - completed,
            overdue=overdue,
            completed=completed,
        ),
        completion_rate=completion_rate,
    )
