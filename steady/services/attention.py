"""Dashboard triage: which milestones need someone to look at them now."""

from datetime import date, datetime
from enum import Enum
from typing import Dict, Iterable, List, Optional, Union
from uuid import UUID

from sqlmodel import SQLModel, select
from sqlmodel.ext.asyncio.session import AsyncSession

from steady.models import Event, Milestone, MilestoneRead, MilestoneStatus
from steady.permissions import Permission
from steady.services.event import CLOSED_EVENT_STATUSES
from steady.services.membership import get_active_membership, require_permission
from steady.services.milestone import get_open_organization_milestones

DUE_SOON_DAYS = 3


class AttentionType(str, Enum):
    OVERDUE = "OVERDUE"
    BLOCKED = "BLOCKED"
    DUE_TODAY = "DUE_TODAY"
    DUE_SOON = "DUE_SOON"


ATTENTION_PRIORITY: Dict[AttentionType, int] = {
    AttentionType.OVERDUE: 0,
    AttentionType.BLOCKED: 1,
    AttentionType.DUE_TODAY: 2,
    AttentionType.DUE_SOON: 3,
}

IGNORED_STATUSES = {MilestoneStatus.COMPLETED, MilestoneStatus.SKIPPED}


class AttentionItem(SQLModel):
    id: str
    type: AttentionType
    milestone: MilestoneRead
    event_id: UUID
    event_name: str
    event_date: date
    days_until_due: int


def _as_date(value: Union[date, datetime]) -> date:
    if isinstance(value, datetime):
        return value.date()
    return value


def classify(status: MilestoneStatus, days_until_due: int) -> Optional[AttentionType]:
    if status == MilestoneStatus.BLOCKED:
        return AttentionType.BLOCKED
    if days_until_due < 0:
        return AttentionType.OVERDUE
    if days_until_due == 0:
        return AttentionType.DUE_TODAY
    if days_until_due <= DUE_SOON_DAYS:
        return AttentionType.DUE_SOON
    return None


def build_attention_items(
    milestones: Iterable[Milestone],
    events: Iterable[Event],
    today: Optional[date] = None,
) -> List[AttentionItem]:
    """Classify open milestones and order them most urgent first.

    Only calendar dates are compared. A blocked milestone is reported as
    BLOCKED whatever its due date. Milestones whose event is not among
    ``events`` are left out.
    """
    today = _as_date(today or date.today())
    events_by_id = {event.id: event for event in events}

    items: List[AttentionItem] = []
    for milestone in milestones:
        if milestone.status in IGNORED_STATUSES:
            continue

        days_until_due = (_as_date(milestone.due_date) - today).days
        attention_type = classify(milestone.status, days_until_due)
        if attention_type is None:
            continue

        event = events_by_id.get(milestone.event_id)
        if event is None:
            continue

        items.append(
            AttentionItem(
                id=f"attention-{milestone.id}",
                type=attention_type,
                milestone=MilestoneRead.from_row(milestone),
                event_id=event.id,
                event_name=event.name,
                event_date=event.event_date,
                days_until_due=days_until_due,
            )
        )

    # list.sort is stable, so ties keep their input order.
    items.sort(key=lambda item: ATTENTION_PRIORITY[item.type])
    return items


async def get_attention_items_for_organization(
    session: AsyncSession, user: dict, today: Optional[date] = None
) -> List[AttentionItem]:
    membership = await get_active_membership(session, user)
    require_permission(membership, Permission.MILESTONE_VIEW)

    milestones = await get_open_organization_milestones(session, membership.organization_id)
    result = await session.exec(
        select(Event).where(
            Event.organization_id == membership.organization_id,
            Event.status.not_in(CLOSED_EVENT_STATUSES),
        )
    )
    return build_attention_items(milestones, result.all(), today=today)
