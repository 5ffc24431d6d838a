from datetime import date, datetime, timedelta
from typing import Dict, List, Optional, Set
from uuid import UUID

from sqlmodel import SQLModel, select
from sqlmodel.ext.asyncio.session import AsyncSession

from steady.models import (
    Event,
    EventStatus,
    Milestone,
    MilestoneCategory,
    MilestoneRead,
    MilestoneStatus,
)
from steady.permissions import Permission
from steady.services.errors import commit_or_raise, not_found, validation_failed
from steady.services.membership import get_active_membership, get_user_id, require_permission
from steady.services.template import (
    get_current_version,
    get_template_milestones,
    get_template_or_404,
)

# ARCHIVED is terminal.
EVENT_STATUS_TRANSITIONS: Dict[EventStatus, Set[EventStatus]] = {
    EventStatus.PLANNING: {EventStatus.ACTIVE, EventStatus.CANCELLED},
    EventStatus.ACTIVE: {EventStatus.COMPLETED, EventStatus.CANCELLED},
    EventStatus.COMPLETED: {EventStatus.ARCHIVED},
    EventStatus.CANCELLED: {EventStatus.ARCHIVED},
    EventStatus.ARCHIVED: set(),
}

CLOSED_EVENT_STATUSES = (EventStatus.COMPLETED, EventStatus.CANCELLED, EventStatus.ARCHIVED)


class EventMilestoneInput(SQLModel):
    title: str
    description: Optional[str] = None
    category: MilestoneCategory = MilestoneCategory.GENERAL
    due_date: date
    estimated_hours: Optional[float] = None
    is_ai_generated: bool = False


class CreateEventRequest(SQLModel):
    name: str
    description: Optional[str] = None
    event_type_id: Optional[UUID] = None
    event_date: date
    venue: Optional[str] = None
    milestones: Optional[List[EventMilestoneInput]] = None


class UpdateEventRequest(SQLModel):
    name: Optional[str] = None
    description: Optional[str] = None
    event_date: Optional[date] = None
    venue: Optional[str] = None
    status: Optional[EventStatus] = None


class EventDetail(SQLModel):
    id: UUID
    organization_id: UUID
    event_type_id: Optional[UUID] = None
    template_version_id: Optional[UUID] = None
    name: str
    description: Optional[str] = None
    event_date: date
    venue: Optional[str] = None
    status: EventStatus
    owner_id: Optional[UUID] = None
    progress: int
    milestones: List[MilestoneRead]


def calculate_due_date(event_date: date, days_before_event: int) -> date:
    return event_date - timedelta(days=days_before_event)


def calculate_progress(milestones: List[Milestone]) -> int:
    """Percentage of milestones completed, skipped ones excluded."""
    counted = [m for m in milestones if m.status != MilestoneStatus.SKIPPED]
    if not counted:
        return 0
    completed = sum(1 for m in counted if m.status == MilestoneStatus.COMPLETED)
    return round(completed * 100 / len(counted))


def can_transition(current: EventStatus, target: EventStatus) -> bool:
    return current == target or target in EVENT_STATUS_TRANSITIONS[current]


async def get_event_or_404(session: AsyncSession, organization_id: UUID, event_id: UUID) -> Event:
    event = await session.get(Event, event_id)
    if event is None or event.organization_id != organization_id:
        raise not_found("Event")
    return event


async def get_event_milestones(session: AsyncSession, event_id: UUID) -> List[Milestone]:
    statement = (
        select(Milestone)
        .where(Milestone.event_id == event_id)
        .order_by(Milestone.sort_order, Milestone.due_date)
    )
    result = await session.exec(statement)
    return list(result.all())


async def _event_detail(session: AsyncSession, event: Event) -> EventDetail:
    milestones = await get_event_milestones(session, event.id)
    return EventDetail(
        id=event.id,
        organization_id=event.organization_id,
        event_type_id=event.event_type_id,
        template_version_id=event.template_version_id,
        name=event.name,
        description=event.description,
        event_date=event.event_date,
        venue=event.venue,
        status=event.status,
        owner_id=event.owner_id,
        progress=calculate_progress(milestones),
        milestones=[MilestoneRead.from_row(m) for m in milestones],
    )


async def list_events(session: AsyncSession, user: dict) -> List[Event]:
    membership = await get_active_membership(session, user)
    require_permission(membership, Permission.EVENT_VIEW)

    statement = (
        select(Event)
        .where(Event.organization_id == membership.organization_id)
        .order_by(Event.event_date)
    )
    result = await session.exec(statement)
    return list(result.all())


async def get_event_detail(session: AsyncSession, user: dict, event_id: UUID) -> EventDetail:
    membership = await get_active_membership(session, user)
    require_permission(membership, Permission.EVENT_VIEW)
    event = await get_event_or_404(session, membership.organization_id, event_id)
    return await _event_detail(session, event)


async def create_event(session: AsyncSession, user: dict, request: CreateEventRequest) -> EventDetail:
    """Create an event, copying milestones from its template when one is given.

    Explicit milestones in the request take precedence over the template's.
    Template-derived milestones are due ``days_before_event`` days before the
    event and remember which template row they came from.
    """
    membership = await get_active_membership(session, user)
    require_permission(membership, Permission.EVENT_CREATE)

    name = (request.name or "").strip()
    if not name:
        raise validation_failed("Please enter an event name")

    event = Event(
        organization_id=membership.organization_id,
        name=name,
        description=(request.description or "").strip() or None,
        event_date=request.event_date,
        venue=request.venue,
        status=EventStatus.PLANNING,
        owner_id=get_user_id(user),
    )

    milestones: List[Milestone] = []
    if request.event_type_id is not None:
        template = await get_template_or_404(
            session, membership.organization_id, request.event_type_id
        )
        if not template.is_active:
            raise not_found("Template")
        version = await get_current_version(session, template)
        event.event_type_id = template.id
        event.template_version_id = version.id if version else None

        if request.milestones is None:
            for index, row in enumerate(await get_template_milestones(session, template)):
                milestones.append(
                    Milestone(
                        event_id=event.id,
                        title=row.title,
                        description=row.description,
                        category=row.category,
                        due_date=calculate_due_date(request.event_date, row.days_before_event),
                        estimated_hours=row.estimated_hours,
                        from_template_id=row.id,
                        sort_order=index,
                    )
                )

    for index, item in enumerate(request.milestones or []):
        title = (item.title or "").strip()
        if not title:
            raise validation_failed("All milestones must have a title")
        milestones.append(
            Milestone(
                event_id=event.id,
                title=title,
                description=(item.description or "").strip() or None,
                category=item.category,
                due_date=item.due_date,
                estimated_hours=item.estimated_hours,
                is_ai_generated=item.is_ai_generated,
                sort_order=index,
            )
        )

    session.add(event)
    session.add_all(milestones)
    await commit_or_raise(session)
    await session.refresh(event)
    return await _event_detail(session, event)


async def update_event(
    session: AsyncSession, user: dict, event_id: UUID, request: UpdateEventRequest
) -> EventDetail:
    membership = await get_active_membership(session, user)
    require_permission(membership, Permission.EVENT_EDIT)
    event = await get_event_or_404(session, membership.organization_id, event_id)

    if event.status == EventStatus.ARCHIVED:
        raise validation_failed("Archived events cannot be changed")

    if request.status is not None and not can_transition(event.status, request.status):
        raise validation_failed(
            f"Cannot move an event from {event.status.value} to {request.status.value}"
        )

    if request.name is not None:
        name = request.name.strip()
        if not name:
            raise validation_failed("Please enter an event name")
        event.name = name
    if request.description is not None:
        event.description = request.description.strip() or None
    if request.event_date is not None:
        event.event_date = request.event_date
    if request.venue is not None:
        event.venue = request.venue or None
    if request.status is not None:
        event.status = request.status

    event.updated_at = datetime.utcnow()
    session.add(event)
    await commit_or_raise(session)
    await session.refresh(event)
    return await _event_detail(session, event)


async def delete_event(session: AsyncSession, user: dict, event_id: UUID) -> None:
    membership = await get_active_membership(session, user)
    require_permission(membership, Permission.EVENT_DELETE)
    event = await get_event_or_404(session, membership.organization_id, event_id)

    for milestone in await get_event_milestones(session, event.id):
        await session.delete(milestone)
    await session.delete(event)
    await commit_or_raise(session)
