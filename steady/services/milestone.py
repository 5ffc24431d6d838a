from datetime import date, datetime
from typing import List, Optional
from uuid import UUID

from sqlmodel import SQLModel, select
from sqlmodel.ext.asyncio.session import AsyncSession

from steady.models import (
    Event,
    Milestone,
    MilestoneCategory,
    MilestoneRead,
    MilestoneStatus,
    OrganizationMember,
)
from steady.permissions import Permission, has_permission
from steady.services.errors import commit_or_raise, not_found, not_permitted, validation_failed
from steady.services.event import (
    CLOSED_EVENT_STATUSES,
    get_event_milestones,
    get_event_or_404,
)
from steady.services.membership import get_active_membership, require_permission

# Fields whose change makes a template-derived milestone diverge from its template.
CONTENT_FIELDS = ("title", "description", "category", "due_date", "estimated_hours")


class CreateMilestoneRequest(SQLModel):
    event_id: UUID
    title: str
    description: Optional[str] = None
    category: MilestoneCategory = MilestoneCategory.GENERAL
    due_date: date
    estimated_hours: Optional[float] = None
    assignee_id: Optional[UUID] = None
    is_ai_generated: bool = False


class UpdateMilestoneRequest(SQLModel):
    title: Optional[str] = None
    description: Optional[str] = None
    category: Optional[MilestoneCategory] = None
    due_date: Optional[date] = None
    estimated_hours: Optional[float] = None
    status: Optional[MilestoneStatus] = None
    assignee_id: Optional[UUID] = None


def apply_status(milestone: Milestone, status: MilestoneStatus, now: Optional[datetime] = None) -> None:
    """Set ``status``, keeping ``completed_at`` in step with COMPLETED."""
    if status == MilestoneStatus.COMPLETED:
        if milestone.status != MilestoneStatus.COMPLETED or milestone.completed_at is None:
            milestone.completed_at = now or datetime.utcnow()
    else:
        milestone.completed_at = None
    milestone.status = status


async def _get_milestone_in_organization_or_404(
    session: AsyncSession, organization_id: UUID, milestone_id: UUID
) -> Milestone:
    milestone = await session.get(Milestone, milestone_id)
    if milestone is None:
        raise not_found("Milestone")
    event = await session.get(Event, milestone.event_id)
    if event is None or event.organization_id != organization_id:
        raise not_found("Milestone")
    return milestone


def _require_edit(membership: OrganizationMember, milestone: Milestone) -> None:
    if has_permission(membership.role, Permission.MILESTONE_EDIT):
        return
    if (
        has_permission(membership.role, Permission.MILESTONE_EDIT_OWN)
        and milestone.assignee_id is not None
        and milestone.assignee_id == membership.user_id
    ):
        return
    raise not_permitted()


async def list_event_milestones(
    session: AsyncSession, user: dict, event_id: UUID
) -> List[MilestoneRead]:
    membership = await get_active_membership(session, user)
    require_permission(membership, Permission.MILESTONE_VIEW)
    event = await get_event_or_404(session, membership.organization_id, event_id)
    milestones = await get_event_milestones(session, event.id)
    milestones.sort(key=lambda m: m.due_date)
    return [MilestoneRead.from_row(m) for m in milestones]


async def get_open_organization_milestones(
    session: AsyncSession, organization_id: UUID
) -> List[Milestone]:
    """Milestones of every event in the organization that is still open."""
    statement = (
        select(Milestone)
        .join(Event, Event.id == Milestone.event_id)
        .where(
            Event.organization_id == organization_id,
            Event.status.not_in(CLOSED_EVENT_STATUSES),
        )
        .order_by(Milestone.due_date)
    )
    result = await session.exec(statement)
    return list(result.all())


async def list_organization_milestones(session: AsyncSession, user: dict) -> List[MilestoneRead]:
    membership = await get_active_membership(session, user)
    require_permission(membership, Permission.MILESTONE_VIEW)
    milestones = await get_open_organization_milestones(session, membership.organization_id)
    return [MilestoneRead.from_row(m) for m in milestones]


async def create_milestone(
    session: AsyncSession, user: dict, request: CreateMilestoneRequest
) -> MilestoneRead:
    membership = await get_active_membership(session, user)
    require_permission(membership, Permission.MILESTONE_CREATE)
    event = await get_event_or_404(session, membership.organization_id, request.event_id)

    title = (request.title or "").strip()
    if not title:
        raise validation_failed("Please enter a milestone title")

    existing = await get_event_milestones(session, event.id)
    milestone = Milestone(
        event_id=event.id,
        title=title,
        description=(request.description or "").strip() or None,
        category=request.category,
        due_date=request.due_date,
        estimated_hours=request.estimated_hours,
        assignee_id=request.assignee_id,
        is_ai_generated=request.is_ai_generated,
        sort_order=max((m.sort_order for m in existing), default=-1) + 1,
    )
    session.add(milestone)
    await commit_or_raise(session)
    await session.refresh(milestone)
    return MilestoneRead.from_row(milestone)


async def update_milestone(
    session: AsyncSession, user: dict, milestone_id: UUID, request: UpdateMilestoneRequest
) -> MilestoneRead:
    membership = await get_active_membership(session, user)
    milestone = await _get_milestone_in_organization_or_404(
        session, membership.organization_id, milestone_id
    )
    _require_edit(membership, milestone)

    changes = request.model_dump(exclude_unset=True)
    if "title" in changes:
        title = (changes["title"] or "").strip()
        if not title:
            raise validation_failed("Please enter a milestone title")
        changes["title"] = title

    # Reassignment is a manager action, not an edit of one's own task.
    reassigning = "assignee_id" in changes and changes["assignee_id"] != milestone.assignee_id
    if reassigning and not has_permission(membership.role, Permission.MILESTONE_EDIT):
        raise not_permitted()

    for field in CONTENT_FIELDS:
        if field in changes and changes[field] != getattr(milestone, field):
            setattr(milestone, field, changes[field])
            if milestone.from_template_id is not None:
                milestone.was_modified = True

    if "assignee_id" in changes:
        milestone.assignee_id = changes["assignee_id"]
    if changes.get("status") is not None:
        apply_status(milestone, changes["status"])

    milestone.updated_at = datetime.utcnow()
    session.add(milestone)
    await commit_or_raise(session)
    await session.refresh(milestone)
    return MilestoneRead.from_row(milestone)


async def delete_milestone(session: AsyncSession, user: dict, milestone_id: UUID) -> None:
    membership = await get_active_membership(session, user)
    require_permission(membership, Permission.MILESTONE_DELETE)
    milestone = await _get_milestone_in_organization_or_404(
        session, membership.organization_id, milestone_id
    )
    await session.delete(milestone)
    await commit_or_raise(session)
