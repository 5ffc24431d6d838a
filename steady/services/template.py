from datetime import datetime
from typing import Dict, List, Optional, Sequence, Tuple
from uuid import UUID

from sqlalchemy import func
from sqlmodel import SQLModel, select
from sqlmodel.ext.asyncio.session import AsyncSession

from steady.models import (
    Event,
    EventType,
    MilestoneCategory,
    MilestoneTemplate,
    MilestoneTemplateInput,
    Profile,
    TemplateVersion,
)
from steady.permissions import Permission
from steady.services.errors import (
    DUPLICATE_TEMPLATE_NAME,
    commit_or_raise,
    conflict,
    not_found,
    validation_failed,
)
from steady.services.membership import get_active_membership, get_user_id, require_permission


class TemplateSummary(SQLModel):
    id: UUID
    name: str
    description: Optional[str] = None
    icon: Optional[str] = None
    current_version: int
    milestone_count: int
    events_count: int
    last_used_at: Optional[datetime] = None


class MilestoneTemplateResponse(SQLModel):
    id: UUID
    title: str
    description: Optional[str] = None
    category: MilestoneCategory
    days_before_event: int
    estimated_hours: Optional[float] = None
    sort_order: int

    @classmethod
    def from_row(cls, row: MilestoneTemplate) -> "MilestoneTemplateResponse":
        return cls(
            id=row.id,
            title=row.title,
            description=row.description,
            category=row.category,
            days_before_event=row.days_before_event,
            estimated_hours=row.estimated_hours,
            sort_order=row.sort_order,
        )


class TemplateDetail(SQLModel):
    id: UUID
    organization_id: UUID
    name: str
    description: Optional[str] = None
    icon: Optional[str] = None
    current_version: int
    is_active: bool
    milestone_templates: List[MilestoneTemplateResponse]


class TemplateVersionResponse(SQLModel):
    id: UUID
    version: int
    changelog: Optional[str] = None
    created_by: Optional[UUID] = None
    creator_name: Optional[str] = None
    created_at: datetime


class CreateTemplateRequest(SQLModel):
    name: str
    description: Optional[str] = None
    icon: Optional[str] = None
    milestones: List[MilestoneTemplateInput]


class UpdateTemplateRequest(SQLModel):
    name: Optional[str] = None
    description: Optional[str] = None
    icon: Optional[str] = None


def validate_milestone_inputs(milestones: Sequence[MilestoneTemplateInput]) -> None:
    if not milestones:
        raise validation_failed("Add at least one milestone to save this template")
    if any(not (m.title or "").strip() for m in milestones):
        raise validation_failed("All milestones must have a title")
    if any(m.days_before_event < 0 for m in milestones):
        raise validation_failed("Days before event cannot be negative")


def build_milestone_rows(
    template_id: UUID,
    version_id: UUID,
    milestones: Sequence[MilestoneTemplateInput],
) -> List[MilestoneTemplate]:
    return [
        MilestoneTemplate(
            event_type_id=template_id,
            template_version_id=version_id,
            title=m.title.strip(),
            description=(m.description or "").strip() or None,
            category=m.category,
            days_before_event=m.days_before_event,
            estimated_hours=m.estimated_hours or None,
            sort_order=index,
        )
        for index, m in enumerate(milestones)
    ]


def _stored_form(m) -> Tuple:
    return (
        m.title.strip(),
        (m.description or "").strip() or None,
        m.category,
        m.days_before_event,
        m.estimated_hours or None,
    )


def milestones_unchanged(
    current: Sequence[MilestoneTemplate], milestones: Sequence[MilestoneTemplateInput]
) -> bool:
    """True when ``milestones`` would store exactly the rows already in ``current``."""
    return [_stored_form(row) for row in current] == [_stored_form(m) for m in milestones]


async def get_template_or_404(
    session: AsyncSession, organization_id: UUID, template_id: UUID
) -> EventType:
    template = await session.get(EventType, template_id)
    if template is None or template.organization_id != organization_id:
        raise not_found("Template")
    return template


async def get_current_version(
    session: AsyncSession, template: EventType
) -> Optional[TemplateVersion]:
    statement = select(TemplateVersion).where(
        TemplateVersion.event_type_id == template.id,
        TemplateVersion.version == template.current_version,
    )
    result = await session.exec(statement)
    return result.first()


async def get_template_milestones(
    session: AsyncSession, template: EventType
) -> List[MilestoneTemplate]:
    """Milestones of the template's current version, in stored order."""
    version = await get_current_version(session, template)
    if version is None:
        return []
    statement = (
        select(MilestoneTemplate)
        .where(MilestoneTemplate.template_version_id == version.id)
        .order_by(MilestoneTemplate.sort_order)
    )
    result = await session.exec(statement)
    return list(result.all())


async def _ensure_name_available(
    session: AsyncSession,
    organization_id: UUID,
    name: str,
    exclude_id: Optional[UUID] = None,
) -> None:
    statement = select(EventType).where(
        EventType.organization_id == organization_id,
        EventType.is_active == True,  # noqa: E712 - SQLAlchemy boolean comparison
        func.lower(EventType.name) == name.lower(),
    )
    result = await session.exec(statement)
    existing = result.first()
    if existing is not None and existing.id != exclude_id:
        raise conflict(DUPLICATE_TEMPLATE_NAME)


async def list_templates(session: AsyncSession, user: dict) -> List[TemplateSummary]:
    membership = await get_active_membership(session, user)
    require_permission(membership, Permission.TEMPLATE_VIEW)

    result = await session.exec(
        select(EventType)
        .where(
            EventType.organization_id == membership.organization_id,
            EventType.is_active == True,  # noqa: E712 - SQLAlchemy boolean comparison
        )
        .order_by(EventType.name)
    )
    templates = result.all()
    if not templates:
        return []

    template_ids = [t.id for t in templates]

    milestone_counts: Dict[UUID, int] = {}
    count_result = await session.exec(
        select(TemplateVersion.event_type_id, func.count(MilestoneTemplate.id))
        .join(MilestoneTemplate, MilestoneTemplate.template_version_id == TemplateVersion.id)
        .join(EventType, EventType.id == TemplateVersion.event_type_id)
        .where(
            TemplateVersion.event_type_id.in_(template_ids),
            TemplateVersion.version == EventType.current_version,
        )
        .group_by(TemplateVersion.event_type_id)
    )
    for template_id, count in count_result.all():
        milestone_counts[template_id] = count

    usage: Dict[UUID, tuple] = {}
    usage_result = await session.exec(
        select(Event.event_type_id, func.count(Event.id), func.max(Event.created_at))
        .where(Event.event_type_id.in_(template_ids))
        .group_by(Event.event_type_id)
    )
    for template_id, count, last_used in usage_result.all():
        usage[template_id] = (count, last_used)

    return [
        TemplateSummary(
            id=t.id,
            name=t.name,
            description=t.description,
            icon=t.icon,
            current_version=t.current_version,
            milestone_count=milestone_counts.get(t.id, 0),
            events_count=usage.get(t.id, (0, None))[0],
            last_used_at=usage.get(t.id, (0, None))[1],
        )
        for t in templates
    ]


async def _template_detail(session: AsyncSession, template: EventType) -> TemplateDetail:
    return TemplateDetail(
        id=template.id,
        organization_id=template.organization_id,
        name=template.name,
        description=template.description,
        icon=template.icon,
        current_version=template.current_version,
        is_active=template.is_active,
        milestone_templates=[
            MilestoneTemplateResponse.from_row(row)
            for row in await get_template_milestones(session, template)
        ],
    )


async def get_template_detail(
    session: AsyncSession, user: dict, template_id: UUID
) -> TemplateDetail:
    membership = await get_active_membership(session, user)
    require_permission(membership, Permission.TEMPLATE_VIEW)
    template = await get_template_or_404(session, membership.organization_id, template_id)
    return await _template_detail(session, template)


async def list_template_versions(
    session: AsyncSession, user: dict, template_id: UUID
) -> List[TemplateVersionResponse]:
    membership = await get_active_membership(session, user)
    require_permission(membership, Permission.TEMPLATE_VIEW)
    template = await get_template_or_404(session, membership.organization_id, template_id)

    statement = (
        select(TemplateVersion, Profile)
        .join(Profile, TemplateVersion.created_by == Profile.id, isouter=True)
        .where(TemplateVersion.event_type_id == template.id)
        .order_by(TemplateVersion.version.desc())
    )
    result = await session.exec(statement)
    return [
        TemplateVersionResponse(
            id=version.id,
            version=version.version,
            changelog=version.changelog,
            created_by=version.created_by,
            creator_name=(creator.name or creator.email) if creator else None,
            created_at=version.created_at,
        )
        for version, creator in result.all()
    ]


async def create_template(
    session: AsyncSession, user: dict, request: CreateTemplateRequest
) -> TemplateDetail:
    """Create a template together with its first version, all or nothing."""
    membership = await get_active_membership(session, user)
    require_permission(membership, Permission.TEMPLATE_CREATE)

    name = (request.name or "").strip()
    if not name:
        raise validation_failed("Please enter a template name")
    validate_milestone_inputs(request.milestones)

    await _ensure_name_available(session, membership.organization_id, name)

    template = EventType(
        organization_id=membership.organization_id,
        name=name,
        description=(request.description or "").strip() or None,
        icon=request.icon or "calendar",
        current_version=1,
        is_active=True,
    )
    version = TemplateVersion(
        event_type_id=template.id,
        version=1,
        changelog="Initial version",
        created_by=get_user_id(user),
    )
    session.add(template)
    session.add(version)
    session.add_all(build_milestone_rows(template.id, version.id, request.milestones))
    await commit_or_raise(session)
    await session.refresh(template)
    return await _template_detail(session, template)


async def update_template(
    session: AsyncSession, user: dict, template_id: UUID, request: UpdateTemplateRequest
) -> TemplateDetail:
    """Update template metadata; milestones only change through new versions."""
    membership = await get_active_membership(session, user)
    require_permission(membership, Permission.TEMPLATE_EDIT)
    template = await get_template_or_404(session, membership.organization_id, template_id)

    if request.name is not None:
        name = request.name.strip()
        if not name:
            raise validation_failed("Please enter a template name")
        await _ensure_name_available(
            session, membership.organization_id, name, exclude_id=template.id
        )
        template.name = name
    if request.description is not None:
        template.description = request.description.strip() or None
    if request.icon is not None:
        template.icon = request.icon

    template.updated_at = datetime.utcnow()
    session.add(template)
    await commit_or_raise(session)
    await session.refresh(template)
    return await _template_detail(session, template)


async def delete_template(session: AsyncSession, user: dict, template_id: UUID) -> None:
    membership = await get_active_membership(session, user)
    require_permission(membership, Permission.TEMPLATE_DELETE)
    template = await get_template_or_404(session, membership.organization_id, template_id)

    template.is_active = False
    template.updated_at = datetime.utcnow()
    session.add(template)
    await commit_or_raise(session)
