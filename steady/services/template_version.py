"""Immutable template versions and reconciliation of event edits into them."""

import logging
from datetime import datetime
from typing import List, Optional, Sequence, Tuple
from uuid import UUID

from sqlalchemy import update
from sqlmodel import SQLModel
from sqlmodel.ext.asyncio.session import AsyncSession

from steady.models import (
    Event,
    EventType,
    MilestoneCategory,
    MilestoneTemplate,
    MilestoneTemplateInput,
    OrganizationMember,
    TemplateVersion,
)
from steady.permissions import Permission
from steady.services.errors import (
    CONCURRENT_TEMPLATE_UPDATE,
    NO_CHANGES_SELECTED,
    NO_MILESTONE_CHANGES,
    NO_TEMPLATE_FOR_EVENT,
    commit_or_raise,
    conflict,
    execute_or_raise,
    not_found,
    validation_failed,
)
from steady.services.event import get_event_milestones, get_event_or_404
from steady.services.membership import get_active_membership, get_user_id, require_permission
from steady.services.template import (
    build_milestone_rows,
    get_template_milestones,
    get_template_or_404,
    milestones_unchanged,
    validate_milestone_inputs,
)
from steady.services.template_diff import (
    DiffType,
    MilestoneDiff,
    apply_diffs,
    build_changelog,
    default_selection,
    diff_milestones,
    select_diffs,
)

logger = logging.getLogger(__name__)


class TemplateMilestonesUpdate(SQLModel):
    milestones: List[MilestoneTemplateInput]
    changelog: Optional[str] = None


class DiffEntry(SQLModel):
    type: DiffType
    title: str
    description: Optional[str] = None
    category: Optional[MilestoneCategory] = None
    selected: bool


class TemplateDiffPreview(SQLModel):
    event_id: UUID
    template_id: UUID
    template_name: str
    current_version: int
    next_version: int
    diffs: List[DiffEntry]


class ReconcileRequest(SQLModel):
    selected_titles: List[str]


class CreatedVersionResponse(SQLModel):
    id: UUID
    template_id: UUID
    version: int
    changelog: Optional[str] = None
    milestone_count: int


async def create_template_version(
    session: AsyncSession,
    template: EventType,
    milestones: Sequence[MilestoneTemplateInput],
    changelog: Optional[str],
    created_by: Optional[UUID],
) -> Tuple[TemplateVersion, List[MilestoneTemplate]]:
    """Write version ``current_version + 1`` and move the template onto it.

    The version row, its milestone rows and the version bump are committed
    together. The bump only applies while the template is still at the
    version we read, so a concurrent writer makes this call fail with a
    conflict instead of interleaving milestone lists.
    """
    validate_milestone_inputs(milestones)

    seen_version = template.current_version
    version = TemplateVersion(
        event_type_id=template.id,
        version=seen_version + 1,
        changelog=changelog or None,
        created_by=created_by,
    )
    result = await execute_or_raise(
        session,
        update(EventType)
        .where(EventType.id == template.id, EventType.current_version == seen_version)
        .values(current_version=version.version, updated_at=datetime.utcnow())
        .execution_options(synchronize_session=False),
    )
    if result.rowcount != 1:
        await session.rollback()
        logger.warning(
            "Template %s moved past version %s before it could be updated",
            template.id,
            seen_version,
        )
        raise conflict(CONCURRENT_TEMPLATE_UPDATE)

    rows = build_milestone_rows(template.id, version.id, milestones)
    session.add(version)
    session.add_all(rows)
    await commit_or_raise(session, duplicate_message=CONCURRENT_TEMPLATE_UPDATE)
    await session.refresh(template)
    await session.refresh(version)
    logger.info("Template %s is now at version %s", template.id, version.version)
    return version, rows


def _created_response(
    template: EventType, version: TemplateVersion, rows: Sequence[MilestoneTemplate]
) -> CreatedVersionResponse:
    return CreatedVersionResponse(
        id=version.id,
        template_id=template.id,
        version=version.version,
        changelog=version.changelog,
        milestone_count=len(rows),
    )


async def update_template_milestones(
    session: AsyncSession, user: dict, template_id: UUID, request: TemplateMilestonesUpdate
) -> CreatedVersionResponse:
    membership = await get_active_membership(session, user)
    require_permission(membership, Permission.TEMPLATE_EDIT)
    template = await get_template_or_404(session, membership.organization_id, template_id)

    validate_milestone_inputs(request.milestones)
    current = await get_template_milestones(session, template)
    if milestones_unchanged(current, request.milestones):
        raise validation_failed(NO_MILESTONE_CHANGES)

    version, rows = await create_template_version(
        session,
        template,
        request.milestones,
        request.changelog or "Updated milestones via template editor",
        get_user_id(user),
    )
    return _created_response(template, version, rows)


async def _load_reconciliation(
    session: AsyncSession, membership: OrganizationMember, event_id: UUID
) -> Tuple[Event, EventType, List[MilestoneTemplate], List[MilestoneDiff]]:
    event = await get_event_or_404(session, membership.organization_id, event_id)
    if event.event_type_id is None:
        raise validation_failed(NO_TEMPLATE_FOR_EVENT)

    template = await get_template_or_404(session, membership.organization_id, event.event_type_id)
    if not template.is_active:
        raise not_found("Template")

    template_milestones = await get_template_milestones(session, template)
    event_milestones = await get_event_milestones(session, event.id)
    diffs = diff_milestones(event_milestones, template_milestones)
    return event, template, template_milestones, diffs


async def get_template_diff(
    session: AsyncSession, user: dict, event_id: UUID
) -> TemplateDiffPreview:
    membership = await get_active_membership(session, user)
    require_permission(membership, Permission.TEMPLATE_VIEW)

    event, template, _, diffs = await _load_reconciliation(session, membership, event_id)
    preselected = default_selection(diffs)
    return TemplateDiffPreview(
        event_id=event.id,
        template_id=template.id,
        template_name=template.name,
        current_version=template.current_version,
        next_version=template.current_version + 1,
        diffs=[
            DiffEntry(
                type=diff.type,
                title=diff.title,
                description=diff.source.description,
                category=diff.source.category,
                selected=diff.title in preselected,
            )
            for diff in diffs
        ],
    )


async def reconcile_event_into_template(
    session: AsyncSession, user: dict, event_id: UUID, selected_titles: Sequence[str]
) -> CreatedVersionResponse:
    """Save the chosen additions and removals of an event back to its template."""
    membership = await get_active_membership(session, user)
    require_permission(membership, Permission.TEMPLATE_EDIT)

    event, template, template_milestones, diffs = await _load_reconciliation(
        session, membership, event_id
    )
    selected = select_diffs(diffs, selected_titles)
    if not diffs or not selected:
        raise validation_failed(NO_CHANGES_SELECTED)

    milestones = apply_diffs(template_milestones, selected, event.event_date)
    version, rows = await create_template_version(
        session,
        template,
        milestones,
        build_changelog(selected),
        get_user_id(user),
    )
    return _created_response(template, version, rows)
