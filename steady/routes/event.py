from typing import List
from uuid import UUID

from fastapi import APIRouter, Depends
from sqlmodel.ext.asyncio.session import AsyncSession

from steady.auth.dependencies import get_current_user
from steady.db.database import get_session
from steady.models import Event, MilestoneRead
from steady.services.event import (
    CreateEventRequest,
    EventDetail,
    UpdateEventRequest,
    create_event,
    delete_event,
    get_event_detail,
    list_events,
    update_event,
)
from steady.services.milestone import list_event_milestones
from steady.services.template_version import (
    CreatedVersionResponse,
    ReconcileRequest,
    TemplateDiffPreview,
    get_template_diff,
    reconcile_event_into_template,
)

router = APIRouter(
    prefix="/events",
    tags=["Event"],
)


@router.get("", response_model=List[Event])
async def get_events(
    user=Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    return await list_events(session, user)


@router.post("", response_model=EventDetail, status_code=201)
async def add_event(
    request: CreateEventRequest,
    user=Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    return await create_event(session, user, request)


@router.get("/{eventId}", response_model=EventDetail)
async def get_event(
    eventId: UUID,
    user=Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    return await get_event_detail(session, user, eventId)


@router.patch("/{eventId}", response_model=EventDetail)
async def edit_event(
    eventId: UUID,
    request: UpdateEventRequest,
    user=Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    return await update_event(session, user, eventId, request)


@router.delete("/{eventId}", status_code=204)
async def remove_event(
    eventId: UUID,
    user=Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    await delete_event(session, user, eventId)


@router.get("/{eventId}/milestones", response_model=List[MilestoneRead])
async def get_event_milestones(
    eventId: UUID,
    user=Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    return await list_event_milestones(session, user, eventId)


@router.get("/{eventId}/templateDiff", response_model=TemplateDiffPreview)
async def preview_template_update(
    eventId: UUID,
    user=Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    return await get_template_diff(session, user, eventId)


@router.post(
    "/{eventId}/templateDiff",
    response_model=CreatedVersionResponse,
    status_code=201,
)
async def save_changes_to_template(
    eventId: UUID,
    request: ReconcileRequest,
    user=Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    return await reconcile_event_into_template(
        session, user, eventId, request.selected_titles
    )
