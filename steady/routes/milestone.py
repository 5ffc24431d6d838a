from typing import List
from uuid import UUID

from fastapi import APIRouter, Depends
from sqlmodel.ext.asyncio.session import AsyncSession

from steady.auth.dependencies import get_current_user
from steady.db.database import get_session
from steady.models import MilestoneRead
from steady.services.milestone import (
    CreateMilestoneRequest,
    UpdateMilestoneRequest,
    create_milestone,
    delete_milestone,
    list_organization_milestones,
    update_milestone,
)

router = APIRouter(
    prefix="/milestones",
    tags=["Milestone"],
)


@router.get("", response_model=List[MilestoneRead])
async def get_milestones(
    user=Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    return await list_organization_milestones(session, user)


@router.post("", response_model=MilestoneRead, status_code=201)
async def add_milestone(
    request: CreateMilestoneRequest,
    user=Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    return await create_milestone(session, user, request)


@router.patch("/{milestoneId}", response_model=MilestoneRead)
async def edit_milestone(
    milestoneId: UUID,
    request: UpdateMilestoneRequest,
    user=Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    return await update_milestone(session, user, milestoneId, request)


@router.delete("/{milestoneId}", status_code=204)
async def remove_milestone(
    milestoneId: UUID,
    user=Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    await delete_milestone(session, user, milestoneId)
