from typing import List
from uuid import UUID

from fastapi import APIRouter, Depends
from sqlmodel.ext.asyncio.session import AsyncSession

from steady.auth.dependencies import get_current_user
from steady.db.database import get_session
from steady.services.template import (
    CreateTemplateRequest,
    TemplateDetail,
    TemplateSummary,
    TemplateVersionResponse,
    UpdateTemplateRequest,
    create_template,
    delete_template,
    get_template_detail,
    list_template_versions,
    list_templates,
    update_template,
)
from steady.services.template_version import (
    CreatedVersionResponse,
    TemplateMilestonesUpdate,
    update_template_milestones,
)

router = APIRouter(
    prefix="/templates",
    tags=["Template"],
)


@router.get("", response_model=List[TemplateSummary])
async def get_templates(
    user=Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    return await list_templates(session, user)


@router.post("", response_model=TemplateDetail, status_code=201)
async def add_template(
    request: CreateTemplateRequest,
    user=Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    return await create_template(session, user, request)


@router.get("/{templateId}", response_model=TemplateDetail)
async def get_template(
    templateId: UUID,
    user=Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    return await get_template_detail(session, user, templateId)


@router.patch("/{templateId}", response_model=TemplateDetail)
async def edit_template(
    templateId: UUID,
    request: UpdateTemplateRequest,
    user=Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    return await update_template(session, user, templateId, request)


@router.delete("/{templateId}", status_code=204)
async def archive_template(
    templateId: UUID,
    user=Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    await delete_template(session, user, templateId)


@router.get("/{templateId}/versions", response_model=List[TemplateVersionResponse])
async def get_template_versions(
    templateId: UUID,
    user=Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    return await list_template_versions(session, user, templateId)


@router.put("/{templateId}/milestones", response_model=CreatedVersionResponse, status_code=201)
async def replace_template_milestones(
    templateId: UUID,
    request: TemplateMilestonesUpdate,
    user=Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    return await update_template_milestones(session, user, templateId, request)
