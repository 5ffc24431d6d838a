from fastapi import APIRouter, Depends
from sqlmodel.ext.asyncio.session import AsyncSession

from steady.auth.dependencies import get_current_user
from steady.db.database import get_session
from steady.services.ai import (
    GeneratedTemplate,
    GenerateMilestonesRequest,
    generate_template_milestones,
)

router = APIRouter(
    prefix="/ai",
    tags=["AI"],
)


@router.post("/milestones", response_model=GeneratedTemplate)
async def suggest_milestones(
    request: GenerateMilestonesRequest,
    user=Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    return await generate_template_milestones(session, user, request.description)
