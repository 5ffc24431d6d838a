from typing import List

from fastapi import APIRouter, Depends
from sqlmodel.ext.asyncio.session import AsyncSession

from steady.auth.dependencies import get_current_user
from steady.db.database import get_session
from steady.services.attention import AttentionItem, get_attention_items_for_organization

router = APIRouter(
    prefix="/dashboard",
    tags=["Dashboard"],
)


@router.get("/attention", response_model=List[AttentionItem])
async def get_attention_items(
    user=Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    return await get_attention_items_for_organization(session, user)
