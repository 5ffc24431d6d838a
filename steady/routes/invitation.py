from fastapi import APIRouter, Depends
from sqlmodel.ext.asyncio.session import AsyncSession

from steady.auth.dependencies import get_current_user
from steady.db.database import get_session
from steady.services.invitation import (
    InvitationDetails,
    accept_invitation,
    get_invitation_by_token,
)
from steady.services.membership import OrganizationMembershipResponse

router = APIRouter(
    prefix="/invitations",
    tags=["Invitations"],
)


# Readable before sign-in so the join page can show who is inviting whom.
@router.get("/{token}", response_model=InvitationDetails)
async def get_invitation(
    token: str,
    session: AsyncSession = Depends(get_session),
):
    return await get_invitation_by_token(session, token)


@router.post("/{token}/accept", response_model=OrganizationMembershipResponse)
async def accept(
    token: str,
    user=Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    return await accept_invitation(session, user, token)
