from typing import List
from uuid import UUID

from fastapi import APIRouter, Depends
from sqlmodel import SQLModel
from sqlmodel.ext.asyncio.session import AsyncSession

from steady.auth.dependencies import get_current_user
from steady.db.database import get_session
from steady.models import OrgRole
from steady.permissions import ROLE_CONFIG, assignable_roles
from steady.services.invitation import (
    CreateInvitationRequest,
    InvitationResponse,
    cancel_invitation,
    create_invitation,
    list_pending_invitations,
    resend_invitation,
)
from steady.services.membership import (
    MemberRoleChange,
    OrganizationMemberResponse,
    change_member_role,
    get_active_membership,
    list_members,
    remove_member,
)

router = APIRouter(
    prefix="/team",
    tags=["Team"],
)


class RoleOption(SQLModel):
    role: OrgRole
    label: str
    description: str


@router.get("/members", response_model=List[OrganizationMemberResponse])
async def get_members(
    user=Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    return await list_members(session, user)


@router.get("/roles", response_model=List[RoleOption])
async def get_assignable_roles(
    user=Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    membership = await get_active_membership(session, user)
    return [
        RoleOption(
            role=role,
            label=ROLE_CONFIG[role]["label"],
            description=ROLE_CONFIG[role]["description"],
        )
        for role in assignable_roles(membership.role)
    ]


@router.patch("/members/{memberId}/role", response_model=OrganizationMemberResponse)
async def update_member_role(
    memberId: UUID,
    request: MemberRoleChange,
    user=Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    return await change_member_role(session, user, memberId, request.role)


@router.delete("/members/{memberId}", status_code=204)
async def delete_member(
    memberId: UUID,
    user=Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    await remove_member(session, user, memberId)


@router.get("/invitations", response_model=List[InvitationResponse])
async def get_pending_invitations(
    user=Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    return await list_pending_invitations(session, user)


@router.post("/invitations", response_model=InvitationResponse, status_code=201)
async def invite_member(
    request: CreateInvitationRequest,
    user=Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    return await create_invitation(session, user, request)


@router.post(
    "/invitations/{invitationId}/resend",
    response_model=InvitationResponse,
    status_code=201,
)
async def resend_pending_invitation(
    invitationId: UUID,
    user=Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    return await resend_invitation(session, user, invitationId)


@router.delete("/invitations/{invitationId}", status_code=204)
async def cancel_pending_invitation(
    invitationId: UUID,
    user=Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    await cancel_invitation(session, user, invitationId)
