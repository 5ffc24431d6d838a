"""Invitations to join an organization, from creation to redemption by token.

Sending the invitation email is left to the caller; the token returned on
creation is what the invitee presents to accept.
"""

import logging
import re
from datetime import datetime
from typing import List, Optional
from uuid import UUID

from fastapi import HTTPException
from sqlalchemy import func, update
from sqlmodel import SQLModel, select
from sqlmodel.ext.asyncio.session import AsyncSession

from steady.models import (
    Event,
    Invitation,
    InvitationStatus,
    Organization,
    OrganizationMember,
    OrgRole,
    Profile,
)
from steady.permissions import Permission
from steady.services.errors import (
    commit_or_raise,
    conflict,
    execute_or_raise,
    not_found,
    validation_failed,
)
from steady.services.event import get_event_or_404
from steady.services.membership import (
    OrganizationMembershipResponse,
    get_active_membership,
    get_user_id,
    membership_response,
    require_assignable_role,
    require_permission,
)

logger = logging.getLogger(__name__)

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")

ALREADY_A_MEMBER = "User is already a member of this organization."
ALREADY_INVITED = "An invitation is already pending for this email address."
INVALID_INVITATION = "Invalid or expired invitation"


class CreateInvitationRequest(SQLModel):
    email: str
    role: OrgRole = OrgRole.VOLUNTEER
    event_id: Optional[UUID] = None
    message: Optional[str] = None


class InvitationResponse(SQLModel):
    id: UUID
    email: str
    role: OrgRole
    status: InvitationStatus
    event_id: Optional[UUID] = None
    message: Optional[str] = None
    invited_by: UUID
    expires_at: datetime
    created_at: datetime
    token: Optional[str] = None


class InvitationDetails(SQLModel):
    id: UUID
    organization_id: UUID
    organization_name: str
    event_id: Optional[UUID] = None
    event_name: Optional[str] = None
    email: str
    role: OrgRole
    inviter_name: Optional[str] = None
    inviter_email: str
    message: Optional[str] = None
    expires_at: datetime


def _invitation_response(
    invitation: Invitation, include_token: bool = False
) -> InvitationResponse:
    return InvitationResponse(
        id=invitation.id,
        email=invitation.email,
        role=invitation.role,
        status=invitation.status,
        event_id=invitation.event_id,
        message=invitation.message,
        invited_by=invitation.invited_by,
        expires_at=invitation.expires_at,
        created_at=invitation.created_at,
        token=invitation.token if include_token else None,
    )


def invalid_invitation() -> HTTPException:
    return HTTPException(status_code=404, detail=INVALID_INVITATION)


def is_redeemable(invitation: Invitation, now: Optional[datetime] = None) -> bool:
    return invitation.status == InvitationStatus.PENDING and invitation.expires_at > (
        now or datetime.utcnow()
    )


async def _get_invitation_in_organization_or_404(
    session: AsyncSession, organization_id: UUID, invitation_id: UUID
) -> Invitation:
    invitation = await session.get(Invitation, invitation_id)
    if invitation is None or invitation.organization_id != organization_id:
        raise not_found("Invitation")
    return invitation


async def _get_redeemable_invitation(session: AsyncSession, token: str) -> Invitation:
    result = await session.exec(select(Invitation).where(Invitation.token == token))
    invitation = result.first()
    if invitation is None or not is_redeemable(invitation):
        raise invalid_invitation()
    return invitation


async def _new_invitation(
    session: AsyncSession,
    caller: OrganizationMember,
    email: str,
    role: OrgRole,
    event_id: Optional[UUID],
    message: Optional[str],
) -> Invitation:
    email = (email or "").strip().lower()
    if not EMAIL_PATTERN.match(email):
        raise validation_failed("Please enter a valid email address")

    if event_id is not None:
        await get_event_or_404(session, caller.organization_id, event_id)

    member = await session.exec(
        select(OrganizationMember)
        .join(Profile, OrganizationMember.user_id == Profile.id)
        .where(
            OrganizationMember.organization_id == caller.organization_id,
            func.lower(Profile.email) == email,
        )
    )
    if member.first() is not None:
        raise conflict(ALREADY_A_MEMBER)

    pending = await session.exec(
        select(Invitation).where(
            Invitation.organization_id == caller.organization_id,
            Invitation.email == email,
            Invitation.status == InvitationStatus.PENDING,
        )
    )
    if any(is_redeemable(invitation) for invitation in pending.all()):
        raise conflict(ALREADY_INVITED)

    invitation = Invitation(
        organization_id=caller.organization_id,
        event_id=event_id,
        email=email,
        role=role,
        invited_by=caller.user_id,
        message=(message or "").strip() or None,
    )
    session.add(invitation)
    return invitation


async def create_invitation(
    session: AsyncSession, user: dict, request: CreateInvitationRequest
) -> InvitationResponse:
    membership = await get_active_membership(session, user)
    require_permission(membership, Permission.TEAM_INVITE)
    require_assignable_role(membership, request.role)

    invitation = await _new_invitation(
        session, membership, request.email, request.role, request.event_id, request.message
    )
    await commit_or_raise(session)
    await session.refresh(invitation)
    logger.info(
        "Invited %s to organization %s as %s",
        invitation.email,
        invitation.organization_id,
        invitation.role.value,
    )
    return _invitation_response(invitation, include_token=True)


async def list_pending_invitations(
    session: AsyncSession, user: dict
) -> List[InvitationResponse]:
    membership = await get_active_membership(session, user)
    require_permission(membership, Permission.TEAM_VIEW)

    result = await session.exec(
        select(Invitation)
        .where(
            Invitation.organization_id == membership.organization_id,
            Invitation.status == InvitationStatus.PENDING,
        )
        .order_by(Invitation.created_at.desc())
    )
    return [_invitation_response(invitation) for invitation in result.all()]


def _cancel(invitation: Invitation) -> None:
    if invitation.status != InvitationStatus.PENDING:
        raise validation_failed(f"This invitation is already {invitation.status.value}")
    invitation.status = InvitationStatus.CANCELLED
    invitation.updated_at = datetime.utcnow()


async def cancel_invitation(session: AsyncSession, user: dict, invitation_id: UUID) -> None:
    membership = await get_active_membership(session, user)
    require_permission(membership, Permission.TEAM_INVITE)
    invitation = await _get_invitation_in_organization_or_404(
        session, membership.organization_id, invitation_id
    )

    _cancel(invitation)
    session.add(invitation)
    await commit_or_raise(session)


async def resend_invitation(
    session: AsyncSession, user: dict, invitation_id: UUID
) -> InvitationResponse:
    """Replace a pending invitation with a fresh one: new token, new expiry."""
    membership = await get_active_membership(session, user)
    require_permission(membership, Permission.TEAM_INVITE)
    original = await _get_invitation_in_organization_or_404(
        session, membership.organization_id, invitation_id
    )
    require_assignable_role(membership, original.role)

    _cancel(original)
    session.add(original)
    await session.flush()

    invitation = await _new_invitation(
        session, membership, original.email, original.role, original.event_id, original.message
    )
    await commit_or_raise(session)
    await session.refresh(invitation)
    logger.info("Resent invitation for %s as %s", invitation.email, invitation.id)
    return _invitation_response(invitation, include_token=True)


async def get_invitation_by_token(session: AsyncSession, token: str) -> InvitationDetails:
    invitation = await _get_redeemable_invitation(session, token)

    organization = await session.get(Organization, invitation.organization_id)
    inviter = await session.get(Profile, invitation.invited_by)
    event = await session.get(Event, invitation.event_id) if invitation.event_id else None
    return InvitationDetails(
        id=invitation.id,
        organization_id=invitation.organization_id,
        organization_name=organization.name,
        event_id=invitation.event_id,
        event_name=event.name if event else None,
        email=invitation.email,
        role=invitation.role,
        inviter_name=inviter.name if inviter else None,
        inviter_email=inviter.email if inviter else "",
        message=invitation.message,
        expires_at=invitation.expires_at,
    )


async def accept_invitation(
    session: AsyncSession, user: dict, token: str
) -> OrganizationMembershipResponse:
    """Redeem ``token`` for the calling user and make that membership active.

    Accepting into an organization the user already belongs to uses up the
    invitation and keeps the existing role.
    """
    user_id = get_user_id(user)
    invitation = await _get_redeemable_invitation(session, token)

    profile = await session.get(Profile, user_id)
    if profile is None:
        raise not_found("Profile")

    now = datetime.utcnow()
    # Only one caller can move the invitation out of PENDING.
    claimed = await execute_or_raise(
        session,
        update(Invitation)
        .where(Invitation.id == invitation.id, Invitation.status == InvitationStatus.PENDING)
        .values(
            status=InvitationStatus.ACCEPTED,
            accepted_at=now,
            accepted_by=user_id,
            updated_at=now,
        )
        .execution_options(synchronize_session=False),
    )
    if claimed.rowcount != 1:
        await session.rollback()
        raise invalid_invitation()

    existing = await session.exec(
        select(OrganizationMember).where(
            OrganizationMember.organization_id == invitation.organization_id,
            OrganizationMember.user_id == user_id,
        )
    )
    membership = existing.first()
    if membership is None:
        membership = OrganizationMember(
            organization_id=invitation.organization_id,
            user_id=user_id,
            role=invitation.role,
        )
        session.add(membership)

    profile.logged_in_org_member = membership.id
    profile.updated_at = now
    session.add(profile)
    await commit_or_raise(session, duplicate_message=ALREADY_A_MEMBER)
    await session.refresh(membership)

    logger.info(
        "Profile %s joined organization %s as %s",
        user_id,
        membership.organization_id,
        membership.role.value,
    )
    organization = await session.get(Organization, membership.organization_id)
    return membership_response(organization, membership)
