import logging
import re
from datetime import datetime
from typing import List, Optional
from uuid import UUID

from fastapi import HTTPException
from sqlmodel import SQLModel, select
from sqlmodel.ext.asyncio.session import AsyncSession

from steady.models import Organization, OrganizationMember, OrgRole, Profile
from steady.permissions import (
    Permission,
    assignable_roles,
    has_permission,
    permissions_for,
)
from steady.services.errors import (
    commit_or_raise,
    not_authenticated,
    not_found,
    not_permitted,
    validation_failed,
)

logger = logging.getLogger(__name__)


class OrganizationMembershipResponse(SQLModel):
    id: UUID
    name: str
    slug: str
    role: OrgRole
    organization_member_id: UUID
    permissions: List[str]


class OrganizationMemberResponse(SQLModel):
    id: UUID
    userId: UUID
    email: str
    displayName: Optional[str] = None
    role: OrgRole
    joined: datetime


class CreateOrganizationRequest(SQLModel):
    name: str
    slug: Optional[str] = None
    timezone: Optional[str] = None


class MemberRoleChange(SQLModel):
    role: OrgRole


def get_user_id(user: dict) -> UUID:
    user_id = user.get("id") if user else None
    if user_id is None:
        raise not_authenticated()

    if isinstance(user_id, str):
        try:
            user_id = UUID(user_id)
        except ValueError as exc:  # pragma: no cover - defensive programming
            raise HTTPException(status_code=400, detail="Invalid user identifier") from exc
    return user_id


async def get_active_membership(session: AsyncSession, user: dict) -> OrganizationMember:
    """Resolve the membership the user is currently logged into."""
    user_id = get_user_id(user)

    membership_id = user.get("user_org")
    if membership_id is None:
        raise HTTPException(status_code=404, detail="User is not logged into an organization")

    if isinstance(membership_id, str):
        try:
            membership_id = UUID(membership_id)
        except ValueError as exc:
            raise HTTPException(
                status_code=400,
                detail="Invalid organization membership identifier",
            ) from exc

    membership = await session.get(OrganizationMember, membership_id)
    if membership is None:
        raise not_found("Organization membership")

    if membership.user_id != user_id:
        raise HTTPException(status_code=403, detail="User does not belong to this organization")

    return membership


def require_permission(membership: OrganizationMember, permission: Permission) -> None:
    if not has_permission(membership.role, permission):
        logger.info(
            "Denied %s for role %s in organization %s",
            permission.value,
            membership.role,
            membership.organization_id,
        )
        raise not_permitted()


async def get_member_in_organization_or_404(
    session: AsyncSession,
    organization_id: UUID,
    member_id: UUID,
) -> OrganizationMember:
    member = await session.get(OrganizationMember, member_id)
    if member is None or member.organization_id != organization_id:
        raise not_found("Member")
    return member


def membership_response(
    organization: Organization, membership: OrganizationMember
) -> OrganizationMembershipResponse:
    return OrganizationMembershipResponse(
        id=organization.id,
        name=organization.name,
        slug=organization.slug,
        role=membership.role,
        organization_member_id=membership.id,
        permissions=sorted(p.value for p in permissions_for(membership.role)),
    )


def slugify(name: str) -> str:
    slug = re.sub(r"[^a-z0-9]+", "-", name.lower()).strip("-")
    return slug or "organization"


async def get_user_organizations(
    session: AsyncSession, user: dict
) -> List[OrganizationMembershipResponse]:
    user_id = get_user_id(user)
    statement = (
        select(Organization, OrganizationMember)
        .join(OrganizationMember, OrganizationMember.organization_id == Organization.id)
        .where(OrganizationMember.user_id == user_id)
        .order_by(Organization.name)
    )
    result = await session.exec(statement)
    return [
        membership_response(organization, membership)
        for organization, membership in result.all()
    ]


async def create_organization(
    session: AsyncSession, user: dict, request: CreateOrganizationRequest
) -> OrganizationMembershipResponse:
    user_id = get_user_id(user)

    name = (request.name or "").strip()
    if not name:
        raise validation_failed("Please enter an organization name")

    profile = await session.get(Profile, user_id)
    if profile is None:
        raise not_authenticated()

    organization = Organization(name=name, slug=slugify(request.slug or name))
    if request.timezone:
        organization.timezone = request.timezone

    # The creator becomes the organization's first admin.
    membership = OrganizationMember(
        organization_id=organization.id,
        user_id=user_id,
        role=OrgRole.ORG_ADMIN,
    )
    profile.logged_in_org_member = membership.id
    profile.updated_at = datetime.utcnow()
    session.add_all([organization, membership, profile])
    await commit_or_raise(
        session, duplicate_message="An organization with this URL already exists"
    )
    await session.refresh(organization)
    await session.refresh(membership)
    return membership_response(organization, membership)


async def select_organization(
    session: AsyncSession, user: dict, membership_id: UUID
) -> OrganizationMembershipResponse:
    user_id = get_user_id(user)

    membership = await session.get(OrganizationMember, membership_id)
    if membership is None or membership.user_id != user_id:
        raise not_found("Organization membership")

    profile = await session.get(Profile, user_id)
    if profile is None:
        raise not_authenticated()

    profile.logged_in_org_member = membership.id
    profile.updated_at = datetime.utcnow()
    session.add(profile)
    await commit_or_raise(session)

    organization = await session.get(Organization, membership.organization_id)
    return membership_response(organization, membership)


async def list_members(session: AsyncSession, user: dict) -> List[OrganizationMemberResponse]:
    membership = await get_active_membership(session, user)
    require_permission(membership, Permission.TEAM_VIEW)

    statement = (
        select(OrganizationMember, Profile)
        .join(Profile, OrganizationMember.user_id == Profile.id)
        .where(OrganizationMember.organization_id == membership.organization_id)
        .order_by(OrganizationMember.created_at)
    )
    result = await session.exec(statement)
    return [_member_response(member, profile) for member, profile in result.all()]


def _member_response(member: OrganizationMember, profile: Profile) -> OrganizationMemberResponse:
    return OrganizationMemberResponse(
        id=member.id,
        userId=profile.id,
        email=profile.email,
        displayName=profile.name,
        role=member.role,
        joined=member.created_at,
    )


def require_assignable_role(caller: OrganizationMember, role: OrgRole) -> None:
    if role not in assignable_roles(caller.role):
        raise not_permitted()


async def change_member_role(
    session: AsyncSession, user: dict, member_id: UUID, new_role: OrgRole
) -> OrganizationMemberResponse:
    membership = await get_active_membership(session, user)
    require_permission(membership, Permission.TEAM_CHANGE_ROLES)

    member = await get_member_in_organization_or_404(
        session, membership.organization_id, member_id
    )
    if member.id == membership.id:
        raise validation_failed("You cannot change your own role")

    require_assignable_role(membership, member.role)
    require_assignable_role(membership, new_role)

    member.role = new_role
    session.add(member)
    await commit_or_raise(session)
    await session.refresh(member)

    profile = await session.get(Profile, member.user_id)
    return _member_response(member, profile)


async def remove_member(session: AsyncSession, user: dict, member_id: UUID) -> None:
    membership = await get_active_membership(session, user)
    require_permission(membership, Permission.TEAM_REMOVE)

    member = await get_member_in_organization_or_404(
        session, membership.organization_id, member_id
    )
    if member.id == membership.id:
        raise validation_failed("You cannot remove yourself from the organization")

    require_assignable_role(membership, member.role)

    profile = await session.get(Profile, member.user_id)
    if profile is not None and profile.logged_in_org_member == member.id:
        profile.logged_in_org_member = None
        session.add(profile)

    await session.delete(member)
    await commit_or_raise(session)
