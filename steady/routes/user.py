from typing import List
from uuid import UUID

from fastapi import APIRouter, Depends
from sqlmodel.ext.asyncio.session import AsyncSession

from steady.auth.dependencies import get_current_user
from steady.db.database import get_session
from steady.services.membership import (
    CreateOrganizationRequest,
    OrganizationMembershipResponse,
    create_organization,
    get_user_organizations,
    select_organization,
)

router = APIRouter()


@router.get("/user/info")
async def get_my_profile(user=Depends(get_current_user)):
    return user


@router.get(
    "/user/organizations",
    response_model=List[OrganizationMembershipResponse],
)
async def get_my_organizations(
    user=Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
) -> List[OrganizationMembershipResponse]:
    return await get_user_organizations(session, user)


@router.post(
    "/user/organizations",
    response_model=OrganizationMembershipResponse,
    status_code=201,
    tags=["Organization"],
)
async def create_my_organization(
    request: CreateOrganizationRequest,
    user=Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
) -> OrganizationMembershipResponse:
    return await create_organization(session, user, request)


@router.post(
    "/user/organizations/{membershipId}/select",
    response_model=OrganizationMembershipResponse,
    tags=["Organization"],
)
async def select_my_organization(
    membershipId: UUID,
    user=Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
) -> OrganizationMembershipResponse:
    return await select_organization(session, user, membershipId)
