import asyncio
import os
from typing import Dict, Iterable
from uuid import uuid4

import pytest
from sqlmodel import SQLModel
from sqlmodel.ext.asyncio.session import AsyncSession
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

os.environ.setdefault("DB_URL", "sqlite+aiosqlite://")
os.environ.setdefault("SUPABASE_JWT_SECRET", "test-secret")

from steady.models import Organization, OrganizationMember, OrgRole, Profile  # noqa: E402

TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

async_engine = create_async_engine(
    TEST_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
AsyncSessionLocal = sessionmaker(
    async_engine, class_=AsyncSession, expire_on_commit=False
)


async def override_get_session():
    async with AsyncSessionLocal() as session:
        yield session


async def _create_tables():
    async with async_engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)


async def _drop_tables():
    async with async_engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.drop_all)


@pytest.fixture(scope="module", autouse=True)
def setup_database():
    from steady.main import app
    from steady.db.database import get_session

    app.dependency_overrides[get_session] = override_get_session
    asyncio.run(_create_tables())
    yield
    asyncio.run(_drop_tables())
    app.dependency_overrides.pop(get_session, None)


async def create_organization_with_members(roles: Iterable[OrgRole]) -> Dict:
    """Seed an organization with one member per role.

    Returns the organization id and, per role, the user dict that
    ``get_current_user`` would produce for that member.
    """
    async with AsyncSessionLocal() as session:
        suffix = uuid4().hex[:8]
        organization = Organization(name=f"Org {suffix}", slug=f"org-{suffix}")
        session.add(organization)

        users = {}
        for role in roles:
            profile = Profile(
                email=f"{role.value}-{suffix}@example.com",
                name=role.value.replace("_", " ").title(),
            )
            membership = OrganizationMember(
                organization_id=organization.id,
                user_id=profile.id,
                role=role,
            )
            profile.logged_in_org_member = membership.id
            session.add_all([profile, membership])
            users[role] = {
                "id": str(profile.id),
                "displayName": profile.name,
                "email": profile.email,
                "user_org": str(membership.id),
                "membership_id": membership.id,
            }

        await session.commit()
        return {"organization_id": organization.id, "users": users}


def user_for(data: Dict, role: OrgRole) -> Dict:
    return data["users"][role]
