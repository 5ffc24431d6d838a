import asyncio
from uuid import UUID

import pytest
from fastapi.testclient import TestClient

from steady.auth.dependencies import get_current_user
from steady.main import app
from steady.models import OrgRole, Profile
from tests.conftest import AsyncSessionLocal, create_organization_with_members, user_for


async def _get_profile(profile_id):
    async with AsyncSessionLocal() as session:
        return await session.get(Profile, UUID(profile_id))


@pytest.fixture(scope="module")
def organization(setup_database):
    return asyncio.run(
        create_organization_with_members(
            [OrgRole.ORG_ADMIN, OrgRole.EVENT_MANAGER, OrgRole.VENDOR, OrgRole.VOLUNTEER]
        )
    )


@pytest.fixture
def as_user(organization):
    def _as(role):
        user = user_for(organization, role)

        async def override_current_user():
            return user

        app.dependency_overrides[get_current_user] = override_current_user
        return TestClient(app)

    yield _as
    app.dependency_overrides.pop(get_current_user, None)


def _member_id(organization, role):
    return str(user_for(organization, role)["membership_id"])


def test_members_are_listed_for_every_role(as_user):
    response = as_user(OrgRole.VOLUNTEER).get("/team/members")

    assert response.status_code == 200
    assert {m["role"] for m in response.json()} == {
        "org_admin",
        "event_manager",
        "vendor",
        "volunteer",
    }


def test_assignable_roles_depend_on_caller(as_user):
    admin_roles = [r["role"] for r in as_user(OrgRole.ORG_ADMIN).get("/team/roles").json()]
    assert admin_roles == ["event_manager", "vendor", "partner", "volunteer"]

    vendor_roles = as_user(OrgRole.VENDOR).get("/team/roles").json()
    assert vendor_roles == []


def test_admin_changes_a_role(organization, as_user):
    client = as_user(OrgRole.ORG_ADMIN)
    member_id = _member_id(organization, OrgRole.VOLUNTEER)

    response = client.patch(f"/team/members/{member_id}/role", json={"role": "vendor"})
    assert response.status_code == 200
    assert response.json()["role"] == "vendor"

    restored = client.patch(f"/team/members/{member_id}/role", json={"role": "volunteer"})
    assert restored.json()["role"] == "volunteer"


def test_admin_cannot_promote_to_admin_or_change_self(organization, as_user):
    client = as_user(OrgRole.ORG_ADMIN)

    promote = client.patch(
        f"/team/members/{_member_id(organization, OrgRole.VENDOR)}/role",
        json={"role": "org_admin"},
    )
    assert promote.status_code == 403

    self_change = client.patch(
        f"/team/members/{_member_id(organization, OrgRole.ORG_ADMIN)}/role",
        json={"role": "volunteer"},
    )
    assert self_change.status_code == 422


def test_event_manager_cannot_change_roles(organization, as_user):
    response = as_user(OrgRole.EVENT_MANAGER).patch(
        f"/team/members/{_member_id(organization, OrgRole.VENDOR)}/role",
        json={"role": "partner"},
    )
    assert response.status_code == 403


def test_removing_a_member_logs_them_out(organization, as_user):
    client = as_user(OrgRole.ORG_ADMIN)
    vendor = user_for(organization, OrgRole.VENDOR)

    response = client.delete(f"/team/members/{vendor['membership_id']}")
    assert response.status_code == 204

    profile = asyncio.run(_get_profile(vendor["id"]))
    assert profile.logged_in_org_member is None

    roles = {m["role"] for m in client.get("/team/members").json()}
    assert "vendor" not in roles
