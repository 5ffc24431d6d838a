import asyncio
from datetime import datetime, timedelta
from uuid import UUID

import pytest
from fastapi.testclient import TestClient
from sqlmodel import select

from steady.auth.dependencies import get_current_user
from steady.main import app
from steady.models import Invitation, InvitationStatus, OrganizationMember, OrgRole, Profile
from tests.conftest import AsyncSessionLocal, create_organization_with_members, user_for


@pytest.fixture(scope="module")
def organization(setup_database):
    return asyncio.run(
        create_organization_with_members(
            [OrgRole.ORG_ADMIN, OrgRole.EVENT_MANAGER, OrgRole.VENDOR, OrgRole.VOLUNTEER]
        )
    )


@pytest.fixture
def client_as():
    def _as(user):
        async def override_current_user():
            return user

        app.dependency_overrides[get_current_user] = override_current_user
        return TestClient(app)

    yield _as
    app.dependency_overrides.pop(get_current_user, None)


@pytest.fixture
def as_role(organization, client_as):
    return lambda role: client_as(user_for(organization, role))


async def _create_profile(email, name):
    async with AsyncSessionLocal() as session:
        profile = Profile(email=email, name=name)
        session.add(profile)
        await session.commit()
        return {
            "id": str(profile.id),
            "displayName": name,
            "email": email,
            "user_org": None,
        }


async def _get_profile(profile_id):
    async with AsyncSessionLocal() as session:
        return await session.get(Profile, UUID(profile_id))


async def _get_invitation(invitation_id):
    async with AsyncSessionLocal() as session:
        return await session.get(Invitation, UUID(invitation_id))


async def _expire(invitation_id):
    async with AsyncSessionLocal() as session:
        invitation = await session.get(Invitation, UUID(invitation_id))
        invitation.expires_at = datetime.utcnow() - timedelta(minutes=1)
        session.add(invitation)
        await session.commit()


async def _memberships_of(profile_id):
    async with AsyncSessionLocal() as session:
        result = await session.exec(
            select(OrganizationMember).where(OrganizationMember.user_id == UUID(profile_id))
        )
        return result.all()


def _invite(client, email, role="volunteer", **extra):
    return client.post("/team/invitations", json={"email": email, "role": role, **extra})


def test_admin_invites_by_email(as_role):
    admin = as_role(OrgRole.ORG_ADMIN)

    response = _invite(admin, "  New.Helper@EXAMPLE.com ", "partner", message="Welcome aboard")

    assert response.status_code == 201
    body = response.json()
    assert body["email"] == "new.helper@example.com"
    assert body["role"] == "partner"
    assert body["status"] == "pending"
    assert body["message"] == "Welcome aboard"
    assert len(body["token"]) == 64

    again = _invite(admin, "new.helper@example.com", "vendor")
    assert again.status_code == 409
    assert again.json()["detail"] == "An invitation is already pending for this email address."

    listed = as_role(OrgRole.VOLUNTEER).get("/team/invitations")
    assert listed.status_code == 200
    pending = [i for i in listed.json() if i["id"] == body["id"]]
    assert len(pending) == 1
    assert pending[0]["token"] is None


def test_existing_member_cannot_be_invited(organization, as_role):
    vendor_email = user_for(organization, OrgRole.VENDOR)["email"]

    response = _invite(as_role(OrgRole.ORG_ADMIN), vendor_email.upper())

    assert response.status_code == 409
    assert response.json()["detail"] == "User is already a member of this organization."


@pytest.mark.parametrize("email", ["", "not-an-email", "two words@example.com", "a@b"])
def test_malformed_email_is_rejected(as_role, email):
    response = _invite(as_role(OrgRole.ORG_ADMIN), email)

    assert response.status_code == 422
    assert response.json()["detail"] == "Please enter a valid email address"


def test_invite_requires_permission_and_assignable_role(as_role):
    assert _invite(as_role(OrgRole.VOLUNTEER), "friend@example.com").status_code == 403
    assert _invite(as_role(OrgRole.EVENT_MANAGER), "boss@example.com", "org_admin").status_code == 403
    assert _invite(as_role(OrgRole.EVENT_MANAGER), "crew@example.com", "vendor").status_code == 201


def test_invite_to_unknown_event_is_not_found(as_role):
    response = _invite(
        as_role(OrgRole.ORG_ADMIN),
        "guest@example.com",
        event_id="00000000-0000-0000-0000-000000000000",
    )
    assert response.status_code == 404


def test_invitation_details_are_public(organization, as_role):
    invitation = _invite(as_role(OrgRole.ORG_ADMIN), "curious@example.com", "vendor").json()
    app.dependency_overrides.pop(get_current_user, None)

    response = TestClient(app).get(f"/invitations/{invitation['token']}")

    assert response.status_code == 200
    details = response.json()
    assert details["email"] == "curious@example.com"
    assert details["role"] == "vendor"
    assert details["inviter_name"] == "Org Admin"
    assert details["organization_id"] == str(organization["organization_id"])
    assert details["event_name"] is None

    assert TestClient(app).get("/invitations/not-a-real-token").status_code == 404


def test_accepting_creates_membership_once(organization, as_role, client_as):
    invitation = _invite(as_role(OrgRole.ORG_ADMIN), "joiner@example.com", "partner").json()
    joiner = asyncio.run(_create_profile("joiner@example.com", "Joiner"))

    response = client_as(joiner).post(f"/invitations/{invitation['token']}/accept")

    assert response.status_code == 200
    body = response.json()
    assert body["id"] == str(organization["organization_id"])
    assert body["role"] == "partner"

    memberships = asyncio.run(_memberships_of(joiner["id"]))
    assert [m.role for m in memberships] == [OrgRole.PARTNER]
    profile = asyncio.run(_get_profile(joiner["id"]))
    assert profile.logged_in_org_member == memberships[0].id

    stored = asyncio.run(_get_invitation(invitation["id"]))
    assert stored.status == InvitationStatus.ACCEPTED
    assert stored.accepted_by == UUID(joiner["id"])
    assert stored.accepted_at is not None

    reused = client_as(joiner).post(f"/invitations/{invitation['token']}/accept")
    assert reused.status_code == 404
    assert reused.json()["detail"] == "Invalid or expired invitation"

    pending_ids = [i["id"] for i in as_role(OrgRole.ORG_ADMIN).get("/team/invitations").json()]
    assert invitation["id"] not in pending_ids


def test_member_accepting_keeps_their_role(organization, as_role, client_as):
    invitation = _invite(as_role(OrgRole.ORG_ADMIN), "second-address@example.com", "partner").json()
    vendor = user_for(organization, OrgRole.VENDOR)

    response = client_as(vendor).post(f"/invitations/{invitation['token']}/accept")

    assert response.status_code == 200
    assert response.json()["role"] == "vendor"
    assert len(asyncio.run(_memberships_of(vendor["id"]))) == 1
    assert asyncio.run(_get_invitation(invitation["id"])).status == InvitationStatus.ACCEPTED


def test_cancelled_invitation_cannot_be_used(as_role, client_as):
    admin = as_role(OrgRole.ORG_ADMIN)
    invitation = _invite(admin, "changed-mind@example.com").json()

    assert admin.delete(f"/team/invitations/{invitation['id']}").status_code == 204
    again = admin.delete(f"/team/invitations/{invitation['id']}")
    assert again.status_code == 422
    assert again.json()["detail"] == "This invitation is already cancelled"

    assert as_role(OrgRole.VOLUNTEER).delete(
        f"/team/invitations/{invitation['id']}"
    ).status_code == 403

    invitee = asyncio.run(_create_profile("changed-mind@example.com", "Changed Mind"))
    response = client_as(invitee).post(f"/invitations/{invitation['token']}/accept")
    assert response.status_code == 404
    assert asyncio.run(_memberships_of(invitee["id"])) == []


def test_resend_replaces_the_token(as_role, client_as):
    admin = as_role(OrgRole.ORG_ADMIN)
    original = _invite(admin, "slow-reader@example.com", "vendor", message="See you there").json()

    response = admin.post(f"/team/invitations/{original['id']}/resend")

    assert response.status_code == 201
    resent = response.json()
    assert resent["id"] != original["id"]
    assert resent["token"] != original["token"]
    assert resent["role"] == "vendor"
    assert resent["message"] == "See you there"
    assert asyncio.run(_get_invitation(original["id"])).status == InvitationStatus.CANCELLED

    emails = [i["email"] for i in admin.get("/team/invitations").json()]
    assert emails.count("slow-reader@example.com") == 1

    reader = asyncio.run(_create_profile("slow-reader@example.com", "Slow Reader"))
    client = client_as(reader)
    assert client.post(f"/invitations/{original['token']}/accept").status_code == 404
    assert client.post(f"/invitations/{resent['token']}/accept").status_code == 200


def test_expired_invitation_is_rejected_and_can_be_reissued(as_role, client_as):
    admin = as_role(OrgRole.ORG_ADMIN)
    invitation = _invite(admin, "late@example.com").json()
    asyncio.run(_expire(invitation["id"]))

    assert TestClient(app).get(f"/invitations/{invitation['token']}").status_code == 404

    reissued = _invite(admin, "late@example.com")
    assert reissued.status_code == 201

    late = asyncio.run(_create_profile("late@example.com", "Late"))
    response = client_as(late).post(f"/invitations/{invitation['token']}/accept")
    assert response.status_code == 404
