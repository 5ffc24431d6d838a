import asyncio
from datetime import date
from uuid import UUID

import pytest
from fastapi.testclient import TestClient

from steady.auth.dependencies import get_current_user
from steady.main import app
from steady.models import EventStatus, Milestone, MilestoneStatus, OrgRole
from steady.services.event import calculate_due_date, calculate_progress, can_transition
from tests.conftest import AsyncSessionLocal, create_organization_with_members, user_for

MILESTONES = [
    {"title": "Book venue", "category": "VENUE", "days_before_event": 90},
    {"title": "Confirm headcount", "category": "CATERING", "days_before_event": 7},
]


@pytest.fixture(scope="module")
def organization(setup_database):
    return asyncio.run(
        create_organization_with_members([OrgRole.EVENT_MANAGER, OrgRole.VOLUNTEER])
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


def _new_event(client, name="Gala"):
    template = client.post("/templates", json={"name": f"{name} template", "milestones": MILESTONES})
    assert template.status_code == 201
    response = client.post(
        "/events",
        json={
            "name": name,
            "event_date": "2026-06-15",
            "venue": "Town Hall",
            "event_type_id": template.json()["id"],
        },
    )
    assert response.status_code == 201
    return response.json()


async def _get_milestone(milestone_id):
    async with AsyncSessionLocal() as session:
        return await session.get(Milestone, UUID(milestone_id))


def test_due_date_accounts_for_month_lengths():
    assert calculate_due_date(date(2026, 6, 15), 90) == date(2026, 3, 17)
    assert calculate_due_date(date(2026, 3, 1), 1) == date(2026, 2, 28)


def test_progress_ignores_skipped_milestones():
    milestones = [
        Milestone(event_id=None, title="a", due_date=date.today(), status=MilestoneStatus.COMPLETED),
        Milestone(event_id=None, title="b", due_date=date.today(), status=MilestoneStatus.SKIPPED),
        Milestone(event_id=None, title="c", due_date=date.today()),
    ]
    assert calculate_progress(milestones) == 50
    assert calculate_progress([]) == 0


def test_status_transitions():
    assert can_transition(EventStatus.PLANNING, EventStatus.ACTIVE)
    assert can_transition(EventStatus.ACTIVE, EventStatus.ACTIVE)
    assert can_transition(EventStatus.CANCELLED, EventStatus.ARCHIVED)
    assert not can_transition(EventStatus.PLANNING, EventStatus.COMPLETED)
    assert not can_transition(EventStatus.ARCHIVED, EventStatus.PLANNING)


def test_event_copies_template_milestones(as_user):
    event = _new_event(as_user(OrgRole.EVENT_MANAGER))

    assert event["status"] == "PLANNING"
    assert event["template_version_id"] is not None
    assert event["progress"] == 0
    assert [(m["title"], m["due_date"]) for m in event["milestones"]] == [
        ("Book venue", "2026-03-17"),
        ("Confirm headcount", "2026-06-08"),
    ]
    assert all(m["from_template_id"] for m in event["milestones"])


def test_event_with_explicit_milestones(as_user):
    client = as_user(OrgRole.EVENT_MANAGER)
    response = client.post(
        "/events",
        json={
            "name": "Pop-up",
            "event_date": "2026-08-01",
            "milestones": [
                {"title": "Find a spot", "due_date": "2026-07-01", "is_ai_generated": True},
            ],
        },
    )

    assert response.status_code == 201
    milestone = response.json()["milestones"][0]
    assert milestone["title"] == "Find a spot"
    assert milestone["is_ai_generated"] is True
    assert milestone["from_template_id"] is None


def test_completing_a_milestone_sets_completed_at(as_user):
    client = as_user(OrgRole.EVENT_MANAGER)
    milestone = _new_event(client, "Picnic")["milestones"][0]

    done = client.patch(f"/milestones/{milestone['id']}", json={"status": "COMPLETED"})
    assert done.status_code == 200
    assert done.json()["completed_at"] is not None

    reopened = client.patch(f"/milestones/{milestone['id']}", json={"status": "IN_PROGRESS"})
    assert reopened.json()["completed_at"] is None
    assert reopened.json()["was_modified"] is False


def test_editing_template_milestone_marks_it_modified(as_user):
    client = as_user(OrgRole.EVENT_MANAGER)
    milestone = _new_event(client, "Dinner")["milestones"][1]

    response = client.patch(
        f"/milestones/{milestone['id']}", json={"title": "Confirm final headcount"}
    )

    assert response.status_code == 200
    stored = asyncio.run(_get_milestone(milestone["id"]))
    assert stored.title == "Confirm final headcount"
    assert stored.was_modified is True


def test_volunteer_edits_only_assigned_milestones(organization, as_user):
    manager = as_user(OrgRole.EVENT_MANAGER)
    event = _new_event(manager, "Cleanup")
    volunteer_id = user_for(organization, OrgRole.VOLUNTEER)["id"]
    mine, theirs = event["milestones"]
    assigned = manager.patch(f"/milestones/{mine['id']}", json={"assignee_id": volunteer_id})
    assert assigned.status_code == 200

    volunteer = as_user(OrgRole.VOLUNTEER)
    assert volunteer.patch(f"/milestones/{mine['id']}", json={"status": "BLOCKED"}).status_code == 200
    echoed = volunteer.patch(
        f"/milestones/{mine['id']}", json={"status": "IN_PROGRESS", "assignee_id": volunteer_id}
    )
    assert echoed.status_code == 200
    handed_off = volunteer.patch(f"/milestones/{mine['id']}", json={"assignee_id": None})
    assert handed_off.status_code == 403
    assert volunteer.patch(f"/milestones/{theirs['id']}", json={"status": "BLOCKED"}).status_code == 403
    assert volunteer.delete(f"/milestones/{mine['id']}").status_code == 403


def test_illegal_status_change_is_rejected(as_user):
    client = as_user(OrgRole.EVENT_MANAGER)
    event = _new_event(client, "Bazaar")

    response = client.patch(f"/events/{event['id']}", json={"status": "COMPLETED"})
    assert response.status_code == 422
    assert response.json()["detail"] == "Cannot move an event from PLANNING to COMPLETED"

    assert client.patch(f"/events/{event['id']}", json={"status": "ACTIVE"}).status_code == 200


def test_event_milestones_listed_by_due_date(as_user):
    client = as_user(OrgRole.EVENT_MANAGER)
    event = _new_event(client, "Marathon")
    client.post(
        "/milestones",
        json={"event_id": event["id"], "title": "Mark the route", "due_date": "2026-01-10"},
    )

    response = client.get(f"/events/{event['id']}/milestones")
    assert [m["title"] for m in response.json()] == [
        "Mark the route",
        "Book venue",
        "Confirm headcount",
    ]


def test_volunteer_cannot_create_events(as_user):
    client = as_user(OrgRole.VOLUNTEER)
    response = client.post("/events", json={"name": "Nope", "event_date": "2026-06-15"})
    assert response.status_code == 403


def test_deleting_event_removes_its_milestones(as_user):
    client = as_user(OrgRole.EVENT_MANAGER)
    event = _new_event(client, "Raffle")

    assert client.delete(f"/events/{event['id']}").status_code == 204
    assert client.get(f"/events/{event['id']}").status_code == 404
    assert asyncio.run(_get_milestone(event["milestones"][0]["id"])) is None
