import pytest

from steady.models import OrgRole
from steady.permissions import (
    ROLE_PERMISSIONS,
    VIEW_PERMISSIONS,
    Permission,
    all_roles_by_sort_order,
    assignable_roles,
    can_invite_team,
    can_manage_events,
    can_manage_org,
    can_manage_team,
    has_all_permissions,
    has_any_permission,
    has_permission,
    is_admin_role,
    permissions_for,
)

ALL_ROLES = list(OrgRole)


@pytest.mark.parametrize("role", ALL_ROLES)
def test_every_role_has_view_baseline(role):
    permissions = permissions_for(role)
    assert permissions
    assert VIEW_PERMISSIONS <= permissions


@pytest.mark.parametrize("role", ALL_ROLES)
def test_has_permission_matches_permission_table(role):
    for permission in Permission:
        assert has_permission(role, permission) == (permission in permissions_for(role))


@pytest.mark.parametrize("role", ALL_ROLES + [None])
def test_empty_permission_lists(role):
    assert has_any_permission(role, []) is False
    assert has_all_permissions(role, []) is True


def test_absent_or_unknown_role_has_nothing():
    assert has_permission(None, Permission.EVENT_VIEW) is False
    assert has_permission("owner", Permission.EVENT_VIEW) is False
    assert permissions_for("owner") == frozenset()
    assert has_all_permissions(None, [Permission.EVENT_VIEW]) is False


def test_roles_accept_raw_string_values():
    assert has_permission("org_admin", "team:change_roles")
    assert has_permission("volunteer", "milestone:edit_own")
    assert not has_permission("volunteer", "not:a_permission")


def test_org_admin_holds_every_permission():
    assert ROLE_PERMISSIONS[OrgRole.ORG_ADMIN] == frozenset(Permission)


def test_event_manager_cannot_change_roles_or_edit_org():
    role = OrgRole.EVENT_MANAGER
    assert has_all_permissions(role, [Permission.TEMPLATE_EDIT, Permission.EVENT_CREATE])
    assert not has_permission(role, Permission.TEAM_CHANGE_ROLES)
    assert not has_permission(role, Permission.ORG_EDIT)


def test_contributor_roles_only_edit_their_own_milestones():
    for role in (OrgRole.VENDOR, OrgRole.PARTNER, OrgRole.VOLUNTEER):
        assert has_permission(role, Permission.MILESTONE_EDIT_OWN)
        assert not has_permission(role, Permission.MILESTONE_EDIT)
        assert not can_manage_events(role)
        assert not can_manage_team(role)


def test_management_helpers():
    assert can_manage_org(OrgRole.ORG_ADMIN)
    assert not can_manage_org(OrgRole.EVENT_MANAGER)
    assert can_invite_team(OrgRole.EVENT_MANAGER)
    assert can_manage_team(OrgRole.EVENT_MANAGER)
    assert is_admin_role("event_manager")
    assert not is_admin_role(OrgRole.PARTNER)
    assert not is_admin_role(None)


def test_roles_sorted_by_seniority():
    assert all_roles_by_sort_order() == [
        OrgRole.ORG_ADMIN,
        OrgRole.EVENT_MANAGER,
        OrgRole.VENDOR,
        OrgRole.PARTNER,
        OrgRole.VOLUNTEER,
    ]


def test_org_admin_assigns_every_junior_role():
    assert assignable_roles(OrgRole.ORG_ADMIN) == [
        OrgRole.EVENT_MANAGER,
        OrgRole.VENDOR,
        OrgRole.PARTNER,
        OrgRole.VOLUNTEER,
    ]


def test_event_manager_assigns_contributor_roles():
    assert assignable_roles("event_manager") == [
        OrgRole.VENDOR,
        OrgRole.PARTNER,
        OrgRole.VOLUNTEER,
    ]


@pytest.mark.parametrize("role", [OrgRole.VENDOR, OrgRole.PARTNER, OrgRole.VOLUNTEER, None])
def test_non_admins_assign_nothing(role):
    assert assignable_roles(role) == []
