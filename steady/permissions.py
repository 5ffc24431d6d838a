"""Role-based permission model for organization memberships.

Every helper here is total: an absent or unknown role degrades to the most
restrictive answer (``False`` or an empty collection) instead of raising.
"""

from enum import Enum
from typing import Dict, FrozenSet, Iterable, List, Optional, Union

from steady.models.organization_member import OrgRole


class Permission(str, Enum):
    ORG_CREATE = "org:create"
    ORG_EDIT = "org:edit"
    ORG_ARCHIVE = "org:archive"
    ORG_VIEW = "org:view"
    ORG_MANAGE_MEMBERS = "org:manage_members"
    EVENT_CREATE = "event:create"
    EVENT_EDIT = "event:edit"
    EVENT_DELETE = "event:delete"
    EVENT_VIEW = "event:view"
    EVENT_MANAGE_MILESTONES = "event:manage_milestones"
    MILESTONE_CREATE = "milestone:create"
    MILESTONE_EDIT = "milestone:edit"
    MILESTONE_DELETE = "milestone:delete"
    MILESTONE_VIEW = "milestone:view"
    MILESTONE_EDIT_OWN = "milestone:edit_own"
    MILESTONE_REPORT = "milestone:report"
    TEMPLATE_CREATE = "template:create"
    TEMPLATE_EDIT = "template:edit"
    TEMPLATE_DELETE = "template:delete"
    TEMPLATE_VIEW = "template:view"
    TEAM_VIEW = "team:view"
    TEAM_INVITE = "team:invite"
    TEAM_REMOVE = "team:remove"
    TEAM_CHANGE_ROLES = "team:change_roles"


RoleLike = Union[OrgRole, str, None]

VIEW_PERMISSIONS: FrozenSet[Permission] = frozenset(
    {
        Permission.ORG_VIEW,
        Permission.EVENT_VIEW,
        Permission.MILESTONE_VIEW,
        Permission.TEMPLATE_VIEW,
        Permission.TEAM_VIEW,
    }
)

_CONTRIBUTOR_PERMISSIONS: FrozenSet[Permission] = VIEW_PERMISSIONS | {
    Permission.MILESTONE_EDIT_OWN,
    Permission.MILESTONE_REPORT,
}

_EVENT_MANAGER_PERMISSIONS: FrozenSet[Permission] = _CONTRIBUTOR_PERMISSIONS | {
    Permission.EVENT_CREATE,
    Permission.EVENT_EDIT,
    Permission.EVENT_DELETE,
    Permission.EVENT_MANAGE_MILESTONES,
    Permission.MILESTONE_CREATE,
    Permission.MILESTONE_EDIT,
    Permission.MILESTONE_DELETE,
    Permission.TEMPLATE_CREATE,
    Permission.TEMPLATE_EDIT,
    Permission.TEMPLATE_DELETE,
    Permission.TEAM_INVITE,
}

ROLE_PERMISSIONS: Dict[OrgRole, FrozenSet[Permission]] = {
    OrgRole.ORG_ADMIN: frozenset(Permission),
    OrgRole.EVENT_MANAGER: _EVENT_MANAGER_PERMISSIONS,
    OrgRole.VENDOR: _CONTRIBUTOR_PERMISSIONS,
    OrgRole.PARTNER: _CONTRIBUTOR_PERMISSIONS,
    OrgRole.VOLUNTEER: _CONTRIBUTOR_PERMISSIONS,
}

ROLE_CONFIG: Dict[OrgRole, Dict[str, object]] = {
    OrgRole.ORG_ADMIN: {
        "label": "Org Admin",
        "description": "Full administrative access. Can create, edit, and archive the organization.",
        "sort_order": 1,
    },
    OrgRole.EVENT_MANAGER: {
        "label": "Event Manager",
        "description": "Can create new events and manage all event-related activities.",
        "sort_order": 2,
    },
    OrgRole.VENDOR: {
        "label": "Vendor",
        "description": "Can view activities, report on actions, and edit their assigned activities.",
        "sort_order": 3,
    },
    OrgRole.PARTNER: {
        "label": "Partner",
        "description": "Can view activities, report on actions, and edit their assigned activities.",
        "sort_order": 4,
    },
    OrgRole.VOLUNTEER: {
        "label": "Volunteer",
        "description": "Can view activities, report on actions, and edit their assigned activities.",
        "sort_order": 5,
    },
}


def _coerce_role(role: RoleLike) -> Optional[OrgRole]:
    if role is None:
        return None
    if isinstance(role, OrgRole):
        return role
    try:
        return OrgRole(role)
    except ValueError:
        return None


def permissions_for(role: RoleLike) -> FrozenSet[Permission]:
    """Return every permission granted to ``role`` (empty for unknown roles)."""
    resolved = _coerce_role(role)
    if resolved is None:
        return frozenset()
    return ROLE_PERMISSIONS.get(resolved, frozenset())


def has_permission(role: RoleLike, permission: Union[Permission, str]) -> bool:
    try:
        permission = Permission(permission)
    except ValueError:
        return False
    return permission in permissions_for(role)


def has_any_permission(role: RoleLike, permissions: Iterable[Union[Permission, str]]) -> bool:
    # An empty list is never satisfied.
    if _coerce_role(role) is None:
        return False
    return any(has_permission(role, permission) for permission in permissions)


def has_all_permissions(role: RoleLike, permissions: Iterable[Union[Permission, str]]) -> bool:
    # An empty list is vacuously satisfied, even without a role.
    return all(has_permission(role, permission) for permission in permissions)


def can_manage_team(role: RoleLike) -> bool:
    return has_any_permission(
        role,
        [Permission.TEAM_INVITE, Permission.TEAM_REMOVE, Permission.TEAM_CHANGE_ROLES],
    )


def can_invite_team(role: RoleLike) -> bool:
    return has_permission(role, Permission.TEAM_INVITE)


def can_manage_org(role: RoleLike) -> bool:
    return has_any_permission(role, [Permission.ORG_EDIT, Permission.ORG_ARCHIVE])


def can_manage_events(role: RoleLike) -> bool:
    return has_any_permission(
        role,
        [Permission.EVENT_CREATE, Permission.EVENT_EDIT, Permission.EVENT_DELETE],
    )


def is_admin_role(role: RoleLike) -> bool:
    return _coerce_role(role) in {OrgRole.ORG_ADMIN, OrgRole.EVENT_MANAGER}


def role_rank(role: RoleLike) -> Optional[int]:
    """Seniority rank, 1 (most senior) to 5; ``None`` for unknown roles."""
    resolved = _coerce_role(role)
    if resolved is None:
        return None
    return int(ROLE_CONFIG[resolved]["sort_order"])


def all_roles_by_sort_order() -> List[OrgRole]:
    return sorted(ROLE_CONFIG, key=lambda role: ROLE_CONFIG[role]["sort_order"])


def assignable_roles(role: RoleLike) -> List[OrgRole]:
    """Roles that a member holding ``role`` may grant to someone else.

    Only admin-level roles may assign, and never a role ranked equal to or
    above their own.
    """
    if not is_admin_role(role):
        return []
    own_rank = role_rank(role)
    return [
        candidate
        for candidate in all_roles_by_sort_order()
        if role_rank(candidate) > own_rank
    ]
