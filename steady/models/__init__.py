"""Convenience exports for the models package."""

from .agent_action import AgentAction, AgentActionType
from .event import Event, EventStatus
from .event_type import EventType
from .invitation import Invitation, InvitationStatus
from .milestone import Milestone, MilestoneRead, MilestoneStatus
from .milestone_template import MilestoneCategory, MilestoneTemplate, MilestoneTemplateInput
from .organization import Organization
from .organization_member import OrganizationMember, OrgRole
from .profile import Profile
from .template_version import TemplateVersion
