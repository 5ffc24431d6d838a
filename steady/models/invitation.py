from sqlmodel import SQLModel, Field
from uuid import UUID, uuid4
from datetime import datetime, timedelta
from enum import Enum
from typing import Optional
import secrets

from .organization_member import OrgRole

INVITATION_LIFETIME = timedelta(days=7)

def new_invitation_token() -> str:
    return secrets.token_hex(32)

def invitation_expiry() -> datetime:
    return datetime.utcnow() + INVITATION_LIFETIME

class InvitationStatus(str, Enum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    EXPIRED = "expired"
    CANCELLED = "cancelled"

class Invitation(SQLModel, table=True):
    """An offer to join an organization, redeemed once by token."""

    __tablename__ = "invitations"

    id: UUID = Field(default_factory=uuid4, primary_key=True)
    organization_id: UUID = Field(foreign_key="organizations.id", index=True)
    # Unset for an organization-wide invitation.
    event_id: Optional[UUID] = Field(default=None, foreign_key="events.id", nullable=True)
    email: str = Field(index=True)
    role: OrgRole = Field(default=OrgRole.VOLUNTEER)
    token: str = Field(default_factory=new_invitation_token, unique=True, index=True)
    status: InvitationStatus = Field(default=InvitationStatus.PENDING, index=True)
    invited_by: UUID = Field(foreign_key="profiles.id")
    message: Optional[str] = None
    expires_at: datetime = Field(default_factory=invitation_expiry)
    accepted_at: Optional[datetime] = None
    accepted_by: Optional[UUID] = Field(default=None, foreign_key="profiles.id", nullable=True)
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)
