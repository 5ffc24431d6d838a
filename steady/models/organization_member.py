from sqlmodel import SQLModel, Field
from sqlalchemy import UniqueConstraint
from datetime import datetime
from uuid import UUID, uuid4
from enum import Enum

class OrgRole(str, Enum):
    ORG_ADMIN = "org_admin"
    EVENT_MANAGER = "event_manager"
    VENDOR = "vendor"
    PARTNER = "partner"
    VOLUNTEER = "volunteer"

class OrganizationMember(SQLModel, table=True):
    __tablename__ = "organization_members"
    __table_args__ = (UniqueConstraint("organization_id", "user_id"),)

    id: UUID = Field(default_factory=uuid4, primary_key=True)
    organization_id: UUID = Field(foreign_key="organizations.id", index=True)
    user_id: UUID = Field(foreign_key="profiles.id", index=True)
    role: OrgRole = Field(default=OrgRole.VOLUNTEER)
    created_at: datetime = Field(default_factory=datetime.utcnow)
