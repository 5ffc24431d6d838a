from sqlmodel import SQLModel, Field
from uuid import UUID, uuid4
from datetime import date, datetime
from enum import Enum
from typing import Optional

class EventStatus(str, Enum):
    PLANNING = "PLANNING"
    ACTIVE = "ACTIVE"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"
    ARCHIVED = "ARCHIVED"

class Event(SQLModel, table=True):
    __tablename__ = "events"

    id: UUID = Field(default_factory=uuid4, primary_key=True)
    organization_id: UUID = Field(foreign_key="organizations.id", index=True)
    event_type_id: Optional[UUID] = Field(default=None, foreign_key="event_types.id", nullable=True)
    template_version_id: Optional[UUID] = Field(
        default=None, foreign_key="template_versions.id", nullable=True
    )
    name: str
    description: Optional[str] = None
    event_date: date
    venue: Optional[str] = None
    status: EventStatus = Field(default=EventStatus.PLANNING)
    owner_id: Optional[UUID] = Field(default=None, foreign_key="profiles.id", nullable=True)
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)
