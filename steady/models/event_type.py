from sqlmodel import SQLModel, Field
from sqlalchemy import Index, func
from uuid import UUID, uuid4
from datetime import datetime
from typing import Optional

class EventType(SQLModel, table=True):
    """A reusable milestone template. ``current_version`` points at the
    newest :class:`TemplateVersion`; ``is_active`` is the soft-delete flag."""

    __tablename__ = "event_types"

    id: UUID = Field(default_factory=uuid4, primary_key=True)
    organization_id: UUID = Field(foreign_key="organizations.id", index=True)
    name: str
    description: Optional[str] = None
    icon: Optional[str] = Field(default="calendar")
    current_version: int = Field(default=1)
    is_active: bool = Field(default=True)
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)


# Template names are unique per organization among active templates only.
Index(
    "idx_event_types_unique_name_per_org",
    EventType.__table__.c.organization_id,
    func.lower(EventType.__table__.c.name),
    unique=True,
    postgresql_where=EventType.__table__.c.is_active.is_(True),
    sqlite_where=EventType.__table__.c.is_active.is_(True),
)
