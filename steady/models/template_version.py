from sqlmodel import SQLModel, Field
from sqlalchemy import UniqueConstraint
from uuid import UUID, uuid4
from datetime import datetime
from typing import Optional

class TemplateVersion(SQLModel, table=True):
    __tablename__ = "template_versions"
    __table_args__ = (UniqueConstraint("event_type_id", "version"),)

    id: UUID = Field(default_factory=uuid4, primary_key=True)
    event_type_id: UUID = Field(foreign_key="event_types.id", index=True)
    version: int
    changelog: Optional[str] = None
    created_by: Optional[UUID] = Field(default=None, foreign_key="profiles.id", nullable=True)
    created_at: datetime = Field(default_factory=datetime.utcnow)
