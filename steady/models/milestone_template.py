from sqlmodel import SQLModel, Field
from uuid import UUID, uuid4
from datetime import datetime
from enum import Enum
from typing import Optional

class MilestoneCategory(str, Enum):
    VENUE = "VENUE"
    CATERING = "CATERING"
    MARKETING = "MARKETING"
    LOGISTICS = "LOGISTICS"
    PERMITS = "PERMITS"
    SPONSORS = "SPONSORS"
    VOLUNTEERS = "VOLUNTEERS"
    GENERAL = "GENERAL"

class MilestoneTemplate(SQLModel, table=True):
    __tablename__ = "milestone_templates"

    id: UUID = Field(default_factory=uuid4, primary_key=True)
    event_type_id: UUID = Field(foreign_key="event_types.id", index=True)
    template_version_id: Optional[UUID] = Field(
        default=None, foreign_key="template_versions.id", index=True, nullable=True
    )
    title: str
    description: Optional[str] = None
    category: MilestoneCategory = Field(default=MilestoneCategory.GENERAL)
    days_before_event: int = Field(default=30, ge=0)
    estimated_hours: Optional[float] = None
    sort_order: int = Field(default=0)
    created_at: datetime = Field(default_factory=datetime.utcnow)

class MilestoneTemplateInput(SQLModel):
    """The editable part of a milestone template, as submitted by a client."""

    title: str
    description: Optional[str] = None
    category: MilestoneCategory = MilestoneCategory.GENERAL
    days_before_event: int = Field(default=30, ge=0)
    estimated_hours: Optional[float] = None
