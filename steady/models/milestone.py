from sqlmodel import SQLModel, Field
from uuid import UUID, uuid4
from datetime import date, datetime
from enum import Enum
from typing import Optional

from .milestone_template import MilestoneCategory

class MilestoneStatus(str, Enum):
    NOT_STARTED = "NOT_STARTED"
    IN_PROGRESS = "IN_PROGRESS"
    BLOCKED = "BLOCKED"
    COMPLETED = "COMPLETED"
    SKIPPED = "SKIPPED"

class Milestone(SQLModel, table=True):
    __tablename__ = "milestones"

    id: UUID = Field(default_factory=uuid4, primary_key=True)
    event_id: UUID = Field(foreign_key="events.id", index=True)
    title: str
    description: Optional[str] = None
    category: MilestoneCategory = Field(default=MilestoneCategory.GENERAL)
    due_date: date
    completed_at: Optional[datetime] = None
    status: MilestoneStatus = Field(default=MilestoneStatus.NOT_STARTED)
    estimated_hours: Optional[float] = None
    assignee_id: Optional[UUID] = Field(default=None, foreign_key="profiles.id", nullable=True)
    from_template_id: Optional[UUID] = Field(
        default=None, foreign_key="milestone_templates.id", nullable=True
    )
    is_ai_generated: bool = Field(default=False)
    was_modified: bool = Field(default=False)
    sort_order: int = Field(default=0)
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)

class MilestoneRead(SQLModel):
    id: UUID
    event_id: UUID
    title: str
    description: Optional[str] = None
    category: MilestoneCategory
    due_date: date
    completed_at: Optional[datetime] = None
    status: MilestoneStatus
    estimated_hours: Optional[float] = None
    assignee_id: Optional[UUID] = None
    from_template_id: Optional[UUID] = None
    is_ai_generated: bool
    was_modified: bool
    sort_order: int

    @classmethod
    def from_row(cls, row: Milestone) -> "MilestoneRead":
        return cls(**{name: getattr(row, name) for name in cls.model_fields})
