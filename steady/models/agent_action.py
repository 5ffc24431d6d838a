from sqlmodel import SQLModel, Field
from uuid import UUID, uuid4
from datetime import datetime
from enum import Enum
from typing import Optional

class AgentActionType(str, Enum):
    MILESTONE_GENERATION = "MILESTONE_GENERATION"
    MILESTONE_IMPROVEMENT = "MILESTONE_IMPROVEMENT"
    CONTEXTUAL_HELP = "CONTEXTUAL_HELP"
    POST_EVENT_ANALYSIS = "POST_EVENT_ANALYSIS"
    TEMPLATE_UPDATE = "TEMPLATE_UPDATE"

class AgentAction(SQLModel, table=True):
    __tablename__ = "agent_actions"

    id: UUID = Field(default_factory=uuid4, primary_key=True)
    organization_id: UUID = Field(foreign_key="organizations.id", index=True)
    user_id: UUID = Field(foreign_key="profiles.id")
    action_type: AgentActionType
    prompt_summary: Optional[str] = Field(default=None, max_length=500)
    response_summary: Optional[str] = Field(default=None, max_length=500)
    tokens_used: Optional[int] = None
    latency_ms: Optional[int] = None
    created_at: datetime = Field(default_factory=datetime.utcnow)
