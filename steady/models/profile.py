from sqlmodel import SQLModel, Field
from uuid import UUID, uuid4
from datetime import datetime
from typing import Optional

class Profile(SQLModel, table=True):
    __tablename__ = "profiles"  # This must match the Supabase table name

    id: UUID = Field(default_factory=uuid4, primary_key=True)
    email: str = Field(index=True)
    name: Optional[str] = None
    avatar_url: Optional[str] = None
    logged_in_org_member: Optional[UUID] = Field(default=None, nullable=True)
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)
