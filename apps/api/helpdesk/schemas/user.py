"""User-related Pydantic schemas."""

from datetime import datetime
from uuid import UUID

from pydantic import AliasChoices, BaseModel, Field

from helpdesk.db.enums import Role


class UserSummary(BaseModel):
    """Compact user reference embedded in other responses."""
    id: UUID
    name: str | None = None
    email: str
    role: Role | None = None

    model_config = {"from_attributes": True}


class UserRead(BaseModel):
    """Full user row."""
    id: UUID
    email: str
    name: str | None
    avatar_url: str | None
    role: Role
    metadata: dict | None = Field(default=None, validation_alias=AliasChoices("user_metadata", "metadata"))
    test_batch_id: str | None = None
    cleanup_at: datetime | None = None
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class UserUpdate(BaseModel):
    """Partial update; role changes require ADMIN."""
    name: str | None = Field(default=None, max_length=255)
    email: str | None = Field(default=None, min_length=3, max_length=255)
    avatar_url: str | None = None
    role: Role | None = None
    metadata: dict | None = None


class RoleUpdate(BaseModel):
    role: Role


class AssignableUser(BaseModel):
    """Assignee picker row: staff, plus the ticket's customer."""
    id: UUID
    name: str | None
    email: str
    role: Role
    is_customer: bool = False
