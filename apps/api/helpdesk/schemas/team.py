"""Team schemas."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, Field, field_validator

from helpdesk.db.enums import Role


class TeamCreate(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    description: str | None = None
    tags: list[str] = Field(default_factory=list)

    @field_validator("name")
    @classmethod
    def name_not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("name must not be blank")
        return v.strip()


class TeamUpdate(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=255)
    description: str | None = None
    tags: list[str] | None = None


class TeamTagsUpdate(BaseModel):
    tags: list[str] = Field(min_length=1)


class TeamMemberAdd(BaseModel):
    user_id: UUID


class TeamMemberRead(BaseModel):
    id: UUID
    team_id: UUID
    user_id: UUID
    name: str | None = None
    email: str | None = None
    role: Role | None = None
    created_at: datetime


class TeamRead(BaseModel):
    id: UUID
    name: str
    description: str | None = None
    tags: list[str]
    created_by_id: UUID | None = None
    members: list[TeamMemberRead] = Field(default_factory=list)
    created_at: datetime
    updated_at: datetime
