"""Ticket message schemas."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, Field

from helpdesk.schemas.ticket import UserRef


class MessageCreate(BaseModel):
    content: str = Field(min_length=1)
    content_html: str = ""
    is_internal: bool = False


class MessageRead(BaseModel):
    id: UUID
    ticket_id: UUID
    content: str
    content_html: str
    is_internal: bool
    created_by_id: UUID | None = None
    created_by: UserRef | None = None
    created_at: datetime


class MessageListResponse(BaseModel):
    items: list[MessageRead]
    next_cursor: str | None = None
