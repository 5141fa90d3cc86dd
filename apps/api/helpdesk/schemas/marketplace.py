"""Marketplace conversation schemas."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, Field, field_validator

from helpdesk.db.enums import ConversationStatus, TicketPriority


class ConversationCreate(BaseModel):
    raw_content: str = Field(min_length=1)

    @field_validator("raw_content")
    @classmethod
    def content_not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("raw_content must not be blank")
        return v


class ProcessedTicket(BaseModel):
    """Normalised model output: always a valid priority and at most 5 tags."""
    title: str
    description: str
    priority: TicketPriority
    tags: list[str] = Field(default_factory=list, max_length=5)


class ConversationRead(BaseModel):
    id: UUID
    raw_content: str
    processed_content: dict | None = None
    status: ConversationStatus
    error_message: str | None = None
    run_id: UUID | None = None
    ticket_id: UUID | None = None
    created_by_id: UUID
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class ProcessConversationResponse(BaseModel):
    conversation: ConversationRead
    processed: ProcessedTicket
    run_id: UUID


class TicketFromConversation(BaseModel):
    """Human-reviewed fields; omitted fields fall back to the processed output."""
    title: str | None = Field(default=None, min_length=1, max_length=500)
    description: str | None = None
    priority: TicketPriority | None = None
    tags: list[str] | None = Field(default=None, max_length=5)
    customer_id: UUID | None = None
    feedback_text: str | None = None

    @field_validator("title")
    @classmethod
    def title_not_blank(cls, v: str | None) -> str | None:
        if v is not None and not v.strip():
            raise ValueError("title must not be blank")
        return v.strip() if v is not None else v


class LinkTicketRequest(BaseModel):
    ticket_id: UUID
