"""Ticket-related Pydantic schemas."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, Field, field_validator

from helpdesk.db.enums import SortField, SortOrder, TicketPriority, TicketStatus


class UserRef(BaseModel):
    id: UUID
    name: str | None = None
    email: str | None = None


class LastUpdatedBy(BaseModel):
    """Actor of the most recent audit row for a ticket (nulls when unknown)."""
    name: str | None = None
    email: str | None = None


class TicketCreate(BaseModel):
    title: str = Field(min_length=1, max_length=500)
    description: str = ""
    description_html: str = ""
    priority: TicketPriority = TicketPriority.MEDIUM
    tags: list[str] = Field(default_factory=list)
    customer_id: UUID | None = None

    @field_validator("title")
    @classmethod
    def title_not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("title must not be blank")
        return v.strip()


class TicketUpdate(BaseModel):
    """
    Partial update.

    Omitted fields are left unchanged; `assigned_to_id: null` unassigns.
    """
    title: str | None = Field(default=None, min_length=1, max_length=500)
    description: str | None = None
    description_html: str | None = None
    status: TicketStatus | None = None
    priority: TicketPriority | None = None
    assigned_to_id: UUID | None = None
    tags: list[str] | None = None


class SortCriterion(BaseModel):
    field: SortField
    order: SortOrder = SortOrder.DESC


def _default_sort() -> list[SortCriterion]:
    return [
        SortCriterion(field=SortField.PRIORITY, order=SortOrder.DESC),
        SortCriterion(field=SortField.UPDATED_AT, order=SortOrder.DESC),
    ]


class TicketListParams(BaseModel):
    """Filter, sort and pagination inputs for the ticket list."""
    limit: int = Field(default=10, ge=1, le=100)
    cursor: str | None = None
    status: list[TicketStatus] = Field(default_factory=list)
    priority: list[TicketPriority] = Field(default_factory=list)
    assigned_to_id: UUID | None = None
    customer_id: UUID | None = None
    assigned_to_me: bool = False
    show_completed: bool | None = None
    tags: list[str] = Field(default_factory=list)
    include_untagged: bool = False
    sort_criteria: list[SortCriterion] = Field(default_factory=_default_sort)


class TicketListItem(BaseModel):
    """Ticket list row."""
    id: UUID
    title: str
    description: str
    status: TicketStatus
    priority: TicketPriority
    tags: list[str]
    customer_id: UUID
    created_by_id: UUID
    assigned_to_id: UUID | None = None
    created_by: UserRef | None = None
    assigned_to: UserRef | None = None
    message_count: int = 0
    last_updated_by: LastUpdatedBy = Field(default_factory=LastUpdatedBy)
    test_batch_id: str | None = None
    created_at: datetime
    updated_at: datetime


class TicketListResponse(BaseModel):
    """Ticket list response with cursor pagination."""
    items: list[TicketListItem]
    next_cursor: str | None = None


class TicketRead(BaseModel):
    """Ticket detail."""
    id: UUID
    title: str
    description: str
    description_html: str
    status: TicketStatus
    priority: TicketPriority
    tags: list[str]
    metadata: dict | None = None
    customer_id: UUID
    created_by_id: UUID
    assigned_to_id: UUID | None = None
    customer: UserRef | None = None
    created_by: UserRef | None = None
    assigned_to: UserRef | None = None
    test_batch_id: str | None = None
    cleanup_at: datetime | None = None
    created_at: datetime
    updated_at: datetime
