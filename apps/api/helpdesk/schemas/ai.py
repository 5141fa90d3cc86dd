"""Schemas for reply suggestions and trace feedback."""

from typing import Any
from uuid import UUID

from pydantic import BaseModel, Field

from helpdesk.schemas.marketplace import ProcessedTicket


class SuggestionRequest(BaseModel):
    ticket_id: UUID


class SuggestionResponse(BaseModel):
    suggestion: str
    run_id: UUID


class FeedbackRequest(BaseModel):
    """Raw feedback against a trace run."""
    run_id: UUID
    key: str = Field(min_length=1, max_length=100)
    score: float | None = None
    comment: str | None = None
    value: Any = None


class ChangeAnalysis(BaseModel):
    type: str
    changes: list[str]


class SuggestionFeedbackRequest(BaseModel):
    run_id: UUID
    original_suggestion: str
    final_message: str
    feedback_text: str | None = None


class SuggestionFeedbackResponse(BaseModel):
    success: bool
    similarity_score: float
    changes: ChangeAnalysis
    trace_url: str | None = None


class ConversationFeedbackRequest(BaseModel):
    run_id: UUID
    original_processed: ProcessedTicket
    final_ticket: ProcessedTicket
    feedback_text: str | None = None


class ConversationFeedbackResponse(BaseModel):
    success: bool
    changes: ChangeAnalysis
    trace_url: str | None = None


class RunUrlResponse(BaseModel):
    run_id: UUID
    url: str
