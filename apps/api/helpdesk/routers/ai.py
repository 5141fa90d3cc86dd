"""AI router - reply suggestions and trace feedback."""

from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy.orm import Session

from helpdesk.core.deps import get_ai_provider, get_current_session, get_db, require_staff
from helpdesk.core.rate_limit import AI_LIMIT, limiter
from helpdesk.schemas.ai import (
    ConversationFeedbackRequest,
    ConversationFeedbackResponse,
    FeedbackRequest,
    RunUrlResponse,
    SuggestionFeedbackRequest,
    SuggestionFeedbackResponse,
    SuggestionRequest,
    SuggestionResponse,
)
from helpdesk.schemas.auth import UserSession
from helpdesk.services import suggestion_service
from helpdesk.services.ai_provider import AIProvider
from helpdesk.services.tracing_service import Tracer, get_tracer

router = APIRouter(prefix="/ai", tags=["AI"])


@router.post("/suggestions", response_model=SuggestionResponse)
@limiter.limit(AI_LIMIT)
async def generate_suggestion(
    request: Request,  # Required by limiter
    body: SuggestionRequest,
    db: Session = Depends(get_db),
    session: UserSession = Depends(get_current_session),
    provider: AIProvider | None = Depends(get_ai_provider),
    tracer: Tracer = Depends(get_tracer),
) -> SuggestionResponse:
    """Draft a seller reply for a ticket from its conversation and similar tickets."""
    return await suggestion_service.generate_message_suggestion(
        db, session, provider, tracer, body.ticket_id
    )


@router.post("/feedback")
def create_feedback(
    body: FeedbackRequest,
    session: UserSession = Depends(get_current_session),
    tracer: Tracer = Depends(get_tracer),
) -> dict:
    """Attach raw feedback to a trace run."""
    require_staff(session)
    success = tracer.create_feedback(
        body.run_id,
        body.key,
        score=body.score,
        value=body.value,
        comment=body.comment,
    )
    return {"success": success}


@router.post("/feedback/suggestion", response_model=SuggestionFeedbackResponse)
def suggestion_feedback(
    body: SuggestionFeedbackRequest,
    session: UserSession = Depends(get_current_session),
    tracer: Tracer = Depends(get_tracer),
) -> SuggestionFeedbackResponse:
    """Record how the agent edited a suggested reply before sending it."""
    require_staff(session)
    return suggestion_service.provide_suggestion_feedback(
        tracer,
        body.run_id,
        body.original_suggestion,
        body.final_message,
        body.feedback_text,
    )


@router.post("/feedback/conversation", response_model=ConversationFeedbackResponse)
def conversation_feedback(
    body: ConversationFeedbackRequest,
    session: UserSession = Depends(get_current_session),
    tracer: Tracer = Depends(get_tracer),
) -> ConversationFeedbackResponse:
    """Record how the agent edited an extracted ticket draft."""
    require_staff(session)
    return suggestion_service.provide_conversation_feedback(
        tracer,
        body.run_id,
        body.original_processed.model_dump(mode="json"),
        body.final_ticket.model_dump(mode="json"),
        body.feedback_text,
    )


@router.get("/runs/{run_id}/url", response_model=RunUrlResponse)
def get_run_url(
    run_id: UUID,
    session: UserSession = Depends(get_current_session),
    tracer: Tracer = Depends(get_tracer),
) -> RunUrlResponse:
    require_staff(session)
    url = tracer.read_run_url(run_id)
    if not url:
        raise HTTPException(status_code=404, detail="Run not found")
    return RunUrlResponse(run_id=run_id, url=url)
