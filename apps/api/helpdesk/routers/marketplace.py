"""Marketplace conversation APIs (transcript upload, AI processing, ticket creation)."""

from uuid import UUID

from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session

from helpdesk.core.deps import get_ai_provider, get_current_session, get_db
from helpdesk.core.rate_limit import AI_LIMIT, limiter
from helpdesk.schemas.auth import UserSession
from helpdesk.schemas.marketplace import (
    ConversationCreate,
    ConversationRead,
    LinkTicketRequest,
    ProcessConversationResponse,
    TicketFromConversation,
)
from helpdesk.schemas.ticket import TicketRead
from helpdesk.services import marketplace_service, ticket_service
from helpdesk.services.ai_provider import AIProvider
from helpdesk.services.tracing_service import Tracer, get_tracer

router = APIRouter(prefix="/marketplace", tags=["Marketplace"])


@router.post("/conversations", response_model=ConversationRead, status_code=201)
def create_conversation(
    body: ConversationCreate,
    db: Session = Depends(get_db),
    session: UserSession = Depends(get_current_session),
) -> ConversationRead:
    conversation = marketplace_service.create_conversation(db, session, body)
    return marketplace_service.to_conversation_read(conversation)


@router.get("/conversations/{conversation_id}", response_model=ConversationRead)
def get_conversation(
    conversation_id: UUID,
    db: Session = Depends(get_db),
    session: UserSession = Depends(get_current_session),
) -> ConversationRead:
    conversation = marketplace_service.get_conversation(db, session, conversation_id)
    return marketplace_service.to_conversation_read(conversation)


@router.post(
    "/conversations/{conversation_id}/process",
    response_model=ProcessConversationResponse,
)
@limiter.limit(AI_LIMIT)
async def process_conversation(
    request: Request,  # Required by limiter
    conversation_id: UUID,
    db: Session = Depends(get_db),
    session: UserSession = Depends(get_current_session),
    provider: AIProvider | None = Depends(get_ai_provider),
    tracer: Tracer = Depends(get_tracer),
) -> ProcessConversationResponse:
    """Extract a ticket draft from the stored transcript."""
    return await marketplace_service.process_conversation(
        db, session, provider, tracer, conversation_id
    )


@router.post(
    "/conversations/{conversation_id}/ticket",
    response_model=TicketRead,
    status_code=201,
)
def create_ticket_from_conversation(
    conversation_id: UUID,
    body: TicketFromConversation,
    db: Session = Depends(get_db),
    session: UserSession = Depends(get_current_session),
    tracer: Tracer = Depends(get_tracer),
) -> TicketRead:
    """Create a ticket from the processed draft, with optional human edits."""
    ticket = marketplace_service.create_ticket_from_conversation(
        db, session, tracer, conversation_id, body
    )
    return ticket_service.to_ticket_read(ticket)


@router.post("/conversations/{conversation_id}/link", response_model=ConversationRead)
def link_ticket(
    conversation_id: UUID,
    body: LinkTicketRequest,
    db: Session = Depends(get_db),
    session: UserSession = Depends(get_current_session),
) -> ConversationRead:
    conversation = marketplace_service.link_ticket(db, session, conversation_id, body.ticket_id)
    return marketplace_service.to_conversation_read(conversation)
