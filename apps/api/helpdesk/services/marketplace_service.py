"""Marketplace pipeline - pasted chat transcript -> AI ticket draft -> ticket."""

import logging
from uuid import UUID

from fastapi import HTTPException
from sqlalchemy.orm import Session

from helpdesk.core.config import settings
from helpdesk.core.deps import require_staff
from helpdesk.db.enums import (
    ROLES_CAN_PROCESS_ANY_CONVERSATION,
    AuditAction,
    AuditEntity,
    ConversationStatus,
)
from helpdesk.db.models import MarketplaceConversation, Ticket
from helpdesk.schemas.auth import UserSession
from helpdesk.schemas.marketplace import (
    ConversationCreate,
    ConversationRead,
    ProcessConversationResponse,
    ProcessedTicket,
    TicketFromConversation,
)
from helpdesk.schemas.ticket import TicketCreate
from helpdesk.services import audit_service, suggestion_service, ticket_service
from helpdesk.services.ai_prompt_registry import get_prompt
from helpdesk.services.ai_provider import (
    AIProvider,
    AIProviderError,
    AIProviderNotConfigured,
    ChatMessage,
)
from helpdesk.services.ai_response_validation import (
    coerce_processed_ticket,
    parse_json_object,
)
from helpdesk.services.tracing_service import Tracer

logger = logging.getLogger(__name__)

AUDIT_FIELDS = ("status", "run_id", "ticket_id", "error_message")


def to_conversation_read(conversation: MarketplaceConversation) -> ConversationRead:
    return ConversationRead.model_validate(conversation)


def _get_conversation_or_404(db: Session, conversation_id: UUID) -> MarketplaceConversation:
    conversation = db.get(MarketplaceConversation, conversation_id)
    if not conversation:
        raise HTTPException(status_code=404, detail="Conversation not found")
    return conversation


def _require_processor(session: UserSession, conversation: MarketplaceConversation) -> None:
    if conversation.created_by_id == session.user_id:
        return
    if session.role in ROLES_CAN_PROCESS_ANY_CONVERSATION:
        return
    raise HTTPException(status_code=403, detail="Not authorized to process this conversation")


def _log_conversation_update(
    db: Session,
    session: UserSession,
    conversation: MarketplaceConversation,
    before: dict,
) -> None:
    audit_service.log_update(
        db,
        entity=AuditEntity.MARKETPLACE_CONVERSATION,
        entity_id=conversation.id,
        user_id=session.user_id,
        before=before,
        after=audit_service.snapshot(conversation, AUDIT_FIELDS),
    )


# =============================================================================
# Create / read
# =============================================================================

def create_conversation(
    db: Session,
    session: UserSession,
    data: ConversationCreate,
) -> MarketplaceConversation:
    """Store a pasted transcript as PENDING."""
    require_staff(session)

    conversation = MarketplaceConversation(
        raw_content=data.raw_content,
        status=ConversationStatus.PENDING,
        created_by_id=session.user_id,
    )
    db.add(conversation)
    db.flush()

    audit_service.log_event(
        db,
        action=AuditAction.CREATE,
        entity=AuditEntity.MARKETPLACE_CONVERSATION,
        entity_id=conversation.id,
        user_id=session.user_id,
        new_data=audit_service.snapshot(conversation, AUDIT_FIELDS),
    )
    db.commit()
    db.refresh(conversation)

    logger.info(f"Marketplace conversation {conversation.id} created by {session.user_id}")
    return conversation


def get_conversation(
    db: Session,
    session: UserSession,
    conversation_id: UUID,
) -> MarketplaceConversation:
    require_staff(session)
    return _get_conversation_or_404(db, conversation_id)


# =============================================================================
# Processing
# =============================================================================

def _mark_error(
    db: Session,
    session: UserSession,
    conversation: MarketplaceConversation,
    message: str,
) -> None:
    before = audit_service.snapshot(conversation, AUDIT_FIELDS)
    conversation.status = ConversationStatus.ERROR
    conversation.error_message = message
    _log_conversation_update(db, session, conversation, before)
    db.commit()


async def process_conversation(
    db: Session,
    session: UserSession,
    provider: AIProvider | None,
    tracer: Tracer,
    conversation_id: UUID,
) -> ProcessConversationResponse:
    """
    Run the extraction prompt over a stored transcript.

    The model output is always clamped into a valid ticket draft, so
    a garbage response still completes. Provider failures leave the
    conversation in ERROR and surface as 502.
    """
    require_staff(session)
    conversation = _get_conversation_or_404(db, conversation_id)
    _require_processor(session, conversation)
    if provider is None:
        raise HTTPException(status_code=503, detail="AI provider is not configured")

    before = audit_service.snapshot(conversation, AUDIT_FIELDS)
    conversation.status = ConversationStatus.PROCESSING
    conversation.error_message = None
    _log_conversation_update(db, session, conversation, before)
    db.commit()

    prompt = get_prompt("marketplace_extract")
    parent_run_id = tracer.start_run(
        "process_marketplace_conversation",
        {
            "conversation_id": str(conversation.id),
            "content_length": len(conversation.raw_content),
            "prompt_version": prompt.version,
        },
    )
    child_run_id = tracer.start_run(
        "process_content",
        {"prompt_key": prompt.key},
        run_type="llm",
        parent_run_id=parent_run_id,
    )

    try:
        response = await provider.chat(
            [
                ChatMessage(role="system", content=prompt.system),
                ChatMessage(
                    role="user",
                    content=prompt.render_user(conversation=conversation.raw_content),
                ),
            ],
            temperature=settings.AI_TEMPERATURE,
            json_output=True,
        )
    except AIProviderError as e:
        tracer.end_run(child_run_id, error=str(e))
        tracer.end_run(parent_run_id, error=str(e))
        _mark_error(db, session, conversation, str(e))
        logger.warning(f"Conversation {conversation.id} processing failed: {e}")
        if isinstance(e, AIProviderNotConfigured):
            raise HTTPException(status_code=503, detail="AI provider is not configured")
        raise HTTPException(status_code=502, detail="AI provider request failed")

    parsed = parse_json_object(response.content)
    if parsed is None:
        logger.warning(f"Conversation {conversation.id}: model returned no JSON object")
    processed = ProcessedTicket(**coerce_processed_ticket(parsed, conversation.raw_content))
    tracer.end_run(
        child_run_id,
        outputs={"model": response.model, "parsed": parsed is not None},
    )

    before = audit_service.snapshot(conversation, AUDIT_FIELDS)
    conversation.processed_content = processed.model_dump(mode="json")
    conversation.status = ConversationStatus.COMPLETED
    conversation.run_id = parent_run_id
    _log_conversation_update(db, session, conversation, before)
    db.commit()
    db.refresh(conversation)

    tracer.end_run(parent_run_id, outputs={"processed": processed.model_dump(mode="json")})

    return ProcessConversationResponse(
        conversation=to_conversation_read(conversation),
        processed=processed,
        run_id=parent_run_id,
    )


# =============================================================================
# Ticket creation / linking
# =============================================================================

def create_ticket_from_conversation(
    db: Session,
    session: UserSession,
    tracer: Tracer,
    conversation_id: UUID,
    edits: TicketFromConversation,
) -> Ticket:
    """
    Create a ticket from the processed draft plus any human edits.

    When the final fields differ from the model's draft the difference
    is recorded as feedback on the extraction trace.
    """
    require_staff(session)
    conversation = _get_conversation_or_404(db, conversation_id)
    _require_processor(session, conversation)
    if conversation.status != ConversationStatus.COMPLETED or not conversation.processed_content:
        raise HTTPException(status_code=400, detail="Conversation has not been processed")
    if conversation.ticket_id:
        raise HTTPException(status_code=409, detail="Conversation is already linked to a ticket")

    original = ProcessedTicket(**conversation.processed_content)
    final = ProcessedTicket(
        title=edits.title if edits.title is not None else original.title,
        description=edits.description if edits.description is not None else original.description,
        priority=edits.priority or original.priority,
        tags=edits.tags if edits.tags is not None else original.tags,
    )

    ticket = ticket_service.create_ticket(
        db,
        session,
        TicketCreate(
            title=final.title,
            description=final.description,
            priority=final.priority,
            tags=final.tags,
            customer_id=edits.customer_id,
        ),
    )

    before = audit_service.snapshot(conversation, AUDIT_FIELDS)
    conversation.ticket_id = ticket.id
    _log_conversation_update(db, session, conversation, before)
    db.commit()

    original_data = original.model_dump(mode="json")
    final_data = final.model_dump(mode="json")
    if conversation.run_id and original_data != final_data:
        suggestion_service.provide_conversation_feedback(
            tracer,
            conversation.run_id,
            original_data,
            final_data,
            edits.feedback_text,
        )

    return ticket


def link_ticket(
    db: Session,
    session: UserSession,
    conversation_id: UUID,
    ticket_id: UUID,
) -> MarketplaceConversation:
    """Attach an existing ticket; only the conversation's creator may do this."""
    require_staff(session)
    conversation = _get_conversation_or_404(db, conversation_id)
    if conversation.created_by_id != session.user_id:
        raise HTTPException(status_code=403, detail="Only the conversation's creator can link it")
    ticket_service.get_ticket_or_404(db, ticket_id)

    before = audit_service.snapshot(conversation, AUDIT_FIELDS)
    conversation.ticket_id = ticket_id
    _log_conversation_update(db, session, conversation, before)
    db.commit()
    db.refresh(conversation)
    return conversation
