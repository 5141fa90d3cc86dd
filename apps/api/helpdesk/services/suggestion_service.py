"""Reply suggestions and human-feedback capture for AI traces."""

import logging
from typing import Any
from uuid import UUID

from fastapi import HTTPException
from sqlalchemy.orm import Session

from helpdesk.core.config import settings
from helpdesk.core.deps import require_staff
from helpdesk.db.models import MarketplaceConversation, Message, Ticket
from helpdesk.schemas.ai import (
    ChangeAnalysis,
    ConversationFeedbackResponse,
    SuggestionFeedbackResponse,
    SuggestionResponse,
)
from helpdesk.schemas.auth import UserSession
from helpdesk.services import ticket_service
from helpdesk.services.ai_prompt_registry import get_prompt
from helpdesk.services.ai_provider import (
    AIProvider,
    AIProviderError,
    AIProviderNotConfigured,
    ChatMessage,
)
from helpdesk.services.tracing_service import Tracer

logger = logging.getLogger(__name__)

SUGGESTION_FEEDBACK_KEY = "suggestion_quality"
SUGGESTION_DATASET = "suggestion_examples"
CONVERSATION_DATASET = "conversation_examples"
REWORDING_THRESHOLD = 0.8

SIMILAR_TICKET_LIMIT = 3
SIMILAR_MESSAGE_TICKET_LIMIT = 10
SIMILAR_MESSAGE_LIMIT = 5
STYLE_EXAMPLE_LIMIT = 10


# =============================================================================
# Change analysis
# =============================================================================

def calculate_similarity(text1: str, text2: str) -> float:
    """Jaccard similarity over lowercased whitespace-separated words."""
    words1 = set(text1.lower().split())
    words2 = set(text2.lower().split())
    union = words1 | words2
    if not union:
        return 1.0
    return len(words1 & words2) / len(union)


def analyze_changes(original: str, final: str) -> ChangeAnalysis:
    """Classify how a human edited a suggested reply."""
    changes: list[str] = []

    if len(final) != len(original):
        changes.append("content_added" if len(final) > len(original) else "content_removed")

    if len(final.split()) != len(original.split()):
        changes.append("length_modified")

    if calculate_similarity(original, final) < REWORDING_THRESHOLD:
        changes.append("significant_rewording")

    return ChangeAnalysis(
        type="major_revision" if "significant_rewording" in changes else "style_improvement",
        changes=changes,
    )


def analyze_ticket_changes(original: dict[str, Any], final: dict[str, Any]) -> ChangeAnalysis:
    """Classify how a human edited an extracted ticket draft."""
    changes: list[str] = []
    if original.get("title") != final.get("title"):
        changes.append("title_modified")
    if original.get("description") != final.get("description"):
        changes.append("description_modified")
    if original.get("priority") != final.get("priority"):
        changes.append("priority_changed")
    if sorted(original.get("tags") or []) != sorted(final.get("tags") or []):
        changes.append("tags_modified")
    return ChangeAnalysis(type="ticket_modification", changes=changes)


# =============================================================================
# Feedback
# =============================================================================

def _record_feedback_tree(
    tracer: Tracer,
    name: str,
    pipeline_inputs: dict[str, Any],
    modification_inputs: dict[str, Any],
    modification_outputs: dict[str, Any],
    pipeline_outputs: dict[str, Any],
    parent_run_id: UUID | None = None,
) -> UUID:
    """Pipeline run with one 'User Modification' tool child; returns the pipeline id."""
    pipeline_id = tracer.start_run(name, pipeline_inputs, parent_run_id=parent_run_id)
    child_id = tracer.start_run(
        "User Modification",
        modification_inputs,
        run_type="tool",
        parent_run_id=pipeline_id,
    )
    tracer.end_run(child_id, outputs=modification_outputs)
    tracer.end_run(pipeline_id, outputs=pipeline_outputs)
    return pipeline_id


def provide_suggestion_feedback(
    tracer: Tracer,
    run_id: UUID,
    original_suggestion: str,
    final_message: str,
    feedback_text: str | None = None,
) -> SuggestionFeedbackResponse:
    """
    Record how the agent edited a suggestion.

    Every edit counts as positive signal (score 1); the similarity and
    change summary ride along as the feedback value.
    """
    similarity = calculate_similarity(original_suggestion, final_message)
    changes = analyze_changes(original_suggestion, final_message)
    changes_dict = changes.model_dump()

    recorded = tracer.create_feedback(
        run_id,
        SUGGESTION_FEEDBACK_KEY,
        score=1,
        value={
            "similarity_score": similarity,
            "changes_summary": changes_dict,
            "modification_type": changes.type,
        },
        comment=feedback_text,
    )

    pipeline_id = _record_feedback_tree(
        tracer,
        "Suggestion Feedback",
        pipeline_inputs={"original_suggestion": original_suggestion},
        modification_inputs={"original": original_suggestion, "feedback": feedback_text},
        modification_outputs={"modified": final_message, "changes": changes_dict},
        pipeline_outputs={
            "final_message": final_message,
            "feedback_provided": feedback_text,
            "changes_summary": changes_dict,
        },
    )
    tracer.store_example(
        SUGGESTION_DATASET,
        "High quality suggestion examples with feedback",
        inputs={"original": original_suggestion},
        outputs={"improved": final_message},
        metadata={"feedback": feedback_text, "changes": changes_dict},
    )

    return SuggestionFeedbackResponse(
        success=recorded,
        similarity_score=similarity,
        changes=changes,
        trace_url=tracer.get_run_url(pipeline_id) if tracer.enabled else None,
    )


def provide_conversation_feedback(
    tracer: Tracer,
    run_id: UUID,
    original_processed: dict[str, Any],
    final_ticket: dict[str, Any],
    feedback_text: str | None = None,
) -> ConversationFeedbackResponse:
    """Record human edits of an extracted ticket as children of the extraction run."""
    changes = analyze_ticket_changes(original_processed, final_ticket)
    changes_dict = changes.model_dump()

    pipeline_id = _record_feedback_tree(
        tracer,
        "Conversation Processing Feedback",
        pipeline_inputs={"original_processed": original_processed},
        modification_inputs={"original": original_processed, "feedback": feedback_text},
        modification_outputs={"modified": final_ticket, "changes": changes_dict},
        pipeline_outputs={"final_ticket": final_ticket, "feedback_provided": feedback_text},
        parent_run_id=run_id,
    )
    stored = tracer.store_example(
        CONVERSATION_DATASET,
        "High quality conversation processing examples with feedback",
        inputs={"original": original_processed},
        outputs={"improved": final_ticket},
        metadata={"feedback": feedback_text, "changes": changes_dict},
    )

    return ConversationFeedbackResponse(
        success=stored,
        changes=changes,
        trace_url=tracer.get_run_url(pipeline_id) if tracer.enabled else None,
    )


# =============================================================================
# Suggestion context
# =============================================================================

def _similar_tickets(db: Session, ticket: Ticket, limit: int) -> list[Ticket]:
    """Newest tickets sharing at least one tag, excluding `ticket`."""
    tags = set(ticket.tags or [])
    if not tags:
        return []
    candidates = (
        db.query(Ticket)
        .filter(Ticket.id != ticket.id)
        .order_by(Ticket.created_at.desc(), Ticket.id.desc())
        .all()
    )
    return [t for t in candidates if tags.intersection(t.tags or [])][:limit]


def _format_messages(messages: list[Message], ticket: Ticket) -> str:
    lines = []
    for m in messages:
        if m.is_internal:
            prefix = "[INTERNAL] "
        elif m.created_by_id == ticket.created_by_id:
            prefix = "Buyer: "
        else:
            prefix = "Seller: "
        lines.append(f"{prefix}{m.content}")
    return "\n\n".join(lines)


def _format_similar_tickets(tickets: list[Ticket]) -> str:
    return "\n\n".join(
        f"Title: {t.title}\n"
        f"Description: {t.description}\n"
        f"Tags: {', '.join(t.tags or [])}\n"
        f"Status: {t.status.value}\n"
        f"Priority: {t.priority.value}"
        for t in tickets
    )


def build_suggestion_context(db: Session, ticket: Ticket) -> dict[str, str]:
    """Template variables for the reply_suggestion prompt."""
    messages = (
        db.query(Message)
        .filter(Message.ticket_id == ticket.id)
        .order_by(Message.created_at.asc(), Message.id.asc())
        .all()
    )
    conversation = (
        db.query(MarketplaceConversation)
        .filter(MarketplaceConversation.ticket_id == ticket.id)
        .order_by(MarketplaceConversation.created_at.desc())
        .first()
    )

    similar = _similar_tickets(db, ticket, SIMILAR_TICKET_LIMIT)
    related_ids = [t.id for t in _similar_tickets(db, ticket, SIMILAR_MESSAGE_TICKET_LIMIT)]
    similar_messages: list[Message] = []
    if related_ids:
        similar_messages = (
            db.query(Message)
            .filter(Message.ticket_id.in_(related_ids), Message.is_internal.is_(False))
            .order_by(Message.created_at.desc())
            .limit(SIMILAR_MESSAGE_LIMIT)
            .all()
        )
    style_examples = (
        db.query(Message)
        .filter(Message.is_internal.is_(False))
        .order_by(Message.created_at.desc())
        .limit(STYLE_EXAMPLE_LIMIT)
        .all()
    )

    return {
        "ticket_title": ticket.title,
        "ticket_description": ticket.description,
        "ticket_status": ticket.status.value,
        "ticket_priority": ticket.priority.value,
        "ticket_tags": ", ".join(ticket.tags or []),
        "messages": _format_messages(messages, ticket),
        "marketplace_conversation": (
            conversation.raw_content if conversation else "No marketplace conversation available"
        ),
        "similar_tickets": _format_similar_tickets(similar) or "No similar tickets available",
        "similar_messages": (
            "\n\n".join(m.content for m in similar_messages) or "No similar messages available"
        ),
        "seller_style": (
            "\n\n".join(m.content for m in style_examples) or "No seller style examples available"
        ),
    }


async def generate_message_suggestion(
    db: Session,
    session: UserSession,
    provider: AIProvider | None,
    tracer: Tracer,
    ticket_id: UUID,
) -> SuggestionResponse:
    """Draft a seller reply for a ticket (staff only)."""
    require_staff(session)
    ticket = ticket_service.get_ticket_or_404(db, ticket_id)
    if provider is None:
        raise HTTPException(status_code=503, detail="AI provider is not configured")

    context = build_suggestion_context(db, ticket)
    prompt = get_prompt("reply_suggestion")

    run_id = tracer.start_run(
        "generate_message_suggestion",
        {
            "ticket_id": str(ticket.id),
            "ticket_status": context["ticket_status"],
            "ticket_priority": context["ticket_priority"],
            "ticket_tags": list(ticket.tags or []),
            "prompt_version": prompt.version,
        },
    )
    try:
        response = await provider.chat(
            [
                ChatMessage(role="system", content=prompt.system),
                ChatMessage(role="user", content=prompt.render_user(**context)),
            ],
            temperature=settings.AI_TEMPERATURE,
        )
    except AIProviderNotConfigured as e:
        tracer.end_run(run_id, error=str(e))
        raise HTTPException(status_code=503, detail="AI provider is not configured")
    except AIProviderError as e:
        tracer.end_run(run_id, error=str(e))
        logger.warning(f"Suggestion generation failed for ticket {ticket.id}: {e}")
        raise HTTPException(status_code=502, detail="AI provider request failed")

    suggestion = response.content.strip()
    tracer.end_run(run_id, outputs={"suggestion": suggestion, "model": response.model})
    return SuggestionResponse(suggestion=suggestion, run_id=run_id)
