"""Message service - replies and internal notes on tickets."""

from uuid import UUID

from fastapi import HTTPException
from sqlalchemy.orm import Session, joinedload

from helpdesk.core import cache
from helpdesk.core.deps import is_staff
from helpdesk.db.enums import AuditAction, AuditEntity
from helpdesk.db.models import Message
from helpdesk.schemas.auth import UserSession
from helpdesk.schemas.message import MessageCreate, MessageListResponse, MessageRead
from helpdesk.schemas.ticket import UserRef
from helpdesk.services import audit_service, ticket_service
from helpdesk.utils.pagination import decode_offset_cursor, encode_offset_cursor

DEFAULT_LIMIT = 50
MAX_LIMIT = 100


def to_message_read(message: Message) -> MessageRead:
    author = message.created_by
    return MessageRead(
        id=message.id,
        ticket_id=message.ticket_id,
        content=message.content,
        content_html=message.content_html,
        is_internal=message.is_internal,
        created_by_id=message.created_by_id,
        created_by=UserRef(id=author.id, name=author.name, email=author.email) if author else None,
        created_at=message.created_at,
    )


def create_message(
    db: Session,
    session: UserSession,
    ticket_id: UUID,
    data: MessageCreate,
) -> Message:
    """
    Post a reply or internal note.

    Customers may only post public replies on their own tickets.
    """
    ticket = ticket_service.get_ticket_or_404(db, ticket_id)
    if data.is_internal and not is_staff(session):
        raise HTTPException(status_code=403, detail="Only staff can post internal notes")
    if not ticket_service.can_view_ticket(session, ticket):
        raise HTTPException(status_code=403, detail="Not authorized to post on this ticket")

    content = data.content.strip()
    if not content:
        raise HTTPException(status_code=422, detail="Message content must not be blank")

    message = Message(
        ticket_id=ticket.id,
        content=content,
        content_html=ticket_service.sanitize_html(data.content_html),
        is_internal=data.is_internal,
        created_by_id=session.user_id,
    )
    db.add(message)
    ticket_service.touch_ticket(ticket)
    db.flush()

    audit_service.log_event(
        db,
        action=AuditAction.CREATE,
        entity=AuditEntity.MESSAGE,
        entity_id=message.id,
        user_id=session.user_id,
        new_data={
            "ticket_id": str(ticket.id),
            "is_internal": message.is_internal,
        },
    )
    db.commit()
    db.refresh(message)

    cache.invalidate_ticket_cache()
    cache.invalidate_ticket_detail(ticket.id)
    return message


def list_messages(
    db: Session,
    session: UserSession,
    ticket_id: UUID,
    limit: int = DEFAULT_LIMIT,
    cursor: str | None = None,
) -> MessageListResponse:
    """Newest-first messages; internal notes are never returned to customers."""
    ticket_service.get_visible_ticket(db, session, ticket_id)
    limit = max(1, min(limit, MAX_LIMIT))
    offset = decode_offset_cursor(cursor)

    query = (
        db.query(Message)
        .options(joinedload(Message.created_by))
        .filter(Message.ticket_id == ticket_id)
    )
    if not is_staff(session):
        query = query.filter(Message.is_internal.is_(False))

    rows = (
        query.order_by(Message.created_at.desc(), Message.id.desc())
        .offset(offset)
        .limit(limit + 1)
        .all()
    )
    next_cursor = None
    if len(rows) > limit:
        rows = rows[:limit]
        next_cursor = encode_offset_cursor(offset + limit)

    return MessageListResponse(
        items=[to_message_read(m) for m in rows],
        next_cursor=next_cursor,
    )
