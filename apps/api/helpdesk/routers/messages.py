"""Ticket message (reply / internal note) APIs."""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from helpdesk.core.deps import get_current_session, get_db
from helpdesk.schemas.auth import UserSession
from helpdesk.schemas.message import MessageCreate, MessageListResponse, MessageRead
from helpdesk.services import message_service

router = APIRouter(prefix="/tickets/{ticket_id}/messages", tags=["Messages"])


@router.get("", response_model=MessageListResponse)
def list_messages(
    ticket_id: UUID,
    limit: Annotated[int, Query(ge=1, le=100)] = 50,
    cursor: str | None = None,
    db: Session = Depends(get_db),
    session: UserSession = Depends(get_current_session),
) -> MessageListResponse:
    """Newest first; internal notes are omitted for customers."""
    return message_service.list_messages(db, session, ticket_id, limit=limit, cursor=cursor)


@router.post("", response_model=MessageRead, status_code=201)
def create_message(
    ticket_id: UUID,
    body: MessageCreate,
    db: Session = Depends(get_db),
    session: UserSession = Depends(get_current_session),
) -> MessageRead:
    message = message_service.create_message(db, session, ticket_id, body)
    return message_service.to_message_read(message)
