"""Ticket create/list/detail/update APIs."""

from uuid import UUID

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from helpdesk.core.deps import get_current_session, get_db
from helpdesk.schemas.auth import UserSession
from helpdesk.schemas.ticket import (
    TicketCreate,
    TicketListParams,
    TicketListResponse,
    TicketRead,
    TicketUpdate,
)
from helpdesk.schemas.user import AssignableUser
from helpdesk.services import ticket_service

router = APIRouter(prefix="/tickets", tags=["Tickets"])


@router.post("", response_model=TicketRead, status_code=201)
def create_ticket(
    body: TicketCreate,
    db: Session = Depends(get_db),
    session: UserSession = Depends(get_current_session),
) -> TicketRead:
    ticket = ticket_service.create_ticket(db, session, body)
    return ticket_service.to_ticket_read(ticket)


@router.post("/search", response_model=TicketListResponse)
def list_tickets(
    params: TicketListParams,
    db: Session = Depends(get_db),
    session: UserSession = Depends(get_current_session),
) -> TicketListResponse:
    """
    Filtered, sorted, cursor-paginated ticket list.

    Takes a JSON body because sort criteria are an ordered list of objects.
    """
    return ticket_service.list_tickets(db, session, params)


@router.get("/tags", response_model=list[str])
def list_tags(
    db: Session = Depends(get_db),
    session: UserSession = Depends(get_current_session),
) -> list[str]:
    return ticket_service.get_all_tags(db, session)


@router.get("/{ticket_id}", response_model=TicketRead)
def get_ticket(
    ticket_id: UUID,
    db: Session = Depends(get_db),
    session: UserSession = Depends(get_current_session),
) -> TicketRead:
    return ticket_service.get_ticket(db, session, ticket_id)


@router.patch("/{ticket_id}", response_model=TicketRead)
def update_ticket(
    ticket_id: UUID,
    body: TicketUpdate,
    db: Session = Depends(get_db),
    session: UserSession = Depends(get_current_session),
) -> TicketRead:
    ticket = ticket_service.update_ticket(db, session, ticket_id, body)
    return ticket_service.to_ticket_read(ticket)


@router.get("/{ticket_id}/assignable-users", response_model=list[AssignableUser])
def list_assignable_users(
    ticket_id: UUID,
    db: Session = Depends(get_db),
    session: UserSession = Depends(get_current_session),
) -> list[AssignableUser]:
    """Staff ordered by role then name, followed by the ticket's customer."""
    return ticket_service.get_assignable_users(db, session, ticket_id)
