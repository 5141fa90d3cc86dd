"""Ticket service - create, list (filter/sort/paginate), detail, update.

Every write follows the same order: permission check, data change,
audit row in the same transaction, commit, cache invalidation.
"""

import logging
from datetime import datetime, timezone
from typing import Iterable
from uuid import UUID

import nh3
from fastapi import HTTPException
from sqlalchemy import func, or_
from sqlalchemy.orm import Session

from helpdesk.core import cache
from helpdesk.core.deps import is_staff, require_staff
from helpdesk.db.enums import (
    PRIORITY_RANK,
    STAFF_ROLES,
    AuditAction,
    AuditEntity,
    SortField,
    SortOrder,
    TicketStatus,
)
from helpdesk.db.models import Message, Ticket, User
from helpdesk.schemas.auth import UserSession
from helpdesk.schemas.ticket import (
    LastUpdatedBy,
    SortCriterion,
    TicketCreate,
    TicketListItem,
    TicketListParams,
    TicketListResponse,
    TicketRead,
    TicketUpdate,
    UserRef,
)
from helpdesk.schemas.user import AssignableUser
from helpdesk.services import audit_service
from helpdesk.utils.normalization import normalize_tags
from helpdesk.utils.pagination import slice_page

logger = logging.getLogger(__name__)

# Allowed HTML tags for rich text descriptions and replies
ALLOWED_TAGS = {"p", "br", "strong", "em", "u", "s", "ul", "ol", "li", "a", "blockquote", "h1", "h2", "h3", "code", "pre"}
ALLOWED_ATTRIBUTES = {"a": {"href", "target"}}

AUDIT_FIELDS = (
    "title",
    "description",
    "description_html",
    "status",
    "priority",
    "customer_id",
    "assigned_to_id",
    "tags",
)

# Fields a CUSTOMER may not change on their own ticket
STAFF_ONLY_FIELDS = {"status", "priority", "assigned_to_id", "tags"}


def sanitize_html(html: str | None) -> str:
    """Sanitize HTML to prevent XSS, allowing only safe rich text tags."""
    if not html:
        return ""
    return nh3.clean(html, tags=ALLOWED_TAGS, attributes=ALLOWED_ATTRIBUTES)


def _as_utc(value: datetime | None) -> datetime:
    # SQLite hands back naive datetimes
    if value is None:
        return datetime.min.replace(tzinfo=timezone.utc)
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


# =============================================================================
# Access helpers
# =============================================================================

def can_view_ticket(session: UserSession, ticket: Ticket) -> bool:
    """Staff see every ticket; customers only their own."""
    if is_staff(session):
        return True
    return session.user_id in (ticket.customer_id, ticket.created_by_id)


def get_ticket_or_404(db: Session, ticket_id: UUID) -> Ticket:
    ticket = db.get(Ticket, ticket_id)
    if not ticket:
        raise HTTPException(status_code=404, detail="Ticket not found")
    return ticket


def get_visible_ticket(db: Session, session: UserSession, ticket_id: UUID) -> Ticket:
    """Load a ticket and enforce visibility (404 then 403)."""
    ticket = get_ticket_or_404(db, ticket_id)
    if not can_view_ticket(session, ticket):
        raise HTTPException(status_code=403, detail="Not authorized to access this ticket")
    return ticket


def _validate_assignee(db: Session, user_id: UUID) -> User:
    assignee = db.get(User, user_id)
    if not assignee:
        raise HTTPException(status_code=422, detail="Assignee not found")
    if assignee.role not in STAFF_ROLES:
        raise HTTPException(status_code=422, detail="Assignee must be a staff user")
    return assignee


# =============================================================================
# Converters
# =============================================================================

def _user_ref(user: User | None) -> UserRef | None:
    if not user:
        return None
    return UserRef(id=user.id, name=user.name, email=user.email)


def to_ticket_read(ticket: Ticket) -> TicketRead:
    return TicketRead(
        id=ticket.id,
        title=ticket.title,
        description=ticket.description,
        description_html=ticket.description_html,
        status=ticket.status,
        priority=ticket.priority,
        tags=list(ticket.tags or []),
        metadata=ticket.ticket_metadata,
        customer_id=ticket.customer_id,
        created_by_id=ticket.created_by_id,
        assigned_to_id=ticket.assigned_to_id,
        customer=_user_ref(ticket.customer),
        created_by=_user_ref(ticket.created_by),
        assigned_to=_user_ref(ticket.assigned_to),
        test_batch_id=ticket.test_batch_id,
        cleanup_at=ticket.cleanup_at,
        created_at=ticket.created_at,
        updated_at=ticket.updated_at,
    )


def to_list_item(
    ticket: Ticket,
    message_count: int = 0,
    last_actor: User | None = None,
) -> TicketListItem:
    return TicketListItem(
        id=ticket.id,
        title=ticket.title,
        description=ticket.description,
        status=ticket.status,
        priority=ticket.priority,
        tags=list(ticket.tags or []),
        customer_id=ticket.customer_id,
        created_by_id=ticket.created_by_id,
        assigned_to_id=ticket.assigned_to_id,
        created_by=_user_ref(ticket.created_by),
        assigned_to=_user_ref(ticket.assigned_to),
        message_count=message_count,
        last_updated_by=LastUpdatedBy(
            name=last_actor.name if last_actor else None,
            email=last_actor.email if last_actor else None,
        ),
        test_batch_id=ticket.test_batch_id,
        created_at=ticket.created_at,
        updated_at=ticket.updated_at,
    )


# =============================================================================
# Create
# =============================================================================

def create_ticket(db: Session, session: UserSession, data: TicketCreate) -> Ticket:
    """
    Create a ticket.

    CUSTOMER may only file for themselves; staff may file on behalf of
    any existing user.
    """
    customer_id = data.customer_id or session.user_id
    if customer_id != session.user_id:
        if not is_staff(session):
            raise HTTPException(status_code=403, detail="Customers can only create tickets for themselves")
        if not db.get(User, customer_id):
            raise HTTPException(status_code=404, detail="Customer not found")

    ticket = Ticket(
        title=data.title,
        description=data.description,
        description_html=sanitize_html(data.description_html),
        status=TicketStatus.OPEN,
        priority=data.priority,
        customer_id=customer_id,
        created_by_id=session.user_id,
        tags=normalize_tags(data.tags),
    )
    db.add(ticket)
    db.flush()

    audit_service.log_event(
        db,
        action=AuditAction.CREATE,
        entity=AuditEntity.TICKET,
        entity_id=ticket.id,
        user_id=session.user_id,
        new_data=audit_service.snapshot(ticket, AUDIT_FIELDS),
    )
    db.commit()
    db.refresh(ticket)

    cache.invalidate_ticket_cache()
    logger.info(f"Ticket {ticket.id} created by {session.user_id}")
    return ticket


# =============================================================================
# List: filter -> tag filter -> stable multi-key sort -> page
# =============================================================================

def filter_by_tags(
    tickets: Iterable[Ticket],
    tags: list[str],
    include_untagged: bool,
) -> list[Ticket]:
    """
    Tag filter.

    With tags: keep overlapping tickets (+ untagged when include_untagged).
    Without tags: include_untagged keeps only untagged tickets.
    """
    tickets = list(tickets)
    if tags:
        wanted = set(tags)
        return [
            t for t in tickets
            if wanted.intersection(t.tags or []) or (include_untagged and not t.tags)
        ]
    if include_untagged:
        return [t for t in tickets if not t.tags]
    return tickets


def _dedupe_criteria(criteria: Iterable[SortCriterion]) -> list[SortCriterion]:
    seen: set[SortField] = set()
    unique = []
    for criterion in criteria:
        if criterion.field in seen:
            continue
        seen.add(criterion.field)
        unique.append(criterion)
    return unique


def _sort_key(field: SortField, current_user_id: UUID | None):
    if field == SortField.PRIORITY:
        return lambda t: PRIORITY_RANK.get(t.priority, -1)
    if field == SortField.UPDATED_AT:
        return lambda t: _as_utc(t.updated_at)
    if field == SortField.ASSIGNED_TO_ME:
        return lambda t: 1 if current_user_id is not None and t.assigned_to_id == current_user_id else 0
    raise ValueError(f"Unsupported sort field: {field}")


def sort_tickets(
    tickets: Iterable[Ticket],
    criteria: Iterable[SortCriterion],
    current_user_id: UUID | None = None,
) -> list[Ticket]:
    """
    Stable multi-key sort.

    Base order is (created_at desc, id desc). Criteria are applied
    last-to-first so the first criterion dominates and ties fall
    through to later criteria, then to the base order.
    """
    result = sorted(
        tickets,
        key=lambda t: (_as_utc(t.created_at), str(t.id)),
        reverse=True,
    )
    for criterion in reversed(_dedupe_criteria(criteria)):
        result.sort(
            key=_sort_key(criterion.field, current_user_id),
            reverse=criterion.order == SortOrder.DESC,
        )
    return result


def _visible_tickets_query(db: Session, session: UserSession):
    query = db.query(Ticket)
    if not is_staff(session):
        query = query.filter(
            or_(Ticket.customer_id == session.user_id, Ticket.created_by_id == session.user_id)
        )
    return query


def _message_counts(db: Session, ticket_ids: list[UUID], include_internal: bool) -> dict[UUID, int]:
    if not ticket_ids:
        return {}
    query = db.query(Message.ticket_id, func.count(Message.id)).filter(
        Message.ticket_id.in_(ticket_ids)
    )
    if not include_internal:
        query = query.filter(Message.is_internal.is_(False))
    return {ticket_id: count for ticket_id, count in query.group_by(Message.ticket_id).all()}


def _list_tickets_uncached(
    db: Session,
    session: UserSession,
    params: TicketListParams,
) -> TicketListResponse:
    query = _visible_tickets_query(db, session)

    if params.status:
        query = query.filter(Ticket.status.in_(params.status))
    if params.show_completed is False:
        query = query.filter(Ticket.status != TicketStatus.CLOSED)
    if params.priority:
        query = query.filter(Ticket.priority.in_(params.priority))
    if params.assigned_to_id:
        query = query.filter(Ticket.assigned_to_id == params.assigned_to_id)
    if params.customer_id:
        query = query.filter(Ticket.customer_id == params.customer_id)
    if params.assigned_to_me:
        query = query.filter(Ticket.assigned_to_id == session.user_id)

    tickets = filter_by_tags(query.all(), params.tags, params.include_untagged)
    tickets = sort_tickets(tickets, params.sort_criteria, session.user_id)
    page, next_cursor = slice_page(tickets, params.cursor, params.limit)

    ids = [t.id for t in page]
    counts = _message_counts(db, ids, include_internal=is_staff(session))
    actors = audit_service.get_last_actors(db, AuditEntity.TICKET, ids)

    return TicketListResponse(
        items=[to_list_item(t, counts.get(t.id, 0), actors.get(t.id)) for t in page],
        next_cursor=next_cursor,
    )


def list_tickets(
    db: Session,
    session: UserSession,
    params: TicketListParams,
) -> TicketListResponse:
    """List visible tickets; memoised per caller for CACHE_TTL_SECONDS."""
    cache_params = {
        "user_id": str(session.user_id),
        "role": session.role.value,
        **params.model_dump(mode="json"),
    }
    return cache.get_or_set(
        "ticket:list",
        cache_params,
        lambda: _list_tickets_uncached(db, session, params),
        tags=[cache.TAG_TICKET_LIST],
    )


# =============================================================================
# Detail / update
# =============================================================================

def get_ticket(db: Session, session: UserSession, ticket_id: UUID) -> TicketRead:
    """Ticket detail with creator/assignee/customer summaries."""

    def load() -> TicketRead:
        return to_ticket_read(get_visible_ticket(db, session, ticket_id))

    return cache.get_or_set(
        "ticket:detail",
        {"id": str(ticket_id), "user_id": str(session.user_id), "role": session.role.value},
        load,
        tags=[cache.ticket_detail_tag(ticket_id)],
    )


def update_ticket(
    db: Session,
    session: UserSession,
    ticket_id: UUID,
    data: TicketUpdate,
) -> Ticket:
    """
    Partial update.

    CUSTOMER may edit title/description of their own ticket only;
    status, priority, assignment and tags require staff.
    """
    ticket = get_visible_ticket(db, session, ticket_id)
    fields = data.model_fields_set

    if not is_staff(session) and fields & STAFF_ONLY_FIELDS:
        raise HTTPException(
            status_code=403,
            detail="Only staff can change status, priority, assignment or tags",
        )

    before = audit_service.snapshot(ticket, AUDIT_FIELDS)

    if "title" in fields and data.title is not None:
        title = data.title.strip()
        if not title:
            raise HTTPException(status_code=422, detail="Title must not be blank")
        ticket.title = title
    if "description" in fields:
        ticket.description = data.description or ""
    if "description_html" in fields:
        ticket.description_html = sanitize_html(data.description_html)
    if "status" in fields and data.status is not None:
        ticket.status = data.status
    if "priority" in fields and data.priority is not None:
        ticket.priority = data.priority
    if "assigned_to_id" in fields:
        if data.assigned_to_id is None:
            ticket.assigned_to_id = None
        else:
            ticket.assigned_to_id = _validate_assignee(db, data.assigned_to_id).id
    if "tags" in fields and data.tags is not None:
        ticket.tags = normalize_tags(data.tags)

    after = audit_service.snapshot(ticket, AUDIT_FIELDS)
    audit_service.log_update(
        db,
        entity=AuditEntity.TICKET,
        entity_id=ticket.id,
        user_id=session.user_id,
        before=before,
        after=after,
    )
    db.commit()
    db.refresh(ticket)

    cache.invalidate_ticket_cache()
    cache.invalidate_ticket_detail(ticket.id)
    return ticket


def touch_ticket(ticket: Ticket) -> None:
    """Bump updated_at (new message, etc.)."""
    ticket.updated_at = datetime.now(timezone.utc)


# =============================================================================
# Pickers
# =============================================================================

def get_assignable_users(db: Session, session: UserSession, ticket_id: UUID) -> list[AssignableUser]:
    """Staff ordered by role then name, followed by the ticket's customer."""
    require_staff(session)
    ticket = get_ticket_or_404(db, ticket_id)

    staff = db.query(User).filter(User.role.in_(list(STAFF_ROLES))).all()
    staff.sort(key=lambda u: (u.role.value, (u.name or u.email).lower()))

    result = [
        AssignableUser(
            id=u.id,
            name=u.name,
            email=u.email,
            role=u.role,
            is_customer=u.id == ticket.customer_id,
        )
        for u in staff
    ]
    customer = ticket.customer
    if customer and all(row.id != customer.id for row in result):
        result.append(
            AssignableUser(
                id=customer.id,
                name=customer.name,
                email=customer.email,
                role=customer.role,
                is_customer=True,
            )
        )
    return result


def get_all_tags(db: Session, session: UserSession) -> list[str]:
    """Sorted unique non-empty tags across tickets the caller can see."""
    tags: set[str] = set()
    for (ticket_tags,) in _visible_tickets_query(db, session).with_entities(Ticket.tags).all():
        for tag in ticket_tags or []:
            if isinstance(tag, str) and tag.strip():
                tags.add(tag.strip())
    return sorted(tags)
