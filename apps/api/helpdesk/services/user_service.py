"""User service - directory, profile, role management."""

import logging
from uuid import UUID

from fastapi import HTTPException
from sqlalchemy import or_
from sqlalchemy.orm import Session

from helpdesk.core import cache
from helpdesk.core.deps import can_change_roles, is_staff, require_staff
from helpdesk.db.enums import (
    ROLES_CAN_CHANGE_ROLES,
    ROLES_CAN_DELETE_USERS,
    ROLES_CAN_LIST_BY_ROLE,
    AuditAction,
    AuditEntity,
    Role,
)
from helpdesk.db.models import MarketplaceConversation, Message, TeamMember, Ticket, User
from helpdesk.schemas.auth import UserSession
from helpdesk.schemas.user import UserRead, UserUpdate
from helpdesk.services import audit_service
from helpdesk.utils.normalization import normalize_email, normalize_name

logger = logging.getLogger(__name__)

AUDIT_FIELDS = ("name", "email", "role", "user_metadata")


def _audit_snapshot(user: User) -> dict:
    data = audit_service.snapshot(user, AUDIT_FIELDS)
    data["metadata"] = data.pop("user_metadata")
    return data


def to_user_read(user: User) -> UserRead:
    return UserRead.model_validate(user)


def get_user_by_id(db: Session, user_id: UUID) -> User | None:
    return db.get(User, user_id)


def get_user_by_email(db: Session, email: str) -> User | None:
    return db.query(User).filter(User.email == normalize_email(email)).first()


def get_user_or_404(db: Session, user_id: UUID) -> User:
    user = db.get(User, user_id)
    if not user:
        raise HTTPException(status_code=404, detail="User not found")
    return user


# =============================================================================
# Reads
# =============================================================================

def list_users(
    db: Session,
    session: UserSession,
    search: str | None = None,
    role: Role | None = None,
    exclude_ids: list[UUID] | None = None,
) -> list[UserRead]:
    """Staff-only directory, ordered by name."""
    require_staff(session)

    def load() -> list[UserRead]:
        query = db.query(User)
        if search:
            pattern = f"%{search.strip().lower()}%"
            query = query.filter(
                or_(User.name.ilike(pattern), User.email.ilike(pattern))
            )
        if role:
            query = query.filter(User.role == role)
        if exclude_ids:
            query = query.filter(User.id.notin_(exclude_ids))
        users = query.order_by(User.name.asc(), User.email.asc()).all()
        return [to_user_read(u) for u in users]

    return cache.get_or_set(
        "user:list",
        {
            "search": search,
            "role": role.value if role else None,
            "exclude_ids": sorted(str(i) for i in exclude_ids or []),
        },
        load,
        tags=[cache.TAG_USER_LIST],
    )


def get_user(db: Session, session: UserSession, user_id: UUID) -> User:
    """Self, or any user for staff."""
    if user_id != session.user_id and not is_staff(session):
        raise HTTPException(status_code=403, detail="Not authorized to view this user")
    return get_user_or_404(db, user_id)


def get_profile(db: Session, session: UserSession) -> User:
    return get_user_or_404(db, session.user_id)


def list_users_by_role(
    db: Session,
    session: UserSession,
    role: Role,
    search_query: str = "",
) -> list[User]:
    """Team-management picker: users with `role` whose email contains the query."""
    if session.role not in ROLES_CAN_LIST_BY_ROLE:
        raise HTTPException(status_code=403, detail="Only managers and admins can list users by role")
    query = db.query(User).filter(User.role == role)
    if search_query:
        query = query.filter(User.email.ilike(f"%{search_query.strip().lower()}%"))
    return query.order_by(User.email.asc()).all()


# =============================================================================
# Writes
# =============================================================================

def update_user(
    db: Session,
    session: UserSession,
    user_id: UUID,
    data: UserUpdate,
) -> User:
    """
    Update a user's profile fields.

    Self or ADMIN; role changes are ADMIN only. Email must stay unique.
    """
    if user_id != session.user_id and session.role not in ROLES_CAN_CHANGE_ROLES:
        raise HTTPException(status_code=403, detail="Not authorized to update this user")
    if data.role is not None and not can_change_roles(session):
        raise HTTPException(status_code=403, detail="Only admins can change roles")

    user = get_user_or_404(db, user_id)
    before = _audit_snapshot(user)
    fields = data.model_fields_set

    if "name" in fields and data.name is not None:
        user.name = normalize_name(data.name)
    if "email" in fields and data.email:
        email = normalize_email(data.email)
        if email != user.email:
            if db.query(User).filter(User.email == email, User.id != user.id).first():
                raise HTTPException(status_code=409, detail="Email already in use")
            user.email = email
    if "avatar_url" in fields:
        user.avatar_url = data.avatar_url
    if "metadata" in fields and data.metadata is not None:
        user.user_metadata = data.metadata
    if data.role is not None:
        user.role = data.role

    after = _audit_snapshot(user)
    if before != after:
        audit_service.log_event(
            db,
            action=AuditAction.UPDATE,
            entity=AuditEntity.USER,
            entity_id=user.id,
            user_id=session.user_id,
            old_data=before,
            new_data=after,
        )
    db.commit()
    db.refresh(user)

    cache.invalidate_user_cache()
    return user


def update_profile(db: Session, session: UserSession, data: UserUpdate) -> User:
    """Update the caller's own row."""
    return update_user(db, session, session.user_id, data)


def update_role(db: Session, session: UserSession, user_id: UUID, role: Role) -> User:
    """ADMIN: change a user's role; audit row carries old/new role."""
    if not can_change_roles(session):
        raise HTTPException(status_code=403, detail="Only admins can update user roles")

    user = get_user_or_404(db, user_id)
    old_role = user.role
    if old_role != role:
        user.role = role
        audit_service.log_event(
            db,
            action=AuditAction.UPDATE,
            entity=AuditEntity.USER,
            entity_id=user.id,
            user_id=session.user_id,
            old_data={"role": old_role},
            new_data={"role": role},
        )
        logger.info(f"User {user.id} role changed {old_role.value} -> {role.value} by {session.user_id}")
    db.commit()
    db.refresh(user)

    cache.invalidate_user_cache()
    cache.invalidate_ticket_cache()
    return user


def delete_user(db: Session, session: UserSession, user_id: UUID) -> None:
    """
    ADMIN: delete a user and their team memberships.

    Users still referenced by tickets, messages or conversations are
    rejected with 409; synthetic users go through test-data cleanup.
    """
    if session.role not in ROLES_CAN_DELETE_USERS:
        raise HTTPException(status_code=403, detail="Only admins can delete users")
    if user_id == session.user_id:
        raise HTTPException(status_code=400, detail="Cannot delete your own account")

    user = get_user_or_404(db, user_id)

    has_tickets = db.query(Ticket.id).filter(
        or_(
            Ticket.customer_id == user_id,
            Ticket.created_by_id == user_id,
            Ticket.assigned_to_id == user_id,
        )
    ).first()
    has_messages = db.query(Message.id).filter(Message.created_by_id == user_id).first()
    has_conversations = db.query(MarketplaceConversation.id).filter(
        MarketplaceConversation.created_by_id == user_id
    ).first()
    if has_tickets or has_messages or has_conversations:
        raise HTTPException(
            status_code=409,
            detail="User still owns tickets or messages; reassign them first",
        )

    old_data = _audit_snapshot(user)
    db.query(TeamMember).filter(TeamMember.user_id == user_id).delete(synchronize_session=False)
    audit_service.log_event(
        db,
        action=AuditAction.DELETE,
        entity=AuditEntity.USER,
        entity_id=user_id,
        user_id=session.user_id,
        old_data=old_data,
    )
    db.delete(user)
    db.commit()

    cache.invalidate_user_cache()
    cache.invalidate_team_cache()
    logger.info(f"User {user_id} deleted by {session.user_id}")
