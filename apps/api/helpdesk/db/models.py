"""SQLAlchemy ORM models for the helpdesk."""

from __future__ import annotations

import uuid
from datetime import datetime, timezone

from sqlalchemy import (
    Boolean,
    Enum,
    ForeignKey,
    Index,
    String,
    Text,
    UniqueConstraint,
    Uuid,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from helpdesk.db.base import Base
from helpdesk.db.enums import (
    AuditAction,
    AuditEntity,
    ConversationStatus,
    Role,
    TicketPriority,
    TicketStatus,
)


def _now_utc() -> datetime:
    return datetime.now(timezone.utc)


def _enum_type(enum_cls, *, name: str) -> Enum:
    """Store str-enums by value as portable VARCHAR + CHECK."""
    return Enum(
        enum_cls,
        name=name,
        native_enum=False,
        length=32,
        values_callable=lambda members: [member.value for member in members],
    )


# =============================================================================
# Users
# =============================================================================

class User(Base):
    """
    Application user mirrored from the hosted auth provider.

    `id` equals the auth provider's user id (JWT `sub`).
    Synthetic users carry `test_batch_id` + `cleanup_at`.
    """
    __tablename__ = "users"
    __table_args__ = (
        Index("idx_users_role", "role"),
        Index("idx_users_test_batch", "test_batch_id"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    avatar_url: Mapped[str | None] = mapped_column(Text, nullable=True)
    role: Mapped[Role] = mapped_column(
        _enum_type(Role, name="user_role"), default=Role.CUSTOMER, nullable=False
    )
    user_metadata: Mapped[dict | None] = mapped_column("metadata", nullable=True)
    test_batch_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    cleanup_at: Mapped[datetime | None] = mapped_column(nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        default=_now_utc, server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        default=_now_utc, server_default=func.now(), onupdate=_now_utc, nullable=False
    )

    team_memberships: Mapped[list["TeamMember"]] = relationship(back_populates="user")


# =============================================================================
# Tickets & Messages
# =============================================================================

class Ticket(Base):
    """Support request with status/priority/assignee lifecycle."""
    __tablename__ = "tickets"
    __table_args__ = (
        Index("idx_tickets_customer", "customer_id"),
        Index("idx_tickets_assigned", "assigned_to_id"),
        Index("idx_tickets_created_by", "created_by_id"),
        Index("idx_tickets_status", "status"),
        Index("idx_tickets_test_batch", "test_batch_id"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    title: Mapped[str] = mapped_column(String(500), nullable=False)
    description: Mapped[str] = mapped_column(Text, default="", nullable=False)
    description_html: Mapped[str] = mapped_column(Text, default="", nullable=False)
    status: Mapped[TicketStatus] = mapped_column(
        _enum_type(TicketStatus, name="ticket_status"), default=TicketStatus.OPEN, nullable=False
    )
    priority: Mapped[TicketPriority] = mapped_column(
        _enum_type(TicketPriority, name="ticket_priority"),
        default=TicketPriority.MEDIUM,
        nullable=False,
    )
    customer_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id"), nullable=False
    )
    assigned_to_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("users.id"), nullable=True
    )
    created_by_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id"), nullable=False
    )
    tags: Mapped[list] = mapped_column(default=list, nullable=False)
    ticket_metadata: Mapped[dict | None] = mapped_column("metadata", nullable=True)
    test_batch_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    cleanup_at: Mapped[datetime | None] = mapped_column(nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        default=_now_utc, server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        default=_now_utc, server_default=func.now(), onupdate=_now_utc, nullable=False
    )

    customer: Mapped["User"] = relationship(foreign_keys=[customer_id])
    assigned_to: Mapped["User | None"] = relationship(foreign_keys=[assigned_to_id])
    created_by: Mapped["User"] = relationship(foreign_keys=[created_by_id])
    messages: Mapped[list["Message"]] = relationship(
        back_populates="ticket", order_by="Message.created_at"
    )


class Message(Base):
    """Reply or internal note on a ticket."""
    __tablename__ = "messages"
    __table_args__ = (
        Index("idx_messages_ticket_created", "ticket_id", "created_at"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    ticket_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("tickets.id", ondelete="CASCADE"), nullable=False
    )
    content: Mapped[str] = mapped_column(Text, nullable=False)
    content_html: Mapped[str] = mapped_column(Text, default="", nullable=False)
    is_internal: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    created_by_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("users.id"), nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(
        default=_now_utc, server_default=func.now(), nullable=False
    )

    ticket: Mapped["Ticket"] = relationship(back_populates="messages")
    created_by: Mapped["User | None"] = relationship()


# =============================================================================
# Teams
# =============================================================================

class Team(Base):
    """Group of staff with routing tags."""
    __tablename__ = "teams"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    tags: Mapped[list] = mapped_column(default=list, nullable=False)
    created_by_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(
        default=_now_utc, server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        default=_now_utc, server_default=func.now(), onupdate=_now_utc, nullable=False
    )

    members: Mapped[list["TeamMember"]] = relationship(
        back_populates="team", cascade="all, delete-orphan"
    )


class TeamMember(Base):
    """Membership of a user in a team."""
    __tablename__ = "team_members"
    __table_args__ = (
        UniqueConstraint("team_id", "user_id", name="uq_team_members_team_user"),
        Index("idx_team_members_user", "user_id"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    team_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("teams.id", ondelete="CASCADE"), nullable=False
    )
    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id"), nullable=False
    )
    created_at: Mapped[datetime] = mapped_column(
        default=_now_utc, server_default=func.now(), nullable=False
    )

    team: Mapped["Team"] = relationship(back_populates="members")
    user: Mapped["User"] = relationship(back_populates="team_memberships")


# =============================================================================
# Audit
# =============================================================================

class AuditLog(Base):
    """
    Append-only record of a mutation.

    Written in the same transaction as the change it describes.
    """
    __tablename__ = "audit_logs"
    __table_args__ = (
        Index("idx_audit_entity", "entity", "entity_id", "timestamp"),
        Index("idx_audit_user", "user_id"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    action: Mapped[AuditAction] = mapped_column(
        _enum_type(AuditAction, name="audit_action"), nullable=False
    )
    entity: Mapped[AuditEntity] = mapped_column(
        _enum_type(AuditEntity, name="audit_entity"), nullable=False
    )
    entity_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False)
    user_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    old_data: Mapped[dict | None] = mapped_column(nullable=True)
    new_data: Mapped[dict | None] = mapped_column(nullable=True)
    timestamp: Mapped[datetime] = mapped_column(
        default=_now_utc, server_default=func.now(), nullable=False
    )

    user: Mapped["User | None"] = relationship()


# =============================================================================
# Marketplace
# =============================================================================

class MarketplaceConversation(Base):
    """Pasted marketplace chat transcript and its AI-extracted ticket draft."""
    __tablename__ = "marketplace_conversations"
    __table_args__ = (
        Index("idx_marketplace_created_by", "created_by_id"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    raw_content: Mapped[str] = mapped_column(Text, nullable=False)
    processed_content: Mapped[dict | None] = mapped_column(nullable=True)
    status: Mapped[ConversationStatus] = mapped_column(
        _enum_type(ConversationStatus, name="conversation_status"),
        default=ConversationStatus.PENDING,
        nullable=False,
    )
    error_message: Mapped[str | None] = mapped_column(Text, nullable=True)
    run_id: Mapped[uuid.UUID | None] = mapped_column(Uuid, nullable=True)
    ticket_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("tickets.id", ondelete="SET NULL"), nullable=True
    )
    created_by_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id"), nullable=False
    )
    created_at: Mapped[datetime] = mapped_column(
        default=_now_utc, server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        default=_now_utc, server_default=func.now(), onupdate=_now_utc, nullable=False
    )

    ticket: Mapped["Ticket | None"] = relationship()
    created_by: Mapped["User"] = relationship()
