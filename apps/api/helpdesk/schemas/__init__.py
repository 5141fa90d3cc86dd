"""Pydantic schemas for API request/response models."""

from helpdesk.schemas.auth import AuthRequest, AuthResponse, MeResponse, UserSession
from helpdesk.schemas.user import AssignableUser, RoleUpdate, UserRead, UserSummary, UserUpdate
from helpdesk.schemas.ticket import (
    SortCriterion,
    TicketCreate,
    TicketListItem,
    TicketListParams,
    TicketListResponse,
    TicketRead,
    TicketUpdate,
)
from helpdesk.schemas.message import MessageCreate, MessageListResponse, MessageRead
from helpdesk.schemas.team import TeamCreate, TeamRead, TeamUpdate

__all__ = [
    # Auth
    "AuthRequest",
    "AuthResponse",
    "MeResponse",
    "UserSession",
    # User
    "AssignableUser",
    "RoleUpdate",
    "UserRead",
    "UserSummary",
    "UserUpdate",
    # Ticket
    "SortCriterion",
    "TicketCreate",
    "TicketListItem",
    "TicketListParams",
    "TicketListResponse",
    "TicketRead",
    "TicketUpdate",
    # Message
    "MessageCreate",
    "MessageListResponse",
    "MessageRead",
    # Team
    "TeamCreate",
    "TeamRead",
    "TeamUpdate",
]
