"""Authentication-related Pydantic schemas."""

from uuid import UUID

from pydantic import BaseModel, Field

from helpdesk.db.enums import Role


class UserSession(BaseModel):
    """
    Session context for authenticated requests.

    Returned by the get_current_session dependency; the role always
    comes from the users table, never from the token.
    """
    user_id: UUID
    role: Role  # Validated enum
    email: str
    name: str | None = None


class AuthRequest(BaseModel):
    """Body for POST /auth (signup/signin bootstrap)."""
    email: str = Field(min_length=3, max_length=255)
    role: Role | None = None
    action: str


class AuthResponse(BaseModel):
    user_id: UUID
    email: str
    role: Role


class MeResponse(BaseModel):
    """Response schema for GET /auth/me endpoint."""
    user_id: UUID
    email: str
    name: str | None
    avatar_url: str | None
    role: Role
    metadata: dict | None = None
