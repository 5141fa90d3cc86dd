"""FastAPI dependencies for authentication, authorization, and database access."""

import logging
from typing import Generator
from uuid import UUID

import jwt
from fastapi import Depends, HTTPException, Request
from sqlalchemy.orm import Session

from helpdesk.core.security import decode_access_token, extract_bearer_token, token_role_claim
from helpdesk.db.session import SessionLocal

logger = logging.getLogger(__name__)


def get_db() -> Generator[Session, None, None]:
    """
    Database session dependency.

    Yields a database session and ensures it's closed after the request.
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_token_payload(request: Request) -> dict:
    """
    Decode the bearer token on the request.

    Raises:
        HTTPException 401: Missing or invalid token
    """
    token = extract_bearer_token(request.headers.get("Authorization"))
    if not token:
        raise HTTPException(status_code=401, detail="Not authenticated")
    try:
        payload = decode_access_token(token)
    except jwt.InvalidTokenError:
        raise HTTPException(status_code=401, detail="Invalid token")
    if not payload.get("sub"):
        raise HTTPException(status_code=401, detail="Invalid token")
    return payload


def get_current_user(
    request: Request,
    db: Session = Depends(get_db),
):
    """
    Get authenticated user from the bearer token.

    The users table is authoritative for the role; a disagreeing
    token claim is logged and ignored.

    Raises:
        HTTPException 401: Authentication failed
    """
    # Import here to avoid circular imports
    from helpdesk.db.models import User

    payload = get_token_payload(request)
    try:
        user_id = UUID(str(payload["sub"]))
    except ValueError:
        raise HTTPException(status_code=401, detail="Invalid token subject")

    user = db.query(User).filter(User.id == user_id).first()
    if not user:
        raise HTTPException(status_code=401, detail="User not found")

    claimed_role = token_role_claim(payload)
    stored_role = user.role.value if hasattr(user.role, "value") else str(user.role)
    if claimed_role and claimed_role != stored_role:
        logger.warning(
            f"Token role claim {claimed_role} differs from stored role {stored_role} "
            f"for user {user.id}; using stored role"
        )

    return user


def get_current_session(
    request: Request,
    db: Session = Depends(get_db),
):
    """
    Get full session context: user_id, role, email, name.

    This is the PRIMARY auth dependency for most endpoints.

    Raises:
        HTTPException 401: Not authenticated
        HTTPException 403: Unknown role
    """
    from helpdesk.db.enums import Role
    from helpdesk.schemas.auth import UserSession

    user = get_current_user(request, db)

    role_value = user.role.value if hasattr(user.role, "value") else str(user.role)
    # Validate role is a known enum value - return 403 not 500
    if not Role.has_value(role_value):
        raise HTTPException(
            status_code=403,
            detail=f"Unknown role '{role_value}'. Contact administrator.",
        )

    return UserSession(
        user_id=user.id,
        role=Role(role_value),
        email=user.email,
        name=user.name,
    )


def require_roles(allowed_roles):
    """
    Dependency factory for role-based authorization.

    Uses enum values (not strings) to prevent drift.

    Usage:
        @router.post("/teams", dependencies=[Depends(require_roles(ROLES_CAN_MANAGE_TEAMS))])
    """
    allowed = set(allowed_roles)

    def dependency(request: Request, db: Session = Depends(get_db)):
        session = get_current_session(request, db)
        if session.role not in allowed:
            raise HTTPException(
                status_code=403,
                detail=f"Role '{session.role.value}' not authorized for this action",
            )
        return session
    return dependency


# =============================================================================
# Permission Check Helpers (use enum sets from db.enums)
# =============================================================================

def is_staff(session) -> bool:
    """Check if user holds a staff role (AGENT, MANAGER, ADMIN)."""
    from helpdesk.db.enums import STAFF_ROLES
    return session.role in STAFF_ROLES


def can_manage_teams(session) -> bool:
    from helpdesk.db.enums import ROLES_CAN_MANAGE_TEAMS
    return session.role in ROLES_CAN_MANAGE_TEAMS


def can_change_roles(session) -> bool:
    from helpdesk.db.enums import ROLES_CAN_CHANGE_ROLES
    return session.role in ROLES_CAN_CHANGE_ROLES


def require_staff(session) -> None:
    """Raise 403 unless the caller is staff."""
    if not is_staff(session):
        raise HTTPException(status_code=403, detail="Staff access required")


# =============================================================================
# AI
# =============================================================================

def get_ai_provider():
    """
    Configured AI provider, or None when AI_API_KEY is empty.

    Services answer None with 503 so non-AI endpoints keep working.
    """
    from helpdesk.services.ai_provider import AIProviderNotConfigured, get_configured_provider

    try:
        return get_configured_provider()
    except AIProviderNotConfigured:
        return None
