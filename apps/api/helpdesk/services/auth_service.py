"""Auth bootstrap - mirror hosted-auth users into the users table."""

import logging
from uuid import UUID

from fastapi import HTTPException
from sqlalchemy.orm import Session

from helpdesk.core import cache
from helpdesk.core.config import settings
from helpdesk.db.enums import AuditAction, AuditEntity, Role
from helpdesk.db.models import User
from helpdesk.schemas.auth import AuthRequest, AuthResponse
from helpdesk.services import audit_service
from helpdesk.utils.normalization import normalize_email

logger = logging.getLogger(__name__)

ACTION_SIGNUP = "signup"
ACTION_SIGNIN = "signin"


def _subject_id(payload: dict) -> UUID:
    try:
        return UUID(str(payload["sub"]))
    except (KeyError, ValueError):
        raise HTTPException(status_code=401, detail="Invalid token subject")


def signup(db: Session, payload: dict, data: AuthRequest) -> AuthResponse:
    """
    Upsert the caller's user row (id = token subject).

    Outside dev, self-signup can only request CUSTOMER; an existing
    row keeps its role unless the requested one is allowed.
    """
    user_id = _subject_id(payload)
    requested = data.role or Role.CUSTOMER
    if requested != Role.CUSTOMER and settings.ENV != "dev":
        raise HTTPException(status_code=403, detail="Self-signup is limited to the CUSTOMER role")

    email = normalize_email(data.email)
    owner = db.query(User).filter(User.email == email, User.id != user_id).first()
    if owner:
        raise HTTPException(status_code=409, detail="Email already in use")

    user = db.get(User, user_id)
    if user is None:
        user = User(id=user_id, email=email, role=requested)
        db.add(user)
        db.flush()
        audit_service.log_event(
            db,
            action=AuditAction.CREATE,
            entity=AuditEntity.USER,
            entity_id=user.id,
            user_id=user.id,
            new_data={"email": email, "role": requested},
        )
        logger.info(f"User {user.id} signed up as {requested.value}")
    else:
        before = {"email": user.email, "role": user.role}
        user.email = email
        if data.role is not None:
            user.role = requested
        audit_service.log_update(
            db,
            entity=AuditEntity.USER,
            entity_id=user.id,
            user_id=user.id,
            before=before,
            after={"email": user.email, "role": user.role},
        )
    db.commit()
    db.refresh(user)

    cache.invalidate_user_cache()
    return AuthResponse(user_id=user.id, email=user.email, role=user.role)


def signin(db: Session, payload: dict) -> AuthResponse:
    """Return the stored role; 404 when the user row was never created."""
    user = db.get(User, _subject_id(payload))
    if user is None:
        raise HTTPException(status_code=404, detail="User role not found")
    return AuthResponse(user_id=user.id, email=user.email, role=user.role)


def authenticate(db: Session, payload: dict, data: AuthRequest) -> AuthResponse:
    if data.action == ACTION_SIGNUP:
        return signup(db, payload, data)
    if data.action == ACTION_SIGNIN:
        return signin(db, payload)
    raise HTTPException(status_code=400, detail="Invalid action")
