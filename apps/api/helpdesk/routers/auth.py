"""Auth bootstrap router: mirror hosted-auth users and report the current profile."""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from helpdesk.core.deps import get_current_session, get_db, get_token_payload
from helpdesk.schemas.auth import AuthRequest, AuthResponse, MeResponse, UserSession
from helpdesk.services import auth_service, user_service

router = APIRouter(prefix="/auth", tags=["Auth"])


@router.post("", response_model=AuthResponse)
def authenticate(
    body: AuthRequest,
    payload: dict = Depends(get_token_payload),
    db: Session = Depends(get_db),
) -> AuthResponse:
    """
    Signup / signin bootstrap after the hosted auth provider issued a token.

    - signup: upsert the users row for the token subject
    - signin: return the stored role
    """
    return auth_service.authenticate(db, payload, body)


@router.get("/me", response_model=MeResponse)
def get_me(
    db: Session = Depends(get_db),
    session: UserSession = Depends(get_current_session),
) -> MeResponse:
    user = user_service.get_profile(db, session)
    return MeResponse(
        user_id=user.id,
        email=user.email,
        name=user.name,
        avatar_url=user.avatar_url,
        role=user.role,
        metadata=user.user_metadata,
    )
