"""Bearer token helpers for the hosted auth provider's JWTs."""

from datetime import datetime, timedelta, timezone
from uuid import UUID

import jwt

from helpdesk.core.config import settings


ALGORITHM = "HS256"


def create_access_token(
    user_id: UUID,
    email: str,
    role: str | None = None,
    expires_in: timedelta | None = None,
) -> str:
    """
    Create a signed access token shaped like the auth provider's.
    
    Only used by dev tooling and tests; production tokens are issued
    by the hosted auth service and signed with the same secret.
    """
    now = datetime.now(timezone.utc)
    payload = {
        "sub": str(user_id),
        "email": email,
        "aud": settings.AUTH_JWT_AUDIENCE,
        "iat": now,
        "exp": now + (expires_in or timedelta(hours=settings.AUTH_JWT_EXPIRES_HOURS)),
    }
    if role:
        payload["app_metadata"] = {"user_role": role}
    return jwt.encode(payload, settings.AUTH_JWT_SECRET, algorithm=ALGORITHM)


def decode_access_token(token: str) -> dict:
    """
    Decode and verify an access token.
    
    Tries current secret first, then previous (for rotation support).
    
    Raises:
        jwt.InvalidTokenError: If token invalid with all secrets
    """
    last_error = None
    for secret in settings.jwt_secrets:
        try:
            return jwt.decode(
                token,
                secret,
                algorithms=[ALGORITHM],
                audience=settings.AUTH_JWT_AUDIENCE,
            )
        except jwt.InvalidTokenError as e:
            last_error = e
            continue
    raise last_error  # type: ignore


def extract_bearer_token(authorization: str | None) -> str | None:
    """Return the token part of an `Authorization: Bearer ...` header."""
    if not authorization:
        return None
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()


def token_role_claim(payload: dict) -> str | None:
    """Role claim the auth provider stores in app_metadata, if any."""
    metadata = payload.get("app_metadata") or {}
    role = metadata.get("user_role") or metadata.get("role")
    return str(role) if role else None
