"""User directory, profile and role management APIs."""

from uuid import UUID

from fastapi import APIRouter, Depends, Query, Response
from sqlalchemy.orm import Session

from helpdesk.core.deps import get_current_session, get_db
from helpdesk.db.enums import Role
from helpdesk.schemas.auth import UserSession
from helpdesk.schemas.user import RoleUpdate, UserRead, UserUpdate
from helpdesk.services import user_service

router = APIRouter(prefix="/users", tags=["Users"])


@router.get("", response_model=list[UserRead])
def list_users(
    search: str | None = None,
    role: Role | None = None,
    exclude_ids: list[UUID] | None = Query(None),
    db: Session = Depends(get_db),
    session: UserSession = Depends(get_current_session),
) -> list[UserRead]:
    """Staff-only directory, ordered by name."""
    return user_service.list_users(db, session, search=search, role=role, exclude_ids=exclude_ids)


@router.get("/me", response_model=UserRead)
def get_profile(
    db: Session = Depends(get_db),
    session: UserSession = Depends(get_current_session),
) -> UserRead:
    return user_service.to_user_read(user_service.get_profile(db, session))


@router.patch("/me", response_model=UserRead)
def update_profile(
    body: UserUpdate,
    db: Session = Depends(get_db),
    session: UserSession = Depends(get_current_session),
) -> UserRead:
    return user_service.to_user_read(user_service.update_profile(db, session, body))


@router.get("/by-role/{role}", response_model=list[UserRead])
def list_users_by_role(
    role: Role,
    q: str = "",
    db: Session = Depends(get_db),
    session: UserSession = Depends(get_current_session),
) -> list[UserRead]:
    """Team-management picker (MANAGER/ADMIN)."""
    users = user_service.list_users_by_role(db, session, role, search_query=q)
    return [user_service.to_user_read(u) for u in users]


@router.get("/{user_id}", response_model=UserRead)
def get_user(
    user_id: UUID,
    db: Session = Depends(get_db),
    session: UserSession = Depends(get_current_session),
) -> UserRead:
    return user_service.to_user_read(user_service.get_user(db, session, user_id))


@router.patch("/{user_id}", response_model=UserRead)
def update_user(
    user_id: UUID,
    body: UserUpdate,
    db: Session = Depends(get_db),
    session: UserSession = Depends(get_current_session),
) -> UserRead:
    return user_service.to_user_read(user_service.update_user(db, session, user_id, body))


@router.put("/{user_id}/role", response_model=UserRead)
def update_role(
    user_id: UUID,
    body: RoleUpdate,
    db: Session = Depends(get_db),
    session: UserSession = Depends(get_current_session),
) -> UserRead:
    return user_service.to_user_read(user_service.update_role(db, session, user_id, body.role))


@router.delete("/{user_id}", status_code=204)
def delete_user(
    user_id: UUID,
    db: Session = Depends(get_db),
    session: UserSession = Depends(get_current_session),
) -> Response:
    user_service.delete_user(db, session, user_id)
    return Response(status_code=204)
