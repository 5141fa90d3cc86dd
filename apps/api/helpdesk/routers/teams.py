"""Team, membership and routing-tag APIs."""

from uuid import UUID

from fastapi import APIRouter, Depends, Query, Response
from sqlalchemy.orm import Session

from helpdesk.core.deps import get_current_session, get_db
from helpdesk.schemas.auth import UserSession
from helpdesk.schemas.team import (
    TeamCreate,
    TeamMemberAdd,
    TeamMemberRead,
    TeamRead,
    TeamTagsUpdate,
    TeamUpdate,
)
from helpdesk.services import team_service

router = APIRouter(prefix="/teams", tags=["Teams"])


@router.get("/my-tags", response_model=list[str])
def my_team_tags(
    db: Session = Depends(get_db),
    session: UserSession = Depends(get_current_session),
) -> list[str]:
    """Tags of every team the caller belongs to (ticket-list filter preset)."""
    return team_service.my_team_tags(db, session)


@router.get("", response_model=list[TeamRead])
def list_teams(
    search: str | None = None,
    tags: list[str] | None = Query(None),
    include_untagged: bool = False,
    db: Session = Depends(get_db),
    session: UserSession = Depends(get_current_session),
) -> list[TeamRead]:
    return team_service.list_teams(
        db,
        session,
        search=search,
        tags=tags,
        include_untagged=include_untagged,
    )


@router.post("", response_model=TeamRead, status_code=201)
def create_team(
    body: TeamCreate,
    db: Session = Depends(get_db),
    session: UserSession = Depends(get_current_session),
) -> TeamRead:
    return team_service.create_team(db, session, body)


@router.get("/{team_id}", response_model=TeamRead)
def get_team(
    team_id: UUID,
    db: Session = Depends(get_db),
    session: UserSession = Depends(get_current_session),
) -> TeamRead:
    return team_service.get_team(db, session, team_id)


@router.patch("/{team_id}", response_model=TeamRead)
def update_team(
    team_id: UUID,
    body: TeamUpdate,
    db: Session = Depends(get_db),
    session: UserSession = Depends(get_current_session),
) -> TeamRead:
    return team_service.update_team(db, session, team_id, body)


@router.delete("/{team_id}", status_code=204)
def delete_team(
    team_id: UUID,
    db: Session = Depends(get_db),
    session: UserSession = Depends(get_current_session),
) -> Response:
    team_service.delete_team(db, session, team_id)
    return Response(status_code=204)


# =============================================================================
# Tags
# =============================================================================

@router.post("/{team_id}/tags", response_model=TeamRead)
def add_tags(
    team_id: UUID,
    body: TeamTagsUpdate,
    db: Session = Depends(get_db),
    session: UserSession = Depends(get_current_session),
) -> TeamRead:
    return team_service.add_tags(db, session, team_id, body.tags)


@router.delete("/{team_id}/tags", response_model=TeamRead)
def remove_tags(
    team_id: UUID,
    tags: list[str] = Query(..., min_length=1),
    db: Session = Depends(get_db),
    session: UserSession = Depends(get_current_session),
) -> TeamRead:
    return team_service.remove_tags(db, session, team_id, tags)


# =============================================================================
# Members
# =============================================================================

@router.get("/{team_id}/members", response_model=list[TeamMemberRead])
def get_members(
    team_id: UUID,
    db: Session = Depends(get_db),
    session: UserSession = Depends(get_current_session),
) -> list[TeamMemberRead]:
    return team_service.get_members(db, session, team_id)


@router.post("/{team_id}/members", response_model=TeamRead, status_code=201)
def add_member(
    team_id: UUID,
    body: TeamMemberAdd,
    db: Session = Depends(get_db),
    session: UserSession = Depends(get_current_session),
) -> TeamRead:
    return team_service.add_member(db, session, team_id, body.user_id)


@router.delete("/{team_id}/members/{user_id}", response_model=TeamRead)
def remove_member(
    team_id: UUID,
    user_id: UUID,
    db: Session = Depends(get_db),
    session: UserSession = Depends(get_current_session),
) -> TeamRead:
    return team_service.remove_member(db, session, team_id, user_id)
