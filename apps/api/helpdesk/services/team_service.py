"""Team service - teams, memberships and routing tags."""

import logging
from uuid import UUID

from fastapi import HTTPException
from sqlalchemy import or_
from sqlalchemy.orm import Session, selectinload

from helpdesk.core import cache
from helpdesk.core.deps import can_manage_teams
from helpdesk.db.enums import AuditAction, AuditEntity
from helpdesk.db.models import Team, TeamMember, User
from helpdesk.schemas.auth import UserSession
from helpdesk.schemas.team import TeamCreate, TeamMemberRead, TeamRead, TeamUpdate
from helpdesk.services import audit_service
from helpdesk.utils.normalization import normalize_tags

logger = logging.getLogger(__name__)

AUDIT_FIELDS = ("name", "description", "tags")


def _require_team_manager(session: UserSession) -> None:
    if not can_manage_teams(session):
        raise HTTPException(status_code=403, detail="Only managers and admins can manage teams")


def _get_team_or_404(db: Session, team_id: UUID) -> Team:
    team = (
        db.query(Team)
        .options(selectinload(Team.members).selectinload(TeamMember.user))
        .filter(Team.id == team_id)
        .first()
    )
    if not team:
        raise HTTPException(status_code=404, detail="Team not found")
    return team


def to_member_read(member: TeamMember) -> TeamMemberRead:
    user = member.user
    return TeamMemberRead(
        id=member.id,
        team_id=member.team_id,
        user_id=member.user_id,
        name=user.name if user else None,
        email=user.email if user else None,
        role=user.role if user else None,
        created_at=member.created_at,
    )


def to_team_read(team: Team) -> TeamRead:
    members = sorted(team.members, key=lambda m: ((m.user.name or m.user.email).lower() if m.user else ""))
    return TeamRead(
        id=team.id,
        name=team.name,
        description=team.description,
        tags=list(team.tags or []),
        created_by_id=team.created_by_id,
        members=[to_member_read(m) for m in members],
        created_at=team.created_at,
        updated_at=team.updated_at,
    )


def _team_snapshot(team: Team) -> dict:
    data = audit_service.snapshot(team, AUDIT_FIELDS)
    data["member_ids"] = sorted(str(m.user_id) for m in team.members)
    return data


def _commit_team_change(db: Session, team: Team) -> TeamRead:
    db.commit()
    cache.invalidate_team_cache()
    return to_team_read(_get_team_or_404(db, team.id))


def _log_team_update(db: Session, session: UserSession, team: Team, before: dict) -> None:
    audit_service.log_update(
        db,
        entity=AuditEntity.TEAM,
        entity_id=team.id,
        user_id=session.user_id,
        before=before,
        after=_team_snapshot(team),
    )


# =============================================================================
# Teams
# =============================================================================

def create_team(db: Session, session: UserSession, data: TeamCreate) -> TeamRead:
    """Create a team; the creator becomes its first member."""
    _require_team_manager(session)

    team = Team(
        name=data.name,
        description=data.description,
        tags=normalize_tags(data.tags),
        created_by_id=session.user_id,
    )
    team.members.append(TeamMember(user_id=session.user_id))
    db.add(team)
    db.flush()

    audit_service.log_event(
        db,
        action=AuditAction.CREATE,
        entity=AuditEntity.TEAM,
        entity_id=team.id,
        user_id=session.user_id,
        new_data=_team_snapshot(team),
    )
    logger.info(f"Team {team.id} created by {session.user_id}")
    return _commit_team_change(db, team)


def filter_teams_by_tags(teams: list[Team], tags: list[str], include_untagged: bool) -> list[Team]:
    """With tags: team must contain ALL of them. Without: include_untagged keeps untagged only."""
    if tags:
        wanted = set(tags)
        return [t for t in teams if wanted.issubset(t.tags or [])]
    if include_untagged:
        return [t for t in teams if not t.tags]
    return teams


def list_teams(
    db: Session,
    session: UserSession,
    search: str | None = None,
    tags: list[str] | None = None,
    include_untagged: bool = False,
) -> list[TeamRead]:
    _require_team_manager(session)

    def load() -> list[TeamRead]:
        query = db.query(Team).options(selectinload(Team.members).selectinload(TeamMember.user))
        if search:
            pattern = f"%{search.strip()}%"
            query = query.filter(or_(Team.name.ilike(pattern), Team.description.ilike(pattern)))
        teams = query.order_by(Team.name.asc(), Team.id.asc()).all()
        teams = filter_teams_by_tags(teams, normalize_tags(tags), include_untagged)
        return [to_team_read(t) for t in teams]

    return cache.get_or_set(
        "team:list",
        {"search": search, "tags": sorted(tags or []), "include_untagged": include_untagged},
        load,
        tags=[cache.TAG_TEAM_LIST],
    )


def get_team(db: Session, session: UserSession, team_id: UUID) -> TeamRead:
    _require_team_manager(session)
    return to_team_read(_get_team_or_404(db, team_id))


def update_team(db: Session, session: UserSession, team_id: UUID, data: TeamUpdate) -> TeamRead:
    _require_team_manager(session)
    team = _get_team_or_404(db, team_id)
    before = _team_snapshot(team)
    fields = data.model_fields_set

    if "name" in fields and data.name is not None:
        name = data.name.strip()
        if not name:
            raise HTTPException(status_code=422, detail="Team name must not be blank")
        team.name = name
    if "description" in fields:
        team.description = data.description
    if "tags" in fields and data.tags is not None:
        team.tags = normalize_tags(data.tags)

    _log_team_update(db, session, team, before)
    return _commit_team_change(db, team)


def add_tags(db: Session, session: UserSession, team_id: UUID, tags: list[str]) -> TeamRead:
    """Union with existing tags, order preserved, no duplicates."""
    _require_team_manager(session)
    team = _get_team_or_404(db, team_id)
    before = _team_snapshot(team)

    team.tags = normalize_tags([*(team.tags or []), *tags])
    _log_team_update(db, session, team, before)
    return _commit_team_change(db, team)


def remove_tags(db: Session, session: UserSession, team_id: UUID, tags: list[str]) -> TeamRead:
    _require_team_manager(session)
    team = _get_team_or_404(db, team_id)
    before = _team_snapshot(team)

    dropped = set(normalize_tags(tags))
    team.tags = [t for t in team.tags or [] if t not in dropped]
    _log_team_update(db, session, team, before)
    return _commit_team_change(db, team)


def delete_team(db: Session, session: UserSession, team_id: UUID) -> None:
    """Remove memberships, then the team; DELETE audit row keeps the snapshot."""
    _require_team_manager(session)
    team = _get_team_or_404(db, team_id)
    old_data = _team_snapshot(team)

    db.query(TeamMember).filter(TeamMember.team_id == team.id).delete(synchronize_session=False)
    db.expire(team, ["members"])
    audit_service.log_event(
        db,
        action=AuditAction.DELETE,
        entity=AuditEntity.TEAM,
        entity_id=team.id,
        user_id=session.user_id,
        old_data=old_data,
    )
    db.delete(team)
    db.commit()
    cache.invalidate_team_cache()
    logger.info(f"Team {team_id} deleted by {session.user_id}")


# =============================================================================
# Members
# =============================================================================

def get_members(db: Session, session: UserSession, team_id: UUID) -> list[TeamMemberRead]:
    _require_team_manager(session)
    return to_team_read(_get_team_or_404(db, team_id)).members


def add_member(db: Session, session: UserSession, team_id: UUID, user_id: UUID) -> TeamRead:
    _require_team_manager(session)
    team = _get_team_or_404(db, team_id)
    if not db.get(User, user_id):
        raise HTTPException(status_code=404, detail="User not found")
    if any(m.user_id == user_id for m in team.members):
        raise HTTPException(status_code=409, detail="User is already a member of this team")

    before = _team_snapshot(team)
    team.members.append(TeamMember(user_id=user_id))
    db.flush()
    _log_team_update(db, session, team, before)
    return _commit_team_change(db, team)


def remove_member(db: Session, session: UserSession, team_id: UUID, user_id: UUID) -> TeamRead:
    _require_team_manager(session)
    team = _get_team_or_404(db, team_id)
    member = next((m for m in team.members if m.user_id == user_id), None)
    if not member:
        raise HTTPException(status_code=404, detail="User is not a member of this team")

    before = _team_snapshot(team)
    team.members.remove(member)
    db.flush()
    _log_team_update(db, session, team, before)
    return _commit_team_change(db, team)


def my_team_tags(db: Session, session: UserSession) -> list[str]:
    """Sorted union of tags across the caller's teams."""
    rows = (
        db.query(Team.tags)
        .join(TeamMember, TeamMember.team_id == Team.id)
        .filter(TeamMember.user_id == session.user_id)
        .all()
    )
    tags: set[str] = set()
    for (team_tags,) in rows:
        tags.update(t for t in team_tags or [] if isinstance(t, str) and t)
    return sorted(tags)
