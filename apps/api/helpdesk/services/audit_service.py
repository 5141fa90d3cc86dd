"""Audit logging service - append-only mutation trail.

Rows are added to the caller's session and committed together with the
change they describe. A failed audit insert therefore rolls the mutation
back instead of being silently dropped.

Security guidelines:
- NEVER log secrets (API keys, tokens)
- Snapshot only the fields that describe the change
"""

import enum
import json
from datetime import datetime
from typing import Any, Iterable
from uuid import UUID

from sqlalchemy.orm import Session

from helpdesk.db.enums import AuditAction, AuditEntity
from helpdesk.db.models import AuditLog, User
from helpdesk.schemas.audit import AuditLogListResponse, AuditLogRead
from helpdesk.utils.pagination import PaginationParams


def _json_safe(value: Any) -> Any:
    if isinstance(value, enum.Enum):
        return value.value
    if isinstance(value, UUID):
        return str(value)
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, dict):
        return {str(k): _json_safe(v) for k, v in value.items()}
    if isinstance(value, (list, tuple, set)):
        return [_json_safe(v) for v in value]
    return value


def snapshot(obj: Any, fields: Iterable[str]) -> dict[str, Any]:
    """JSON-safe dict of `fields` read from an ORM instance."""
    return {field: _json_safe(getattr(obj, field, None)) for field in fields}


def canonical_json(obj: Any) -> str:
    """Sorted-key compact JSON used for change comparison."""
    return json.dumps(obj, sort_keys=True, separators=(",", ":"), default=str)


def get_changed_fields(
    old_data: dict[str, Any] | None,
    new_data: dict[str, Any] | None,
) -> dict[str, dict[str, Any]]:
    """Return `{key: {"old": ..., "new": ...}}` for every key whose value differs."""
    old_data = old_data or {}
    new_data = new_data or {}
    changes: dict[str, dict[str, Any]] = {}
    for key in {*old_data.keys(), *new_data.keys()}:
        old_value = old_data.get(key)
        new_value = new_data.get(key)
        if canonical_json(_json_safe(old_value)) != canonical_json(_json_safe(new_value)):
            changes[key] = {"old": _json_safe(old_value), "new": _json_safe(new_value)}
    return changes


def log_event(
    db: Session,
    action: AuditAction,
    entity: AuditEntity,
    entity_id: UUID,
    user_id: UUID | None = None,
    old_data: dict[str, Any] | None = None,
    new_data: dict[str, Any] | None = None,
) -> AuditLog:
    """
    Add an audit row to the current transaction.

    Args:
        db: Database session (the caller commits)
        action: CREATE / UPDATE / DELETE
        entity: Kind of entity affected
        entity_id: ID of the affected entity
        user_id: Actor (None for system jobs)
        old_data: State before the change
        new_data: State after the change

    Returns:
        The pending audit log entry
    """
    entry = AuditLog(
        action=action,
        entity=entity,
        entity_id=entity_id,
        user_id=user_id,
        old_data=_json_safe(old_data) if old_data is not None else None,
        new_data=_json_safe(new_data) if new_data is not None else None,
    )
    db.add(entry)
    return entry


def log_update(
    db: Session,
    entity: AuditEntity,
    entity_id: UUID,
    user_id: UUID | None,
    before: dict[str, Any],
    after: dict[str, Any],
) -> AuditLog | None:
    """Log an UPDATE carrying only the changed fields; no row when nothing changed."""
    changes = get_changed_fields(before, after)
    if not changes:
        return None
    return log_event(
        db,
        action=AuditAction.UPDATE,
        entity=entity,
        entity_id=entity_id,
        user_id=user_id,
        old_data={key: change["old"] for key, change in changes.items()},
        new_data={key: change["new"] for key, change in changes.items()},
    )


def get_last_actors(
    db: Session,
    entity: AuditEntity,
    entity_ids: list[UUID],
) -> dict[UUID, User]:
    """Map entity id -> user who wrote the most recent audit row for it."""
    if not entity_ids:
        return {}
    logs = (
        db.query(AuditLog)
        .filter(
            AuditLog.entity == entity,
            AuditLog.entity_id.in_(entity_ids),
            AuditLog.user_id.isnot(None),
        )
        .order_by(AuditLog.timestamp.desc(), AuditLog.id.desc())
        .all()
    )
    latest: dict[UUID, UUID] = {}
    for log in logs:
        latest.setdefault(log.entity_id, log.user_id)

    users = db.query(User).filter(User.id.in_(set(latest.values()))).all() if latest else []
    by_id = {user.id: user for user in users}
    return {
        entity_id: by_id[user_id]
        for entity_id, user_id in latest.items()
        if user_id in by_id
    }


def list_audit_logs(
    db: Session,
    pagination: PaginationParams,
    entity: AuditEntity | None = None,
    entity_id: UUID | None = None,
    user_id: UUID | None = None,
) -> AuditLogListResponse:
    """Newest-first audit rows with actor names resolved."""
    query = db.query(AuditLog)
    if entity:
        query = query.filter(AuditLog.entity == entity)
    if entity_id:
        query = query.filter(AuditLog.entity_id == entity_id)
    if user_id:
        query = query.filter(AuditLog.user_id == user_id)

    total = query.count()
    logs = (
        query.order_by(AuditLog.timestamp.desc(), AuditLog.id.desc())
        .offset(pagination.offset)
        .limit(pagination.per_page)
        .all()
    )

    actor_ids = {log.user_id for log in logs if log.user_id}
    actors = {}
    if actor_ids:
        actors = {u.id: u for u in db.query(User).filter(User.id.in_(actor_ids)).all()}

    items = []
    for log in logs:
        actor = actors.get(log.user_id)
        items.append(
            AuditLogRead(
                id=log.id,
                action=log.action,
                entity=log.entity,
                entity_id=log.entity_id,
                user_id=log.user_id,
                actor_name=actor.name if actor else None,
                actor_email=actor.email if actor else None,
                old_data=log.old_data,
                new_data=log.new_data,
                timestamp=log.timestamp,
            )
        )

    return AuditLogListResponse(
        items=items,
        total=total,
        page=pagination.page,
        per_page=pagination.per_page,
    )
