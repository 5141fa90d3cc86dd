"""Audit log schemas."""

from datetime import datetime
from typing import Any
from uuid import UUID

from pydantic import BaseModel

from helpdesk.db.enums import AuditAction, AuditEntity


class AuditLogRead(BaseModel):
    """Audit log entry for API response."""
    id: UUID
    action: AuditAction
    entity: AuditEntity
    entity_id: UUID
    user_id: UUID | None
    actor_name: str | None = None
    actor_email: str | None = None
    old_data: dict[str, Any] | None
    new_data: dict[str, Any] | None
    timestamp: datetime


class AuditLogListResponse(BaseModel):
    """Paginated audit log response."""
    items: list[AuditLogRead]
    total: int
    page: int
    per_page: int
