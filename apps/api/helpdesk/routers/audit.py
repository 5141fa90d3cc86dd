"""Audit router - API endpoints for viewing audit logs."""

from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from helpdesk.core.deps import get_db, require_roles
from helpdesk.db.enums import ROLES_CAN_VIEW_AUDIT, AuditEntity
from helpdesk.schemas.audit import AuditLogListResponse
from helpdesk.schemas.auth import UserSession
from helpdesk.services import audit_service
from helpdesk.utils.pagination import PaginationParams, get_pagination

router = APIRouter(prefix="/audit", tags=["Audit"])


@router.get("", response_model=AuditLogListResponse)
def list_audit_logs(
    entity: AuditEntity | None = Query(None, description="Filter by entity kind"),
    entity_id: UUID | None = Query(None, description="Filter by entity"),
    user_id: UUID | None = Query(None, description="Filter by actor"),
    pagination: PaginationParams = Depends(get_pagination),
    db: Session = Depends(get_db),
    session: UserSession = Depends(require_roles(ROLES_CAN_VIEW_AUDIT)),
) -> AuditLogListResponse:
    """
    List audit log entries, newest first.

    Requires: MANAGER or ADMIN.
    """
    return audit_service.list_audit_logs(
        db,
        pagination,
        entity=entity,
        entity_id=entity_id,
        user_id=user_id,
    )
