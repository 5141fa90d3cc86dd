"""
Internal endpoints for scheduled/cron operations.

Protected by X-Internal-Secret header.
Call from external cron (Render/Railway/GH Actions).
"""
import logging

from fastapi import APIRouter, Header, HTTPException

from helpdesk.core.config import settings
from helpdesk.db.session import SessionLocal
from helpdesk.schemas.test_data import CleanupResponse
from helpdesk.services import test_data_cleanup_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/internal/scheduled", tags=["internal"])


def verify_internal_secret(x_internal_secret: str = Header(...)):
    """Verify the internal secret header."""
    expected = settings.INTERNAL_SECRET
    if not expected:
        raise HTTPException(status_code=501, detail="INTERNAL_SECRET not configured")
    if x_internal_secret != expected:
        raise HTTPException(status_code=403, detail="Invalid internal secret")


@router.post("/cleanup-test-data", response_model=CleanupResponse)
def cleanup_test_data(x_internal_secret: str = Header(...)):
    """
    Sweep expired synthetic test data.

    Deletes test users whose cleanup_at has passed, plus their tickets,
    messages, conversations, memberships and audit rows.
    """
    verify_internal_secret(x_internal_secret)

    with SessionLocal() as db:
        result = test_data_cleanup_service.cleanup_expired(db)

    logger.info(
        f"Scheduled test-data cleanup removed {result.deleted_users} users, "
        f"{result.deleted_tickets} tickets"
    )
    return CleanupResponse(**result.as_dict())
