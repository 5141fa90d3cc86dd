"""Service layer modules."""

from helpdesk.services.user_service import (
    get_user_by_email,
    get_user_by_id,
    get_user_or_404,
)

# Import service modules (not individual functions) for cleaner access
from helpdesk.services import audit_service
from helpdesk.services import auth_service
from helpdesk.services import ticket_service
from helpdesk.services import message_service
from helpdesk.services import team_service
from helpdesk.services import tracing_service
from helpdesk.services import suggestion_service
from helpdesk.services import marketplace_service
from helpdesk.services import test_data_service
from helpdesk.services import test_data_cleanup_service

__all__ = [
    # User service
    "get_user_by_email",
    "get_user_by_id",
    "get_user_or_404",
    # Modules
    "audit_service",
    "auth_service",
    "ticket_service",
    "message_service",
    "team_service",
    "tracing_service",
    "suggestion_service",
    "marketplace_service",
    "test_data_service",
    "test_data_cleanup_service",
]
