"""API routers."""

from helpdesk.routers.auth import router as auth_router
from helpdesk.routers.tickets import router as tickets_router
from helpdesk.routers.messages import router as messages_router
from helpdesk.routers.users import router as users_router
from helpdesk.routers.teams import router as teams_router
from helpdesk.routers.audit import router as audit_router
from helpdesk.routers.marketplace import router as marketplace_router
from helpdesk.routers.ai import router as ai_router
from helpdesk.routers.test_data import router as test_data_router
from helpdesk.routers.internal import router as internal_router

__all__ = [
    "auth_router",
    "tickets_router",
    "messages_router",
    "users_router",
    "teams_router",
    "audit_router",
    "marketplace_router",
    "ai_router",
    "test_data_router",
    "internal_router",
]
