"""FastAPI application entry point."""
import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import text

from helpdesk.core.config import settings
from helpdesk.core.structured_logging import (
    REQUEST_ID_HEADER,
    RequestContextMiddleware,
    configure_logging,
)
from helpdesk.db.session import engine

configure_logging(settings.LOG_LEVEL, json_output=settings.LOG_JSON)
logger = logging.getLogger(__name__)

# ============================================================================
# Sentry Integration (optional, for production error tracking)
# ============================================================================

if settings.SENTRY_DSN and settings.ENV != "dev":
    import sentry_sdk
    from sentry_sdk.integrations.fastapi import FastApiIntegration
    from sentry_sdk.integrations.sqlalchemy import SqlalchemyIntegration

    sentry_sdk.init(
        dsn=settings.SENTRY_DSN,
        environment=settings.ENV,
        integrations=[
            FastApiIntegration(transaction_style="endpoint"),
            SqlalchemyIntegration(),
        ],
        traces_sample_rate=0.1,  # 10% of requests for performance monitoring
        send_default_pii=False,  # Don't send PII to Sentry
    )
    logger.info("Sentry initialized for error tracking")

# ============================================================================
# Rate Limiting
# ============================================================================

from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from helpdesk.core.rate_limit import limiter


# ============================================================================
# FastAPI App
# ============================================================================

app = FastAPI(
    title="Helpdesk API",
    description="Customer-support ticketing API with AI-assisted marketplace intake",
    version=settings.VERSION,
    docs_url="/docs" if settings.ENV == "dev" else None,
    redoc_url="/redoc" if settings.ENV == "dev" else None,
)

# Add rate limiter
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception(f"Unhandled error on {request.method} {request.url.path}")
    return JSONResponse(status_code=500, content={"detail": "Internal server error"})


app.add_middleware(RequestContextMiddleware)

# CORS middleware - must be added before routers
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
    allow_headers=["Content-Type", "Authorization", "X-Requested-With", REQUEST_ID_HEADER],
    expose_headers=[REQUEST_ID_HEADER],
)

# ============================================================================
# Routers
# ============================================================================

from helpdesk.routers import (
    ai_router,
    audit_router,
    auth_router,
    internal_router,
    marketplace_router,
    messages_router,
    teams_router,
    test_data_router,
    tickets_router,
    users_router,
)

app.include_router(auth_router)

# Tickets and their messages
app.include_router(tickets_router)
app.include_router(messages_router)

# Directory and teams
app.include_router(users_router)
app.include_router(teams_router)

# Audit Trail (Manager+)
app.include_router(audit_router)

# AI-assisted intake and reply suggestions
app.include_router(marketplace_router)
app.include_router(ai_router)

# Internal endpoints (scheduled/cron jobs - protected by INTERNAL_SECRET)
app.include_router(internal_router)

# Synthetic test data (ADMIN, can be switched off per environment)
if settings.TEST_DATA_ENDPOINTS_ENABLED:
    app.include_router(test_data_router)


# ============================================================================
# Health Check
# ============================================================================

@app.get("/health")
def health():
    """
    Health check endpoint.

    Verifies database connectivity and returns environment info.
    """
    with engine.connect() as conn:
        conn.execute(text("SELECT 1"))
    return {"status": "ok", "env": settings.ENV, "version": settings.VERSION}
