"""Structured logging helpers (no tokens, no raw conversation text)."""

import logging
import time
import uuid
from typing import Any

import structlog
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request

REQUEST_ID_HEADER = "X-Request-ID"
_CONTEXT_KEYS = ("user_id", "request_id", "route", "method", "status_code", "duration_ms")

logger = logging.getLogger("helpdesk.request")


def json_formatter() -> structlog.stdlib.ProcessorFormatter:
    """Render stdlib records as one JSON object each, with any safe context extras."""
    return structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=[
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.stdlib.add_log_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.ExtraAdder(allow=_CONTEXT_KEYS),
        ],
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            structlog.processors.format_exc_info,
            structlog.processors.EventRenamer("message"),
            structlog.processors.JSONRenderer(default=str),
        ],
    )


def configure_logging(level: str = "INFO", json_output: bool = False) -> None:
    """Configure the root logger once at startup."""
    handler = logging.StreamHandler()
    if json_output:
        handler.setFormatter(json_formatter())
    else:
        handler.setFormatter(
            logging.Formatter(
                "%(asctime)s [%(levelname)s] %(name)s: %(message)s",
                datefmt="%Y-%m-%d %H:%M:%S",
            )
        )
    root = logging.getLogger()
    root.handlers = [handler]
    root.setLevel(level.upper())


def build_log_context(
    *,
    user_id: str | None = None,
    request_id: str | None = None,
    route: str | None = None,
    method: str | None = None,
) -> dict[str, Any]:
    """Return a safe log context dict."""
    context: dict[str, Any] = {}
    if user_id:
        context["user_id"] = user_id
    if request_id:
        context["request_id"] = request_id
    if route:
        context["route"] = route
    if method:
        context["method"] = method
    return context


class RequestContextMiddleware(BaseHTTPMiddleware):
    """Assign X-Request-ID and log one line per request."""

    async def dispatch(self, request: Request, call_next):
        request_id = request.headers.get(REQUEST_ID_HEADER) or str(uuid.uuid4())
        request.state.request_id = request_id
        started = time.perf_counter()

        response = await call_next(request)

        context = build_log_context(
            request_id=request_id,
            route=request.url.path,
            method=request.method,
        )
        context["status_code"] = response.status_code
        context["duration_ms"] = round((time.perf_counter() - started) * 1000, 1)
        logger.info(
            f"{request.method} {request.url.path} -> {response.status_code}",
            extra=context,
        )
        response.headers[REQUEST_ID_HEADER] = request_id
        return response
