"""In-process read cache with expiry and tag invalidation.

Process-local only: each worker keeps its own entries and a write on one
worker does not evict entries on another. Entries expire after
CACHE_TTL_SECONDS, which bounds how stale a list can be; expired entries
are swept whenever a new entry is stored.
"""

import json
import logging
import threading
import time
from dataclasses import dataclass, field
from typing import Any, Callable
from uuid import UUID

from helpdesk.core.config import settings

logger = logging.getLogger(__name__)

TAG_TICKET_LIST = "ticket:list"
TAG_USER_LIST = "user:list"
TAG_TEAM_LIST = "team:list"


def ticket_detail_tag(ticket_id: UUID | str) -> str:
    return f"ticket:detail:{ticket_id}"


@dataclass
class _Entry:
    value: Any
    expires_at: float
    tags: frozenset[str] = field(default_factory=frozenset)


_entries: dict[str, _Entry] = {}
_lock = threading.Lock()


def build_key(prefix: str, params: dict[str, Any] | None) -> str:
    """Canonical key: prefix + JSON of params with sorted keys."""
    return f"{prefix}:{json.dumps(params or {}, sort_keys=True, default=str)}"


def get_or_set(
    prefix: str,
    params: dict[str, Any] | None,
    fn: Callable[[], Any],
    ttl: int | None = None,
    tags: list[str] | None = None,
) -> Any:
    """
    Return the cached value for (prefix, params) or compute and store it.

    Values should be plain data (schemas / dicts), never ORM instances.
    """
    ttl_seconds = settings.CACHE_TTL_SECONDS if ttl is None else ttl
    if not settings.CACHE_ENABLED or ttl_seconds <= 0:
        return fn()

    key = build_key(prefix, params)
    now = time.monotonic()
    with _lock:
        entry = _entries.get(key)
        if entry is not None and entry.expires_at > now:
            return entry.value
        if entry is not None:
            del _entries[key]

    value = fn()
    with _lock:
        now = time.monotonic()
        _sweep_expired(now)
        _entries[key] = _Entry(
            value=value,
            expires_at=now + ttl_seconds,
            tags=frozenset(tags or ()),
        )
    return value


def _sweep_expired(now: float) -> None:
    """Drop every expired entry. Caller holds `_lock`."""
    expired = [key for key, entry in _entries.items() if entry.expires_at <= now]
    for key in expired:
        del _entries[key]


def invalidate_tag(tag: str) -> int:
    """Drop every entry carrying `tag`. Returns number of evicted entries."""
    with _lock:
        keys = [key for key, entry in _entries.items() if tag in entry.tags]
        for key in keys:
            del _entries[key]
    if keys:
        logger.debug(f"Cache invalidated {len(keys)} entries for tag {tag}")
    return len(keys)


def clear() -> None:
    with _lock:
        _entries.clear()


def size() -> int:
    with _lock:
        return len(_entries)


# =============================================================================
# Resource helpers
# =============================================================================

def invalidate_ticket_cache() -> None:
    invalidate_tag(TAG_TICKET_LIST)


def invalidate_ticket_detail(ticket_id: UUID | str) -> None:
    invalidate_tag(ticket_detail_tag(ticket_id))


def invalidate_user_cache() -> None:
    invalidate_tag(TAG_USER_LIST)


def invalidate_team_cache() -> None:
    invalidate_tag(TAG_TEAM_LIST)
