"""Helpers for parsing and normalising AI JSON responses."""

from __future__ import annotations

import json
import logging
import re
from typing import Any

from helpdesk.db.enums import TicketPriority

logger = logging.getLogger(__name__)

MAX_TAGS = 5
DEFAULT_TITLE = "Marketplace conversation"


def _strip_code_fences(text: str) -> str:
    content = text.strip()
    if content.startswith("```"):
        lines = content.splitlines()
        if lines:
            lines = lines[1:]
        if lines and lines[-1].strip() == "```":
            lines = lines[:-1]
        content = "\n".join(lines).strip()
    return content


def parse_json_object(text: str | None) -> dict | None:
    """Parse a JSON object, tolerating code fences and surrounding prose."""
    if not text:
        return None
    content = _strip_code_fences(text)
    try:
        data = json.loads(content)
    except json.JSONDecodeError as exc:
        match = re.search(r"\{[\s\S]*\}", content)
        if not match:
            logger.warning(f"Failed to parse JSON object: {exc}")
            return None
        try:
            data = json.loads(match.group(0))
        except json.JSONDecodeError as inner_exc:
            logger.warning(f"Failed to parse JSON object: {inner_exc}")
            return None
    return data if isinstance(data, dict) else None


def normalize_priority(value: Any) -> TicketPriority:
    """Upper-case and clamp to a known priority; anything else is MEDIUM."""
    if isinstance(value, str):
        candidate = value.strip().upper()
        if TicketPriority.has_value(candidate):
            return TicketPriority(candidate)
    return TicketPriority.MEDIUM


def clean_tags(value: Any) -> list[str]:
    """Keep non-empty trimmed strings, at most MAX_TAGS."""
    if not isinstance(value, list):
        return []
    tags = [tag.strip() for tag in value if isinstance(tag, str)]
    return [tag for tag in tags if tag][:MAX_TAGS]


def _coerce_text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, str):
        return value.strip()
    if isinstance(value, (int, float, bool)):
        return str(value)
    return ""


def coerce_processed_ticket(data: dict | None, raw_content: str) -> dict[str, Any]:
    """
    Turn whatever the model returned into a valid ticket draft.

    Always yields a non-empty title, a description, a valid priority
    and at most MAX_TAGS tags.
    """
    data = data or {}
    title = _coerce_text(data.get("title")) or DEFAULT_TITLE
    description = _coerce_text(data.get("description")) or raw_content
    return {
        "title": title[:500],
        "description": description,
        "priority": normalize_priority(data.get("priority")).value,
        "tags": clean_tags(data.get("tags")),
    }
