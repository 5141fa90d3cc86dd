"""Data normalization utilities for consistent data quality."""

from typing import Iterable, Optional


def normalize_email(email: Optional[str]) -> Optional[str]:
    """
    Normalize email to lowercase.

    Args:
        email: Raw email input

    Returns:
        Lowercased email or None if empty
    """
    if not email:
        return None
    return email.strip().lower()


def normalize_name(name: Optional[str]) -> Optional[str]:
    """Strip whitespace and collapse multiple spaces; None if empty."""
    if not name:
        return None
    cleaned = " ".join(name.split())
    return cleaned or None


def normalize_tags(tags: Optional[Iterable[str]]) -> list[str]:
    """
    Trim tags, drop empties and duplicates, keep first-seen order.

    Tags are case-sensitive: "Billing" and "billing" are distinct.
    """
    if not tags:
        return []
    seen: set[str] = set()
    result: list[str] = []
    for tag in tags:
        if not isinstance(tag, str):
            continue
        cleaned = tag.strip()
        if cleaned and cleaned not in seen:
            seen.add(cleaned)
            result.append(cleaned)
    return result
