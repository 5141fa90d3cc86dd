"""Pagination utilities for list endpoints."""

from dataclasses import dataclass

from fastapi import HTTPException, Query


# Pagination limits
DEFAULT_PAGE = 1
DEFAULT_PER_PAGE = 20
MAX_PER_PAGE = 100


@dataclass
class PaginationParams:
    """Pagination parameters from query string."""
    page: int
    per_page: int

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.per_page


def get_pagination(
    page: int = Query(DEFAULT_PAGE, ge=1, description="Page number (1-indexed)"),
    per_page: int = Query(DEFAULT_PER_PAGE, ge=1, le=MAX_PER_PAGE, description=f"Items per page (max {MAX_PER_PAGE})"),
) -> PaginationParams:
    """
    Pagination dependency.

    Usage:
        @router.get("/items")
        def list_items(pagination: PaginationParams = Depends(get_pagination)):
            ...
    """
    return PaginationParams(page=page, per_page=per_page)


# =============================================================================
# Offset cursors
# =============================================================================

def decode_offset_cursor(cursor: str | None) -> int:
    """
    Decode an opaque offset cursor.

    Raises:
        HTTPException 400: Malformed cursor
    """
    if not cursor:
        return 0
    try:
        offset = int(cursor)
    except ValueError:
        raise HTTPException(status_code=400, detail="Invalid cursor")
    if offset < 0:
        raise HTTPException(status_code=400, detail="Invalid cursor")
    return offset


def encode_offset_cursor(offset: int) -> str:
    return str(offset)


def slice_page(items: list, cursor: str | None, limit: int) -> tuple[list, str | None]:
    """Return (page, next_cursor) for an already-ordered list."""
    offset = decode_offset_cursor(cursor)
    page = items[offset:offset + limit]
    next_offset = offset + limit
    next_cursor = encode_offset_cursor(next_offset) if next_offset < len(items) else None
    return page, next_cursor
