"""Utility modules."""

from helpdesk.utils.normalization import (
    normalize_email,
    normalize_name,
    normalize_tags,
)
from helpdesk.utils.pagination import (
    PaginationParams,
    decode_offset_cursor,
    encode_offset_cursor,
    get_pagination,
    slice_page,
)

__all__ = [
    # Normalization
    "normalize_email",
    "normalize_name",
    "normalize_tags",
    # Pagination
    "PaginationParams",
    "decode_offset_cursor",
    "encode_offset_cursor",
    "get_pagination",
    "slice_page",
]
