"""
Utility functions and helpers
"""

from .helpers import (
    clean_text,
    normalize_query,
    is_valid_email,
    is_valid_phone,
    round_half_up,
    format_price,
    page_count,
    short_id,
    retry_on_failure,
    truncate_list,
    merge_unique_lists
)
from .parsing import html_to_text, description_excerpt

__all__ = [
    "clean_text",
    "normalize_query",
    "is_valid_email",
    "is_valid_phone",
    "round_half_up",
    "format_price",
    "page_count",
    "short_id",
    "retry_on_failure",
    "truncate_list",
    "merge_unique_lists",
    "html_to_text",
    "description_excerpt"
]
