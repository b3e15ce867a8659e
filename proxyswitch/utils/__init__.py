"""Header and transport utilities."""

from .headers import (
    DEFAULT_USER_AGENT,
    SINGLE_VALUE_HEADERS,
    GlobalHeaders,
    canonicalize_header_name,
    is_single_value_header,
    merge_global_headers,
)


__all__ = [
    "DEFAULT_USER_AGENT",
    "SINGLE_VALUE_HEADERS",
    "GlobalHeaders",
    "canonicalize_header_name",
    "is_single_value_header",
    "merge_global_headers",
]
