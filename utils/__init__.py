# =============================================================================
# UTILS MODULE INITIALIZATION
# =============================================================================
# File: utils/__init__.py
# Description: Utils module exports
# =============================================================================

from utils.helpers import (
    utc_now,
    ensure_aware,
    format_timestamp,
    get_path,
    set_path,
    has_path,
    remove_path,
    is_valid_email,
    is_valid_username,
    is_api_path,
    mask_email,
    mask_ip,
    safe_json_loads,
    json_dumps,
    strip_keys,
)

__all__ = [
    "utc_now",
    "ensure_aware",
    "format_timestamp",
    "get_path",
    "set_path",
    "has_path",
    "remove_path",
    "is_valid_email",
    "is_valid_username",
    "is_api_path",
    "mask_email",
    "mask_ip",
    "safe_json_loads",
    "json_dumps",
    "strip_keys",
]
