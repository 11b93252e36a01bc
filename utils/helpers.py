# =============================================================================
# CORRIDOR ACCESS SYSTEM - UTILITIES
# =============================================================================
# File: utils/helpers.py
# Description: Common utility functions used across the application
#              Time helpers, masking, validation and dot-path map access
# =============================================================================

from typing import Optional, Any, Dict, Mapping, MutableMapping
from datetime import datetime, timezone
import json
import re


# =============================================================================
# TIME HELPERS
# =============================================================================

def utc_now() -> datetime:
    """
    Get current UTC timestamp.

    Returns:
        datetime: Current UTC time with timezone info
    """
    return datetime.now(timezone.utc)


def ensure_aware(value: Optional[datetime]) -> Optional[datetime]:
    """
    Attach UTC to naive datetimes.

    SQLite hands back naive values for timezone-aware columns, so every
    comparison against the clock goes through this first.
    """
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def format_timestamp(value: datetime) -> str:
    """Render a datetime as 'YYYY-MM-DD HH:MM:SS'."""
    return value.strftime("%Y-%m-%d %H:%M:%S")


# =============================================================================
# DOT-PATH MAP ACCESS
# =============================================================================

def get_path(data: Mapping[str, Any], path: str, default: Any = None) -> Any:
    """
    Read a nested value addressed by a dot-separated path.

    Args:
        data: Root mapping
        path: Key path such as "user.profile.name"
        default: Returned when any segment is missing or not a mapping

    Example:
        >>> get_path({"a": {"b": 1}}, "a.b")
        1
    """
    head, _, rest = path.partition(".")
    if not isinstance(data, Mapping) or head not in data:
        return default
    if not rest:
        return data[head]
    return get_path(data[head], rest, default)


def set_path(data: MutableMapping[str, Any], path: str, value: Any) -> None:
    """
    Write a nested value, creating intermediate mappings as needed.

    A non-mapping value sitting on an intermediate segment is replaced
    by a new mapping.
    """
    head, _, rest = path.partition(".")
    if not rest:
        data[head] = value
        return
    child = data.get(head)
    if not isinstance(child, MutableMapping):
        child = {}
        data[head] = child
    set_path(child, rest, value)


def has_path(data: Mapping[str, Any], path: str) -> bool:
    head, _, rest = path.partition(".")
    if not isinstance(data, Mapping) or head not in data:
        return False
    if not rest:
        return True
    return has_path(data[head], rest)


def remove_path(data: MutableMapping[str, Any], path: str) -> bool:
    """
    Delete a nested value.

    Returns:
        bool: True if a value was removed
    """
    head, _, rest = path.partition(".")
    if not isinstance(data, MutableMapping) or head not in data:
        return False
    if not rest:
        del data[head]
        return True
    return remove_path(data[head], rest)


# =============================================================================
# VALIDATION
# =============================================================================

def is_valid_email(email: str) -> bool:
    """
    Validate email format.

    Args:
        email: Email address to validate

    Returns:
        bool: True if valid format
    """
    pattern = r'^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$'
    return bool(re.match(pattern, email))


def is_valid_username(username: str) -> bool:
    """
    Validate username format.

    Rules:
        - 3-50 characters
        - Starts with letter
        - Alphanumeric, dots and underscores only
    """
    if not 3 <= len(username) <= 50:
        return False
    pattern = r'^[a-zA-Z][a-zA-Z0-9_.]*$'
    return bool(re.match(pattern, username))


def is_api_path(path: str) -> bool:
    """Requests under /api/ get JSON failures instead of redirects."""
    return path.startswith("/api/")


# =============================================================================
# MASKING (LOG SAFE OUTPUT)
# =============================================================================

def mask_email(email: Optional[str]) -> str:
    """
    Mask email address for display/logging.

    Example: test@example.com -> t***@example.com
    """
    if not email or "@" not in email:
        return email or ""

    local, domain = email.split("@", 1)

    if len(local) <= 1:
        return f"{local}***@{domain}"

    return f"{local[0]}***@{domain}"


def mask_ip(ip: Optional[str]) -> str:
    """
    Mask IP address for privacy.

    Example: 192.168.1.100 -> 192.168.x.x
    """
    if not ip:
        return ""
    if ":" in ip:  # IPv6
        parts = ip.split(":")
        if len(parts) >= 2:
            return f"{parts[0]}:{parts[1]}:xxxx:xxxx"
        return ip

    parts = ip.split(".")
    if len(parts) == 4:
        return f"{parts[0]}.{parts[1]}.x.x"
    return ip


# =============================================================================
# JSON
# =============================================================================

def safe_json_loads(value: Optional[str], default: Any = None) -> Any:
    """
    Safely parse JSON string.

    Args:
        value: JSON string
        default: Default value if parsing fails
    """
    try:
        return json.loads(value)
    except (json.JSONDecodeError, TypeError):
        return default


def json_dumps(value: Any) -> str:
    """
    Serialize to JSON string.

    Datetimes are written as ISO-8601 strings.

    Raises:
        TypeError: If a value has no JSON form
    """
    return json.dumps(value, default=_json_default)


def _json_default(value: Any) -> Any:
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, (set, frozenset)):
        return sorted(value)
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


def strip_keys(data: Dict[str, Any], prefix: str) -> Dict[str, Any]:
    """Shallow copy of ``data`` without top-level keys starting with ``prefix``."""
    return {key: value for key, value in data.items() if not key.startswith(prefix)}
