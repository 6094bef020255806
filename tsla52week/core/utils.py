"""
Shared utility functions.

Timestamp handling, JSON helpers and small formatting helpers used
across the storage, service and API modules.
"""

import time
from datetime import datetime, timezone
from typing import Any
import json


def get_timestamp() -> str:
    """
    Get current UTC timestamp in ISO format.

    Returns:
        ISO-formatted UTC timestamp string
    """
    return datetime.now(timezone.utc).isoformat()


def now_ms() -> int:
    """
    Get current Unix time in milliseconds.

    Price data stores `lastUpdated` in milliseconds since the epoch.
    """
    return int(time.time() * 1000)


def parse_iso_timestamp(value: str) -> datetime:
    """
    Parse an ISO-8601 timestamp, accepting a trailing 'Z'.

    Returns:
        Timezone-aware datetime; naive inputs are assumed to be UTC
    """
    if value.endswith("Z"):
        value = value[:-1] + "+00:00"
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def safe_json_loads(data: str | bytes, default: Any = None) -> Any:
    """
    Safely parse JSON with error handling.

    Args:
        data: JSON string or bytes to parse
        default: Value to return if parsing fails

    Returns:
        Parsed JSON data or default value on failure
    """
    try:
        if isinstance(data, bytes):
            data = data.decode('utf-8')
        return json.loads(data)
    except (json.JSONDecodeError, UnicodeDecodeError, TypeError):
        return default


def safe_json_dumps(data: Any, default: str = "{}") -> str:
    """
    Safely serialize data to a compact JSON string.

    Args:
        data: Data to serialize
        default: Value to return if serialization fails

    Returns:
        JSON string or default value on failure
    """
    try:
        return json.dumps(data, separators=(",", ":"), default=str)
    except (TypeError, ValueError):
        return default


def format_duration(seconds: float) -> str:
    """
    Format duration in seconds to human-readable string.

    Args:
        seconds: Duration in seconds

    Returns:
        Human-readable duration string
    """
    if seconds < 60:
        return f"{int(seconds)} seconds"
    elif seconds < 3600:
        minutes = int(seconds // 60)
        return f"{minutes} minute{'s' if minutes != 1 else ''}"
    else:
        hours = int(seconds // 3600)
        return f"{hours} hour{'s' if hours != 1 else ''}"
