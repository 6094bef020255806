"""
Core module containing configuration, errors and utilities.
"""

from .config import settings, validate_environment
from .errors import ConfigError, StorageError, QuoteFetchError, InvalidImageError
from .utils import get_timestamp, now_ms, safe_json_loads, safe_json_dumps

__all__ = [
    "settings",
    "validate_environment",
    "ConfigError",
    "StorageError",
    "QuoteFetchError",
    "InvalidImageError",
    "get_timestamp",
    "now_ms",
    "safe_json_loads",
    "safe_json_dumps",
]
