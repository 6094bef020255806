"""
Exception types shared across the service.

Clients raise these; services decide on fallbacks and the API layer
turns them into HTTP responses.
"""


class ConfigError(RuntimeError):
    """Raised when a required setting is missing or invalid."""


class StorageError(RuntimeError):
    """Raised when the KV store or the blob store rejects a request."""


class QuoteFetchError(RuntimeError):
    """Raised when price data cannot be fetched or parsed."""


class InvalidImageError(ValueError):
    """Raised when an uploaded image data URL cannot be accepted."""
