"""
Models module containing Pydantic schemas.
"""

from .schemas import (
    PriceSource,
    PricePoint,
    PriceData,
    UploadRequest,
    UploadResponse,
    LatestImageResponse,
    HealthResponse,
    ErrorResponse
)

__all__ = [
    "PriceSource",
    "PricePoint",
    "PriceData",
    "UploadRequest",
    "UploadResponse",
    "LatestImageResponse",
    "HealthResponse",
    "ErrorResponse"
]
