"""
Pydantic models for request/response validation.

Field names follow the JSON the browser client already speaks
(`lastUpdated`, `dataUrl`, `priceData`, `isNewUpload`), exposed in
Python as snake_case through aliases.
"""

from pydantic import BaseModel, Field
from typing import Optional
from enum import Enum


class PriceSource(str, Enum):
    """
    Where a served price came from.

    CACHE: fresh value read from the KV store
    LIVE: fetched from the quote provider during this request
    STALE: cached value past the staleness window, served because the refetch failed
    DEFAULT: hard-coded fallback, nothing else was available
    DEBUG: fixed debug prices, no I/O performed
    """
    CACHE = "cache"
    LIVE = "live"
    STALE = "stale"
    DEFAULT = "default"
    DEBUG = "debug"


# ============================================================
# Price Models
# ============================================================

class PricePoint(BaseModel):
    """A 52-week high/low pair without a timestamp."""
    high: float = Field(..., gt=0, description="52-week high")
    low: float = Field(..., gt=0, description="52-week low")


class PriceData(PricePoint):
    """
    The cached price record.

    Stored as JSON under the KV price key and returned verbatim by
    the price endpoints.
    """
    last_updated: int = Field(
        ...,
        alias="lastUpdated",
        ge=0,
        description="Milliseconds since the Unix epoch when the prices were fetched"
    )

    class Config:
        populate_by_name = True
        json_schema_extra = {
            "example": {
                "high": 358.64,
                "low": 138.8,
                "lastUpdated": 1735689600000
            }
        }

    def to_wire(self) -> dict:
        """Serialize with the client-facing field names."""
        return self.model_dump(by_alias=True)


# ============================================================
# Image Models
# ============================================================

class UploadRequest(BaseModel):
    """
    Body of POST /api/upload-blob.

    The browser draws the meme on a canvas and posts it back as a
    PNG data URL together with the prices it drew.
    """
    data_url: str = Field(
        ...,
        alias="dataUrl",
        min_length=1,
        description="data:image/png;base64,... rendering of the meme"
    )
    price_data: PricePoint = Field(
        ...,
        alias="priceData",
        description="Prices drawn onto the image"
    )

    class Config:
        populate_by_name = True
        json_schema_extra = {
            "example": {
                "dataUrl": "data:image/png;base64,iVBORw0KGgo...",
                "priceData": {"high": 358.64, "low": 138.8}
            }
        }


class UploadResponse(BaseModel):
    """Response of POST /api/upload-blob."""
    url: str
    is_new_upload: bool = Field(
        default=False,
        alias="isNewUpload",
        description="False when an image with the same prices was already stored"
    )

    class Config:
        populate_by_name = True


class LatestImageResponse(BaseModel):
    """Response of GET /api/get-latest-blob."""
    url: Optional[str] = None


# ============================================================
# Service Models
# ============================================================

class HealthResponse(BaseModel):
    """Health check response."""
    status: str = "healthy"
    service: str = "tsla52week"
    version: str
    kv_connected: bool
    debug: bool = False
    timestamp: str


class ErrorResponse(BaseModel):
    """Generic error response."""
    error: str
    detail: Optional[str] = None
    timestamp: Optional[str] = None
