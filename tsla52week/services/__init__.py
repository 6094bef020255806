"""
Services module: price freshness cache and image memoization.
"""

from .prices import price_service, PriceService, PriceResult, is_stale
from .images import image_memoizer, ImageMemoizer, UploadResult

__all__ = [
    "price_service",
    "PriceService",
    "PriceResult",
    "is_stale",
    "image_memoizer",
    "ImageMemoizer",
    "UploadResult",
]
