"""
API Routes - price and image endpoints used by the meme page.

- GET  /api/get-price: current prices through the freshness cache
- GET  /api/tsla-price: cached prices only, never fetches
- POST /api/update-price: force a refetch
- GET  /api/get-latest-blob: URL of the latest rendered image
- POST /api/upload-blob: memoized upload of a rendered image
- GET  /api/og: redirect to the latest image (social preview)

Error bodies keep the `{"error": ...}` shape the browser client reads.
"""

import logging
from fastapi import APIRouter, Response, status
from fastapi.responses import JSONResponse, RedirectResponse

from ..core.config import settings
from ..core.errors import InvalidImageError, StorageError
from ..core.utils import get_timestamp
from ..models.schemas import (
    PriceData,
    PriceSource,
    UploadRequest,
    UploadResponse,
    LatestImageResponse,
    HealthResponse,
    ErrorResponse
)
from ..services.images import image_memoizer
from ..services.prices import price_service
from ..storage.kv import kv_store

# Configure logging
logger = logging.getLogger(__name__)

# Create the routers
router = APIRouter(prefix="/api")
health_router = APIRouter()

PRICE_CACHE_CONTROL = "public, s-maxage=7200, stale-while-revalidate=3600"


def error_response(status_code: int, error: str, detail: str | None = None) -> JSONResponse:
    """Build a JSON error body in the shape the client expects."""
    return JSONResponse(
        status_code=status_code,
        content=ErrorResponse(error=error, detail=detail, timestamp=get_timestamp()).model_dump(exclude_none=True)
    )


# ============================================================
# Price Endpoints
# ============================================================

@router.get(
    "/get-price",
    response_model=PriceData,
    summary="Get current 52-week prices",
    description="""
    Serve the 52-week high/low through the freshness cache.

    Cached prices younger than the staleness window are returned as is;
    older ones are refetched (one retry). If the refetch fails the stale
    prices, or the built-in defaults, are served instead. This endpoint
    never returns an error.
    """
)
async def get_price(response: Response) -> PriceData:
    try:
        result = await price_service.get_prices()
        data, source = result.data, result.source
    except Exception as e:
        logger.error(f"Unexpected error serving prices: {str(e)}", exc_info=True)
        data, source = price_service.default_prices(), PriceSource.DEFAULT

    response.headers["Cache-Control"] = PRICE_CACHE_CONTROL
    response.headers["X-Price-Source"] = source.value
    return data


@router.get(
    "/tsla-price",
    response_model=PriceData,
    summary="Get cached prices",
    description="Return the cached price record without fetching. 503 when nothing is cached.",
    responses={503: {"model": ErrorResponse, "description": "No cached data"}}
)
async def get_cached_price():
    try:
        cached = await price_service.peek()
    except StorageError as e:
        logger.error(f"KV read failed: {str(e)}")
        cached = None

    if cached is None:
        return error_response(status.HTTP_503_SERVICE_UNAVAILABLE, "Data not available")
    return cached


@router.post(
    "/update-price",
    response_model=PriceData,
    summary="Force a price refresh",
    description="Refetch prices from the quote provider and update the cache.",
    responses={502: {"model": ErrorResponse, "description": "Quote provider failed"}}
)
async def update_price():
    result = await price_service.refresh(force=True)

    if result.source not in (PriceSource.LIVE, PriceSource.DEBUG):
        return error_response(
            status.HTTP_502_BAD_GATEWAY,
            "Failed to fetch price data",
            detail=f"Serving {result.source.value} prices"
        )
    return result.data


# ============================================================
# Image Endpoints
# ============================================================

@router.get(
    "/get-latest-blob",
    response_model=LatestImageResponse,
    summary="Latest rendered image",
    responses={500: {"model": ErrorResponse, "description": "Blob store failure"}}
)
async def get_latest_blob():
    try:
        latest = await image_memoizer.latest_image()
    except StorageError as e:
        logger.error(f"Error fetching blob: {str(e)}")
        return error_response(status.HTTP_500_INTERNAL_SERVER_ERROR, "Failed to fetch image")

    return LatestImageResponse(url=latest.url if latest and latest.url else None)


@router.post(
    "/upload-blob",
    response_model=UploadResponse,
    summary="Store a rendered image",
    description="""
    Store the meme the browser rendered.

    If the most recent stored image already shows the submitted prices,
    its URL is returned and nothing is uploaded (`isNewUpload` false).
    """,
    responses={
        400: {"model": ErrorResponse, "description": "Unusable image data"},
        403: {"model": ErrorResponse, "description": "Uploads disabled in debug mode"},
        500: {"model": ErrorResponse, "description": "Blob store failure"}
    }
)
async def upload_blob(payload: UploadRequest):
    if settings.debug:
        return error_response(status.HTTP_403_FORBIDDEN, "Uploads are disabled in debug mode")

    try:
        result = await image_memoizer.memoize(payload.data_url, payload.price_data)
    except InvalidImageError as e:
        logger.warning(f"Rejected upload: {str(e)}")
        return error_response(status.HTTP_400_BAD_REQUEST, "Invalid image", detail=str(e))
    except StorageError as e:
        logger.error(f"Error uploading to blob: {str(e)}")
        return error_response(status.HTTP_500_INTERNAL_SERVER_ERROR, "Failed to upload image")

    return UploadResponse(url=result.url, is_new_upload=result.is_new_upload)


@router.get(
    "/og",
    summary="Social preview image",
    description="Redirect to the latest rendered image.",
    response_class=RedirectResponse,
    status_code=status.HTTP_307_TEMPORARY_REDIRECT,
    responses={404: {"model": ErrorResponse, "description": "No image stored yet"}}
)
async def og_image():
    try:
        latest = await image_memoizer.latest_image()
    except StorageError as e:
        logger.error(f"Error fetching blob: {str(e)}")
        return error_response(status.HTTP_500_INTERNAL_SERVER_ERROR, "Failed to fetch image")

    if latest is None or not latest.url:
        return error_response(status.HTTP_404_NOT_FOUND, "Image not found")
    return RedirectResponse(latest.url, status_code=status.HTTP_307_TEMPORARY_REDIRECT)


# ============================================================
# Utility Endpoints
# ============================================================

@health_router.get(
    "/health",
    response_model=HealthResponse,
    summary="Health check",
    description="Check the health of the API and its KV store."
)
async def health_check() -> HealthResponse:
    kv_healthy = await kv_store.health_check()

    return HealthResponse(
        status="healthy" if kv_healthy else "degraded",
        version=settings.api_version,
        kv_connected=kv_healthy,
        debug=settings.debug,
        timestamp=get_timestamp()
    )
