"""
FastAPI Application Entry Point

Serves the JSON and image endpoints behind the TSLA 52-week meme
page. The page itself draws the prices onto the background image
in the browser; this service only:
- Serves prices from the KV-backed freshness cache
- Refetches from Alpha Vantage when the cache is stale
- Memoizes the rendered image in blob storage

Run with: uvicorn tsla52week.main:app --host 0.0.0.0 --port 8000
"""

import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError

from .core.config import settings, validate_environment
from .core.errors import ConfigError
from .core.utils import get_timestamp
from .api.routes import router, health_router

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


# ============================================================
# Application Lifespan Handler
# ============================================================

@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan manager.

    Startup: check required environment variables and KV connectivity.
    Missing configuration is logged, not fatal; the price endpoint
    still answers with fallback prices.
    """
    logger.info("=" * 60)
    logger.info("TSLA 52 WEEK SERVICE STARTING")
    logger.info("=" * 60)
    logger.info(f"Server Port: {settings.server_port}")
    logger.info(f"API Version: {settings.api_version}")
    logger.info(f"Symbol: {settings.quote.symbol}")
    logger.info(f"Staleness window: {settings.cache.staleness_seconds}s")
    if settings.debug:
        logger.info("Debug mode: fixed prices, uploads disabled")

    try:
        validate_environment()
    except ConfigError as e:
        logger.warning(f"⚠ {str(e)}")

    from .storage.kv import kv_store
    if await kv_store.health_check():
        logger.info("✓ KV store connection verified")
    else:
        logger.warning("⚠ Could not verify KV store connection")

    logger.info("=" * 60)

    yield

    logger.info("API shutting down...")


# ============================================================
# FastAPI Application Instance
# ============================================================

app = FastAPI(
    title=settings.api_title,
    description=settings.api_description,
    version=settings.api_version,
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_url="/openapi.json"
)


# ============================================================
# Middleware Configuration
# ============================================================

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["GET", "POST"],
    allow_headers=["*"],
)


# ============================================================
# Exception Handlers
# ============================================================

@app.exception_handler(RequestValidationError)
async def validation_exception_handler(
    request: Request,
    exc: RequestValidationError
):
    """Return 422 with details about what failed validation."""
    logger.warning(f"Validation error on {request.url.path}: {exc.errors()}")
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={
            "error": "Validation failed",
            "detail": jsonable_errors(exc),
            "timestamp": get_timestamp()
        }
    )


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Log unexpected errors and answer with a JSON 500."""
    logger.error(f"Unhandled exception: {str(exc)}", exc_info=True)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "error": "Internal server error",
            "detail": "An unexpected error occurred. Please try again.",
            "timestamp": get_timestamp()
        }
    )


def jsonable_errors(exc: RequestValidationError) -> list[dict]:
    # Validation contexts may hold exception objects
    return [
        {key: value for key, value in error.items() if key in ("type", "loc", "msg")}
        for error in exc.errors()
    ]


# ============================================================
# Route Registration
# ============================================================

app.include_router(router, tags=["Prices & Images"])
app.include_router(health_router, tags=["Health"])


# ============================================================
# Root Endpoint
# ============================================================

@app.get("/", tags=["Root"])
async def root():
    """Basic service info and endpoint list."""
    return {
        "service": settings.api_title,
        "version": settings.api_version,
        "description": settings.api_description,
        "endpoints": {
            "prices": "GET /api/get-price",
            "cached_prices": "GET /api/tsla-price",
            "refresh_prices": "POST /api/update-price",
            "latest_image": "GET /api/get-latest-blob",
            "upload_image": "POST /api/upload-blob",
            "og_image": "GET /api/og",
            "health": "GET /health",
            "docs": "GET /docs"
        },
        "timestamp": get_timestamp()
    }


# ============================================================
# Run Configuration (for direct execution)
# ============================================================

if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "tsla52week.main:app",
        host="0.0.0.0",
        port=settings.server_port,
        reload=False,
        workers=1,
        log_level="info"
    )
