"""
SoulTrip API - Main Application Entry Point

Marketplace backend for transformational travel tours:
- Organizers publish tours with a fixed capacity
- Participants book them; one active booking per participant and tour,
  with re-activation of cancelled bookings instead of duplicates
- Cancellation that works whether storage allows deletes or only updates
- Natural-language search filter inference with a keyword fallback
"""

from contextlib import asynccontextmanager
from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from soultrip.core.config import get_settings
from soultrip.core.logging import setup_logging, get_logger
from soultrip.core.metrics import metrics_endpoint
from soultrip.api.router import api_router
from soultrip.api.middleware import RequestLoggingMiddleware
from soultrip.db.session import engine
from soultrip.services.cache_service import get_redis, close_redis, get_cache_stats
from soultrip.services.interfaces.booking_store import StoreError

settings = get_settings()
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifecycle: startup and shutdown hooks."""
    setup_logging()

    logger.info(
        "application_starting",
        app=settings.APP_NAME,
        version=settings.APP_VERSION,
        environment=settings.ENVIRONMENT,
        hard_delete_enabled=settings.BOOKING_HARD_DELETE_ENABLED,
        llm_inference=settings.llm_inference_enabled,
    )

    redis_client = await get_redis()
    if redis_client:
        logger.info("redis_ready")
    else:
        logger.warning("redis_unavailable", message="Running without cache")

    yield

    await close_redis()
    await engine.dispose()
    logger.info("application_shutdown")


app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    description="Tour marketplace API: listings, organizer tools and participant bookings",
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
)

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Restrict in production
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.add_middleware(RequestLoggingMiddleware)

app.include_router(api_router)


@app.exception_handler(StoreError)
async def store_error_handler(request: Request, exc: StoreError):
    # Reads that fail must not be presented as "no bookings" or "free places"
    logger.error("storage_unavailable", error=str(exc), error_type=type(exc).__name__)
    return JSONResponse(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        content={"detail": "Booking data is temporarily unavailable. Please try again."},
    )


@app.get("/health", tags=["Health"])
async def health_check():
    """Health check endpoint for Docker and load balancers."""
    cache_stats = await get_cache_stats()
    return {
        "status": "healthy",
        "version": settings.APP_VERSION,
        "environment": settings.ENVIRONMENT,
        "cache": cache_stats,
    }


@app.get("/metrics", tags=["Health"], include_in_schema=False)
async def metrics():
    return metrics_endpoint()


@app.get("/", tags=["Root"])
async def root():
    return {
        "message": f"Welcome to {settings.APP_NAME}",
        "version": settings.APP_VERSION,
        "docs": "/docs",
    }
