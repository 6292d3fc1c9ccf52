"""
RequestDesk API - Main Application Entry Point
"""
import asyncio
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from requestdesk.core.config import get_settings
from requestdesk.core.database import init_db, async_session_maker
from requestdesk.core.exceptions import ValidationError, PolicyError, NotFoundError
from requestdesk.api.router import api_router
from requestdesk.schemas.common import ErrorResponse
from requestdesk.services.photo_storage import run_photo_sweeper

settings = get_settings()

# Configure logging
logging.basicConfig(
    level=logging.INFO if not settings.DEBUG else logging.DEBUG,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan handler for startup and shutdown events.
    """
    # Startup
    logger.info("Starting RequestDesk API...")

    # Initialize database
    await init_db()
    logger.info("Database initialized")

    # Start photo reconciliation sweep in background
    sweeper_task = None
    if settings.PHOTO_SWEEP_INTERVAL_SECONDS > 0:
        sweeper_task = asyncio.create_task(run_photo_sweeper(async_session_maker))
        logger.info("Photo sweeper started")

    yield

    # Shutdown
    logger.info("Shutting down RequestDesk API...")
    if sweeper_task is not None:
        sweeper_task.cancel()
        try:
            await sweeper_task
        except asyncio.CancelledError:
            pass


# Create FastAPI application
app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    description="""
    ## RequestDesk - Facilities Request Tracking

    Multi-tenant API for submitting, triaging, assigning and resolving
    building and facilities requests:

    * **Requests** - Building repairs and event logistics with photos
    * **Workflow** - pending, approved, in-progress, completed or cancelled
    * **Assignments** - Full reassignment history per request
    * **Timeline** - Merged history of every status change and assignment
    * **Reports** - Dashboard counts, monthly and facility reports, room history

    ### Authentication

    - POST /api/auth/login - Get a JWT token
    - Include `Authorization: Bearer <token>` header
    """,
    openapi_url="/api/openapi.json",
    docs_url="/api/docs",
    redoc_url="/api/redoc",
    lifespan=lifespan,
)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# Include API router
app.include_router(api_router, prefix="/api")


# Health check endpoint
@app.get("/health", tags=["Health"])
async def health_check():
    """Health check endpoint."""
    return {"status": "healthy", "version": settings.APP_VERSION}


# Root endpoint
@app.get("/", tags=["Root"])
async def root():
    """Root endpoint with API information."""
    return {
        "name": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "docs_url": "/api/docs",
        "openapi_url": "/api/openapi.json",
    }


# Domain exception handlers
@app.exception_handler(ValidationError)
async def validation_error_handler(request: Request, exc: ValidationError):
    return JSONResponse(
        status_code=422,
        content=ErrorResponse(detail=str(exc), errors=exc.errors).model_dump(exclude_none=True),
    )


@app.exception_handler(PolicyError)
async def policy_error_handler(request: Request, exc: PolicyError):
    if exc.is_transition_conflict:
        return JSONResponse(
            status_code=409,
            content=ErrorResponse(
                detail=str(exc), current=exc.current, requested=exc.requested
            ).model_dump(exclude_none=True),
        )
    return JSONResponse(status_code=403, content=ErrorResponse(detail=str(exc)).model_dump(exclude_none=True))


@app.exception_handler(NotFoundError)
async def not_found_handler(request: Request, exc: NotFoundError):
    # Generic detail so that existence never leaks across organizations
    return JSONResponse(
        status_code=404,
        content=ErrorResponse(detail=f"{exc.resource} not found").model_dump(exclude_none=True),
    )


# Global exception handler
@app.exception_handler(Exception)
async def global_exception_handler(request, exc):
    """Global exception handler for unhandled errors."""
    logger.error(f"Unhandled error: {exc}", exc_info=True)
    return JSONResponse(
        status_code=500,
        content={"detail": "Internal server error"},
    )


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "requestdesk.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.DEBUG,
    )
