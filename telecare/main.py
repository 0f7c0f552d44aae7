"""
Main FastAPI application for the Telecare scheduling service.
"""

import time
from contextlib import asynccontextmanager
from fastapi import FastAPI, Request, Depends, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from sqlalchemy.ext.asyncio import AsyncSession

from telecare.core.config import settings
from telecare.core.errors import SchedulingError, UpstreamFailure
from telecare.core.logging import configure_logging, get_logger, request_logger
from telecare.db.base import check_database_health, init_models
from telecare.db.session import get_db_session
from telecare.schemas import ErrorResponse, HealthResponse
from telecare.api.v1 import bookings, consultation_requests, doctors, prescriptions, slots


# Configure logging
configure_logging()
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events."""
    # Startup
    logger.info("Starting Telecare scheduling service", version=settings.app_version)

    if settings.auto_create_tables:
        await init_models()
        logger.info("Database tables ensured")

    health = await check_database_health()
    if health["status"] != "healthy":
        logger.warning("Database health check failed", health=health)
    else:
        logger.info("Database connected successfully")

    logger.info("Application startup complete")

    yield

    # Shutdown
    logger.info("Shutting down Telecare scheduling service")


# Create FastAPI app
app = FastAPI(
    title=settings.app_name,
    version=settings.app_version,
    description="Doctor availability, booking and consultation lifecycle API",
    docs_url="/docs" if settings.debug else None,
    redoc_url="/redoc" if settings.debug else None,
    openapi_url="/openapi.json" if settings.debug else None,
    lifespan=lifespan
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=settings.cors_allow_credentials,
    allow_methods=["GET", "POST", "PATCH", "DELETE", "OPTIONS"],
    allow_headers=["Accept", "Content-Type", "Authorization", "X-Requested-With", "Origin"],
    max_age=3600,
)


# Request logging middleware
@app.middleware("http")
async def log_requests(request: Request, call_next):
    """Log all HTTP requests."""
    start_time = time.time()

    response = await call_next(request)

    process_time = time.time() - start_time
    await request_logger.log_request(request, response, process_time)

    return response


# Global exception handlers
@app.exception_handler(SchedulingError)
async def scheduling_exception_handler(request: Request, exc: SchedulingError):
    """Map domain errors onto their HTTP status."""
    log = logger.error if isinstance(exc, UpstreamFailure) else logger.warning
    log(
        "Scheduling error",
        error=exc.kind,
        detail=exc.message,
        path=request.url.path,
        method=request.method,
    )

    headers = {"Retry-After": "1"} if exc.retryable else None
    return JSONResponse(
        status_code=exc.http_status,
        content=ErrorResponse(**exc.to_dict()).model_dump(),
        headers=headers
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Handle validation errors with detailed logging."""
    error_details = exc.errors()
    logger.error(
        "Validation error",
        path=request.url.path,
        method=request.method,
        errors=error_details,
    )

    return JSONResponse(
        status_code=422,
        content={"detail": jsonable_encoder(error_details)}
    )


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException):
    """Handle HTTP exceptions."""
    logger.warning(
        "HTTP exception",
        status_code=exc.status_code,
        detail=exc.detail,
        path=request.url.path
    )

    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.detail, "detail": exc.detail, "status_code": exc.status_code},
        headers=getattr(exc, "headers", None)
    )


@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception):
    """Handle general exceptions."""
    logger.error(
        "Unhandled exception",
        exception=str(exc),
        path=request.url.path,
        exc_info=True
    )

    return JSONResponse(
        status_code=500,
        content={
            "error": "Internal server error",
            "status_code": 500,
            "detail": str(exc) if settings.debug else "An error occurred"
        }
    )


# Health check endpoint
@app.get("/health", response_model=HealthResponse)
async def health_check(db: AsyncSession = Depends(get_db_session)):
    """Health check endpoint."""
    db_health = await check_database_health(db)
    return HealthResponse(
        status="healthy" if db_health["status"] == "healthy" else "unhealthy",
        database=db_health["database"],
        version=settings.app_version,
        timestamp=db_health["timestamp"],
    )


# API routes
app.include_router(doctors.router, prefix="/api/v1")
app.include_router(slots.router, prefix="/api/v1")
app.include_router(bookings.router, prefix="/api/v1")
app.include_router(consultation_requests.router, prefix="/api/v1")
app.include_router(prescriptions.router, prefix="/api/v1")


# Root endpoint
@app.get("/")
async def root():
    """Root endpoint."""
    return {
        "message": f"Welcome to {settings.app_name} API",
        "version": settings.app_version,
        "environment": settings.app_env,
        "docs": "/docs" if settings.debug else "Documentation not available in production",
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "telecare.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.debug,
        log_level="info" if not settings.debug else "debug"
    )
