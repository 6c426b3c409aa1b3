"""Main FastAPI application"""

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.exceptions import RequestValidationError
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy import text
from datetime import datetime, timezone
from pathlib import Path
import logging
import traceback
import time
import uuid

from prometheus_client import Counter, Histogram, Gauge, generate_latest, CONTENT_TYPE_LATEST
from fastapi.responses import Response

from wordle_identity.config import settings
from wordle_identity.core.database import init_db, SessionLocal
from wordle_identity.core.exceptions import BaseAPIException
from wordle_identity.api.deps import get_auth_service
from wordle_identity.api.v1 import auth, users
from wordle_identity.schemas.response import ErrorResponse, HealthResponse
from wordle_identity.services.cleanup_worker import CleanupWorker

# Configure logging - ensure log directory exists
_log_dir = Path(settings.get_log_file()).parent
_log_dir.mkdir(parents=True, exist_ok=True)
logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    handlers=[
        logging.FileHandler(settings.get_log_file()),
        logging.StreamHandler()
    ]
)

logger = logging.getLogger(__name__)

REQUEST_COUNT = Counter(
    "wordle_identity_http_requests_total",
    "Total HTTP requests",
    ["method", "path", "status"],
)
REQUEST_LATENCY = Histogram(
    "wordle_identity_http_request_duration_seconds",
    "HTTP request duration in seconds",
    ["method", "path"],
)
CLEANUP_WORKER_UP_GAUGE = Gauge(
    "wordle_identity_cleanup_worker_up",
    "Cleanup worker liveness (1 running, 0 stopped)",
)

cleanup_worker = CleanupWorker(
    sweep=lambda db: get_auth_service().cleanup(db),
    session_factory=SessionLocal,
    interval_seconds=settings.CLEANUP_INTERVAL_SECONDS,
)


def _timestamp() -> str:
    return datetime.now(timezone.utc).isoformat()


def _error_body(request: Request, error: str, code: str, details=None) -> dict:
    return {
        "success": False,
        "error": error,
        "code": code,
        "details": details,
        "path": request.url.path,
        "timestamp": _timestamp(),
    }


# Create FastAPI app
app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    debug=settings.DEBUG,
    docs_url="/api/docs" if settings.DEBUG else None,
    redoc_url="/api/redoc" if settings.DEBUG else None
)

# GZip compression for large responses
app.add_middleware(GZipMiddleware, minimum_size=500)


# Security headers + request timing middleware
@app.middleware("http")
async def add_headers_and_timing(request: Request, call_next):
    """Add security headers and log slow requests"""
    request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
    request.state.request_id = request_id

    start = time.time()
    response = await call_next(request)
    duration = time.time() - start

    response.headers["X-Content-Type-Options"] = "nosniff"
    response.headers["X-Frame-Options"] = "DENY"
    response.headers["Referrer-Policy"] = "no-referrer"
    response.headers["Cache-Control"] = "no-store"
    response.headers["X-Request-ID"] = request_id

    REQUEST_COUNT.labels(request.method, request.url.path, str(response.status_code)).inc()
    REQUEST_LATENCY.labels(request.method, request.url.path).observe(duration)

    if duration > 1.0:
        logger.warning(
            "Slow request: %s %s took %.2fs request_id=%s",
            request.method,
            request.url.path,
            duration,
            request_id,
        )

    return response


# Exception handlers
@app.exception_handler(BaseAPIException)
async def api_exception_handler(request: Request, exc: BaseAPIException):
    """Handle custom API exceptions"""
    log = logger.error if exc.status_code >= 500 else logger.info
    log(
        "API exception %s %s: %s (%s)",
        request.method,
        request.url.path,
        exc.code,
        exc.status_code,
    )
    return JSONResponse(
        status_code=exc.status_code,
        content=_error_body(request, exc.message, exc.code, exc.details or None),
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Handle Pydantic validation errors"""
    errors = []
    for error in exc.errors():
        errors.append({
            "field": ".".join(str(loc) for loc in error["loc"]),
            "message": error["msg"],
            "type": error["type"]
        })

    logger.warning("Validation error on %s %s: %s", request.method, request.url.path, errors)

    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content=_error_body(request, "Validation failed", "validation_error", {"errors": errors}),
    )


@app.exception_handler(SQLAlchemyError)
async def database_exception_handler(request: Request, exc: SQLAlchemyError):
    """Handle database errors"""
    logger.error(
        "Database error on %s %s: %s\n%s",
        request.method,
        request.url.path,
        exc.__class__.__name__,
        traceback.format_exc(),
    )
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=_error_body(request, "A database error occurred. Please try again later.", "database_error"),
    )


@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception):
    """Handle all other exceptions"""
    logger.critical(
        "Unhandled exception on %s %s: %s\n%s",
        request.method,
        request.url.path,
        exc,
        traceback.format_exc(),
    )
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=_error_body(request, "An unexpected error occurred.", "internal_error"),
    )


# Startup event
@app.on_event("startup")
async def startup_event():
    """Initialize application on startup"""
    settings.validate_security_settings()
    logger.info(f"Starting {settings.APP_NAME} v{settings.APP_VERSION}")
    logger.info(f"Environment: {settings.ENVIRONMENT}")

    # Initialize database
    try:
        init_db()
        logger.info("Database initialized successfully")
    except Exception as e:
        logger.error(f"Failed to initialize database: {e}")
        raise

    if not settings.oauth_configured():
        logger.warning("OAuth client credentials not set; OAuth login is disabled")

    if settings.RUN_CLEANUP_WORKER:
        cleanup_worker.start()
        CLEANUP_WORKER_UP_GAUGE.set(1)


# Shutdown event
@app.on_event("shutdown")
async def shutdown_event():
    """Cleanup on shutdown"""
    if cleanup_worker.is_running():
        cleanup_worker.stop()
    CLEANUP_WORKER_UP_GAUGE.set(0)
    logger.info(f"Shutting down {settings.APP_NAME}")


# Health check endpoint
@app.get("/health", response_model=HealthResponse)
def health_check():
    """Health check endpoint"""
    db_ok = True
    db = SessionLocal()
    try:
        db.execute(text("SELECT 1"))
    except SQLAlchemyError as exc:
        db_ok = False
        logger.error("Health check database query failed: %s", exc.__class__.__name__)
    finally:
        db.close()

    worker_status = cleanup_worker.status()
    CLEANUP_WORKER_UP_GAUGE.set(1 if worker_status["running"] else 0)

    return {
        "status": "healthy" if db_ok else "degraded",
        "version": settings.APP_VERSION,
        "database": "ok" if db_ok else "unavailable",
        "cleanup_worker": worker_status,
        "timestamp": _timestamp(),
    }


@app.get("/metrics")
async def metrics():
    """Prometheus metrics endpoint."""
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)


# Root endpoint
@app.get("/")
async def root():
    """Root endpoint"""
    return {
        "name": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "status": "running",
        "docs": "/api/docs" if settings.DEBUG else "disabled"
    }


# Include routers
_ERROR_RESPONSES = {
    400: {"model": ErrorResponse},
    401: {"model": ErrorResponse},
    429: {"model": ErrorResponse},
}
app.include_router(auth.router, prefix="/api/v1/auth", tags=["Authentication"], responses=_ERROR_RESPONSES)
app.include_router(users.router, prefix="/api/v1/users", tags=["Users"], responses=_ERROR_RESPONSES)


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "wordle_identity.main:app",
        host=settings.HOST,
        port=settings.PORT,
        reload=settings.DEBUG,
        workers=1 if settings.DEBUG else settings.WORKERS
    )
