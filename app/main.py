"""FastAPI application entry point."""

import asyncio
import time
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from app import __version__
from app.core.config import settings
from app.core.errors import install_process_error_handlers, validation_error_message
from app.core.logging import get_logger, setup_logging
from app.models.job import ErrorKind
from app.queue.job_queue import get_job_queue

# Setup logging
setup_logging()
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events."""
    # Startup
    logger.info("Starting application...")
    app.state.started_at = time.monotonic()
    install_process_error_handlers(asyncio.get_running_loop())
    queue = get_job_queue()
    logger.info(
        "Application started",
        max_queue_size=queue.max_queue_size,
        queue_timeout=queue.wait_timeout,
        job_timeout=settings.job_timeout_seconds,
    )
    yield
    # Shutdown
    logger.info("Shutting down application...")
    await queue.shutdown(settings.shutdown_grace_seconds)
    logger.info("Application shut down")


app = FastAPI(
    title="Appointment Reschedule API",
    description="Queued SimplePractice appointment rescheduling via browser automation",
    version=__version__,
    lifespan=lifespan,
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origin_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def log_requests(request: Request, call_next):
    logger.info(f"{request.method} {request.url.path}")
    return await call_next(request)


@app.exception_handler(RequestValidationError)
async def handle_validation_error(request: Request, exc: RequestValidationError):
    message = validation_error_message(exc.errors())
    logger.info(f"Rejected invalid request: {message}", path=request.url.path)
    return JSONResponse(
        status_code=400,
        content={
            "success": False,
            "error": message,
            "errorKind": ErrorKind.VALIDATION_ERROR.value,
        },
    )


@app.exception_handler(StarletteHTTPException)
async def handle_http_error(request: Request, exc: StarletteHTTPException):
    content = {"success": False, "error": exc.detail}
    if exc.status_code == 401:
        content["errorKind"] = ErrorKind.UNAUTHORIZED.value
    return JSONResponse(status_code=exc.status_code, content=content, headers=exc.headers)


@app.get("/")
async def root():
    """Root endpoint."""
    return {"message": "Appointment Reschedule API", "version": __version__}


# Reschedule routes
from app.api import reschedule
app.include_router(reschedule.router, prefix="/api", tags=["reschedule"])

# Health routes
from app.api import health
app.include_router(health.router, prefix="/api", tags=["health"])
