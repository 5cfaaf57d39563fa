"""
FastAPI Backend for the Taskboard service

Wires the task and user routers, manages the database lifecycle, logs every
HTTP request with its duration, and renders all service errors as a uniform
ErrorResponse body.
"""

import logging
import sqlite3
import time
from contextlib import asynccontextmanager
from typing import Dict, Optional

from fastapi import Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from . import dependencies
from .config import configure_logging
from .database import TaskDatabase
from .dependencies import get_database, get_settings
from .errors import ErrorCode, InvalidFilterParameterError, TaskboardError
from .models import ErrorResponse, HealthResponse
from .task_routes import router as task_router
from .timeutil import utc_now
from .user_routes import router as user_router

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    FastAPI lifespan context manager for startup/shutdown operations.

    Opens the database named by DATABASE_PATH and closes it on shutdown.
    """
    settings = get_settings()
    configure_logging(settings.log_level)
    try:
        dependencies.db_instance = TaskDatabase(settings.database_path)
        logger.info(f"Database initialized: {settings.database_path}")
    except Exception as e:
        logger.error(f"Failed to initialize database: {e}")
        raise

    yield

    if dependencies.db_instance:
        dependencies.db_instance.close()
        dependencies.db_instance = None
        logger.info("Database connection closed")


app = FastAPI(
    title="Taskboard API",
    description="Task management REST API with composable search filters",
    version="1.0.0",
    lifespan=lifespan,
)


@app.middleware("http")
async def log_requests(request: Request, call_next):
    """Log each request on entry and exit with its duration."""
    start = time.perf_counter()
    method = request.method
    path = request.url.path
    if logger.isEnabledFor(logging.DEBUG) and request.url.query:
        logger.debug(f"→ {method} {path}?{request.url.query}")
    else:
        logger.info(f"→ {method} {path}")

    try:
        response = await call_next(request)
    except Exception as e:
        duration_ms = (time.perf_counter() - start) * 1000
        logger.error(f"✕ {method} {path} - {duration_ms:.0f}ms - {type(e).__name__}: {e}")
        raise

    duration_ms = (time.perf_counter() - start) * 1000
    logger.info(f"← {method} {path} {response.status_code} - {duration_ms:.0f}ms")
    return response


def error_response(request: Request, code: ErrorCode, message: Optional[str] = None,
                   errors: Optional[Dict[str, str]] = None,
                   status_code: Optional[int] = None) -> JSONResponse:
    status_code = status_code or code.status_code
    body = ErrorResponse(
        timestamp=utc_now(),
        status=status_code,
        error_code=code.code,
        message=message or code.default_message,
        error=code.default_message,
        path=request.url.path,
        errors=errors or {},
    )
    return JSONResponse(status_code=status_code, content=body.model_dump(mode="json"))


@app.exception_handler(TaskboardError)
async def handle_taskboard_error(request: Request, exc: TaskboardError):
    logger.warning(f"[{exc.code.code}] {request.url.path} - {exc.message}")
    errors = {exc.field: exc.reason} if isinstance(exc, InvalidFilterParameterError) else None
    return error_response(request, exc.code, exc.message, errors)


_HTTP_STATUS_CODES = {
    400: ErrorCode.BAD_REQUEST,
    404: ErrorCode.RESOURCE_NOT_FOUND,
    405: ErrorCode.METHOD_NOT_ALLOWED,
    503: ErrorCode.SERVICE_UNAVAILABLE,
}


@app.exception_handler(StarletteHTTPException)
async def handle_http_error(request: Request, exc: StarletteHTTPException):
    code = _HTTP_STATUS_CODES.get(exc.status_code)
    if code is None:
        code = ErrorCode.INTERNAL_SERVER_ERROR if exc.status_code >= 500 else ErrorCode.BAD_REQUEST
    logger.warning(f"[{code.code}] {request.url.path} - {exc.status_code} {exc.detail}")
    message = exc.detail if isinstance(exc.detail, str) else None
    return error_response(request, code, message, status_code=exc.status_code)


@app.exception_handler(RequestValidationError)
async def handle_validation_error(request: Request, exc: RequestValidationError):
    errors: Dict[str, str] = {}
    for error in exc.errors():
        location = [str(part) for part in error.get("loc", ()) if part not in ("body", "query", "path")]
        errors[".".join(location) or "request"] = error.get("msg", "invalid")
    logger.warning(f"[{ErrorCode.VALIDATION_ERROR.code}] {request.url.path} - {errors}")
    return error_response(request, ErrorCode.VALIDATION_ERROR, "Validation failed", errors)


@app.exception_handler(sqlite3.Error)
async def handle_database_error(request: Request, exc: sqlite3.Error):
    logger.error(f"Database error on {request.url.path}: {exc}")
    return error_response(request, ErrorCode.DATABASE_ERROR)


@app.exception_handler(Exception)
async def handle_unexpected_error(request: Request, exc: Exception):
    """Render anything unhandled as INTERNAL_SERVER_ERROR; details stay in the log."""
    logger.error(f"Unhandled exception on {request.url.path}: {type(exc).__name__}: {exc}")
    return error_response(request, ErrorCode.INTERNAL_SERVER_ERROR)


@app.get("/healthz", response_model=HealthResponse)
async def health_check(db: TaskDatabase = Depends(get_database)):
    connected = db.ping()
    if not connected:
        logger.error("Database health check failed")
    return HealthResponse(
        status="healthy" if connected else "degraded",
        database_connected=connected,
        timestamp=utc_now().isoformat() + "Z",
    )


app.include_router(task_router)
app.include_router(user_router)
