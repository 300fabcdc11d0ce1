from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone
from typing import Any
from uuid import uuid4

from fastapi import APIRouter, FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from procurement_engine.core.exceptions import (
    AlreadyExistsError,
    BomCycleError,
    InsufficientAuthorityError,
    InvalidQuantityError,
    InvalidTransitionError,
    NotFoundError,
    PersistenceFailure,
    ProcurementError,
)
from procurement_engine.core.logging import configure_logging, log_context
from procurement_engine.core.settings import get_app_settings
from procurement_engine.db.run_migrations import upgrade_to_head
from procurement_engine.db.seed import seed_all
from procurement_engine.schemas.common import ErrorInfo, ErrorResponse, MessageResponse

# Routers
from procurement_engine.api.routes.catalog import router as catalog_router
from procurement_engine.api.routes.requisitions import router as requisitions_router
from procurement_engine.api.routes.stock_requirements import router as stock_requirements_router

# Configure structured logging once at import
configure_logging()
logger = logging.getLogger(__name__)

settings = get_app_settings()

openapi_tags = [
    {"name": "Health", "description": "Liveness and readiness probes."},
    {"name": "Catalog", "description": "Assembly buildability, BOM explosion and BOM edits."},
    {"name": "Stock Requirements", "description": "Sales order requirements and requisition generation."},
    {"name": "Requisitions", "description": "Purchase requisition queries, lifecycle and sweeps."},
]

app = FastAPI(
    title=settings.APP_NAME,
    description=settings.APP_DESCRIPTION,
    version=settings.APP_VERSION,
    openapi_tags=openapi_tags,
)

# CORS - avoid wildcard with credentials
cors_allow_credentials = settings.CORS_ALLOW_CREDENTIALS
if settings.CORS_ORIGINS == ["*"] and cors_allow_credentials:
    logger.warning("CORS_ALLOW_CREDENTIALS=True with '*' origins is not permitted; disabling credentials.")
    cors_allow_credentials = False

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=cors_allow_credentials,
    allow_methods=settings.CORS_ALLOW_METHODS,
    allow_headers=settings.CORS_ALLOW_HEADERS,
)


@app.middleware("http")
async def request_context_middleware(request: Request, call_next):
    """
    Enrich request context with a correlation_id for logging and error responses.
    Adds 'X-Correlation-ID' to every response.
    """
    corr = request.headers.get("X-Correlation-ID") or request.headers.get("X-Request-ID") or str(uuid4())
    request.state.correlation_id = corr

    with log_context(correlation_id=corr):
        logger.info("Incoming request %s %s", request.method, request.url.path)
        response = await call_next(request)

    response.headers["X-Correlation-ID"] = corr
    return response


def _build_error_response(
    request: Request,
    status_code: int,
    error_type: str,
    message: str,
    details: Any | None = None,
) -> JSONResponse:
    """Build a standardized ErrorResponse JSONResponse."""
    ts = datetime.now(tz=timezone.utc)
    corr = getattr(request.state, "correlation_id", None)
    err = ErrorResponse(
        status=status_code,
        error=ErrorInfo(type=error_type, message=message, details=details),
        correlation_id=corr,
        path=request.url.path,
        method=request.method,
        timestamp=ts,
    )
    return JSONResponse(status_code=status_code, content=err.model_dump(mode="json"))


def _status_for(exc: ProcurementError) -> int:
    if isinstance(exc, NotFoundError):
        return 404
    if isinstance(exc, (AlreadyExistsError, InvalidTransitionError)):
        return 409
    if isinstance(exc, InsufficientAuthorityError):
        return 403
    if isinstance(exc, (InvalidQuantityError, BomCycleError)):
        return 422
    if isinstance(exc, PersistenceFailure):
        return 503 if exc.unavailable else 500
    return 400


@app.exception_handler(ProcurementError)
async def procurement_exception_handler(request: Request, exc: ProcurementError):
    """
    Map the engine's typed errors onto HTTP statuses with the standard error envelope.
    """
    status_code = _status_for(exc)
    if status_code >= 500:
        logger.error("Request failed: %s", exc)
    else:
        logger.info("Request rejected: %s", exc)
    return _build_error_response(
        request=request,
        status_code=status_code,
        error_type=exc.code.lower(),
        message=exc.message,
        details=exc.details,
    )


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException):
    """
    Global handler for HTTPException to produce a standardized error envelope.
    """
    detail = exc.detail if isinstance(exc.detail, str) else "HTTP Error"
    return _build_error_response(
        request=request,
        status_code=exc.status_code,
        error_type="http_error",
        message=str(detail),
        details=None if isinstance(exc.detail, str) else exc.detail,
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """
    Global handler for request validation errors with a standard structure.
    """
    return _build_error_response(
        request=request,
        status_code=422,
        error_type="validation_error",
        message="Request validation failed",
        details=exc.errors(),
    )


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    """
    Catch-all handler to avoid leaking stack traces and to return a structured error.
    """
    logger.exception("Unhandled error processing request")
    return _build_error_response(
        request=request,
        status_code=500,
        error_type="internal_error",
        message="An unexpected error occurred",
        details=None,
    )


@app.on_event("startup")
async def on_startup() -> None:
    """
    Run migrations and optional seeding on service startup.

    This ensures the database schema is up to date. Seeding is opt-in via settings.
    """
    if settings.RUN_MIGRATIONS_ON_STARTUP:
        try:
            logger.info("Running Alembic migrations: upgrade head")
            # env.py drives its own event loop, so it cannot share this one.
            await asyncio.to_thread(upgrade_to_head)
            logger.info("Migrations completed.")
        except Exception as exc:
            logger.exception("Migration step failed: %s", exc)
            # Do not crash the app in case of transient DB issues; rely on retries or later readiness probes.

    if settings.AUTO_SEED:
        try:
            logger.info("Running database seeding...")
            await seed_all()
            logger.info("Seeding completed.")
        except Exception as exc:
            logger.exception("Seeding step failed: %s", exc)


# Build API v1 router and include sub-routers
api_v1 = APIRouter(prefix="/api/v1")


# PUBLIC_INTERFACE
@api_v1.get(
    "/health",
    response_model=MessageResponse,
    summary="Health Check",
    tags=["Health"],
)
def health_check() -> MessageResponse:
    """
    Basic liveness health check endpoint.

    Returns:
        MessageResponse: Simple confirmation that the service is running.
    """
    return MessageResponse(message="Healthy")


api_v1.include_router(catalog_router)
api_v1.include_router(stock_requirements_router)
api_v1.include_router(requisitions_router)

# Attach api_v1 to app
app.include_router(api_v1)
