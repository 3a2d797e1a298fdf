from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Optional
from uuid import uuid4

from fastapi import APIRouter, FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from campaign_data.api.routes.demands import router as demands_router
from campaign_data.api.routes.regions import router as regions_router
from campaign_data.core.errors import (
    ConfigurationError,
    DataAccessError,
    NotFoundError,
    StorageError,
    ValidationError,
)
from campaign_data.core.logging import configure_logging, correlation_id_var, tenant_id_var
from campaign_data.core.settings import AppSettings, get_app_settings
from campaign_data.core.tenancy import SettingsTenantContext
from campaign_data.db.backend import StorageBackend, create_backend
from campaign_data.schemas.common import ErrorInfo, ErrorResponse, MessageResponse

logger = logging.getLogger(__name__)

openapi_tags = [
    {"name": "Health", "description": "Liveness probe."},
    {"name": "Regions", "description": "Region map, statistics and region edits."},
    {"name": "Demands", "description": "Citizen demands and status summaries."},
]

# Status codes for data-access errors; subclasses resolve through the MRO.
ERROR_STATUS = {
    ValidationError: 422,
    NotFoundError: 404,
    StorageError: 503,
    ConfigurationError: 500,
}


def _status_for(exc: DataAccessError) -> int:
    for cls in type(exc).__mro__:
        if cls in ERROR_STATUS:
            return ERROR_STATUS[cls]
    return 500


def _build_error_response(
    request: Request,
    status_code: int,
    error_type: str,
    message: str,
    details: Any | None = None,
) -> JSONResponse:
    """Build a standardized ErrorResponse JSONResponse."""
    err = ErrorResponse(
        status=status_code,
        error=ErrorInfo(type=error_type, message=message, details=details),
        correlation_id=getattr(request.state, "correlation_id", None),
        path=request.url.path,
        method=request.method,
        timestamp=datetime.now(tz=timezone.utc),
    )
    return JSONResponse(status_code=status_code, content=err.model_dump(mode="json"))


async def data_access_exception_handler(request: Request, exc: DataAccessError):
    """Render data-access errors in the standard envelope."""
    status_code = _status_for(exc)
    if isinstance(exc, NotFoundError):
        logger.info("Not found: %s", exc.message)
    elif status_code >= 500:
        logger.error("Request failed with %s: %s", exc.kind, exc.message)
    # Storage failures expose only their generic message; the driver error stays in the logs.
    return _build_error_response(request, status_code, exc.kind, exc.message, exc.details)


async def http_exception_handler(request: Request, exc: HTTPException):
    detail = exc.detail if isinstance(exc.detail, str) else "HTTP Error"
    return _build_error_response(
        request=request,
        status_code=exc.status_code,
        error_type="http_error",
        message=str(detail),
        details=None if isinstance(exc.detail, str) else exc.detail,
    )


async def validation_exception_handler(request: Request, exc: RequestValidationError):
    return _build_error_response(
        request=request,
        status_code=422,
        error_type="validation_error",
        message="Request validation failed",
        details=exc.errors(),
    )


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
    )


def _build_api_router() -> APIRouter:
    api_v1 = APIRouter(prefix="/api/v1")

    @api_v1.get("/health", response_model=MessageResponse, summary="Health Check", tags=["Health"])
    def health_check() -> MessageResponse:
        """
        Basic liveness health check endpoint.

        Returns:
            MessageResponse: Simple confirmation that the service is running.
        """
        return MessageResponse(message="Healthy")

    api_v1.include_router(regions_router)
    api_v1.include_router(demands_router)
    return api_v1


# PUBLIC_INTERFACE
def create_app(settings: Optional[AppSettings] = None, backend: Optional[StorageBackend] = None) -> FastAPI:
    """
    Build the FastAPI application.

    Parameters:
        settings: application settings; loaded from the environment when omitted
        backend: storage backend; built from settings.STORAGE_BACKEND when omitted
    Returns:
        Configured FastAPI app. Run with `uvicorn campaign_data.api.main:create_app --factory`.
    Raises:
        ConfigurationError: when ACTIVE_TENANT_ID is missing or blank.
    """
    settings = settings or get_app_settings()
    configure_logging(settings.LOG_LEVEL)
    tenant_context = SettingsTenantContext.from_settings(settings)

    app = FastAPI(
        title=settings.APP_NAME,
        description=settings.APP_DESCRIPTION,
        version=settings.APP_VERSION,
        openapi_tags=openapi_tags,
    )
    app.state.settings = settings
    app.state.backend = backend if backend is not None else create_backend(settings)
    app.state.tenant_context = tenant_context

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
        Bind correlation id and the configured tenant to log records.
        Adds 'X-Correlation-ID' to every response.
        """
        corr = request.headers.get("X-Correlation-ID") or request.headers.get("X-Request-ID") or str(uuid4())
        token_corr = correlation_id_var.set(corr)
        token_tenant = tenant_id_var.set(tenant_context.current_tenant_id())
        request.state.correlation_id = corr

        logger.info("Incoming request %s %s", request.method, request.url.path)
        try:
            response = await call_next(request)
        finally:
            correlation_id_var.reset(token_corr)
            tenant_id_var.reset(token_tenant)
        response.headers["X-Correlation-ID"] = corr
        return response

    app.add_exception_handler(DataAccessError, data_access_exception_handler)
    app.add_exception_handler(HTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)

    @app.on_event("shutdown")
    async def on_shutdown() -> None:
        if settings.STORAGE_BACKEND == "sql":
            from campaign_data.db.session import dispose_engine

            await dispose_engine()

    app.include_router(_build_api_router())
    return app
