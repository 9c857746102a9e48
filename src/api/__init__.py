"""
REST API Layer for Threshold.

Provides:
- FastAPI application with CORS middleware
- Intervention decision, outcome and effectiveness endpoints
- Envelope error responses for engine exceptions
- API versioning under /api/v1 prefix
"""

from __future__ import annotations

import logging
import os

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from src.api.dependencies import build_default_engine
from src.api.routes import router
from src.api.schemas import error_response
from src.lib.errors import (
    CONFIGURATION_ERROR,
    INTERNAL_ERROR,
    INVALID_STATE,
    NOT_FOUND,
    OUTCOME_WRITE_FAILED,
    PATCH_TARGET_NOT_FOUND,
    UPSTREAM_DATA_UNAVAILABLE,
    VALIDATION_ERROR,
    error_code_for,
)
from src.lib.exceptions import ThresholdException
from src.services.engine import InterventionEngine

logger = logging.getLogger(__name__)

_ALLOWED_HEADERS: list[str] = [
    "Content-Type",
    "Accept",
    "X-Request-ID",
]

_STATUS_BY_CODE: dict[str, int] = {
    VALIDATION_ERROR: 422,
    INVALID_STATE: 409,
    PATCH_TARGET_NOT_FOUND: 404,
    OUTCOME_WRITE_FAILED: 503,
    UPSTREAM_DATA_UNAVAILABLE: 503,
    CONFIGURATION_ERROR: 500,
    INTERNAL_ERROR: 500,
}


def create_app(engine: InterventionEngine | None = None) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Args:
        engine: Engine to serve (built from THRESHOLD_* env vars when None)

    Returns:
        Configured FastAPI application instance.
    """
    environment = os.getenv("THRESHOLD_ENVIRONMENT", "development")
    is_production = environment == "production"

    app = FastAPI(
        title="Threshold",
        description="Adaptive intervention content selection and effectiveness engine",
        version="0.1.0",
        docs_url=None if is_production else "/docs",
        redoc_url=None if is_production else "/redoc",
    )
    app.state.engine = engine or build_default_engine()

    # -------------------------------------------------------------------------
    # Exception handlers
    # -------------------------------------------------------------------------
    @app.exception_handler(ThresholdException)
    async def engine_exception_handler(request: Request, exc: ThresholdException) -> JSONResponse:
        code = error_code_for(exc)
        status_code = _STATUS_BY_CODE.get(code, 500)
        if status_code >= 500:
            logger.error("Engine error on %s %s: %s", request.method, request.url.path, exc)
        return JSONResponse(status_code=status_code, content=error_response(code, str(exc)))

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        return JSONResponse(
            status_code=422,
            content=error_response(VALIDATION_ERROR, details={"errors": _jsonable_errors(exc)}),
        )

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
        if exc.status_code == 404:
            code = NOT_FOUND
        elif exc.status_code >= 500:
            code = INTERNAL_ERROR
        else:
            code = VALIDATION_ERROR
        return JSONResponse(status_code=exc.status_code, content=error_response(code))

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.exception("Unhandled exception on %s %s", request.method, request.url.path)
        return JSONResponse(status_code=500, content=error_response(INTERNAL_ERROR))

    # -------------------------------------------------------------------------
    # CORS Middleware
    # -------------------------------------------------------------------------
    # Format: comma-separated list of origins, e.g. "http://localhost:3000,https://app.example.com"
    cors_origins = [
        origin.strip()
        for origin in os.getenv("THRESHOLD_CORS_ORIGINS", "").split(",")
        if origin.strip()
    ]
    if is_production and "*" in cors_origins:
        raise ValueError("THRESHOLD_CORS_ORIGINS must not contain '*' in production.")

    app.add_middleware(
        CORSMiddleware,
        allow_origins=cors_origins,
        allow_credentials=False,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=_ALLOWED_HEADERS,
    )

    app.include_router(router)

    @app.get("/health")
    async def root_health_check() -> dict[str, str]:
        """Root health check for infrastructure probes."""
        return {"status": "ok"}

    return app


def _jsonable_errors(exc: RequestValidationError) -> list[dict]:
    return [
        {"loc": [str(part) for part in err.get("loc", ())], "msg": str(err.get("msg", ""))}
        for err in exc.errors()
    ]


__all__ = ["create_app", "router"]
