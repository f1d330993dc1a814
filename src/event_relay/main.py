"""
Module: main.py
Description: FastAPI application entry point for the Event Relay API.

Builds the FastAPI application with the webhook routes, error handlers
and a lifespan that runs the delivery worker pool alongside the API.
No application is built at import time; serve it with
``uvicorn event_relay.main:create_app --factory``.
"""

from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from event_relay.auth.dependencies import RateLimitExceededError
from event_relay.config.settings import settings
from event_relay.handlers.webhooks import router as webhooks_router
from event_relay.models.response import RateLimitErrorResponse
from event_relay.services import Services, build_services
from event_relay.utils.logger import configure_logging, get_logger

configure_logging(settings.log_level)
logger = get_logger(__name__)


def _error_body(code: int, message, error_type: str) -> dict:
    return {
        "error": {
            "code": code,
            "message": message,
            "type": error_type
        }
    }


def create_app(services: Optional[Services] = None) -> FastAPI:
    """
    Create the API application.

    Args:
        services: Prebuilt service bundle; built from settings when omitted

    Returns:
        FastAPI application whose lifespan starts and stops the worker pool
    """
    services = services or build_services(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info(
            "Starting Event Relay API",
            version=settings.app_version,
            stage=settings.stage,
            storage_backend=settings.storage_backend
        )
        await services.pool.start()
        try:
            yield
        finally:
            logger.info("Shutting down Event Relay API")
            await services.pool.stop(drain=False)
            await services.client.aclose()

    app = FastAPI(
        title="Event Relay API",
        description="Webhook subscriptions and signed event delivery",
        version=settings.app_version,
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan
    )
    app.state.services = services

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(webhooks_router)

    @app.get("/health")
    async def health_check():
        """Unauthenticated liveness check."""
        return {
            "status": "ok",
            "message": "Event Relay API is healthy",
            "version": settings.app_version,
            "environment": settings.stage,
            "workers_running": services.pool.running
        }

    @app.exception_handler(RateLimitExceededError)
    async def rate_limit_exception_handler(request: Request, exc: RateLimitExceededError):
        logger.info(
            "Request rate limited",
            path=request.url.path,
            retry_after=exc.retry_after
        )
        return JSONResponse(
            status_code=exc.status_code,
            content=RateLimitErrorResponse(retry_after=exc.retry_after).model_dump(),
            headers=exc.headers
        )

    @app.exception_handler(HTTPException)
    async def http_exception_handler(request: Request, exc: HTTPException):
        """Logs HTTP exceptions and returns structured error responses."""
        logger.warning(
            "HTTP exception occurred",
            status_code=exc.status_code,
            detail=exc.detail,
            path=request.url.path,
            method=request.method
        )
        return JSONResponse(
            status_code=exc.status_code,
            content=_error_body(exc.status_code, exc.detail, "http_exception"),
            headers=getattr(exc, "headers", None)
        )

    @app.exception_handler(Exception)
    async def general_exception_handler(request: Request, exc: Exception):
        logger.error(
            "Unhandled exception occurred",
            error=str(exc),
            error_type=type(exc).__name__,
            path=request.url.path,
            method=request.method
        )
        return JSONResponse(
            status_code=500,
            content=_error_body(500, "Internal server error", "internal_error")
        )

    return app
