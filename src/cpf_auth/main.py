"""
═══════════════════════════════════════════════════════════════════════════════
CPF Auth — Service entry point (Application Entry Point)
═══════════════════════════════════════════════════════════════════════════════

Application factory for the CPF Auth service. Collaborators (directory
adapter, event publisher, orchestrator) are built exactly once, in the
lifespan, and handed to the routes through ``cpf_auth.dependencies``.
"""

from __future__ import annotations

import logging
import sys
from contextlib import asynccontextmanager
from datetime import datetime, timezone

import uvicorn
from fastapi import APIRouter, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from cpf_auth import __version__
from cpf_auth.config import AuthSettings, get_settings
from cpf_auth.directory import build_directory
from cpf_auth.directory.port import IdentityDirectory
from cpf_auth.events import EventPublisher
from cpf_auth.exceptions import DirectoryUnavailableError, ErrorKind, IdentityError
from cpf_auth.masking import install_masking_filter
from cpf_auth.services.orchestrator import IdentityOrchestrator

from cpf_auth.api.auth import router as auth_router
from cpf_auth.api.health import router as health_router

# ═══════════════════════════════════════════════════════════════════════════════
# Logging
# ═══════════════════════════════════════════════════════════════════════════════
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    handlers=[logging.StreamHandler(sys.stdout)],
)
install_masking_filter()
logger = logging.getLogger(__name__)


STATUS_MAP: dict[ErrorKind, int] = {
    ErrorKind.INVALID_NAME: 400,
    ErrorKind.INVALID_NATIONAL_ID: 400,
    ErrorKind.INVALID_EMAIL: 400,
    ErrorKind.AMBIGUOUS_REQUEST: 400,
    ErrorKind.MISSING_IDENTIFIER: 400,
    ErrorKind.DUPLICATE_IDENTIFIER: 409,
    ErrorKind.DUPLICATE_EMAIL: 409,
    ErrorKind.USER_NOT_FOUND: 404,
    ErrorKind.UNAUTHORIZED: 401,
    ErrorKind.DIRECTORY_UNAVAILABLE: 502,
}


def error_body(exc: IdentityError) -> dict:
    """Client-facing error envelope. Never includes directory diagnostics."""
    return {
        "error": {
            "code": exc.code,
            "message": exc.message,
            "stage": exc.stage.value,
            "details": exc.details,
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }
    }


def create_app(
    settings: AuthSettings | None = None,
    directory: IdentityDirectory | None = None,
    events: EventPublisher | None = None,
) -> FastAPI:
    """
    Builds the FastAPI application.

    ``directory`` and ``events`` override what the settings would build
    (used by tests and by embedding callers).
    """
    settings = settings or get_settings()
    logging.getLogger().setLevel(settings.log_level.upper())

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """
        Startup:
            1. Build the directory adapter (Cognito, or in-memory fallback).
            2. Build the NATS publisher and try to connect (non-fatal).
            3. Build the orchestrator with both.

        Shutdown:
            1. Drain NATS.
        """
        logger.info(f"🚀 CPF Auth v{__version__} starting...")
        logger.info(f"   Log level: {settings.log_level}")

        app.state.directory = directory or build_directory(settings)
        app.state.events = events or EventPublisher(
            settings.nats_url,
            enabled=settings.events_enabled,
            connect_timeout=settings.nats_connect_timeout,
            retry_interval=settings.nats_retry_interval,
        )
        await app.state.events.connect()

        app.state.orchestrator = IdentityOrchestrator(
            app.state.directory,
            settings.credentials,
            events=app.state.events,
        )
        logger.info(f"✅ Orchestrator ready (directory: {app.state.directory.name})")

        yield

        try:
            await app.state.events.disconnect()
        except Exception as e:
            logger.warning(f"NATS disconnect failed: {e}")
        logger.info("🛑 CPF Auth stopped")

    app = FastAPI(
        redirect_slashes=False,
        title="CPF Auth",
        description=(
            "Registration and login of CPF-identified and anonymous users "
            "against an external identity directory."
        ),
        version=__version__,
        lifespan=lifespan,
        docs_url=None if settings.is_production else "/docs",
        redoc_url=None if settings.is_production else "/redoc",
        openapi_url=None if settings.is_production else "/api/v1/openapi.json",
    )

    # ── CORS middleware ──────────────────────────────────────────────────
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["Authorization", "Content-Type"],
    )

    # ── API routers ──────────────────────────────────────────────────────
    v1_router = APIRouter(prefix="/api/v1")
    v1_router.include_router(auth_router)
    v1_router.include_router(health_router)
    app.include_router(v1_router)

    # ── IdentityError handler ────────────────────────────────────────────
    @app.exception_handler(IdentityError)
    async def identity_error_handler(request: Request, exc: IdentityError) -> JSONResponse:
        """Maps error kinds onto HTTP statuses."""
        if isinstance(exc, DirectoryUnavailableError):
            logger.error(
                "%s %s failed at stage '%s': %s",
                request.method, request.url.path, exc.stage.value, exc.diagnostic,
            )
        return JSONResponse(status_code=STATUS_MAP.get(exc.kind, 500), content=error_body(exc))

    # ── Root endpoint ────────────────────────────────────────────────────
    @app.get("/")
    async def root():
        return {
            "name": "CPF Auth",
            "version": __version__,
            "description": "CPF and anonymous identity service",
            "api": {
                "v1": {
                    "health": "/api/v1/health",
                    "register": "/api/v1/register",
                    "login": "/api/v1/login",
                },
            },
        }

    return app


# ═══════════════════════════════════════════════════════════════════════════════
# Module-level singleton
# ═══════════════════════════════════════════════════════════════════════════════
app = create_app()


def main() -> None:
    """Runs the service under Uvicorn."""
    settings = get_settings()
    logger.info(f"Starting CPF Auth server on {settings.api_host}:{settings.api_port}")
    uvicorn.run(
        "cpf_auth.main:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=False,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    main()
