"""
FastAPI application factory.

Usage:
    # Development
    uvicorn castmatch.api.app:create_app --factory --reload

    # Or from Python
    from castmatch.api.app import create_app
    app = create_app()
"""

import asyncio
import contextlib
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

import aiohttp
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from castmatch.utils.config import AppConfig, get_config
from castmatch.utils.exceptions import (
    AppException,
    AuthError,
    CacheBuildInProgress,
    ConfigurationError,
    EmbeddingUnavailable,
    InternalError,
    ValidationError,
)
from castmatch.utils.logger import configure_logging, get_logger, log_exception

from .routes import router
from .services import ServiceContainer, build_services, initial_build

logger = get_logger(__name__)

# Exception type -> HTTP status; first match wins
STATUS_CODES: list[tuple[type, int]] = [
    (AuthError, 401),
    (ValidationError, 400),
    (CacheBuildInProgress, 409),
    (ConfigurationError, 500),
    (EmbeddingUnavailable, 502),
    (InternalError, 500),
]


def status_for(exc: AppException) -> Optional[int]:
    """Return the HTTP status for a known error, or None when it must be hidden."""
    for exc_type, status in STATUS_CODES:
        if isinstance(exc, exc_type):
            return status
    return None


def as_internal(exc: Exception) -> InternalError:
    """Wrap an unexpected error so only a generic message reaches the caller."""
    return InternalError(context={"cause": type(exc).__name__})


async def app_exception_handler(request: Request, exc: AppException) -> JSONResponse:
    status = status_for(exc)
    if status is None:
        log_exception(logger, f"{request.method} {request.url.path}", exc)
        exc = as_internal(exc)
        status = status_for(exc)
        return JSONResponse(status_code=status, content={"error": exc.message})

    if status >= 500:
        logger.error(f"{request.method} {request.url.path} -> {status}: {exc}")
    else:
        logger.info(f"{request.method} {request.url.path} -> {status}: {exc.message}")
    return JSONResponse(status_code=status, content={"error": exc.message})


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    logger.info(f"{request.method} {request.url.path} -> 400: {exc.errors()}")
    return JSONResponse(status_code=400, content={"error": "Invalid request"})


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    log_exception(logger, f"{request.method} {request.url.path}", exc)
    internal = as_internal(exc)
    return JSONResponse(status_code=status_for(internal), content={"error": internal.message})


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    Application lifespan handler.

    Startup:
    - Create the shared HTTP session and services (unless injected)
    - Start the initial reference build in the background

    Shutdown:
    - Cancel an unfinished startup build
    - Close the HTTP session the app created
    """
    config: AppConfig = app.state.config
    session: Optional[aiohttp.ClientSession] = None

    if app.state.services is None:
        session = aiohttp.ClientSession()
        app.state.services = build_services(config, session)
    services: ServiceContainer = app.state.services

    logger.info(
        f"Starting CastMatch API (mode={'light' if config.light_mode else 'heavy'}, "
        f"port={config.port})"
    )

    startup_task: Optional[asyncio.Task] = None
    if config.references.load_on_startup and not config.light_mode:
        startup_task = asyncio.create_task(initial_build(services))
    app.state.startup_task = startup_task

    try:
        yield
    finally:
        if startup_task is not None and not startup_task.done():
            startup_task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await startup_task
        if session is not None:
            await session.close()
            app.state.services = None
        logger.info("Shutting down CastMatch API")


def create_app(
    config: Optional[AppConfig] = None,
    services: Optional[ServiceContainer] = None,
) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Args:
        config: Application config (defaults to get_config())
        services: Pre-built services; when omitted the lifespan builds
            production services around a new aiohttp session

    Returns:
        Configured FastAPI application
    """
    if config is None:
        config = services.config if services is not None else get_config()
    configure_logging(config.log_level, config.log_dir)

    app = FastAPI(
        title="CastMatch API",
        description="Scores model submissions against reference looks and profile rules.",
        version="1.0.0",
        lifespan=lifespan,
    )
    app.state.config = config
    app.state.services = services
    app.state.startup_task = None

    # Browser front ends call the API directly
    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.cors_origins,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(AppException, app_exception_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)

    app.include_router(router)
    return app
