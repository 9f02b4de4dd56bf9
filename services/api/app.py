"""
FastAPI application for the FluidWatch API.

This module creates and configures the FastAPI application with:
- Router registration for measurement, alert and health endpoints
- Exception handlers rendering the shared error envelope
- Lifespan events for storage connection management

Collaborators (storage, notifier, clock) can be injected, which is how the
tests run the API against in-memory doubles.
"""

import os
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

import structlog
from fastapi import FastAPI

from fluidwatch import __version__
from fluidwatch.config.loader import load_config
from fluidwatch.config.models import AppConfig
from fluidwatch.interfaces.notifier import Notifier
from fluidwatch.interfaces.storage import Storage
from fluidwatch.models.common import Clock, utc_now
from fluidwatch.notifiers import create_notifier
from fluidwatch.storage import create_storage
from services.api.errors import register_exception_handlers
from services.api.state import AppState

logger = structlog.get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """
    Manage application lifespan events.

    Connects the storage backend on startup and releases storage and
    notifier resources on shutdown.

    Args:
        app: FastAPI application instance.

    Yields:
        None: Control flow returns to the application.
    """
    state: AppState = app.state.fluidwatch
    logger.info(
        "api_starting",
        storage_backend=state.config.service.storage_backend.value,
        notifier=state.notifier.name,
    )

    await state.storage.connect()
    await state.storage.prepare()
    logger.info("api_ready", write_strategy=state.storage.write_strategy.value)

    yield

    logger.info("api_shutting_down")

    try:
        await state.notifier.close()
    except Exception as e:
        logger.error("notifier_close_error", error=str(e))

    await state.storage.disconnect()
    logger.info("api_shutdown_complete")


def create_app(
    config: Optional[AppConfig] = None,
    storage: Optional[Storage] = None,
    notifier: Optional[Notifier] = None,
    clock: Clock = utc_now,
) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Args:
        config: Application configuration. Loaded from CONFIG_PATH
            (default: "config") when omitted.
        storage: Storage backend. Built from configuration when omitted.
        notifier: Digest notifier. Built from configuration when omitted.
        clock: Source of the current time.

    Returns:
        FastAPI: Configured FastAPI application instance.

    Example:
        >>> app = create_app()
        >>> import uvicorn
        >>> uvicorn.run(app, host="0.0.0.0", port=8080)
    """
    if config is None:
        config = load_config(os.getenv("CONFIG_PATH", "config"))

    app = FastAPI(
        title="FluidWatch API",
        description="Flow meter measurement ingestion, series and alerting",
        version=__version__,
        lifespan=lifespan,
        docs_url="/docs",
        redoc_url="/redoc",
    )

    app.state.fluidwatch = AppState(
        config=config,
        storage=storage or create_storage(config),
        notifier=notifier or create_notifier(config.service.notifier),
        clock=clock,
    )

    register_exception_handlers(app)

    from services.api.routes.measurements import router as measurements_router
    from services.api.routes.alerts import router as alerts_router
    from services.api.routes.health import router as health_router

    app.include_router(measurements_router, tags=["Measurements"])
    app.include_router(alerts_router, tags=["Alerts"])
    app.include_router(health_router, tags=["Health"])

    logger.info("fastapi_app_created")

    return app
