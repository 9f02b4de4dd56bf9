"""
API service entry point.

This module initializes and runs the FastAPI application using Uvicorn.

Usage:
    python -m services.api.main

    Or with uvicorn directly:
    uvicorn services.api.main:app --host 0.0.0.0 --port 8080

Environment Variables:
    CONFIG_PATH: Configuration directory (default: config)
    DATABASE_URL: PostgreSQL connection URL
    REDIS_URL: Redis connection URL
    STORAGE_BACKEND: postgres or redis
    MAIL_API_KEY: API key for e-mail digests
    LOG_LEVEL: Logging level (default: from service.yaml)
"""

import os
import sys

import structlog
import uvicorn

from fluidwatch import __version__
from fluidwatch.config.loader import load_config
from fluidwatch.logging import setup_logging
from services.api.app import create_app

config = load_config(os.getenv("CONFIG_PATH", "config"))
setup_logging(config.log_level, config.service.logging.format)

# Export the app for uvicorn direct usage
app = create_app(config)


def main() -> None:
    """
    Main entry point for the API service.

    Starts the Uvicorn server with the configured FastAPI application.
    """
    logger = structlog.get_logger(__name__)
    logger.info(
        "api_service_starting",
        version=__version__,
        python_version=sys.version,
        host=config.service.api.host,
        port=config.service.api.port,
    )

    uvicorn.run(
        app,
        host=config.service.api.host,
        port=config.service.api.port,
        log_level=config.log_level.value.lower(),
        access_log=False,
    )


if __name__ == "__main__":
    main()
