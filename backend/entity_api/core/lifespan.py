"""
Application lifespan handler.
Manages startup and shutdown events for the FastAPI application.
"""

from contextlib import asynccontextmanager

from fastapi import FastAPI

from entity_shared.config.settings import settings
from entity_shared.config.logging import setup_logging, entity_api_logger as logger


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan handler.
    Runs on startup and shutdown.
    """
    setup_logging()

    # Validate production secrets before startup
    secret_errors = settings.validate_production_secrets()
    if secret_errors:
        for error in secret_errors:
            logger.error("Configuration error: %s", error)
        if settings.environment == "production":
            raise RuntimeError(
                f"Production configuration errors: {'; '.join(secret_errors)}. "
                "Server will not start with insecure configuration."
            )
        else:
            logger.warning(
                "Running with insecure defaults (acceptable for development only)"
            )

    kernel = app.state.kernel
    logger.info(
        "Starting entity API",
        env=settings.environment,
        prefix=settings.api_prefix,
        entities=len(kernel.registry),
    )

    yield

    logger.info("Shutting down entity API")
    if getattr(app.state, "owns_engine", False):
        app.state.engine.dispose()
        logger.info("Database connection pool disposed")
