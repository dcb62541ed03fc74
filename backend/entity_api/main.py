"""
Entity API main application.
Entry point for the FastAPI server.

Run with the application factory:
    uvicorn entity_api.main:create_app --factory --port 8000
"""

from typing import Generator

from fastapi import FastAPI
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from entity_shared.config.settings import settings
from entity_shared.config.logging import entity_api_logger as logger
from entity_shared.infrastructure import db as db_module
from entity_shared.infrastructure.db import get_db
from entity_api.core.cors import configure_cors
from entity_api.core.errors import register_exception_handlers
from entity_api.core.kernel import build_kernel
from entity_api.core.lifespan import lifespan
from entity_api.core.middlewares import register_middlewares
from entity_api.models import Base
from entity_api.routers.entities import build_entity_router
from entity_api.routers.hooks import router as hooks_router
from entity_api.services.permissions import PolicyAdapter


def create_app(
    engine: Engine | None = None,
    policy_adapter: PolicyAdapter | None = None,
    hooks_disabled: bool | None = None,
    create_schema: bool = True,
) -> FastAPI:
    """
    Build the application.

    Args:
        engine: store engine; the configured one when omitted.
        policy_adapter: where policies live; the ``policy_rules`` table when omitted.
        hooks_disabled: start hooks in test mode (defaults to settings).
        create_schema: create missing tables before policies are loaded.
    """
    owns_engine = engine is None
    if engine is None:
        engine = db_module.engine
        session_factory = db_module.SessionLocal
    else:
        session_factory = sessionmaker(
            bind=engine,
            autoflush=False,
            autocommit=False,
            expire_on_commit=False,
        )

    if create_schema:
        Base.metadata.create_all(bind=engine)
        logger.info("Database tables created/verified")

    kernel = build_kernel(session_factory, policy_adapter=policy_adapter, hooks_disabled=hooks_disabled)

    app = FastAPI(
        title="Entity Kernel API",
        description="Generic CRUD surface for registered entities",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.state.kernel = kernel
    app.state.engine = engine
    app.state.owns_engine = owns_engine
    app.state.session_factory = session_factory

    if not owns_engine:
        def _get_app_db() -> Generator[Session, None, None]:
            db = session_factory()
            try:
                yield db
            finally:
                db.close()

        app.dependency_overrides[get_db] = _get_app_db

    register_exception_handlers(app)
    register_middlewares(app)
    configure_cors(app)

    # =========================================================================
    # Health Check
    # =========================================================================

    @app.get("/api/health")
    def health_check():
        """Service status and store connectivity."""
        checks = {
            "service": "entity-api",
            "environment": settings.environment,
            "entities": len(kernel.registry),
            "dependencies": {},
        }
        try:
            with session_factory() as session:
                session.execute(text("SELECT 1"))
            checks["dependencies"]["database"] = {"status": "healthy"}
            checks["status"] = "healthy"
        except SQLAlchemyError as e:
            checks["dependencies"]["database"] = {"status": "unhealthy", "error": str(e)}
            checks["status"] = "degraded"
            return JSONResponse(content=checks, status_code=503)
        return checks

    # =========================================================================
    # Include Routers
    # =========================================================================

    app.include_router(build_entity_router(kernel.registry), prefix=settings.api_prefix)
    app.include_router(hooks_router, prefix=settings.api_prefix)

    return app


# =============================================================================
# Development entry point
# =============================================================================

if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "entity_api.main:create_app",
        factory=True,
        host="0.0.0.0",
        port=settings.api_port,
        reload=True,
    )
