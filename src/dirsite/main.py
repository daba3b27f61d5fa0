"""FastAPI application factory and lifespan management."""

import logging
import os
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from dirsite.config import settings
from dirsite.db.engine import create_db_engine, create_session_factory
from dirsite.logging_config import configure_logging

# Configure logging at import time
_json_logs = os.environ.get("DIRSITE_LOCAL", "0") != "1"
configure_logging(log_level=settings.log_level, json_output=_json_logs)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Manage application startup and shutdown resources."""
    from dirsite.provisioning.service import ProvisioningService

    db_url = settings.effective_database_url
    engine = create_db_engine(db_url)

    # Auto-create tables for SQLite (local dev, no Alembic migrations)
    if "sqlite" in db_url:
        from dirsite.db.base import Base
        import dirsite.db.models  # noqa: F401 (register all ORM models)

        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info("SQLite tables created (local mode)")

    app.state.db_engine = engine
    app.state.db_session_factory = create_session_factory(engine)
    app.state.provisioning = ProvisioningService.from_settings(app.state.db_session_factory, settings)

    if settings.resume_jobs_on_startup:
        resumed = await app.state.provisioning.resume_incomplete_jobs()
        if resumed:
            logger.info("Resumed %d unfinished provisioning jobs", resumed)

    logger.info("dirsite API started (db=%s)", "sqlite" if "sqlite" in db_url else "postgresql")
    yield

    # Shutdown
    await app.state.provisioning.shutdown()
    await engine.dispose()
    logger.info("dirsite API shutdown complete")


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    app = FastAPI(
        title="dirsite API",
        version="1.0.0",
        description="Provisioning orchestrator for multi-tenant directory sites.",
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_allowed_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    from dirsite.api.middleware.trace_id import TraceIdMiddleware
    app.add_middleware(TraceIdMiddleware)

    from dirsite.errors.handlers import register_exception_handlers
    register_exception_handlers(app)

    from dirsite.api.router import api_router
    app.include_router(api_router)

    return app


app = create_app()
