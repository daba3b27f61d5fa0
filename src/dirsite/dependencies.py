"""FastAPI dependency injection providers."""

from collections.abc import AsyncGenerator

from fastapi import Request

from dirsite.provisioning.service import ProvisioningService


async def get_db(request: Request) -> AsyncGenerator:
    """Yield a database session from the app's session factory."""
    session_factory = request.app.state.db_session_factory
    async with session_factory() as session:
        yield session


def get_provisioning(request: Request) -> ProvisioningService:
    """Return the process-wide provisioning service."""
    return request.app.state.provisioning


def get_trace_id(request: Request) -> str:
    """Extract trace_id from request state (set by middleware)."""
    return getattr(request.state, "trace_id", "unknown")

