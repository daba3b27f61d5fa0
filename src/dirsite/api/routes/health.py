"""Health check endpoints."""

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse
from sqlalchemy import text

router = APIRouter()


@router.get("/health")
async def health_check():
    """Return service health status."""
    return {"status": "healthy", "service": "dirsite-api", "version": "1.0.0"}


@router.get("/health/ready")
async def readiness(request: Request):
    """Readiness probe: checks DB connectivity and reports in-flight jobs."""
    checks: dict[str, str] = {}
    overall_ok = True

    try:
        session_factory = request.app.state.db_session_factory
        async with session_factory() as session:
            await session.execute(text("SELECT 1"))
        checks["database"] = "ok"
    except Exception as exc:
        checks["database"] = f"error: {exc}"
        overall_ok = False

    provisioning = getattr(request.app.state, "provisioning", None)
    in_flight = provisioning.in_flight if provisioning is not None else 0

    return JSONResponse(
        status_code=200 if overall_ok else 503,
        content={
            "status": "ready" if overall_ok else "not_ready",
            "checks": checks,
            "jobs_in_flight": in_flight,
        },
    )
