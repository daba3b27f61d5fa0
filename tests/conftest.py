"""Shared test fixtures."""

import pytest
import structlog
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from dirsite.db.base import Base
# Import all models to register with Base.metadata
import dirsite.db.models  # noqa: F401
from dirsite.db.models.tenant import CategoryRow, ListingRow, TenantBrandingRow, TenantRow
from dirsite.provisioning.clock import VirtualClock
from dirsite.provisioning.hosting import HostingDelays, simulated_hosting
from dirsite.provisioning.service import ProvisioningService
from dirsite.provisioning.store import ProvisioningJobStore, TenantStore
from dirsite.services.id_generator import sequential_id_factory

from tests.fakes import InMemoryJobStore, InMemoryTenantStore, make_tenant


@pytest.fixture
async def db_engine(tmp_path):
    """SQLite async engine for testing.

    File-backed so background jobs and request handlers get separate connections.
    """
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'dirsite_test.db'}", echo=False)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(db_engine):
    return async_sessionmaker(db_engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def db_session(session_factory):
    """Create a test database session."""
    async with session_factory() as session:
        yield session


@pytest.fixture
def clock():
    return VirtualClock()


@pytest.fixture
def log_capture():
    return structlog.testing.LogCapture()


@pytest.fixture
def logger(log_capture):
    """Structured logger whose events land in ``log_capture.entries``."""
    return structlog.wrap_logger(
        structlog.ReturnLogger(),
        processors=[log_capture],
        wrapper_class=structlog.BoundLogger,
    )


@pytest.fixture
def hosting(clock):
    # Same per-step latencies the simulated hosting uses by default in production
    return simulated_hosting(
        clock,
        HostingDelays(build=1.0, cdn=0.8, search=0.6, domain=0.7),
        id_factory=sequential_id_factory(),
    )


# --- In-memory orchestrator wiring ---


@pytest.fixture
def job_store():
    return InMemoryJobStore()


@pytest.fixture
def tenant_store():
    return InMemoryTenantStore(make_tenant())


@pytest.fixture
async def service(job_store, tenant_store, hosting, clock, logger):
    svc = ProvisioningService(
        job_store,
        tenant_store,
        hosting,
        clock=clock,
        id_factory=sequential_id_factory(),
        logger=logger,
    )
    yield svc
    await svc.shutdown()


# --- Database-backed wiring and HTTP client ---


@pytest.fixture
async def provisioning(session_factory, hosting, clock):
    svc = ProvisioningService(
        ProvisioningJobStore(session_factory),
        TenantStore(session_factory),
        hosting,
        clock=clock,
        id_factory=sequential_id_factory(),
    )
    yield svc
    await svc.shutdown()


@pytest.fixture
def app(db_engine, session_factory, provisioning):
    """Create a test application instance bound to the test database."""
    from dirsite.main import create_app

    _app = create_app()
    _app.state.db_engine = db_engine
    _app.state.db_session_factory = session_factory
    _app.state.provisioning = provisioning
    return _app


@pytest.fixture
async def client(app):
    """Async HTTP test client."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


@pytest.fixture
def seed_tenant(session_factory):
    """Insert a tenant with ``categories`` categories and ``listings`` listings."""

    async def _seed(
        tenant_id: str = "tnt_acme",
        domain: str = "acme",
        categories: int = 2,
        listings: int = 1,
        status: str = "DRAFT",
        branding: bool = True,
    ) -> str:
        async with session_factory() as session:
            tenant = TenantRow(tenant_id=tenant_id, name=domain.title(), domain=domain, status=status)
            session.add(tenant)
            if branding:
                session.add(TenantBrandingRow(
                    branding_id=f"brd_{tenant_id}",
                    tenant_id=tenant_id,
                    primary_color="#1f2937",
                    secondary_color="#f9fafb",
                    accent_color="#f59e0b",
                    font_family="Inter",
                ))
            category_ids = []
            for i in range(1, categories + 1):
                category_id = f"cat_{tenant_id}_{i}"
                category_ids.append(category_id)
                session.add(CategoryRow(
                    category_id=category_id,
                    tenant_id=tenant_id,
                    name=f"Category {i}",
                    slug=f"category-{i}",
                    sort_order=i,
                ))
            await session.flush()
            for i in range(1, listings + 1):
                session.add(ListingRow(
                    listing_id=f"lst_{tenant_id}_{i}",
                    tenant_id=tenant_id,
                    category_id=category_ids[0],
                    title=f"Listing {i}",
                    slug=f"listing-{i}",
                    status="PUBLISHED",
                    search_text=f"listing {i}",
                ))
            await session.commit()
        return tenant_id

    return _seed
