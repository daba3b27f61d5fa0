"""Job control API for provisioning sagas."""

from __future__ import annotations

import asyncio
from collections.abc import Callable, Sequence
from typing import Any

import structlog
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from dirsite.config import Settings
from dirsite.errors.exceptions import ValidationError
from dirsite.models.enums import ACTIVE_STATUSES, JobStatus, JobType, StepName
from dirsite.models.job import JobRecord
from dirsite.provisioning.clock import Clock, SystemClock
from dirsite.provisioning.hosting import HostingDelays, HostingServices, simulated_hosting
from dirsite.provisioning.registry import get_steps
from dirsite.provisioning.runner import SagaRunner
from dirsite.provisioning.status import format_job_status
from dirsite.provisioning.steps.base import BaseStep
from dirsite.provisioning.store import ProvisioningJobStore, TenantStore
from dirsite.services.id_generator import generate_id


class ProvisioningService:
    """Creates provisioning jobs, runs them in the background, reports on them."""

    def __init__(
        self,
        jobs: ProvisioningJobStore,
        tenants: TenantStore,
        hosting: HostingServices,
        *,
        clock: Clock | None = None,
        id_factory: Callable[[str], str] = generate_id,
        logger: Any = None,
        site_base_domain: str = "example.com",
        serialize_tenant_jobs: bool = True,
        compensate_on_cancel: bool = False,
        step_factory: Callable[[JobType], Sequence[BaseStep]] = get_steps,
    ):
        self._jobs = jobs
        self._clock = clock or SystemClock()
        self._id_factory = id_factory
        self._logger = logger if logger is not None else structlog.get_logger(__name__)
        self._serialize_tenant_jobs = serialize_tenant_jobs
        self._step_factory = step_factory
        self._runner = SagaRunner(
            jobs,
            tenants,
            hosting,
            clock=self._clock,
            logger=self._logger,
            site_base_domain=site_base_domain,
            compensate_on_cancel=compensate_on_cancel,
            step_factory=step_factory,
        )
        self._tasks: dict[str, asyncio.Task] = {}
        self._tenant_locks: dict[str, asyncio.Lock] = {}
        self._tenant_lock_users: dict[str, int] = {}

    @classmethod
    def from_settings(
        cls,
        session_factory: async_sessionmaker[AsyncSession],
        settings: Settings,
        *,
        clock: Clock | None = None,
        id_factory: Callable[[str], str] = generate_id,
    ) -> ProvisioningService:
        """Wire stores and simulated hosting from application settings."""
        clock = clock or SystemClock()
        hosting = simulated_hosting(
            clock,
            HostingDelays(
                build=settings.build_delay,
                cdn=settings.cdn_delay,
                search=settings.search_delay,
                domain=settings.domain_delay,
            ),
            id_factory=id_factory,
        )
        return cls(
            ProvisioningJobStore(session_factory),
            TenantStore(session_factory),
            hosting,
            clock=clock,
            id_factory=id_factory,
            site_base_domain=settings.site_base_domain,
            serialize_tenant_jobs=settings.serialize_tenant_jobs,
            compensate_on_cancel=settings.compensate_on_cancel,
        )

    # --- Job control ---

    async def create_provisioning_job(self, tenant_id: str, job_type: JobType | str = JobType.CREATE) -> str:
        """Record a QUEUED job and start it in the background. Returns the job id."""
        try:
            job_type = JobType(job_type)
        except ValueError:
            raise ValidationError(
                f"Unknown job type '{job_type}'",
                details={"allowed": [t.value for t in JobType]},
            ) from None

        job = await self._jobs.create(
            id=self._id_factory("job_"),
            tenant_id=tenant_id,
            type=job_type,
            status=JobStatus.QUEUED,
            progress=0,
            current_step=StepName.QUEUED,
            steps_total=len(self._step_factory(job_type)),
            steps_completed=0,
            external_refs={},
            compensation_data={},
            created_at=self._clock.now(),
        )
        self._logger.info(
            "job_created",
            job_id=job.id,
            tenant_id=tenant_id,
            job_type=str(job_type),
            steps_total=job.steps_total,
        )
        self._schedule(job.id, tenant_id)
        return job.id

    async def get_job_status(self, job_id: str) -> dict | None:
        job = await self._jobs.find_unique(job_id)
        return format_job_status(job) if job else None

    async def get_job(self, job_id: str) -> JobRecord | None:
        return await self._jobs.find_unique(job_id)

    async def get_tenant_jobs(self, tenant_id: str) -> list[JobRecord]:
        """All jobs for a tenant, newest first."""
        return await self._jobs.find_many(tenant_id=tenant_id)

    async def get_active_jobs(self, tenant_id: str) -> list[JobRecord]:
        return await self._jobs.find_many(tenant_id=tenant_id, statuses=ACTIVE_STATUSES)

    async def cancel_job(self, job_id: str) -> bool:
        """Stop a QUEUED or RUNNING job at its next step boundary.

        Returns False, without writing, for unknown or already settled jobs.
        """
        job = await self._jobs.find_unique(job_id)
        if job is None or job.is_terminal:
            return False

        cancelled = await self._jobs.transition(
            job_id,
            ACTIVE_STATUSES,
            status=JobStatus.CANCELLED,
            completed_at=self._clock.now(),
        )
        if cancelled is None:
            # Settled between the read and the guarded write
            return False
        self._logger.info("job_cancelled", job_id=job_id, steps_completed=cancelled.steps_completed)
        return True

    # --- Background execution ---

    async def wait_for_job(self, job_id: str) -> JobRecord | None:
        """Wait for a scheduled run to finish, then return the stored record."""
        task = self._tasks.get(job_id)
        if task is not None:
            await task
        return await self._jobs.find_unique(job_id)

    async def resume_incomplete_jobs(self) -> int:
        """Re-schedule jobs a previous process left QUEUED or RUNNING."""
        pending = await self._jobs.find_many(statuses=ACTIVE_STATUSES)
        resumed = 0
        for job in reversed(pending):  # oldest first
            if job.id in self._tasks:
                continue
            self._logger.info(
                "job_resumed",
                job_id=job.id,
                tenant_id=job.tenant_id,
                status=str(job.status),
                steps_completed=job.steps_completed,
            )
            self._schedule(job.id, job.tenant_id)
            resumed += 1
        return resumed

    async def shutdown(self) -> None:
        """Cancel in-flight runs; they resume from their last step on restart."""
        tasks = list(self._tasks.values())
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        self._tasks.clear()

    @property
    def in_flight(self) -> int:
        return len(self._tasks)

    def _schedule(self, job_id: str, tenant_id: str) -> None:
        task = asyncio.create_task(self._execute(job_id, tenant_id), name=f"provision-{job_id}")
        self._tasks[job_id] = task
        task.add_done_callback(lambda _t, job_id=job_id: self._tasks.pop(job_id, None))

    async def _execute(self, job_id: str, tenant_id: str) -> None:
        if not self._serialize_tenant_jobs:
            await self._runner.run(job_id)
            return

        lock = self._tenant_locks.setdefault(tenant_id, asyncio.Lock())
        self._tenant_lock_users[tenant_id] = self._tenant_lock_users.get(tenant_id, 0) + 1
        try:
            async with lock:
                await self._runner.run(job_id)
        finally:
            self._tenant_lock_users[tenant_id] -= 1
            if self._tenant_lock_users[tenant_id] == 0:
                del self._tenant_lock_users[tenant_id]
                del self._tenant_locks[tenant_id]
