"""Saga runner: drives one provisioning job through its step sequence."""

from collections.abc import Callable, Sequence
from typing import Any

import structlog

from dirsite.models.enums import ACTIVE_STATUSES, JobStatus, JobType
from dirsite.models.job import JobRecord
from dirsite.provisioning.clock import Clock, SystemClock
from dirsite.provisioning.hosting import HostingServices
from dirsite.provisioning.refs import merge_refs
from dirsite.provisioning.registry import get_steps
from dirsite.provisioning.status import compute_progress
from dirsite.provisioning.steps.base import BaseStep, StepContext, StepOutcome
from dirsite.provisioning.store import ProvisioningJobStore, TenantStore


class SagaRunner:
    """Executes a job's steps in order, persisting after each one.

    On a step error the already-completed steps are compensated in reverse
    order and the job is settled as FAILED. A step whose work finished but
    was never recorded on the job is undone along with them. Cancellation is
    observed only between steps. ``run`` never raises: it executes as a
    detached task with nobody awaiting its result.
    """

    def __init__(
        self,
        jobs: ProvisioningJobStore,
        tenants: TenantStore,
        hosting: HostingServices,
        *,
        clock: Clock | None = None,
        logger: Any = None,
        site_base_domain: str = "example.com",
        compensate_on_cancel: bool = False,
        step_factory: Callable[[JobType], Sequence[BaseStep]] = get_steps,
    ):
        self._jobs = jobs
        self._tenants = tenants
        self._hosting = hosting
        self._clock = clock or SystemClock()
        self._logger = logger if logger is not None else structlog.get_logger(__name__)
        self._site_base_domain = site_base_domain
        self._compensate_on_cancel = compensate_on_cancel
        self._step_factory = step_factory

    async def run(self, job_id: str) -> None:
        log = self._logger.bind(job_id=job_id)
        try:
            await self._run(job_id, log)
        except Exception:
            log.exception("job_runner_crashed")

    async def _run(self, job_id: str, log) -> None:
        job = await self._jobs.find_unique(job_id)
        if job is None:
            log.warning("job_not_found")
            return
        if job.is_terminal:
            log.info("job_already_settled", status=str(job.status))
            return

        steps = list(self._step_factory(job.type))
        log = log.bind(tenant_id=job.tenant_id, job_type=str(job.type))

        # QUEUED for a fresh job, RUNNING when resuming after a restart
        started = await self._jobs.transition(
            job_id,
            ACTIVE_STATUSES,
            status=JobStatus.RUNNING,
            started_at=job.started_at or self._clock.now(),
        )
        if started is None:
            log.info("job_cancelled_before_start")
            return
        log.info("job_started", resume_from=started.steps_completed, steps_total=len(steps))

        ctx = StepContext(
            job=started,
            tenant=None,
            hosting=self._hosting,
            tenants=self._tenants,
            clock=self._clock,
            logger=log,
            site_base_domain=self._site_base_domain,
        )
        index = started.steps_completed
        # A step that ran but whose outcome is not on the job record yet
        unrecorded: tuple[BaseStep, StepOutcome] | None = None

        try:
            ctx.tenant = await self._tenants.find_unique(started.tenant_id)

            while index < len(steps):
                step = steps[index]

                current = await self._jobs.find_unique(job_id)
                if current is None or current.status != JobStatus.RUNNING:
                    await self._halt(ctx, steps[:index], current, log)
                    return
                ctx.job = current

                log.info("step_started", step=str(step.name), position=index + 1)
                outcome = await step.run(ctx)
                unrecorded = (step, outcome)

                external_refs = merge_refs(current.external_refs, outcome.refs)
                compensation_data = dict(current.compensation_data)
                if outcome.compensation:
                    compensation_data[str(step.name)] = outcome.compensation

                completed = index + 1
                fields: dict[str, Any] = {
                    "steps_completed": completed,
                    "current_step": str(step.name),
                    "progress": compute_progress(completed, len(steps)),
                    "external_refs": external_refs,
                    "compensation_data": compensation_data,
                }
                if completed == len(steps):
                    fields.update(status=JobStatus.COMPLETED, completed_at=self._clock.now())

                updated = await self._jobs.transition(job_id, [JobStatus.RUNNING], **fields)
                if updated is None:
                    # Cancelled while the step was in flight; its effects stand
                    log.info(
                        "step_finished_after_cancel",
                        step=str(step.name),
                        dropped_refs=outcome.refs.as_refs() if outcome.refs else {},
                        dropped_compensation=outcome.compensation,
                    )
                    latest = await self._jobs.find_unique(job_id)
                    await self._halt(ctx, steps[:index], latest, log, unrecorded)
                    return

                unrecorded = None
                ctx.job = updated
                index = completed
                log.info("step_completed", step=str(step.name), progress=updated.progress)

        except Exception as exc:
            failed_step = steps[index].name if index < len(steps) else None
            await self._fail(ctx, steps[:index], failed_step, exc, log, unrecorded)
            return

        log.info("job_completed", result=ctx.job.external_refs.get("result"))

    async def _halt(
        self,
        ctx: StepContext,
        completed: Sequence[BaseStep],
        latest: JobRecord | None,
        log,
        unrecorded: tuple[BaseStep, StepOutcome] | None = None,
    ) -> None:
        """Stop a job that is no longer RUNNING (cancelled, or deleted)."""
        status = str(latest.status) if latest else None
        log.info("job_halted", status=status, steps_completed=len(completed))
        if latest is not None and latest.status == JobStatus.CANCELLED and self._compensate_on_cancel:
            await self._compensate(ctx, completed, log, unrecorded)

    async def _fail(
        self,
        ctx: StepContext,
        completed: Sequence[BaseStep],
        failed_step,
        exc: Exception,
        log,
        unrecorded: tuple[BaseStep, StepOutcome] | None = None,
    ) -> None:
        message = str(exc) or type(exc).__name__
        log.error(
            "step_failed",
            step=str(failed_step) if failed_step else None,
            error=message,
            error_type=type(exc).__name__,
        )

        await self._compensate(ctx, completed, log, unrecorded)

        try:
            failed = await self._jobs.transition(
                ctx.job.id,
                [JobStatus.RUNNING],
                status=JobStatus.FAILED,
                error_message=message,
                completed_at=self._clock.now(),
            )
        except Exception as persist_exc:
            log.warning("job_failure_not_persisted", error=str(persist_exc))
            return

        if failed is None:
            log.warning("job_failure_not_persisted", error="job is no longer running")
        else:
            log.info("job_failed", error=message, steps_completed=failed.steps_completed)

    async def _compensate(
        self,
        ctx: StepContext,
        completed: Sequence[BaseStep],
        log,
        unrecorded: tuple[BaseStep, StepOutcome] | None = None,
    ) -> None:
        """Best-effort undo of ``completed`` steps, last first.

        ``unrecorded`` is a step that ran after the last persisted one; it is
        undone first, from its outcome rather than from the job record.
        """
        external_refs = ctx.job.external_refs
        compensation_data = ctx.job.compensation_data

        undo = []
        if unrecorded is not None:
            step, outcome = unrecorded
            undo.append((step, outcome.refs, outcome.compensation))
        for step in reversed(completed):
            undo.append(
                (step, step.load_refs(external_refs), compensation_data.get(str(step.name), {}))
            )

        for step, refs, data in undo:
            if not step.compensable:
                continue
            try:
                await step.compensate(ctx, refs, data)
                log.info("step_compensated", step=str(step.name))
            except Exception as exc:
                log.exception("compensation_failed", step=str(step.name), error=str(exc))
