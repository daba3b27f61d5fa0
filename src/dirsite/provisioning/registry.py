"""Step registry mapping job types to their fixed step sequences."""

from dirsite.models.enums import JobType
from dirsite.provisioning.steps.base import BaseStep


def _build_registry() -> dict[JobType, tuple[type[BaseStep], ...]]:
    from dirsite.provisioning.steps.publish import (
        ConfigureDomainStep,
        DeployToCdnStep,
        FinalizePublishStep,
        GenerateStaticSiteStep,
        SetupSearchIndexStep,
        ValidateTenantStep,
    )
    from dirsite.provisioning.steps.teardown import (
        DropSearchIndexStep,
        FinalizeUnpublishStep,
        ReleaseDomainStep,
        UndeployFromCdnStep,
    )

    publish = (
        ValidateTenantStep,
        GenerateStaticSiteStep,
        DeployToCdnStep,
        SetupSearchIndexStep,
        ConfigureDomainStep,
        FinalizePublishStep,
    )
    return {
        JobType.CREATE: publish,
        JobType.REPUBLISH: publish,
        # Domain is already bound for an existing site
        JobType.UPDATE: tuple(s for s in publish if s is not ConfigureDomainStep),
        JobType.DELETE: (
            ValidateTenantStep,
            ReleaseDomainStep,
            DropSearchIndexStep,
            UndeployFromCdnStep,
            FinalizeUnpublishStep,
        ),
    }


def _check_disjoint_refs(job_type: JobType, steps: tuple[type[BaseStep], ...]) -> None:
    owners: dict[str, str] = {}
    for step in steps:
        if step.refs_model is None:
            continue
        for key in step.refs_model.owned_keys():
            if key in owners:
                raise RuntimeError(
                    f"{job_type} sequence: external ref '{key}' claimed by both "
                    f"{owners[key]} and {step.name}"
                )
            owners[key] = step.name


_registry: dict[JobType, tuple[type[BaseStep], ...]] = {}


def _ensure_registry() -> None:
    if not _registry:
        built = _build_registry()
        for job_type, steps in built.items():
            _check_disjoint_refs(job_type, steps)
        _registry.update(built)


def get_steps(job_type: JobType | str) -> list[BaseStep]:
    """Fresh step instances for a job type, in execution order."""
    _ensure_registry()
    try:
        classes = _registry[JobType(job_type)]
    except (KeyError, ValueError):
        raise ValueError(f"No provisioning steps registered for job type '{job_type}'") from None
    return [cls() for cls in classes]


def steps_total(job_type: JobType | str) -> int:
    return len(get_steps(job_type))
