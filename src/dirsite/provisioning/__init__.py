"""Provisioning saga orchestrator: publishes tenant sites to hosting."""

from dirsite.provisioning.clock import Clock, SystemClock, VirtualClock
from dirsite.provisioning.hosting import HostingDelays, HostingServices, simulated_hosting
from dirsite.provisioning.registry import get_steps, steps_total
from dirsite.provisioning.runner import SagaRunner
from dirsite.provisioning.service import ProvisioningService
from dirsite.provisioning.status import compute_progress, format_job_status
from dirsite.provisioning.store import ProvisioningJobStore, TenantStore

__all__ = [
    "Clock",
    "SystemClock",
    "VirtualClock",
    "HostingDelays",
    "HostingServices",
    "simulated_hosting",
    "get_steps",
    "steps_total",
    "SagaRunner",
    "ProvisioningService",
    "compute_progress",
    "format_job_status",
    "ProvisioningJobStore",
    "TenantStore",
]
