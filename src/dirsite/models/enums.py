"""String enums for tenants and provisioning jobs."""

from enum import StrEnum


class TenantStatus(StrEnum):
    DRAFT = "DRAFT"
    PREVIEW = "PREVIEW"
    PUBLISHED = "PUBLISHED"
    UPDATING = "UPDATING"
    FAILED = "FAILED"


class JobType(StrEnum):
    CREATE = "CREATE"
    UPDATE = "UPDATE"
    DELETE = "DELETE"
    REPUBLISH = "REPUBLISH"


class JobStatus(StrEnum):
    QUEUED = "QUEUED"
    RUNNING = "RUNNING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"
    CANCELLED = "CANCELLED"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATUSES


TERMINAL_STATUSES = frozenset({JobStatus.COMPLETED, JobStatus.FAILED, JobStatus.CANCELLED})
ACTIVE_STATUSES = frozenset({JobStatus.QUEUED, JobStatus.RUNNING})


class StepName(StrEnum):
    QUEUED = "QUEUED"
    VALIDATE_TENANT = "VALIDATE_TENANT"
    GENERATE_STATIC_SITE = "GENERATE_STATIC_SITE"
    DEPLOY_TO_CDN = "DEPLOY_TO_CDN"
    SETUP_SEARCH_INDEX = "SETUP_SEARCH_INDEX"
    CONFIGURE_DOMAIN = "CONFIGURE_DOMAIN"
    RELEASE_DOMAIN = "RELEASE_DOMAIN"
    DROP_SEARCH_INDEX = "DROP_SEARCH_INDEX"
    UNDEPLOY_FROM_CDN = "UNDEPLOY_FROM_CDN"
    COMPLETED = "COMPLETED"
