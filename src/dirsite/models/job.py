"""Pydantic models for provisioning job records and their status view."""

from datetime import datetime, timezone
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from dirsite.models.enums import JobStatus, JobType


def _as_utc(value: datetime | None) -> datetime | None:
    # SQLite hands back naive datetimes; everything we store is UTC
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class JobRecord(BaseModel):
    """Durable state of one provisioning run, as read from the job store."""

    model_config = ConfigDict(from_attributes=True, populate_by_name=True, frozen=True)

    id: str = Field(..., validation_alias="job_id")
    tenant_id: str
    type: JobType = Field(..., validation_alias="job_type")
    status: JobStatus
    progress: int = Field(..., ge=0, le=100)
    current_step: str
    steps_total: int = Field(..., ge=0)
    steps_completed: int = Field(..., ge=0)
    external_refs: dict[str, Any] = Field(default_factory=dict)
    compensation_data: dict[str, Any] = Field(default_factory=dict)
    error_message: str | None = None
    started_at: datetime | None = None
    completed_at: datetime | None = None
    created_at: datetime

    @field_validator("started_at", "completed_at", "created_at")
    @classmethod
    def _normalize_tz(cls, value: datetime | None) -> datetime | None:
        return _as_utc(value)

    @field_validator("external_refs", "compensation_data", mode="before")
    @classmethod
    def _default_empty(cls, value):
        return value or {}

    @property
    def is_terminal(self) -> bool:
        return self.status.is_terminal


class PublishResult(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    tenant_url: str
    admin_url: str


class JobStatusModel(BaseModel):
    """Client-facing job status. Optional fields are omitted when unset."""

    model_config = ConfigDict(extra="forbid")

    job_id: str
    tenant_id: str
    status: JobStatus
    progress: int
    current_step: str
    steps_total: int
    steps_completed: int
    started_at: datetime | None = None
    completed_at: datetime | None = None
    result: PublishResult | None = None
    error_message: str | None = None
