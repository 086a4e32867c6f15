"""REST snapshot record models.

One model per polled resource class. Each exposes the same small surface
used by snapshot ingestion: ``entity_id``, ``status``, ``progress``,
``timestamp`` and ``run_id``.
"""

from __future__ import annotations

from typing import Any

from pydantic import AliasChoices, Field, field_validator

from dashsync.models._base import DashBaseModel, EpochSeconds


def _clamp_progress(value: Any) -> float | None:
    if value is None:
        return None
    try:
        progress = float(value)
    except (TypeError, ValueError):
        return None
    return max(0.0, min(100.0, progress))


class ProcessingJob(DashBaseModel):
    """Row of ``GET /api/processing/jobs``."""

    id: str
    asset_id: str | None = None
    type: str | None = None
    status: str = "pending"
    progress: float | None = None
    run_id: int | None = Field(default=None, validation_alias=AliasChoices("runId", "run_id", "attempt"))
    started_at: EpochSeconds = None
    completed_at: EpochSeconds = None
    updated_at: EpochSeconds = None
    error_message: str | None = None

    @field_validator("id", "asset_id", mode="before")
    @classmethod
    def _coerce_str(cls, value: Any) -> Any:
        return str(value) if value is not None else None

    @field_validator("progress", mode="before")
    @classmethod
    def _clamp(cls, value: Any) -> float | None:
        return _clamp_progress(value)

    @property
    def entity_id(self) -> str:
        return self.id

    @property
    def timestamp(self) -> float | None:
        return self.updated_at or self.completed_at or self.started_at


class UploadRecord(DashBaseModel):
    """Row of ``GET /api/uploads``."""

    id: str
    asset_id: str | None = None
    platform: str | None = None
    title: str | None = None
    status: str = "pending"
    progress: float | None = None
    run_id: int | None = Field(default=None, validation_alias=AliasChoices("runId", "run_id", "attempt"))
    updated_at: EpochSeconds = None
    error_message: str | None = None

    @field_validator("id", "asset_id", mode="before")
    @classmethod
    def _coerce_str(cls, value: Any) -> Any:
        return str(value) if value is not None else None

    @field_validator("progress", mode="before")
    @classmethod
    def _clamp(cls, value: Any) -> float | None:
        return _clamp_progress(value)

    @property
    def entity_id(self) -> str:
        return self.id

    @property
    def timestamp(self) -> float | None:
        return self.updated_at


class SchedulerJob(DashBaseModel):
    """Entry of ``GET /api/scheduler/status``.

    The scheduler reports a ``running`` flag rather than a status string;
    ``status`` is derived from it when absent.
    """

    name: str
    running: bool = False
    enabled: bool | None = None
    schedule: str | None = None
    last_run: EpochSeconds = None
    next_run: EpochSeconds = None
    status: str | None = None

    @property
    def entity_id(self) -> str:
        return self.name

    @property
    def effective_status(self) -> str:
        if self.status:
            return self.status
        if self.running:
            return "running"
        if self.enabled is False:
            return "stopped"
        return "scheduled"

    @property
    def timestamp(self) -> float | None:
        """Scheduler entries carry no update timestamp."""
        return None


class LogEntry(DashBaseModel):
    """Line of ``GET /api/system/logs``."""

    level: str = "info"
    message: str = ""
    timestamp: EpochSeconds = None
