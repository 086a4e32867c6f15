"""Snapshot endpoints for polled resource classes.

Endpoints:
  - /api/processing/jobs
  - /api/uploads
  - /api/scheduler/status
  - /api/dashboard/stats
  - /api/system/logs
"""

from __future__ import annotations

from typing import Any

from pydantic import ValidationError

from dashsync._api._common import Pagination, list_field, parse_pagination, unwrap_envelope
from dashsync._constants import (
    LOGS_ENDPOINT,
    METRICS_ENDPOINT,
    PROCESSING_JOBS_ENDPOINT,
    SCHEDULER_STATUS_ENDPOINT,
    UPLOADS_ENDPOINT,
)
from dashsync._transport import Transport
from dashsync.exceptions import DashApiError
from dashsync.models.resources import LogEntry, ProcessingJob, SchedulerJob, UploadRecord


def _validate_rows(endpoint: str, model: Any, rows: list[dict[str, Any]]) -> list[Any]:
    try:
        return [model.model_validate(row) for row in rows]
    except ValidationError as exc:
        raise DashApiError(
            f"{endpoint} row invalid: {exc.error_count()} error(s)",
            endpoint=endpoint,
        ) from exc


async def fetch_processing_jobs(
    transport: Transport,
    credential: str,
    *,
    page: int = 1,
    limit: int = 20,
) -> tuple[list[ProcessingJob], Pagination]:
    body = await transport.request(
        "GET",
        PROCESSING_JOBS_ENDPOINT,
        credential=credential,
        params={"page": page, "limit": limit},
    )
    data = unwrap_envelope(PROCESSING_JOBS_ENDPOINT, body)
    rows = list_field(PROCESSING_JOBS_ENDPOINT, data, "jobs")
    jobs = _validate_rows(PROCESSING_JOBS_ENDPOINT, ProcessingJob, rows)
    return jobs, parse_pagination(data, default_limit=limit, returned=len(jobs))


async def fetch_uploads(
    transport: Transport,
    credential: str,
    *,
    page: int = 1,
    limit: int = 20,
) -> tuple[list[UploadRecord], Pagination]:
    body = await transport.request(
        "GET",
        UPLOADS_ENDPOINT,
        credential=credential,
        params={"page": page, "limit": limit},
    )
    data = unwrap_envelope(UPLOADS_ENDPOINT, body)
    rows = list_field(UPLOADS_ENDPOINT, data, "uploads")
    uploads = _validate_rows(UPLOADS_ENDPOINT, UploadRecord, rows)
    return uploads, parse_pagination(data, default_limit=limit, returned=len(uploads))


async def fetch_scheduler_jobs(transport: Transport, credential: str) -> list[SchedulerJob]:
    """Fetch every scheduler job. The endpoint always lists all jobs."""
    body = await transport.request("GET", SCHEDULER_STATUS_ENDPOINT, credential=credential)
    data = unwrap_envelope(SCHEDULER_STATUS_ENDPOINT, body)
    rows = list_field(SCHEDULER_STATUS_ENDPOINT, data, "jobs")
    return _validate_rows(SCHEDULER_STATUS_ENDPOINT, SchedulerJob, rows)


async def fetch_metrics(transport: Transport, credential: str) -> dict[str, Any]:
    body = await transport.request("GET", METRICS_ENDPOINT, credential=credential)
    data = unwrap_envelope(METRICS_ENDPOINT, body)
    if not isinstance(data, dict):
        raise DashApiError(f"{METRICS_ENDPOINT} data is not an object", endpoint=METRICS_ENDPOINT)
    return data


async def fetch_logs(
    transport: Transport,
    credential: str,
    *,
    limit: int = 100,
    level: str | None = None,
) -> list[LogEntry]:
    params: dict[str, Any] = {"limit": limit}
    if level:
        params["level"] = level
    body = await transport.request("GET", LOGS_ENDPOINT, credential=credential, params=params)
    data = unwrap_envelope(LOGS_ENDPOINT, body)
    rows = list_field(LOGS_ENDPOINT, data, "logs")
    return _validate_rows(LOGS_ENDPOINT, LogEntry, rows)
