"""REST snapshot ingestion.

Turns typed rows from the snapshot endpoints into :class:`Snapshot`
objects for the store. Every record carries the full field set of its
row; the store decides what is stale.
"""

from __future__ import annotations

from typing import Any

from dashsync._api._common import Pagination
from dashsync.ingestion.channel import METRICS_ENTITY_ID
from dashsync.ingestion.normalize import content_id, prune_patch
from dashsync.models._base import parse_epoch_seconds
from dashsync.models.resources import LogEntry, ProcessingJob, SchedulerJob, UploadRecord
from dashsync.state.events import EntityClass, EntityKey, EventKind, IngestionEvent, IngestionSource, Snapshot


def _record(
    entity_class: EntityClass,
    entity_id: str,
    data: dict[str, Any],
    payload_timestamp: float | None,
    raw: dict[str, Any],
) -> IngestionEvent:
    return IngestionEvent(
        key=EntityKey(entity_class=entity_class, id=entity_id),
        kind=EventKind.CREATED,
        source=IngestionSource.POLL,
        payload_timestamp=payload_timestamp,
        data=prune_patch(data),
        raw=raw,
    )


def processing_snapshot(
    jobs: list[ProcessingJob],
    pagination: Pagination,
    *,
    requested_at: float | None = None,
) -> Snapshot:
    records = tuple(
        _record(
            EntityClass.PROCESSING,
            job.entity_id,
            {
                "status": job.status,
                "progress": job.progress,
                "run_id": job.run_id,
                "asset_id": job.asset_id,
                "type": job.type,
                "started_at": job.started_at,
                "completed_at": job.completed_at,
                "error_message": job.error_message,
            },
            job.timestamp,
            job.raw,
        )
        for job in jobs
    )
    return Snapshot(
        entity_class=EntityClass.PROCESSING,
        records=records,
        complete=pagination.is_single_page,
        requested_at=requested_at,
    )


def upload_snapshot(
    uploads: list[UploadRecord],
    pagination: Pagination,
    *,
    requested_at: float | None = None,
) -> Snapshot:
    records = tuple(
        _record(
            EntityClass.UPLOAD,
            upload.entity_id,
            {
                "status": upload.status,
                "progress": upload.progress,
                "run_id": upload.run_id,
                "asset_id": upload.asset_id,
                "platform": upload.platform,
                "title": upload.title,
                "error_message": upload.error_message,
            },
            upload.timestamp,
            upload.raw,
        )
        for upload in uploads
    )
    return Snapshot(
        entity_class=EntityClass.UPLOAD,
        records=records,
        complete=pagination.is_single_page,
        requested_at=requested_at,
    )


def scheduler_snapshot(jobs: list[SchedulerJob], *, requested_at: float | None = None) -> Snapshot:
    """The scheduler status endpoint always lists every job, so this is complete."""
    records = tuple(
        _record(
            EntityClass.SCHEDULER,
            job.entity_id,
            {
                "status": job.effective_status,
                "schedule": job.schedule,
                "last_run": job.last_run,
                "next_run": job.next_run,
            },
            job.timestamp,
            job.raw,
        )
        for job in jobs
    )
    return Snapshot(
        entity_class=EntityClass.SCHEDULER,
        records=records,
        complete=True,
        requested_at=requested_at,
    )


def metrics_snapshot(metrics: dict[str, Any], *, requested_at: float | None = None) -> Snapshot:
    timestamp = parse_epoch_seconds(metrics.get("timestamp") or metrics.get("updatedAt"))
    values = {k: v for k, v in metrics.items() if k not in {"timestamp", "updatedAt"}}
    record = _record(
        EntityClass.METRICS,
        METRICS_ENTITY_ID,
        {"status": "reporting", "metrics": values},
        timestamp,
        metrics,
    )
    return Snapshot(entity_class=EntityClass.METRICS, records=(record,), requested_at=requested_at)


def log_snapshot(entries: list[LogEntry], *, requested_at: float | None = None) -> Snapshot:
    """Log listings are a moving window and never remove older entries."""
    records = tuple(
        _record(
            EntityClass.LOG,
            content_id(entry.timestamp, entry.level, entry.message),
            {"status": entry.level, "level": entry.level, "message": entry.message},
            entry.timestamp,
            entry.raw,
        )
        for entry in entries
    )
    return Snapshot(entity_class=EntityClass.LOG, records=records, requested_at=requested_at)
