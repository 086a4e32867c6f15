"""Push channel ingestion.

Translates parsed channel messages into normalized store events. The
channel itself performs no ordering; every event produced here goes
through the store's merge policy.
"""

from __future__ import annotations

import logging

from dashsync.ingestion.normalize import content_id, prune_patch
from dashsync.models.messages import (
    ChannelMessage,
    ErrorNotice,
    JobUpdate,
    MetricsUpdate,
    SystemAlert,
    UnknownMessage,
    UploadComplete,
    UploadProgress,
)
from dashsync.state.events import EntityClass, EntityKey, EventKind, IngestionEvent, IngestionSource

_logger = logging.getLogger(__name__)

METRICS_ENTITY_ID = "system"


def _event(
    entity_class: EntityClass,
    entity_id: str,
    kind: EventKind,
    data: dict,
    message: ChannelMessage,
    payload_timestamp: float | None,
) -> IngestionEvent:
    return IngestionEvent(
        key=EntityKey(entity_class=entity_class, id=entity_id),
        kind=kind,
        source=IngestionSource.PUSH,
        payload_timestamp=payload_timestamp,
        data=prune_patch(data),
        raw=message.raw,
    )


def _from_job_update(message: JobUpdate) -> list[IngestionEvent]:
    if message.job_name:
        entity_class, entity_id = EntityClass.SCHEDULER, message.job_name
    elif message.id:
        entity_class, entity_id = EntityClass.PROCESSING, message.id
    else:
        _logger.debug("job_update without id or jobName dropped")
        return []
    kind = EventKind.STATUS if message.status else EventKind.PROGRESS
    data = {
        "status": message.status,
        "progress": message.progress,
        "run_id": message.run_id,
        "error_message": message.error_message,
    }
    return [_event(entity_class, entity_id, kind, data, message, message.timestamp)]


def build_events_from_message(message: ChannelMessage) -> list[IngestionEvent]:
    """Convert one channel message into zero or more store events."""
    if isinstance(message, MetricsUpdate):
        data = {"status": "reporting", "metrics": message.metrics}
        return [_event(EntityClass.METRICS, METRICS_ENTITY_ID, EventKind.STATUS, data, message, message.timestamp)]

    if isinstance(message, JobUpdate):
        return _from_job_update(message)

    if isinstance(message, UploadProgress):
        data = {"progress": message.progress, "status": message.status}
        return [_event(EntityClass.UPLOAD, message.upload_id, EventKind.PROGRESS, data, message, message.timestamp)]

    if isinstance(message, UploadComplete):
        data = {"status": message.status, "progress": 100.0, "filename": message.filename}
        return [_event(EntityClass.UPLOAD, message.upload_id, EventKind.STATUS, data, message, message.timestamp)]

    if isinstance(message, SystemAlert):
        data = {"status": message.level, "level": message.level, "message": message.message}
        alert_id = content_id(message.level, message.message, message.timestamp)
        return [_event(EntityClass.ALERT, alert_id, EventKind.ALERT, data, message, message.timestamp)]

    if isinstance(message, ErrorNotice):
        data = {"status": "error", "level": "error", "message": message.message, "code": message.code}
        alert_id = content_id("error", message.code, message.message, message.timestamp)
        return [_event(EntityClass.ALERT, alert_id, EventKind.ALERT, data, message, message.timestamp)]

    if isinstance(message, UnknownMessage):
        _logger.debug("Unknown channel message kind=%s dropped", message.kind)
    return []
