"""Tests for payload models and push message parsing."""

from __future__ import annotations

from datetime import UTC, datetime

import pytest

from dashsync.exceptions import DashChannelParseError
from dashsync.models import (
    ErrorNotice,
    JobUpdate,
    LogEntry,
    MetricsUpdate,
    ProcessingJob,
    SchedulerJob,
    SystemAlert,
    UnknownMessage,
    UploadComplete,
    UploadProgress,
    UploadRecord,
    UserProfile,
    parse_channel_message,
    parse_epoch_seconds,
)

# ------------------------------------------------------------------
# Timestamps
# ------------------------------------------------------------------


class TestParseEpochSeconds:
    def test_iso_string(self) -> None:
        expected = datetime(2026, 3, 1, 12, 0, tzinfo=UTC).timestamp()
        assert parse_epoch_seconds("2026-03-01T12:00:00.000Z") == expected

    def test_milliseconds_normalized(self) -> None:
        assert parse_epoch_seconds(1_770_928_447_000) == 1_770_928_447.0

    def test_seconds_kept(self) -> None:
        assert parse_epoch_seconds(1_770_928_447) == 1_770_928_447.0

    def test_garbage_is_none(self) -> None:
        assert parse_epoch_seconds("yesterday") is None
        assert parse_epoch_seconds(0) is None
        assert parse_epoch_seconds(True) is None


# ------------------------------------------------------------------
# REST rows
# ------------------------------------------------------------------


class TestResourceRows:
    def test_processing_job_from_camel_case(self) -> None:
        job = ProcessingJob.model_validate(
            {
                "id": 42,
                "assetId": 7,
                "type": "transcode",
                "status": "running",
                "progress": 140,
                "startedAt": "2026-03-01T12:00:00Z",
                "errorMessage": "--",
            }
        )
        assert job.entity_id == "42"
        assert job.asset_id == "7"
        assert job.progress == 100.0
        assert job.error_message is None
        assert job.timestamp == job.started_at
        assert job.raw["errorMessage"] == "--"

    def test_processing_job_prefers_updated_at(self) -> None:
        job = ProcessingJob.model_validate(
            {"id": "1", "startedAt": 1_000_000_000, "updatedAt": 1_000_000_100, "runId": 3}
        )
        assert job.timestamp == 1_000_000_100.0
        assert job.run_id == 3
        assert job.status == "pending"

    def test_upload_record(self) -> None:
        upload = UploadRecord.model_validate({"id": 5, "platform": "youtube", "status": "uploading", "progress": "12"})
        assert upload.entity_id == "5"
        assert upload.progress == 12.0
        assert upload.timestamp is None

    def test_scheduler_status_derived_from_flags(self) -> None:
        running = SchedulerJob.model_validate({"name": "ingest", "running": True, "schedule": "*/5 * * * *"})
        stopped = SchedulerJob.model_validate({"name": "cleanup", "running": False, "enabled": False})
        idle = SchedulerJob.model_validate({"name": "report", "lastRun": "2026-03-01T00:00:00Z"})

        assert running.effective_status == "running"
        assert stopped.effective_status == "stopped"
        assert idle.effective_status == "scheduled"
        assert idle.last_run is not None
        assert idle.timestamp is None

    def test_log_entry(self) -> None:
        entry = LogEntry.model_validate({"level": "error", "message": "disk full", "timestamp": "2026-03-01T00:00:00Z"})
        assert entry.level == "error"
        assert entry.timestamp is not None

    def test_user_profile_coerces_id(self) -> None:
        user = UserProfile.model_validate({"id": 1, "username": "admin", "lastLogin": "2026-03-01T00:00:00Z"})
        assert user.id == "1"
        assert user.last_login is not None


# ------------------------------------------------------------------
# Push messages
# ------------------------------------------------------------------


class TestParseChannelMessage:
    def test_job_update_from_text_frame(self) -> None:
        message = parse_channel_message(
            '{"type": "job_update", "data": {"jobId": 42, "status": "running", "progress": 40, "timestamp": 1770928447000}}'
        )
        assert isinstance(message, JobUpdate)
        assert message.id == "42"
        assert message.status == "running"
        assert message.timestamp == 1_770_928_447.0

    def test_scheduler_job_update(self) -> None:
        message = parse_channel_message({"type": "job_update", "data": {"jobName": "ingest", "status": "running"}})
        assert isinstance(message, JobUpdate)
        assert message.job_name == "ingest"
        assert message.id is None

    def test_event_tag_accepted(self) -> None:
        message = parse_channel_message({"event": "upload_progress", "data": {"uploadId": 3, "progress": 55}})
        assert isinstance(message, UploadProgress)
        assert message.upload_id == "3"
        assert message.status is None

    def test_upload_complete_defaults_to_published(self) -> None:
        message = parse_channel_message(b'{"type": "upload_complete", "data": {"uploadId": "9", "filename": "a.mp4"}}')
        assert isinstance(message, UploadComplete)
        assert message.status == "published"

    def test_metrics_update_strips_timestamp(self) -> None:
        message = parse_channel_message(
            {"type": "metrics_update", "data": {"cpu": 12.5, "memory": 40, "timestamp": "2026-03-01T00:00:00Z"}}
        )
        assert isinstance(message, MetricsUpdate)
        assert message.metrics == {"cpu": 12.5, "memory": 40}
        assert message.timestamp is not None

    def test_alert_and_error(self) -> None:
        alert = parse_channel_message({"type": "system_alert", "data": {"level": "warning", "message": "disk 90%"}})
        error = parse_channel_message({"type": "error", "data": {"message": "worker crashed", "code": 500}})
        assert isinstance(alert, SystemAlert)
        assert alert.level == "warning"
        assert isinstance(error, ErrorNotice)
        assert error.code == "500"

    def test_unknown_kind_falls_back(self) -> None:
        message = parse_channel_message({"type": "quota_update", "data": {"used": 3}})
        assert isinstance(message, UnknownMessage)
        assert message.kind == "quota_update"
        assert message.data == {"used": 3}

    @pytest.mark.parametrize(
        "frame",
        [
            "not json",
            "[1, 2]",
            '{"data": {}}',
            '{"type": "job_update", "data": [1]}',
            '{"type": "upload_progress", "data": {"uploadId": "1"}}',
        ],
    )
    def test_malformed_frames_raise(self, frame: str) -> None:
        with pytest.raises(DashChannelParseError):
            parse_channel_message(frame)
