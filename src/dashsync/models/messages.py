"""Push channel message models.

Every inbound websocket frame is ``{"type": <kind>, "data": {...}}``.
:func:`parse_channel_message` maps it onto a closed set of message
models; kinds without a model become :class:`UnknownMessage` instead of
raising, so a new server-side event never breaks the connection.
"""

from __future__ import annotations

import json
from typing import Any, ClassVar

from pydantic import AliasChoices, Field, ValidationError, field_validator

from dashsync._constants import (
    MSG_ERROR,
    MSG_JOB_UPDATE,
    MSG_METRICS_UPDATE,
    MSG_SYSTEM_ALERT,
    MSG_UPLOAD_COMPLETE,
    MSG_UPLOAD_PROGRESS,
)
from dashsync.exceptions import DashChannelParseError
from dashsync.models._base import DashBaseModel, EpochSeconds

_TIMESTAMP_ALIASES = AliasChoices("timestamp", "updatedAt", "updated_at", "serverTimestamp")


def _opt_str(value: Any) -> str | None:
    return str(value) if value is not None else None


class MetricsUpdate(DashBaseModel):
    kind: ClassVar[str] = MSG_METRICS_UPDATE

    timestamp: EpochSeconds = Field(default=None, validation_alias=_TIMESTAMP_ALIASES)

    @property
    def metrics(self) -> dict[str, Any]:
        """Metric values without the timestamp keys."""
        return {k: v for k, v in self.raw.items() if k not in {"timestamp", "updatedAt", "serverTimestamp"}}


class JobUpdate(DashBaseModel):
    """Status change of a processing job or, with ``job_name``, a scheduler job."""

    kind: ClassVar[str] = MSG_JOB_UPDATE

    id: str | None = Field(default=None, validation_alias=AliasChoices("id", "jobId"))
    job_name: str | None = Field(default=None, validation_alias=AliasChoices("jobName", "job_name", "name"))
    status: str | None = None
    progress: float | None = None
    run_id: int | None = Field(default=None, validation_alias=AliasChoices("runId", "run_id", "attempt"))
    error_message: str | None = None
    timestamp: EpochSeconds = Field(default=None, validation_alias=_TIMESTAMP_ALIASES)

    @field_validator("id", mode="before")
    @classmethod
    def _coerce_id(cls, value: Any) -> str | None:
        return _opt_str(value)


class UploadProgress(DashBaseModel):
    kind: ClassVar[str] = MSG_UPLOAD_PROGRESS

    upload_id: str = Field(validation_alias=AliasChoices("uploadId", "upload_id", "id"))
    progress: float
    status: str | None = None
    timestamp: EpochSeconds = Field(default=None, validation_alias=_TIMESTAMP_ALIASES)

    @field_validator("upload_id", mode="before")
    @classmethod
    def _coerce_id(cls, value: Any) -> str | None:
        return _opt_str(value)


class UploadComplete(DashBaseModel):
    kind: ClassVar[str] = MSG_UPLOAD_COMPLETE

    upload_id: str = Field(validation_alias=AliasChoices("uploadId", "upload_id", "id"))
    filename: str | None = None
    status: str = "published"
    timestamp: EpochSeconds = Field(default=None, validation_alias=_TIMESTAMP_ALIASES)

    @field_validator("upload_id", mode="before")
    @classmethod
    def _coerce_id(cls, value: Any) -> str | None:
        return _opt_str(value)


class SystemAlert(DashBaseModel):
    kind: ClassVar[str] = MSG_SYSTEM_ALERT

    level: str = "info"
    message: str = ""
    timestamp: EpochSeconds = Field(default=None, validation_alias=_TIMESTAMP_ALIASES)


class ErrorNotice(DashBaseModel):
    kind: ClassVar[str] = MSG_ERROR

    message: str = ""
    code: str | None = None
    timestamp: EpochSeconds = Field(default=None, validation_alias=_TIMESTAMP_ALIASES)

    @field_validator("code", mode="before")
    @classmethod
    def _coerce_code(cls, value: Any) -> str | None:
        return _opt_str(value)


class UnknownMessage(DashBaseModel):
    """Frame with a kind this library does not know."""

    type: str
    data: dict[str, Any] = Field(default_factory=dict)

    @property
    def kind(self) -> str:
        return self.type


ChannelMessage = (
    MetricsUpdate | JobUpdate | UploadProgress | UploadComplete | SystemAlert | ErrorNotice | UnknownMessage
)

_MESSAGE_TYPES: dict[str, type[DashBaseModel]] = {
    model.kind: model  # type: ignore[attr-defined]
    for model in (MetricsUpdate, JobUpdate, UploadProgress, UploadComplete, SystemAlert, ErrorNotice)
}


def parse_channel_message(frame: str | bytes | dict[str, Any]) -> ChannelMessage:
    """Decode one websocket frame.

    Raises
    ------
    DashChannelParseError
        If the frame is not JSON, lacks a ``type`` tag, or its data does
        not validate against the model for that tag.
    """
    if isinstance(frame, (str, bytes)):
        try:
            decoded = json.loads(frame)
        except (json.JSONDecodeError, UnicodeDecodeError) as exc:
            raise DashChannelParseError(f"Channel frame is not JSON: {exc}") from exc
    else:
        decoded = frame

    if not isinstance(decoded, dict):
        raise DashChannelParseError("Channel frame is not a JSON object")
    kind = decoded.get("type") or decoded.get("event")
    if not isinstance(kind, str) or not kind:
        raise DashChannelParseError("Channel frame has no type tag")
    data = decoded.get("data")
    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise DashChannelParseError(f"Channel frame data for {kind} is not an object")

    model = _MESSAGE_TYPES.get(kind)
    if model is None:
        return UnknownMessage(type=kind, data=data)
    try:
        return model.model_validate(data)  # type: ignore[return-value]
    except ValidationError as exc:
        raise DashChannelParseError(f"Invalid {kind} payload: {exc.error_count()} error(s)") from exc
