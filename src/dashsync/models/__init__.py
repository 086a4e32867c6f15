"""Data models for dashboard API payloads and push messages."""

from dashsync.models._base import DashBaseModel, EpochSeconds, parse_epoch_seconds
from dashsync.models.messages import (
    ChannelMessage,
    ErrorNotice,
    JobUpdate,
    MetricsUpdate,
    SystemAlert,
    UnknownMessage,
    UploadComplete,
    UploadProgress,
    parse_channel_message,
)
from dashsync.models.resources import LogEntry, ProcessingJob, SchedulerJob, UploadRecord
from dashsync.models.user import UserProfile

__all__ = [
    "ChannelMessage",
    "DashBaseModel",
    "EpochSeconds",
    "ErrorNotice",
    "JobUpdate",
    "LogEntry",
    "MetricsUpdate",
    "ProcessingJob",
    "SchedulerJob",
    "SystemAlert",
    "UnknownMessage",
    "UploadComplete",
    "UploadProgress",
    "UploadRecord",
    "UserProfile",
    "parse_channel_message",
]
