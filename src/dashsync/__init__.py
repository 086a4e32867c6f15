"""dashsync - Realtime state synchronization for the media pipeline dashboard."""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("dashsync")
except PackageNotFoundError:
    __version__ = "0+local"
from dashsync.channel import ChannelState, LiveChannel, aiohttp_connector
from dashsync.config import BackoffConfig, DashConfig, PollClassConfig
from dashsync.context import DashboardContext
from dashsync.credentials import CredentialStore, FileCredentialStore, MemoryCredentialStore
from dashsync.exceptions import (
    DashApiError,
    DashAuthError,
    DashChannelDisconnectedError,
    DashChannelError,
    DashChannelParseError,
    DashChannelUnauthorizedError,
    DashConfigError,
    DashError,
    DashHandshakeError,
    DashInvalidCredentialError,
    DashNetworkUnavailableError,
    DashPollError,
    DashPollServerError,
    DashPollTimeoutError,
    DashPollUnauthorizedError,
    DashServerError,
    DashTransportError,
    DashUnauthorizedError,
)
from dashsync.poller import PollScheduler
from dashsync.session import LiveState, Session, SessionManager
from dashsync.state import (
    EntityChange,
    EntityClass,
    EntityKey,
    EventKind,
    IngestionEvent,
    IngestionSource,
    MergeOutcome,
    ReconciliationStore,
    Snapshot,
    TrackedEntity,
    by_class,
)

__all__ = [
    "BackoffConfig",
    "ChannelState",
    "CredentialStore",
    "DashApiError",
    "DashAuthError",
    "DashChannelDisconnectedError",
    "DashChannelError",
    "DashChannelParseError",
    "DashChannelUnauthorizedError",
    "DashConfig",
    "DashConfigError",
    "DashError",
    "DashHandshakeError",
    "DashInvalidCredentialError",
    "DashNetworkUnavailableError",
    "DashPollError",
    "DashPollServerError",
    "DashPollTimeoutError",
    "DashPollUnauthorizedError",
    "DashServerError",
    "DashTransportError",
    "DashUnauthorizedError",
    "DashboardContext",
    "EntityChange",
    "EntityClass",
    "EntityKey",
    "EventKind",
    "FileCredentialStore",
    "IngestionEvent",
    "IngestionSource",
    "LiveChannel",
    "LiveState",
    "MemoryCredentialStore",
    "MergeOutcome",
    "PollScheduler",
    "ReconciliationStore",
    "Session",
    "SessionManager",
    "Snapshot",
    "TrackedEntity",
    "__version__",
    "aiohttp_connector",
    "by_class",
]
