"""Dashboard context: wires session, channel, polling and the store together."""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable, Mapping
from typing import Any, TypeVar

import aiohttp

from dashsync._api import actions as _actions_api
from dashsync._api import resources as _resources_api
from dashsync._tasks import wait_finished
from dashsync._transport import RestTransport, Transport
from dashsync.channel import ChannelState, Connector, LiveChannel, aiohttp_connector
from dashsync.config import DashConfig
from dashsync.credentials import CredentialStore, FileCredentialStore, MemoryCredentialStore
from dashsync.exceptions import DashConfigError, DashError, DashUnauthorizedError
from dashsync.ingestion.channel import build_events_from_message
from dashsync.ingestion.snapshots import (
    log_snapshot,
    metrics_snapshot,
    processing_snapshot,
    scheduler_snapshot,
    upload_snapshot,
)
from dashsync.models.messages import ChannelMessage
from dashsync.poller import Fetcher, PollScheduler
from dashsync.session import LiveState, Session, SessionManager
from dashsync.state.events import Snapshot
from dashsync.state.store import ReconciliationStore

_logger = logging.getLogger(__name__)

T = TypeVar("T")

_LIVE_STATES = {
    ChannelState.IDLE: LiveState.ABSENT,
    ChannelState.CONNECTING: LiveState.CONNECTING,
    ChannelState.OPEN: LiveState.CONNECTED,
    ChannelState.CLOSING: LiveState.DISCONNECTED,
    ChannelState.RECONNECTING: LiveState.DISCONNECTED,
}


class DashboardContext:
    """Realtime state for one operator dashboard.

    Usage::

        async with DashboardContext(config) as ctx:
            await ctx.login("operator", "secret")
            ctx.store.subscribe(by_class(EntityClass.PROCESSING), on_change)

    The push channel and the poll classes only run while a session exists.
    An unauthorized response from any of them ends the session through a
    single logout cascade.
    """

    def __init__(
        self,
        config: DashConfig,
        *,
        http_session: aiohttp.ClientSession | None = None,
        transport: Transport | None = None,
        credential_store: CredentialStore | None = None,
        connector: Connector | None = None,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self._config = config
        self._external_session = http_session is not None
        self._http_session = http_session
        self._transport = transport
        self._connector = connector
        self._clock = clock
        self._sleep = sleep
        if credential_store is None:
            if config.credential_path:
                credential_store = FileCredentialStore(config.credential_path)
            else:
                credential_store = MemoryCredentialStore()
        self._credential_store = credential_store
        self._store = ReconciliationStore(clock=clock, dedup_window=config.dedup_window)
        self._poller = PollScheduler(
            sink=self._store.apply_snapshot,
            on_unauthorized=lambda name: self._trigger_logout(f"poll:{name}"),
            sleep=sleep,
        )
        self._sessions: SessionManager | None = None
        self._channel: LiveChannel | None = None
        self._logout_task: asyncio.Task[None] | None = None

    # ------------------------------------------------------------------
    # Context manager lifecycle
    # ------------------------------------------------------------------

    async def __aenter__(self) -> DashboardContext:
        if self._http_session is None and (self._transport is None or self._connector is None):
            self._http_session = aiohttp.ClientSession()
        if self._transport is None:
            assert self._http_session is not None  # noqa: S101
            self._transport = RestTransport(self._config, self._http_session)
        if self._connector is None:
            assert self._http_session is not None  # noqa: S101
            self._connector = aiohttp_connector(self._http_session, heartbeat=self._config.channel_heartbeat)

        self._sessions = SessionManager(self._transport, self._credential_store)
        self._channel = LiveChannel(
            self._config,
            self._connector,
            on_message=self._on_channel_message,
            on_unauthorized=self._on_channel_unauthorized,
            sleep=self._sleep,
        )
        self._channel.add_state_listener(self._on_channel_state)
        for name, fetch in self._fetchers().items():
            self._poller.register(name, fetch, self._config.poll_config(name))
        return self

    async def __aexit__(self, *exc: Any) -> None:
        task = self._logout_task
        if task is not None and not task.done():
            await wait_finished(task)
        await self._stop_live()
        if not self._external_session and self._http_session is not None:
            await self._http_session.close()
            self._http_session = None

    # ------------------------------------------------------------------
    # Accessors
    # ------------------------------------------------------------------

    @property
    def config(self) -> DashConfig:
        return self._config

    @property
    def store(self) -> ReconciliationStore:
        return self._store

    @property
    def poller(self) -> PollScheduler:
        return self._poller

    @property
    def sessions(self) -> SessionManager:
        if self._sessions is None:
            raise DashError("Context not initialized. Use 'async with DashboardContext(...) as ctx:'")
        return self._sessions

    @property
    def channel(self) -> LiveChannel:
        if self._channel is None:
            raise DashError("Context not initialized. Use 'async with DashboardContext(...) as ctx:'")
        return self._channel

    @property
    def session(self) -> Session | None:
        return self._sessions.current if self._sessions is not None else None

    @property
    def connected(self) -> bool:
        """Whether the push channel is currently open."""
        return self._channel is not None and self._channel.connected

    @property
    def degraded(self) -> list[str]:
        """Poll classes whose last fetch failed."""
        return [name for name in self._poller.names if self._poller.is_degraded(name)]

    # ------------------------------------------------------------------
    # Session lifecycle
    # ------------------------------------------------------------------

    async def login(self, username: str | None = None, password: str | None = None) -> Session:
        """Log in and start live updates.

        An existing session is torn down first. Falls back to the configured
        username and password.
        """
        username = username or self._config.username
        password = password or self._config.password
        if not username or not password:
            raise DashConfigError("username and password are required to log in")
        if self.sessions.is_authenticated:
            await self.logout()
        session = await self.sessions.login(username, password)
        self._go_live(session)
        return session

    async def restore(self) -> Session | None:
        """Resume from a persisted credential if the backend still accepts it."""
        session = await self.sessions.restore_from_persisted_credential()
        if session is not None:
            self._go_live(session)
        return session

    async def logout(self) -> None:
        """Stop all live updates, end the session and empty the store."""
        task = self._logout_task
        if task is not None and not task.done():
            await task
        await self._stop_live()
        await self.sessions.logout()
        self._store.clear()

    def _go_live(self, session: Session) -> None:
        if self._config.channel_enabled:
            self.channel.start(session.credential)
        self._poller.start_all()

    async def _stop_live(self) -> None:
        if self._channel is not None:
            await self._channel.stop()
        await self._poller.stop_all()

    def _trigger_logout(self, source: str) -> None:
        """Start the logout cascade unless one is already running."""
        task = self._logout_task
        if task is not None and not task.done():
            _logger.debug("Logout cascade already running; ignoring %s", source)
            return
        if self._sessions is None or not self._sessions.is_authenticated:
            return
        _logger.warning("Credential rejected by %s; logging out", source)
        self._logout_task = asyncio.get_running_loop().create_task(
            self._logout_cascade(), name="dashsync-logout-cascade"
        )

    async def _logout_cascade(self) -> None:
        await self._stop_live()
        self.sessions.invalidate()
        self._store.clear()

    # ------------------------------------------------------------------
    # Channel wiring
    # ------------------------------------------------------------------

    def _on_channel_message(self, message: ChannelMessage) -> None:
        for event in build_events_from_message(message):
            self._store.apply(event)

    def _on_channel_state(self, state: ChannelState) -> None:
        if self._sessions is not None:
            self._sessions.set_live_state(_LIVE_STATES[state])

    def _on_channel_unauthorized(self) -> None:
        if self._sessions is not None:
            self._sessions.set_live_state(LiveState.FAILED)
        self._trigger_logout("channel")

    # ------------------------------------------------------------------
    # Poll fetchers
    # ------------------------------------------------------------------

    def _fetchers(self) -> dict[str, Fetcher]:
        return {
            "processing": self._fetch_processing,
            "uploads": self._fetch_uploads,
            "scheduler": self._fetch_scheduler,
            "metrics": self._fetch_metrics,
            "logs": self._fetch_logs,
        }

    def _require_credential(self) -> str:
        credential = self.sessions.credential
        if credential is None:
            raise DashUnauthorizedError("No active session")
        return credential

    def _require_transport(self) -> Transport:
        if self._transport is None:
            raise DashError("Context not initialized. Use 'async with DashboardContext(...) as ctx:'")
        return self._transport

    async def _fetch_processing(self) -> Snapshot:
        credential = self._require_credential()
        requested_at = self._clock()
        jobs, pagination = await _resources_api.fetch_processing_jobs(
            self._require_transport(), credential, limit=self._config.page_size
        )
        return processing_snapshot(jobs, pagination, requested_at=requested_at)

    async def _fetch_uploads(self) -> Snapshot:
        credential = self._require_credential()
        requested_at = self._clock()
        uploads, pagination = await _resources_api.fetch_uploads(
            self._require_transport(), credential, limit=self._config.page_size
        )
        return upload_snapshot(uploads, pagination, requested_at=requested_at)

    async def _fetch_scheduler(self) -> Snapshot:
        credential = self._require_credential()
        requested_at = self._clock()
        jobs = await _resources_api.fetch_scheduler_jobs(self._require_transport(), credential)
        return scheduler_snapshot(jobs, requested_at=requested_at)

    async def _fetch_metrics(self) -> Snapshot:
        credential = self._require_credential()
        requested_at = self._clock()
        metrics = await _resources_api.fetch_metrics(self._require_transport(), credential)
        return metrics_snapshot(metrics, requested_at=requested_at)

    async def _fetch_logs(self) -> Snapshot:
        credential = self._require_credential()
        requested_at = self._clock()
        entries = await _resources_api.fetch_logs(
            self._require_transport(), credential, limit=self._config.log_limit
        )
        return log_snapshot(entries, requested_at=requested_at)

    # ------------------------------------------------------------------
    # Actions
    # ------------------------------------------------------------------

    async def _call(self, fn: Callable[[Transport, str], Awaitable[T]]) -> T:
        """Run an action; an unauthorized response starts the logout cascade."""
        try:
            return await fn(self._require_transport(), self._require_credential())
        except DashUnauthorizedError:
            self._trigger_logout("action")
            raise

    async def processing_action(self, job_id: str, action: str) -> Any:
        return await self._call(lambda t, c: _actions_api.processing_job_action(t, c, job_id, action))

    async def delete_processing_job(self, job_id: str) -> Any:
        return await self._call(lambda t, c: _actions_api.delete_processing_job(t, c, job_id))

    async def start_processing_job(
        self,
        asset_id: str,
        job_type: str,
        options: Mapping[str, Any] | None = None,
    ) -> Any:
        return await self._call(
            lambda t, c: _actions_api.start_processing_job(t, c, asset_id=asset_id, job_type=job_type, options=options)
        )

    async def scheduler_action(self, job_name: str, action: str) -> Any:
        return await self._call(lambda t, c: _actions_api.scheduler_job_action(t, c, job_name, action))

    async def trigger_scheduler_job(self, job_name: str) -> Any:
        return await self._call(lambda t, c: _actions_api.trigger_scheduler_job(t, c, job_name))

    async def update_scheduler_config(self, config: Mapping[str, Any]) -> Any:
        return await self._call(lambda t, c: _actions_api.update_scheduler_config(t, c, config))
