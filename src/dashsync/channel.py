"""Push channel: one websocket connection tied to the current session.

State machine::

    idle -> connecting -> open -> closing -> idle
                            \\-> reconnecting -> connecting

The channel reconnects with exponential backoff while it is running and
hands every parsed message to ``on_message``. It does not order messages;
ordering against poll snapshots is the store's job.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from collections.abc import Awaitable, Callable, Mapping
from contextlib import AbstractAsyncContextManager
from enum import StrEnum
from typing import Any, Protocol

import aiohttp

from dashsync._backoff import ConnectionAttempt
from dashsync._tasks import cancel_and_wait
from dashsync.config import DashConfig
from dashsync.exceptions import (
    DashChannelDisconnectedError,
    DashChannelError,
    DashChannelParseError,
    DashChannelUnauthorizedError,
    DashHandshakeError,
)
from dashsync.models.messages import ChannelMessage, UnknownMessage, parse_channel_message

_logger = logging.getLogger(__name__)


class ChannelState(StrEnum):
    IDLE = "idle"
    CONNECTING = "connecting"
    OPEN = "open"
    CLOSING = "closing"
    RECONNECTING = "reconnecting"


class WebSocketLike(Protocol):
    """The part of ``aiohttp.ClientWebSocketResponse`` the channel uses."""

    def __aiter__(self) -> Any: ...

    def exception(self) -> BaseException | None: ...


Connector = Callable[[str, Mapping[str, str]], AbstractAsyncContextManager[WebSocketLike]]


def aiohttp_connector(http_session: aiohttp.ClientSession, *, heartbeat: float | None) -> Connector:
    """Connector opening the channel with ``ClientSession.ws_connect``."""

    def _connect(url: str, headers: Mapping[str, str]) -> AbstractAsyncContextManager[WebSocketLike]:
        return http_session.ws_connect(url, headers=dict(headers), heartbeat=heartbeat)

    return _connect


class LiveChannel:
    """Websocket push channel with reconnect-with-backoff.

    Parameters
    ----------
    config : DashConfig
        Supplies the channel URL and reconnection bounds.
    connector : Connector
        Opens one websocket connection; see :func:`aiohttp_connector`.
    on_message : callable
        Receives every successfully parsed, known message.
    on_unauthorized : callable, optional
        Called once when the handshake is rejected for the credential.
        The channel goes idle instead of retrying.
    sleep : callable
        Awaitable sleep, replaceable in tests.
    """

    def __init__(
        self,
        config: DashConfig,
        connector: Connector,
        *,
        on_message: Callable[[ChannelMessage], None],
        on_unauthorized: Callable[[], None] | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self._config = config
        self._connector = connector
        self._on_message = on_message
        self._on_unauthorized = on_unauthorized
        self._sleep = sleep
        self._state = ChannelState.IDLE
        self._connected = False
        self._task: asyncio.Task[None] | None = None
        self._attempt = ConnectionAttempt(config.channel_backoff)
        self._status_listeners: list[Callable[[bool], None]] = []
        self._state_listeners: list[Callable[[ChannelState], None]] = []

    @property
    def state(self) -> ChannelState:
        return self._state

    @property
    def connected(self) -> bool:
        return self._connected

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    @property
    def attempt(self) -> ConnectionAttempt:
        """Current reconnection cycle; reset on every successful open."""
        return self._attempt

    def add_status_listener(self, listener: Callable[[bool], None]) -> Callable[[], None]:
        """Receive ``True``/``False`` on every connected/disconnected transition."""
        self._status_listeners.append(listener)
        return lambda: self._discard(self._status_listeners, listener)

    def add_state_listener(self, listener: Callable[[ChannelState], None]) -> Callable[[], None]:
        self._state_listeners.append(listener)
        return lambda: self._discard(self._state_listeners, listener)

    @staticmethod
    def _discard(listeners: list[Any], listener: Any) -> None:
        with contextlib.suppress(ValueError):
            listeners.remove(listener)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self, credential: str) -> None:
        """Start connecting with *credential*. No-op while already running."""
        if self.is_running:
            _logger.debug("Channel start ignored; already running state=%s", self._state)
            return
        self._attempt.reset()
        self._task = asyncio.get_running_loop().create_task(self._run(credential), name="dashsync-live-channel")

    async def stop(self) -> None:
        """Force the channel idle.

        Cancels any in-flight handshake, receive or backoff wait and returns
        only after the connection task has finished.
        """
        task = self._task
        self._task = None
        if task is not None and not task.done():
            if self._state == ChannelState.OPEN:
                self._set_state(ChannelState.CLOSING)
            await cancel_and_wait(task)
        self._set_connected(False)
        self._set_state(ChannelState.IDLE)
        self._attempt.reset()

    # ------------------------------------------------------------------
    # Connection loop
    # ------------------------------------------------------------------

    async def _run(self, credential: str) -> None:
        url = self._config.channel_url
        headers = {"Authorization": f"Bearer {credential}"}
        while True:
            self._set_state(ChannelState.CONNECTING)
            try:
                await self._connect_once(url, headers)
                raise DashChannelDisconnectedError("Channel closed by server")
            except DashChannelUnauthorizedError:
                _logger.warning("Channel handshake rejected credential")
                self._set_connected(False)
                self._set_state(ChannelState.IDLE)
                if self._on_unauthorized is not None:
                    self._on_unauthorized()
                return
            except (DashChannelError, aiohttp.ClientError, OSError, TimeoutError) as exc:
                _logger.debug("Channel connection lost: %s", exc, exc_info=True)

            self._set_connected(False)
            self._set_state(ChannelState.RECONNECTING)
            delay = self._attempt.fail()
            _logger.debug("Channel reconnect attempt=%d in %.2fs", self._attempt.attempt, delay)
            await self._sleep(delay)

    async def _connect_once(self, url: str, headers: Mapping[str, str]) -> None:
        async with contextlib.AsyncExitStack() as stack:
            try:
                ws = await stack.enter_async_context(self._connector(url, headers))
            except aiohttp.WSServerHandshakeError as exc:
                if exc.status in (401, 403):
                    raise DashChannelUnauthorizedError(f"Handshake rejected: HTTP {exc.status}") from exc
                raise DashHandshakeError(f"Handshake failed: HTTP {exc.status}") from exc
            except (aiohttp.ClientError, OSError, TimeoutError) as exc:
                raise DashHandshakeError(f"Handshake failed: {exc}") from exc

            self._attempt.reset()
            self._set_state(ChannelState.OPEN)
            self._set_connected(True)
            _logger.info("Channel connected url=%s", url)
            await self._receive(ws)

    async def _receive(self, ws: WebSocketLike) -> None:
        async for msg in ws:
            if msg.type in (aiohttp.WSMsgType.TEXT, aiohttp.WSMsgType.BINARY):
                self._dispatch(msg.data)
            elif msg.type == aiohttp.WSMsgType.ERROR:
                raise DashChannelDisconnectedError(f"Channel error: {ws.exception()}")
            elif msg.type in (aiohttp.WSMsgType.CLOSE, aiohttp.WSMsgType.CLOSING, aiohttp.WSMsgType.CLOSED):
                return

    def _dispatch(self, frame: Any) -> None:
        try:
            message = parse_channel_message(frame)
        except DashChannelParseError:
            _logger.warning("Dropping unparseable channel frame", exc_info=True)
            return
        if isinstance(message, UnknownMessage):
            _logger.info("Dropping channel message of unknown kind %r", message.kind)
            return
        try:
            self._on_message(message)
        except Exception:
            _logger.warning("Channel message handler failed for %s", type(message).__name__, exc_info=True)

    # ------------------------------------------------------------------
    # Listeners
    # ------------------------------------------------------------------

    def _set_state(self, state: ChannelState) -> None:
        if state == self._state:
            return
        _logger.debug("Channel state %s -> %s", self._state, state)
        self._state = state
        for listener in list(self._state_listeners):
            try:
                listener(state)
            except Exception:
                _logger.warning("Channel state listener failed", exc_info=True)

    def _set_connected(self, connected: bool) -> None:
        if connected == self._connected:
            return
        self._connected = connected
        for listener in list(self._status_listeners):
            try:
                listener(connected)
            except Exception:
                _logger.warning("Channel status listener failed", exc_info=True)
