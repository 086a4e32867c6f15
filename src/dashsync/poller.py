"""Periodic REST snapshot polling, one independent task per resource class."""

from __future__ import annotations

import asyncio
import contextlib
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field

from pydantic import ValidationError

from dashsync._backoff import ConnectionAttempt
from dashsync._tasks import cancel_and_wait
from dashsync.config import PollClassConfig
from dashsync.exceptions import (
    DashError,
    DashPollError,
    DashPollServerError,
    DashPollTimeoutError,
    DashPollUnauthorizedError,
    DashTransportError,
    DashUnauthorizedError,
)
from dashsync.state.events import Snapshot

_logger = logging.getLogger(__name__)

Fetcher = Callable[[], Awaitable[Snapshot]]
SnapshotSink = Callable[[Snapshot], object]


@dataclass
class _PollClass:
    name: str
    fetch: Fetcher
    config: PollClassConfig
    task: asyncio.Task[None] | None = None
    degraded: bool = False
    last_error: DashPollError | None = None
    retry: ConnectionAttempt = field(init=False)

    def __post_init__(self) -> None:
        self.retry = ConnectionAttempt(self.config.retry_backoff)

    @property
    def running(self) -> bool:
        return self.task is not None and not self.task.done()


def classify_poll_error(resource: str, exc: BaseException) -> DashPollError:
    """Map a fetch failure onto the poll error taxonomy."""
    if isinstance(exc, DashPollError):
        return exc
    if isinstance(exc, DashUnauthorizedError):
        return DashPollUnauthorizedError(f"{resource}: {exc}", resource=resource)
    if isinstance(exc, TimeoutError) or (isinstance(exc, DashTransportError) and exc.timeout):
        return DashPollTimeoutError(f"{resource}: fetch timed out", resource=resource)
    return DashPollServerError(f"{resource}: {exc}", resource=resource)


class PollScheduler:
    """Runs snapshot fetches per resource class at independent intervals.

    A failing class retries with its own capped backoff and is reported as
    degraded; it never delays other classes and never blanks data already in
    the store. An unauthorized response stops the class and is reported
    through ``on_unauthorized``.
    """

    def __init__(
        self,
        *,
        sink: SnapshotSink,
        on_unauthorized: Callable[[str], None] | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self._sink = sink
        self._on_unauthorized = on_unauthorized
        self._sleep = sleep
        self._classes: dict[str, _PollClass] = {}
        self._degraded_listeners: list[Callable[[str, bool], None]] = []

    def register(self, name: str, fetch: Fetcher, config: PollClassConfig) -> None:
        if name in self._classes and self._classes[name].running:
            raise DashError(f"poll class {name!r} is running; stop it before re-registering")
        self._classes[name] = _PollClass(name=name, fetch=fetch, config=config)

    @property
    def names(self) -> list[str]:
        return list(self._classes)

    def is_running(self, name: str) -> bool:
        entry = self._classes.get(name)
        return entry is not None and entry.running

    def is_degraded(self, name: str) -> bool:
        entry = self._classes.get(name)
        return entry is not None and entry.degraded

    def last_error(self, name: str) -> DashPollError | None:
        entry = self._classes.get(name)
        return entry.last_error if entry is not None else None

    @property
    def running_classes(self) -> list[str]:
        return [name for name, entry in self._classes.items() if entry.running]

    def add_degraded_listener(self, listener: Callable[[str, bool], None]) -> Callable[[], None]:
        """Receive ``(name, degraded)`` whenever a class changes health."""
        self._degraded_listeners.append(listener)

        def _remove() -> None:
            with contextlib.suppress(ValueError):
                self._degraded_listeners.remove(listener)

        return _remove

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self, name: str) -> None:
        """Start polling *name*. No-op if it is already running."""
        entry = self._classes[name]
        if entry.running:
            return
        entry.retry.reset()
        entry.task = asyncio.get_running_loop().create_task(self._run(entry), name=f"dashsync-poll-{name}")
        _logger.debug("Poll class %s started interval=%.1fs", name, entry.config.interval)

    def start_all(self) -> None:
        """Start every registered class whose config is enabled."""
        for name, entry in self._classes.items():
            if entry.config.enabled:
                self.start(name)

    async def stop(self, name: str) -> None:
        """Cancel *name*'s in-flight fetch and timer, waiting until it has stopped."""
        entry = self._classes.get(name)
        if entry is None:
            return
        task = entry.task
        entry.task = None
        if task is not None and not task.done():
            await cancel_and_wait(task)
        self._set_degraded(entry, False, None)
        _logger.debug("Poll class %s stopped", name)

    async def stop_all(self) -> None:
        await asyncio.gather(*(self.stop(name) for name in list(self._classes)))

    async def poll_now(self, name: str) -> bool:
        """Fetch *name* once outside its schedule. Returns whether it succeeded."""
        return await self._poll_once(self._classes[name]) is True

    # ------------------------------------------------------------------
    # Loop
    # ------------------------------------------------------------------

    async def _run(self, entry: _PollClass) -> None:
        while True:
            result = await self._poll_once(entry)
            if result is None:
                return
            if result:
                entry.retry.reset()
                delay = entry.config.interval
            elif entry.retry.attempt < entry.config.max_retries:
                delay = entry.retry.fail()
            else:
                delay = entry.config.interval
            await self._sleep(delay)

    async def _poll_once(self, entry: _PollClass) -> bool | None:
        """One fetch. ``True`` on success, ``False`` on recoverable failure, ``None`` when unauthorized."""
        try:
            async with asyncio.timeout(entry.config.timeout):
                snapshot = await entry.fetch()
        except asyncio.CancelledError:
            raise
        except (DashError, TimeoutError, ValidationError) as exc:
            error = classify_poll_error(entry.name, exc)
            if isinstance(error, DashPollUnauthorizedError):
                _logger.warning("Poll class %s unauthorized; stopping", entry.name)
                entry.last_error = error
                if self._on_unauthorized is not None:
                    self._on_unauthorized(entry.name)
                return None
            _logger.warning("Poll class %s failed: %s", entry.name, error)
            _logger.debug("Poll class %s failure detail", entry.name, exc_info=True)
            self._set_degraded(entry, True, error)
            return False

        self._sink(snapshot)
        self._set_degraded(entry, False, None)
        return True

    def _set_degraded(self, entry: _PollClass, degraded: bool, error: DashPollError | None) -> None:
        entry.last_error = error
        if entry.degraded == degraded:
            return
        entry.degraded = degraded
        for listener in list(self._degraded_listeners):
            try:
                listener(entry.name, degraded)
            except Exception:
                _logger.warning("Degraded listener failed", exc_info=True)
