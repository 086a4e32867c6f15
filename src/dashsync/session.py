"""Session state and credential lifecycle."""

from __future__ import annotations

import contextlib
import logging
import time
from collections.abc import Callable
from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field

from dashsync._api import auth as _auth_api
from dashsync._transport import Transport
from dashsync.credentials import CredentialStore
from dashsync.exceptions import DashAuthError, DashError, DashInvalidCredentialError
from dashsync.models.user import UserProfile

_logger = logging.getLogger(__name__)

SessionListener = Callable[["Session | None"], None]


class LiveState(StrEnum):
    ABSENT = "absent"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    DISCONNECTED = "disconnected"
    FAILED = "failed"


class Session(BaseModel):
    """Authenticated operator session.

    Parameters
    ----------
    identity : UserProfile
        Profile of the logged-in operator.
    credential : str
        Bearer token authorizing REST calls and the push channel handshake.
    live_state : LiveState
        Push channel state as last reported by the channel.
    created_at : float
        Monotonic timestamp when the session was created.
    """

    model_config = ConfigDict(
        frozen=True,
        extra="forbid",
        validate_default=True,
    )

    identity: UserProfile
    credential: str = Field(repr=False)
    live_state: LiveState = LiveState.ABSENT
    created_at: float = Field(default_factory=time.monotonic)

    @property
    def age(self) -> float:
        """Seconds since the session was created."""
        return time.monotonic() - self.created_at


class SessionManager:
    """Owns the credential and identity.

    The only authority on whether a session exists. Listeners receive the
    new :class:`Session` on login/restore and ``None`` when the session
    ends; each transition is delivered exactly once.
    """

    def __init__(self, transport: Transport, credential_store: CredentialStore) -> None:
        self._transport = transport
        self._credentials = credential_store
        self._session: Session | None = None
        self._listeners: list[SessionListener] = []

    @property
    def current(self) -> Session | None:
        return self._session

    @property
    def is_authenticated(self) -> bool:
        return self._session is not None

    @property
    def credential(self) -> str | None:
        return self._session.credential if self._session is not None else None

    def add_listener(self, listener: SessionListener) -> Callable[[], None]:
        """Register a transition listener. Returns a function that removes it."""
        self._listeners.append(listener)

        def _remove() -> None:
            with contextlib.suppress(ValueError):
                self._listeners.remove(listener)

        return _remove

    async def login(self, username: str, password: str) -> Session:
        """Authenticate and start a new session.

        Raises
        ------
        DashInvalidCredentialError, DashNetworkUnavailableError, DashServerError
            The session stays absent and nothing is persisted.
        """
        token, profile = await _auth_api.login(self._transport, username, password)
        self._credentials.set(token)
        _logger.info("Operator %s logged in", profile.username)
        return self._begin(Session(identity=profile, credential=token))

    async def restore_from_persisted_credential(self) -> Session | None:
        """Revalidate a stored credential, if any.

        A rejected credential is cleared. If the backend cannot be reached
        the credential is kept for a later attempt, but no session is
        created from it.
        """
        token = self._credentials.get()
        if not token:
            return None
        try:
            profile = await _auth_api.fetch_current_user(self._transport, token)
        except DashInvalidCredentialError:
            _logger.info("Stored credential rejected; clearing it")
            self._credentials.clear()
            return None
        except DashAuthError:
            _logger.warning("Stored credential could not be revalidated", exc_info=True)
            return None
        _logger.info("Session restored for %s", profile.username)
        return self._begin(Session(identity=profile, credential=token))

    async def logout(self) -> None:
        """End the session locally and notify the server (best effort)."""
        session = self._session
        self.invalidate()
        if session is None:
            return
        try:
            await _auth_api.logout(self._transport, session.credential)
        except DashError:
            _logger.debug("Server-side logout failed", exc_info=True)

    def invalidate(self) -> None:
        """Drop the session and stored credential without any network call."""
        self._credentials.clear()
        if self._session is None:
            return
        _logger.info("Session ended for %s", self._session.identity.username)
        self._session = None
        self._notify(None)

    def set_live_state(self, state: LiveState) -> None:
        """Record the push channel state on the current session."""
        if self._session is None or self._session.live_state == state:
            return
        self._session = self._session.model_copy(update={"live_state": state})

    def _begin(self, session: Session) -> Session:
        if self._session is not None:
            self._session = None
            self._notify(None)
        self._session = session
        self._notify(session)
        return session

    def _notify(self, session: Session | None) -> None:
        for listener in list(self._listeners):
            try:
                listener(session)
            except Exception:
                _logger.warning("Session listener failed", exc_info=True)
