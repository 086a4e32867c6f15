"""Custom exception hierarchy for dashsync."""

from __future__ import annotations


class DashError(Exception):
    """Base exception for all dashsync errors."""


class DashConfigError(DashError):
    """Invalid or missing configuration."""


class DashTransportError(DashError):
    """HTTP-level failure (network, timeout, invalid JSON)."""

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        endpoint: str = "",
        timeout: bool = False,
    ) -> None:
        self.status_code = status_code
        self.endpoint = endpoint
        self.timeout = timeout
        super().__init__(message)


class DashApiError(DashError):
    """API answered with ``success: false`` or an error status."""

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        endpoint: str = "",
    ) -> None:
        self.status_code = status_code
        self.endpoint = endpoint
        super().__init__(message)


class DashUnauthorizedError(DashApiError):
    """Bearer credential rejected by the server (HTTP 401)."""


# ------------------------------------------------------------------
# Authentication
# ------------------------------------------------------------------


class DashAuthError(DashError):
    """Login or credential revalidation failed."""


class DashInvalidCredentialError(DashAuthError):
    """Username/password or stored credential rejected."""


class DashNetworkUnavailableError(DashAuthError):
    """Authentication endpoint could not be reached.

    An unreachable backend is always reported with this error; no
    substitute session is fabricated.
    """


class DashServerError(DashAuthError):
    """Authentication endpoint failed (5xx or malformed response)."""


# ------------------------------------------------------------------
# Push channel
# ------------------------------------------------------------------


class DashChannelError(DashError):
    """Push channel failure. Recovered by reconnecting."""


class DashHandshakeError(DashChannelError):
    """Websocket handshake failed."""


class DashChannelUnauthorizedError(DashHandshakeError):
    """Handshake rejected because the credential is no longer valid."""


class DashChannelDisconnectedError(DashChannelError):
    """Connection closed unexpectedly."""


class DashChannelParseError(DashChannelError):
    """Inbound frame is not a valid channel message."""


# ------------------------------------------------------------------
# Polling
# ------------------------------------------------------------------


class DashPollError(DashError):
    """Snapshot fetch failed for one resource class."""

    def __init__(self, message: str, *, resource: str = "") -> None:
        self.resource = resource
        super().__init__(message)


class DashPollTimeoutError(DashPollError):
    """Snapshot fetch exceeded its timeout."""


class DashPollServerError(DashPollError):
    """Snapshot endpoint failed or returned an unusable response."""


class DashPollUnauthorizedError(DashPollError):
    """Snapshot endpoint rejected the credential.

    This is the only poll error that resets state: it forces logout.
    """
