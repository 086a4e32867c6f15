"""Authentication endpoints.

Endpoints:
  - /auth/login
  - /auth/me
  - /auth/logout
"""

from __future__ import annotations

import logging
from typing import Any

from pydantic import ValidationError

from dashsync._api._common import unwrap_envelope
from dashsync._constants import LOGIN_ENDPOINT, LOGOUT_ENDPOINT, ME_ENDPOINT
from dashsync._redact import redact_for_log
from dashsync._transport import Transport
from dashsync.exceptions import (
    DashApiError,
    DashAuthError,
    DashInvalidCredentialError,
    DashNetworkUnavailableError,
    DashServerError,
    DashTransportError,
    DashUnauthorizedError,
)
from dashsync.models.user import UserProfile

_logger = logging.getLogger(__name__)


def _map_auth_failure(endpoint: str, exc: Exception) -> DashAuthError:
    if isinstance(exc, DashUnauthorizedError):
        return DashInvalidCredentialError(f"{endpoint}: {exc}")
    if isinstance(exc, DashTransportError):
        if exc.status_code is None:
            return DashNetworkUnavailableError(f"{endpoint} unreachable: {exc}")
        return DashServerError(f"{endpoint}: {exc}")
    if isinstance(exc, DashApiError):
        if exc.status_code in (None, 400):
            # success: false on a 2xx, or a rejected request body
            return DashInvalidCredentialError(f"{endpoint}: {exc}")
        return DashServerError(f"{endpoint}: {exc}")
    return DashServerError(f"{endpoint}: {exc}")


def parse_login_response(body: dict[str, Any]) -> tuple[str, UserProfile]:
    """Extract the bearer token and user profile from a login response.

    Accepts both ``{data: {token, user}}`` and the older top-level
    ``{token, user}`` layout.

    Raises
    ------
    DashInvalidCredentialError
        If the envelope reports failure.
    DashServerError
        If the response is missing token or user fields.
    """
    try:
        data = unwrap_envelope(LOGIN_ENDPOINT, body)
    except DashApiError as exc:
        raise DashInvalidCredentialError(str(exc)) from exc

    container = data if isinstance(data, dict) and "token" in data else body
    token = container.get("token")
    user = container.get("user")
    if not isinstance(token, str) or not token or not isinstance(user, dict):
        raise DashServerError("Login response missing token or user fields")
    try:
        profile = UserProfile.model_validate(user)
    except ValidationError as exc:
        raise DashServerError(f"Login response user profile invalid: {exc.error_count()} error(s)") from exc
    return token, profile


async def login(transport: Transport, username: str, password: str) -> tuple[str, UserProfile]:
    """Exchange username/password for a bearer token."""
    try:
        body = await transport.request(
            "POST",
            LOGIN_ENDPOINT,
            payload={"username": username, "password": password},
        )
    except (DashApiError, DashTransportError) as exc:
        raise _map_auth_failure(LOGIN_ENDPOINT, exc) from exc
    _logger.debug("Login response parsed=%s", redact_for_log(body))
    return parse_login_response(body)


async def fetch_current_user(transport: Transport, credential: str) -> UserProfile:
    """Revalidate *credential* and return its profile."""
    try:
        body = await transport.request("GET", ME_ENDPOINT, credential=credential)
        data = unwrap_envelope(ME_ENDPOINT, body)
    except (DashApiError, DashTransportError) as exc:
        raise _map_auth_failure(ME_ENDPOINT, exc) from exc

    user = data.get("user") if isinstance(data, dict) else None
    if not isinstance(user, dict):
        raise DashServerError(f"{ME_ENDPOINT} response missing user")
    try:
        return UserProfile.model_validate(user)
    except ValidationError as exc:
        raise DashServerError(f"{ME_ENDPOINT} user profile invalid: {exc.error_count()} error(s)") from exc


async def logout(transport: Transport, credential: str) -> None:
    """Tell the server the credential is being discarded."""
    await transport.request("POST", LOGOUT_ENDPOINT, credential=credential)
