"""HTTP transport with bearer authentication and JSON envelope decoding."""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import Mapping
from typing import Any, Protocol

import aiohttp

from dashsync._constants import USER_AGENT
from dashsync._redact import redact_for_log
from dashsync.config import DashConfig
from dashsync.exceptions import DashApiError, DashTransportError, DashUnauthorizedError

_logger = logging.getLogger(__name__)


class Transport(Protocol):
    """Structural transport interface used by endpoint modules.

    Having a protocol here makes it easy to pass test doubles while keeping
    the production implementation (`RestTransport`) concrete.
    """

    async def request(
        self,
        method: str,
        endpoint: str,
        *,
        credential: str | None = None,
        params: Mapping[str, Any] | None = None,
        payload: Mapping[str, Any] | None = None,
    ) -> dict[str, Any]:
        ...


def _error_message(body: Any, fallback: str) -> str:
    if isinstance(body, dict):
        for key in ("error", "message"):
            value = body.get(key)
            if isinstance(value, str) and value:
                return value
    return fallback


class RestTransport:
    """aiohttp transport for the dashboard REST API.

    Returns the decoded JSON body. HTTP 401 always raises
    :class:`DashUnauthorizedError` so callers can start the logout cascade.
    """

    def __init__(self, config: DashConfig, http_session: aiohttp.ClientSession) -> None:
        self._config = config
        self._http = http_session

    async def request(
        self,
        method: str,
        endpoint: str,
        *,
        credential: str | None = None,
        params: Mapping[str, Any] | None = None,
        payload: Mapping[str, Any] | None = None,
    ) -> dict[str, Any]:
        headers: dict[str, str] = {
            "accept": "application/json",
            "user-agent": USER_AGENT,
        }
        if credential:
            headers["authorization"] = f"Bearer {credential}"

        url = f"{self._config.base_url.rstrip('/')}{endpoint}"
        timeout = aiohttp.ClientTimeout(total=self._config.request_timeout)

        _logger.debug("%s %s params=%s body=%s", method, url, params, redact_for_log(payload))

        try:
            async with self._http.request(
                method,
                url,
                params=dict(params) if params else None,
                json=dict(payload) if payload is not None else None,
                headers=headers,
                timeout=timeout,
            ) as resp:
                status = resp.status
                text = await resp.text()
        except asyncio.TimeoutError as exc:
            raise DashTransportError(
                f"Request to {endpoint} timed out",
                endpoint=endpoint,
                timeout=True,
            ) from exc
        except aiohttp.ClientError as exc:
            raise DashTransportError(
                f"Request to {endpoint} failed: {exc}",
                endpoint=endpoint,
            ) from exc

        body: Any = None
        if text.strip():
            try:
                body = json.loads(text)
            except json.JSONDecodeError as exc:
                if status >= 400:
                    body = None
                else:
                    raise DashTransportError(
                        f"Invalid JSON from {endpoint}: {text[:200]}",
                        status_code=status,
                        endpoint=endpoint,
                    ) from exc

        if status == 401:
            raise DashUnauthorizedError(
                _error_message(body, "Unauthorized"),
                status_code=status,
                endpoint=endpoint,
            )
        if status >= 400:
            raise DashApiError(
                f"HTTP {status} from {endpoint}: {_error_message(body, text[:200])}",
                status_code=status,
                endpoint=endpoint,
            )
        if not isinstance(body, dict):
            raise DashTransportError(
                f"Response from {endpoint} is not a JSON object",
                status_code=status,
                endpoint=endpoint,
            )
        return body
