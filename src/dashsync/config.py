"""Client configuration for dashsync."""

from __future__ import annotations

import dataclasses
import os
from typing import Any

from dashsync._constants import POLL_CLASSES


def _env_bool(value: str | None, default: bool) -> bool:
    if value is None:
        return default
    normalized = value.strip().lower()
    if normalized in {"1", "true", "yes", "y", "on"}:
        return True
    if normalized in {"0", "false", "no", "n", "off"}:
        return False
    return default


@dataclasses.dataclass(frozen=True)
class BackoffConfig:
    """Exponential backoff bounds.

    Parameters
    ----------
    initial : float
        Delay in seconds before the first retry.
    factor : float
        Multiplier applied for each further consecutive failure.
    maximum : float
        Upper bound for any single delay.
    """

    initial: float = 1.0
    factor: float = 2.0
    maximum: float = 30.0


@dataclasses.dataclass(frozen=True)
class PollClassConfig:
    """Polling settings for one resource class.

    Parameters
    ----------
    interval : float
        Seconds between successful polls.
    enabled : bool
        Whether the class is started by ``PollScheduler.start_all``.
    timeout : float
        Per-fetch timeout in seconds.
    max_retries : int
        Consecutive fast retries after a failure before falling back to
        the normal interval.
    retry_backoff : BackoffConfig
        Delays used for those retries.
    """

    interval: float = 5.0
    enabled: bool = True
    timeout: float = 10.0
    max_retries: int = 3
    retry_backoff: BackoffConfig = dataclasses.field(
        default_factory=lambda: BackoffConfig(initial=1.0, factor=2.0, maximum=15.0)
    )


def _default_poll_classes() -> dict[str, PollClassConfig]:
    return {
        "processing": PollClassConfig(interval=5.0),
        "uploads": PollClassConfig(interval=5.0),
        "scheduler": PollClassConfig(interval=10.0),
        "metrics": PollClassConfig(interval=30.0),
        "logs": PollClassConfig(interval=5.0),
    }


@dataclasses.dataclass(frozen=True)
class DashConfig:
    """Client configuration.

    Parameters
    ----------
    base_url : str
        REST API base URL.
    ws_url : str or None
        Push channel URL. Derived from ``base_url`` when not set.
    username : str or None
        Operator username used by ``DashboardContext.login`` when no
        explicit credentials are passed.
    password : str or None
        Operator password.
    request_timeout : float
        Total timeout for a single REST request in seconds.
    channel_enabled : bool
        Start the push channel after login.
    channel_heartbeat : float
        Websocket ping interval in seconds.
    channel_backoff : BackoffConfig
        Reconnection delays for the push channel.
    dedup_window : float
        Seconds during which an identical push event is ignored.
    page_size : int
        ``limit`` sent with paginated snapshot requests.
    log_limit : int
        Number of log entries requested per logs poll.
    credential_path : str or None
        JSON file used to persist the bearer credential. In-memory
        storage is used when unset.
    poll_classes : dict
        Per resource class polling settings.
    """

    base_url: str = "http://localhost:3000"
    ws_url: str | None = None
    username: str | None = None
    password: str | None = None
    request_timeout: float = 10.0
    channel_enabled: bool = True
    channel_heartbeat: float = 25.0
    channel_backoff: BackoffConfig = dataclasses.field(default_factory=BackoffConfig)
    dedup_window: float = 5.0
    page_size: int = 20
    log_limit: int = 100
    credential_path: str | None = None
    poll_classes: dict[str, PollClassConfig] = dataclasses.field(default_factory=_default_poll_classes)

    @property
    def channel_url(self) -> str:
        """Websocket URL for the push channel."""
        if self.ws_url:
            return self.ws_url
        base = self.base_url.rstrip("/")
        if base.startswith("https://"):
            return "wss://" + base[len("https://") :] + "/ws"
        if base.startswith("http://"):
            return "ws://" + base[len("http://") :] + "/ws"
        return base + "/ws"

    def poll_config(self, name: str) -> PollClassConfig:
        """Polling settings for *name*, falling back to defaults."""
        return self.poll_classes.get(name) or PollClassConfig()

    @classmethod
    def from_env(cls, **overrides: Any) -> DashConfig:
        """Create configuration from environment variables.

        Reads ``DASH_BASE_URL``, ``DASH_WS_URL``, ``DASH_USERNAME``,
        ``DASH_PASSWORD`` and the optional ``DASH_*`` tuning variables.
        Per-class polling is controlled by ``DASH_POLL_<CLASS>_INTERVAL``
        and ``DASH_POLL_<CLASS>_ENABLED``. Explicit keyword arguments
        override environment values.
        """
        env = os.environ

        _ENV_CONFIG_MAP = {
            "DASH_BASE_URL": "base_url",
            "DASH_WS_URL": "ws_url",
            "DASH_USERNAME": "username",
            "DASH_PASSWORD": "password",
            "DASH_CREDENTIAL_PATH": "credential_path",
        }
        config_kwargs: dict[str, Any] = {}
        for env_key, field_name in _ENV_CONFIG_MAP.items():
            val = env.get(env_key)
            if val is not None:
                config_kwargs[field_name] = val

        _ENV_FLOAT_MAP = {
            "DASH_REQUEST_TIMEOUT": "request_timeout",
            "DASH_CHANNEL_HEARTBEAT": "channel_heartbeat",
            "DASH_DEDUP_WINDOW": "dedup_window",
        }
        for env_key, field_name in _ENV_FLOAT_MAP.items():
            val = env.get(env_key)
            if val is not None and field_name not in overrides:
                config_kwargs[field_name] = float(val)

        page_size_env = env.get("DASH_PAGE_SIZE")
        if page_size_env is not None and "page_size" not in overrides:
            config_kwargs["page_size"] = int(page_size_env)

        if "channel_enabled" not in overrides:
            config_kwargs["channel_enabled"] = _env_bool(env.get("DASH_CHANNEL_ENABLED"), True)

        if "poll_classes" not in overrides:
            poll_classes = _default_poll_classes()
            for name in POLL_CLASSES:
                current = poll_classes[name]
                interval_env = env.get(f"DASH_POLL_{name.upper()}_INTERVAL")
                enabled_env = env.get(f"DASH_POLL_{name.upper()}_ENABLED")
                if interval_env is None and enabled_env is None:
                    continue
                poll_classes[name] = dataclasses.replace(
                    current,
                    interval=float(interval_env) if interval_env is not None else current.interval,
                    enabled=_env_bool(enabled_env, current.enabled),
                )
            config_kwargs["poll_classes"] = poll_classes

        config_kwargs.update(overrides)

        return cls(**config_kwargs)
