from __future__ import annotations

import pytest

from dashsync._backoff import ConnectionAttempt
from dashsync.config import BackoffConfig, DashConfig, PollClassConfig


def test_defaults_follow_dashboard_refresh_rates() -> None:
    config = DashConfig()
    assert config.poll_config("processing").interval == 5.0
    assert config.poll_config("metrics").interval == 30.0
    assert config.poll_config("scheduler").interval == 10.0
    assert config.poll_config("unknown") == PollClassConfig()


@pytest.mark.parametrize(
    ("base_url", "expected"),
    [
        ("http://localhost:3000", "ws://localhost:3000/ws"),
        ("https://dash.example.com/", "wss://dash.example.com/ws"),
    ],
)
def test_channel_url_derived_from_base_url(base_url: str, expected: str) -> None:
    assert DashConfig(base_url=base_url).channel_url == expected


def test_explicit_ws_url_wins() -> None:
    assert DashConfig(ws_url="ws://push:8080/socket").channel_url == "ws://push:8080/socket"


def test_from_env_reads_dash_variables(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("DASH_BASE_URL", "https://dash.example.com")
    monkeypatch.setenv("DASH_USERNAME", "operator")
    monkeypatch.setenv("DASH_REQUEST_TIMEOUT", "3.5")
    monkeypatch.setenv("DASH_CHANNEL_ENABLED", "false")
    monkeypatch.setenv("DASH_POLL_LOGS_ENABLED", "0")
    monkeypatch.setenv("DASH_POLL_UPLOADS_INTERVAL", "12")

    config = DashConfig.from_env()

    assert config.base_url == "https://dash.example.com"
    assert config.username == "operator"
    assert config.request_timeout == 3.5
    assert config.channel_enabled is False
    assert config.poll_config("logs").enabled is False
    assert config.poll_config("uploads").interval == 12.0
    assert config.poll_config("processing").interval == 5.0


def test_from_env_overrides_win(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("DASH_BASE_URL", "https://dash.example.com")
    monkeypatch.setenv("DASH_PAGE_SIZE", "50")

    config = DashConfig.from_env(base_url="http://other", page_size=10)

    assert config.base_url == "http://other"
    assert config.page_size == 10


def test_backoff_grows_to_maximum_and_resets() -> None:
    attempt = ConnectionAttempt(BackoffConfig(initial=1.0, factor=2.0, maximum=5.0))

    delays = [attempt.fail() for _ in range(5)]

    assert delays == [1.0, 2.0, 4.0, 5.0, 5.0]
    assert attempt.attempt == 5
    attempt.reset()
    assert attempt.next_delay == 1.0


def test_backoff_survives_huge_attempt_counts() -> None:
    attempt = ConnectionAttempt(BackoffConfig(initial=1.0, factor=2.0, maximum=30.0), attempt=10_000)
    assert attempt.next_delay == 30.0
