from __future__ import annotations

from dashsync._redact import redact_for_log


def test_redact_for_log_redacts_sensitive_keys() -> None:
    payload = {
        "success": True,
        "data": {"token": "eyJhbGciOi", "user": {"id": 1, "username": "admin"}},
        "password": "pw",
        "headers": {"Authorization": "Bearer eyJhbGciOi"},
    }

    redacted = redact_for_log(payload)
    assert redacted["data"]["token"] == "<redacted>"
    assert redacted["data"]["user"]["username"] == "admin"
    assert redacted["password"] == "<redacted>"
    assert redacted["headers"]["Authorization"] == "<redacted>"


def test_redact_for_log_scrubs_credentials_in_text() -> None:
    redacted = redact_for_log(
        {
            "note": "sent Bearer eyJhbGciOi to upstream",
            "url": "ws://localhost:3000/ws?token=eyJhbGciOi&room=ops",
            "access_token": "eyJhbGciOi",
        }
    )
    assert redacted["note"] == "sent Bearer <redacted> to upstream"
    assert redacted["url"] == "ws://localhost:3000/ws?token=<redacted>&room=ops"
    assert redacted["access_token"] == "<redacted>"


def test_redact_for_log_truncates_long_strings() -> None:
    long_value = "x" * 600
    redacted = redact_for_log({"value": long_value}, max_string=10)
    assert redacted["value"].startswith("x" * 10)
    assert "<truncated>" in redacted["value"]
