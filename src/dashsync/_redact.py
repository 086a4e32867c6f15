"""Helpers for safe debug logging.

dashsync handles bearer credentials and operator passwords. This module
redacts sensitive fields before they reach DEBUG logs.
"""

from __future__ import annotations

import re
from collections.abc import Mapping, Sequence
from typing import Any

_REDACTED = "<redacted>"

_SENSITIVE_VALUE_KEYS: frozenset[str] = frozenset(
    {
        "password",
        "token",
        "credential",
        "accesstoken",
        "refreshtoken",
        "authorization",
        "cookie",
        "secret",
    }
)

# Credentials embedded in free text: auth headers and ?token= query strings.
_BEARER_RE = re.compile(r"(?i)\bbearer\s+[^\s,;]+")
_QUERY_TOKEN_RE = re.compile(r"(?i)([?&](?:token|access_token)=)[^&\s]+")


def _scrub_text(text: str, max_string: int) -> str:
    text = _BEARER_RE.sub(f"Bearer {_REDACTED}", text)
    text = _QUERY_TOKEN_RE.sub(rf"\1{_REDACTED}", text)
    if len(text) > max_string:
        return f"{text[:max_string]}…<truncated>"
    return text


def redact_for_log(value: Any, *, max_string: int = 512, _depth: int = 0) -> Any:
    """Return a copy of *value* with credentials masked, for DEBUG logs."""
    if _depth > 20:
        return "<max-depth>"
    if value is None or isinstance(value, (int, float, bool)):
        return value
    if isinstance(value, str):
        return _scrub_text(value, max_string)
    if isinstance(value, (bytes, bytearray)):
        return f"<bytes:{len(value)}b>"

    if isinstance(value, Mapping):
        return {
            str(k): _REDACTED
            if str(k).lower().replace("_", "") in _SENSITIVE_VALUE_KEYS
            else redact_for_log(v, max_string=max_string, _depth=_depth + 1)
            for k, v in value.items()
        }

    if isinstance(value, Sequence):
        return [redact_for_log(v, max_string=max_string, _depth=_depth + 1) for v in value]

    return repr(value)
