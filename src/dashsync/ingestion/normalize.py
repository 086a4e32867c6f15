"""Normalization helpers shared by both ingestion paths.

Incoming patches are pruned here so the store can treat a missing key as
"no update" and never as "clear this field".
"""

from __future__ import annotations

import hashlib
import json
import math
from typing import Any

_PLACEHOLDERS: tuple[Any, ...] = ("", "--", {}, [])


def safe_float(value: Any) -> float | None:
    """Parse a number, returning ``None`` for placeholders, garbage and NaN."""
    if value is None or isinstance(value, bool):
        return None
    try:
        result = float(value)
    except (TypeError, ValueError):
        return None
    return None if math.isnan(result) else result


def safe_int(value: Any) -> int | None:
    parsed = safe_float(value)
    return int(parsed) if parsed is not None and math.isfinite(parsed) else None


def _is_placeholder(value: Any) -> bool:
    return value is None or any(type(value) is type(p) and value == p for p in _PLACEHOLDERS)


def prune_patch(data: Any) -> Any:
    """Recursively drop ``None`` and empty placeholder values."""
    if isinstance(data, dict):
        pruned = {key: prune_patch(value) for key, value in data.items()}
        return {key: value for key, value in pruned.items() if not _is_placeholder(value)}
    if isinstance(data, list):
        items = [prune_patch(item) for item in data]
        return [item for item in items if not _is_placeholder(item)]
    return data


def content_id(*parts: Any) -> str:
    """Short stable id for records the server does not number (logs, alerts)."""
    body = json.dumps(parts, sort_keys=True, separators=(",", ":"), default=str)
    return hashlib.sha256(body.encode("utf-8")).hexdigest()[:16]
