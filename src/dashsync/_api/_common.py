"""Shared helpers for dashboard API endpoint modules.

This module centralizes the most repeated patterns:
- checking the ``{success, data | error}`` envelope
- reading pagination blocks

It is internal to dashsync and may change at any time.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any

from dashsync.exceptions import DashApiError
from dashsync.ingestion.normalize import safe_int


@dataclass(frozen=True)
class Pagination:
    """A pagination block. ``None`` marks a field the server did not send."""

    total: int | None
    page: int | None
    limit: int
    pages: int | None

    @property
    def is_single_page(self) -> bool:
        """Whether this page is known to be the whole listing."""
        if self.page is None or self.pages is None:
            return False
        return self.page <= 1 and self.pages <= 1


def unwrap_envelope(endpoint: str, body: dict[str, Any]) -> Any:
    """Return ``data`` from a success envelope, raising on ``success: false``."""
    if body.get("success") is False:
        message = body.get("error") or body.get("message") or "request failed"
        raise DashApiError(f"{endpoint} failed: {message}", endpoint=endpoint)
    if "data" in body:
        return body["data"]
    return body


def parse_pagination(data: Any, *, default_limit: int, returned: int) -> Pagination:
    """Read a pagination block; absent blocks describe a single full page.

    A block without ``pages`` derives it from ``total`` and ``limit``.
    """
    block = data.get("pagination") if isinstance(data, dict) else None
    if not isinstance(block, dict):
        return Pagination(total=returned, page=1, limit=default_limit, pages=1)
    total = safe_int(block.get("total"))
    limit = safe_int(block.get("limit")) or default_limit
    pages = safe_int(block.get("pages"))
    if pages is None and total is not None and limit > 0:
        pages = math.ceil(total / limit)
    return Pagination(total=total, page=safe_int(block.get("page")), limit=limit, pages=pages)


def list_field(endpoint: str, data: Any, key: str) -> list[dict[str, Any]]:
    """Extract a list of row dicts from ``data[key]`` (or ``data`` itself)."""
    rows = data.get(key) if isinstance(data, dict) else data
    if not isinstance(rows, list):
        raise DashApiError(f"{endpoint} response has no {key} list", endpoint=endpoint)
    return [row for row in rows if isinstance(row, dict)]
