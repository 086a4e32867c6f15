"""Normalized ingestion events.

Both ingestion paths (push channel, REST polling) convert their inputs
into these events. Only the state/store layer is allowed to merge them.
"""

from __future__ import annotations

import hashlib
import json
from datetime import UTC, datetime
from enum import StrEnum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator


class IngestionSource(StrEnum):
    PUSH = "push"
    POLL = "poll"


class EntityClass(StrEnum):
    UPLOAD = "upload"
    PROCESSING = "processing"
    SCHEDULER = "scheduler"
    METRICS = "metrics"
    LOG = "log"
    ALERT = "alert"


class EventKind(StrEnum):
    STATUS = "status"
    PROGRESS = "progress"
    CREATED = "created"
    DELETED = "deleted"
    ALERT = "alert"


class EntityKey(BaseModel):
    """Stable identity of a tracked entity: class plus id."""

    model_config = ConfigDict(frozen=True)

    entity_class: EntityClass
    id: str

    @field_validator("id", mode="before")
    @classmethod
    def _normalize_id(cls, value: Any) -> str:
        text = str(value).strip() if value is not None else ""
        if not text:
            raise ValueError("entity id must be non-empty")
        return text

    @classmethod
    def parse(cls, value: str) -> EntityKey:
        """Parse the ``"<class>:<id>"`` form."""
        entity_class, sep, entity_id = value.partition(":")
        if not sep:
            raise ValueError(f"entity key {value!r} is not '<class>:<id>'")
        return cls(entity_class=EntityClass(entity_class), id=entity_id)

    def __str__(self) -> str:
        return f"{self.entity_class.value}:{self.id}"


class IngestionEvent(BaseModel):
    """A normalized update to apply to the store.

    ``data`` holds normalized fields. ``status``, ``progress`` and
    ``run_id`` are interpreted by the merge policy; everything else ends up
    in the entity's attributes.
    """

    model_config = ConfigDict(frozen=True)

    key: EntityKey
    kind: EventKind
    source: IngestionSource
    observed_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
    payload_timestamp: float | None = Field(
        default=None,
        description="Timestamp (epoch seconds) from the payload, if any.",
    )
    data: dict[str, Any] = Field(default_factory=dict, description="Normalized patch data")
    raw: dict[str, Any] = Field(default_factory=dict, description="Original payload (as received)")

    @field_validator("observed_at")
    @classmethod
    def _ensure_tz_aware(cls, value: datetime) -> datetime:
        if value.tzinfo is None:
            return value.replace(tzinfo=UTC)
        return value

    @property
    def dedup_token(self) -> str:
        """Hash of key, kind and payload used for redelivery detection."""
        body = json.dumps(
            {"key": str(self.key), "kind": self.kind.value, "data": self.data, "ts": self.payload_timestamp},
            sort_keys=True,
            separators=(",", ":"),
            default=str,
        )
        return hashlib.sha256(body.encode("utf-8")).hexdigest()


class Snapshot(BaseModel):
    """One polled listing for an entity class.

    ``complete`` marks a full-class listing: entities of the class missing
    from it are marked removed. Pages of a paginated listing are partial.
    ``requested_at`` is the store clock reading taken before the fetch
    started; entities updated after it are never marked removed.
    """

    model_config = ConfigDict(frozen=True)

    entity_class: EntityClass
    records: tuple[IngestionEvent, ...] = ()
    complete: bool = False
    requested_at: float | None = None
