"""Deterministic state merge policy.

This module contains *no* payload parsing. The ingestion boundary is
responsible for producing normalized patches and timestamps.
"""

from __future__ import annotations

from enum import StrEnum

from dashsync._constants import STATUS_REMOVED
from dashsync.state.events import EntityClass, EventKind


class MergeOutcome(StrEnum):
    """Result of offering one update to the store.

    Everything except ``ACCEPTED`` leaves the entity and its revision
    untouched. Rejections are logged, never raised.
    """

    ACCEPTED = "accepted"
    STALE = "stale"
    DUPLICATE = "duplicate"
    REGRESSED_PROGRESS = "regressed_progress"
    FROZEN = "frozen"
    UNCHANGED = "unchanged"


_TERMINAL_STATUSES: dict[EntityClass, frozenset[str]] = {
    EntityClass.UPLOAD: frozenset({"published", "failed", "cancelled", STATUS_REMOVED}),
    EntityClass.PROCESSING: frozenset({"completed", "failed", "cancelled", STATUS_REMOVED}),
}

# Fields a push event of each kind may set. ``None`` means all fields.
_AUTHORITATIVE_FIELDS: dict[EventKind, frozenset[str] | None] = {
    EventKind.STATUS: frozenset({"status", "progress", "error_message", "metrics", "run_id"}),
    EventKind.PROGRESS: frozenset({"progress", "status", "run_id"}),
    EventKind.CREATED: None,
    EventKind.DELETED: frozenset({"status"}),
    EventKind.ALERT: None,
}


def is_terminal(entity_class: EntityClass, status: str | None) -> bool:
    """Whether *status* ends an entity instance (no further updates)."""
    if status is None:
        return False
    if status == STATUS_REMOVED:
        return True
    return status in _TERMINAL_STATUSES.get(entity_class, frozenset())


def authoritative_fields(kind: EventKind) -> frozenset[str] | None:
    return _AUTHORITATIVE_FIELDS.get(kind)


def is_new_run(cached_run_id: int | None, incoming_run_id: int | None, *, cached_terminal: bool = False) -> bool:
    """A higher external job-run id starts a fresh entity instance.

    A terminal record that never carried a run id is superseded by any run id.
    """
    if incoming_run_id is None:
        return False
    if cached_run_id is None:
        return cached_terminal
    return incoming_run_id > cached_run_id


def is_revival(cached_status: str | None, incoming_kind: EventKind | None) -> bool:
    """Whether a full record brings a removed entity back as a fresh instance."""
    return cached_status == STATUS_REMOVED and incoming_kind == EventKind.CREATED


def check_update(
    *,
    entity_class: EntityClass,
    cached_status: str | None,
    cached_progress: float | None,
    cached_payload_ts: float | None,
    cached_run_id: int | None,
    incoming_status: str | None,
    incoming_progress: float | None,
    incoming_payload_ts: float | None,
    incoming_run_id: int | None,
    incoming_kind: EventKind | None = None,
) -> MergeOutcome:
    """Decide whether an update for an existing entity may be applied.

    Policy, in order:
    - A higher run id always wins; a lower run id is stale.
    - A full record for a removed entity revives it unless its timestamp is older.
    - A terminal cached status freezes the entity.
    - If both timestamps exist: incoming must be strictly newer.
    - Progress may not decrease unless the incoming status is terminal.

    Field-level "did anything change" is decided by the store afterwards.
    """
    if is_new_run(cached_run_id, incoming_run_id, cached_terminal=is_terminal(entity_class, cached_status)):
        return MergeOutcome.ACCEPTED
    if incoming_run_id is not None and cached_run_id is not None and incoming_run_id < cached_run_id:
        return MergeOutcome.STALE

    stale = (
        incoming_payload_ts is not None and cached_payload_ts is not None and incoming_payload_ts <= cached_payload_ts
    )

    if is_revival(cached_status, incoming_kind):
        return MergeOutcome.STALE if stale else MergeOutcome.ACCEPTED

    if is_terminal(entity_class, cached_status):
        return MergeOutcome.FROZEN

    if stale:
        return MergeOutcome.STALE

    if (
        incoming_progress is not None
        and cached_progress is not None
        and incoming_progress < cached_progress
        and not is_terminal(entity_class, incoming_status)
    ):
        return MergeOutcome.REGRESSED_PROGRESS

    return MergeOutcome.ACCEPTED
