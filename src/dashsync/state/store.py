"""Deterministic in-memory reconciliation store.

This is the only component allowed to merge incoming ingestion updates.
Push events and poll snapshots for the same entities meet here; the merge
policy in :mod:`dashsync.state.policy` keeps the result monotonic.
"""

from __future__ import annotations

import contextlib
import copy
import logging
import time
from collections import deque
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from dashsync._constants import STATUS_REMOVED
from dashsync.state.events import EntityClass, EntityKey, EventKind, IngestionEvent, IngestionSource, Snapshot
from dashsync.state.policy import (
    MergeOutcome,
    authoritative_fields,
    check_update,
    is_new_run,
    is_revival,
    is_terminal,
)

_logger = logging.getLogger(__name__)

_CORE_FIELDS = frozenset({"status", "progress", "run_id"})

Unsubscribe = Callable[[], None]


class TrackedEntity(BaseModel):
    """Current merged state of one entity."""

    model_config = ConfigDict(frozen=True)

    key: EntityKey
    status: str | None = None
    progress: float | None = None
    updated_at: float | None = None
    run_id: int | None = None
    attributes: dict[str, Any] = Field(default_factory=dict)
    revision: int = 0
    sequence: int = 0
    source: IngestionSource | None = None
    observed_at: float = 0.0

    @property
    def removed(self) -> bool:
        return self.status == STATUS_REMOVED


@dataclass(frozen=True)
class EntityChange:
    """An accepted update, as delivered to subscribers."""

    key: EntityKey
    previous: TrackedEntity | None
    current: TrackedEntity


@dataclass
class _Subscription:
    predicate: Callable[[TrackedEntity], bool]
    callback: Callable[[EntityChange], None]
    active: bool = True


def by_class(*classes: EntityClass) -> Callable[[TrackedEntity], bool]:
    """Subscription predicate matching entities of the given classes."""
    wanted = frozenset(classes)
    return lambda entity: entity.key.entity_class in wanted


def _clamp_progress(value: Any) -> float | None:
    if value is None:
        return None
    return max(0.0, min(100.0, float(value)))


def _select_fields(event: IngestionEvent) -> dict[str, Any]:
    """The part of the event payload its kind is allowed to set."""
    if event.kind == EventKind.DELETED:
        return {"status": STATUS_REMOVED}
    allowed = authoritative_fields(event.kind)
    if allowed is None or event.source == IngestionSource.POLL:
        return dict(event.data)
    return {k: v for k, v in event.data.items() if k in allowed}


class ReconciliationStore:
    """In-memory store for merged entity state.

    Given the same sequence of events and snapshots, the store produces the
    same entities. Each accepted update bumps the entity ``revision`` and the
    store-wide ``sequence``; rejected updates change neither.

    Merges never interleave: an update offered while subscribers are being
    notified is queued and applied after the current one, in the order it
    was offered.
    """

    def __init__(
        self,
        *,
        clock: Callable[[], float] = time.monotonic,
        dedup_window: float = 5.0,
    ) -> None:
        self._clock = clock
        self._dedup_window = dedup_window
        self._entities: dict[EntityKey, TrackedEntity] = {}
        self._subscriptions: list[_Subscription] = []
        self._recent_tokens: dict[str, float] = {}
        self._sequence = 0
        self._pending: deque[IngestionEvent | Snapshot] = deque()
        self._draining = False

    @property
    def sequence(self) -> int:
        """Store-wide change cursor (last assigned sequence number)."""
        return self._sequence

    # ------------------------------------------------------------------
    # Read contract
    # ------------------------------------------------------------------

    def get(self, key: EntityKey | str) -> TrackedEntity | None:
        if isinstance(key, str):
            key = EntityKey.parse(key)
        return self._entities.get(key)

    def entities(self, entity_class: EntityClass | None = None, *, include_removed: bool = False) -> list[TrackedEntity]:
        """Current entities, ordered by last change."""
        result = [
            entity
            for entity in self._entities.values()
            if (entity_class is None or entity.key.entity_class == entity_class)
            and (include_removed or not entity.removed)
        ]
        result.sort(key=lambda entity: entity.sequence)
        return result

    def changes_since(self, sequence: int) -> list[TrackedEntity]:
        """Entities changed after *sequence*, oldest change first."""
        result = [entity for entity in self._entities.values() if entity.sequence > sequence]
        result.sort(key=lambda entity: entity.sequence)
        return result

    def subscribe(
        self,
        predicate: Callable[[TrackedEntity], bool],
        callback: Callable[[EntityChange], None],
    ) -> Unsubscribe:
        """Call *callback* for every accepted change matching *predicate*.

        The returned function unsubscribes. No callback is made after it
        returns, even for changes already being delivered.
        """
        subscription = _Subscription(predicate=predicate, callback=callback)
        self._subscriptions.append(subscription)

        def _unsubscribe() -> None:
            subscription.active = False
            with contextlib.suppress(ValueError):
                self._subscriptions.remove(subscription)

        return _unsubscribe

    # ------------------------------------------------------------------
    # Mutation
    # ------------------------------------------------------------------

    def apply(self, event: IngestionEvent) -> MergeOutcome | None:
        """Offer one event. Returns ``None`` when queued behind a running merge."""
        return self._submit(event)

    def apply_snapshot(self, snapshot: Snapshot) -> MergeOutcome | None:
        """Offer a polled snapshot.

        Returns ``ACCEPTED`` if any record changed the store, ``UNCHANGED``
        otherwise, or ``None`` when queued.
        """
        return self._submit(snapshot)

    def clear(self) -> None:
        """Drop all entities and redelivery memory. ``sequence`` keeps counting."""
        self._entities.clear()
        self._recent_tokens.clear()
        self._pending.clear()
        _logger.debug("Reconciliation store cleared")

    def _submit(self, item: IngestionEvent | Snapshot) -> MergeOutcome | None:
        if self._draining:
            self._pending.append(item)
            return None
        self._draining = True
        try:
            outcome = self._process(item)
            while self._pending:
                self._process(self._pending.popleft())
            return outcome
        finally:
            self._draining = False

    def _process(self, item: IngestionEvent | Snapshot) -> MergeOutcome:
        changes: list[EntityChange] = []
        if isinstance(item, Snapshot):
            outcome = self._merge_snapshot(item, changes)
        else:
            outcome = self._merge_event(item, changes)
        for change in changes:
            self._notify(change)
        return outcome

    def _merge_snapshot(self, snapshot: Snapshot, changes: list[EntityChange]) -> MergeOutcome:
        accepted = False
        seen: set[EntityKey] = set()
        for record in snapshot.records:
            seen.add(record.key)
            if self._merge_event(record, changes, requested_at=snapshot.requested_at) == MergeOutcome.ACCEPTED:
                accepted = True

        if snapshot.complete:
            cutoff = snapshot.requested_at
            for key, entity in list(self._entities.items()):
                if key.entity_class != snapshot.entity_class or key in seen or entity.removed:
                    continue
                if cutoff is not None and entity.observed_at >= cutoff:
                    continue
                self._commit(entity, {"status": STATUS_REMOVED}, None, IngestionSource.POLL, changes, fresh=False)
                accepted = True

        _logger.debug(
            "Snapshot class=%s records=%d complete=%s accepted=%s",
            snapshot.entity_class,
            len(snapshot.records),
            snapshot.complete,
            accepted,
        )
        return MergeOutcome.ACCEPTED if accepted else MergeOutcome.UNCHANGED

    def _is_duplicate(self, event: IngestionEvent) -> bool:
        now = self._clock()
        horizon = now - self._dedup_window
        self._recent_tokens = {t: seen for t, seen in self._recent_tokens.items() if seen > horizon}
        token = event.dedup_token
        if token in self._recent_tokens:
            return True
        self._recent_tokens[token] = now
        return False

    def _merge_event(
        self,
        event: IngestionEvent,
        changes: list[EntityChange],
        *,
        requested_at: float | None = None,
    ) -> MergeOutcome:
        if event.source == IngestionSource.PUSH and self._dedup_window > 0 and self._is_duplicate(event):
            return self._reject(event, MergeOutcome.DUPLICATE)

        patch = _select_fields(event)
        if "progress" in patch:
            patch["progress"] = _clamp_progress(patch["progress"])
        incoming_ts = event.payload_timestamp
        incoming_run_id = patch.get("run_id")

        cached = self._entities.get(event.key)
        if cached is None:
            if event.kind == EventKind.DELETED:
                return self._reject(event, MergeOutcome.STALE)
            self._commit(None, patch, incoming_ts, event.source, changes, fresh=True, key=event.key)
            return MergeOutcome.ACCEPTED

        outcome = check_update(
            entity_class=event.key.entity_class,
            cached_status=cached.status,
            cached_progress=cached.progress,
            cached_payload_ts=cached.updated_at,
            cached_run_id=cached.run_id,
            incoming_status=patch.get("status"),
            incoming_progress=patch.get("progress"),
            incoming_payload_ts=incoming_ts,
            incoming_run_id=incoming_run_id,
            incoming_kind=event.kind,
        )
        if outcome != MergeOutcome.ACCEPTED:
            return self._reject(event, outcome)

        new_run = is_new_run(
            cached.run_id,
            incoming_run_id,
            cached_terminal=is_terminal(event.key.entity_class, cached.status),
        )
        revived = not new_run and is_revival(cached.status, event.kind)
        if revived and requested_at is not None and cached.observed_at >= requested_at:
            # Removed after this listing was requested.
            return self._reject(event, MergeOutcome.STALE)
        fresh = new_run or revived
        return self._commit(cached, patch, incoming_ts, event.source, changes, fresh=fresh)

    def _commit(
        self,
        cached: TrackedEntity | None,
        patch: dict[str, Any],
        incoming_ts: float | None,
        source: IngestionSource,
        changes: list[EntityChange],
        *,
        fresh: bool,
        key: EntityKey | None = None,
    ) -> MergeOutcome:
        if cached is not None:
            key = cached.key
        assert key is not None  # noqa: S101

        attributes = {k: copy.deepcopy(v) for k, v in patch.items() if k not in _CORE_FIELDS}
        if cached is None or fresh:
            status = patch.get("status")
            progress = patch.get("progress")
            run_id = patch.get("run_id")
            updated_at = incoming_ts
            revision = cached.revision if cached is not None else 0
        else:
            status = patch.get("status", cached.status)
            progress = patch.get("progress", cached.progress)
            run_id = patch.get("run_id", cached.run_id)
            attributes = {**cached.attributes, **attributes}
            updated_at = cached.updated_at
            if incoming_ts is not None:
                updated_at = incoming_ts if updated_at is None else max(updated_at, incoming_ts)
            revision = cached.revision

            if (
                status == cached.status
                and progress == cached.progress
                and run_id == cached.run_id
                and attributes == cached.attributes
            ):
                if updated_at != cached.updated_at:
                    # Timestamp advances silently so later stale updates stay rejected.
                    self._entities[key] = cached.model_copy(update={"updated_at": updated_at})
                return MergeOutcome.UNCHANGED

        self._sequence += 1
        current = TrackedEntity(
            key=key,
            status=status,
            progress=progress,
            updated_at=updated_at,
            run_id=run_id,
            attributes=attributes,
            revision=revision + 1,
            sequence=self._sequence,
            source=source,
            observed_at=self._clock(),
        )
        self._entities[key] = current
        changes.append(EntityChange(key=key, previous=cached, current=current))
        _logger.debug(
            "Accepted %s status=%s progress=%s revision=%d source=%s",
            key,
            status,
            progress,
            current.revision,
            source,
        )
        return MergeOutcome.ACCEPTED

    def _reject(self, event: IngestionEvent, outcome: MergeOutcome) -> MergeOutcome:
        _logger.debug(
            "Rejected %s kind=%s source=%s outcome=%s",
            event.key,
            event.kind,
            event.source,
            outcome,
        )
        return outcome

    def _notify(self, change: EntityChange) -> None:
        for subscription in list(self._subscriptions):
            if not subscription.active:
                continue
            try:
                if not subscription.predicate(change.current):
                    continue
                subscription.callback(change)
            except Exception:
                _logger.warning("Store subscriber failed for %s", change.key, exc_info=True)
