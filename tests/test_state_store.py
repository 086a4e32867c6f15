from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from dashsync.state.events import EntityClass, EntityKey, EventKind, IngestionEvent, IngestionSource, Snapshot
from dashsync.state.policy import MergeOutcome
from dashsync.state.store import EntityChange, ReconciliationStore, by_class


@dataclass
class _Clock:
    now: float = 1_000.0

    def __call__(self) -> float:
        return self.now


def _event(
    entity_id: str,
    *,
    kind: EventKind = EventKind.STATUS,
    source: IngestionSource = IngestionSource.PUSH,
    entity_class: EntityClass = EntityClass.PROCESSING,
    ts: float | None = None,
    **data: Any,
) -> IngestionEvent:
    return IngestionEvent(
        key=EntityKey(entity_class=entity_class, id=entity_id),
        kind=kind,
        source=source,
        payload_timestamp=ts,
        data=data,
    )


def _record(entity_id: str, *, entity_class: EntityClass = EntityClass.PROCESSING, **data: Any) -> IngestionEvent:
    return _event(
        entity_id,
        kind=EventKind.CREATED,
        source=IngestionSource.POLL,
        entity_class=entity_class,
        **data,
    )


def test_regressing_push_rejected_then_newer_poll_accepted() -> None:
    store = ReconciliationStore(clock=_Clock())
    store.apply(_event("42", status="pending"))
    store.apply(_event("42", status="running", progress=20))
    store.apply(_event("42", status="running", progress=40))
    assert store.get("processing:42").revision == 3  # type: ignore[union-attr]

    outcome = store.apply(_event("42", kind=EventKind.PROGRESS, status="running", progress=35))
    assert outcome == MergeOutcome.REGRESSED_PROGRESS
    entity = store.get("processing:42")
    assert entity is not None
    assert entity.revision == 3
    assert entity.progress == 40

    snapshot = Snapshot(entity_class=EntityClass.PROCESSING, records=(_record("42", status="running", progress=55),))
    assert store.apply_snapshot(snapshot) == MergeOutcome.ACCEPTED
    entity = store.get("processing:42")
    assert entity is not None
    assert entity.revision == 4
    assert entity.progress == 55
    assert entity.source == IngestionSource.POLL


def test_duplicate_within_window_notifies_once() -> None:
    clock = _Clock()
    store = ReconciliationStore(clock=clock, dedup_window=5.0)
    seen: list[EntityChange] = []
    store.subscribe(lambda _entity: True, seen.append)

    event = _event("7", entity_class=EntityClass.UPLOAD, status="uploading", progress=10)
    assert store.apply(event) == MergeOutcome.ACCEPTED
    assert store.apply(event) == MergeOutcome.DUPLICATE
    assert len(seen) == 1
    assert store.get("upload:7").revision == 1  # type: ignore[union-attr]

    # Outside the window the redelivery is merged again but changes nothing.
    clock.now += 10.0
    assert store.apply(event) == MergeOutcome.UNCHANGED
    assert len(seen) == 1


def test_poll_records_are_not_deduplicated() -> None:
    store = ReconciliationStore(clock=_Clock())
    record = _record("1", status="running", progress=10)
    assert store.apply(record) == MergeOutcome.ACCEPTED
    assert store.apply(record) == MergeOutcome.UNCHANGED


def test_older_or_equal_timestamp_is_stale() -> None:
    store = ReconciliationStore(clock=_Clock())
    assert store.apply(_event("1", ts=100.0, status="running", progress=10)) == MergeOutcome.ACCEPTED
    assert store.apply(_event("1", ts=90.0, status="running", progress=20)) == MergeOutcome.STALE
    assert store.apply(_event("1", ts=100.0, status="running", progress=30)) == MergeOutcome.STALE
    assert store.apply(_event("1", ts=101.0, status="running", progress=30)) == MergeOutcome.ACCEPTED

    entity = store.get("processing:1")
    assert entity is not None
    assert entity.revision == 2
    assert entity.updated_at == 101.0


def test_timestamp_never_moves_backward_on_untimed_update() -> None:
    store = ReconciliationStore(clock=_Clock())
    store.apply(_event("1", ts=100.0, status="running", progress=10))
    assert store.apply(_event("1", status="running", progress=15)) == MergeOutcome.ACCEPTED

    entity = store.get("processing:1")
    assert entity is not None
    assert entity.updated_at == 100.0
    assert entity.progress == 15


def test_terminal_status_freezes_entity() -> None:
    store = ReconciliationStore(clock=_Clock())
    store.apply(_event("9", status="running", progress=90, run_id=1))
    assert store.apply(_event("9", status="completed", progress=100, run_id=1)) == MergeOutcome.ACCEPTED
    assert store.apply(_event("9", status="running", progress=100, run_id=1)) == MergeOutcome.FROZEN

    entity = store.get("processing:9")
    assert entity is not None
    assert entity.status == "completed"
    assert entity.revision == 2


def test_higher_run_id_starts_fresh_instance() -> None:
    store = ReconciliationStore(clock=_Clock())
    store.apply(_event("9", status="running", progress=60, run_id=1, error_message="retrying"))
    store.apply(_event("9", status="failed", progress=60, run_id=1))

    assert store.apply(_event("9", status="running", progress=5, run_id=2)) == MergeOutcome.ACCEPTED
    entity = store.get("processing:9")
    assert entity is not None
    assert entity.status == "running"
    assert entity.progress == 5
    assert entity.run_id == 2
    assert entity.revision == 3
    assert "error_message" not in entity.attributes

    assert store.apply(_event("9", status="completed", progress=100, run_id=1)) == MergeOutcome.STALE


def test_progress_may_drop_when_incoming_status_is_terminal() -> None:
    store = ReconciliationStore(clock=_Clock())
    store.apply(_event("3", entity_class=EntityClass.UPLOAD, status="uploading", progress=80))
    outcome = store.apply(_event("3", entity_class=EntityClass.UPLOAD, status="failed", progress=0))

    assert outcome == MergeOutcome.ACCEPTED
    entity = store.get("upload:3")
    assert entity is not None
    assert entity.status == "failed"
    assert entity.progress == 0


def test_status_event_only_sets_its_authoritative_fields() -> None:
    store = ReconciliationStore(clock=_Clock())
    store.apply(_record("5", status="pending", asset_id="a-1", type="transcode"))
    store.apply(_event("5", status="running", progress=10, asset_id="a-2"))

    entity = store.get("processing:5")
    assert entity is not None
    assert entity.status == "running"
    assert entity.attributes["asset_id"] == "a-1"
    assert entity.attributes["type"] == "transcode"


def test_progress_is_clamped() -> None:
    store = ReconciliationStore(clock=_Clock())
    store.apply(_event("5", status="running", progress=140))
    assert store.get("processing:5").progress == 100.0  # type: ignore[union-attr]


def test_partial_snapshot_never_removes() -> None:
    store = ReconciliationStore(clock=_Clock())
    store.apply(_record("1", status="running"))
    store.apply(_record("2", status="running"))

    page = Snapshot(entity_class=EntityClass.PROCESSING, records=(_record("1", status="running"),), complete=False)
    store.apply_snapshot(page)

    assert [e.key.id for e in store.entities(EntityClass.PROCESSING)] == ["1", "2"]


def test_complete_snapshot_marks_missing_entities_removed() -> None:
    clock = _Clock()
    store = ReconciliationStore(clock=clock)
    store.apply(_record("nightly", entity_class=EntityClass.SCHEDULER, status="scheduled"))
    store.apply(_record("hourly", entity_class=EntityClass.SCHEDULER, status="scheduled"))
    store.apply(_record("7", status="running"))
    clock.now += 1.0

    listing = Snapshot(
        entity_class=EntityClass.SCHEDULER,
        records=(_record("nightly", entity_class=EntityClass.SCHEDULER, status="scheduled"),),
        complete=True,
        requested_at=clock.now,
    )
    assert store.apply_snapshot(listing) == MergeOutcome.ACCEPTED

    hourly = store.get("scheduler:hourly")
    assert hourly is not None
    assert hourly.removed
    assert [e.key.id for e in store.entities(EntityClass.SCHEDULER)] == ["nightly"]
    assert len(store.entities(EntityClass.SCHEDULER, include_removed=True)) == 2
    # Other classes are untouched.
    assert store.get("processing:7").status == "running"  # type: ignore[union-attr]


def test_complete_snapshot_keeps_entities_updated_after_request() -> None:
    clock = _Clock()
    store = ReconciliationStore(clock=clock)
    requested_at = clock.now
    clock.now += 1.0
    store.apply(_event("new", entity_class=EntityClass.UPLOAD, status="uploading", progress=1))

    listing = Snapshot(entity_class=EntityClass.UPLOAD, records=(), complete=True, requested_at=requested_at)
    assert store.apply_snapshot(listing) == MergeOutcome.UNCHANGED
    assert not store.get("upload:new").removed  # type: ignore[union-attr]


def test_deleted_event_marks_removed_and_unknown_delete_is_stale() -> None:
    store = ReconciliationStore(clock=_Clock())
    store.apply(_event("1", status="running"))

    assert store.apply(_event("1", kind=EventKind.DELETED)) == MergeOutcome.ACCEPTED
    assert store.get("processing:1").removed  # type: ignore[union-attr]
    assert store.entities() == []
    assert store.apply(_event("2", kind=EventKind.DELETED)) == MergeOutcome.STALE
    assert store.get("processing:2") is None


def test_entity_reappearing_in_complete_listing_is_revived() -> None:
    clock = _Clock()
    store = ReconciliationStore(clock=clock)

    def listing(*names: str) -> Snapshot:
        clock.now += 1.0
        records = tuple(_record(name, entity_class=EntityClass.SCHEDULER, status="running") for name in names)
        return Snapshot(entity_class=EntityClass.SCHEDULER, records=records, complete=True, requested_at=clock.now)

    store.apply_snapshot(listing("harvest", "upload"))
    store.apply_snapshot(listing("harvest"))
    assert store.get("scheduler:upload").removed  # type: ignore[union-attr]
    push = _event("upload", entity_class=EntityClass.SCHEDULER, status="running")
    assert store.apply(push) == MergeOutcome.FROZEN

    assert store.apply_snapshot(listing("harvest", "upload")) == MergeOutcome.ACCEPTED
    entity = store.get("scheduler:upload")
    assert entity is not None
    assert entity.status == "running"
    assert entity.revision == 3
    assert [e.key.id for e in store.entities(EntityClass.SCHEDULER)] == ["harvest", "upload"]


def test_listing_requested_before_delete_does_not_revive() -> None:
    clock = _Clock()
    store = ReconciliationStore(clock=clock)
    store.apply(_record("4", status="running"))
    requested_at = clock.now
    clock.now += 1.0
    store.apply(_event("4", kind=EventKind.DELETED))

    page = Snapshot(
        entity_class=EntityClass.PROCESSING,
        records=(_record("4", status="running"),),
        complete=False,
        requested_at=requested_at,
    )
    assert store.apply_snapshot(page) == MergeOutcome.UNCHANGED
    assert store.get("processing:4").removed  # type: ignore[union-attr]


def test_new_run_replaces_terminal_entity_without_run_id() -> None:
    store = ReconciliationStore(clock=_Clock())
    store.apply(_record("7", status="failed"))

    assert store.apply(_event("7", status="running", progress=0, run_id=2)) == MergeOutcome.ACCEPTED
    entity = store.get("processing:7")
    assert entity is not None
    assert entity.status == "running"
    assert entity.run_id == 2
    assert entity.revision == 2


def test_unchanged_update_does_not_bump_revision_or_sequence() -> None:
    store = ReconciliationStore(clock=_Clock())
    snapshot = Snapshot(entity_class=EntityClass.PROCESSING, records=(_record("1", status="running", progress=5),))
    store.apply_snapshot(snapshot)
    sequence = store.sequence

    assert store.apply_snapshot(snapshot) == MergeOutcome.UNCHANGED
    assert store.sequence == sequence
    assert store.get("processing:1").revision == 1  # type: ignore[union-attr]


def test_changes_since_returns_entities_in_change_order() -> None:
    store = ReconciliationStore(clock=_Clock())
    store.apply(_event("a", status="running"))
    cursor = store.sequence
    store.apply(_event("b", status="running"))
    store.apply(_event("a", status="running", progress=50))

    assert [str(e.key) for e in store.changes_since(cursor)] == ["processing:b", "processing:a"]
    assert store.changes_since(store.sequence) == []


def test_subscribe_filters_by_class() -> None:
    store = ReconciliationStore(clock=_Clock())
    seen: list[str] = []
    store.subscribe(by_class(EntityClass.UPLOAD), lambda change: seen.append(str(change.key)))

    store.apply(_event("1", status="running"))
    store.apply(_event("2", entity_class=EntityClass.UPLOAD, status="uploading"))

    assert seen == ["upload:2"]


def test_unsubscribe_from_another_callback_stops_delivery() -> None:
    store = ReconciliationStore(clock=_Clock())
    second_seen: list[EntityChange] = []
    unsubscribers: list[Any] = []

    store.subscribe(lambda _e: True, lambda _change: unsubscribers[0]())
    unsubscribers.append(store.subscribe(lambda _e: True, second_seen.append))

    store.apply(_event("1", status="running"))
    store.apply(_event("1", status="running", progress=10))

    assert second_seen == []


def test_merge_requested_during_notification_is_queued() -> None:
    store = ReconciliationStore(clock=_Clock())
    order: list[tuple[str, float | None]] = []
    nested_outcomes: list[MergeOutcome | None] = []

    def _first(change: EntityChange) -> None:
        if change.current.progress == 10:
            nested_outcomes.append(store.apply(_event("1", status="running", progress=20)))

    store.subscribe(lambda _e: True, _first)
    store.subscribe(lambda _e: True, lambda change: order.append((str(change.key), change.current.progress)))

    assert store.apply(_event("1", status="running", progress=10)) == MergeOutcome.ACCEPTED

    assert nested_outcomes == [None]
    assert order == [("processing:1", 10), ("processing:1", 20)]
    assert store.get("processing:1").revision == 2  # type: ignore[union-attr]


def test_failing_subscriber_does_not_block_others() -> None:
    store = ReconciliationStore(clock=_Clock())
    seen: list[EntityChange] = []

    def _boom(_change: EntityChange) -> None:
        raise RuntimeError("boom")

    store.subscribe(lambda _e: True, _boom)
    store.subscribe(lambda _e: True, seen.append)

    assert store.apply(_event("1", status="running")) == MergeOutcome.ACCEPTED
    assert len(seen) == 1


def test_clear_drops_entities_but_keeps_sequence() -> None:
    store = ReconciliationStore(clock=_Clock())
    event = _event("1", status="running")
    store.apply(event)
    sequence = store.sequence

    store.clear()

    assert store.get("processing:1") is None
    assert store.entities() == []
    assert store.sequence == sequence
    # Dedup memory is gone too.
    assert store.apply(event) == MergeOutcome.ACCEPTED
    assert store.get("processing:1").sequence == sequence + 1  # type: ignore[union-attr]
