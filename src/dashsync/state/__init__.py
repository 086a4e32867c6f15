"""State/store layer.

This package is the single source of truth for how push events and poll
snapshots are merged into one consistent view of tracked entities.
"""

from dashsync.state.events import EntityClass, EntityKey, EventKind, IngestionEvent, IngestionSource, Snapshot
from dashsync.state.policy import MergeOutcome
from dashsync.state.store import EntityChange, ReconciliationStore, TrackedEntity, Unsubscribe, by_class

__all__ = [
    "EntityChange",
    "EntityClass",
    "EntityKey",
    "EventKind",
    "IngestionEvent",
    "IngestionSource",
    "MergeOutcome",
    "ReconciliationStore",
    "Snapshot",
    "TrackedEntity",
    "Unsubscribe",
    "by_class",
]
