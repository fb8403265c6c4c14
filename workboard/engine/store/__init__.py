"""Snapshot store implementations for workspace persistence."""

from workboard.engine.store.base import SnapshotStore
from workboard.engine.store.local import LocalSnapshotStore

__all__ = ["LocalSnapshotStore", "SnapshotStore"]
