"""Snapshot store interface for workspace persistence.

A snapshot store holds whole-state blobs (``StateSnapshot``) keyed by a
string: the local store uses a fixed key per installation, the remote store
uses the signed-in user's id.  The interface is async so that filesystem and
S3 backends can be swapped without touching the sync controller.
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from workboard.engine.models.sync import StateSnapshot


@runtime_checkable
class SnapshotStore(Protocol):
    """Async protocol for reading and writing state snapshots."""

    async def write_snapshot(self, key: str, snapshot: StateSnapshot) -> None:
        """Replace the snapshot stored under *key*."""
        ...

    async def read_snapshot(self, key: str) -> StateSnapshot:
        """Read a snapshot.  Raises ``FileNotFoundError`` if not found.

        Raises ``MigrationParseError`` when the stored content is not JSON.
        """
        ...

    async def exists(self, key: str) -> bool:
        """Check whether a snapshot exists for *key*."""
        ...

    async def delete(self, key: str) -> None:
        """Delete the snapshot for *key*.  No-op if not found."""
        ...
