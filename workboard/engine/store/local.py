"""Local filesystem snapshot store.

Stores snapshots as JSON files under a data root with optional namespace
prefix::

    {data_root}/{prefix}/state/{key}.json

When prefix is None, the path collapses to::

    {data_root}/state/{key}.json

Uses ``anyio.to_thread.run_sync`` for non-blocking file I/O.  Writes are
atomic (temp file in the same directory, then rename), so a crash mid-write
leaves the previous snapshot intact.
"""

from __future__ import annotations

import contextlib
import os
import tempfile
from functools import partial
from pathlib import Path

from anyio import to_thread

from workboard.engine.models.sync import StateSnapshot


class LocalSnapshotStore:
    """Local filesystem implementation of the SnapshotStore protocol."""

    def __init__(self, data_root: str | Path, prefix: str | None = None) -> None:
        base = Path(data_root)
        if prefix:
            base = base / prefix
        self._base = base / "state"

    def path_for(self, key: str) -> Path:
        return self._base / f"{key}.json"

    # -- Write -----------------------------------------------------------------

    async def write_snapshot(self, key: str, snapshot: StateSnapshot) -> None:
        await to_thread.run_sync(partial(_atomic_write, self.path_for(key), snapshot.to_json()))

    # -- Read ------------------------------------------------------------------

    async def read_snapshot(self, key: str) -> StateSnapshot:
        raw = await to_thread.run_sync(partial(_read_file, self.path_for(key)))
        return StateSnapshot.from_json(raw)

    # -- Utilities -------------------------------------------------------------

    async def exists(self, key: str) -> bool:
        return await to_thread.run_sync(self.path_for(key).exists)

    async def delete(self, key: str) -> None:
        await to_thread.run_sync(partial(self.path_for(key).unlink, missing_ok=True))


# -- Sync helpers (run in thread pool) -----------------------------------------


def _atomic_write(path: Path, data: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_path = tempfile.mkstemp(dir=path.parent, suffix=".tmp")
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(data)
        os.replace(tmp_path, path)
    except BaseException:
        with contextlib.suppress(OSError):
            os.unlink(tmp_path)
        raise


def _read_file(path: Path) -> str:
    """Read file contents.  Raises ``FileNotFoundError`` if missing."""
    return path.read_text(encoding="utf-8")
