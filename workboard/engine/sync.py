"""Local-first persistence with background sync to a remote store.

Every state the container publishes is written to the local store after a
debounce delay and then pushed to the remote store keyed by the signed-in
user's id.  The remote side is optional: with no remote store configured, or
no user signed in, only local writes happen.

Conflict policy is last-writer-wins on ``StateSnapshot.updated_at``; there
is no merge.  Remote failures never roll back the local state; they surface
through ``SyncStatus.error`` and are retried by the next flush.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from datetime import UTC, datetime

from loguru import logger

from workboard.engine.container import StateContainer
from workboard.engine.defaults import default_workspace_state
from workboard.engine.errors import MigrationParseError, SyncError
from workboard.engine.migrations import MigrationResult, ensure_workspace_state
from workboard.engine.models.enums import SyncPhase
from workboard.engine.models.sync import IdentityProvider, StateSnapshot, SyncStatus, User
from workboard.engine.models.workspace import WorkspaceState
from workboard.engine.store.base import SnapshotStore

StatusListener = Callable[[SyncStatus], None]

DEFAULT_LOCAL_KEY = "workspace-state"


class SyncController:
    """Debounced durable writes plus remote reconciliation for one container."""

    def __init__(
        self,
        container: StateContainer,
        local_store: SnapshotStore,
        remote_store: SnapshotStore | None = None,
        identity: IdentityProvider | None = None,
        *,
        local_key: str = DEFAULT_LOCAL_KEY,
        debounce: float = 2.0,
    ) -> None:
        self._container = container
        self._local = local_store
        self._remote = remote_store
        self._identity = identity
        self._local_key = local_key
        self._debounce = debounce

        self._status = SyncStatus()
        self._status_listeners: list[StatusListener] = []
        self._timer: asyncio.Task[None] | None = None
        self._suspended = False
        # One flush at a time; a waiting flush snapshots the state only once it holds the lock.
        self._flush_lock = asyncio.Lock()
        self._unsubscribe: Callable[[], None] | None = container.subscribe(self._on_change)

    # -- Status ----------------------------------------------------------------

    @property
    def status(self) -> SyncStatus:
        return self._status.model_copy()

    def on_status(self, listener: StatusListener) -> Callable[[], None]:
        """Register a status listener; returns a function that removes it again."""
        self._status_listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._status_listeners:
                self._status_listeners.remove(listener)

        return unsubscribe

    def _update(self, **changes: object) -> None:
        self._status = self._status.model_copy(update=changes)
        for listener in list(self._status_listeners):
            listener(self.status)

    def _user(self) -> User | None:
        if self._identity is None or self._remote is None:
            return None
        return self._identity.current().user

    # -- Load ------------------------------------------------------------------

    async def load(self) -> SyncStatus:
        """Read local (and remote) state, migrate it and publish the winner."""
        error: str | None = None
        local: StateSnapshot | None = None
        try:
            local = await self._local.read_snapshot(self._local_key)
        except FileNotFoundError:
            logger.info("No local workspace state, starting fresh")
        except MigrationParseError as exc:
            logger.warning("Local workspace state is unreadable: {}", exc)
            error = str(exc)

        if local is None:
            result = MigrationResult(state=default_workspace_state(), migrated=False)
        else:
            result = ensure_workspace_state(local.state)
        state, migrated = result.state, result.migrated
        needs_local_write = local is None or migrated
        stamp = local.updated_at if local is not None else None

        user = self._user()
        if user is not None:
            remote_state, remote_stamp, remote_error = await self._reconcile(user, state, local, migrated)
            if remote_state is not None:
                state, stamp = remote_state.state, remote_stamp
                migrated = migrated or remote_state.migrated
                needs_local_write = True
            error = error or remote_error

        self._suspended = True
        try:
            self._container.publish(state)
        finally:
            self._suspended = False

        if needs_local_write:
            try:
                await self._local.write_snapshot(self._local_key, StateSnapshot.of(state, stamp))
            except OSError as exc:
                logger.error("Failed to write local workspace state: {}", exc)
                error = error or f"Local save failed: {exc}"

        self._update(migrated=migrated, error=error, phase=SyncPhase.IDLE, pending=False, syncing=False)
        logger.info("Workspace state loaded (migrated={}, remote={})", migrated, user is not None)
        return self.status

    async def _reconcile(
        self,
        user: User,
        state: WorkspaceState,
        local: StateSnapshot | None,
        migrated: bool,
    ) -> tuple[MigrationResult | None, datetime | None, str | None]:
        """Compare with the remote snapshot.

        Returns the remote result when it wins, else pushes local to remote
        and returns None.  Remote failures are reported, never raised.
        """
        assert self._remote is not None
        try:
            remote = await self._remote.read_snapshot(user.id)
        except FileNotFoundError:
            remote = None
        except Exception as exc:
            logger.warning("Remote read failed for user {}: {}", user.id, exc)
            return None, None, str(SyncError(f"Remote load failed: {exc}"))

        if remote is not None and remote.is_newer_than(local):
            logger.info("Remote workspace state is newer, replacing local")
            return ensure_workspace_state(remote.state), remote.updated_at, None

        stamp = local.updated_at if local is not None and not migrated else None
        try:
            await self._remote.write_snapshot(user.id, StateSnapshot.of(state, stamp))
        except Exception as exc:
            logger.warning("Remote push failed for user {}: {}", user.id, exc)
            return None, None, str(SyncError(f"Remote sync failed: {exc}"))
        return None, None, None

    # -- Change tracking -------------------------------------------------------

    def _on_change(self, _state: WorkspaceState) -> None:
        if self._suspended:
            return
        self._update(pending=True, phase=SyncPhase.DIRTY)
        self._schedule()

    def _schedule(self) -> None:
        self._cancel_timer()
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.debug("No running event loop, write deferred until flush")
            return
        self._timer = loop.create_task(self._debounced_flush())

    def _cancel_timer(self) -> None:
        if self._timer is not None and not self._timer.done():
            self._timer.cancel()
        self._timer = None

    async def _debounced_flush(self) -> None:
        await asyncio.sleep(self._debounce)
        self._timer = None
        await self.flush()

    # -- Flush -----------------------------------------------------------------

    async def flush(self) -> SyncStatus:
        """Write the current state locally, then remotely.

        Flushes never overlap: a caller arriving while another write is in
        flight waits for it and then writes whatever state is current.  A
        change published during the write keeps ``pending`` set and
        schedules another write.
        """
        async with self._flush_lock:
            return await self._write_current()

    async def _write_current(self) -> SyncStatus:
        snapshot = StateSnapshot.of(self._container.state)
        self._update(pending=False, syncing=True, phase=SyncPhase.WRITING_LOCAL)
        try:
            await self._local.write_snapshot(self._local_key, snapshot)
        except OSError as exc:
            logger.error("Failed to write local workspace state: {}", exc)
            self._update(pending=True, syncing=False, phase=SyncPhase.DIRTY, error=f"Local save failed: {exc}")
            return self.status

        user = self._user()
        if user is not None:
            assert self._remote is not None
            self._update(phase=SyncPhase.WRITING_REMOTE)
            try:
                await self._remote.write_snapshot(user.id, snapshot)
            except Exception as exc:
                err = SyncError(f"Remote sync failed: {exc}")
                logger.warning("{}", err)
                self._update(syncing=False, phase=self._settled_phase(), error=str(err))
                return self.status

        self._update(
            syncing=False,
            phase=self._settled_phase(),
            error=None,
            last_synced=datetime.now(UTC),
        )
        return self.status

    def _settled_phase(self) -> SyncPhase:
        return SyncPhase.DIRTY if self._status.pending else SyncPhase.IDLE

    async def save_now(self) -> SyncStatus:
        """Cancel the debounce timer and flush immediately."""
        self._cancel_timer()
        return await self.flush()

    # -- Lifecycle -------------------------------------------------------------

    async def close(self) -> None:
        """Flush pending writes and stop tracking the container.

        A debounced write already in flight is awaited, then the current
        state is written once more so the last edit is durable on return.
        """
        self._cancel_timer()
        if self._status.pending or self._flush_lock.locked():
            await self.flush()
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
        logger.debug("Sync controller closed")
