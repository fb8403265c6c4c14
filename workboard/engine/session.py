"""The storage hook: one object owning container, history and sync.

Typical use::

    session = WorkspaceSession.from_settings(get_settings(), identity)
    await session.open()
    session.apply(lambda s: rename_page(s, page_id, "Roadmap"), coalesce_key=("title", page_id))
    session.undo()
    await session.close()
"""

from __future__ import annotations

from collections.abc import Callable, Hashable

from workboard.engine.container import Listener, StateContainer
from workboard.engine.defaults import default_workspace_state
from workboard.engine.history import Command, HistoryManager
from workboard.engine.models.sync import IdentityProvider, SyncStatus
from workboard.engine.models.workspace import WorkspaceState
from workboard.engine.settings import WorkboardSettings, build_remote_store
from workboard.engine.store.base import SnapshotStore
from workboard.engine.store.local import LocalSnapshotStore
from workboard.engine.sync import DEFAULT_LOCAL_KEY, StatusListener, SyncController


class WorkspaceSession:
    def __init__(
        self,
        local_store: SnapshotStore,
        remote_store: SnapshotStore | None = None,
        identity: IdentityProvider | None = None,
        *,
        local_key: str = DEFAULT_LOCAL_KEY,
        debounce: float = 2.0,
        history_limit: int = 50,
        coalesce_window: float = 1.0,
    ) -> None:
        self.container = StateContainer(default_workspace_state())
        self.history = HistoryManager(self.container, limit=history_limit, coalesce_window=coalesce_window)
        self.sync = SyncController(
            self.container,
            local_store,
            remote_store,
            identity,
            local_key=local_key,
            debounce=debounce,
        )

    @classmethod
    def from_settings(cls, settings: WorkboardSettings, identity: IdentityProvider | None = None) -> WorkspaceSession:
        return cls(
            LocalSnapshotStore(settings.data_root, prefix=settings.data_prefix),
            build_remote_store(settings),
            identity,
            debounce=settings.save_debounce_seconds,
            history_limit=settings.history_limit,
            coalesce_window=settings.history_coalesce_seconds,
        )

    # -- Lifecycle -------------------------------------------------------------

    async def open(self) -> SyncStatus:
        """Load persisted state.  History starts empty."""
        status = await self.sync.load()
        self.history.reset()
        return status

    async def close(self) -> None:
        await self.sync.close()

    async def __aenter__(self) -> WorkspaceSession:
        await self.open()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()

    # -- State -----------------------------------------------------------------

    @property
    def state(self) -> WorkspaceState:
        return self.container.state

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        return self.container.subscribe(listener)

    def apply(self, command: Command, *, coalesce_key: Hashable | None = None) -> WorkspaceState:
        return self.history.apply(command, coalesce_key=coalesce_key)

    def undo(self) -> WorkspaceState | None:
        return self.history.undo()

    def redo(self) -> WorkspaceState | None:
        return self.history.redo()

    @property
    def can_undo(self) -> bool:
        return self.history.can_undo

    @property
    def can_redo(self) -> bool:
        return self.history.can_redo

    # -- Persistence -----------------------------------------------------------

    async def save_now(self) -> SyncStatus:
        """Persist immediately, bypassing the debounce delay."""
        return await self.sync.save_now()

    @property
    def status(self) -> SyncStatus:
        return self.sync.status

    def on_status(self, listener: StatusListener) -> Callable[[], None]:
        return self.sync.on_status(listener)
