"""Tests for the sync controller: load, debounce, flush and remote reconciliation.

Both sides use ``LocalSnapshotStore`` under ``tmp_path``; the remote one is
wrapped to count writes and to simulate outages.
"""

from __future__ import annotations

import asyncio
import json
from datetime import UTC, datetime

import pytest

from workboard.engine.container import StateContainer
from workboard.engine.defaults import DEFAULT_BOARD_PAGE_ID, DEFAULT_WORKSPACE_ID, default_workspace_state
from workboard.engine.models import StateSnapshot, StaticIdentity, SyncPhase, User, WorkspaceState, WorkspaceUpdate
from workboard.engine.operations.pages import rename_page
from workboard.engine.operations.workspaces import update_workspace_in_state
from workboard.engine.store import LocalSnapshotStore
from workboard.engine.sync import SyncController

JAN = datetime(2024, 1, 1, tzinfo=UTC)
JUN = datetime(2024, 6, 1, tzinfo=UTC)


class RecordingStore(LocalSnapshotStore):
    def __init__(self, root) -> None:
        super().__init__(root)
        self.writes = 0
        self.offline = False

    async def write_snapshot(self, key: str, snapshot: StateSnapshot) -> None:
        if self.offline:
            msg = "remote unavailable"
            raise RuntimeError(msg)
        self.writes += 1
        await super().write_snapshot(key, snapshot)

    async def read_snapshot(self, key: str) -> StateSnapshot:
        if self.offline:
            msg = "remote unavailable"
            raise RuntimeError(msg)
        return await super().read_snapshot(key)


@pytest.fixture
def local(tmp_path) -> RecordingStore:
    return RecordingStore(tmp_path / "local")


@pytest.fixture
def remote(tmp_path) -> RecordingStore:
    return RecordingStore(tmp_path / "remote")


@pytest.fixture
def identity() -> StaticIdentity:
    return StaticIdentity(User(id="u1", email="u1@example.com"))


def _container() -> StateContainer:
    return StateContainer(default_workspace_state())


def _named(name: str) -> WorkspaceState:
    return update_workspace_in_state(default_workspace_state(), DEFAULT_WORKSPACE_ID, WorkspaceUpdate(name=name))


# -- Load ----------------------------------------------------------------------


async def test_load_without_local_state(local: RecordingStore) -> None:
    container = _container()
    controller = SyncController(container, local)

    status = await controller.load()

    assert status.migrated is False
    assert status.error is None
    assert status.phase == SyncPhase.IDLE
    assert len(container.state.workspaces) == 1
    assert await local.exists("workspace-state")
    await controller.close()


async def test_load_migrates_legacy_file(local: RecordingStore) -> None:
    path = local.path_for("workspace-state")
    path.parent.mkdir(parents=True)
    legacy = {
        "columns": [{"id": "todo", "name": "Todo", "cardIds": ["c1"]}],
        "cards": {"c1": {"id": "c1", "title": "Task"}},
    }
    path.write_text(json.dumps(legacy), encoding="utf-8")
    container = _container()
    controller = SyncController(container, local)

    status = await controller.load()

    assert status.migrated is True
    board = container.state.pages[DEFAULT_BOARD_PAGE_ID].database_config.board_state
    assert board.cards["c1"].title == "Task"
    stored = await local.read_snapshot("workspace-state")
    assert stored.state["activeWorkspaceId"] == DEFAULT_WORKSPACE_ID
    assert status.pending is False
    await controller.close()


async def test_load_corrupt_local_file(local: RecordingStore) -> None:
    path = local.path_for("workspace-state")
    path.parent.mkdir(parents=True)
    path.write_text("{oops", encoding="utf-8")
    container = _container()
    controller = SyncController(container, local)

    status = await controller.load()

    assert status.error is not None
    assert len(container.state.workspaces) == 1
    await controller.close()


async def test_load_does_not_schedule_write(local: RecordingStore) -> None:
    await local.write_snapshot("workspace-state", StateSnapshot.of(_named("Stored"), JAN))
    local.writes = 0
    container = _container()
    controller = SyncController(container, local, debounce=0.01)

    status = await controller.load()
    await asyncio.sleep(0.05)

    assert container.state.workspaces[0].name == "Stored"
    assert status.pending is False
    assert local.writes == 0
    await controller.close()


async def test_remote_newer_wins(local: RecordingStore, remote: RecordingStore, identity: StaticIdentity) -> None:
    await local.write_snapshot("workspace-state", StateSnapshot.of(_named("Local"), JAN))
    await remote.write_snapshot("u1", StateSnapshot.of(_named("Remote"), JUN))
    container = _container()
    controller = SyncController(container, local, remote, identity)

    await controller.load()

    assert container.state.workspaces[0].name == "Remote"
    stored = await local.read_snapshot("workspace-state")
    assert stored.state["workspaces"][0]["name"] == "Remote"
    assert stored.updated_at == JUN
    await controller.close()


async def test_local_newer_is_pushed(local: RecordingStore, remote: RecordingStore, identity: StaticIdentity) -> None:
    await local.write_snapshot("workspace-state", StateSnapshot.of(_named("Local"), JUN))
    await remote.write_snapshot("u1", StateSnapshot.of(_named("Remote"), JAN))
    container = _container()
    controller = SyncController(container, local, remote, identity)

    await controller.load()

    assert container.state.workspaces[0].name == "Local"
    pushed = await remote.read_snapshot("u1")
    assert pushed.state["workspaces"][0]["name"] == "Local"
    assert pushed.updated_at == JUN
    await controller.close()


async def test_missing_remote_receives_local(local: RecordingStore, remote: RecordingStore, identity) -> None:
    await local.write_snapshot("workspace-state", StateSnapshot.of(_named("Local"), JAN))
    controller = SyncController(_container(), local, remote, identity)

    await controller.load()

    assert await remote.exists("u1")
    await controller.close()


async def test_remote_failure_keeps_local(local: RecordingStore, remote: RecordingStore, identity) -> None:
    await local.write_snapshot("workspace-state", StateSnapshot.of(_named("Local"), JAN))
    remote.offline = True
    container = _container()
    controller = SyncController(container, local, remote, identity)

    status = await controller.load()

    assert container.state.workspaces[0].name == "Local"
    assert status.error is not None
    assert "remote unavailable" in status.error
    await controller.close()


async def test_signed_out_user_skips_remote(local: RecordingStore, remote: RecordingStore) -> None:
    controller = SyncController(_container(), local, remote, StaticIdentity(None))

    await controller.load()
    await controller.save_now()

    assert remote.writes == 0
    assert local.writes == 2
    await controller.close()


# -- Writes --------------------------------------------------------------------


async def test_debounce_coalesces_bursts(local: RecordingStore) -> None:
    container = _container()
    controller = SyncController(container, local, debounce=0.05)
    await controller.load()
    local.writes = 0

    for title in ("A", "AB", "ABC"):
        container.publish(rename_page(container.state, DEFAULT_BOARD_PAGE_ID, title))
    assert controller.status.pending is True
    assert controller.status.phase == SyncPhase.DIRTY

    await asyncio.sleep(0.3)

    assert local.writes == 1
    stored = await local.read_snapshot("workspace-state")
    assert stored.state["pages"][DEFAULT_BOARD_PAGE_ID]["title"] == "ABC"
    assert controller.status.pending is False
    await controller.close()


async def test_save_now_writes_immediately(local: RecordingStore, remote: RecordingStore, identity) -> None:
    container = _container()
    controller = SyncController(container, local, remote, identity, debounce=60)
    await controller.load()
    local.writes = remote.writes = 0

    container.publish(rename_page(container.state, DEFAULT_BOARD_PAGE_ID, "Now"))
    status = await controller.save_now()

    assert local.writes == 1
    assert remote.writes == 1
    assert status.pending is False
    assert status.phase == SyncPhase.IDLE
    assert status.last_synced is not None
    await controller.close()


async def test_flush_phases_are_published(local: RecordingStore, remote: RecordingStore, identity) -> None:
    container = _container()
    controller = SyncController(container, local, remote, identity, debounce=60)
    await controller.load()
    phases: list[SyncPhase] = []
    controller.on_status(lambda s: phases.append(s.phase))

    container.publish(rename_page(container.state, DEFAULT_BOARD_PAGE_ID, "Phases"))
    await controller.save_now()

    assert phases == [SyncPhase.DIRTY, SyncPhase.WRITING_LOCAL, SyncPhase.WRITING_REMOTE, SyncPhase.IDLE]
    await controller.close()


async def test_remote_write_failure_is_retried(local: RecordingStore, remote: RecordingStore, identity) -> None:
    container = _container()
    controller = SyncController(container, local, remote, identity, debounce=60)
    await controller.load()

    remote.offline = True
    container.publish(rename_page(container.state, DEFAULT_BOARD_PAGE_ID, "Offline edit"))
    status = await controller.save_now()

    assert status.error is not None
    stored = await local.read_snapshot("workspace-state")
    assert stored.state["pages"][DEFAULT_BOARD_PAGE_ID]["title"] == "Offline edit"
    assert container.state.pages[DEFAULT_BOARD_PAGE_ID].title == "Offline edit"

    remote.offline = False
    status = await controller.flush()
    assert status.error is None
    pushed = await remote.read_snapshot("u1")
    assert pushed.state["pages"][DEFAULT_BOARD_PAGE_ID]["title"] == "Offline edit"
    await controller.close()


async def test_close_flushes_pending_and_unsubscribes(local: RecordingStore) -> None:
    container = _container()
    controller = SyncController(container, local, debounce=60)
    await controller.load()
    local.writes = 0
    subscribers = container.subscriber_count

    container.publish(rename_page(container.state, DEFAULT_BOARD_PAGE_ID, "Closing"))
    await controller.close()

    assert local.writes == 1
    assert container.subscriber_count == subscribers - 1
    stored = await local.read_snapshot("workspace-state")
    assert stored.state["pages"][DEFAULT_BOARD_PAGE_ID]["title"] == "Closing"


class SlowStore(RecordingStore):
    """Holds each write open until ``release`` is set."""

    def __init__(self, root) -> None:
        super().__init__(root)
        self.writing = asyncio.Event()
        self.release = asyncio.Event()

    async def write_snapshot(self, key: str, snapshot: StateSnapshot) -> None:
        self.writing.set()
        await self.release.wait()
        await super().write_snapshot(key, snapshot)


def _stored_title(path) -> str:
    return json.loads(path.read_text(encoding="utf-8"))["state"]["pages"][DEFAULT_BOARD_PAGE_ID]["title"]


async def test_save_now_waits_for_debounced_write(tmp_path) -> None:
    store = SlowStore(tmp_path / "slow")
    store.release.set()
    container = _container()
    controller = SyncController(container, store, debounce=0.01)
    await controller.load()
    store.release.clear()
    store.writing.clear()

    container.publish(rename_page(container.state, DEFAULT_BOARD_PAGE_ID, "old"))
    await asyncio.wait_for(store.writing.wait(), 1)

    container.publish(rename_page(container.state, DEFAULT_BOARD_PAGE_ID, "new"))
    saving = asyncio.create_task(controller.save_now())
    await asyncio.sleep(0.05)
    store.release.set()
    status = await saving

    assert _stored_title(store.path_for("workspace-state")) == "new"
    assert status.pending is False
    assert status.phase == SyncPhase.IDLE
    await controller.close()


async def test_close_waits_for_in_flight_write(tmp_path) -> None:
    store = SlowStore(tmp_path / "slow")
    store.release.set()
    container = _container()
    controller = SyncController(container, store, debounce=0.01)
    await controller.load()
    store.release.clear()
    store.writing.clear()

    container.publish(rename_page(container.state, DEFAULT_BOARD_PAGE_ID, "final"))
    await asyncio.wait_for(store.writing.wait(), 1)
    assert controller.status.pending is False

    closing = asyncio.create_task(controller.close())
    await asyncio.sleep(0.05)
    assert not closing.done()
    store.release.set()
    await closing

    assert _stored_title(store.path_for("workspace-state")) == "final"
