"""Upgrade any persisted blob to the canonical ``WorkspaceState``.

Raw input is first classified into a ``StateShape`` and then handed to the
upgrader registered for that shape:

- ``CANONICAL``: validated (missing optional fields take defaults) and
  repaired by ``auto_fix_workspace_state``.
- ``LEGACY_APP``: ``{activeProjectId, projects: [{id, name, board}]}``; every
  project becomes a workspace.
- ``LEGACY_BOARD``: ``{columns, cards, categories}``; wrapped in a default
  workspace with a single board page.
- ``UNKNOWN``: replaced by a freshly initialized state.

``ensure_workspace_state`` is idempotent: feeding its output back in yields
an equal state with ``migrated=False``.
"""

from __future__ import annotations

import copy
import json
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from typing import Any

import pydantic
from loguru import logger

from workboard.engine.defaults import (
    DEFAULT_BOARD_PAGE_ID,
    DEFAULT_WORKSPACE_ID,
    default_board_page,
    default_workspace,
    default_workspace_state,
)
from workboard.engine.errors import MigrationParseError
from workboard.engine.models.base import new_id, utc_now
from workboard.engine.models.board import BoardState, Card, Category, Column, default_board
from workboard.engine.models.enums import ContentBlockType, PageType, StateShape
from workboard.engine.models.page import ContentBlock, DatabaseConfig, Page
from workboard.engine.models.workspace import Workspace, WorkspaceState
from workboard.engine.recovery import auto_fix_workspace_state, repair_board


@dataclass(frozen=True)
class MigrationResult:
    state: WorkspaceState
    migrated: bool


@dataclass(frozen=True)
class StateBackup:
    """Deep copy of a raw blob taken before migration."""

    timestamp: str
    shape: StateShape
    data: Any


# ---------------------------------------------------------------------------
# Parsing & classification
# ---------------------------------------------------------------------------


def parse_state_json(text: str) -> Any:
    """Decode stored JSON.  Raises ``MigrationParseError`` if it is not JSON."""
    try:
        return json.loads(text)
    except json.JSONDecodeError as exc:
        msg = f"State is not valid JSON: {exc}"
        raise MigrationParseError(msg) from None


def detect_shape(raw: Any) -> StateShape:
    if not isinstance(raw, Mapping):
        return StateShape.UNKNOWN
    if (
        isinstance(raw.get("activeWorkspaceId"), str)
        and isinstance(raw.get("workspaces"), list)
        and isinstance(raw.get("pages"), Mapping)
    ):
        return StateShape.CANONICAL
    if isinstance(raw.get("activeProjectId"), str) and isinstance(raw.get("projects"), list):
        return StateShape.LEGACY_APP
    if isinstance(raw.get("columns"), list):
        return StateShape.LEGACY_BOARD
    return StateShape.UNKNOWN


def create_state_backup(raw: Any) -> StateBackup:
    return StateBackup(timestamp=utc_now(), shape=detect_shape(raw), data=copy.deepcopy(raw))


# ---------------------------------------------------------------------------
# Lenient legacy board coercion
# ---------------------------------------------------------------------------


def _coerce_card(key: str, value: Any) -> Card | None:
    if not isinstance(value, Mapping):
        return None
    card_id = value.get("id") if isinstance(value.get("id"), str) else key
    title = value.get("title") if isinstance(value.get("title"), str) else "Untitled"
    try:
        return Card.model_validate({**value, "id": card_id, "title": title})
    except pydantic.ValidationError:
        logger.debug("Legacy card {} has malformed fields, keeping id and title only", card_id)
        return Card(id=card_id, title=title)


def _coerce_board(raw: Any) -> BoardState:
    """Build a board from legacy data, dropping whatever cannot be understood."""
    if not isinstance(raw, Mapping):
        return default_board()

    cards_raw = raw.get("cards")
    if isinstance(cards_raw, list):
        cards_raw = {c["id"]: c for c in cards_raw if isinstance(c, Mapping) and isinstance(c.get("id"), str)}
    cards: dict[str, Card] = {}
    if isinstance(cards_raw, Mapping):
        for key, value in cards_raw.items():
            card = _coerce_card(str(key), value)
            if card is not None:
                cards[card.id] = card

    columns: list[Column] = []
    for col in raw.get("columns") or []:
        if not isinstance(col, Mapping) or not isinstance(col.get("id"), str):
            continue
        if any(c.id == col["id"] for c in columns):
            continue
        card_ids = col.get("cardIds") if isinstance(col.get("cardIds"), list) else []
        name = col.get("name") if isinstance(col.get("name"), str) else col["id"]
        columns.append(Column(id=col["id"], name=name, card_ids=[cid for cid in card_ids if isinstance(cid, str)]))

    categories: list[Category] = []
    raw_categories = raw.get("categories")
    for cat in raw_categories if isinstance(raw_categories, list) else []:
        try:
            categories.append(Category.model_validate(cat))
        except pydantic.ValidationError:
            continue

    board, _ = repair_board(BoardState(columns=columns, cards=cards, categories=categories))
    return board


# ---------------------------------------------------------------------------
# Upgraders
# ---------------------------------------------------------------------------


def _from_canonical(raw: Any) -> MigrationResult:
    try:
        state = WorkspaceState.model_validate(raw)
    except pydantic.ValidationError as exc:
        logger.warning("Invalid workspace state ({} errors), using default", exc.error_count())
        return MigrationResult(state=default_workspace_state(), migrated=False)

    fixed, report = auto_fix_workspace_state(state)
    if report.errors:
        logger.warning("Unrecoverable workspace state, using default: {}", report.errors)
        return MigrationResult(state=default_workspace_state(), migrated=False)
    return MigrationResult(state=fixed, migrated=fixed.dump() != raw)


def _from_legacy_board(raw: Any) -> MigrationResult:
    logger.info("Migrating legacy single-board state to workspace state")
    page = default_board_page(DEFAULT_WORKSPACE_ID, position=0).model_copy(
        update={"database_config": DatabaseConfig(board_state=_coerce_board(raw))}
    )
    state = WorkspaceState(
        active_workspace_id=DEFAULT_WORKSPACE_ID,
        active_page_id=DEFAULT_BOARD_PAGE_ID,
        workspaces=[default_workspace()],
        pages={page.id: page},
    )
    return MigrationResult(state=state, migrated=True)


def _project_to_workspace(project: Mapping[str, Any]) -> tuple[Workspace, Page, Page]:
    now = utc_now()
    name = project.get("name") if isinstance(project.get("name"), str) and project["name"] else "Untitled Workspace"
    workspace = Workspace(id=new_id("workspace"), name=name, icon="📋", created_at=now, updated_at=now)
    welcome = Page(
        id=new_id("page"),
        workspace_id=workspace.id,
        title=f"Welcome to {name}",
        icon="👋",
        type=PageType.DOCUMENT,
        position=0,
        created_at=now,
        updated_at=now,
        content=[
            ContentBlock(id=new_id("block"), type=ContentBlockType.HEADING1, content=f"Welcome to {name}!"),
            ContentBlock(
                id=new_id("block"),
                type=ContentBlockType.PARAGRAPH,
                content="Your tasks have been migrated to the database page below.",
            ),
        ],
    )
    board = Page(
        id=new_id("page"),
        workspace_id=workspace.id,
        title=f"{name} Tasks",
        icon="✅",
        type=PageType.DATABASE,
        position=1,
        created_at=now,
        updated_at=now,
        database_config=DatabaseConfig(board_state=_coerce_board(project.get("board"))),
    )
    return workspace, welcome, board


def _from_legacy_app(raw: Any) -> MigrationResult:
    projects = [p for p in raw["projects"] if isinstance(p, Mapping)]
    if not projects:
        logger.warning("Legacy app state has no projects, using default")
        return MigrationResult(state=default_workspace_state(), migrated=True)

    logger.info("Migrating {} legacy projects to workspaces", len(projects))
    workspaces: list[Workspace] = []
    pages: dict[str, Page] = {}
    active: tuple[str, str] | None = None
    for project in projects:
        workspace, welcome, board = _project_to_workspace(project)
        workspaces.append(workspace)
        pages[welcome.id] = welcome
        pages[board.id] = board
        if project.get("id") == raw["activeProjectId"] and active is None:
            active = (workspace.id, board.id)

    if active is None:
        first_board = next(p for p in pages.values() if p.workspace_id == workspaces[0].id and p.is_board)
        active = (workspaces[0].id, first_board.id)
    active_workspace_id, active_page_id = active

    state = WorkspaceState(
        active_workspace_id=active_workspace_id,
        active_page_id=active_page_id,
        workspaces=workspaces,
        pages=pages,
    )
    return MigrationResult(state=state, migrated=True)


def _from_unknown(raw: Any) -> MigrationResult:
    logger.warning("Unknown state format ({}), using default", type(raw).__name__)
    return MigrationResult(state=default_workspace_state(), migrated=False)


_UPGRADERS: dict[StateShape, Callable[[Any], MigrationResult]] = {
    StateShape.CANONICAL: _from_canonical,
    StateShape.LEGACY_APP: _from_legacy_app,
    StateShape.LEGACY_BOARD: _from_legacy_board,
    StateShape.UNKNOWN: _from_unknown,
}


def ensure_workspace_state(raw: Any) -> MigrationResult:
    """Return ``raw`` as a canonical ``WorkspaceState``, tagging whether it was upgraded.

    ``raw`` is decoded JSON data; an already-built ``WorkspaceState`` is
    accepted too and goes through the canonical branch.
    """
    if isinstance(raw, WorkspaceState):
        raw = raw.dump()
    return _UPGRADERS[detect_shape(raw)](raw)
