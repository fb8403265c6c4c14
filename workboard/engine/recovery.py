"""Validation and automatic repair of workspace state.

``validate_workspace_state`` lists every broken invariant;
``auto_fix_workspace_state`` repairs exactly those issues so that its output
validates cleanly.  Migration runs the repair on every canonical blob it
loads, which keeps the engine's invariants true for all reachable states.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from loguru import logger

from workboard.engine.defaults import default_workspace_state
from workboard.engine.models.board import BoardState, default_board
from workboard.engine.models.page import DatabaseConfig, Page
from workboard.engine.models.workspace import WorkspaceState
from workboard.engine.operations.pages import MAX_TREE_WALK, first_root_page_id, get_root_pages


@dataclass
class RecoveryReport:
    success: bool = True
    fixes: list[str] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------


def _board_issues(page_id: str, board: BoardState) -> list[str]:
    issues: list[str] = []
    seen: set[str] = set()
    for column in board.columns:
        for card_id in column.card_ids:
            if card_id in seen:
                issues.append(f"Board {page_id}: card {card_id} appears in more than one column")
            elif card_id not in board.cards:
                issues.append(f"Board {page_id}: column {column.id} references missing card {card_id}")
            seen.add(card_id)
    issues.extend(
        f"Board {page_id}: card {card_id} is not in any column" for card_id in board.cards if card_id not in seen
    )
    return issues


def _has_parent_cycle(pages: dict[str, Page], page_id: str) -> bool:
    visited = {page_id}
    current = pages[page_id]
    for _ in range(MAX_TREE_WALK + 1):
        if current.parent_page_id is None or current.parent_page_id not in pages:
            return False
        if current.parent_page_id in visited:
            return True
        visited.add(current.parent_page_id)
        current = pages[current.parent_page_id]
    return True


def validate_workspace_state(state: WorkspaceState) -> list[str]:
    """Return a description of every broken invariant (empty when valid)."""
    errors: list[str] = []
    workspace_ids = {w.id for w in state.workspaces}

    if not state.workspaces:
        errors.append("No workspaces found")
    if state.active_workspace_id not in workspace_ids:
        errors.append(f"Active workspace {state.active_workspace_id} not found")

    for key, page in state.pages.items():
        if page.id != key:
            errors.append(f"Page {page.id} is stored under key {key}")
        if page.workspace_id not in workspace_ids:
            errors.append(f"Page {page.id} references non-existent workspace {page.workspace_id}")
        if page.parent_page_id is not None:
            parent = state.pages.get(page.parent_page_id)
            if parent is None:
                errors.append(f"Page {page.id} references non-existent parent {page.parent_page_id}")
            elif parent.workspace_id != page.workspace_id:
                errors.append(f"Page {page.id} has parent {parent.id} in another workspace")
            elif _has_parent_cycle(state.pages, key):
                errors.append(f"Page {page.id} is part of a parent cycle")
        if page.is_board:
            if page.database_config is None:
                errors.append(f"Database page {page.id} missing databaseConfig")
            else:
                errors.extend(_board_issues(page.id, page.database_config.board_state))

    if state.active_page_id is not None:
        active = state.pages.get(state.active_page_id)
        if active is None:
            errors.append(f"Active page {state.active_page_id} not found")
        elif active.workspace_id != state.active_workspace_id:
            errors.append(f"Active page {active.id} is not in the active workspace")
    return errors


def analyze_workspace_state(state: WorkspaceState) -> RecoveryReport:
    """Validation errors plus non-fatal warnings."""
    report = RecoveryReport()
    report.errors.extend(validate_workspace_state(state))
    report.success = not report.errors

    for workspace in state.workspaces:
        roots = get_root_pages(state.pages, workspace.id)
        if not roots:
            report.warnings.append(f"Workspace {workspace.name} has no root pages")
        elif not any(p.is_board for p in roots):
            report.warnings.append(f"Workspace {workspace.name} has no root board")
    return report


# ---------------------------------------------------------------------------
# Repair
# ---------------------------------------------------------------------------


def repair_board(board: BoardState) -> tuple[BoardState, list[str]]:
    """Make every card referenced by exactly one column.

    First occurrence wins for duplicates, dangling references are dropped and
    orphan cards are appended to the first column (dropped if there is none).
    """
    fixes: list[str] = []
    seen: set[str] = set()
    columns = []
    for column in board.columns:
        kept = []
        for card_id in column.card_ids:
            if card_id in seen:
                fixes.append(f"Removed duplicate reference to card {card_id} from column {column.id}")
            elif card_id not in board.cards:
                fixes.append(f"Removed missing card {card_id} from column {column.id}")
            else:
                kept.append(card_id)
            seen.add(card_id)
        columns.append(column if kept == column.card_ids else column.model_copy(update={"card_ids": kept}))

    cards = board.cards
    orphans = [card_id for card_id in board.cards if card_id not in seen]
    if orphans:
        if columns:
            first = columns[0]
            columns[0] = first.model_copy(update={"card_ids": [*first.card_ids, *orphans]})
            fixes.append(f"Placed {len(orphans)} orphan cards in column {first.id}")
        else:
            cards = {}
            fixes.append(f"Dropped {len(orphans)} cards from a board without columns")

    if not fixes:
        return board, fixes
    return board.model_copy(update={"columns": columns, "cards": cards}), fixes


def auto_fix_workspace_state(state: WorkspaceState) -> tuple[WorkspaceState, RecoveryReport]:
    """Repair everything ``validate_workspace_state`` reports.

    A valid state comes back as the same object with an empty ``fixes`` list.
    """
    report = RecoveryReport()

    if not state.workspaces:
        report.errors.append("No workspaces found!")
        report.success = False
        return default_workspace_state(), report

    workspace_ids = {w.id for w in state.workspaces}
    active_workspace_id = state.active_workspace_id
    if active_workspace_id not in workspace_ids:
        active_workspace_id = state.workspaces[0].id
        report.fixes.append(f"Set activeWorkspaceId to first workspace: {state.workspaces[0].name}")

    pages: dict[str, Page] = {}
    for key, page in state.pages.items():
        if page.id != key:
            page = page.model_copy(update={"id": key})
            report.fixes.append(f"Re-keyed page {key}")
        if page.workspace_id not in workspace_ids:
            page = page.model_copy(update={"workspace_id": active_workspace_id})
            report.fixes.append(f"Moved page {key} to workspace {active_workspace_id}")
        pages[key] = page

    for key in sorted(pages, key=lambda k: pages[k].position):
        page = pages[key]
        if page.parent_page_id is None:
            continue
        parent = pages.get(page.parent_page_id)
        if parent is None or parent.workspace_id != page.workspace_id or _has_parent_cycle(pages, key):
            pages[key] = page.model_copy(update={"parent_page_id": None})
            report.fixes.append(f"Made page {key} a root page (invalid parent {page.parent_page_id})")

    for key, page in pages.items():
        if not page.is_board:
            continue
        if page.database_config is None:
            pages[key] = page.model_copy(update={"database_config": DatabaseConfig(board_state=default_board())})
            report.fixes.append(f"Added a default board to database page {key}")
            continue
        board, fixes = repair_board(page.database_config.board_state)
        if fixes:
            config = page.database_config.model_copy(update={"board_state": board})
            pages[key] = page.model_copy(update={"database_config": config})
            report.fixes.extend(f"Page {key}: {fix}" for fix in fixes)

    if not report.fixes:
        fixed = state
    else:
        fixed = state.model_copy(update={"active_workspace_id": active_workspace_id, "pages": pages})

    active = fixed.pages.get(fixed.active_page_id) if fixed.active_page_id else None
    if fixed.active_page_id is not None and (active is None or active.workspace_id != fixed.active_workspace_id):
        replacement = first_root_page_id(fixed, fixed.active_workspace_id)
        fixed = fixed.model_copy(update={"active_page_id": replacement})
        report.fixes.append(f"Set activePageId to first root page: {replacement}")

    if report.fixes:
        logger.info("Auto-fix applied {} repairs to workspace state", len(report.fixes))
    return fixed, report
