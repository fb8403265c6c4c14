"""Workspace operations: add, update, delete, switch, reorder.

At least one workspace always exists and ``active_workspace_id`` always
resolves; deleting the active workspace fails over to the first remaining one.
"""

from __future__ import annotations

from workboard.engine.errors import InvariantViolation, NotFoundError
from workboard.engine.models.base import new_id, utc_now
from workboard.engine.models.enums import PageType
from workboard.engine.models.page import Page
from workboard.engine.models.workspace import Workspace, WorkspaceInput, WorkspaceState, WorkspaceUpdate
from workboard.engine.operations.pages import create_page, ensure_root_board, first_root_page_id
from workboard.engine.operations.reorder import move_by_key

ICON_FALLBACK = "🗂️"
DEFAULT_WORKSPACE_NAME = "New workspace"
_MAX_TEXT = 120


def _sanitize(value: str | None) -> str:
    return (value or "").strip()[:_MAX_TEXT]


def get_workspace(state: WorkspaceState, workspace_id: str) -> Workspace:
    """Get a workspace by ID.  Raises ``NotFoundError`` if missing."""
    workspace = state.workspace(workspace_id)
    if workspace is None:
        raise NotFoundError(workspace_id)
    return workspace


def create_workspace_template(body: WorkspaceInput) -> tuple[Workspace, Page]:
    """Build a workspace and its initial "Tasks" board.  Does not touch any state."""
    now = utc_now()
    workspace = Workspace(
        id=new_id("workspace"),
        name=_sanitize(body.name) or DEFAULT_WORKSPACE_NAME,
        icon=_sanitize(body.icon) or ICON_FALLBACK,
        description=_sanitize(body.description) or None,
        created_at=now,
        updated_at=now,
    )
    tasks = create_page(workspace.id, "Tasks", PageType.DATABASE).model_copy(update={"icon": "📋"})
    return workspace, tasks


def add_workspace_to_state(state: WorkspaceState, body: WorkspaceInput) -> WorkspaceState:
    """Append a new workspace.  The active workspace does not change."""
    workspace, tasks = create_workspace_template(body)
    return state.model_copy(
        update={
            "workspaces": [*state.workspaces, workspace],
            "pages": {**state.pages, tasks.id: tasks},
        }
    )


def update_workspace_in_state(state: WorkspaceState, workspace_id: str, updates: WorkspaceUpdate) -> WorkspaceState:
    """Merge non-blank fields into a workspace.  Raises ``NotFoundError`` if missing."""
    current = get_workspace(state, workspace_id)
    updated = current.model_copy(
        update={
            "name": _sanitize(updates.name) or current.name,
            "icon": _sanitize(updates.icon) or current.icon or ICON_FALLBACK,
            "description": _sanitize(updates.description) or current.description,
            "updated_at": utc_now(),
        }
    )
    workspaces = [updated if w.id == workspace_id else w for w in state.workspaces]
    return state.model_copy(update={"workspaces": workspaces})


def delete_workspace(state: WorkspaceState, workspace_id: str) -> WorkspaceState:
    """Delete a workspace and all of its pages.

    Raises ``InvariantViolation`` when it is the last workspace.  If it was
    active, the first remaining workspace becomes active.
    """
    get_workspace(state, workspace_id)
    if len(state.workspaces) == 1:
        msg = "Cannot delete the last workspace"
        raise InvariantViolation(msg)

    workspaces = [w for w in state.workspaces if w.id != workspace_id]
    pages = {pid: p for pid, p in state.pages.items() if p.workspace_id != workspace_id}
    next_state = state.model_copy(update={"workspaces": workspaces, "pages": pages})

    if state.active_workspace_id == workspace_id:
        return _activate(next_state, workspaces[0].id)
    return next_state


def set_active_workspace(state: WorkspaceState, workspace_id: str) -> WorkspaceState:
    """Switch to a workspace and select its first root page."""
    get_workspace(state, workspace_id)
    if state.active_workspace_id == workspace_id:
        return state
    return _activate(state, workspace_id)


def _activate(state: WorkspaceState, workspace_id: str) -> WorkspaceState:
    state, board_id = ensure_root_board(state, workspace_id)
    page_id = board_id or first_root_page_id(state, workspace_id)
    return state.model_copy(update={"active_workspace_id": workspace_id, "active_page_id": page_id})


def reorder_workspaces(state: WorkspaceState, workspace_id: str, to_index: int) -> WorkspaceState:
    """Move a workspace to *to_index* (clamped) in the sidebar order."""
    workspaces = move_by_key(state.workspaces, workspace_id, to_index)
    return state.model_copy(update={"workspaces": workspaces})
