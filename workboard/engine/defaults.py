"""Freshly initialized state used for first runs and unreadable input."""

from __future__ import annotations

from workboard.engine.models.base import utc_now
from workboard.engine.models.board import default_board
from workboard.engine.models.enums import ContentBlockType, PageType
from workboard.engine.models.page import ContentBlock, DatabaseConfig, Page
from workboard.engine.models.workspace import Workspace, WorkspaceState

DEFAULT_WORKSPACE_ID = "workspace-default"
DEFAULT_DOCUMENT_PAGE_ID = "page-root"
DEFAULT_BOARD_PAGE_ID = "page-database-default"


def default_workspace(name: str = "Personal") -> Workspace:
    now = utc_now()
    return Workspace(id=DEFAULT_WORKSPACE_ID, name=name, icon="📝", created_at=now, updated_at=now)


def default_board_page(workspace_id: str = DEFAULT_WORKSPACE_ID, title: str = "Task Board", position: int = 1) -> Page:
    now = utc_now()
    return Page(
        id=DEFAULT_BOARD_PAGE_ID,
        workspace_id=workspace_id,
        title=title,
        icon="✅",
        type=PageType.DATABASE,
        position=position,
        created_at=now,
        updated_at=now,
        database_config=DatabaseConfig(board_state=default_board()),
    )


def default_workspace_state() -> WorkspaceState:
    """One "Personal" workspace with a welcome document and an empty task board."""
    now = utc_now()
    welcome = Page(
        id=DEFAULT_DOCUMENT_PAGE_ID,
        workspace_id=DEFAULT_WORKSPACE_ID,
        title="Getting Started",
        icon="🏠",
        type=PageType.DOCUMENT,
        position=0,
        created_at=now,
        updated_at=now,
        content=[
            ContentBlock(
                id="block-welcome",
                type=ContentBlockType.HEADING1,
                content="Welcome to your workspace!",
                created_at=now,
                updated_at=now,
            ),
            ContentBlock(
                id="block-intro",
                type=ContentBlockType.PARAGRAPH,
                content="Start creating pages to organize your notes and databases.",
                created_at=now,
                updated_at=now,
            ),
        ],
    )
    board = default_board_page()
    return WorkspaceState(
        active_workspace_id=DEFAULT_WORKSPACE_ID,
        active_page_id=board.id,
        workspaces=[default_workspace()],
        pages={welcome.id: welcome, board.id: board},
    )
