"""Unit tests for the page tree: creation, cascade delete, moves and queries."""

from __future__ import annotations

import pytest

from workboard.engine.defaults import DEFAULT_BOARD_PAGE_ID, DEFAULT_DOCUMENT_PAGE_ID, DEFAULT_WORKSPACE_ID
from workboard.engine.errors import InvariantViolation, NotFoundError, ValidationError
from workboard.engine.models import ContentBlock, ContentBlockType, PageType, WorkspaceInput, WorkspaceState
from workboard.engine.operations.boards import get_board
from workboard.engine.operations.pages import (
    DEFAULT_BOARD_TITLE,
    MAX_PAGE_DEPTH,
    add_content_block,
    add_page_to_state,
    create_page,
    delete_content_block,
    delete_page,
    duplicate_page,
    get_page_depth,
    get_page_path,
    get_page_tree,
    get_root_pages,
    move_page,
    move_page_under,
    remove_page,
    rename_page,
    reorder_pages,
    search_pages,
    set_active_page,
    toggle_page_collapsed,
    update_content_block,
    update_database_config,
)
from workboard.engine.operations.workspaces import add_workspace_to_state, set_active_workspace
from workboard.engine.recovery import validate_workspace_state


def _add(state: WorkspaceState, title: str, parent: str | None = None, **kwargs) -> tuple[WorkspaceState, str]:
    page = create_page(kwargs.pop("workspace_id", DEFAULT_WORKSPACE_ID), title, parent_page_id=parent, **kwargs)
    return add_page_to_state(state, page), page.id


def _root_ids(state: WorkspaceState, workspace_id: str = DEFAULT_WORKSPACE_ID) -> list[str]:
    return [p.id for p in get_root_pages(state.pages, workspace_id)]


# -- Creation ------------------------------------------------------------------


def test_create_page_defaults() -> None:
    board = create_page(DEFAULT_WORKSPACE_ID, "Sprint")
    assert board.id.startswith("page-")
    assert board.is_board
    assert board.database_config is not None
    assert [c.id for c in board.database_config.board_state.columns] == ["todo", "in-progress", "done"]

    doc = create_page(DEFAULT_WORKSPACE_ID, "Notes", PageType.DOCUMENT)
    assert doc.database_config is None
    assert doc.content is not None
    assert [b.type for b in doc.content] == [ContentBlockType.PARAGRAPH]


def test_add_page_unknown_workspace(state: WorkspaceState) -> None:
    with pytest.raises(ValidationError):
        add_page_to_state(state, create_page("workspace-missing", "Lost"))


def test_add_page_unknown_parent(state: WorkspaceState) -> None:
    with pytest.raises(ValidationError):
        _add(state, "Orphan", parent="page-missing")


def test_add_page_parent_in_other_workspace(state: WorkspaceState) -> None:
    state = add_workspace_to_state(state, WorkspaceInput(name="Work"))
    other_ws = state.workspaces[1].id
    with pytest.raises(ValidationError):
        _add(state, "Cross", parent=DEFAULT_BOARD_PAGE_ID, workspace_id=other_ws)


def test_depth_limit(state: WorkspaceState) -> None:
    parent = DEFAULT_BOARD_PAGE_ID
    for i in range(MAX_PAGE_DEPTH - 1):
        state, parent = _add(state, f"Level {i + 1}", parent=parent)
    assert get_page_depth(state.pages, parent) == MAX_PAGE_DEPTH - 1
    assert len(get_page_path(state.pages, parent)) == MAX_PAGE_DEPTH

    with pytest.raises(InvariantViolation):
        _add(state, "Too deep", parent=parent)


# -- Deletion ------------------------------------------------------------------


def test_delete_page_cascades(state: WorkspaceState) -> None:
    state, child = _add(state, "Child", parent=DEFAULT_BOARD_PAGE_ID)
    state, grandchild = _add(state, "Grandchild", parent=child)

    deletion = delete_page(state, DEFAULT_BOARD_PAGE_ID)
    assert deletion.removed_ids == {DEFAULT_BOARD_PAGE_ID, child, grandchild}
    assert set(deletion.state.pages) == {DEFAULT_DOCUMENT_PAGE_ID}
    # Selection is the caller's business
    assert deletion.state.active_page_id == DEFAULT_BOARD_PAGE_ID
    # Original untouched
    assert grandchild in state.pages


def test_delete_unknown_page(state: WorkspaceState) -> None:
    with pytest.raises(NotFoundError):
        delete_page(state, "page-missing")


def test_remove_sole_root_board_synthesizes_new_active_board(state: WorkspaceState) -> None:
    state = remove_page(state, DEFAULT_BOARD_PAGE_ID)

    active = state.pages[state.active_page_id]
    assert active.is_board
    assert active.title == DEFAULT_BOARD_TITLE
    assert active.is_root
    assert active.workspace_id == state.active_workspace_id
    assert validate_workspace_state(state) == []


def test_remove_only_page_of_active_workspace(state: WorkspaceState) -> None:
    state = add_workspace_to_state(state, WorkspaceInput(name="Work"))
    work = state.workspaces[1].id
    state = set_active_workspace(state, work)
    (tasks,) = state.pages_in(work)
    assert state.active_page_id == tasks.id

    state = remove_page(state, tasks.id)

    (replacement,) = state.pages_in(work)
    assert replacement.id != tasks.id
    assert replacement.is_board
    assert state.active_page_id == replacement.id


def test_remove_document_keeps_active_board(state: WorkspaceState) -> None:
    state = remove_page(state, DEFAULT_DOCUMENT_PAGE_ID)
    assert state.active_page_id == DEFAULT_BOARD_PAGE_ID
    assert set(state.pages) == {DEFAULT_BOARD_PAGE_ID}


def test_remove_active_document_selects_first_root(state: WorkspaceState) -> None:
    state = set_active_page(state, DEFAULT_DOCUMENT_PAGE_ID)
    state = remove_page(state, DEFAULT_DOCUMENT_PAGE_ID)
    assert state.active_page_id == DEFAULT_BOARD_PAGE_ID


# -- Updates and moves ---------------------------------------------------------


def test_rename_and_toggle(state: WorkspaceState) -> None:
    renamed = rename_page(state, DEFAULT_BOARD_PAGE_ID, "Sprint 12")
    assert renamed.pages[DEFAULT_BOARD_PAGE_ID].title == "Sprint 12"
    assert state.pages[DEFAULT_BOARD_PAGE_ID].title == "Task Board"

    toggled = toggle_page_collapsed(renamed, DEFAULT_BOARD_PAGE_ID)
    assert toggled.pages[DEFAULT_BOARD_PAGE_ID].collapsed is True


def test_move_page_under_own_descendant(state: WorkspaceState) -> None:
    state, child = _add(state, "Child", parent=DEFAULT_BOARD_PAGE_ID)
    with pytest.raises(InvariantViolation):
        move_page_under(state, DEFAULT_BOARD_PAGE_ID, child)
    with pytest.raises(InvariantViolation):
        move_page_under(state, DEFAULT_BOARD_PAGE_ID, DEFAULT_BOARD_PAGE_ID)


def test_move_page_under_and_back_to_root(state: WorkspaceState) -> None:
    state = move_page_under(state, DEFAULT_DOCUMENT_PAGE_ID, DEFAULT_BOARD_PAGE_ID)
    assert state.pages[DEFAULT_DOCUMENT_PAGE_ID].parent_page_id == DEFAULT_BOARD_PAGE_ID

    state = move_page_under(state, DEFAULT_DOCUMENT_PAGE_ID, None, position=5)
    assert state.pages[DEFAULT_DOCUMENT_PAGE_ID].is_root


def test_move_page_reorders_siblings(state: WorkspaceState) -> None:
    state, extra = _add(state, "Extra", position=2)
    state = move_page(state, extra, 0)
    assert _root_ids(state) == [extra, DEFAULT_DOCUMENT_PAGE_ID, DEFAULT_BOARD_PAGE_ID]
    assert [p.position for p in get_root_pages(state.pages, DEFAULT_WORKSPACE_ID)] == [0, 1, 2]


def test_move_page_to_new_parent(state: WorkspaceState) -> None:
    state = move_page(state, DEFAULT_DOCUMENT_PAGE_ID, 0, parent_page_id=DEFAULT_BOARD_PAGE_ID)

    assert _root_ids(state) == [DEFAULT_BOARD_PAGE_ID]
    assert state.pages[DEFAULT_BOARD_PAGE_ID].position == 0
    assert state.pages[DEFAULT_DOCUMENT_PAGE_ID].parent_page_id == DEFAULT_BOARD_PAGE_ID


def test_move_page_to_other_workspace(state: WorkspaceState) -> None:
    state = add_workspace_to_state(state, WorkspaceInput(name="Work"))
    work = state.workspaces[1].id
    state, child = _add(state, "Child", parent=DEFAULT_BOARD_PAGE_ID)

    state = move_page(state, DEFAULT_BOARD_PAGE_ID, 0, workspace_id=work)

    assert state.pages[DEFAULT_BOARD_PAGE_ID].workspace_id == work
    assert state.pages[child].workspace_id == work
    assert _root_ids(state, work)[0] == DEFAULT_BOARD_PAGE_ID
    # The source workspace got a replacement board
    assert any(p.is_board for p in get_root_pages(state.pages, DEFAULT_WORKSPACE_ID))
    assert validate_workspace_state(state) == []


def test_reorder_pages(state: WorkspaceState) -> None:
    state = reorder_pages(state, [DEFAULT_BOARD_PAGE_ID, DEFAULT_DOCUMENT_PAGE_ID])
    assert _root_ids(state) == [DEFAULT_BOARD_PAGE_ID, DEFAULT_DOCUMENT_PAGE_ID]


def test_reorder_pages_rejects_page_from_other_workspace(state: WorkspaceState) -> None:
    state = add_workspace_to_state(state, WorkspaceInput(name="Other"))
    (tasks,) = state.pages_in(state.workspaces[1].id)

    with pytest.raises(ValidationError):
        reorder_pages(state, [tasks.id], parent_page_id=DEFAULT_DOCUMENT_PAGE_ID)
    with pytest.raises(ValidationError):
        reorder_pages(state, [DEFAULT_BOARD_PAGE_ID, tasks.id])


def test_reorder_pages_nesting_last_root_board_synthesizes_one(state: WorkspaceState) -> None:
    state = reorder_pages(state, [DEFAULT_BOARD_PAGE_ID], parent_page_id=DEFAULT_DOCUMENT_PAGE_ID)

    assert state.pages[DEFAULT_BOARD_PAGE_ID].parent_page_id == DEFAULT_DOCUMENT_PAGE_ID
    roots = get_root_pages(state.pages, DEFAULT_WORKSPACE_ID)
    assert [p.title for p in roots if p.is_board] == [DEFAULT_BOARD_TITLE]
    assert validate_workspace_state(state) == []


def test_reorder_pages_enforces_depth(state: WorkspaceState) -> None:
    parent = DEFAULT_DOCUMENT_PAGE_ID
    for i in range(MAX_PAGE_DEPTH - 1):
        state, parent = _add(state, f"Level {i + 1}", parent=parent)
    state, top = _add(state, "Top")
    state, _ = _add(state, "Below top", parent=top)

    with pytest.raises(InvariantViolation):
        reorder_pages(state, [top], parent_page_id=parent)


def test_set_active_page_switches_workspace(state: WorkspaceState) -> None:
    state = add_workspace_to_state(state, WorkspaceInput(name="Work"))
    work = state.workspaces[1].id
    (tasks,) = state.pages_in(work)

    state = set_active_page(state, tasks.id)
    assert state.active_workspace_id == work
    assert state.active_page_id == tasks.id
    assert set_active_page(state, tasks.id) is state


def test_duplicate_page_with_children(board_state: WorkspaceState) -> None:
    state, child = _add(board_state, "Child", parent=DEFAULT_BOARD_PAGE_ID)
    state = duplicate_page(state, DEFAULT_BOARD_PAGE_ID, include_children=True)

    (copy,) = [p for p in state.pages.values() if p.title == "Task Board (Copy)"]
    assert copy.id != DEFAULT_BOARD_PAGE_ID
    assert copy.position == state.pages[DEFAULT_BOARD_PAGE_ID].position + 1
    assert set(get_board(state, copy.id).cards) == {"c", "d", "e"}

    children = [p for p in state.pages.values() if p.parent_page_id == copy.id]
    assert [p.title for p in children] == ["Child"]
    assert children[0].id != child


def test_duplicate_page_renumbers_later_siblings(state: WorkspaceState) -> None:
    state = duplicate_page(state, DEFAULT_DOCUMENT_PAGE_ID)

    roots = get_root_pages(state.pages, DEFAULT_WORKSPACE_ID)
    assert [p.title for p in roots] == ["Getting Started", "Getting Started (Copy)", "Task Board"]
    assert [p.position for p in roots] == [0, 1, 2]


# -- Content -------------------------------------------------------------------


def test_content_blocks(state: WorkspaceState) -> None:
    block = ContentBlock(id="block-todo", type=ContentBlockType.TODO_LIST, content="Ship it")
    state = add_content_block(state, DEFAULT_DOCUMENT_PAGE_ID, block, position=0)
    content = state.pages[DEFAULT_DOCUMENT_PAGE_ID].content
    assert content is not None
    assert [b.id for b in content] == ["block-todo", "block-welcome", "block-intro"]

    state = update_content_block(state, DEFAULT_DOCUMENT_PAGE_ID, "block-todo", content="Shipped")
    assert state.pages[DEFAULT_DOCUMENT_PAGE_ID].content[0].content == "Shipped"

    state = delete_content_block(state, DEFAULT_DOCUMENT_PAGE_ID, "block-todo")
    assert [b.id for b in state.pages[DEFAULT_DOCUMENT_PAGE_ID].content] == ["block-welcome", "block-intro"]

    with pytest.raises(NotFoundError):
        update_content_block(state, DEFAULT_DOCUMENT_PAGE_ID, "block-todo", content="x")


def test_content_blocks_rejected_on_board(state: WorkspaceState) -> None:
    with pytest.raises(InvariantViolation):
        add_content_block(state, DEFAULT_BOARD_PAGE_ID, ContentBlock(id="b"))


def test_update_database_config_rejected_on_document(state: WorkspaceState) -> None:
    config = state.pages[DEFAULT_BOARD_PAGE_ID].database_config
    assert config is not None
    with pytest.raises(InvariantViolation):
        update_database_config(state, DEFAULT_DOCUMENT_PAGE_ID, config)


# -- Queries -------------------------------------------------------------------


def test_page_tree(state: WorkspaceState) -> None:
    state, child = _add(state, "Child", parent=DEFAULT_BOARD_PAGE_ID)
    tree = get_page_tree(state.pages, DEFAULT_WORKSPACE_ID)

    assert [n.page.id for n in tree] == [DEFAULT_DOCUMENT_PAGE_ID, DEFAULT_BOARD_PAGE_ID]
    assert [n.page.id for n in tree[1].children] == [child]
    assert tree[1].children[0].depth == 1


def test_search_pages_exact_match_first(state: WorkspaceState) -> None:
    state, _ = _add(state, "Roadmap ideas")
    state, exact = _add(state, "roadmap")

    results = search_pages(state.pages, "Roadmap")
    assert [p.id for p in results][0] == exact
    assert len(results) == 2
    assert search_pages(state.pages, "roadmap", workspace_id="workspace-missing") == []
