"""Page operations: create, delete (cascading), update, move, tree queries.

Every function is pure: it takes a ``WorkspaceState`` and returns a new one
(or a query result).  Unknown ids raise ``NotFoundError``; refusals that would
break the page tree raise ``InvariantViolation``.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field

from workboard.engine.errors import InvariantViolation, NotFoundError, ValidationError
from workboard.engine.models.base import new_id, utc_now
from workboard.engine.models.board import default_board
from workboard.engine.models.enums import ContentBlockType, PageType
from workboard.engine.models.page import ContentBlock, DatabaseConfig, Page, PageUpdate
from workboard.engine.models.workspace import WorkspaceState
from workboard.engine.operations.reorder import move_item, transfer_item

MAX_PAGE_DEPTH = 10
DEFAULT_BOARD_TITLE = "New Board"

# Upper bound for ancestor walks; a corrupt parent cycle must not loop forever.
MAX_TREE_WALK = 20


# ---------------------------------------------------------------------------
# Construction
# ---------------------------------------------------------------------------


def create_page(
    workspace_id: str,
    title: str,
    type: PageType = PageType.DATABASE,  # noqa: A002
    parent_page_id: str | None = None,
    position: int = 0,
) -> Page:
    """Build a new page with a fresh id.  Does not touch any state."""
    now = utc_now()
    page = Page(
        id=new_id("page"),
        workspace_id=workspace_id,
        parent_page_id=parent_page_id,
        title=title,
        type=type,
        position=position,
        created_at=now,
        updated_at=now,
    )
    if type == PageType.DOCUMENT:
        block = ContentBlock(id=new_id("block"), type=ContentBlockType.PARAGRAPH, created_at=now, updated_at=now)
        return page.model_copy(update={"content": [block]})
    return page.model_copy(update={"database_config": DatabaseConfig(board_state=default_board())})


# ---------------------------------------------------------------------------
# Queries
# ---------------------------------------------------------------------------


def get_page(state: WorkspaceState, page_id: str) -> Page:
    """Return a page.  Raises ``NotFoundError`` if missing."""
    page = state.pages.get(page_id)
    if page is None:
        raise NotFoundError(page_id)
    return page


def get_page_children(pages: Mapping[str, Page], parent_id: str) -> list[Page]:
    return sorted((p for p in pages.values() if p.parent_page_id == parent_id), key=lambda p: p.position)


def get_root_pages(pages: Mapping[str, Page], workspace_id: str) -> list[Page]:
    return sorted(
        (p for p in pages.values() if p.workspace_id == workspace_id and p.parent_page_id is None),
        key=lambda p: p.position,
    )


def get_page_depth(pages: Mapping[str, Page], page_id: str) -> int:
    """Number of ancestors above *page_id* (0 for a root page)."""
    depth = 0
    current = pages.get(page_id)
    while current is not None and current.parent_page_id and depth < MAX_TREE_WALK:
        current = pages.get(current.parent_page_id)
        depth += 1
    return depth


def get_page_path(pages: Mapping[str, Page], page_id: str) -> list[Page]:
    """Pages from the root down to *page_id* (inclusive)."""
    path: list[Page] = []
    current = pages.get(page_id)
    while current is not None and len(path) < MAX_TREE_WALK:
        path.insert(0, current)
        if not current.parent_page_id:
            break
        current = pages.get(current.parent_page_id)
    return path


def get_descendant_ids(pages: Mapping[str, Page], page_id: str) -> set[str]:
    """All page ids reachable below *page_id* through ``parent_page_id``."""
    children_of: dict[str, list[str]] = {}
    for page in pages.values():
        if page.parent_page_id:
            children_of.setdefault(page.parent_page_id, []).append(page.id)

    found: set[str] = set()
    stack = list(children_of.get(page_id, []))
    while stack:
        child = stack.pop()
        if child in found or child == page_id:
            continue
        found.add(child)
        stack.extend(children_of.get(child, []))
    return found


def first_root_page_id(state: WorkspaceState, workspace_id: str) -> str | None:
    roots = get_root_pages(state.pages, workspace_id)
    return roots[0].id if roots else None


@dataclass
class PageTreeNode:
    page: Page
    depth: int
    children: list[PageTreeNode] = field(default_factory=list)


def get_page_tree(pages: Mapping[str, Page], workspace_id: str) -> list[PageTreeNode]:
    """Nested view of a workspace's pages, siblings ordered by position."""

    def build(siblings: list[Page], depth: int) -> list[PageTreeNode]:
        if depth >= MAX_TREE_WALK:
            return []
        return [
            PageTreeNode(page=p, depth=depth, children=build(get_page_children(pages, p.id), depth + 1))
            for p in siblings
        ]

    return build(get_root_pages(pages, workspace_id), 0)


def search_pages(pages: Mapping[str, Page], query: str, workspace_id: str | None = None) -> list[Page]:
    """Case-insensitive title search.  Exact matches first, then most recently updated."""
    needle = query.lower()
    matches = [
        p
        for p in pages.values()
        if (workspace_id is None or p.workspace_id == workspace_id) and needle in p.title.lower()
    ]
    matches.sort(key=lambda p: p.updated_at, reverse=True)
    matches.sort(key=lambda p: p.title.lower() != needle)
    return matches


# ---------------------------------------------------------------------------
# Validation helpers
# ---------------------------------------------------------------------------


def _check_parent(page: Page, pages: Mapping[str, Page]) -> None:
    """Validate *page*'s parent reference against *pages* (which already include *page*)."""
    if page.parent_page_id is None:
        return
    parent = pages.get(page.parent_page_id)
    if parent is None:
        msg = f"Parent page {page.parent_page_id} not found"
        raise ValidationError(msg)
    if parent.workspace_id != page.workspace_id:
        msg = f"Parent page {parent.id} belongs to another workspace"
        raise ValidationError(msg)
    if page.id in {p.id for p in get_page_path(pages, parent.id)}:
        msg = "Cannot move page under its own descendant"
        raise InvariantViolation(msg)
    _check_depth(pages, page.id)


def _replace_page(state: WorkspaceState, page: Page, **extra: object) -> WorkspaceState:
    return state.model_copy(update={"pages": {**state.pages, page.id: page}, **extra})


# ---------------------------------------------------------------------------
# Mutations
# ---------------------------------------------------------------------------


def add_page_to_state(state: WorkspaceState, page: Page) -> WorkspaceState:
    """Insert *page*.  Raises ``ValidationError`` if its workspace or parent is unknown."""
    if not state.has_workspace(page.workspace_id):
        msg = f"Workspace {page.workspace_id} not found"
        raise ValidationError(msg)
    if page.id in state.pages:
        msg = f"Page {page.id} already exists"
        raise ValidationError(msg)
    pages = {**state.pages, page.id: page}
    _check_parent(page, pages)
    return state.model_copy(update={"pages": pages})


@dataclass(frozen=True)
class PageDeletion:
    """Outcome of ``delete_page``: the new state and every id that was removed."""

    state: WorkspaceState
    removed_ids: frozenset[str]


def delete_page(state: WorkspaceState, page_id: str) -> PageDeletion:
    """Delete a page and all its descendants.

    ``active_page_id`` is left as is; the caller picks a new active page from
    ``removed_ids`` (see ``remove_page``).
    """
    get_page(state, page_id)
    removed = {page_id} | get_descendant_ids(state.pages, page_id)
    pages = {pid: p for pid, p in state.pages.items() if pid not in removed}
    return PageDeletion(state=state.model_copy(update={"pages": pages}), removed_ids=frozenset(removed))


def ensure_root_board(state: WorkspaceState, workspace_id: str) -> tuple[WorkspaceState, str | None]:
    """Synthesize a root board if *workspace_id* has none.

    Returns the (possibly unchanged) state and the id of the new board, or
    ``None`` when nothing was created.
    """
    roots = get_root_pages(state.pages, workspace_id)
    if any(p.is_board for p in roots):
        return state, None
    position = roots[-1].position + 1 if roots else 0
    board = create_page(workspace_id, DEFAULT_BOARD_TITLE, PageType.DATABASE, position=position)
    return state.model_copy(update={"pages": {**state.pages, board.id: board}}), board.id


def remove_page(state: WorkspaceState, page_id: str) -> WorkspaceState:
    """Delete a page (cascading) and keep the workspace usable.

    If the workspace lost its last root board, a "New Board" is synthesized
    and, in the active workspace, becomes the active page.  If the active page
    was removed otherwise, the first remaining root page takes its place.
    """
    workspace_id = get_page(state, page_id).workspace_id
    deletion = delete_page(state, page_id)
    next_state, board_id = ensure_root_board(deletion.state, workspace_id)

    active = next_state.active_page_id
    if board_id is not None and workspace_id == next_state.active_workspace_id:
        active = board_id
    elif active is None or active in deletion.removed_ids:
        active = first_root_page_id(next_state, next_state.active_workspace_id)
    return next_state.model_copy(update={"active_page_id": active})


def update_page(state: WorkspaceState, page_id: str, updates: PageUpdate) -> WorkspaceState:
    """Apply the fields explicitly set on *updates*.

    A parent change is validated for existence, workspace, cycles and depth.
    """
    page = get_page(state, page_id)
    changes = {name: getattr(updates, name) for name in updates.model_fields_set}
    if not changes:
        return state

    updated = page.model_copy(update={**changes, "updated_at": utc_now()})
    if "parent_page_id" in changes and changes["parent_page_id"] != page.parent_page_id:
        _check_parent(updated, {**state.pages, page_id: updated})
    return _replace_page(state, updated)


def rename_page(state: WorkspaceState, page_id: str, title: str) -> WorkspaceState:
    return update_page(state, page_id, PageUpdate(title=title))


def move_page_under(
    state: WorkspaceState, page_id: str, new_parent_page_id: str | None, position: int = 0
) -> WorkspaceState:
    return update_page(state, page_id, PageUpdate(parent_page_id=new_parent_page_id, position=position))


def toggle_page_collapsed(state: WorkspaceState, page_id: str) -> WorkspaceState:
    page = get_page(state, page_id)
    return update_page(state, page_id, PageUpdate(collapsed=not page.collapsed))


def set_active_page(state: WorkspaceState, page_id: str) -> WorkspaceState:
    """Select a page, switching to its workspace if needed."""
    page = get_page(state, page_id)
    if state.active_page_id == page_id and state.active_workspace_id == page.workspace_id:
        return state
    return state.model_copy(update={"active_page_id": page_id, "active_workspace_id": page.workspace_id})


def _renumber(pages: dict[str, Page], ordered_ids: Iterable[str], parent_page_id: str | None, now: str) -> None:
    for index, pid in enumerate(ordered_ids):
        page = pages[pid]
        if page.position != index or page.parent_page_id != parent_page_id:
            pages[pid] = page.model_copy(update={"position": index, "parent_page_id": parent_page_id, "updated_at": now})


def reorder_pages(state: WorkspaceState, page_ids: list[str], parent_page_id: str | None = None) -> WorkspaceState:
    """Make *page_ids* the ordered children of *parent_page_id* (root when ``None``).

    All pages must live in the parent's workspace (or share one when
    re-rooting).  A workspace whose last root board is nested here gets a
    fresh root board.
    """
    moved = [get_page(state, pid) for pid in page_ids]
    if parent_page_id is not None:
        workspace_id = get_page(state, parent_page_id).workspace_id
        ancestors = {p.id for p in get_page_path(state.pages, parent_page_id)}
        if ancestors & set(page_ids):
            msg = "Cannot move page under its own descendant"
            raise InvariantViolation(msg)
    else:
        workspace_id = moved[0].workspace_id if moved else state.active_workspace_id
    foreign = [p.id for p in moved if p.workspace_id != workspace_id]
    if foreign:
        msg = f"Pages {', '.join(foreign)} belong to another workspace"
        raise ValidationError(msg)

    pages = dict(state.pages)
    _renumber(pages, page_ids, parent_page_id, utc_now())
    for pid in page_ids:
        _check_depth(pages, pid)

    next_state = state.model_copy(update={"pages": pages})
    if parent_page_id is not None and any(p.is_root for p in moved):
        next_state, _ = ensure_root_board(next_state, workspace_id)
    return next_state


def move_page(
    state: WorkspaceState,
    page_id: str,
    to_index: int,
    *,
    parent_page_id: str | None = None,
    workspace_id: str | None = None,
) -> WorkspaceState:
    """Drag a page to *to_index* among the children of *parent_page_id*.

    With *workspace_id* the page (and its subtree) moves to another workspace.
    Sibling positions on both sides are renumbered in the same transformation.
    """
    page = get_page(state, page_id)
    target_ws = workspace_id or page.workspace_id
    if not state.has_workspace(target_ws):
        msg = f"Workspace {target_ws} not found"
        raise ValidationError(msg)
    if parent_page_id is not None:
        parent = get_page(state, parent_page_id)
        if parent.workspace_id != target_ws:
            msg = f"Parent page {parent_page_id} belongs to another workspace"
            raise ValidationError(msg)

    subtree = {page_id} | get_descendant_ids(state.pages, page_id)
    if parent_page_id in subtree:
        msg = "Cannot move page under its own descendant"
        raise InvariantViolation(msg)

    now = utc_now()
    pages = dict(state.pages)
    if target_ws != page.workspace_id:
        for pid in subtree:
            pages[pid] = pages[pid].model_copy(update={"workspace_id": target_ws, "updated_at": now})

    source_ids = [p.id for p in _siblings(state.pages, page.workspace_id, page.parent_page_id)]
    if page.workspace_id == target_ws and page.parent_page_id == parent_page_id:
        source_ids, target_ids = [], move_item(source_ids, page_id, to_index)
    else:
        target_ids = [p.id for p in _siblings(state.pages, target_ws, parent_page_id)]
        source_ids, target_ids = transfer_item(source_ids, target_ids, page_id, to_index)

    _renumber(pages, source_ids, page.parent_page_id, now)
    _renumber(pages, target_ids, parent_page_id, now)
    _check_depth(pages, page_id)

    next_state = state.model_copy(update={"pages": pages})
    if target_ws != page.workspace_id:
        next_state, _ = ensure_root_board(next_state, page.workspace_id)
        if next_state.active_page_id in subtree and next_state.active_workspace_id != target_ws:
            next_state = next_state.model_copy(
                update={"active_page_id": first_root_page_id(next_state, next_state.active_workspace_id)}
            )
    return next_state


def _siblings(pages: Mapping[str, Page], workspace_id: str, parent_page_id: str | None) -> list[Page]:
    if parent_page_id is None:
        return get_root_pages(pages, workspace_id)
    return get_page_children(pages, parent_page_id)


def _check_depth(pages: Mapping[str, Page], page_id: str) -> None:
    subtree = {page_id} | get_descendant_ids(pages, page_id)
    if max(get_page_depth(pages, pid) for pid in subtree) >= MAX_PAGE_DEPTH:
        msg = f"Maximum page nesting depth ({MAX_PAGE_DEPTH}) exceeded"
        raise InvariantViolation(msg)


def duplicate_page(state: WorkspaceState, page_id: str, include_children: bool = False) -> WorkspaceState:
    """Copy a page (optionally with its subtree) right after the original.

    Copies get fresh page ids; card and block ids stay, they are only unique
    within their page.
    """
    original = get_page(state, page_id)
    now = utc_now()
    pages = dict(state.pages)

    def copy(page: Page, parent_id: str | None, title: str, position: int) -> str:
        clone = page.model_copy(
            update={
                "id": new_id("page"),
                "parent_page_id": parent_id,
                "title": title,
                "position": position,
                "created_at": now,
                "updated_at": now,
            },
            deep=True,
        )
        pages[clone.id] = clone
        if include_children:
            for child in get_page_children(state.pages, page.id):
                copy(child, clone.id, child.title, child.position)
        return clone.id

    clone_id = copy(original, original.parent_page_id, f"{original.title} (Copy)", original.position + 1)
    sibling_ids = [p.id for p in _siblings(state.pages, original.workspace_id, original.parent_page_id)]
    sibling_ids.insert(sibling_ids.index(page_id) + 1, clone_id)
    _renumber(pages, sibling_ids, original.parent_page_id, now)
    return state.model_copy(update={"pages": pages})


# ---------------------------------------------------------------------------
# Document content
# ---------------------------------------------------------------------------


def _document(state: WorkspaceState, page_id: str) -> Page:
    page = get_page(state, page_id)
    if page.type != PageType.DOCUMENT:
        msg = f"Page {page_id} is not a document page"
        raise InvariantViolation(msg)
    return page


def add_content_block(
    state: WorkspaceState, page_id: str, block: ContentBlock, position: int | None = None
) -> WorkspaceState:
    """Insert *block* at *position* (appended when omitted or out of range)."""
    content = list(_document(state, page_id).content or [])
    if position is not None and 0 <= position <= len(content):
        content.insert(position, block)
    else:
        content.append(block)
    return update_page(state, page_id, PageUpdate(content=content))


def update_content_block(state: WorkspaceState, page_id: str, block_id: str, **changes: object) -> WorkspaceState:
    content = list(_document(state, page_id).content or [])
    for index, block in enumerate(content):
        if block.id == block_id:
            content[index] = block.model_copy(update={**changes, "updated_at": utc_now()})
            return update_page(state, page_id, PageUpdate(content=content))
    raise NotFoundError(block_id)


def delete_content_block(state: WorkspaceState, page_id: str, block_id: str) -> WorkspaceState:
    content = _document(state, page_id).content or []
    return update_page(state, page_id, PageUpdate(content=[b for b in content if b.id != block_id]))


def update_database_config(state: WorkspaceState, page_id: str, config: DatabaseConfig) -> WorkspaceState:
    page = get_page(state, page_id)
    if not page.is_board:
        msg = f"Page {page_id} is not a database page"
        raise InvariantViolation(msg)
    return update_page(state, page_id, PageUpdate(database_config=config))
