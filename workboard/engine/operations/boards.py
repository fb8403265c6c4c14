"""Board operations: cards, columns, categories.

Boards live inside database pages (``page.database_config.board_state``);
every function here is addressed by the page id.  A card id sits in exactly
one column's ``card_ids``: each operation computes all affected column
sequences together and installs them in a single new state.
"""

from __future__ import annotations

import re
from collections.abc import Callable

from workboard.engine.errors import InvariantViolation, NotFoundError, ValidationError
from workboard.engine.models.base import new_id, utc_now
from workboard.engine.models.board import BoardState, Card, CardInput, Category, Column, MoveCard
from workboard.engine.models.page import DatabaseConfig
from workboard.engine.models.workspace import WorkspaceState
from workboard.engine.operations.pages import get_page
from workboard.engine.operations.reorder import move_by_key, move_item, transfer_item

# ---------------------------------------------------------------------------
# Access
# ---------------------------------------------------------------------------


def get_board(state: WorkspaceState, page_id: str) -> BoardState:
    """Return the board of a database page.

    Raises ``NotFoundError`` for an unknown page and ``InvariantViolation``
    for a page that is not a board.
    """
    page = get_page(state, page_id)
    if not page.is_board or page.database_config is None:
        msg = f"Page {page_id} is not a board"
        raise InvariantViolation(msg)
    return page.database_config.board_state


def update_board(state: WorkspaceState, page_id: str, updater: Callable[[BoardState], BoardState]) -> WorkspaceState:
    """Replace a page's board with ``updater(board)``.  Same state back if unchanged."""
    board = get_board(state, page_id)
    new_board = updater(board)
    if new_board is board:
        return state
    page = state.pages[page_id]
    config = (page.database_config or DatabaseConfig()).model_copy(update={"board_state": new_board})
    updated = page.model_copy(update={"database_config": config, "updated_at": utc_now()})
    return state.model_copy(update={"pages": {**state.pages, page_id: updated}})


def _column(board: BoardState, column_id: str) -> Column:
    column = board.column(column_id)
    if column is None:
        msg = f"Column {column_id} not found"
        raise ValidationError(msg)
    return column


def _with_columns(board: BoardState, replaced: dict[str, Column]) -> list[Column]:
    return [replaced.get(c.id, c) for c in board.columns]


# ---------------------------------------------------------------------------
# Cards
# ---------------------------------------------------------------------------


def upsert_card(state: WorkspaceState, page_id: str, column_id: str, body: CardInput) -> WorkspaceState:
    """Create a card, or update an existing one, and place it in *column_id*.

    A new card (or one arriving from another column) goes to the top of the
    column; an updated card already in *column_id* keeps its position.
    """

    def apply(board: BoardState) -> BoardState:
        target = _column(board, column_id)
        card_id = body.id or new_id("card")
        existing = board.cards.get(card_id)

        fields = {
            name: getattr(body, name)
            for name in body.model_fields_set - {"id"}
            if getattr(body, name) is not None
        }
        if existing is not None:
            card = existing.model_copy(update=fields)
        else:
            card = Card(id=card_id, created_at=utc_now(), **fields)

        columns = board.columns
        if card_id not in target.card_ids:
            columns = [_place_on_top(c, card_id, c.id == column_id) for c in board.columns]
        return board.model_copy(update={"cards": {**board.cards, card_id: card}, "columns": columns})

    return update_board(state, page_id, apply)


def _place_on_top(column: Column, card_id: str, is_target: bool) -> Column:
    if is_target:
        return column.model_copy(update={"card_ids": [card_id, *column.card_ids]})
    if card_id in column.card_ids:
        return column.model_copy(update={"card_ids": [cid for cid in column.card_ids if cid != card_id]})
    return column


def delete_card(state: WorkspaceState, page_id: str, card_id: str) -> WorkspaceState:
    """Remove a card and its column reference.  Raises ``NotFoundError`` if missing."""

    def apply(board: BoardState) -> BoardState:
        if card_id not in board.cards:
            raise NotFoundError(card_id)
        cards = {cid: c for cid, c in board.cards.items() if cid != card_id}
        columns = [
            c.model_copy(update={"card_ids": [cid for cid in c.card_ids if cid != card_id]})
            if card_id in c.card_ids
            else c
            for c in board.columns
        ]
        return board.model_copy(update={"cards": cards, "columns": columns})

    return update_board(state, page_id, apply)


def move_card(state: WorkspaceState, page_id: str, move: MoveCard) -> WorkspaceState:
    """Apply a drag result: remove from the source column, clamped insert into the target.

    Raises ``ValidationError`` for unknown columns and ``NotFoundError`` when
    the card is not in the source column (callers treat that as a no-op).
    """

    def apply(board: BoardState) -> BoardState:
        source = _column(board, move.from_column_id)
        if move.from_column_id == move.to_column_id:
            card_ids = move_item(source.card_ids, move.card_id, move.to_index)
            if card_ids == source.card_ids:
                return board
            replaced = {source.id: source.model_copy(update={"card_ids": card_ids})}
        else:
            target = _column(board, move.to_column_id)
            source_ids, target_ids = transfer_item(source.card_ids, target.card_ids, move.card_id, move.to_index)
            replaced = {
                source.id: source.model_copy(update={"card_ids": source_ids}),
                target.id: target.model_copy(update={"card_ids": target_ids}),
            }
        return board.model_copy(update={"columns": _with_columns(board, replaced)})

    return update_board(state, page_id, apply)


# ---------------------------------------------------------------------------
# Columns
# ---------------------------------------------------------------------------


def _slug(value: str) -> str:
    return re.sub(r"(^-|-$)", "", re.sub(r"[^a-z0-9]+", "-", value.lower()))


def add_column(state: WorkspaceState, page_id: str, name: str, column_id: str | None = None) -> WorkspaceState:
    """Append an empty column.  The id defaults to a unique slug of *name*."""

    def apply(board: BoardState) -> BoardState:
        taken = {c.id for c in board.columns}
        if column_id is not None and column_id in taken:
            msg = f"Column {column_id} already exists"
            raise ValidationError(msg)
        new_column_id = column_id or _slug(name) or "column"
        base, n = new_column_id, 2
        while new_column_id in taken:
            new_column_id = f"{base}-{n}"
            n += 1
        return board.model_copy(update={"columns": [*board.columns, Column(id=new_column_id, name=name.strip())]})

    return update_board(state, page_id, apply)


def rename_column(state: WorkspaceState, page_id: str, column_id: str, name: str) -> WorkspaceState:
    def apply(board: BoardState) -> BoardState:
        column = _column(board, column_id)
        if column.name == name:
            return board
        replaced = {column_id: column.model_copy(update={"name": name})}
        return board.model_copy(update={"columns": _with_columns(board, replaced)})

    return update_board(state, page_id, apply)


def delete_column(state: WorkspaceState, page_id: str, column_id: str) -> WorkspaceState:
    """Remove a column together with the cards it holds."""

    def apply(board: BoardState) -> BoardState:
        column = _column(board, column_id)
        doomed = set(column.card_ids)
        return board.model_copy(
            update={
                "columns": [c for c in board.columns if c.id != column_id],
                "cards": {cid: c for cid, c in board.cards.items() if cid not in doomed},
            }
        )

    return update_board(state, page_id, apply)


def reorder_columns(state: WorkspaceState, page_id: str, column_id: str, to_index: int) -> WorkspaceState:
    def apply(board: BoardState) -> BoardState:
        _column(board, column_id)
        return board.model_copy(update={"columns": move_by_key(board.columns, column_id, to_index)})

    return update_board(state, page_id, apply)


# ---------------------------------------------------------------------------
# Categories
# ---------------------------------------------------------------------------


def add_category(state: WorkspaceState, page_id: str, name: str, color: str | None = None) -> WorkspaceState:
    def apply(board: BoardState) -> BoardState:
        category = Category(id=new_id("category"), name=name.strip(), color=color)
        return board.model_copy(update={"categories": [*board.categories, category]})

    return update_board(state, page_id, apply)


def delete_category(state: WorkspaceState, page_id: str, category_id: str) -> WorkspaceState:
    """Remove a category and strip it from every card that used it."""

    def apply(board: BoardState) -> BoardState:
        if not any(c.id == category_id for c in board.categories):
            raise NotFoundError(category_id)
        cards = {
            cid: card.model_copy(update={"category_ids": [x for x in card.category_ids if x != category_id]})
            if category_id in card.category_ids
            else card
            for cid, card in board.cards.items()
        }
        categories = [c for c in board.categories if c.id != category_id]
        return board.model_copy(update={"categories": categories, "cards": cards})

    return update_board(state, page_id, apply)
