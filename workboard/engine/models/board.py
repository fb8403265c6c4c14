"""Board data models: cards, columns, categories.

A column does not own its cards, it only references them by id.  The card
objects live in ``BoardState.cards``; the order of ``Column.card_ids`` is the
visible order.
"""

from __future__ import annotations

from pydantic import Field

from workboard.engine.models.base import WireModel, utc_now
from workboard.engine.models.enums import Priority

# -- Card parts --------------------------------------------------------------


class LinkItem(WireModel):
    label: str
    url: str
    checklist_item_id: str | None = None


class ChecklistItem(WireModel):
    id: str
    text: str
    checked: bool = False


class FileAttachment(WireModel):
    """Opaque reference to an uploaded file; the engine never reads the bytes."""

    id: str
    name: str
    size: int = 0
    type: str = Field(default="application/octet-stream", description="MIME type")
    url: str
    uploaded_at: str = Field(default_factory=utc_now)


# -- Board -------------------------------------------------------------------


class Card(WireModel):
    id: str
    title: str
    description: str | None = None
    status: str | None = None
    priority: Priority = Priority.MEDIUM
    category_ids: list[str] = Field(default_factory=list)
    due_date: str | None = None
    created_at: str = Field(default_factory=utc_now)
    links: list[LinkItem] | None = None
    files: list[FileAttachment] | None = None
    checklist: list[ChecklistItem] | None = None


class Column(WireModel):
    id: str
    name: str
    card_ids: list[str] = Field(default_factory=list, description="Ordered card ids, first = top")


class Category(WireModel):
    id: str
    name: str
    color: str | None = None


class BoardState(WireModel):
    columns: list[Column] = Field(default_factory=list)
    cards: dict[str, Card] = Field(default_factory=dict)
    categories: list[Category] = Field(default_factory=list)

    def column(self, column_id: str) -> Column | None:
        for column in self.columns:
            if column.id == column_id:
                return column
        return None

    def column_of(self, card_id: str) -> Column | None:
        """Return the column whose sequence holds *card_id*, if any."""
        for column in self.columns:
            if card_id in column.card_ids:
                return column
        return None


def default_board() -> BoardState:
    return BoardState(
        columns=[
            Column(id="todo", name="To Do"),
            Column(id="in-progress", name="In Progress"),
            Column(id="done", name="Done"),
        ],
        categories=[Category(id="general", name="General", color="#64748b")],
    )


# -- Command inputs ----------------------------------------------------------


class CardInput(WireModel):
    """Create-or-update payload for a card.

    ``id`` is auto-generated when omitted.  On update, fields left ``None``
    keep the existing card's value.
    """

    id: str | None = None
    title: str
    description: str | None = None
    status: str | None = None
    priority: Priority | None = None
    category_ids: list[str] | None = None
    due_date: str | None = None
    links: list[LinkItem] | None = None
    files: list[FileAttachment] | None = None
    checklist: list[ChecklistItem] | None = None


class MoveCard(WireModel):
    """Result of a drag gesture: put *card_id* at *to_index* of *to_column_id*."""

    card_id: str
    from_column_id: str
    to_column_id: str
    to_index: int
