"""Page data models.

A page is a node in a per-workspace tree (``parent_page_id``).  Database pages
wrap a ``BoardState``; document pages hold an ordered list of content blocks.
"""

from __future__ import annotations

from typing import Any

from pydantic import Field

from workboard.engine.models.base import WireModel, utc_now
from workboard.engine.models.board import BoardState, default_board
from workboard.engine.models.enums import ContentBlockType, PageType, PrimaryView


class ContentBlock(WireModel):
    id: str
    type: ContentBlockType = ContentBlockType.PARAGRAPH
    content: str | dict[str, Any] = ""
    metadata: dict[str, Any] | None = None
    created_at: str = Field(default_factory=utc_now)
    updated_at: str = Field(default_factory=utc_now)


class DatabaseConfig(WireModel):
    board_state: BoardState = Field(default_factory=default_board)
    primary_view: PrimaryView = PrimaryView.KANBAN
    view_settings: dict[str, Any] | None = None


class Page(WireModel):
    id: str
    workspace_id: str
    parent_page_id: str | None = None
    title: str = ""
    icon: str | None = None
    type: PageType = PageType.DATABASE
    position: int = Field(default=0, description="Order among siblings")
    collapsed: bool = False
    created_at: str = Field(default_factory=utc_now)
    updated_at: str = Field(default_factory=utc_now)

    content: list[ContentBlock] | None = None
    database_config: DatabaseConfig | None = None

    @property
    def is_board(self) -> bool:
        return self.type == PageType.DATABASE

    @property
    def is_root(self) -> bool:
        return self.parent_page_id is None


class PageUpdate(WireModel):
    """Partial page update -- only fields explicitly set are applied.

    Use ``model_dump(exclude_unset=True)`` to extract the provided fields, so
    that ``parent_page_id=None`` (move to root) is distinguishable from "not
    given".
    """

    title: str | None = None
    icon: str | None = None
    parent_page_id: str | None = None
    position: int | None = None
    collapsed: bool | None = None
    content: list[ContentBlock] | None = None
    database_config: DatabaseConfig | None = None
