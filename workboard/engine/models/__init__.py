"""Data models for the state engine."""

from workboard.engine.models.base import WireModel, new_id, utc_now
from workboard.engine.models.board import (
    BoardState,
    Card,
    CardInput,
    Category,
    ChecklistItem,
    Column,
    FileAttachment,
    LinkItem,
    MoveCard,
    default_board,
)
from workboard.engine.models.enums import (
    ContentBlockType,
    PageType,
    PrimaryView,
    Priority,
    StateShape,
    SyncPhase,
)
from workboard.engine.models.page import ContentBlock, DatabaseConfig, Page, PageUpdate
from workboard.engine.models.sync import (
    SCHEMA_VERSION,
    Identity,
    IdentityProvider,
    StateSnapshot,
    StaticIdentity,
    SyncStatus,
    User,
)
from workboard.engine.models.workspace import (
    Workspace,
    WorkspaceInput,
    WorkspaceState,
    WorkspaceUpdate,
)

__all__ = [
    "SCHEMA_VERSION",
    # Board
    "BoardState",
    "Card",
    "CardInput",
    "Category",
    "ChecklistItem",
    "Column",
    # Page
    "ContentBlock",
    # Enums
    "ContentBlockType",
    "DatabaseConfig",
    "FileAttachment",
    # Sync
    "Identity",
    "IdentityProvider",
    "LinkItem",
    "MoveCard",
    "Page",
    "PageType",
    "PageUpdate",
    "PrimaryView",
    "Priority",
    "StateShape",
    "StateSnapshot",
    "StaticIdentity",
    "SyncPhase",
    "SyncStatus",
    "User",
    # Base
    "WireModel",
    # Workspace
    "Workspace",
    "WorkspaceInput",
    "WorkspaceState",
    "WorkspaceUpdate",
    "default_board",
    "new_id",
    "utc_now",
]
