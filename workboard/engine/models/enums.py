"""Shared enumerations used across the state engine."""

from __future__ import annotations

from enum import StrEnum

# -- Board -------------------------------------------------------------------


class Priority(StrEnum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class PrimaryView(StrEnum):
    KANBAN = "kanban"
    TABLE = "table"


# -- Page --------------------------------------------------------------------


class PageType(StrEnum):
    """Closed tag set of page kinds.  ``database`` pages are boards."""

    DOCUMENT = "document"
    DATABASE = "database"


class ContentBlockType(StrEnum):
    PARAGRAPH = "paragraph"
    HEADING1 = "heading1"
    HEADING2 = "heading2"
    HEADING3 = "heading3"
    BULLET_LIST = "bulletList"
    NUMBERED_LIST = "numberedList"
    TODO_LIST = "todoList"
    QUOTE = "quote"
    DIVIDER = "divider"
    CODE = "code"
    TABLE = "table"
    IMAGE = "image"
    FILE = "file"


# -- Migration ---------------------------------------------------------------


class StateShape(StrEnum):
    """Known shapes of a persisted state blob."""

    CANONICAL = "canonical"
    LEGACY_APP = "legacy_app"
    LEGACY_BOARD = "legacy_board"
    UNKNOWN = "unknown"


# -- Sync --------------------------------------------------------------------


class SyncPhase(StrEnum):
    """Persistence pipeline phase: idle -> dirty -> writing_local -> writing_remote -> idle."""

    IDLE = "idle"
    DIRTY = "dirty"
    WRITING_LOCAL = "writing_local"
    WRITING_REMOTE = "writing_remote"
