"""Workspace and root aggregate models.

``WorkspaceState`` is the single source of truth.  It is never mutated in
place: every command builds a new value (``model_copy(update=...)`` with
fresh containers for whatever changed).
"""

from __future__ import annotations

from pydantic import Field

from workboard.engine.models.base import WireModel, utc_now
from workboard.engine.models.page import Page


class Workspace(WireModel):
    id: str
    name: str
    icon: str | None = None
    description: str | None = None
    created_at: str = Field(default_factory=utc_now)
    updated_at: str = Field(default_factory=utc_now)


class WorkspaceState(WireModel):
    active_workspace_id: str
    active_page_id: str | None = None
    workspaces: list[Workspace] = Field(default_factory=list, description="Ordered, first = default")
    pages: dict[str, Page] = Field(default_factory=dict)
    sidebar_collapsed: bool = False

    def workspace(self, workspace_id: str) -> Workspace | None:
        for workspace in self.workspaces:
            if workspace.id == workspace_id:
                return workspace
        return None

    def has_workspace(self, workspace_id: str) -> bool:
        return self.workspace(workspace_id) is not None

    def pages_in(self, workspace_id: str) -> list[Page]:
        return [p for p in self.pages.values() if p.workspace_id == workspace_id]


# -- Command inputs ----------------------------------------------------------


class WorkspaceInput(WireModel):
    """Input for creating a new workspace."""

    name: str
    icon: str | None = None
    description: str | None = None


class WorkspaceUpdate(WireModel):
    """Partial update -- blank or missing fields keep the current value."""

    name: str | None = None
    icon: str | None = None
    description: str | None = None
