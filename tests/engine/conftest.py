"""Shared fixtures for state engine tests."""

from __future__ import annotations

import pytest

from workboard.engine.defaults import DEFAULT_BOARD_PAGE_ID, default_workspace_state
from workboard.engine.models import CardInput, WorkspaceState
from workboard.engine.operations.boards import upsert_card


@pytest.fixture
def state() -> WorkspaceState:
    """Default state: one workspace, a "Getting Started" document and an empty board."""
    return default_workspace_state()


@pytest.fixture
def board_state(state: WorkspaceState) -> WorkspaceState:
    """Default state whose board holds ``todo: [c, d]`` and ``in-progress: [e]``."""
    # Cards are placed on top, so insert in reverse order.
    for card_id, column_id in (("d", "todo"), ("c", "todo"), ("e", "in-progress")):
        state = upsert_card(state, DEFAULT_BOARD_PAGE_ID, column_id, CardInput(id=card_id, title=card_id.upper()))
    return state
