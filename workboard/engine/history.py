"""Undo/redo over whole-state snapshots.

States are immutable, so a history entry is simply the previous
``WorkspaceState`` object.  Rapid edits sharing a coalescing key (typing in a
title, say) collapse into a single undo step: within ``coalesce_window``
seconds of the previous edit with the same key, no new entry is pushed and
the snapshot from before the burst stays the undo target.
"""

from __future__ import annotations

import time
from collections import deque
from collections.abc import Callable, Hashable

from loguru import logger

from workboard.engine.container import StateContainer
from workboard.engine.models.workspace import WorkspaceState

Command = Callable[[WorkspaceState], WorkspaceState]


class HistoryManager:
    def __init__(
        self,
        container: StateContainer,
        limit: int = 50,
        coalesce_window: float = 1.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if limit < 1:
            msg = f"History limit must be positive, got {limit}"
            raise ValueError(msg)
        self._container = container
        self._undo: deque[WorkspaceState] = deque(maxlen=limit)
        self._redo: deque[WorkspaceState] = deque(maxlen=limit)
        self._coalesce_window = coalesce_window
        self._clock = clock
        self._last_key: Hashable | None = None
        self._last_at: float | None = None

    # -- Commands --------------------------------------------------------------

    def apply(self, command: Command, *, coalesce_key: Hashable | None = None) -> WorkspaceState:
        """Run *command* against the current state and record the transition.

        Exceptions from *command* propagate; nothing is recorded or published
        in that case.  A command that returns the same state object is a
        no-op and does not touch the stacks.
        """
        previous = self._container.state
        state = command(previous)
        if state is previous:
            return state

        now = self._clock()
        if not self._continues_burst(coalesce_key, now):
            self._undo.append(previous)
        self._redo.clear()
        self._last_key = coalesce_key
        self._last_at = now

        self._container.publish(state)
        return state

    def _continues_burst(self, key: Hashable | None, now: float) -> bool:
        return (
            key is not None
            and key == self._last_key
            and self._last_at is not None
            and now - self._last_at <= self._coalesce_window
            and bool(self._undo)
        )

    def undo(self) -> WorkspaceState | None:
        """Restore the previous state.  Returns None when there is nothing to undo."""
        if not self._undo:
            return None
        self._redo.append(self._container.state)
        state = self._undo.pop()
        self._end_burst()
        self._container.publish(state)
        logger.debug("History: undo ({} left)", len(self._undo))
        return state

    def redo(self) -> WorkspaceState | None:
        """Re-apply the last undone state.  Returns None when there is nothing to redo."""
        if not self._redo:
            return None
        self._undo.append(self._container.state)
        state = self._redo.pop()
        self._end_burst()
        self._container.publish(state)
        logger.debug("History: redo ({} left)", len(self._redo))
        return state

    def reset(self) -> None:
        """Forget all history, e.g. after the state was replaced wholesale."""
        self._undo.clear()
        self._redo.clear()
        self._end_burst()

    def _end_burst(self) -> None:
        self._last_key = None
        self._last_at = None

    # -- Query -----------------------------------------------------------------

    @property
    def can_undo(self) -> bool:
        return bool(self._undo)

    @property
    def can_redo(self) -> bool:
        return bool(self._redo)
