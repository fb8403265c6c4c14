"""In-process holder of the canonical workspace state.

The container is passed explicitly to whoever needs it (history, sync,
callers rendering the state); there is no module-level singleton.
Subscribers are called synchronously, in registration order, after every
``publish`` that actually changes the state.
"""

from __future__ import annotations

from collections.abc import Callable

from loguru import logger

from workboard.engine.models.workspace import WorkspaceState

Listener = Callable[[WorkspaceState], None]


class StateContainer:
    def __init__(self, state: WorkspaceState) -> None:
        self._state = state
        self._listeners: list[Listener] = []

    @property
    def state(self) -> WorkspaceState:
        return self._state

    # -- Mutation --------------------------------------------------------------

    def publish(self, state: WorkspaceState) -> None:
        """Install *state* and notify subscribers.  Publishing the current object is a no-op."""
        if state is self._state:
            return
        self._state = state
        for listener in list(self._listeners):
            listener(state)

    # -- Subscription ----------------------------------------------------------

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register *listener*; returns a function that removes it again."""
        self._listeners.append(listener)
        logger.debug("Container: {} subscribers", len(self._listeners))

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    @property
    def subscriber_count(self) -> int:
        return len(self._listeners)
