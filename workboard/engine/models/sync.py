"""Persistence envelope, sync status and identity models."""

from __future__ import annotations

import json
from datetime import UTC, datetime
from typing import Any, Protocol, runtime_checkable

import pydantic
from pydantic import BaseModel

from workboard.engine.errors import MigrationParseError
from workboard.engine.models.base import WireModel
from workboard.engine.models.enums import SyncPhase
from workboard.engine.models.workspace import WorkspaceState

SCHEMA_VERSION = 2
"""1 = legacy app state, 2 = workspace state."""

# -- Stored snapshot ---------------------------------------------------------


class StateSnapshot(WireModel):
    """A state blob as written to a store, stamped for last-writer-wins.

    ``state`` is kept as raw JSON data: it may be a legacy shape that has not
    been migrated yet.
    """

    updated_at: datetime | None = None
    schema_version: int = SCHEMA_VERSION
    state: Any = None

    @classmethod
    def of(cls, state: WorkspaceState, updated_at: datetime | None = None) -> StateSnapshot:
        return cls(updated_at=updated_at or datetime.now(UTC), state=state.dump())

    @classmethod
    def from_json(cls, text: str) -> StateSnapshot:
        """Parse stored text.  Raises ``MigrationParseError`` if it is not JSON.

        Blobs written before the envelope existed (bare legacy or canonical
        state) are wrapped as ``state`` with no ``updated_at``.
        """
        try:
            data = json.loads(text)
        except json.JSONDecodeError as exc:
            msg = f"Stored state is not valid JSON: {exc}"
            raise MigrationParseError(msg) from None

        if isinstance(data, dict) and "state" in data and "schemaVersion" in data:
            try:
                return cls.model_validate(data)
            except pydantic.ValidationError:
                pass
        return cls(state=data)

    def to_json(self) -> str:
        return self.model_dump_json(by_alias=True, exclude_none=True, indent=2)

    def is_newer_than(self, other: StateSnapshot | None) -> bool:
        """Last-writer-wins comparison.  An unstamped snapshot is never newer."""
        if self.updated_at is None:
            return False
        if other is None or other.updated_at is None:
            return True
        return self.updated_at > other.updated_at


# -- Sync status -------------------------------------------------------------


class SyncStatus(BaseModel):
    """Snapshot of the persistence pipeline exposed to callers."""

    migrated: bool = False
    pending: bool = False
    syncing: bool = False
    phase: SyncPhase = SyncPhase.IDLE
    error: str | None = None
    last_synced: datetime | None = None


# -- Identity ----------------------------------------------------------------


class User(BaseModel):
    id: str
    email: str | None = None


class Identity(BaseModel):
    """What the identity provider reports.  ``user is None`` = signed out."""

    user: User | None = None
    loading: bool = False


@runtime_checkable
class IdentityProvider(Protocol):
    def current(self) -> Identity: ...


class StaticIdentity:
    """Identity provider returning a fixed identity (CLI, tests)."""

    def __init__(self, user: User | None = None) -> None:
        self._identity = Identity(user=user)

    def current(self) -> Identity:
        return self._identity

    def sign_in(self, user: User) -> None:
        self._identity = Identity(user=user)

    def sign_out(self) -> None:
        self._identity = Identity(user=None)

