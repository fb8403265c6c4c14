"""Sequence splice used by drag and drop.

Both helpers are remove-then-clamped-insert: the item is taken out of its
source, the target index is clamped to ``[0, len(target)]`` (an out-of-range
index means "append", never an error), and the item is inserted there.
Inputs are never modified; new lists are returned.
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import TypeVar

from workboard.engine.errors import NotFoundError

T = TypeVar("T")


def clamp_index(index: int, length: int) -> int:
    return max(0, min(index, length))


def move_item(sequence: Sequence[T], item: T, to_index: int) -> list[T]:
    """Move *item* to *to_index* within *sequence*.

    Raises ``NotFoundError`` if *item* is not in *sequence*.
    """
    items = list(sequence)
    try:
        items.remove(item)
    except ValueError:
        raise NotFoundError(item) from None
    items.insert(clamp_index(to_index, len(items)), item)
    return items


def transfer_item(source: Sequence[T], target: Sequence[T], item: T, to_index: int) -> tuple[list[T], list[T]]:
    """Move *item* from *source* into *target* at *to_index*.

    Both new sequences are computed together, so the item ends up in exactly
    one of them.  Raises ``NotFoundError`` if *item* is not in *source*.
    """
    remaining = list(source)
    try:
        remaining.remove(item)
    except ValueError:
        raise NotFoundError(item) from None
    inserted = [x for x in target if x != item]
    inserted.insert(clamp_index(to_index, len(inserted)), item)
    return remaining, inserted


def move_by_key(sequence: Sequence[T], key: str, to_index: int, *, attr: str = "id") -> list[T]:
    """``move_item`` for sequences of models addressed by an id attribute."""
    for item in sequence:
        if getattr(item, attr) == key:
            return move_item(sequence, item, to_index)
    raise NotFoundError(key)
