"""Mutation library for the state engine.

Each module provides pure functions ``(state, ...) -> state'`` grouped by
entity.  They never mutate their input and raise domain exceptions from
``workboard.engine.errors`` (``ValidationError``, ``NotFoundError``,
``InvariantViolation``); reporting them is the caller's responsibility.
"""
