"""Shared test fixtures.

Everything runs in-process against temporary directories.  S3 integration
tests are marked with ``@pytest.mark.s3`` and skipped unless ``WORKBOARD_S3_*``
variables are set.
"""

from __future__ import annotations

from collections.abc import Callable, Iterator

import pytest

from workboard.engine.settings import _get_settings_cached


@pytest.fixture
def set_env(monkeypatch: pytest.MonkeyPatch) -> Iterator[Callable[[str, str], None]]:
    """Set an env var and invalidate the settings cache (restored after the test)."""

    def _set_env(key: str, value: str) -> None:
        monkeypatch.setenv(key, value)
        _get_settings_cached.cache_clear()

    yield _set_env
    _get_settings_cached.cache_clear()
