"""Configuration loaded from WORKBOARD_* environment variables."""

from __future__ import annotations

from functools import lru_cache
from typing import TYPE_CHECKING, Literal

from pydantic import SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict

if TYPE_CHECKING:
    from workboard.engine.store.base import SnapshotStore


class WorkboardSettings(BaseSettings):
    """Workboard settings.

    All fields are read from environment variables with the ``WORKBOARD_``
    prefix.  For example, ``WORKBOARD_LOG_LEVEL=DEBUG`` maps to ``log_level``.
    """

    model_config = SettingsConfigDict(
        env_prefix="WORKBOARD_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # -- Logging ---------------------------------------------------------------
    log_level: str = "INFO"

    # -- Local storage ---------------------------------------------------------
    data_root: str = "./data"
    data_prefix: str | None = None
    """Optional namespace inserted into local paths: ``{data_root}/{data_prefix}/state/...``."""

    # -- Remote storage --------------------------------------------------------
    remote_store: Literal["none", "local", "s3"] = "none"

    remote_root: str | None = None
    """Root directory of the remote store when ``remote_store = "local"``."""

    # S3 (only when remote_store = "s3")
    s3_endpoint: str | None = None
    s3_bucket: str | None = None
    s3_region: str | None = None
    s3_access_key: str | None = None
    s3_secret_key: SecretStr | None = None
    s3_path_style: bool = False

    # -- Engine ----------------------------------------------------------------
    save_debounce_seconds: float = 2.0
    history_limit: int = 50
    history_coalesce_seconds: float = 1.0


def get_settings() -> WorkboardSettings:
    """Return a cached settings instance.

    Call ``_get_settings_cached.cache_clear()`` in tests to force a re-read
    after overriding env vars.
    """
    return _get_settings_cached()


@lru_cache(maxsize=1)
def _get_settings_cached() -> WorkboardSettings:
    return WorkboardSettings()


def build_remote_store(settings: WorkboardSettings) -> SnapshotStore | None:
    """Construct the configured remote store, or None when sync is disabled."""
    if settings.remote_store == "local":
        from workboard.engine.store.local import LocalSnapshotStore

        if not settings.remote_root:
            msg = "WORKBOARD_REMOTE_ROOT is required when WORKBOARD_REMOTE_STORE=local"
            raise ValueError(msg)
        return LocalSnapshotStore(settings.remote_root, prefix=settings.data_prefix)

    if settings.remote_store == "s3":
        from workboard.engine.store.s3 import S3SnapshotStore

        if not settings.s3_bucket:
            msg = "WORKBOARD_S3_BUCKET is required when WORKBOARD_REMOTE_STORE=s3"
            raise ValueError(msg)
        return S3SnapshotStore(
            bucket=settings.s3_bucket,
            endpoint_url=settings.s3_endpoint,
            access_key=settings.s3_access_key,
            secret_key=settings.s3_secret_key.get_secret_value() if settings.s3_secret_key else None,
            prefix=settings.data_prefix,
            region=settings.s3_region,
            path_style=settings.s3_path_style,
        )

    return None
