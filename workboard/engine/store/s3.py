"""S3 snapshot store, used as the remote side of sync.

One object per user::

    s3://{bucket}/{prefix}/users/{key}/workspace-state.json

When prefix is None, the path collapses to::

    s3://{bucket}/users/{key}/workspace-state.json

boto3 calls run in the thread pool via ``anyio.to_thread.run_sync``, the
same async pattern as ``LocalSnapshotStore``.
"""

from __future__ import annotations

from functools import partial
from typing import Any

import boto3
from anyio import to_thread
from botocore.config import Config

from workboard.engine.models.sync import StateSnapshot


def _create_s3_client(
    endpoint_url: str | None,
    access_key: str | None,
    secret_key: str | None,
    region: str | None = None,
    path_style: bool = False,
) -> Any:
    """Create a boto3 S3 client.

    ``path_style`` selects path-style addressing, required by MinIO and some
    S3-compatible services.
    """
    config = Config(
        request_checksum_calculation="when_required",
        response_checksum_validation="when_required",
        s3={"addressing_style": "path" if path_style else "auto"},
    )

    return boto3.client(
        "s3",
        endpoint_url=endpoint_url,
        aws_access_key_id=access_key,
        aws_secret_access_key=secret_key,
        region_name=region,
        config=config,
    )


class S3SnapshotStore:
    """S3 implementation of the SnapshotStore protocol."""

    def __init__(
        self,
        bucket: str,
        endpoint_url: str | None = None,
        access_key: str | None = None,
        secret_key: str | None = None,
        prefix: str | None = None,
        region: str | None = None,
        path_style: bool = False,
    ) -> None:
        self._bucket = bucket
        self._client = _create_s3_client(endpoint_url, access_key, secret_key, region=region, path_style=path_style)
        self._key_prefix = f"{prefix}/users/" if prefix else "users/"

    def object_key(self, key: str) -> str:
        return f"{self._key_prefix}{key}/workspace-state.json"

    # -- Write -----------------------------------------------------------------

    async def write_snapshot(self, key: str, snapshot: StateSnapshot) -> None:
        await to_thread.run_sync(
            partial(
                self._client.put_object,
                Bucket=self._bucket,
                Key=self.object_key(key),
                Body=snapshot.to_json().encode("utf-8"),
                ContentType="application/json",
            )
        )

    # -- Read ------------------------------------------------------------------

    async def read_snapshot(self, key: str) -> StateSnapshot:
        body = await to_thread.run_sync(partial(self._get_object_body, self.object_key(key)))
        return StateSnapshot.from_json(body)

    def _get_object_body(self, object_key: str) -> str:
        """Get object and read body in the same thread."""
        try:
            resp = self._client.get_object(Bucket=self._bucket, Key=object_key)
        except self._client.exceptions.NoSuchKey:
            msg = f"Workspace state not found: {object_key}"
            raise FileNotFoundError(msg) from None
        return resp["Body"].read().decode("utf-8")

    # -- Utilities -------------------------------------------------------------

    async def exists(self, key: str) -> bool:
        try:
            await to_thread.run_sync(
                partial(self._client.head_object, Bucket=self._bucket, Key=self.object_key(key))
            )
        except self._client.exceptions.ClientError as e:
            if e.response["Error"]["Code"] == "404":
                return False
            raise
        else:
            return True

    async def delete(self, key: str) -> None:
        await to_thread.run_sync(partial(self._client.delete_object, Bucket=self._bucket, Key=self.object_key(key)))
