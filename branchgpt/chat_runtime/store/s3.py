"""S3 blob store.

Stores blobs as JSON objects in S3 with optional namespace prefix::

    s3://{bucket}/{prefix}/blobs/{key}.json

When prefix is None, the path collapses to::

    s3://{bucket}/blobs/{key}.json

Uses ``anyio.to_thread.run_sync`` to run boto3 calls in the thread pool,
matching the same async pattern as LocalBlobStore.
"""

from __future__ import annotations

from functools import partial
from typing import Any

import boto3
from anyio import to_thread
from botocore.config import Config

from branchgpt.chat_runtime.store.base import validate_key


def _create_s3_client(
    endpoint_url: str | None,
    access_key: str | None,
    secret_key: str | None,
    region: str | None = None,
    path_style: bool = False,
) -> Any:
    """Create a boto3 S3 client.

    Args:
        endpoint_url: S3 endpoint URL (``None`` for AWS).
        access_key: AWS access key ID (``None`` to use the default chain).
        secret_key: AWS secret access key.
        region: AWS region name (optional, some endpoints require it).
        path_style: Use path-style addressing instead of virtual-hosted.
            Required by MinIO and some S3-compatible services.
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


class S3BlobStore:
    """S3 implementation of the BlobStore protocol.

    Layout::

        s3://{bucket}/{key_prefix}blobs/{key}.json

    Where ``key_prefix`` is ``{prefix}/`` if prefix is set, or empty string.
    """

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
        self._key_prefix = f"{prefix}/blobs/" if prefix else "blobs/"

    def _object_key(self, key: str) -> str:
        return f"{self._key_prefix}{validate_key(key)}.json"

    async def get(self, key: str) -> str | None:
        return await to_thread.run_sync(partial(self._get_object_body, self._object_key(key)))

    def _get_object_body(self, object_key: str) -> str | None:
        """Get object and read body in the same thread.

        Reading the streaming body must happen in the same thread as
        get_object to avoid issues with chunked transfer encoding.
        """
        try:
            resp = self._client.get_object(Bucket=self._bucket, Key=object_key)
        except self._client.exceptions.NoSuchKey:
            return None
        return resp["Body"].read().decode("utf-8")

    async def set(self, key: str, blob: str) -> None:
        await to_thread.run_sync(
            partial(
                self._client.put_object,
                Bucket=self._bucket,
                Key=self._object_key(key),
                Body=blob.encode("utf-8"),
                ContentType="application/json",
            )
        )

    async def delete(self, key: str) -> None:
        # S3 delete is idempotent -- no error if key doesn't exist.
        await to_thread.run_sync(
            partial(self._client.delete_object, Bucket=self._bucket, Key=self._object_key(key))
        )
