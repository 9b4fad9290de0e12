"""Integration tests for S3BlobStore against a real S3 endpoint.

These tests are marked with @pytest.mark.s3 and require S3 configuration
via BRANCHGPT_S3_* environment variables. They use a unique test prefix to
avoid collisions and clean up after themselves.

Required env vars:
    BRANCHGPT_S3_ENDPOINT
    BRANCHGPT_S3_BUCKET
    BRANCHGPT_S3_ACCESS_KEY
    BRANCHGPT_S3_SECRET_KEY
"""

from __future__ import annotations

import os
import uuid

import pytest

from branchgpt.chat_runtime.store.s3 import S3BlobStore

# -- Read S3 configuration from environment -----------------------------------
_S3_ENDPOINT = os.environ.get("BRANCHGPT_S3_ENDPOINT")
_S3_BUCKET = os.environ.get("BRANCHGPT_S3_BUCKET")
_S3_ACCESS_KEY = os.environ.get("BRANCHGPT_S3_ACCESS_KEY")
_S3_SECRET_KEY = os.environ.get("BRANCHGPT_S3_SECRET_KEY")
_S3_PATH_STYLE = os.environ.get("BRANCHGPT_S3_PATH_STYLE", "").lower() in ("1", "true", "yes")

_s3_configured = all([_S3_ENDPOINT, _S3_BUCKET, _S3_ACCESS_KEY, _S3_SECRET_KEY])
_skip_reason = (
    "S3 tests require BRANCHGPT_S3_ENDPOINT, BRANCHGPT_S3_BUCKET, BRANCHGPT_S3_ACCESS_KEY, BRANCHGPT_S3_SECRET_KEY"
)

pytestmark = [pytest.mark.s3, pytest.mark.skipif(not _s3_configured, reason=_skip_reason)]


@pytest.fixture
def s3_store() -> S3BlobStore:
    """S3 store with a unique test prefix to isolate test data."""
    assert _S3_ENDPOINT and _S3_BUCKET and _S3_ACCESS_KEY and _S3_SECRET_KEY
    test_prefix = f"test-{uuid.uuid4().hex[:8]}"
    return S3BlobStore(
        bucket=_S3_BUCKET,
        endpoint_url=_S3_ENDPOINT,
        access_key=_S3_ACCESS_KEY,
        secret_key=_S3_SECRET_KEY,
        prefix=test_prefix,
        path_style=_S3_PATH_STYLE,
    )


async def test_set_and_get(s3_store: S3BlobStore) -> None:
    try:
        await s3_store.set("chat", '{"version": 1, "state": {}}')
        assert await s3_store.get("chat") == '{"version": 1, "state": {}}'
    finally:
        await s3_store.delete("chat")


async def test_get_missing_returns_none(s3_store: S3BlobStore) -> None:
    assert await s3_store.get("nonexistent") is None


async def test_delete_is_idempotent(s3_store: S3BlobStore) -> None:
    await s3_store.set("chat", "x")
    await s3_store.delete("chat")
    assert await s3_store.get("chat") is None
    await s3_store.delete("chat")
