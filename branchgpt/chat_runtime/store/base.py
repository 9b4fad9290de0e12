"""Blob store interface for state persistence.

The blob store is a plain async key-value store holding one serialized JSON
document per collection (workspaces, agents, conversations).  The interface
is async to support both local filesystem and remote (S3) backends.
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable


@runtime_checkable
class BlobStore(Protocol):
    """Async protocol for reading and writing named blobs.

    Storage layout (keyed by blob name):
        {root}/blobs/{key}.json
    """

    async def get(self, key: str) -> str | None:
        """Read a blob.  Returns ``None`` if it does not exist."""
        ...

    async def set(self, key: str, blob: str) -> None:
        """Write (or overwrite) a blob."""
        ...

    async def delete(self, key: str) -> None:
        """Delete a blob.  No-op if not found."""
        ...


def validate_key(key: str) -> str:
    """Reject keys that could escape the blob directory."""
    if not key or "/" in key or "\\" in key or key in (".", ".."):
        msg = f"Invalid blob key: {key!r}"
        raise ValueError(msg)
    return key
