"""Local filesystem blob store.

Stores blobs as JSON files under a unified data root with optional
namespace prefix::

    {data_root}/{prefix}/blobs/{key}.json

When prefix is None, the path collapses to::

    {data_root}/blobs/{key}.json

Uses ``anyio.to_thread.run_sync`` for non-blocking file I/O.

Writes are atomic: data is written to a temporary file in the same directory,
then renamed to the target path.  This prevents corrupt reads if the process
crashes mid-write.
"""

from __future__ import annotations

import contextlib
import os
import tempfile
from functools import partial
from pathlib import Path

from anyio import to_thread

from branchgpt.chat_runtime.store.base import validate_key


class LocalBlobStore:
    """Local filesystem implementation of the BlobStore protocol."""

    def __init__(self, data_root: str | Path, prefix: str | None = None) -> None:
        base = Path(data_root)
        if prefix:
            base = base / prefix
        self._base = base / "blobs"

    def _path(self, key: str) -> Path:
        return self._base / f"{validate_key(key)}.json"

    async def get(self, key: str) -> str | None:
        return await to_thread.run_sync(partial(_read_file, self._path(key)))

    async def set(self, key: str, blob: str) -> None:
        await to_thread.run_sync(partial(_atomic_write, self._path(key), blob))

    async def delete(self, key: str) -> None:
        await to_thread.run_sync(partial(_unlink, self._path(key)))


# -- Sync helpers (run in thread pool) -----------------------------------------


def _atomic_write(path: Path, data: str) -> None:
    """Write data atomically: temp file + rename.

    The temp file is created in the same directory so ``os.replace`` is
    atomic on POSIX.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_path = tempfile.mkstemp(dir=path.parent, suffix=".tmp")
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(data)
        os.replace(tmp_path, path)
    except BaseException:
        with contextlib.suppress(OSError):
            os.unlink(tmp_path)
        raise


def _read_file(path: Path) -> str | None:
    try:
        return path.read_text(encoding="utf-8")
    except FileNotFoundError:
        return None


def _unlink(path: Path) -> None:
    path.unlink(missing_ok=True)
