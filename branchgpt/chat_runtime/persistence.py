"""Persistence of manager collections to a blob store.

Each manager is bound to one blob key.  The blob is a JSON envelope::

    {"version": 1, "state": {...}}

where ``state`` is the manager's ``dump()`` output (collections encoded as
ordered ``[id, entity]`` pairs).  Absent or malformed blobs rehydrate to an
empty collection.

Mutations schedule a background flush on the running event loop.  Flushes
are coalesced: all mutations made before the flush task runs are written in
one go.  A failed background flush is logged and the in-memory state stays
authoritative; only an explicit ``flush()`` raises to its caller.
"""

from __future__ import annotations

import asyncio
import json
from typing import TYPE_CHECKING, Any, Protocol

from loguru import logger
from pydantic import ValidationError

if TYPE_CHECKING:
    from collections.abc import Callable

    from branchgpt.chat_runtime.store.base import BlobStore

STORAGE_VERSION = 1

WORKSPACE_STORAGE_KEY = "branchgpt-workspace-storage"
AGENT_STORAGE_KEY = "branchgpt-agent-storage"
CHAT_STORAGE_KEY = "branchgpt-chat-storage"


class Persistable(Protocol):
    def subscribe(self, listener: Callable[[], None]) -> Callable[[], None]: ...

    def dump(self) -> dict[str, Any]: ...

    def restore(self, state: dict[str, Any]) -> None: ...


def encode_state(state: dict[str, Any]) -> str:
    return json.dumps({"version": STORAGE_VERSION, "state": state})


def decode_state(blob: str | None) -> dict[str, Any] | None:
    """Unwrap a persisted envelope.  Returns ``None`` if absent or malformed."""
    if blob is None:
        return None
    try:
        envelope = json.loads(blob)
    except json.JSONDecodeError:
        logger.warning("Persisted state is not valid JSON; ignoring it")
        return None
    if not isinstance(envelope, dict) or not isinstance(envelope.get("state"), dict):
        logger.warning("Persisted state has an unexpected shape; ignoring it")
        return None
    if envelope.get("version") != STORAGE_VERSION:
        logger.warning("Persisted state version {} is not supported; ignoring it", envelope.get("version"))
        return None
    return envelope["state"]


class StatePersister:
    """Keeps one manager's collection in sync with one blob key."""

    def __init__(self, store: BlobStore, key: str, manager: Persistable) -> None:
        self._store = store
        self._key = key
        self._manager = manager
        self._unsubscribe: Callable[[], None] | None = None
        self._task: asyncio.Task[None] | None = None
        self._dirty = False

    @property
    def key(self) -> str:
        return self._key

    # -- Load / save -----------------------------------------------------------

    async def hydrate(self) -> None:
        """Load the persisted collection into the manager.

        Malformed data yields an empty collection.  Store I/O errors
        propagate.
        """
        state = decode_state(await self._store.get(self._key))
        try:
            self._manager.restore(state or {})
        except ValidationError as exc:
            logger.warning("Persisted {} failed validation ({} errors); starting empty", self._key, exc.error_count())
            self._manager.restore({})
        logger.debug("Hydrated {}", self._key)

    async def flush(self) -> None:
        """Write the current collection.  Errors propagate to the caller."""
        await self._store.set(self._key, encode_state(self._manager.dump()))

    async def clear(self) -> None:
        await self._store.delete(self._key)

    # -- Change tracking -------------------------------------------------------

    def bind(self) -> None:
        """Flush in the background after every mutation of the manager."""
        if self._unsubscribe is None:
            self._unsubscribe = self._manager.subscribe(self._schedule_flush)

    def _schedule_flush(self) -> None:
        self._dirty = True
        if self._task is not None and not self._task.done():
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            # No event loop: the change will be written by the next flush().
            return
        self._task = loop.create_task(self._background_flush())

    async def _background_flush(self) -> None:
        # Yield once so the rest of the current mutation batch lands first.
        await asyncio.sleep(0)
        while self._dirty:
            self._dirty = False
            try:
                await self.flush()
            except Exception:
                logger.exception("Background flush of {} failed", self._key)
                return

    async def close(self) -> None:
        """Stop tracking changes, wait for any pending flush, and flush once more."""
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
        if self._task is not None:
            await self._task
            self._task = None
        await self.flush()
