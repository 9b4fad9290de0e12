"""Unit tests for LocalBlobStore.

No network required -- uses a temporary directory.
"""

from __future__ import annotations

import pytest

from branchgpt.chat_runtime.store import BlobStore, LocalBlobStore, validate_key


@pytest.fixture
def store(tmp_path) -> LocalBlobStore:
    return LocalBlobStore(tmp_path)


def test_local_store_satisfies_protocol(store: LocalBlobStore) -> None:
    assert isinstance(store, BlobStore)


async def test_set_and_get(store: LocalBlobStore) -> None:
    await store.set("chat", '{"a": 1}')
    assert await store.get("chat") == '{"a": 1}'


async def test_get_missing_returns_none(store: LocalBlobStore) -> None:
    assert await store.get("nonexistent") is None


async def test_set_overwrites(store: LocalBlobStore) -> None:
    await store.set("chat", "one")
    await store.set("chat", "two")
    assert await store.get("chat") == "two"


async def test_delete(store: LocalBlobStore) -> None:
    await store.set("chat", "x")
    await store.delete("chat")
    assert await store.get("chat") is None

    # Delete non-existent is a no-op.
    await store.delete("nonexistent")


async def test_unicode_roundtrip(store: LocalBlobStore) -> None:
    await store.set("chat", '{"text": "héllo 世界"}')
    assert await store.get("chat") == '{"text": "héllo 世界"}'


async def test_layout_without_prefix(tmp_path) -> None:
    store = LocalBlobStore(tmp_path)
    await store.set("chat", "x")
    assert (tmp_path / "blobs" / "chat.json").read_text() == "x"


async def test_prefix_creates_namespaced_path(tmp_path) -> None:
    """Prefix inserts a namespace directory between data_root and blobs."""
    store = LocalBlobStore(tmp_path, prefix="alice")
    await store.set("chat", "x")
    assert (tmp_path / "alice" / "blobs" / "chat.json").exists()
    assert not (tmp_path / "blobs").exists()


async def test_no_temp_files_left_behind(tmp_path) -> None:
    store = LocalBlobStore(tmp_path)
    await store.set("chat", "x")
    await store.set("chat", "y")
    assert sorted(p.name for p in (tmp_path / "blobs").iterdir()) == ["chat.json"]


@pytest.mark.parametrize("key", ["", ".", "..", "a/b", "a\\b", "../escape"])
def test_validate_key_rejects_path_like_keys(key: str) -> None:
    with pytest.raises(ValueError):
        validate_key(key)


async def test_store_rejects_bad_key(store: LocalBlobStore) -> None:
    with pytest.raises(ValueError):
        await store.set("../escape", "x")
