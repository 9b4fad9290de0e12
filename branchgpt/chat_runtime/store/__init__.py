"""Blob store implementations for state persistence."""

from branchgpt.chat_runtime.store.base import BlobStore, validate_key
from branchgpt.chat_runtime.store.local import LocalBlobStore

__all__ = ["BlobStore", "LocalBlobStore", "validate_key"]
