"""Gist cache and persisted state for gistree."""

from .backends import MemoryBackend, SQLBackend, StorageBackend
from .store import (
    GlobalStateKey,
    GlobalStorageGroup,
    SortDirection,
    SortType,
    Store,
)

__all__ = [
    "GlobalStateKey",
    "GlobalStorageGroup",
    "MemoryBackend",
    "SQLBackend",
    "SortDirection",
    "SortType",
    "StorageBackend",
    "Store",
]
