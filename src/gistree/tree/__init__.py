"""Tree synchronization for gistree."""

from .provider import (
    BatchResult,
    GistTreeProvider,
    RefreshHandle,
    TreeChangeEvent,
    run_batch,
)

__all__ = [
    "BatchResult",
    "GistTreeProvider",
    "RefreshHandle",
    "TreeChangeEvent",
    "run_batch",
]
