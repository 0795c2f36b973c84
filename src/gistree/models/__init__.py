"""Data models for gistree."""

from .nodes import (
    GIST_SCHEME,
    READ_ONLY_GROUPS,
    ROOT_GROUPS,
    AnyNode,
    Collapsible,
    ContentNode,
    DisplayInfo,
    EntityNode,
    GroupKind,
    GroupNode,
    Node,
    NodeCommand,
    NodeKind,
    NotepadNode,
    UserNode,
    build_content_nodes,
    build_uri,
    keep_writable,
    node_key,
    sort_content_nodes,
)
from .schemas import (
    FileEntry,
    Gist,
    GistFile,
    GistHistoryEntry,
    GitHubUser,
    GlobalStateEntry,
    utcnow,
)

__all__ = [
    "GIST_SCHEME",
    "READ_ONLY_GROUPS",
    "ROOT_GROUPS",
    "AnyNode",
    "Collapsible",
    "ContentNode",
    "DisplayInfo",
    "EntityNode",
    "FileEntry",
    "Gist",
    "GistFile",
    "GistHistoryEntry",
    "GitHubUser",
    "GlobalStateEntry",
    "GroupKind",
    "GroupNode",
    "Node",
    "NodeCommand",
    "NodeKind",
    "NotepadNode",
    "UserNode",
    "build_content_nodes",
    "build_uri",
    "keep_writable",
    "node_key",
    "sort_content_nodes",
    "utcnow",
]
