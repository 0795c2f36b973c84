"""Tree node model.

Every node carries a ``kind`` tag and derives its display metadata at
construction time. Nodes do not fetch anything; ``GistTreeProvider`` builds
them from remote payloads.
"""

from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum
from typing import ClassVar, Optional, Union

from gistree.models.schemas import FileEntry, Gist, GitHubUser

GIST_SCHEME = "gist"


class NodeKind(str, Enum):
    """Variant tag of a tree node."""

    GROUP = "group"
    ENTITY = "entity"
    USER = "user"
    CONTENT = "content"
    NOTEPAD = "notepad"


class GroupKind(str, Enum):
    """The fixed top-level groups, in display order."""

    NOTEPAD = "Notepad"
    MY_GISTS = "My Gists"
    STARRED = "Starred Gists"
    FOLLOWED_USERS = "Followed Users"
    OPENED_GISTS = "Opened Gists"


ROOT_GROUPS = [
    GroupKind.NOTEPAD,
    GroupKind.MY_GISTS,
    GroupKind.STARRED,
    GroupKind.FOLLOWED_USERS,
    GroupKind.OPENED_GISTS,
]

# Gists reached through these groups belong to someone else
READ_ONLY_GROUPS = frozenset({GroupKind.STARRED, GroupKind.FOLLOWED_USERS, GroupKind.OPENED_GISTS})


class Collapsible(str, Enum):
    NONE = "none"
    COLLAPSED = "collapsed"
    EXPANDED = "expanded"


@dataclass(frozen=True)
class NodeCommand:
    """Command the host runs when a node is activated."""

    command: str
    title: str
    arguments: tuple = ()


@dataclass(frozen=True)
class DisplayInfo:
    """What a host needs to render one row of the tree."""

    label: str
    tooltip: Optional[str] = None
    icon: Optional[str] = None
    collapsible: Collapsible = Collapsible.NONE
    description: Optional[str] = None
    context_value: Optional[str] = None
    command: Optional[NodeCommand] = None


def format_timestamp(value: Optional[datetime]) -> str:
    if value is None:
        return "unknown"
    return value.strftime("%Y-%m-%d %H:%M")


def build_uri(gist_id: str, path: str) -> str:
    """Logical address of a file: ``gist://<gist id>/<path>``."""
    return f"{GIST_SCHEME}://{gist_id}/{path}"


class Node:
    """Common display contract of all node variants."""

    kind: ClassVar[NodeKind]

    def get_display(self) -> DisplayInfo:
        raise NotImplementedError

    @property
    def display(self) -> DisplayInfo:
        return self.get_display()

    @property
    def label(self) -> str:
        return self.get_display().label


@dataclass(eq=False)
class GroupNode(Node):
    """One of the top-level groups. ``group`` is the raw label."""

    kind: ClassVar[NodeKind] = NodeKind.GROUP

    group: str
    count: Optional[int] = None

    def __post_init__(self) -> None:
        if isinstance(self.group, GroupKind):
            self.group = self.group.value

    @property
    def group_kind(self) -> Optional[GroupKind]:
        """The recognized group, or None for an unknown label."""
        try:
            return GroupKind(self.group)
        except ValueError:
            return None

    def get_display(self) -> DisplayInfo:
        description = str(self.count) if self.count is not None else None
        return DisplayInfo(
            label=self.group,
            tooltip=self.group if description is None else f"{self.group} ({description})",
            icon="notebook" if self.group == GroupKind.NOTEPAD else "folder",
            collapsible=Collapsible.COLLAPSED,
            description=description,
            context_value=f"group.{self.group.lower().replace(' ', '_')}",
        )


@dataclass(eq=False)
class EntityNode(Node):
    """A gist, classified by the group it was reached through."""

    kind: ClassVar[NodeKind] = NodeKind.ENTITY

    gist: Gist
    group: GroupKind
    use_owner_avatar: bool = False
    read_only: bool = field(init=False)

    def __post_init__(self) -> None:
        self.read_only = self.group in READ_ONLY_GROUPS

    @property
    def id(self) -> str:
        return self.gist.id

    @property
    def name(self) -> str:
        return self.gist.name

    @property
    def owner(self) -> Optional[str]:
        return self.gist.owner_login

    @property
    def public(self) -> bool:
        return self.gist.public

    @property
    def created_at(self) -> Optional[datetime]:
        return self.gist.created_at

    @property
    def updated_at(self) -> Optional[datetime]:
        return self.gist.updated_at

    @property
    def git_pull_url(self) -> Optional[str]:
        return self.gist.git_pull_url

    @property
    def file_count(self) -> int:
        return len(self.gist.files)

    def _icon(self) -> str:
        if self.use_owner_avatar and self.gist.owner and self.gist.owner.avatar_url:
            return self.gist.owner.avatar_url
        return "gist" if self.public else "gist-secret"

    def _context_value(self) -> str:
        return "gist.readonly" if self.read_only else "gist.owned"

    def get_display(self) -> DisplayInfo:
        description = f"{self.file_count} file" + ("" if self.file_count == 1 else "s")
        tooltip = (
            f"{self.name}\n{description}\n"
            f"Created: {format_timestamp(self.created_at)}\n"
            f"Updated: {format_timestamp(self.updated_at)}"
        )
        return DisplayInfo(
            label=self.name,
            tooltip=tooltip,
            icon=self._icon(),
            collapsible=Collapsible.COLLAPSED,
            description=description,
            context_value=self._context_value(),
        )


@dataclass(eq=False)
class NotepadNode(EntityNode):
    """The reserved notepad gist. Always owned, so always writable."""

    kind: ClassVar[NodeKind] = NodeKind.NOTEPAD

    group: GroupKind = GroupKind.NOTEPAD

    def _icon(self) -> str:
        return "notebook"

    def _context_value(self) -> str:
        return "notepad"


@dataclass(eq=False)
class UserNode(Node):
    """A followed user. ``gist_count`` is only known once fetched."""

    kind: ClassVar[NodeKind] = NodeKind.USER

    user: GitHubUser
    gist_count: Optional[int] = None

    @property
    def login(self) -> str:
        return self.user.login

    def get_display(self) -> DisplayInfo:
        description = None
        if self.gist_count is not None:
            description = f"{self.gist_count} gist" + ("" if self.gist_count == 1 else "s")
        return DisplayInfo(
            label=self.login,
            tooltip=self.user.name or self.login,
            icon=self.user.avatar_url or "account",
            collapsible=Collapsible.COLLAPSED,
            description=description,
            context_value="user",
        )


@dataclass(eq=False)
class ContentNode(Node):
    """A single file of a gist. Rebuilt on every expansion of its parent."""

    kind: ClassVar[NodeKind] = NodeKind.CONTENT

    entry: FileEntry
    parent_id: str
    read_only: bool = False

    @property
    def name(self) -> str:
        return self.entry.name

    @property
    def path(self) -> str:
        return self.entry.path

    @property
    def sha(self) -> Optional[str]:
        return self.entry.sha

    @property
    def is_directory(self) -> bool:
        return self.entry.type == "dir"

    @property
    def uri(self) -> str:
        return build_uri(self.parent_id, self.path)

    def get_display(self) -> DisplayInfo:
        if self.is_directory:
            return DisplayInfo(
                label=self.name,
                tooltip=self.path,
                icon="folder",
                collapsible=Collapsible.COLLAPSED,
                context_value="folder",
            )
        return DisplayInfo(
            label=self.name,
            tooltip=self.path,
            icon="file",
            description=self.entry.language,
            context_value="file.readonly" if self.read_only else "file.owned",
            command=NodeCommand(command="open", title="Open file", arguments=(self.uri,)),
        )


AnyNode = Union[GroupNode, EntityNode, NotepadNode, UserNode, ContentNode]


def node_key(node: Optional[Node]) -> tuple:
    """Identity of a node across rebuilds, used to scope refreshes."""
    if node is None:
        return ("tree",)
    if node.kind is NodeKind.GROUP:
        return ("group", node.group)
    if node.kind in (NodeKind.ENTITY, NodeKind.NOTEPAD):
        return ("entity", node.id)
    if node.kind is NodeKind.USER:
        return ("user", node.login)
    if node.kind is NodeKind.CONTENT:
        return ("content", node.parent_id, node.path)
    raise ValueError(f"Unknown node kind: {node.kind}")


def sort_content_nodes(nodes: list[ContentNode]) -> list[ContentNode]:
    """Order files by name, then (stably) by content type.

    The type sort runs last, so the result is grouped by type with names
    ascending inside each type.
    """
    by_name = sorted(nodes, key=lambda node: node.name.lower())
    return sorted(by_name, key=lambda node: node.entry.type)


def build_content_nodes(gist: Gist, read_only: bool) -> list[ContentNode]:
    """One ContentNode per file of ``gist``, sorted for display."""
    nodes = [
        ContentNode(
            entry=FileEntry.from_gist_file(gist_file, sha=gist.version),
            parent_id=gist.id,
            read_only=read_only,
        )
        for gist_file in gist.files.values()
    ]
    return sort_content_nodes(nodes)


def keep_writable(node: EntityNode, cached: Optional[EntityNode]) -> EntityNode:
    """Node to cache for ``node`` given the currently cached one.

    A gist reached through a read-only group (starred, opened) may also be
    one of the user's own. A writable classification already in the cache
    wins; only the payload is refreshed.
    """
    if cached is None or cached.read_only or not node.read_only:
        return node
    return replace(cached, gist=node.gist)
