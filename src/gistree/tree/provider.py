"""Lazy tree synchronization.

``GistTreeProvider`` answers "what are the children of this node" for a host
tree view. It dispatches on the node's kind tag, fetches from the remote
service or reads the Store, upserts what it fetched, and applies the
persisted sort order. ``refresh()`` only invalidates: the next
``get_children`` call for the invalidated node does the real fetch.

Concurrent ``get_children`` calls for the same node are not deduplicated and
their Store upserts are last-writer-wins.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Optional, Union

from gistree.config import GistreeConfig
from gistree.errors import ConfigurationError, TransportError
from gistree.models import (
    ROOT_GROUPS,
    AnyNode,
    EntityNode,
    Gist,
    GitHubUser,
    GroupKind,
    GroupNode,
    Node,
    NodeKind,
    NotepadNode,
    UserNode,
    build_content_nodes,
    keep_writable,
    node_key,
)
from gistree.remote.base import RemoteContentService
from gistree.storage import GlobalStorageGroup, SortDirection, SortType, Store

logger = logging.getLogger(__name__)


@dataclass
class TreeChangeEvent:
    """Change notification; ``node`` is None for the whole tree."""

    node: Optional[Node] = None
    is_sort_change: bool = False


@dataclass
class BatchResult:
    """Outcome of a batch of independent remote calls."""

    succeeded: list[str] = field(default_factory=list)
    failed: list[tuple[str, str]] = field(default_factory=list)  # (label, error)

    @property
    def total_processed(self) -> int:
        return len(self.succeeded) + len(self.failed)

    def __str__(self) -> str:
        parts = [f"Fetched: {len(self.succeeded)}"]
        if self.failed:
            parts.append(f"Failed: {len(self.failed)}")
        return " | ".join(parts)


class RefreshHandle:
    """Completion signal returned by ``GistTreeProvider.refresh``.

    Resolves when the next load of the refreshed node finishes, successfully
    or not. That only says the tree caught up at some point after the
    refresh; it does not order it against other concurrent loads.
    """

    def __init__(self, key: tuple):
        self.key = key
        self._done = asyncio.Event()

    def done(self) -> bool:
        return self._done.is_set()

    def resolve(self) -> None:
        self._done.set()

    async def wait(self, timeout: Optional[float] = None) -> bool:
        """Wait for completion; returns False if ``timeout`` expired first."""
        try:
            await asyncio.wait_for(self._done.wait(), timeout)
        except asyncio.TimeoutError:
            return False
        return True


async def run_batch(
    calls: list[tuple[str, Awaitable[Any]]],
) -> tuple[BatchResult, list[Any]]:
    """Run labelled calls concurrently, tolerating TransportErrors.

    Returns the batch report and one value per call (None where it failed).
    Any other exception is re-raised.
    """
    result = BatchResult()
    values: list[Any] = []
    outcomes = await asyncio.gather(*(call for _, call in calls), return_exceptions=True)

    for (label, _), outcome in zip(calls, outcomes):
        if isinstance(outcome, TransportError):
            logger.warning("Could not fetch %s: %s", label, outcome)
            result.failed.append((label, str(outcome)))
            values.append(None)
        elif isinstance(outcome, BaseException):
            raise outcome
        else:
            result.succeeded.append(label)
            values.append(outcome)

    return result, values


class GistTreeProvider:
    """Tree data provider over the remote gist service and the Store."""

    def __init__(
        self,
        remote: RemoteContentService,
        store: Store,
        config: Optional[GistreeConfig] = None,
    ):
        self.remote = remote
        self.store = store
        self.config = config or GistreeConfig()
        self.last_batch: Optional[BatchResult] = None
        self._listeners: list[Callable[[TreeChangeEvent], None]] = []
        self._pending: dict[tuple, RefreshHandle] = {}
        self._in_flight = 0
        self._idle = asyncio.Event()
        self._idle.set()

    # --- change notifications -------------------------------------------

    def on_did_change(self, listener: Callable[[TreeChangeEvent], None]) -> Callable[[], None]:
        """Subscribe to change notifications; returns an unsubscribe callable."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def refresh(self, node: Optional[Node] = None, is_sort_change: bool = False) -> RefreshHandle:
        """Invalidate ``node`` (or the whole tree) and notify listeners.

        Nothing is fetched here. ``is_sort_change`` tells listeners that only
        the order changed; it does not change what the provider does.
        Refreshes of a node that has not been loaded since share one handle.
        """
        key = node_key(node)
        handle = self._pending.get(key)
        if handle is None:
            handle = self._pending[key] = RefreshHandle(key)
        event = TreeChangeEvent(node=node, is_sort_change=is_sort_change)
        for listener in list(self._listeners):
            listener(event)
        return handle

    def sort_gists(
        self,
        sort_type: Union[SortType, str],
        direction: Union[SortDirection, str],
    ) -> RefreshHandle:
        """Persist a new order and redraw the tree. No network involved."""
        self.store.sort_gists(sort_type, direction)
        return self.refresh(None, is_sort_change=True)

    # --- busy flag ------------------------------------------------------

    @property
    def refreshing(self) -> bool:
        """True while at least one load is in progress."""
        return self._in_flight > 0

    async def wait_until_idle(self) -> None:
        """Wait until no load is in progress."""
        await self._idle.wait()

    def _enter(self) -> None:
        self._in_flight += 1
        self._idle.clear()

    def _exit(self, key: tuple) -> None:
        self._in_flight -= 1
        if self._in_flight == 0:
            self._idle.set()
        handle = self._pending.pop(key, None)
        if handle is not None:
            handle.resolve()

    async def _tracked(self, node: Optional[Node], load: Callable[[], Awaitable[list]]) -> list:
        key = node_key(node)
        self._enter()
        try:
            return await load()
        except TransportError as e:
            logger.error("Could not load children of %s: %s", describe(node), e)
            return []
        finally:
            self._exit(key)

    # --- host API -------------------------------------------------------

    async def get_roots(self) -> list[GroupNode]:
        """The five top-level groups, in fixed order."""
        return await self._tracked(None, self._load_roots)

    async def get_children(self, node: Optional[AnyNode] = None) -> list[AnyNode]:
        if node is None:
            return await self.get_roots()
        return await self._tracked(node, lambda: self._load_children(node))

    def get_parent(self, node: Optional[AnyNode]) -> Optional[EntityNode]:
        """The cached gist a ContentNode belongs to, or None."""
        if node is None or node.kind is not NodeKind.CONTENT:
            return None
        return self.store.get(node.parent_id)

    def get_tree_item(self, node: AnyNode):
        return node.get_display()

    # --- loading --------------------------------------------------------

    async def _load_roots(self) -> list[GroupNode]:
        groups = [GroupNode(group.value) for group in ROOT_GROUPS]
        if self.config.show_decorations:
            self.last_batch, counts = await run_batch(
                [(group.group, self._group_count(group.group_kind)) for group in groups]
            )
            for group, count in zip(groups, counts):
                group.count = count
        return groups

    async def _load_children(self, node: AnyNode) -> list[AnyNode]:
        kind = node.kind

        if kind is NodeKind.GROUP:
            return await self._load_group(node)

        if kind is NodeKind.NOTEPAD:
            notepad = await self._notepad()
            return build_content_nodes(notepad.gist, read_only=False)

        if kind is NodeKind.ENTITY:
            gist = await self.remote.get_by_id(node.id)
            refreshed = EntityNode(gist, node.group, use_owner_avatar=node.use_owner_avatar)
            self._cache(refreshed)
            return build_content_nodes(gist, read_only=refreshed.read_only)

        if kind is NodeKind.USER:
            gists = await self.remote.list_for_user(node.login)
            return self._classify(gists, GroupKind.FOLLOWED_USERS)

        if kind is NodeKind.CONTENT:
            if node.is_directory:
                raise NotImplementedError(f"Expanding directory {node.path} is not supported")
            return []

        raise ConfigurationError(f"Unknown node kind: {kind!r}")

    async def _load_group(self, node: GroupNode) -> list[AnyNode]:
        group = node.group_kind

        if group is GroupKind.NOTEPAD:
            return [await self._notepad()]

        if group is GroupKind.MY_GISTS:
            return self._classify(await self._owned_gists(), GroupKind.MY_GISTS)

        if group is GroupKind.STARRED:
            return self._classify(await self.remote.list_owned(starred=True), GroupKind.STARRED)

        if group is GroupKind.FOLLOWED_USERS:
            # Follow order is kept on purpose: this group is never sorted
            return await self._followed_users()

        if group is GroupKind.OPENED_GISTS:
            gist_ids = self.store.read_from_global_storage(GlobalStorageGroup.OPENED_GISTS)
            self.last_batch, gists = await run_batch(
                [(gist_id, self.remote.get_by_id(gist_id)) for gist_id in gist_ids]
            )
            return self._classify([gist for gist in gists if gist is not None], GroupKind.OPENED_GISTS)

        raise ConfigurationError(f"Invalid group: {node.group!r}")

    def _classify(self, gists: list[Gist], group: GroupKind) -> list[EntityNode]:
        """Wrap gists as nodes of ``group``, cache them and sort them."""
        use_avatar = self.config.use_owner_avatar and group in (GroupKind.STARRED, GroupKind.OPENED_GISTS)
        nodes = [EntityNode(gist, group, use_owner_avatar=use_avatar) for gist in gists]
        for node in nodes:
            self._cache(node)
        return self.store.apply_sort(nodes)

    def _cache(self, node: EntityNode) -> None:
        self.store.upsert(keep_writable(node, self.store.get(node.id)))

    async def _notepad(self) -> NotepadNode:
        gist = await self.remote.get_or_create_notepad(self.config.notepad_name)
        notepad = NotepadNode(gist)
        self.store.upsert(notepad)
        return notepad

    async def _owned_gists(self) -> list[Gist]:
        gists = await self.remote.list_owned(starred=False)
        return [gist for gist in gists if gist.description != self.config.notepad_name]

    async def _followed_users(self) -> list[UserNode]:
        logins = self.store.read_from_global_storage(GlobalStorageGroup.FOLLOWED_USERS)
        users = [UserNode(GitHubUser(login=login)) for login in logins]

        if self.config.show_decorations and users:
            self.last_batch, profiles = await run_batch(
                [(user.login, self.remote.get_user(user.login)) for user in users]
            )
            for user, profile in zip(users, profiles):
                if profile is not None:
                    user.user = profile
                    user.gist_count = profile.public_gists

        return users

    async def _group_count(self, group: GroupKind) -> int:
        if group is GroupKind.NOTEPAD:
            return (await self._notepad()).file_count
        if group is GroupKind.MY_GISTS:
            return len(await self._owned_gists())
        if group is GroupKind.STARRED:
            return len(await self.remote.list_owned(starred=True))
        if group is GroupKind.FOLLOWED_USERS:
            return len(self.store.read_from_global_storage(GlobalStorageGroup.FOLLOWED_USERS))
        if group is GroupKind.OPENED_GISTS:
            return len(self.store.read_from_global_storage(GlobalStorageGroup.OPENED_GISTS))
        raise ConfigurationError(f"Invalid group: {group!r}")


def describe(node: Optional[Node]) -> str:
    if node is None:
        return "the tree root"
    return f"{node.kind.value} {node.label!r}"
