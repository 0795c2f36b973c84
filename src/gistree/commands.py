"""User commands that mutate gists or persisted state.

Each command performs its remote call, updates the Store and invalidates the
part of the tree it touched. Invalidation is lazy: the returned
``RefreshHandle`` resolves once the host reloads that part of the tree.
"""

import logging
from typing import Optional, Union

from gistree.errors import ConfigurationError
from gistree.filesystem import GistFileSystem
from gistree.models import ContentNode, EntityNode, Gist, GroupKind, GroupNode, build_uri, keep_writable
from gistree.remote.base import RemoteContentService
from gistree.storage import GlobalStateKey, GlobalStorageGroup, SortDirection, SortType, Store
from gistree.tree import GistTreeProvider, RefreshHandle

logger = logging.getLogger(__name__)


class GistCommands:
    """Mutating operations available to the CLI and the dashboard."""

    def __init__(
        self,
        remote: RemoteContentService,
        store: Store,
        provider: GistTreeProvider,
        filesystem: Optional[GistFileSystem] = None,
    ):
        self.remote = remote
        self.store = store
        self.provider = provider
        self.filesystem = filesystem or GistFileSystem(remote, store, provider)

    def _refresh_group(self, group: GroupKind, is_sort_change: bool = False) -> RefreshHandle:
        return self.provider.refresh(GroupNode(group.value), is_sort_change=is_sort_change)

    @staticmethod
    def _require_writable(node: EntityNode) -> None:
        if node.read_only:
            raise PermissionError(f"Gist {node.name!r} is read-only")

    # --- gists ----------------------------------------------------------

    async def create_gist(
        self,
        files: dict[str, str],
        description: Optional[str] = None,
        public: bool = False,
    ) -> Gist:
        if not files:
            raise ConfigurationError("A gist needs at least one file")
        gist = await self.remote.create_gist(files, description=description, public=public)
        self.store.upsert(EntityNode(gist, GroupKind.MY_GISTS))
        self._refresh_group(GroupKind.MY_GISTS)
        logger.info("Created gist %s", gist.id)
        return gist

    async def delete_gist(self, node: EntityNode) -> RefreshHandle:
        self._require_writable(node)
        await self.remote.delete_gist(node.id)
        self.store.remove(node.id)
        self.store.remove_from_global_storage(GlobalStorageGroup.OPENED_GISTS, node.id)
        logger.info("Deleted gist %s", node.id)
        return self._refresh_group(node.group)

    async def fork_gist(self, node: EntityNode) -> Gist:
        gist = await self.remote.fork(node.id)
        self.store.upsert(EntityNode(gist, GroupKind.MY_GISTS))
        self._refresh_group(GroupKind.MY_GISTS)
        logger.info("Forked gist %s into %s", node.id, gist.id)
        return gist

    async def star_gist(self, node: EntityNode) -> RefreshHandle:
        await self.remote.star(node.id)
        return self._refresh_group(GroupKind.STARRED)

    async def unstar_gist(self, node: EntityNode) -> RefreshHandle:
        await self.remote.unstar(node.id)
        cached = self.store.get(node.id)
        if cached is not None and cached.group is GroupKind.STARRED:
            self.store.remove(node.id)
        return self._refresh_group(GroupKind.STARRED)

    async def open_gist(self, gist_id: str) -> RefreshHandle:
        """Pin someone's gist under Opened Gists."""
        gist = await self.remote.get_by_id(gist_id)
        self.store.add_to_global_storage(GlobalStorageGroup.OPENED_GISTS, gist.id)
        node = EntityNode(gist, GroupKind.OPENED_GISTS)
        self.store.upsert(keep_writable(node, self.store.get(gist.id)))
        return self._refresh_group(GroupKind.OPENED_GISTS)

    def close_gist(self, gist: Union[EntityNode, str]) -> RefreshHandle:
        gist_id = gist if isinstance(gist, str) else gist.id
        self.store.remove_from_global_storage(GlobalStorageGroup.OPENED_GISTS, gist_id)
        cached = self.store.get(gist_id)
        if cached is not None and cached.group is GroupKind.OPENED_GISTS:
            self.store.remove(gist_id)
        return self._refresh_group(GroupKind.OPENED_GISTS)

    # --- files ----------------------------------------------------------

    async def add_file(self, node: EntityNode, filename: str, content: str = "") -> Gist:
        self._require_writable(node)
        if filename in node.gist.files:
            raise FileExistsError(f"{filename} already exists in {node.name!r}")
        # GitHub rejects empty files
        return await self.filesystem.write_file(build_uri(node.id, filename), (content or "\n").encode("utf-8"))

    async def delete_files(self, nodes: list[ContentNode]) -> None:
        for node in nodes:
            await self.filesystem.delete(node.uri)

    async def rename_file(self, node: ContentNode, new_name: str) -> Gist:
        return await self.filesystem.rename(node.uri, build_uri(node.parent_id, new_name))

    # --- users ----------------------------------------------------------

    async def follow_user(self, login: str) -> RefreshHandle:
        user = await self.remote.get_user(login)
        me = await self.remote.get_authenticated_user()
        if user.login == me.login:
            raise ConfigurationError("You cannot follow yourself")
        self.store.add_to_global_storage(GlobalStorageGroup.FOLLOWED_USERS, user.login)
        return self._refresh_group(GroupKind.FOLLOWED_USERS)

    def unfollow_user(self, login: str) -> RefreshHandle:
        self.store.remove_from_global_storage(GlobalStorageGroup.FOLLOWED_USERS, login)
        return self._refresh_group(GroupKind.FOLLOWED_USERS)

    # --- sorting & storage ----------------------------------------------

    def sort_by(self, sort_type: Union[SortType, str]) -> RefreshHandle:
        return self.provider.sort_gists(sort_type, self.store.sort_direction)

    def sort_direction(self, direction: Union[SortDirection, str]) -> RefreshHandle:
        return self.provider.sort_gists(self.store.sort_type, direction)

    def purge_storage(self) -> RefreshHandle:
        self.store.purge_global_storage()
        return self.provider.refresh()

    def describe_storage(self) -> dict:
        """Snapshot of every persisted slot."""
        return {
            GlobalStorageGroup.FOLLOWED_USERS.value: self.store.read_from_global_storage(
                GlobalStorageGroup.FOLLOWED_USERS
            ),
            GlobalStorageGroup.OPENED_GISTS.value: self.store.read_from_global_storage(
                GlobalStorageGroup.OPENED_GISTS
            ),
            GlobalStateKey.SORT_TYPE.value: self.store.sort_type.value,
            GlobalStateKey.SORT_DIRECTION.value: self.store.sort_direction.value,
        }
