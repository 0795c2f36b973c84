"""Content provider: file bytes addressed by ``gist://<gist id>/<path>``.

Version tokens are always taken from a freshly fetched gist right before a
write or delete, never from a cached tree node.
"""

import logging
from typing import Optional
from urllib.parse import urlparse

from gistree.errors import ConfigurationError
from gistree.models import GIST_SCHEME, EntityNode, Gist, GroupKind, NotepadNode, build_uri
from gistree.remote.base import RemoteContentService
from gistree.storage import Store
from gistree.tree import GistTreeProvider

logger = logging.getLogger(__name__)


def parse_uri(uri: str) -> tuple[str, str]:
    """Split a ``gist://`` uri into (gist id, path).

    Raises:
        ConfigurationError: If the uri is not a gist uri or has no path
    """
    parsed = urlparse(uri)
    path = parsed.path.lstrip("/")
    if parsed.scheme != GIST_SCHEME or not parsed.netloc or not path:
        raise ConfigurationError(f"Not a gist file uri: {uri!r}")
    return parsed.netloc, path


class GistFileSystem:
    """Reads and writes gist files on behalf of an editor."""

    build_uri = staticmethod(build_uri)
    parse_uri = staticmethod(parse_uri)

    def __init__(
        self,
        remote: RemoteContentService,
        store: Store,
        provider: Optional[GistTreeProvider] = None,
    ):
        self.remote = remote
        self.store = store
        self.provider = provider

    async def read_file(self, uri: str) -> bytes:
        gist_id, path = parse_uri(uri)
        gist = await self.remote.get_by_id(gist_id)
        gist_file = gist.files.get(path)
        if gist_file is None:
            raise FileNotFoundError(uri)
        if (gist_file.truncated or gist_file.content is None) and gist_file.raw_url:
            return await self.remote.download(gist_file.raw_url)
        return (gist_file.content or "").encode("utf-8")

    async def write_file(self, uri: str, content: bytes) -> Gist:
        """Create or overwrite a file."""
        gist_id, path = parse_uri(uri)
        self._check_writable(gist_id, uri)
        current = await self.remote.get_by_id(gist_id)
        sha = current.version if path in current.files else None
        gist = await self.remote.create_or_update(gist_id, path, content, sha)
        logger.info("Saved %s", uri)
        return self._updated(gist)

    async def rename(self, old_uri: str, new_uri: str) -> Gist:
        gist_id, old_path = parse_uri(old_uri)
        new_gist_id, new_path = parse_uri(new_uri)
        if gist_id != new_gist_id:
            raise ConfigurationError("Files cannot be moved between gists")
        self._check_writable(gist_id, old_uri)
        gist = await self.remote.rename(gist_id, old_path, new_path)
        logger.info("Renamed %s to %s", old_uri, new_path)
        return self._updated(gist)

    async def delete(self, uri: str) -> Gist:
        gist_id, path = parse_uri(uri)
        self._check_writable(gist_id, uri)
        current = await self.remote.get_by_id(gist_id)
        if path not in current.files:
            raise FileNotFoundError(uri)
        gist = await self.remote.delete(gist_id, path, current.version)
        logger.info("Deleted %s", uri)
        return self._updated(gist)

    def _check_writable(self, gist_id: str, uri: str) -> None:
        node = self.store.get(gist_id)
        if node is not None and node.read_only:
            raise PermissionError(f"{uri} belongs to a read-only gist")

    def _updated(self, gist: Gist) -> Gist:
        """Cache the gist returned by a mutation and redraw its node."""
        existing = self.store.get(gist.id)
        if isinstance(existing, NotepadNode):
            node = NotepadNode(gist)
        elif existing is not None:
            node = EntityNode(gist, existing.group, use_owner_avatar=existing.use_owner_avatar)
        else:
            node = EntityNode(gist, GroupKind.MY_GISTS)
        self.store.upsert(node)
        if self.provider is not None:
            self.provider.refresh(node)
        return gist
