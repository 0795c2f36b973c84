"""Wiring of one gistree session: client, store, provider, commands."""

from dataclasses import dataclass
from typing import Optional

from gistree.commands import GistCommands
from gistree.config import GistreeConfig
from gistree.filesystem import GistFileSystem
from gistree.remote import GitHubGistClient, RemoteContentService
from gistree.storage import SQLBackend, StorageBackend, Store
from gistree.tree import GistTreeProvider


@dataclass
class GistSession:
    """Everything a host needs, built once and passed around explicitly."""

    config: GistreeConfig
    remote: RemoteContentService
    store: Store
    provider: GistTreeProvider
    filesystem: GistFileSystem
    commands: GistCommands

    @classmethod
    def create(
        cls,
        config: GistreeConfig,
        token: Optional[str] = None,
        remote: Optional[RemoteContentService] = None,
        backend: Optional[StorageBackend] = None,
    ) -> "GistSession":
        if remote is None:
            remote = GitHubGistClient(
                token=token,
                max_retries=config.max_retries,
                retry_delay=config.retry_delay,
                per_page=config.per_page,
            )
        if backend is None:
            backend = SQLBackend.from_url(config.resolved_database_url())
        store = Store(backend)
        provider = GistTreeProvider(remote, store, config)
        filesystem = GistFileSystem(remote, store, provider)
        commands = GistCommands(remote, store, provider, filesystem)
        return cls(
            config=config,
            remote=remote,
            store=store,
            provider=provider,
            filesystem=filesystem,
            commands=commands,
        )

    async def close(self) -> None:
        await self.remote.close()
