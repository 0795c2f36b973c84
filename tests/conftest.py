"""Shared fixtures: an in-memory remote service and a wired provider."""

import asyncio
from datetime import datetime, timezone
from typing import Optional

import pytest

from gistree.config import GistreeConfig
from gistree.errors import TransportError
from gistree.models import Gist, GistFile, GistHistoryEntry, GitHubUser
from gistree.remote.base import RemoteContentService
from gistree.storage import MemoryBackend, Store
from gistree.tree import GistTreeProvider

NOTEPAD = "Gistree Notepad"


def make_gist(
    gist_id: str,
    description: Optional[str] = None,
    files: Optional[dict[str, str]] = None,
    owner: str = "me",
    created: str = "2024-01-01T00:00:00Z",
    updated: str = "2024-01-02T00:00:00Z",
    version: Optional[str] = None,
) -> Gist:
    """Build a gist payload the way the GitHub API would return it."""
    files = files if files is not None else {"main.py": "print('hi')\n"}
    return Gist(
        id=gist_id,
        description=description,
        owner=GitHubUser(login=owner, avatar_url=f"https://avatars.example/{owner}"),
        files={
            name: GistFile(filename=name, type="text/plain", content=content, size=len(content))
            for name, content in files.items()
        },
        created_at=datetime.fromisoformat(created.replace("Z", "+00:00")),
        updated_at=datetime.fromisoformat(updated.replace("Z", "+00:00")),
        history=[GistHistoryEntry(version=version or f"{gist_id}-v1")],
    )


class FakeRemote(RemoteContentService):
    """RemoteContentService backed by dictionaries."""

    def __init__(self, login: str = "me"):
        self.me = GitHubUser(login=login, avatar_url=f"https://avatars.example/{login}")
        self.gists: dict[str, Gist] = {}
        self.starred: list[str] = []
        self.user_gists: dict[str, list[Gist]] = {}
        self.users: dict[str, GitHubUser] = {}
        self.failures: dict[str, TransportError] = {}
        self.calls: list[tuple] = []
        self.gate: Optional[asyncio.Event] = None
        self._revision = 1

    def add(self, *gists: Gist) -> None:
        for gist in gists:
            self.gists[gist.id] = gist

    async def _call(self, name: str, *args) -> None:
        self.calls.append((name, *args))
        if self.gate is not None:
            await self.gate.wait()
        for key in (name, f"{name}:{args[0]}" if args else name):
            if key in self.failures:
                raise self.failures[key]

    def _bump(self, gist: Gist) -> Gist:
        self._revision += 1
        updated = gist.model_copy(
            update={"history": [GistHistoryEntry(version=f"{gist.id}-v{self._revision}")]}
        )
        self.gists[gist.id] = updated
        return updated

    async def get_authenticated_user(self) -> GitHubUser:
        await self._call("get_authenticated_user")
        return self.me

    async def list_owned(self, starred: bool = False) -> list[Gist]:
        await self._call("list_owned", starred)
        if starred:
            return [self.gists[gist_id] for gist_id in self.starred if gist_id in self.gists]
        return [gist for gist in self.gists.values() if gist.owner_login == self.me.login]

    async def get_by_id(self, gist_id: str) -> Gist:
        await self._call("get_by_id", gist_id)
        if gist_id not in self.gists:
            raise TransportError("Not Found", status_code=404)
        return self.gists[gist_id]

    async def list_for_user(self, login: str) -> list[Gist]:
        await self._call("list_for_user", login)
        return list(self.user_gists.get(login, []))

    async def get_user(self, login: str) -> GitHubUser:
        await self._call("get_user", login)
        if login not in self.users:
            raise TransportError("Not Found", status_code=404)
        return self.users[login]

    async def get_or_create_notepad(self, name: str) -> Gist:
        await self._call("get_or_create_notepad", name)
        for gist in self.gists.values():
            if gist.description == name and gist.owner_login == self.me.login:
                return gist
        return await self.create_gist({"notepad.md": f"# {name}\n"}, description=name)

    async def create_gist(self, files, description=None, public=False) -> Gist:
        await self._call("create_gist", description)
        gist = make_gist(f"new{len(self.gists) + 1}", description=description, files=files, owner=self.me.login)
        self.add(gist)
        return gist

    async def create_or_update(self, gist_id, path, content, sha=None) -> Gist:
        await self._call("create_or_update", gist_id, path, sha)
        gist = self.gists[gist_id]
        if sha and gist.version != sha:
            raise TransportError("conflict", status_code=409)
        files = dict(gist.files)
        text = content.decode("utf-8")
        files[path] = GistFile(filename=path, content=text, size=len(text))
        return self._bump(gist.model_copy(update={"files": files}))

    async def rename(self, gist_id, old_path, new_path) -> Gist:
        await self._call("rename", gist_id, old_path, new_path)
        gist = self.gists[gist_id]
        files = {
            (new_path if name == old_path else name): (
                f.model_copy(update={"filename": new_path}) if name == old_path else f
            )
            for name, f in gist.files.items()
        }
        return self._bump(gist.model_copy(update={"files": files}))

    async def delete(self, gist_id, path, sha) -> Gist:
        await self._call("delete", gist_id, path, sha)
        gist = self.gists[gist_id]
        files = {name: f for name, f in gist.files.items() if name != path}
        return self._bump(gist.model_copy(update={"files": files}))

    async def delete_gist(self, gist_id) -> None:
        await self._call("delete_gist", gist_id)
        self.gists.pop(gist_id, None)

    async def star(self, gist_id) -> None:
        await self._call("star", gist_id)
        if gist_id not in self.starred:
            self.starred.append(gist_id)

    async def unstar(self, gist_id) -> None:
        await self._call("unstar", gist_id)
        self.starred = [starred for starred in self.starred if starred != gist_id]

    async def fork(self, gist_id) -> Gist:
        await self._call("fork", gist_id)
        source = self.gists[gist_id]
        fork = source.model_copy(
            update={"id": f"{gist_id}-fork", "owner": self.me, "history": [GistHistoryEntry(version="fork-v1")]}
        )
        self.add(fork)
        return fork

    async def download(self, url: str) -> bytes:
        await self._call("download", url)
        return b"downloaded"


@pytest.fixture
def remote() -> FakeRemote:
    return FakeRemote()


@pytest.fixture
def store() -> Store:
    return Store(MemoryBackend())


@pytest.fixture
def config() -> GistreeConfig:
    return GistreeConfig(notepad_name=NOTEPAD)


@pytest.fixture
def provider(remote: FakeRemote, store: Store, config: GistreeConfig) -> GistTreeProvider:
    return GistTreeProvider(remote, store, config)
