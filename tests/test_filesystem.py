"""Tests for the gist:// content provider."""

import pytest

from gistree.errors import ConfigurationError, TransportError
from gistree.filesystem import GistFileSystem, parse_uri
from gistree.models import EntityNode, GistFile, GroupKind, GroupNode, NotepadNode
from gistree.storage import Store
from gistree.tree import GistTreeProvider

from conftest import FakeRemote, make_gist


@pytest.fixture
def fs(remote: FakeRemote, store: Store, provider: GistTreeProvider) -> GistFileSystem:
    return GistFileSystem(remote, store, provider)


class TestUris:
    """Tests for gist uri handling."""

    def test_round_trip(self):
        uri = GistFileSystem.build_uri("abc", "notes.md")
        assert uri == "gist://abc/notes.md"
        assert GistFileSystem.parse_uri(uri) == ("abc", "notes.md")

    @pytest.mark.parametrize("uri", ["file:///tmp/a.md", "gist://abc", "gist://abc/", "notes.md"])
    def test_rejects_non_gist_uris(self, uri):
        with pytest.raises(ConfigurationError):
            parse_uri(uri)


class TestReadFile:
    """Tests for reading file content."""

    @pytest.mark.asyncio
    async def test_inline_content(self, fs: GistFileSystem, remote: FakeRemote):
        remote.add(make_gist("g1", files={"a.py": "print(1)\n"}))
        assert await fs.read_file("gist://g1/a.py") == b"print(1)\n"

    @pytest.mark.asyncio
    async def test_truncated_content_is_downloaded(self, fs: GistFileSystem, remote: FakeRemote):
        gist = make_gist("g1")
        gist.files["big.log"] = GistFile(
            filename="big.log", content="partial", truncated=True, raw_url="https://raw.example/big.log"
        )
        remote.add(gist)

        assert await fs.read_file("gist://g1/big.log") == b"downloaded"
        assert ("download", "https://raw.example/big.log") in remote.calls

    @pytest.mark.asyncio
    async def test_missing_file(self, fs: GistFileSystem, remote: FakeRemote):
        remote.add(make_gist("g1"))
        with pytest.raises(FileNotFoundError):
            await fs.read_file("gist://g1/nope.txt")

    @pytest.mark.asyncio
    async def test_missing_gist(self, fs: GistFileSystem):
        with pytest.raises(TransportError):
            await fs.read_file("gist://nope/a.py")


class TestWriteFile:
    """Tests for writes, renames and deletes."""

    @pytest.mark.asyncio
    async def test_overwrite_uses_fresh_version(self, fs: GistFileSystem, remote: FakeRemote, store: Store):
        remote.add(make_gist("g1", files={"a.py": "old"}, version="fresh"))
        store.upsert(EntityNode(make_gist("g1", version="stale"), GroupKind.MY_GISTS))

        gist = await fs.write_file("gist://g1/a.py", b"new")

        assert ("create_or_update", "g1", "a.py", "fresh") in remote.calls
        assert gist.files["a.py"].content == "new"
        assert store.get("g1").gist.version == gist.version

    @pytest.mark.asyncio
    async def test_new_file_sends_no_version(self, fs: GistFileSystem, remote: FakeRemote):
        remote.add(make_gist("g1"))
        await fs.write_file("gist://g1/new.md", b"hello")
        assert ("create_or_update", "g1", "new.md", None) in remote.calls

    @pytest.mark.asyncio
    async def test_write_refreshes_node(self, fs: GistFileSystem, provider: GistTreeProvider, remote: FakeRemote):
        events = []
        provider.on_did_change(events.append)
        remote.add(make_gist("g1"))

        await fs.write_file("gist://g1/a.py", b"x")

        assert len(events) == 1
        assert events[0].node.id == "g1"

    @pytest.mark.asyncio
    async def test_notepad_stays_notepad(self, fs: GistFileSystem, remote: FakeRemote, store: Store):
        remote.add(make_gist("n1"))
        store.upsert(NotepadNode(make_gist("n1")))
        await fs.write_file("gist://n1/todo.md", b"- milk")
        assert isinstance(store.get("n1"), NotepadNode)

    @pytest.mark.asyncio
    async def test_read_only_gist_rejected(self, fs: GistFileSystem, remote: FakeRemote, store: Store):
        remote.add(make_gist("s1", owner="someone"))
        store.upsert(EntityNode(make_gist("s1", owner="someone"), GroupKind.STARRED))
        with pytest.raises(PermissionError):
            await fs.write_file("gist://s1/a.py", b"x")
        assert remote.calls == []

    @pytest.mark.asyncio
    async def test_rename(self, fs: GistFileSystem, remote: FakeRemote):
        remote.add(make_gist("g1", files={"a.py": "x"}))
        gist = await fs.rename("gist://g1/a.py", "gist://g1/b.py")
        assert list(gist.files) == ["b.py"]

    @pytest.mark.asyncio
    async def test_rename_across_gists(self, fs: GistFileSystem):
        with pytest.raises(ConfigurationError):
            await fs.rename("gist://g1/a.py", "gist://g2/a.py")

    @pytest.mark.asyncio
    async def test_delete(self, fs: GistFileSystem, remote: FakeRemote):
        remote.add(make_gist("g1", files={"a.py": "x", "b.py": "y"}, version="v5"))
        gist = await fs.delete("gist://g1/a.py")
        assert list(gist.files) == ["b.py"]
        assert ("delete", "g1", "a.py", "v5") in remote.calls

    @pytest.mark.asyncio
    async def test_delete_missing(self, fs: GistFileSystem, remote: FakeRemote):
        remote.add(make_gist("g1"))
        with pytest.raises(FileNotFoundError):
            await fs.delete("gist://g1/nope.py")

    @pytest.mark.asyncio
    async def test_owned_and_starred_gist_stays_writable(
        self, fs: GistFileSystem, provider: GistTreeProvider, remote: FakeRemote
    ):
        remote.add(make_gist("mine", owner="me"))
        remote.starred.append("mine")
        await provider.get_children(GroupNode("My Gists"))
        await provider.get_children(GroupNode("Starred Gists"))

        gist = await fs.write_file("gist://mine/main.py", b"x")

        assert gist.files["main.py"].content == "x"
