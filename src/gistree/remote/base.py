"""Base class for remote gist services."""

from abc import ABC, abstractmethod
from typing import Optional

from gistree.models import Gist, GitHubUser


class RemoteContentService(ABC):
    """Abstract remote source of gists, their files, users and stars.

    Every method either returns a payload or raises
    :class:`gistree.errors.TransportError`.
    """

    @abstractmethod
    async def get_authenticated_user(self) -> GitHubUser:
        """Return the user the service is authenticated as."""
        pass

    @abstractmethod
    async def list_owned(self, starred: bool = False) -> list[Gist]:
        """List the authenticated user's gists, or the ones they starred."""
        pass

    @abstractmethod
    async def get_by_id(self, gist_id: str) -> Gist:
        """Fetch one gist including its file listing and content."""
        pass

    @abstractmethod
    async def list_for_user(self, login: str) -> list[Gist]:
        """List the public gists owned by ``login``."""
        pass

    @abstractmethod
    async def get_user(self, login: str) -> GitHubUser:
        """Fetch a user profile."""
        pass

    @abstractmethod
    async def get_or_create_notepad(self, name: str) -> Gist:
        """Return the reserved notepad gist, creating it on first use."""
        pass

    @abstractmethod
    async def create_gist(
        self,
        files: dict[str, str],
        description: Optional[str] = None,
        public: bool = False,
    ) -> Gist:
        pass

    @abstractmethod
    async def create_or_update(
        self,
        gist_id: str,
        path: str,
        content: bytes,
        sha: Optional[str] = None,
    ) -> Gist:
        """Create or overwrite one file.

        When ``sha`` is given it must match the gist's current version.
        """
        pass

    @abstractmethod
    async def rename(self, gist_id: str, old_path: str, new_path: str) -> Gist:
        pass

    @abstractmethod
    async def delete(self, gist_id: str, path: str, sha: Optional[str]) -> Gist:
        """Delete one file from a gist."""
        pass

    @abstractmethod
    async def delete_gist(self, gist_id: str) -> None:
        pass

    @abstractmethod
    async def star(self, gist_id: str) -> None:
        pass

    @abstractmethod
    async def unstar(self, gist_id: str) -> None:
        pass

    @abstractmethod
    async def fork(self, gist_id: str) -> Gist:
        pass

    async def download(self, url: str) -> bytes:
        """Download raw file content (used for truncated files)."""
        raise NotImplementedError(f"{type(self).__name__} cannot download {url}")

    async def close(self) -> None:
        """Release network resources."""
        pass
