"""Schemas for gistree: GitHub payload models and the persisted state table."""

from datetime import datetime, timezone
from typing import Optional

from pydantic import BaseModel, Field as PydanticField
from sqlmodel import Field, SQLModel


def utcnow() -> datetime:
    """Get current UTC time."""
    return datetime.now(timezone.utc)


class GitHubUser(BaseModel):
    """A GitHub account as returned by the users and gists endpoints."""

    login: str
    id: Optional[int] = None
    avatar_url: Optional[str] = None
    html_url: Optional[str] = None
    name: Optional[str] = None
    public_gists: Optional[int] = None


class GistFile(BaseModel):
    """One file of a gist.

    ``content`` is only present on single-gist responses; list endpoints
    omit it. ``truncated`` marks content cut at 1MB, in which case
    ``raw_url`` has to be downloaded instead.
    """

    filename: str
    type: str = "text/plain"
    language: Optional[str] = None
    raw_url: Optional[str] = None
    size: int = 0
    truncated: bool = False
    content: Optional[str] = None


class GistHistoryEntry(BaseModel):
    """A revision of a gist; the newest entry comes first."""

    version: str
    committed_at: Optional[datetime] = None


class Gist(BaseModel):
    """A GitHub gist."""

    id: str
    description: Optional[str] = None
    public: bool = True
    owner: Optional[GitHubUser] = None
    files: dict[str, GistFile] = PydanticField(default_factory=dict)
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    html_url: Optional[str] = None
    git_pull_url: Optional[str] = None
    history: list[GistHistoryEntry] = PydanticField(default_factory=list)
    comments: int = 0

    @property
    def name(self) -> str:
        """Display name: description, else first filename, else id."""
        if self.description:
            return self.description
        if self.files:
            return next(iter(self.files))
        return self.id

    @property
    def owner_login(self) -> Optional[str]:
        return self.owner.login if self.owner else None

    @property
    def version(self) -> Optional[str]:
        """Version token of the latest revision, if the payload carries history."""
        if self.history:
            return self.history[0].version
        return None


class FileEntry(BaseModel):
    """A listing entry under an entity: what a ContentNode is built from."""

    name: str
    path: str
    type: str = "file"
    sha: Optional[str] = None
    size: int = 0
    language: Optional[str] = None
    raw_url: Optional[str] = None

    @classmethod
    def from_gist_file(cls, gist_file: GistFile, sha: Optional[str] = None) -> "FileEntry":
        """Build an entry from a gist file; gists are flat so path == name."""
        return cls(
            name=gist_file.filename,
            path=gist_file.filename,
            type=gist_file.type,
            sha=sha,
            size=gist_file.size,
            language=gist_file.language,
            raw_url=gist_file.raw_url,
        )


class GlobalStateEntry(SQLModel, table=True):
    """One persisted key/value slot (followed users, opened gists, sort state)."""

    __tablename__ = "global_state"

    key: str = Field(primary_key=True)
    value: str  # JSON encoded
    updated_at: datetime = Field(default_factory=utcnow)
