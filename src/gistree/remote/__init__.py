"""Remote gist services for gistree."""

from .base import RemoteContentService
from .github import GitHubGistClient, RateLimitInfo

__all__ = [
    "GitHubGistClient",
    "RateLimitInfo",
    "RemoteContentService",
]
