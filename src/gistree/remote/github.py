"""GitHub gist client for gistree.

This module provides:
- An async GitHub API client for the gists endpoints
- Pagination over list endpoints
- Retry with exponential backoff and rate limit handling
- Translation of httpx failures into TransportError
"""

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Any, Optional

import httpx

from gistree.errors import TransportError
from gistree.models import Gist, GitHubUser
from gistree.remote.base import RemoteContentService

logger = logging.getLogger(__name__)

NOTEPAD_FILENAME = "notepad.md"


@dataclass
class RateLimitInfo:
    """GitHub API rate limit information."""

    limit: int = 60
    remaining: int = 60
    reset_at: float = 0.0

    @classmethod
    def from_headers(cls, headers: httpx.Headers) -> "RateLimitInfo":
        """Parse rate limit info from response headers."""
        return cls(
            limit=int(headers.get("x-ratelimit-limit", 60)),
            remaining=int(headers.get("x-ratelimit-remaining", 60)),
            reset_at=float(headers.get("x-ratelimit-reset", 0)),
        )

    @property
    def is_exhausted(self) -> bool:
        """Check if rate limit is exhausted."""
        return self.remaining <= 0

    @property
    def seconds_until_reset(self) -> float:
        """Seconds until rate limit resets."""
        return max(0, self.reset_at - time.time())


def to_transport_error(error: httpx.HTTPError) -> TransportError:
    """Convert an httpx failure into a TransportError.

    GitHub puts a human readable reason in the ``message`` field of error
    bodies; fall back to the reason phrase when it is missing.
    """
    if isinstance(error, httpx.HTTPStatusError):
        response = error.response
        message = response.reason_phrase or str(error)
        try:
            body = response.json()
        except ValueError:
            body = None
        if isinstance(body, dict) and body.get("message"):
            message = body["message"]
        return TransportError(message, status_code=response.status_code)
    return TransportError(str(error) or type(error).__name__)


class GitHubGistClient(RemoteContentService):
    """Async client for the GitHub gists API with rate limit handling."""

    BASE_URL = "https://api.github.com"

    def __init__(
        self,
        token: Optional[str] = None,
        max_retries: int = 3,
        retry_delay: float = 1.0,
        respect_rate_limit: bool = True,
        per_page: int = 100,
    ):
        """Initialize GitHub gist client.

        Args:
            token: GitHub token with the ``gist`` scope. Without it only
                   public gists of other users can be listed.
            max_retries: Maximum number of retries for failed requests.
            retry_delay: Base delay between retries (exponential backoff).
            respect_rate_limit: If True, wait when rate limited instead of failing.
            per_page: Page size for list endpoints (max 100).
        """
        self.token = token
        self.max_retries = max_retries
        self.retry_delay = retry_delay
        self.respect_rate_limit = respect_rate_limit
        self.per_page = min(per_page, 100)
        self._client: Optional[httpx.AsyncClient] = None
        self._rate_limit = RateLimitInfo()
        self._user: Optional[GitHubUser] = None

    @property
    def client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None:
            headers = {
                "Accept": "application/vnd.github+json",
                "User-Agent": "gistree",
            }
            if self.token:
                headers["Authorization"] = f"Bearer {self.token}"
            self._client = httpx.AsyncClient(
                base_url=self.BASE_URL,
                headers=headers,
                timeout=httpx.Timeout(30.0, connect=10.0),
                follow_redirects=True,
            )
        return self._client

    @property
    def rate_limit(self) -> RateLimitInfo:
        """Current rate limit info."""
        return self._rate_limit

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> "GitHubGistClient":
        return self

    async def __aexit__(self, *args) -> None:
        await self.close()

    async def _request_with_retry(
        self,
        method: str,
        url: str,
        **kwargs,
    ) -> httpx.Response:
        """Make a request with retry and rate limit handling.

        Args:
            method: HTTP method
            url: Request URL
            **kwargs: Additional arguments for httpx

        Returns:
            HTTP response

        Raises:
            httpx.HTTPError: If request fails after retries
        """
        for attempt in range(self.max_retries + 1):
            try:
                # Check rate limit before making request
                if self._rate_limit.is_exhausted and self.respect_rate_limit:
                    wait_time = self._rate_limit.seconds_until_reset + 1
                    if 0 < wait_time < 900:  # Max 15 min wait
                        logger.warning("Rate limit exhausted, waiting %.0fs", wait_time)
                        await asyncio.sleep(wait_time)

                response = await self.client.request(method, url, **kwargs)
                self._rate_limit = RateLimitInfo.from_headers(response.headers)

                if response.status_code == 403 and "rate limit" in response.text.lower():
                    if self.respect_rate_limit and attempt < self.max_retries:
                        wait_time = self._rate_limit.seconds_until_reset + 1
                        if 0 < wait_time < 900:
                            logger.warning("Rate limited on %s %s, waiting %.0fs", method, url, wait_time)
                            await asyncio.sleep(wait_time)
                            continue
                    raise httpx.HTTPStatusError(
                        f"Rate limit exceeded. Resets in {self._rate_limit.seconds_until_reset:.0f}s",
                        request=response.request,
                        response=response,
                    )

                # Server errors are retried
                if response.status_code >= 500:
                    response.raise_for_status()

                return response

            except (httpx.ConnectError, httpx.ReadTimeout, httpx.HTTPStatusError) as e:
                if attempt < self.max_retries:
                    delay = self.retry_delay * (2 ** attempt)
                    logger.warning(
                        "[Retry] Attempt %d/%d failed for %s %s: %s. Retrying in %.1fs...",
                        attempt + 1,
                        self.max_retries + 1,
                        method,
                        url,
                        e,
                        delay,
                    )
                    await asyncio.sleep(delay)
                    continue
                raise

        raise RuntimeError("Request failed without error")

    async def request(self, method: str, url: str, **kwargs) -> httpx.Response:
        """Make a request and raise TransportError on any failure."""
        try:
            response = await self._request_with_retry(method, url, **kwargs)
            response.raise_for_status()
        except httpx.HTTPError as e:
            error = to_transport_error(e)
            logger.debug("%s %s failed: %s", method, url, error)
            raise error from e
        return response

    async def _paginate(self, url: str, params: Optional[dict[str, Any]] = None) -> list[dict]:
        """Collect every page of a list endpoint."""
        items: list[dict] = []
        page = 1

        while True:
            response = await self.request(
                "GET",
                url,
                params={**(params or {}), "per_page": self.per_page, "page": page},
            )
            data = response.json()

            if not data:
                break

            items.extend(data)

            # A short page is the last one
            if len(data) < self.per_page:
                break
            page += 1

        return items

    async def get_authenticated_user(self) -> GitHubUser:
        """Get the authenticated user's information.

        Returns:
            The authenticated user, cached after the first call

        Raises:
            TransportError: If not authenticated
        """
        if self._user is None:
            response = await self.request("GET", "/user")
            self._user = GitHubUser.model_validate(response.json())
        return self._user

    async def get_user(self, login: str) -> GitHubUser:
        response = await self.request("GET", f"/users/{login}")
        return GitHubUser.model_validate(response.json())

    async def list_owned(self, starred: bool = False) -> list[Gist]:
        """List gists of the authenticated user.

        Args:
            starred: List starred gists instead of owned ones

        Returns:
            List of Gist objects (without file content)
        """
        url = "/gists/starred" if starred else "/gists"
        return [Gist.model_validate(item) for item in await self._paginate(url)]

    async def list_for_user(self, login: str) -> list[Gist]:
        return [Gist.model_validate(item) for item in await self._paginate(f"/users/{login}/gists")]

    async def get_by_id(self, gist_id: str) -> Gist:
        response = await self.request("GET", f"/gists/{gist_id}")
        return Gist.model_validate(response.json())

    async def get_or_create_notepad(self, name: str) -> Gist:
        """Return the gist whose description is ``name``, creating it if needed."""
        for gist in await self.list_owned():
            if gist.description == name:
                return await self.get_by_id(gist.id)

        logger.info("Creating notepad gist %r", name)
        return await self.create_gist({NOTEPAD_FILENAME: f"# {name}\n"}, description=name, public=False)

    async def create_gist(
        self,
        files: dict[str, str],
        description: Optional[str] = None,
        public: bool = False,
    ) -> Gist:
        payload = {
            "description": description or "",
            "public": public,
            "files": {filename: {"content": content} for filename, content in files.items()},
        }
        response = await self.request("POST", "/gists", json=payload)
        return Gist.model_validate(response.json())

    async def _patch_files(self, gist_id: str, files: dict[str, Optional[dict]]) -> Gist:
        response = await self.request("PATCH", f"/gists/{gist_id}", json={"files": files})
        return Gist.model_validate(response.json())

    async def _check_version(self, gist_id: str, path: str, sha: Optional[str]) -> None:
        """Refuse to write over a gist that changed since ``sha`` was read."""
        if not sha:
            return
        current = await self.get_by_id(gist_id)
        if current.version and current.version != sha:
            raise TransportError(
                f"{path} in gist {gist_id} changed on GitHub (expected {sha}, found {current.version})",
                status_code=409,
            )

    async def create_or_update(
        self,
        gist_id: str,
        path: str,
        content: bytes,
        sha: Optional[str] = None,
    ) -> Gist:
        await self._check_version(gist_id, path, sha)
        return await self._patch_files(gist_id, {path: {"content": content.decode("utf-8")}})

    async def rename(self, gist_id: str, old_path: str, new_path: str) -> Gist:
        return await self._patch_files(gist_id, {old_path: {"filename": new_path}})

    async def delete(self, gist_id: str, path: str, sha: Optional[str]) -> Gist:
        await self._check_version(gist_id, path, sha)
        return await self._patch_files(gist_id, {path: None})

    async def delete_gist(self, gist_id: str) -> None:
        await self.request("DELETE", f"/gists/{gist_id}")

    async def star(self, gist_id: str) -> None:
        await self.request("PUT", f"/gists/{gist_id}/star", headers={"Content-Length": "0"})

    async def unstar(self, gist_id: str) -> None:
        await self.request("DELETE", f"/gists/{gist_id}/star")

    async def fork(self, gist_id: str) -> Gist:
        response = await self.request("POST", f"/gists/{gist_id}/forks")
        return Gist.model_validate(response.json())

    async def download(self, url: str) -> bytes:
        response = await self.request("GET", url)
        return response.content
