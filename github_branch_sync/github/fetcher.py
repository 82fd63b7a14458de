"""Resolves the latest commit of a branch and downloads its zip snapshot."""

import json
from typing import Any, Callable

import httpx
import structlog
from githubkit.exception import GitHubException, RequestFailed

from github_branch_sync.configuration.models import SyncTarget
from github_branch_sync.synchronize.exceptions import MissingFieldError, NetworkError, ParseError
from github_branch_sync.synchronize.results import Result

from .client import GitHubClient, get_archive_http_client, get_github_client

logger = structlog.get_logger(__name__)

GitHubClientFactory = Callable[[str | None, str, float], GitHubClient]
ArchiveClientFactory = Callable[[float], httpx.AsyncClient]


class SnapshotFetcher:
    """Talks to GitHub on behalf of the sync engine.

    Every public method returns a `Result` instead of raising, so the caller
    can stop at the first failed step without catching exceptions.
    """

    def __init__(
        self,
        github_api_url: str = "https://api.github.com",
        github_web_url: str = "https://github.com",
        timeout: float = 30.0,
        github_client_factory: GitHubClientFactory = get_github_client,
        archive_client_factory: ArchiveClientFactory = get_archive_http_client,
    ) -> None:
        """Initialize the fetcher with GitHub endpoints and client factories."""
        self.github_api_url = github_api_url
        self.github_web_url = github_web_url.rstrip("/")
        self.timeout = timeout
        self.github_client_factory = github_client_factory
        self.archive_client_factory = archive_client_factory

    def archive_url(self, target: SyncTarget) -> str:
        """Return the zip download URL for the target branch."""
        return f"{self.github_web_url}/{target.owner}/{target.repo}/archive/refs/heads/{target.branch}.zip"

    async def get_latest_commit_id(self, target: SyncTarget, github_token: str | None) -> Result[str]:
        """Resolve the SHA of the newest commit on the target branch."""
        client = self.github_client_factory(github_token, self.github_api_url, self.timeout)
        try:
            response = await client.rest.repos.async_get_commit(owner=target.owner, repo=target.repo, ref=target.branch)
        except RequestFailed as e:
            logger.warning(
                "GitHub commit lookup failed",
                repo=target.full_name,
                branch=target.branch,
                status_code=e.response.status_code,
            )
            return Result.failure(
                NetworkError(
                    f"GitHub API request for {target.full_name}@{target.branch} failed with status {e.response.status_code}",
                    url=str(e.response.url),
                    status_code=e.response.status_code,
                )
            )
        except GitHubException as e:
            return Result.failure(NetworkError(f"GitHub API request for {target.full_name}@{target.branch} failed: {e}"))

        try:
            data: Any = json.loads(response.content)
        except ValueError as e:
            return Result.failure(ParseError(f"GitHub API returned invalid JSON for {target.full_name}@{target.branch}: {e}"))
        if not isinstance(data, dict):
            return Result.failure(ParseError(f"GitHub API returned {type(data).__name__} instead of an object for {target.full_name}@{target.branch}"))

        sha = data.get("sha")
        if not isinstance(sha, str) or not sha:
            return Result.failure(MissingFieldError("sha"))
        logger.debug("Resolved latest commit", repo=target.full_name, branch=target.branch, sha=sha)
        return Result.success(sha)

    async def download_archive(self, target: SyncTarget) -> Result[bytes]:
        """Download the zip snapshot of the target branch into memory."""
        url = self.archive_url(target)
        try:
            async with self.archive_client_factory(self.timeout) as client:
                response = await client.get(url)
        except httpx.HTTPError as e:
            return Result.failure(NetworkError(f"Failed to download repository archive from {url}: {e}", url=url))

        if not response.is_success:
            return Result.failure(
                NetworkError(
                    f"Failed to download repository archive from {url}: HTTP {response.status_code}",
                    url=url,
                    status_code=response.status_code,
                )
            )
        if not response.content:
            return Result.failure(NetworkError(f"Repository archive download from {url} returned an empty body", url=url))
        logger.info("Downloaded repository archive", repo=target.full_name, branch=target.branch, size=len(response.content))
        return Result.success(response.content)
