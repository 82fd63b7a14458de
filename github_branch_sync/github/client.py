"""Sets up the githubkit client and the plain HTTP client used for archive downloads."""

from dataclasses import dataclass
from typing import TYPE_CHECKING, Generator, TypeAlias

import httpx
from githubkit import GitHub
from githubkit.auth import BaseAuthStrategy, UnauthAuthStrategy

if TYPE_CHECKING:
    from githubkit import GitHubCore

USER_AGENT = "github-branch-sync"


class BearerTokenAuth(httpx.Auth):
    """httpx auth flow sending the token as `Authorization: Bearer <token>`."""

    def __init__(self, token: str) -> None:
        """Initialize the auth flow with the token to send."""
        self.token = token

    def auth_flow(self, request: httpx.Request) -> Generator[httpx.Request, httpx.Response, None]:
        """Add the bearer authorization header to the request."""
        request.headers["Authorization"] = f"Bearer {self.token}"
        yield request


@dataclass
class BearerTokenAuthStrategy(BaseAuthStrategy):
    """Static bearer token authentication.

    githubkit's `TokenAuthStrategy` uses the legacy `token` scheme.
    """

    token: str

    def get_auth_flow(self, github: "GitHubCore") -> httpx.Auth:
        """Return the auth flow applied to every API request."""
        return BearerTokenAuth(self.token)


GitHubClient: TypeAlias = GitHub[BearerTokenAuthStrategy] | GitHub[UnauthAuthStrategy]


def get_github_client(
    github_token: str | None,
    github_api_url: str,
    timeout: float,
    async_transport: httpx.AsyncBaseTransport | None = None,
) -> GitHubClient:
    """Returns a githubkit client, authenticated when a token is given.

    Automatic rate limit retries are disabled: a failed lookup is retried on
    the next scheduler tick instead.
    """
    auth: BearerTokenAuthStrategy | UnauthAuthStrategy = BearerTokenAuthStrategy(github_token) if github_token else UnauthAuthStrategy()
    # Disable HTTP caching to always get fresh data
    return GitHub(
        auth=auth,
        base_url=github_api_url,
        user_agent=USER_AGENT,
        timeout=timeout,
        async_transport=async_transport,
        http_cache=False,
        auto_retry=False,
    )


def get_archive_http_client(timeout: float) -> httpx.AsyncClient:
    """Returns an httpx client for downloading branch archives from the web host."""
    return httpx.AsyncClient(
        headers={"User-Agent": USER_AGENT},
        timeout=timeout,
        follow_redirects=True,
    )
