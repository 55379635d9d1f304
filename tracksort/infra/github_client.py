"""GitHub REST API client — the SourceGateway collaborator.

Fetches and creates issues for an ``org/repo`` collection, forwarding a
fixed credential and the caller's User-Agent. Failures are mapped to
ExternalAPIError and are not retried.

Usage:
    client = GitHubClient(token="...")
    issues = await client.fetch(IssueCollection("octo", "hello"))
"""

from typing import Any

import httpx

from tracksort.exceptions import ExternalAPIError, FormatError
from tracksort.schemas.issue import IssueCollection
from tracksort.utils.redaction import redact_error_message

DEFAULT_USER_AGENT = "tracksort"


class GitHubClient:
    """Async HTTP client for the GitHub issues endpoints."""

    BASE_URL = "https://api.github.com"
    DEFAULT_TIMEOUT = 30.0

    def __init__(
        self,
        token: str,
        base_url: str | None = None,
        timeout: float = DEFAULT_TIMEOUT,
    ) -> None:
        """Initialize the GitHub client.

        Args:
            token: Credential sent as ``Authorization: token <token>``.
            base_url: Override base URL (useful for testing).
            timeout: Request timeout in seconds.
        """
        if not token:
            raise ValueError("GitHub token required.")
        self._token = token
        self._base_url = base_url or self.BASE_URL
        self._timeout = timeout
        self._client: httpx.AsyncClient | None = None

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create the HTTP client."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                base_url=self._base_url,
                timeout=self._timeout,
                headers={
                    "Authorization": f"token {self._token}",
                    "Accept": "application/vnd.github+json",
                },
            )
        return self._client

    async def close(self) -> None:
        """Close the underlying HTTP client."""
        if self._client and not self._client.is_closed:
            await self._client.aclose()
            self._client = None

    async def _request(
        self,
        method: str,
        path: str,
        *,
        content: bytes | None = None,
        user_agent: str | None = None,
    ) -> Any:
        """Send one request and decode the JSON response.

        Raises:
            ExternalAPIError: On transport errors or non-2xx responses.
            FormatError: If the response body is not JSON.
        """
        client = await self._get_client()
        headers = {"User-Agent": user_agent or DEFAULT_USER_AGENT}
        if content is not None:
            headers["Content-Type"] = "application/json"

        try:
            response = await client.request(method, path, content=content, headers=headers)
        except httpx.TimeoutException as e:
            raise ExternalAPIError(
                message=f"GitHub API timeout: {redact_error_message(str(e))}",
                service="github",
                status_code=504,
            ) from e
        except httpx.HTTPError as e:
            raise ExternalAPIError(
                message=f"GitHub API HTTP error: {redact_error_message(str(e))}",
                service="github",
            ) from e

        if not response.is_success:
            raise ExternalAPIError(
                message=(
                    f"GitHub API returned {response.status_code}: "
                    f"{redact_error_message(response.text[:200])}"
                ),
                service="github",
                status_code=response.status_code,
            )

        try:
            return response.json()
        except ValueError as e:
            raise FormatError(f"GitHub API returned non-JSON body: {e}") from e

    async def fetch(
        self,
        collection: IssueCollection,
        *,
        user_agent: str | None = None,
    ) -> list[dict[str, Any]]:
        """List the issues of a collection in GitHub's order."""
        data = await self._request("GET", collection.issues_path, user_agent=user_agent)
        if not isinstance(data, list):
            raise FormatError(f"Expected a list of issues, got {type(data).__name__}")
        return data

    async def create(
        self,
        collection: IssueCollection,
        body: bytes,
        *,
        user_agent: str | None = None,
    ) -> dict[str, Any]:
        """Create an issue from a raw JSON body and return GitHub's record."""
        data = await self._request(
            "POST", collection.issues_path, content=body, user_agent=user_agent
        )
        if not isinstance(data, dict):
            raise FormatError(f"Expected an issue object, got {type(data).__name__}")
        return data
