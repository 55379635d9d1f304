"""ngrok agent client — the TunnelProvider collaborator.

Talks to a locally running ngrok agent through its HTTP API
(``POST /api/tunnels``) to expose the service port publicly. The public
URL is only used to tell the operator where to point the GitHub webhook.
"""

from typing import Any

import httpx
import structlog

from tracksort.exceptions import ExternalAPIError

logger = structlog.get_logger()


class NgrokClient:
    """Opens and closes one named HTTP tunnel on a local ngrok agent."""

    API_URL = "http://127.0.0.1:4040"
    DEFAULT_TIMEOUT = 10.0
    TUNNEL_NAME = "tracksort"

    def __init__(
        self,
        api_url: str | None = None,
        timeout: float = DEFAULT_TIMEOUT,
        tunnel_name: str = TUNNEL_NAME,
    ) -> None:
        self._api_url = api_url or self.API_URL
        self._timeout = timeout
        self._tunnel_name = tunnel_name
        self._client: httpx.AsyncClient | None = None
        self.public_url: str | None = None

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(base_url=self._api_url, timeout=self._timeout)
        return self._client

    async def expose(self, port: int) -> str:
        """Start a tunnel to ``port`` and return its public URL.

        Raises:
            ExternalAPIError: If the agent is unreachable or refuses.
        """
        client = await self._get_client()
        payload = {"name": self._tunnel_name, "addr": str(port), "proto": "http"}
        try:
            response = await client.post("/api/tunnels", json=payload)
        except httpx.HTTPError as e:
            raise ExternalAPIError(
                message=f"ngrok agent unreachable at {self._api_url}: {e}",
                service="ngrok",
            ) from e

        if response.status_code not in (200, 201):
            raise ExternalAPIError(
                message=f"ngrok agent returned {response.status_code}: {response.text[:200]}",
                service="ngrok",
                status_code=response.status_code,
            )

        try:
            data: Any = response.json()
        except ValueError as e:
            raise ExternalAPIError(message=f"ngrok agent returned non-JSON body: {e}", service="ngrok") from e

        public_url = data.get("public_url") if isinstance(data, dict) else None
        if not public_url:
            raise ExternalAPIError(message="ngrok agent response has no public_url", service="ngrok")
        self.public_url = public_url
        return public_url

    async def close(self) -> None:
        """Stop the tunnel (if one was opened) and close the HTTP client."""
        if self._client is None or self._client.is_closed:
            return
        try:
            if self.public_url:
                await self._client.delete(f"/api/tunnels/{self._tunnel_name}")
        except httpx.HTTPError as e:
            logger.warning("Failed to stop ngrok tunnel", error=str(e))
        finally:
            self.public_url = None
            await self._client.aclose()
            self._client = None
