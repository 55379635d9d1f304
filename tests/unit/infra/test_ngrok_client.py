"""Tests for NgrokClient — tunnel management through the local agent API."""

import json

import httpx
import pytest

from tracksort.exceptions import ExternalAPIError
from tracksort.infra.ngrok_client import NgrokClient


def _client_with(handler) -> NgrokClient:
    client = NgrokClient(api_url="http://ngrok.test")
    client._client = httpx.AsyncClient(
        base_url="http://ngrok.test",
        transport=httpx.MockTransport(handler),
    )
    return client


class TestExpose:
    @pytest.mark.asyncio
    async def test_returns_public_url(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["path"] = request.url.path
            seen["body"] = json.loads(request.content)
            return httpx.Response(201, json={"public_url": "https://abc.ngrok.io"})

        client = _client_with(handler)
        url = await client.expose(8080)

        assert url == "https://abc.ngrok.io"
        assert client.public_url == url
        assert seen == {
            "path": "/api/tunnels",
            "body": {"name": "tracksort", "addr": "8080", "proto": "http"},
        }

    @pytest.mark.asyncio
    async def test_agent_refusal(self):
        client = _client_with(lambda request: httpx.Response(502, text="no"))
        with pytest.raises(ExternalAPIError) as exc_info:
            await client.expose(8080)
        assert exc_info.value.status_code == 502
        assert exc_info.value.service == "ngrok"

    @pytest.mark.asyncio
    async def test_agent_unreachable(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("refused", request=request)

        client = _client_with(handler)
        with pytest.raises(ExternalAPIError, match="unreachable"):
            await client.expose(8080)

    @pytest.mark.asyncio
    async def test_missing_public_url(self):
        client = _client_with(lambda request: httpx.Response(201, json={}))
        with pytest.raises(ExternalAPIError, match="public_url"):
            await client.expose(8080)

    @pytest.mark.asyncio
    async def test_non_json_reply(self):
        client = _client_with(lambda request: httpx.Response(201, text="<html>"))
        with pytest.raises(ExternalAPIError, match="non-JSON"):
            await client.expose(8080)


class TestClose:
    @pytest.mark.asyncio
    async def test_deletes_named_tunnel(self):
        requests = []

        def handler(request: httpx.Request) -> httpx.Response:
            requests.append((request.method, request.url.path))
            if request.method == "POST":
                return httpx.Response(201, json={"public_url": "https://abc.ngrok.io"})
            return httpx.Response(204)

        client = _client_with(handler)
        await client.expose(8080)
        await client.close()

        assert requests[-1] == ("DELETE", "/api/tunnels/tracksort")
        assert client.public_url is None
        assert client._client is None

    @pytest.mark.asyncio
    async def test_close_without_tunnel(self):
        client = NgrokClient()
        await client.close()
        assert client._client is None

    @pytest.mark.asyncio
    async def test_delete_failure_still_closes(self):
        def handler(request: httpx.Request) -> httpx.Response:
            if request.method == "POST":
                return httpx.Response(201, json={"public_url": "https://abc.ngrok.io"})
            raise httpx.ConnectError("gone", request=request)

        client = _client_with(handler)
        await client.expose(8080)
        await client.close()
        assert client._client is None
