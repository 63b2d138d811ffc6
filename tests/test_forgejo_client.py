"""Tests for the Forgejo REST client and its token fallback."""

import httpx
import pytest

from conftest import BASE_URL
from forgewatch.services.forgejo.client import ForgejoClient
from forgewatch.services.forgejo.exceptions import (
    ForgejoConfigurationError,
    HttpError,
    NetworkError,
)


def _client(handler, token="s3cr3t"):
    return ForgejoClient(BASE_URL, token, transport=httpx.MockTransport(handler))


class TestTokenFallback:
    """Header auth first, query-parameter token only after a transport failure."""

    @pytest.mark.asyncio
    async def test_header_auth_succeeds_first(self):
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(200, json={"version": "7.0"})

        async with _client(handler) as client:
            data = await client.call("/version")

        assert data == {"version": "7.0"}
        assert len(calls) == 1
        assert calls[0].headers["Authorization"] == "token s3cr3t"
        assert "token" not in calls[0].url.params
        assert str(calls[0].url) == f"{BASE_URL}/api/v1/version"

    @pytest.mark.asyncio
    async def test_network_failure_retries_with_query_token(self):
        calls = []

        def handler(request):
            calls.append(request)
            if "Authorization" in request.headers:
                raise httpx.ConnectError("connection reset", request=request)
            return httpx.Response(200, json=[])

        async with _client(handler) as client:
            data = await client.call("/orgs/acme/repos")

        assert data == []
        assert len(calls) == 2
        assert "Authorization" not in calls[1].headers
        assert str(calls[1].url) == f"{BASE_URL}/api/v1/orgs/acme/repos?token=s3cr3t"

    @pytest.mark.asyncio
    async def test_query_token_appends_to_existing_query(self):
        calls = []

        def handler(request):
            calls.append(request)
            if "Authorization" in request.headers:
                raise httpx.ConnectError("connection reset", request=request)
            return httpx.Response(200, json={"data": []})

        async with _client(handler) as client:
            await client.call("/repos/search?q=api&limit=100")

        assert str(calls[1].url).endswith("/repos/search?q=api&limit=100&token=s3cr3t")
        assert calls[1].url.params["q"] == "api"

    @pytest.mark.asyncio
    async def test_http_error_is_not_retried(self):
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(500, json={"message": "boom"})

        async with _client(handler) as client:
            with pytest.raises(HttpError) as exc_info:
                await client.call("/repos/acme/api/actions/runs")

        assert exc_info.value.status == 500
        assert not exc_info.value.is_not_found
        assert len(calls) == 1

    @pytest.mark.asyncio
    async def test_persistent_network_failure_raises_network_error(self):
        calls = []

        def handler(request):
            calls.append(request)
            raise httpx.ConnectError("unreachable", request=request)

        async with _client(handler) as client:
            with pytest.raises(NetworkError):
                await client.call("/version")

        assert len(calls) == 2


class TestUnauthenticated:
    @pytest.mark.asyncio
    async def test_no_token_sends_no_credentials(self):
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(200, json=[])

        async with _client(handler, token=None) as client:
            await client.call("/orgs/acme/repos")

        assert "Authorization" not in calls[0].headers
        assert "token" not in calls[0].url.params
        assert calls[0].headers["Accept"] == "application/json"

    @pytest.mark.asyncio
    async def test_network_failure_without_token_is_not_retried(self):
        calls = []

        def handler(request):
            calls.append(request)
            raise httpx.ConnectError("unreachable", request=request)

        async with _client(handler, token=None) as client:
            with pytest.raises(NetworkError):
                await client.call("/version")

        assert len(calls) == 1


@pytest.mark.asyncio
async def test_not_found_is_flagged():
    async with _client(lambda request: httpx.Response(404, json={})) as client:
        with pytest.raises(HttpError) as exc_info:
            await client.call("/repos/acme/api/actions/runs")

    assert exc_info.value.is_not_found
    assert "HTTP 404" in str(exc_info.value)


@pytest.mark.asyncio
async def test_non_json_body_raises_http_error():
    async with _client(lambda request: httpx.Response(200, text="<html>login</html>")) as client:
        with pytest.raises(HttpError):
            await client.call("/version")


def test_base_url_is_required():
    with pytest.raises(ForgejoConfigurationError):
        ForgejoClient("")


def test_trailing_slash_is_trimmed():
    client = ForgejoClient(f"{BASE_URL}/", "tok")

    assert client.base_url == BASE_URL
