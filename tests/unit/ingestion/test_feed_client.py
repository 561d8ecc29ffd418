"""Unit tests for FeedClient."""

import base64

import httpx
import pytest
from unittest.mock import AsyncMock

from feed_inference.ingestion import feed_client
from feed_inference.ingestion.feed_client import FeedClient, FetchResult, human_size, label_from_url
from feed_inference.utils.exceptions import ConfigurationError, FeedDecodeError, FeedFetchError


def make_client(handler, **kwargs):
    kwargs.setdefault("retry_sleep_ms", 0)
    return FeedClient(transport=httpx.MockTransport(handler), **kwargs)


@pytest.mark.asyncio
async def test_fetch_returns_body_and_sends_json_accept():
    seen = []

    def handler(request):
        seen.append(request)
        return httpx.Response(200, json={"items": [1, 2]})

    client = make_client(handler)
    try:
        result = await client.fetch("https://x.test/feed")
        assert result.http_status == 200
        assert result.decoded() == {"items": [1, 2]}
        assert result.label == "x.test/feed"
        assert seen[0].headers["Accept"] == "application/json"
        assert "User-Agent" in seen[0].headers
    finally:
        await client.close()


@pytest.mark.asyncio
async def test_bearer_auth_header():
    seen = []

    def handler(request):
        seen.append(request)
        return httpx.Response(200, json={})

    async with make_client(handler, auth_mode="bearer", token="secret") as client:
        await client.fetch("https://x.test/feed")

    assert seen[0].headers["Authorization"] == "Bearer secret"


@pytest.mark.asyncio
async def test_basic_auth_header():
    seen = []

    def handler(request):
        seen.append(request)
        return httpx.Response(200, json={})

    async with make_client(handler, auth_mode="basic", username="user", password="pass") as client:
        await client.fetch("https://x.test/feed")

    expected = base64.b64encode(b"user:pass").decode()
    assert seen[0].headers["Authorization"] == f"Basic {expected}"


@pytest.mark.asyncio
async def test_query_auth_keeps_existing_parameters():
    seen = []

    def handler(request):
        seen.append(request)
        return httpx.Response(200, json={})

    async with make_client(handler, auth_mode="query", token="abc", query_param="api_key") as client:
        await client.fetch("https://x.test/feed?page=2")

    params = seen[0].url.params
    assert params["api_key"] == "abc"
    assert params["page"] == "2"
    assert "Authorization" not in seen[0].headers


@pytest.mark.asyncio
async def test_retries_until_success():
    attempts = []

    def handler(request):
        attempts.append(request)
        if len(attempts) < 3:
            return httpx.Response(500)
        return httpx.Response(200, json={"ok": True})

    async with make_client(handler, retry_times=3) as client:
        result = await client.fetch("https://x.test/feed")

    assert len(attempts) == 3
    assert result.decoded() == {"ok": True}


@pytest.mark.asyncio
async def test_exhausted_retries_raise():
    def handler(request):
        return httpx.Response(503)

    async with make_client(handler, retry_times=2) as client:
        with pytest.raises(FeedFetchError) as exc_info:
            await client.fetch("https://x.test/feed")

    error = exc_info.value
    assert error.status_code == 503
    assert error.attempts == 2
    assert error.url == "https://x.test/feed"


@pytest.mark.asyncio
async def test_transport_error_raises_fetch_error():
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    async with make_client(handler, retry_times=1) as client:
        with pytest.raises(FeedFetchError, match="ConnectError"):
            await client.fetch("https://x.test/feed")


@pytest.mark.asyncio
async def test_backoff_doubles_between_attempts(monkeypatch):
    sleep = AsyncMock()
    monkeypatch.setattr(feed_client.asyncio, "sleep", sleep)

    def handler(request):
        return httpx.Response(500)

    async with make_client(handler, retry_times=3, retry_sleep_ms=100) as client:
        with pytest.raises(FeedFetchError):
            await client.fetch("https://x.test/feed")

    assert [call.args[0] for call in sleep.await_args_list] == [0.1, 0.2]


def test_unknown_auth_mode():
    with pytest.raises(ConfigurationError):
        FeedClient(auth_mode="oauth")


def test_decoded_rejects_non_json():
    result = FetchResult(url="https://x.test/feed", body=b"<html>oops</html>")

    with pytest.raises(FeedDecodeError):
        result.decoded()


@pytest.mark.parametrize(
    "url,expected",
    [
        ("https://api.example.com/v1/feed/blocks?page=2", "api.example.com/.../blocks"),
        ("https://api.example.com/feed", "api.example.com/feed"),
        ("https://api.example.com/", "api.example.com"),
    ],
)
def test_label_from_url(url, expected):
    assert label_from_url(url) == expected


def test_human_size():
    assert human_size(512) == "512.00 B"
    assert human_size(2048) == "2.00 KB"
    assert human_size(3 * 1024 * 1024) == "3.00 MB"
