"""Tests for the GitHub tree/blob fetcher."""

import asyncio
import base64

import httpx
import pytest

from wally_lint.errors import UnsupportedRegistryError
from wally_lint.registry.github import GitHubFetcher, RegistryAddress, parse_registry_url


def test_parse_registry_url():
    address = parse_registry_url("https://github.com/UpliftGames/wally-index")
    assert address == RegistryAddress("upliftgames", "wally-index")
    assert address.url == "https://github.com/upliftgames/wally-index"
    assert str(address) == "upliftgames/wally-index"

    assert parse_registry_url("https://github.com/a/b/") == RegistryAddress("a", "b")
    assert parse_registry_url("https://github.com/a/b.git") == RegistryAddress("a", "b")


@pytest.mark.parametrize("url", [
    "",
    "https://gitlab.com/a/b",
    "https://github.com/only-owner",
    "https://github.com/a/b/c",
    "github.com/a/b",
])
def test_parse_registry_url_rejects_unsupported(url):
    with pytest.raises(UnsupportedRegistryError):
        parse_registry_url(url)


def _fetcher(handler, token=None) -> GitHubFetcher:
    return GitHubFetcher(token=token, transport=httpx.MockTransport(handler))


def _run(coro):
    return asyncio.run(coro)


def test_get_tree():
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json={
            "sha": "abc",
            "tree": [{"path": "sleitnick", "type": "tree", "sha": "t1"}],
        })

    async def scenario():
        fetcher = _fetcher(handler)
        try:
            return await fetcher.get_tree("upliftgames", "wally-index", "main")
        finally:
            await fetcher.aclose()

    result = _run(scenario())
    assert result.ok
    assert result.payload == [{"path": "sleitnick", "type": "tree", "sha": "t1"}]
    assert seen[0].url.path == "/repos/upliftgames/wally-index/git/trees/main"
    assert "authorization" not in seen[0].headers


def test_get_blob_decodes_base64():
    text = '{"package": {"name": "a/b", "version": "1.0.0"}}\n'

    def handler(request):
        return httpx.Response(200, json={
            "encoding": "base64",
            "content": base64.b64encode(text.encode()).decode(),
        })

    async def scenario():
        fetcher = _fetcher(handler)
        try:
            return await fetcher.get_blob("o", "r", "sha1")
        finally:
            await fetcher.aclose()

    result = _run(scenario())
    assert result.ok
    assert result.payload == text


def test_error_statuses():
    def handler(request):
        if request.url.path.endswith("/missing"):
            return httpx.Response(404, json={"message": "Not Found"})
        return httpx.Response(403, headers={"x-ratelimit-remaining": "0"})

    async def scenario():
        fetcher = _fetcher(handler)
        try:
            return (
                await fetcher.get_tree("o", "r", "missing"),
                await fetcher.get_tree("o", "r", "main"),
            )
        finally:
            await fetcher.aclose()

    missing, limited = _run(scenario())
    assert missing.status == 404
    assert not missing.ok
    assert limited.status == 429


def test_transport_error_is_status_zero():
    def handler(request):
        raise httpx.ConnectError("boom", request=request)

    async def scenario():
        fetcher = _fetcher(handler)
        try:
            return await fetcher.get_blob("o", "r", "sha")
        finally:
            await fetcher.aclose()

    result = _run(scenario())
    assert result.status == 0
    assert "boom" in result.message


def test_token_header_follows_set_token():
    seen = []

    def handler(request):
        seen.append(request.headers.get("authorization"))
        return httpx.Response(200, json={"tree": []})

    async def scenario():
        fetcher = _fetcher(handler, token="first")
        try:
            await fetcher.get_tree("o", "r", "main")
            fetcher.set_token("second")
            await fetcher.get_tree("o", "r", "main")
            fetcher.set_token(None)
            await fetcher.get_tree("o", "r", "main")
        finally:
            await fetcher.aclose()

    _run(scenario())
    assert seen == ["Bearer first", "Bearer second", None]


def test_malformed_tree_payload():
    def handler(request):
        return httpx.Response(200, json={"unexpected": True})

    async def scenario():
        fetcher = _fetcher(handler)
        try:
            return await fetcher.get_tree("o", "r", "main")
        finally:
            await fetcher.aclose()

    result = _run(scenario())
    assert not result.ok
