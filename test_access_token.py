#!/usr/bin/env python3
"""
Tests for access token discovery and caching.
"""

import asyncio

import httpx
import pytest

from bible_downloader.access_token import TokenCache, TokenResolver, extract_token
from bible_downloader.errors import NetworkError, TokenNotFoundError


NEXT_DATA_PAGE = (
    '<html><script id="__NEXT_DATA__" type="application/json">'
    '{"props":{},"page":"/bible/[versionId]/[usfm]","buildId":"abc123XYZ","isFallback":false}'
    "</script></html>"
)
MANIFEST_PAGE = '<html><script src="/_next/static/fallbackBuild9/_buildManifest.js" defer></script></html>'


class FakeClock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now


def counting_client(body: str, status: int = 200):
    calls = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request.url)
        return httpx.Response(status, text=body)

    return httpx.AsyncClient(transport=httpx.MockTransport(handler)), calls


def resolve_twice(resolver: TokenResolver) -> tuple[str, str]:
    async def go():
        async with resolver.client:
            return await resolver.resolve(), await resolver.resolve()
    return asyncio.run(go())


def test_primary_pattern():
    assert extract_token(NEXT_DATA_PAGE) == "abc123XYZ"


def test_fallback_pattern():
    assert extract_token(MANIFEST_PAGE) == "fallbackBuild9"


def test_primary_pattern_wins():
    assert extract_token(MANIFEST_PAGE + NEXT_DATA_PAGE) == "abc123XYZ"


def test_no_pattern_raises():
    with pytest.raises(TokenNotFoundError):
        extract_token("<html><body>nothing here</body></html>")


def test_one_network_call_within_validity_window():
    """Two lookups inside the window hit the token page once."""
    client, calls = counting_client(NEXT_DATA_PAGE)
    resolver = TokenResolver(client, TokenCache(clock=FakeClock()))

    first, second = resolve_twice(resolver)

    assert first == second == "abc123XYZ"
    assert len(calls) == 1


def test_seeded_cache_skips_network():
    client, calls = counting_client(NEXT_DATA_PAGE)
    cache = TokenCache(clock=FakeClock())
    cache.set("seeded")
    resolver = TokenResolver(client, cache)

    assert resolve_twice(resolver) == ("seeded", "seeded")
    assert calls == []


def test_expired_token_is_resolved_again():
    clock = FakeClock()
    client, calls = counting_client(NEXT_DATA_PAGE)
    cache = TokenCache(ttl=3600, clock=clock)
    cache.set("old")
    clock.now += 3600

    assert cache.get() is None
    assert resolve_twice(TokenResolver(client, cache)) == ("abc123XYZ", "abc123XYZ")
    assert len(calls) == 1


def test_invalidate_forces_lookup():
    cache = TokenCache(clock=FakeClock())
    cache.set("abc")
    assert cache.valid

    cache.invalidate()

    assert not cache.valid
    assert cache.get() is None


def test_concurrent_misses_share_one_request():
    client, calls = counting_client(NEXT_DATA_PAGE)
    resolver = TokenResolver(client, TokenCache(clock=FakeClock()))

    async def go():
        async with client:
            return await asyncio.gather(*(resolver.resolve() for _ in range(5)))

    assert asyncio.run(go()) == ["abc123XYZ"] * 5
    assert len(calls) == 1


def test_error_status_is_network_error():
    client, _ = counting_client("gone", status=503)
    resolver = TokenResolver(client, TokenCache(clock=FakeClock()))

    with pytest.raises(NetworkError) as excinfo:
        resolve_twice(resolver)
    assert excinfo.value.status_code == 503


def test_missing_token_not_cached():
    client, calls = counting_client("<html></html>")
    cache = TokenCache(clock=FakeClock())

    with pytest.raises(TokenNotFoundError):
        resolve_twice(TokenResolver(client, cache))
    assert cache.get() is None
    assert len(calls) == 1
