"""
Tests for small helpers: sanitize, slugify, RPC provider selection and timeouts.
"""
import asyncio

import pytest

from explorer_api.integrations.rpc import HttpProvider, WebsocketProvider, get_provider, with_timeout
from explorer_api.utils.helpers import random_suffix, sanitize, slugify


def test_sanitize_drops_none_values():
    assert sanitize({"a": 1, "b": None, "c": False, "d": ""}) == {"a": 1, "c": False, "d": ""}


def test_sanitize_empty():
    assert sanitize({}) == {}


def test_slugify():
    assert slugify("My Chain") == "my-chain"
    assert slugify("  Hello, World!  ") == "hello-world"
    assert slugify("***") == "explorer"


def test_random_suffix_length():
    assert len(random_suffix()) == 4
    assert len(random_suffix(6)) == 6


@pytest.mark.parametrize("url", ["ws://localhost:8546", "wss://node.example.com"])
def test_get_provider_websocket(url):
    provider = get_provider(url)
    assert isinstance(provider, WebsocketProvider)
    assert provider.url == url


@pytest.mark.parametrize("url", ["http://localhost:8545", "https://node.example.com"])
def test_get_provider_http(url):
    assert isinstance(get_provider(url), HttpProvider)


def test_get_provider_rejects_unknown_scheme():
    with pytest.raises(ValueError):
        get_provider("ftp://node.example.com")


async def test_with_timeout_returns_result():
    async def fast():
        return "1"

    assert await with_timeout(fast(), 1) == "1"


async def test_with_timeout_raises_when_too_slow():
    async def slow():
        await asyncio.sleep(1)

    with pytest.raises(asyncio.TimeoutError):
        await with_timeout(slow(), 0.01)
