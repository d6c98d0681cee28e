import json
from datetime import datetime
from unittest.mock import AsyncMock

import pytest
from pydantic import BaseModel

from cache.core import (
    cache_exists,
    cached,
    get_cache_ttl,
    get_from_cache,
    get_or_set,
    resolve_ttl,
    set_cache
)
from cache.keys import call_key
from error_handling.exceptions import UpstreamError


def counting_fetcher(value):
    """Create a fetcher that returns ``value`` and counts its calls."""
    calls = {"count": 0}

    async def fetcher():
        calls["count"] += 1
        return value

    return fetcher, calls


@pytest.mark.asyncio
async def test_read_through_fetches_once(store):
    """A second call with no invalidation in between is a hit."""
    payload = {"tokens": [{"symbol": "USDC"}], "totalUsdValue": 12.5}
    fetcher, calls = counting_fetcher(payload)

    first = await get_or_set("tokens:0xabc", fetcher, ttl=60)
    second = await get_or_set("tokens:0xabc", fetcher, ttl=60)

    assert first == payload
    assert second == payload
    assert calls["count"] == 1


@pytest.mark.asyncio
async def test_miss_stores_json_with_ttl(store):
    fetcher, _ = counting_fetcher([1, 2, 3])

    await get_or_set("k", fetcher, ttl=300)

    assert json.loads(store.data["k"]) == [1, 2, 3]
    assert await get_cache_ttl("k") == 300


@pytest.mark.asyncio
async def test_namespace_is_applied(store):
    fetcher, _ = counting_fetcher("v")

    await get_or_set("k", fetcher, ttl=60, namespace="ns")

    assert "ns:k" in store.data
    assert await get_from_cache("k", namespace="ns") == "v"
    assert await get_from_cache("k") is None


@pytest.mark.asyncio
async def test_ttl_zero_never_expires(store):
    """TTL 0 means persist until invalidated, not expire now."""
    assert await set_cache("token_image:base:0xaa", {"image": "x"}, ttl=0)

    assert await cache_exists("token_image:base:0xaa")
    assert await get_cache_ttl("token_image:base:0xaa") == -1
    assert await get_from_cache("token_image:base:0xaa") == {"image": "x"}


def test_resolve_ttl(config, monkeypatch):
    monkeypatch.setattr(config, "DEFAULT_CACHE_TTL", 3600)

    assert resolve_ttl(None) == 3600
    assert resolve_ttl(120) == 120
    assert resolve_ttl(0) is None
    assert resolve_ttl(-5) is None


@pytest.mark.asyncio
async def test_default_ttl_applies_when_omitted(store, config, monkeypatch):
    monkeypatch.setattr(config, "DEFAULT_CACHE_TTL", 3600)

    await set_cache("k", "v")

    assert await get_cache_ttl("k") == 3600


@pytest.mark.asyncio
async def test_fetcher_errors_propagate(store):
    """Business failures are not swallowed and nothing is cached."""
    async def failing_fetcher():
        raise UpstreamError("Rate limit exceeded. Please try again later.", 429, "thirdweb")

    with pytest.raises(UpstreamError):
        await get_or_set("tokens:0xabc", failing_fetcher, ttl=60)

    assert "tokens:0xabc" not in store.data


@pytest.mark.asyncio
async def test_falsy_values_are_cached(store):
    fetcher, calls = counting_fetcher([])

    assert await get_or_set("empty", fetcher, ttl=60) == []
    assert await get_or_set("empty", fetcher, ttl=60) == []
    assert calls["count"] == 1


@pytest.mark.asyncio
async def test_corrupt_entry_is_treated_as_miss(store):
    store.data["k"] = "{not json"
    store.seq["k"] = 1
    fetcher, calls = counting_fetcher({"fresh": True})

    assert await get_or_set("k", fetcher, ttl=60) == {"fresh": True}
    assert calls["count"] == 1
    assert json.loads(store.data["k"]) == {"fresh": True}


@pytest.mark.asyncio
async def test_backend_down_falls_back_to_fetcher(failing_store):
    """With every store call failing, reads still succeed from the fetcher."""
    fetcher, calls = counting_fetcher({"ok": True})

    assert await get_or_set("k", fetcher) == {"ok": True}
    assert await get_or_set("k", fetcher) == {"ok": True}
    assert calls["count"] == 2


@pytest.mark.asyncio
async def test_auxiliaries_fail_soft(failing_store):
    assert await get_from_cache("k") is None
    assert await cache_exists("k") is False
    assert await get_cache_ttl("k") is None
    assert await set_cache("k", "v", ttl=10) is False


@pytest.mark.asyncio
async def test_set_failure_still_returns_fetched_value(store, monkeypatch):
    """A failed write does not fail the read or re-run the fetcher."""
    monkeypatch.setattr(store, "set", AsyncMock(side_effect=TimeoutError("write timed out")))
    fetcher, calls = counting_fetcher("fresh")

    assert await get_or_set("k", fetcher, ttl=60) == "fresh"
    assert calls["count"] == 1


@pytest.mark.asyncio
async def test_missing_key_reports_no_ttl(store):
    assert await get_cache_ttl("nope") is None
    assert await cache_exists("nope") is False
    assert await get_from_cache("nope") is None


@pytest.mark.asyncio
async def test_cached_decorator(store):
    """Test the cached decorator."""
    call_count = 0

    @cached("price", ttl=600)
    async def fetch_price(token_address, network="BASE_MAINNET"):
        nonlocal call_count
        call_count += 1
        return {"tokenAddress": token_address, "price": 1.0}

    # First call should execute the function
    result1 = await fetch_price("0xAA")
    assert result1["price"] == 1.0
    assert call_count == 1

    # Second call with the same arguments should hit cache
    result2 = await fetch_price("0xAA")
    assert result2 == result1
    assert call_count == 1

    # Different kwargs are a different entry
    await fetch_price("0xAA", network="ETHEREUM_MAINNET")
    assert call_count == 2

    assert await get_cache_ttl(call_key("price", ("0xAA",), {})) == 600


@pytest.mark.asyncio
async def test_cached_decorator_keeps_calls_apart(store):
    """Argument casing and embedded separators never merge two calls."""
    calls = []

    @cached("lookup", ttl=60)
    async def lookup(*parts):
        calls.append(parts)
        return list(parts)

    assert await lookup("ABC") == ["ABC"]
    assert await lookup("abc") == ["abc"]
    assert await lookup("a:b") == ["a:b"]
    assert await lookup("a", "b") == ["a", "b"]
    assert len(calls) == 4

    assert await lookup("a", "b") == ["a", "b"]
    assert len(calls) == 4


@pytest.mark.asyncio
async def test_cached_decorator_kwargs_order(store):
    call_count = 0

    @cached("quote", ttl=60)
    async def quote(token, amount=1, side="sell"):
        nonlocal call_count
        call_count += 1
        return {"token": token, "amount": amount, "side": side}

    await quote("0x1", amount=2, side="buy")
    await quote("0x1", side="buy", amount=2)
    assert call_count == 1


@pytest.mark.asyncio
async def test_values_that_do_not_round_trip_are_not_cached(store):
    """A hit must return what the miss returned, so lossy values skip the store."""
    value = {"at": datetime(2025, 1, 1), "pair": (1, 2)}
    fetcher, calls = counting_fetcher(value)

    assert await get_or_set("k", fetcher, ttl=60) == value
    assert await get_or_set("k", fetcher, ttl=60) == value
    assert calls["count"] == 2
    assert "k" not in store.data


@pytest.mark.asyncio
async def test_cached_model_result_is_not_stringified(store):
    class Quote(BaseModel):
        price: float

    call_count = 0

    @cached("quote", ttl=60)
    async def get_quote(token):
        nonlocal call_count
        call_count += 1
        return Quote(price=1.5)

    first = await get_quote("0x1")
    second = await get_quote("0x1")

    assert isinstance(second, Quote)
    assert second == first
    assert call_count == 2


@pytest.mark.asyncio
async def test_set_cache_rejects_unencodable_value(store):
    assert await set_cache("k", {1: "int key"}, ttl=60) is False
    assert await set_cache("k", {"tuple": (1, 2)}, ttl=60) is False
    assert store.data == {}


@pytest.mark.asyncio
async def test_cached_decorator_key_builder(store):
    @cached("unused", ttl=0, key_builder=lambda chain, address: f"token_image:{chain}:{address}")
    async def lookup(chain, address):
        return {"image": f"{chain}/{address}"}

    await lookup("base", "0x1")

    assert "token_image:base:0x1" in store.data
    assert await get_cache_ttl("token_image:base:0x1") == -1
