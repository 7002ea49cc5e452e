"""Tests for PriceResolver."""

import json
from decimal import Decimal
from unittest.mock import AsyncMock

import httpx
import pytest

from base_impression.chain.price import PriceResolver, select_pair_price

API_URL = "https://dex.example/tokens"
SENTINEL = Decimal("0.0001")


def _pair(chain: str, price: str | None, liquidity: float | None) -> dict:
    pair: dict = {"chainId": chain, "priceUsd": price}
    if liquidity is not None:
        pair["liquidity"] = {"usd": liquidity}
    return pair


def _resolver(handler, **kwargs) -> PriceResolver:
    http = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return PriceResolver(http=http, api_url=API_URL, chain_id="base", **kwargs)


class TestSelectPairPrice:
    """Tests for pair selection."""

    def test_picks_most_liquid_pair_on_target_chain(self) -> None:
        pairs = [
            _pair("base", "0.010", 1_000),
            _pair("ethereum", "0.500", 9_999_999),
            _pair("base", "0.012", 50_000),
            _pair("base", "0.011", 20_000),
        ]
        assert select_pair_price(pairs, "base") == Decimal("0.012")

    def test_liquidity_tie_keeps_first_seen(self) -> None:
        pairs = [_pair("base", "1.00", 500), _pair("base", "2.00", 500)]
        assert select_pair_price(pairs, "base") == Decimal("1.00")

    def test_no_pair_on_chain(self) -> None:
        assert select_pair_price([_pair("solana", "3.0", 100)], "base") is None

    def test_ignores_unusable_prices(self) -> None:
        pairs = [
            _pair("base", None, 10_000),
            _pair("base", "abc", 10_000),
            _pair("base", "0", 10_000),
            _pair("base", "0.5", 10),
        ]
        assert select_pair_price(pairs, "base") == Decimal("0.5")

    def test_missing_liquidity_counts_as_zero(self) -> None:
        pairs = [_pair("base", "0.3", None), _pair("base", "0.4", 1)]
        assert select_pair_price(pairs, "base") == Decimal("0.4")


class TestPriceResolver:
    """Tests for price lookups."""

    async def test_resolves_price(self, token_address: str) -> None:
        seen: list[str] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(str(request.url))
            return httpx.Response(
                200, json={"pairs": [_pair("base", "0.025", 100), _pair("base", "0.03", 10)]}
            )

        resolver = _resolver(handler)
        price = await resolver.resolve_price_usd(token_address)

        assert price == Decimal("0.025")
        assert seen == [f"{API_URL}/{token_address}"]
        await resolver.aclose()

    async def test_no_pairs_returns_sentinel(self, token_address: str) -> None:
        resolver = _resolver(lambda request: httpx.Response(200, json={"pairs": None}))
        assert await resolver.resolve_price_usd(token_address) == SENTINEL

    async def test_http_error_returns_sentinel(self, token_address: str) -> None:
        resolver = _resolver(lambda request: httpx.Response(503, text="unavailable"))
        assert await resolver.resolve_price_usd(token_address) == SENTINEL

    async def test_transport_error_returns_sentinel(self, token_address: str) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectTimeout("timed out", request=request)

        calls = 0

        def counting(request: httpx.Request) -> httpx.Response:
            nonlocal calls
            calls += 1
            return handler(request)

        resolver = _resolver(counting)
        assert await resolver.resolve_price_usd(token_address) == SENTINEL
        # No retry.
        assert calls == 1

    async def test_malformed_json_returns_sentinel(self, token_address: str) -> None:
        resolver = _resolver(lambda request: httpx.Response(200, content=b"{not json"))
        assert await resolver.resolve_price_usd(token_address) == SENTINEL

    async def test_sentinel_is_configurable(self, token_address: str) -> None:
        resolver = _resolver(
            lambda request: httpx.Response(200, json={"pairs": []}),
            sentinel_usd=Decimal("0.5"),
        )
        assert resolver.sentinel == Decimal("0.5")
        assert await resolver.resolve_price_usd(token_address) == Decimal("0.5")


class TestPriceCache:
    """Tests for the optional Redis price cache."""

    async def test_cache_hit_skips_request(self, token_address: str) -> None:
        redis = AsyncMock()
        redis.get.return_value = b"0.42"

        def handler(request: httpx.Request) -> httpx.Response:
            raise AssertionError("network should not be used on cache hit")

        resolver = _resolver(handler, redis=redis)
        assert await resolver.resolve_price_usd(token_address) == Decimal("0.42")

    async def test_resolved_price_is_cached(self, token_address: str) -> None:
        redis = AsyncMock()
        redis.get.return_value = None
        resolver = _resolver(
            lambda request: httpx.Response(200, json={"pairs": [_pair("base", "0.7", 1)]}),
            redis=redis,
            cache_ttl_seconds=30,
        )

        await resolver.resolve_price_usd(token_address)

        redis.set.assert_awaited_once()
        args, kwargs = redis.set.call_args
        assert args[1] == "0.7"
        assert kwargs["ex"] == 30

    async def test_sentinel_is_not_cached(self, token_address: str) -> None:
        redis = AsyncMock()
        redis.get.return_value = None
        resolver = _resolver(lambda request: httpx.Response(200, json={}), redis=redis)

        assert await resolver.resolve_price_usd(token_address) == SENTINEL
        redis.set.assert_not_awaited()

    async def test_cache_failure_is_ignored(self, token_address: str) -> None:
        redis = AsyncMock()
        redis.get.side_effect = ConnectionError("redis down")
        redis.set.side_effect = ConnectionError("redis down")
        body = json.dumps({"pairs": [_pair("base", "1.25", 1)]})
        resolver = _resolver(lambda request: httpx.Response(200, content=body.encode()), redis=redis)

        assert await resolver.resolve_price_usd(token_address) == Decimal("1.25")


@pytest.mark.parametrize("status", [400, 404, 429, 500])
async def test_non_success_statuses_return_sentinel(status: int, token_address: str) -> None:
    resolver = _resolver(lambda request: httpx.Response(status))
    assert await resolver.resolve_price_usd(token_address) == SENTINEL
