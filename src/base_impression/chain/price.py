"""Token USD price resolution from a market-data aggregator.

Prices are read once per request with a bounded wait and no retry. Any
failure, or the absence of a usable trading pair on the target chain,
yields a small positive sentinel price instead of an error.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from decimal import Decimal, InvalidOperation
from typing import Any

import httpx
from redis.asyncio import Redis

logger = logging.getLogger(__name__)

# Default configuration
DEFAULT_API_URL = "https://api.dexscreener.com/latest/dex/tokens"
DEFAULT_CHAIN_ID = "base"
DEFAULT_TIMEOUT_SECONDS = 10.0
DEFAULT_CACHE_TTL_SECONDS = 60
SENTINEL_PRICE_USD = Decimal("0.0001")


def _to_decimal(value: Any) -> Decimal | None:
    if value is None or isinstance(value, bool):
        return None
    try:
        result = Decimal(str(value))
    except (InvalidOperation, ValueError):
        return None
    return result if result.is_finite() else None


def select_pair_price(pairs: Iterable[Any], chain_id: str) -> Decimal | None:
    """Pick the USD price of the most liquid usable pair on ``chain_id``.

    A pair is usable when its chain matches and it carries a positive price.
    Ties on liquidity keep the first pair seen.

    Returns:
        The selected price, or None when no usable pair exists.
    """
    best_price: Decimal | None = None
    best_liquidity: Decimal | None = None

    for pair in pairs:
        if not isinstance(pair, dict) or pair.get("chainId") != chain_id:
            continue
        price = _to_decimal(pair.get("priceUsd"))
        if price is None or price <= 0:
            continue
        liquidity_raw = pair.get("liquidity")
        liquidity = _to_decimal(
            liquidity_raw.get("usd") if isinstance(liquidity_raw, dict) else liquidity_raw
        ) or Decimal(0)
        if best_liquidity is None or liquidity > best_liquidity:
            best_price = price
            best_liquidity = liquidity

    return best_price


class PriceResolver:
    """Resolves token prices in USD.

    Example:
        ```python
        async with httpx.AsyncClient() as http:
            resolver = PriceResolver(http=http, chain_id="base")
            price = await resolver.resolve_price_usd("0xbe7c...")
        ```
    """

    def __init__(
        self,
        *,
        http: httpx.AsyncClient | None = None,
        api_url: str = DEFAULT_API_URL,
        chain_id: str = DEFAULT_CHAIN_ID,
        timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
        sentinel_usd: Decimal = SENTINEL_PRICE_USD,
        redis: Redis | None = None,
        cache_ttl_seconds: int = DEFAULT_CACHE_TTL_SECONDS,
    ) -> None:
        """Initialize the price resolver.

        Args:
            http: Shared HTTP client; one is created lazily if omitted.
            api_url: Aggregator endpoint, keyed by appending the token address.
            chain_id: Chain identifier pairs must match.
            timeout_seconds: Bounded wait for the single request.
            sentinel_usd: Price returned when nothing usable is found.
            redis: Optional Redis client for caching resolved prices.
            cache_ttl_seconds: Cache TTL in seconds.
        """
        self._http = http
        self._owns_http = http is None
        self._api_url = api_url.rstrip("/")
        self._chain_id = chain_id
        self._timeout = timeout_seconds
        self._sentinel = sentinel_usd
        self._redis = redis
        self._cache_ttl = cache_ttl_seconds
        self._cache_prefix = f"price:{chain_id}:"

    @property
    def sentinel(self) -> Decimal:
        return self._sentinel

    def _client(self) -> httpx.AsyncClient:
        if self._http is None:
            self._http = httpx.AsyncClient()
        return self._http

    async def _get_cached(self, key: str) -> Decimal | None:
        if not self._redis:
            return None
        try:
            value = await self._redis.get(key)
            if value is None:
                return None
            return _to_decimal(value.decode() if isinstance(value, bytes) else value)
        except Exception as e:
            logger.warning("Price cache get failed: %s", e)
            return None

    async def _set_cached(self, key: str, price: Decimal) -> None:
        if not self._redis:
            return
        try:
            await self._redis.set(key, str(price), ex=self._cache_ttl)
        except Exception as e:
            logger.warning("Price cache set failed: %s", e)

    async def resolve_price_usd(self, token_address: str) -> Decimal:
        """Resolve the USD price of a token.

        Args:
            token_address: Token contract address.

        Returns:
            Price in USD, or the sentinel price when unresolvable.
        """
        cache_key = f"{self._cache_prefix}{token_address.lower()}"
        cached = await self._get_cached(cache_key)
        if cached is not None:
            return cached

        url = f"{self._api_url}/{token_address}"
        try:
            response = await self._client().get(url, timeout=self._timeout)
            response.raise_for_status()
            payload = response.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.warning("Price lookup for %s failed, using sentinel: %s", token_address, e)
            return self._sentinel

        pairs = payload.get("pairs") if isinstance(payload, dict) else None
        price = select_pair_price(pairs or [], self._chain_id)
        if price is None:
            logger.info(
                "No usable %s pair for %s, using sentinel price %s",
                self._chain_id,
                token_address,
                self._sentinel,
            )
            return self._sentinel

        await self._set_cached(cache_key, price)
        return price

    async def aclose(self) -> None:
        """Close the HTTP client if this resolver created it."""
        if self._owns_http and self._http is not None:
            await self._http.aclose()
            self._http = None
