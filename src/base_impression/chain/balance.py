"""ERC20 balance resolution across interchangeable RPC endpoints.

This module provides a resolver for token holdings with:
- Fail-fast address validation (no network call on malformed input)
- Sticky endpoint rotation that only advances on failure
- Bounded attempts with a fixed backoff
- A bounded wait per read
- Collapse of exhausted resolutions to a zero balance
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Sequence
from decimal import Decimal
from typing import Any

from web3 import AsyncWeb3
from web3.providers import AsyncHTTPProvider

from base_impression.chain.models import (
    DEFAULT_DECIMALS,
    BalanceResolution,
    ResolutionStatus,
    TokenHolding,
)

logger = logging.getLogger(__name__)

# Default configuration
DEFAULT_MAX_RETRIES = 3
DEFAULT_RETRY_DELAY_SECONDS = 0.5
DEFAULT_REQUEST_TIMEOUT = 10.0

ERC20_ABI: list[dict[str, Any]] = [
    {
        "constant": True,
        "inputs": [{"name": "_owner", "type": "address"}],
        "name": "balanceOf",
        "outputs": [{"name": "balance", "type": "uint256"}],
        "type": "function",
    },
    {
        "constant": True,
        "inputs": [],
        "name": "decimals",
        "outputs": [{"name": "", "type": "uint8"}],
        "type": "function",
    },
]


class ChainClientError(Exception):
    """Base exception for chain client errors."""


class InvalidAddressError(ChainClientError, ValueError):
    """Raised when an address is not a syntactically valid chain address."""


class RPCError(ChainClientError):
    """Raised when a single balance read fails."""


def validate_address(address: str, *, field: str = "address") -> str:
    """Return the checksummed form of ``address``.

    Raises:
        InvalidAddressError: If the address is malformed.
    """
    if not isinstance(address, str) or not AsyncWeb3.is_address(address):
        raise InvalidAddressError(f"Invalid {field}: {address!r}")
    return AsyncWeb3.to_checksum_address(address)


class BalanceResolver:
    """Resolves token holdings with multi-endpoint failover.

    The resolver keeps a rotation cursor over its endpoints. The cursor
    starts at 0, persists across calls and is never reset on success, so a
    failing endpoint stays skipped until a later failure rotates back to it.

    Example:
        ```python
        resolver = BalanceResolver(["https://mainnet.base.org", "https://1rpc.io/base"])

        amount = await resolver.resolve_balance(owner, token)

        # Or keep the diagnostic result
        resolution = await resolver.resolve(owner, token, max_retries=5)
        if not resolution.is_resolved:
            print(resolution.last_error)
        ```
    """

    def __init__(
        self,
        rpc_urls: Sequence[str],
        *,
        max_retries: int = DEFAULT_MAX_RETRIES,
        retry_delay_seconds: float = DEFAULT_RETRY_DELAY_SECONDS,
        request_timeout: float = DEFAULT_REQUEST_TIMEOUT,
    ) -> None:
        """Initialize the balance resolver.

        Args:
            rpc_urls: Ordered list of interchangeable RPC endpoints.
            max_retries: Default attempt budget per resolution.
            retry_delay_seconds: Fixed delay between attempts.
            request_timeout: Bounded wait for one read, in seconds.
        """
        if not rpc_urls:
            raise ValueError("At least one RPC endpoint is required")
        self._rpc_urls = tuple(rpc_urls)
        self._max_retries = max_retries
        self._retry_delay = retry_delay_seconds
        self._request_timeout = request_timeout
        self._clients: dict[int, AsyncWeb3[AsyncHTTPProvider]] = {}
        self._cursor = 0

    @property
    def cursor(self) -> int:
        """Index of the endpoint the next attempt will use."""
        return self._cursor

    @property
    def endpoints(self) -> tuple[str, ...]:
        return self._rpc_urls

    def _client(self, index: int) -> AsyncWeb3[AsyncHTTPProvider]:
        client = self._clients.get(index)
        if client is None:
            client = AsyncWeb3(AsyncHTTPProvider(self._rpc_urls[index]))
            self._clients[index] = client
        return client

    def _advance(self) -> None:
        # Unsynchronized; races only affect which endpoint is tried next.
        self._cursor = (self._cursor + 1) % len(self._rpc_urls)

    async def _read_holding(self, index: int, owner: str, token: str) -> TokenHolding:
        """Read balance and decimals from one endpoint.

        Raises:
            RPCError: If the balance cannot be read or is malformed.
        """
        w3 = self._client(index)
        contract = w3.eth.contract(address=token, abi=ERC20_ABI)
        try:
            raw = await contract.functions.balanceOf(owner).call()
        except Exception as e:
            raise RPCError(f"balanceOf failed on {self._rpc_urls[index]}: {e}") from e
        if isinstance(raw, bool) or not isinstance(raw, int) or raw < 0:
            raise RPCError(f"Malformed balance from {self._rpc_urls[index]}: {raw!r}")

        try:
            decimals = int(await contract.functions.decimals().call())
        except Exception as e:
            logger.debug(
                "decimals() unreadable for %s on %s, defaulting to %d: %s",
                token,
                self._rpc_urls[index],
                DEFAULT_DECIMALS,
                e,
            )
            decimals = DEFAULT_DECIMALS

        return TokenHolding(
            owner_address=owner,
            token_address=token,
            raw_balance=raw,
            decimals=decimals,
        )

    async def resolve(
        self,
        owner_address: str,
        token_address: str,
        *,
        max_retries: int | None = None,
    ) -> BalanceResolution:
        """Resolve a holding, rotating endpoints on failure.

        Args:
            owner_address: Wallet address.
            token_address: ERC20 token contract address.
            max_retries: Attempt budget (defaults to the resolver's).

        Returns:
            BalanceResolution; EXHAUSTED when every attempt failed.

        Raises:
            InvalidAddressError: If either address is malformed.
        """
        owner = validate_address(owner_address, field="owner address")
        token = validate_address(token_address, field="token contract address")

        budget = max(1, self._max_retries if max_retries is None else max_retries)
        last_error: Exception | None = None

        for attempt in range(1, budget + 1):
            index = self._cursor
            try:
                holding = await asyncio.wait_for(
                    self._read_holding(index, owner, token),
                    timeout=self._request_timeout,
                )
            except Exception as e:
                last_error = e
                logger.warning(
                    "Balance read via %s failed (attempt %d/%d): %s",
                    self._rpc_urls[index],
                    attempt,
                    budget,
                    str(e) or type(e).__name__,
                )
                self._advance()
                if attempt < budget and self._retry_delay > 0:
                    await asyncio.sleep(self._retry_delay)
                continue

            logger.debug(
                "Resolved %s balance for %s via %s: %s",
                token,
                owner,
                self._rpc_urls[index],
                holding.normalized_value,
            )
            return BalanceResolution(
                status=ResolutionStatus.RESOLVED,
                holding=holding,
                attempts=attempt,
                endpoint=self._rpc_urls[index],
            )

        logger.warning(
            "Balance resolution for %s exhausted after %d attempts; treating as 0",
            owner,
            budget,
        )
        return BalanceResolution(
            status=ResolutionStatus.EXHAUSTED,
            holding=None,
            attempts=budget,
            last_error=(str(last_error) or type(last_error).__name__) if last_error else None,
        )

    async def resolve_balance(
        self,
        owner_address: str,
        token_address: str,
        max_retries: int | None = None,
    ) -> Decimal:
        """Resolve a normalized balance; exhaustion yields 0."""
        resolution = await self.resolve(owner_address, token_address, max_retries=max_retries)
        return resolution.normalized_value

    async def aclose(self) -> None:
        """Close async HTTP provider sessions to avoid leaked aiohttp sessions."""
        for client in self._clients.values():
            disconnect = getattr(client.provider, "disconnect", None)
            if not callable(disconnect):
                continue
            try:
                result = disconnect()
                if asyncio.iscoroutine(result):
                    await result
            except Exception as e:
                logger.warning("Failed to close RPC provider session: %s", e)
        self._clients.clear()
