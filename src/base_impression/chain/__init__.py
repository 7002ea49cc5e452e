"""Chain layer - Token balance and price resolution."""

from base_impression.chain.balance import (
    BalanceResolver,
    ChainClientError,
    InvalidAddressError,
    RPCError,
    validate_address,
)
from base_impression.chain.models import BalanceResolution, ResolutionStatus, TokenHolding
from base_impression.chain.price import PriceResolver, select_pair_price

__all__ = [
    "BalanceResolution",
    "BalanceResolver",
    "ChainClientError",
    "InvalidAddressError",
    "PriceResolver",
    "RPCError",
    "ResolutionStatus",
    "TokenHolding",
    "select_pair_price",
    "validate_address",
]
