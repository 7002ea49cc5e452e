"""Data models for the chain module."""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from enum import Enum

DEFAULT_DECIMALS = 18


@dataclass(frozen=True)
class TokenHolding:
    """An owner's holding of one ERC20 token.

    Attributes:
        owner_address: Wallet holding the token.
        token_address: ERC20 contract address.
        raw_balance: Balance in the token's smallest unit.
        decimals: Token decimals used for normalization.
    """

    owner_address: str
    token_address: str
    raw_balance: int
    decimals: int = DEFAULT_DECIMALS

    def __post_init__(self) -> None:
        if self.raw_balance < 0:
            raise ValueError(f"raw_balance must be >= 0, got {self.raw_balance}")
        if self.decimals < 0:
            raise ValueError(f"decimals must be >= 0, got {self.decimals}")

    @property
    def normalized_value(self) -> Decimal:
        """Return raw_balance / 10**decimals."""
        return Decimal(self.raw_balance).scaleb(-self.decimals)


class ResolutionStatus(str, Enum):
    """How a balance resolution ended."""

    RESOLVED = "resolved"
    EXHAUSTED = "exhausted"


@dataclass(frozen=True)
class BalanceResolution:
    """Result of resolving a balance across the endpoint rotation.

    A RESOLVED result with a zero holding and an EXHAUSTED result both
    contribute 0 downstream, but remain distinguishable here.
    """

    status: ResolutionStatus
    holding: TokenHolding | None
    attempts: int
    endpoint: str | None = None
    last_error: str | None = None

    @property
    def normalized_value(self) -> Decimal:
        """Return the normalized balance, or 0 when resolution failed."""
        if self.holding is None:
            return Decimal(0)
        return self.holding.normalized_value

    @property
    def is_resolved(self) -> bool:
        return self.status == ResolutionStatus.RESOLVED
