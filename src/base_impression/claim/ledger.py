"""In-memory per-tier claim supply."""

from __future__ import annotations

import logging
from collections.abc import Mapping

from base_impression.scoring.models import CLAIMABLE_TIERS, Tier

logger = logging.getLogger(__name__)


def _as_tier(tier: Tier | str) -> Tier:
    return tier if isinstance(tier, Tier) else Tier(str(tier).upper())


class SupplyLedger:
    """Remaining claim capacity per tier.

    Counts only ever go down, one unit per successful claim, and never
    below zero. There is no restock path. The ledger performs no
    idempotency check: whoever calls ``decrement`` must call it exactly once
    per confirmed claim (see ClaimCoordinator).

    Example:
        ```python
        ledger = SupplyLedger({Tier.GOLD: 20})
        ledger.remaining(Tier.GOLD)  # 20
        ledger.decrement(Tier.GOLD)  # 19
        ```
    """

    def __init__(self, initial: Mapping[Tier | str, int] | None = None) -> None:
        self._remaining: dict[Tier, int] = {tier: 0 for tier in CLAIMABLE_TIERS}
        for key, count in (initial or {}).items():
            tier = _as_tier(key)
            if not tier.is_claimable:
                raise ValueError("Tier NONE has no supply")
            if count < 0:
                raise ValueError(f"Supply for {tier.value} must be non-negative")
            self._remaining[tier] = int(count)

    def remaining(self, tier: Tier | str) -> int:
        """Remaining count for ``tier`` (always 0 for NONE)."""
        return self._remaining.get(_as_tier(tier), 0)

    def decrement(self, tier: Tier | str) -> int:
        """Consume one unit of ``tier``, clamping at zero.

        Returns:
            The remaining count after the decrement.
        """
        tier = _as_tier(tier)
        current = self._remaining.get(tier, 0)
        if current <= 0:
            logger.warning("Decrement on exhausted supply for %s ignored", tier.value)
            return 0
        self._remaining[tier] = current - 1
        return current - 1

    def snapshot(self) -> dict[str, int]:
        """Serializable tier name -> remaining count mapping."""
        return {tier.value: count for tier, count in self._remaining.items()}

    @classmethod
    def from_snapshot(cls, snapshot: Mapping[str, int]) -> SupplyLedger:
        return cls(snapshot)

    def __repr__(self) -> str:
        return f"SupplyLedger({self.snapshot()!r})"
