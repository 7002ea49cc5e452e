"""Data models for the scoring module."""

from __future__ import annotations

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from enum import Enum
from typing import Any


def round_half_up(value: Decimal) -> int:
    """Round to the nearest integer, halves away from zero."""
    return int(value.quantize(Decimal(1), rounding=ROUND_HALF_UP))


@dataclass(frozen=True)
class TierInfo:
    """Display metadata for a tier."""

    name: str
    description: str
    rank_range: str


class Tier(str, Enum):
    """Reward tiers, highest first.

    NONE is the placeholder for "not scored yet" and is never produced by
    classification.
    """

    PLATINUM = "PLATINUM"
    GOLD = "GOLD"
    SILVER = "SILVER"
    BRONZE = "BRONZE"
    NONE = "NONE"

    @property
    def info(self) -> TierInfo:
        return TIER_INFO[self]

    @property
    def contract_index(self) -> int | None:
        """Tier index used by the badge contract, None for NONE."""
        return _CONTRACT_INDEX.get(self)

    @property
    def is_claimable(self) -> bool:
        return self is not Tier.NONE


TIER_INFO: dict[Tier, TierInfo] = {
    Tier.PLATINUM: TierInfo("Platinum", "Sparkling Rainbow - Top 5", "1 - 5"),
    Tier.GOLD: TierInfo("Gold", "Shiny Gold - Top 25", "6 - 25"),
    Tier.SILVER: TierInfo("Silver", "Polished Silver - Top 500", "26 - 500"),
    Tier.BRONZE: TierInfo("Bronze", "Mystic Purple - Top 1000", "501 - 1000"),
    Tier.NONE: TierInfo("Member", "Keep pushing!", "1000+"),
}

_CONTRACT_INDEX: dict[Tier, int] = {
    Tier.PLATINUM: 0,
    Tier.GOLD: 1,
    Tier.SILVER: 2,
    Tier.BRONZE: 3,
}

CLAIMABLE_TIERS: tuple[Tier, ...] = (Tier.PLATINUM, Tier.GOLD, Tier.SILVER, Tier.BRONZE)


@dataclass(frozen=True)
class ScoreBreakdown:
    """Per-signal points, each rounded on its own for display."""

    social_age: int
    identity_bonus: int
    activity_points: int
    asset_points: int

    @property
    def component_sum(self) -> int:
        """Sum of the rounded components (may differ from the total by rounding)."""
        return self.social_age + self.identity_bonus + self.activity_points + self.asset_points

    def to_dict(self) -> dict[str, int]:
        return {
            "social_age": self.social_age,
            "identity_bonus": self.identity_bonus,
            "activity_points": self.activity_points,
            "asset_points": self.asset_points,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ScoreBreakdown:
        return cls(
            social_age=int(data["social_age"]),
            identity_bonus=int(data["identity_bonus"]),
            activity_points=int(data["activity_points"]),
            asset_points=int(data["asset_points"]),
        )


@dataclass(frozen=True)
class ScoreResult:
    """Output of one score computation.

    Attributes:
        total: Round of the unrounded component sum (authoritative).
        breakdown: Independently rounded components.
        raw_components: Unrounded component values keyed like the breakdown.
        platform_age_days: Carried through for the stats record, unweighted.
    """

    total: int
    breakdown: ScoreBreakdown
    raw_components: dict[str, Decimal]
    platform_age_days: int = 0

    @property
    def unrounded_total(self) -> Decimal:
        return sum(self.raw_components.values(), Decimal(0))
