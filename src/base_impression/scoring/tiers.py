"""Tier classification for impression scores."""

from __future__ import annotations

from base_impression.scoring.models import Tier

# Lower bounds, highest tier first. BRONZE is the floor.
PLATINUM_MIN_POINTS = 5001
GOLD_MIN_POINTS = 3001
SILVER_MIN_POINTS = 1001

TIER_THRESHOLDS: tuple[tuple[Tier, int], ...] = (
    (Tier.PLATINUM, PLATINUM_MIN_POINTS),
    (Tier.GOLD, GOLD_MIN_POINTS),
    (Tier.SILVER, SILVER_MIN_POINTS),
)


def classify_tier(total: int) -> Tier:
    """Map a point total to its tier.

    Every input, including zero and negative totals, maps to a claimable
    tier; Tier.NONE is never returned.
    """
    for tier, minimum in TIER_THRESHOLDS:
        if total >= minimum:
            return tier
    return Tier.BRONZE
