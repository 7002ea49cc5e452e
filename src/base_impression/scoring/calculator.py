"""Impression score calculator.

This module provides the ScoreCalculator class that combines social account
age, platform identity age, campaign activity and held asset value into a
single point total with a labeled breakdown.
"""

from __future__ import annotations

import logging
from decimal import Decimal

from base_impression.scoring.models import ScoreBreakdown, ScoreResult, round_half_up

logger = logging.getLogger(__name__)

# Default configuration
DEFAULT_AGE_RATE = Decimal("1.0")
DEFAULT_ACTIVITY_RATE = Decimal("10")
DEFAULT_ASSET_RATE = Decimal("10")

# Identity bonus bands: (inclusive upper id bound, bonus), ascending.
IDENTITY_BONUS_BANDS: tuple[tuple[int, int], ...] = (
    (5_000, 3000),
    (20_000, 2000),
    (100_000, 1000),
    (500_000, 500),
)
IDENTITY_BONUS_FLOOR = 250


def identity_bonus(identity_id: int | None) -> int:
    """Bonus for early-registered platform identities.

    Missing, zero or negative ids earn nothing. Otherwise the first band
    whose upper bound is >= the id wins; ids beyond every band earn the floor.
    """
    if identity_id is None or identity_id <= 0:
        return 0
    for upper, bonus in IDENTITY_BONUS_BANDS:
        if identity_id <= upper:
            return bonus
    return IDENTITY_BONUS_FLOOR


class ScoreCalculator:
    """Pure impression score computation.

    Scoring Formula:
        social_age      = social_age_days * age_rate
        identity_bonus  = step(identity_id)
        activity_points = activity_points * activity_rate
        asset_points    = asset_usd_value * asset_rate

        total = round(social_age + identity_bonus + activity_points + asset_points)

    Breakdown components are rounded one by one, so their sum can differ
    from the total by a point or two.

    Example:
        ```python
        calculator = ScoreCalculator()
        result = calculator.compute_score(
            platform_age_days=1,
            social_age_days=400,
            activity_points=6,
            identity_id=0,
            asset_usd_value=Decimal("0"),
        )
        assert result.total == 460
        ```
    """

    def __init__(
        self,
        *,
        age_rate: Decimal = DEFAULT_AGE_RATE,
        activity_rate: Decimal = DEFAULT_ACTIVITY_RATE,
        asset_rate: Decimal = DEFAULT_ASSET_RATE,
    ) -> None:
        self.age_rate = Decimal(age_rate)
        self.activity_rate = Decimal(activity_rate)
        self.asset_rate = Decimal(asset_rate)

    def compute_score(
        self,
        *,
        platform_age_days: int,
        social_age_days: int,
        activity_points: int,
        identity_id: int | None,
        asset_usd_value: Decimal,
    ) -> ScoreResult:
        """Compute the total and breakdown for one user.

        Args:
            platform_age_days: Age of the platform identity (recorded, unweighted).
            social_age_days: Social account age in days.
            activity_points: Capped post-day units from the activity scan.
            identity_id: Platform identity id (lower is earlier).
            asset_usd_value: USD value of the campaign token holding.

        Returns:
            ScoreResult with the authoritative total.

        Raises:
            ValueError: If any count or value is negative.
        """
        if social_age_days < 0 or activity_points < 0 or platform_age_days < 0:
            raise ValueError("Ages and activity points must be non-negative")
        asset_usd_value = Decimal(asset_usd_value)
        if asset_usd_value < 0:
            raise ValueError("asset_usd_value must be non-negative")

        raw = {
            "social_age": Decimal(social_age_days) * self.age_rate,
            "identity_bonus": Decimal(identity_bonus(identity_id)),
            "activity_points": Decimal(activity_points) * self.activity_rate,
            "asset_points": asset_usd_value * self.asset_rate,
        }
        total = round_half_up(sum(raw.values(), Decimal(0)))
        breakdown = ScoreBreakdown(
            social_age=round_half_up(raw["social_age"]),
            identity_bonus=round_half_up(raw["identity_bonus"]),
            activity_points=round_half_up(raw["activity_points"]),
            asset_points=round_half_up(raw["asset_points"]),
        )

        if breakdown.component_sum != total:
            logger.debug(
                "Breakdown sum %d differs from total %d by rounding",
                breakdown.component_sum,
                total,
            )

        return ScoreResult(
            total=total,
            breakdown=breakdown,
            raw_components=raw,
            platform_age_days=platform_age_days,
        )


def compute_score(
    platform_age_days: int,
    social_age_days: int,
    activity_points: int,
    identity_id: int | None,
    asset_usd_value: Decimal,
) -> ScoreResult:
    """Compute a score with the default rates."""
    return ScoreCalculator().compute_score(
        platform_age_days=platform_age_days,
        social_age_days=social_age_days,
        activity_points=activity_points,
        identity_id=identity_id,
        asset_usd_value=asset_usd_value,
    )
