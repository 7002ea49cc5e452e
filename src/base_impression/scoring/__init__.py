"""Scoring layer - Point totals and tier classification."""

from base_impression.scoring.calculator import ScoreCalculator, compute_score, identity_bonus
from base_impression.scoring.models import (
    CLAIMABLE_TIERS,
    TIER_INFO,
    ScoreBreakdown,
    ScoreResult,
    Tier,
    TierInfo,
    round_half_up,
)
from base_impression.scoring.tiers import classify_tier

__all__ = [
    "CLAIMABLE_TIERS",
    "TIER_INFO",
    "ScoreBreakdown",
    "ScoreCalculator",
    "ScoreResult",
    "Tier",
    "TierInfo",
    "classify_tier",
    "compute_score",
    "identity_bonus",
    "round_half_up",
]
