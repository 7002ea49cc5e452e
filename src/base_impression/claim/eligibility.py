"""Claim eligibility gate."""

from __future__ import annotations

from decimal import Decimal

from base_impression.claim.ledger import SupplyLedger
from base_impression.claim.models import EligibilityDecision, EligibilityReason
from base_impression.scoring.models import Tier

# Default configuration
DEFAULT_MIN_ASSET_VALUE_USD = Decimal("2.5")


def check_eligibility(
    tier: Tier,
    asset_usd_value: Decimal,
    ledger: SupplyLedger,
    *,
    min_asset_value_usd: Decimal = DEFAULT_MIN_ASSET_VALUE_USD,
) -> EligibilityDecision:
    """Decide whether a claim at ``tier`` may proceed.

    Eligible iff the tier is classified, the held asset value meets the
    minimum, and the tier still has supply. Checks run in that order and the
    first failing one names the reason.
    """
    asset_usd_value = Decimal(asset_usd_value)
    remaining = ledger.remaining(tier)

    if not tier.is_claimable:
        reason = EligibilityReason.TIER_NOT_CLASSIFIED
    elif asset_usd_value < min_asset_value_usd:
        reason = EligibilityReason.BELOW_ASSET_THRESHOLD
    elif remaining <= 0:
        reason = EligibilityReason.SUPPLY_EXHAUSTED
    else:
        reason = EligibilityReason.ELIGIBLE

    return EligibilityDecision(
        is_eligible=reason is EligibilityReason.ELIGIBLE,
        tier=tier,
        reason=reason,
        asset_usd_value=asset_usd_value,
        remaining_supply=remaining,
    )
