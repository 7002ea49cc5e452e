"""Data models for the claim module."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from decimal import Decimal
from enum import Enum
from typing import Any

from base_impression.scoring.models import Tier


class EligibilityReason(str, Enum):
    """Why an eligibility decision came out the way it did."""

    ELIGIBLE = "eligible"
    TIER_NOT_CLASSIFIED = "tier_not_classified"
    BELOW_ASSET_THRESHOLD = "below_asset_threshold"
    SUPPLY_EXHAUSTED = "supply_exhausted"


@dataclass(frozen=True)
class EligibilityDecision:
    """Derived claim decision. Recomputed on demand, never stored on its own."""

    is_eligible: bool
    tier: Tier
    reason: EligibilityReason
    asset_usd_value: Decimal = Decimal(0)
    remaining_supply: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "is_eligible": self.is_eligible,
            "tier": self.tier.value,
            "reason": self.reason.value,
            "asset_usd_value": str(self.asset_usd_value),
            "remaining_supply": self.remaining_supply,
        }


class ClaimStatus(str, Enum):
    """Outcome of a claim attempt."""

    SUBMITTED = "submitted"
    NOT_ELIGIBLE = "not_eligible"
    ALREADY_CLAIMED = "already_claimed"
    NOT_OPEN = "not_open"
    FAILED = "failed"


@dataclass(frozen=True)
class ClaimRequest:
    """A claim for one address at the tier its score earned."""

    address: str
    handle: str
    tier: Tier
    asset_usd_value: Decimal


@dataclass(frozen=True)
class ClaimOutcome:
    """Result of routing a ClaimRequest through the coordinator.

    Attributes:
        status: What happened.
        request: The request that was processed.
        decision: Eligibility decision, when one was made.
        tx_reference: Submission reference on success.
        badge_uri: Badge image submitted with the claim.
        remaining_supply: Tier supply after the attempt.
        error: Failure detail for FAILED outcomes.
    """

    status: ClaimStatus
    request: ClaimRequest
    decision: EligibilityDecision | None = None
    tx_reference: str | None = None
    badge_uri: str | None = None
    remaining_supply: int | None = None
    error: str | None = None
    completed_at: datetime = field(default_factory=lambda: datetime.now(UTC))

    @property
    def succeeded(self) -> bool:
        return self.status is ClaimStatus.SUBMITTED

    def to_dict(self) -> dict[str, Any]:
        return {
            "status": self.status.value,
            "address": self.request.address,
            "tier": self.request.tier.value,
            "decision": self.decision.to_dict() if self.decision else None,
            "tx_reference": self.tx_reference,
            "remaining_supply": self.remaining_supply,
            "error": self.error,
            "completed_at": self.completed_at.isoformat(),
        }
