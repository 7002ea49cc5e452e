"""Claim layer - Supply tracking, eligibility and serialized claims."""

from base_impression.claim.badge import BadgeArtist, fallback_badge_uri, resolve_badge_uri
from base_impression.claim.coordinator import (
    ClaimCoordinator,
    ClaimError,
    ClaimRecorder,
    ClaimSubmissionError,
    ClaimSubmitter,
)
from base_impression.claim.eligibility import check_eligibility
from base_impression.claim.ledger import SupplyLedger
from base_impression.claim.models import (
    ClaimOutcome,
    ClaimRequest,
    ClaimStatus,
    EligibilityDecision,
    EligibilityReason,
)

__all__ = [
    "BadgeArtist",
    "ClaimCoordinator",
    "ClaimError",
    "ClaimOutcome",
    "ClaimRecorder",
    "ClaimRequest",
    "ClaimStatus",
    "ClaimSubmissionError",
    "ClaimSubmitter",
    "EligibilityDecision",
    "EligibilityReason",
    "SupplyLedger",
    "check_eligibility",
    "fallback_badge_uri",
    "resolve_badge_uri",
]
