"""Serialized claim processing.

This module provides the ClaimCoordinator, the single writer for a
deployment's SupplyLedger. Every claim runs the full
check -> badge -> submit -> decrement sequence while holding one lock, so
two claimants can never both pass the supply check for the last unit.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Iterable
from datetime import UTC, datetime
from decimal import Decimal
from typing import Protocol

from base_impression.claim.badge import BadgeArtist, resolve_badge_uri
from base_impression.claim.eligibility import DEFAULT_MIN_ASSET_VALUE_USD, check_eligibility
from base_impression.claim.ledger import SupplyLedger
from base_impression.claim.models import ClaimOutcome, ClaimRequest, ClaimStatus

logger = logging.getLogger(__name__)


class ClaimError(Exception):
    """Base exception for claim errors."""


class ClaimSubmissionError(ClaimError):
    """Raised by a submitter when the claim transaction is rejected."""


class ClaimSubmitter(Protocol):
    """Submits a claim transaction and returns its reference."""

    async def submit(self, request: ClaimRequest, tier_index: int, badge_uri: str) -> str: ...


class ClaimRecorder(Protocol):
    """Persists a successful claim."""

    async def record_claim(self, outcome: ClaimOutcome) -> None: ...


def _address_key(address: str) -> str:
    return address.strip().lower()


class ClaimCoordinator:
    """Single-writer claim sequencer.

    Example:
        ```python
        coordinator = ClaimCoordinator(ledger, submitter, badge_artist=None)
        outcome = await coordinator.claim(
            ClaimRequest(address, "someone", Tier.GOLD, Decimal("12.5"))
        )
        if outcome.succeeded:
            print(outcome.tx_reference)
        ```
    """

    def __init__(
        self,
        ledger: SupplyLedger,
        submitter: ClaimSubmitter,
        *,
        badge_artist: BadgeArtist | None = None,
        recorder: ClaimRecorder | None = None,
        min_asset_value_usd: Decimal = DEFAULT_MIN_ASSET_VALUE_USD,
        opens_at: datetime | None = None,
        claimed_addresses: Iterable[str] = (),
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        """Initialize the coordinator.

        Args:
            ledger: Supply ledger owned by this coordinator.
            submitter: External claim submission collaborator.
            badge_artist: Optional generative badge collaborator.
            recorder: Optional persistence for successful claims.
            min_asset_value_usd: Minimum held asset value to claim.
            opens_at: Claims before this instant are refused.
            claimed_addresses: Addresses that already claimed.
            clock: Returns the current time (timezone-aware).
        """
        self._ledger = ledger
        self._submitter = submitter
        self._badge_artist = badge_artist
        self._recorder = recorder
        self._min_asset_value_usd = min_asset_value_usd
        self._opens_at = opens_at
        self._claimed: set[str] = {_address_key(a) for a in claimed_addresses}
        self._clock = clock or (lambda: datetime.now(UTC))
        self._lock = asyncio.Lock()

    @property
    def ledger(self) -> SupplyLedger:
        return self._ledger

    def has_claimed(self, address: str) -> bool:
        return _address_key(address) in self._claimed

    async def claim(self, request: ClaimRequest) -> ClaimOutcome:
        """Process one claim atomically with respect to other claims.

        Submission failures become FAILED outcomes and leave the ledger
        untouched.
        """
        async with self._lock:
            return await self._claim_locked(request)

    async def _claim_locked(self, request: ClaimRequest) -> ClaimOutcome:
        now = self._clock()
        if self._opens_at is not None and now < self._opens_at:
            return ClaimOutcome(status=ClaimStatus.NOT_OPEN, request=request)

        if self.has_claimed(request.address):
            return ClaimOutcome(
                status=ClaimStatus.ALREADY_CLAIMED,
                request=request,
                remaining_supply=self._ledger.remaining(request.tier),
            )

        decision = check_eligibility(
            request.tier,
            request.asset_usd_value,
            self._ledger,
            min_asset_value_usd=self._min_asset_value_usd,
        )
        if not decision.is_eligible:
            logger.info(
                "Claim by %s for %s refused: %s",
                request.address,
                request.tier.value,
                decision.reason.value,
            )
            return ClaimOutcome(
                status=ClaimStatus.NOT_ELIGIBLE,
                request=request,
                decision=decision,
                remaining_supply=decision.remaining_supply,
            )

        tier_index = request.tier.contract_index
        if tier_index is None:
            raise ClaimError(f"Tier {request.tier.value} has no contract index")
        badge_uri = await resolve_badge_uri(self._badge_artist, request.tier, request.handle)

        try:
            tx_reference = await self._submitter.submit(request, tier_index, badge_uri)
        except Exception as e:
            logger.error("Claim submission for %s failed: %s", request.address, e)
            return ClaimOutcome(
                status=ClaimStatus.FAILED,
                request=request,
                decision=decision,
                badge_uri=badge_uri,
                remaining_supply=self._ledger.remaining(request.tier),
                error=str(e) or type(e).__name__,
            )

        remaining = self._ledger.decrement(request.tier)
        self._claimed.add(_address_key(request.address))
        outcome = ClaimOutcome(
            status=ClaimStatus.SUBMITTED,
            request=request,
            decision=decision,
            tx_reference=tx_reference,
            badge_uri=badge_uri,
            remaining_supply=remaining,
        )
        logger.info(
            "Claim by %s for %s submitted (%s), %d remaining",
            request.address,
            request.tier.value,
            tx_reference,
            remaining,
        )

        if self._recorder is not None:
            try:
                await self._recorder.record_claim(outcome)
            except Exception as e:
                logger.error(
                    "Recording claim by %s (%s) failed: %s", request.address, tx_reference, e
                )

        return outcome
