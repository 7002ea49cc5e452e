"""Tests for ClaimCoordinator."""

import asyncio
from datetime import UTC, datetime, timedelta
from decimal import Decimal
from unittest.mock import AsyncMock

import pytest

from base_impression.claim.coordinator import ClaimCoordinator, ClaimSubmissionError
from base_impression.claim.ledger import SupplyLedger
from base_impression.claim.models import ClaimRequest, ClaimStatus, EligibilityReason
from base_impression.scoring.models import Tier

OPENS_AT = datetime(2026, 1, 16, 2, 0, tzinfo=UTC)
AFTER_OPEN = OPENS_AT + timedelta(hours=1)


def _request(address: str = "0xAAA", tier: Tier = Tier.GOLD, value: str = "5") -> ClaimRequest:
    return ClaimRequest(address=address, handle="alice", tier=tier, asset_usd_value=Decimal(value))


@pytest.fixture
def submitter() -> AsyncMock:
    submitter = AsyncMock()
    submitter.submit.return_value = "0xtxhash"
    return submitter


def _coordinator(ledger: SupplyLedger, submitter, **kwargs) -> ClaimCoordinator:
    kwargs.setdefault("opens_at", OPENS_AT)
    kwargs.setdefault("clock", lambda: AFTER_OPEN)
    return ClaimCoordinator(ledger, submitter, **kwargs)


class TestClaimCoordinator:
    """Tests for the serialized claim flow."""

    async def test_successful_claim_decrements_once(self, submitter: AsyncMock) -> None:
        ledger = SupplyLedger({Tier.GOLD: 2})
        coordinator = _coordinator(ledger, submitter)

        outcome = await coordinator.claim(_request())

        assert outcome.status == ClaimStatus.SUBMITTED
        assert outcome.succeeded
        assert outcome.tx_reference == "0xtxhash"
        assert outcome.remaining_supply == 1
        assert ledger.remaining(Tier.GOLD) == 1
        assert coordinator.has_claimed("0xaaa")

        request, tier_index, badge_uri = submitter.submit.call_args.args
        assert request.address == "0xAAA"
        assert tier_index == 1
        assert badge_uri.startswith("data:image/svg+xml;base64,")

    async def test_not_eligible_below_threshold(self, submitter: AsyncMock) -> None:
        ledger = SupplyLedger({Tier.GOLD: 2})

        outcome = await _coordinator(ledger, submitter).claim(_request(value="2.4"))

        assert outcome.status == ClaimStatus.NOT_ELIGIBLE
        assert outcome.decision is not None
        assert outcome.decision.reason == EligibilityReason.BELOW_ASSET_THRESHOLD
        submitter.submit.assert_not_awaited()
        assert ledger.remaining(Tier.GOLD) == 2

    async def test_exhausted_supply_is_a_decision(self, submitter: AsyncMock) -> None:
        outcome = await _coordinator(SupplyLedger({Tier.GOLD: 0}), submitter).claim(_request())

        assert outcome.status == ClaimStatus.NOT_ELIGIBLE
        assert outcome.decision.reason == EligibilityReason.SUPPLY_EXHAUSTED
        submitter.submit.assert_not_awaited()

    async def test_submission_failure_leaves_ledger(self, submitter: AsyncMock) -> None:
        submitter.submit.side_effect = ClaimSubmissionError("user rejected")
        ledger = SupplyLedger({Tier.GOLD: 1})
        coordinator = _coordinator(ledger, submitter)

        outcome = await coordinator.claim(_request())

        assert outcome.status == ClaimStatus.FAILED
        assert outcome.error == "user rejected"
        assert ledger.remaining(Tier.GOLD) == 1
        assert not coordinator.has_claimed("0xAAA")

    async def test_retry_after_failure(self, submitter: AsyncMock) -> None:
        submitter.submit.side_effect = [ClaimSubmissionError("nonce too low"), "0xsecond"]
        ledger = SupplyLedger({Tier.GOLD: 1})
        coordinator = _coordinator(ledger, submitter)

        first = await coordinator.claim(_request())
        second = await coordinator.claim(_request())

        assert first.status == ClaimStatus.FAILED
        assert second.status == ClaimStatus.SUBMITTED
        assert ledger.remaining(Tier.GOLD) == 0

    async def test_second_claim_by_same_address(self, submitter: AsyncMock) -> None:
        ledger = SupplyLedger({Tier.GOLD: 5})
        coordinator = _coordinator(ledger, submitter)

        await coordinator.claim(_request("0xAAA"))
        outcome = await coordinator.claim(_request("0xaaa"))

        assert outcome.status == ClaimStatus.ALREADY_CLAIMED
        assert ledger.remaining(Tier.GOLD) == 4
        assert submitter.submit.await_count == 1

    async def test_hydrated_claimed_addresses(self, submitter: AsyncMock) -> None:
        coordinator = _coordinator(
            SupplyLedger({Tier.GOLD: 5}), submitter, claimed_addresses=["0xAAA"]
        )

        outcome = await coordinator.claim(_request())

        assert outcome.status == ClaimStatus.ALREADY_CLAIMED

    async def test_before_opening(self, submitter: AsyncMock) -> None:
        ledger = SupplyLedger({Tier.GOLD: 5})
        coordinator = _coordinator(ledger, submitter, clock=lambda: OPENS_AT - timedelta(seconds=1))

        outcome = await coordinator.claim(_request())

        assert outcome.status == ClaimStatus.NOT_OPEN
        submitter.submit.assert_not_awaited()

    async def test_badge_artist_is_used(self, submitter: AsyncMock) -> None:
        artist = AsyncMock()
        artist.generate_badge.return_value = "data:image/png;base64,QUJD"
        coordinator = _coordinator(SupplyLedger({Tier.PLATINUM: 1}), submitter, badge_artist=artist)

        outcome = await coordinator.claim(_request(tier=Tier.PLATINUM))

        assert outcome.badge_uri == "data:image/png;base64,QUJD"
        assert submitter.submit.call_args.args[1] == 0

    async def test_recorder_receives_success(self, submitter: AsyncMock) -> None:
        recorder = AsyncMock()
        coordinator = _coordinator(SupplyLedger({Tier.BRONZE: 1}), submitter, recorder=recorder)

        outcome = await coordinator.claim(_request(tier=Tier.BRONZE))

        recorder.record_claim.assert_awaited_once_with(outcome)

    async def test_recorder_failure_keeps_submitted_outcome(self, submitter: AsyncMock) -> None:
        recorder = AsyncMock()
        recorder.record_claim.side_effect = RuntimeError("db down")
        ledger = SupplyLedger({Tier.GOLD: 1})
        coordinator = _coordinator(ledger, submitter, recorder=recorder)

        outcome = await coordinator.claim(_request())

        assert outcome.status == ClaimStatus.SUBMITTED
        assert outcome.tx_reference == "0xtxhash"
        assert ledger.remaining(Tier.GOLD) == 0
        assert coordinator.has_claimed("0xAAA")
        recorder.record_claim.assert_awaited_once()

    async def test_concurrent_claims_never_oversell(self) -> None:
        """Many claimants racing for the last unit: exactly one wins."""

        async def slow_submit(request, tier_index, badge_uri) -> str:
            await asyncio.sleep(0.01)
            return f"tx-{request.address}"

        submitter = AsyncMock()
        submitter.submit.side_effect = slow_submit
        ledger = SupplyLedger({Tier.GOLD: 1})
        coordinator = _coordinator(ledger, submitter)

        outcomes = await asyncio.gather(
            *(coordinator.claim(_request(f"0x{i:040x}")) for i in range(10))
        )

        statuses = [o.status for o in outcomes]
        assert statuses.count(ClaimStatus.SUBMITTED) == 1
        assert statuses.count(ClaimStatus.NOT_ELIGIBLE) == 9
        assert ledger.remaining(Tier.GOLD) == 0
        assert submitter.submit.await_count == 1
