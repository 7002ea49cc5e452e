"""Tests for the eligibility gate and badge fallback."""

import base64
from decimal import Decimal
from unittest.mock import AsyncMock

import pytest

from base_impression.claim.badge import fallback_badge_uri, resolve_badge_uri
from base_impression.claim.eligibility import check_eligibility
from base_impression.claim.ledger import SupplyLedger
from base_impression.claim.models import EligibilityReason
from base_impression.scoring.models import Tier


class TestCheckEligibility:
    """Tests for check_eligibility."""

    def test_below_asset_threshold(self) -> None:
        decision = check_eligibility(Tier.GOLD, Decimal("2.4"), SupplyLedger({Tier.GOLD: 10}))

        assert not decision.is_eligible
        assert decision.reason == EligibilityReason.BELOW_ASSET_THRESHOLD

    def test_supply_exhausted(self) -> None:
        decision = check_eligibility(Tier.GOLD, Decimal("2.5"), SupplyLedger({Tier.GOLD: 0}))

        assert not decision.is_eligible
        assert decision.reason == EligibilityReason.SUPPLY_EXHAUSTED

    def test_eligible(self) -> None:
        decision = check_eligibility(Tier.GOLD, Decimal("2.5"), SupplyLedger({Tier.GOLD: 1}))

        assert decision.is_eligible
        assert decision.reason == EligibilityReason.ELIGIBLE
        assert decision.tier == Tier.GOLD
        assert decision.remaining_supply == 1

    def test_unclassified_tier(self) -> None:
        decision = check_eligibility(Tier.NONE, Decimal("1000"), SupplyLedger({Tier.GOLD: 5}))

        assert not decision.is_eligible
        assert decision.reason == EligibilityReason.TIER_NOT_CLASSIFIED

    def test_custom_threshold(self) -> None:
        ledger = SupplyLedger({Tier.SILVER: 3})

        assert not check_eligibility(
            Tier.SILVER, Decimal("9.99"), ledger, min_asset_value_usd=Decimal("10")
        ).is_eligible
        assert check_eligibility(
            Tier.SILVER, Decimal("10"), ledger, min_asset_value_usd=Decimal("10")
        ).is_eligible

    def test_check_does_not_mutate_ledger(self) -> None:
        ledger = SupplyLedger({Tier.GOLD: 1})
        check_eligibility(Tier.GOLD, Decimal("5"), ledger)
        assert ledger.remaining(Tier.GOLD) == 1

    def test_to_dict(self) -> None:
        decision = check_eligibility(Tier.GOLD, Decimal("2.5"), SupplyLedger({Tier.GOLD: 1}))
        assert decision.to_dict() == {
            "is_eligible": True,
            "tier": "GOLD",
            "reason": "eligible",
            "asset_usd_value": "2.5",
            "remaining_supply": 1,
        }


class TestBadgeFallback:
    """Tests for badge artwork resolution."""

    def test_fallback_is_deterministic_svg(self) -> None:
        uri = fallback_badge_uri(Tier.GOLD, "alice")

        assert uri == fallback_badge_uri(Tier.GOLD, "alice")
        assert uri != fallback_badge_uri(Tier.GOLD, "bob")
        assert uri.startswith("data:image/svg+xml;base64,")
        svg = base64.b64decode(uri.split(",", 1)[1]).decode()
        assert "GOLD" in svg
        assert "@alice" in svg

    def test_fallback_escapes_username(self) -> None:
        svg = base64.b64decode(fallback_badge_uri(Tier.SILVER, "<x>").split(",", 1)[1]).decode()
        assert "<x>" not in svg

    async def test_no_artist_uses_fallback(self) -> None:
        assert await resolve_badge_uri(None, Tier.BRONZE, "alice") == fallback_badge_uri(
            Tier.BRONZE, "alice"
        )

    async def test_artist_output_is_used(self) -> None:
        artist = AsyncMock()
        artist.generate_badge.return_value = "data:image/png;base64,AAAA"

        assert await resolve_badge_uri(artist, Tier.GOLD, "alice") == "data:image/png;base64,AAAA"
        artist.generate_badge.assert_awaited_once_with(Tier.GOLD, "alice")

    @pytest.mark.parametrize("result", [None, ""])
    async def test_refusal_uses_fallback(self, result: str | None) -> None:
        artist = AsyncMock()
        artist.generate_badge.return_value = result

        uri = await resolve_badge_uri(artist, Tier.GOLD, "alice")

        assert uri == fallback_badge_uri(Tier.GOLD, "alice")

    async def test_artist_error_uses_fallback(self) -> None:
        artist = AsyncMock()
        artist.generate_badge.side_effect = RuntimeError("safety filter")

        uri = await resolve_badge_uri(artist, Tier.PLATINUM, "alice")

        assert uri == fallback_badge_uri(Tier.PLATINUM, "alice")
