"""Tests for ActivityAggregator."""

import random
from datetime import UTC, datetime, timedelta, timezone
from unittest.mock import AsyncMock

import httpx
import pytest

from base_impression.social.activity import (
    ActivityAggregator,
    capped_activity_points,
    compute_daily_breakdown,
    compute_trust_score,
    identity_age_days,
)
from base_impression.social.client import InvalidHandleError, SocialAPIError, SocialClient
from base_impression.social.models import (
    FALLBACK_TRUST_PROFILE,
    LIVE_TRUST_PROFILE,
    ActivityRecord,
    ActivityWindow,
    ScanMode,
    SocialIdentity,
    TrustProfile,
)

NOW = datetime(2026, 1, 20, tzinfo=UTC)


def _post(post_id: str, created_at: datetime, text: str = "building on @base") -> ActivityRecord:
    return ActivityRecord(post_id=post_id, created_at=created_at, origin_handle="alice", text=text)


def _live_client(posts: list[ActivityRecord], registered_at: datetime) -> AsyncMock:
    client = AsyncMock(spec=SocialClient)
    client.get_identity.return_value = SocialIdentity(
        identity_id="42", handle="alice", registered_at=registered_at
    )
    client.get_posts.return_value = posts
    return client


def _aggregator(client=None, **kwargs) -> ActivityAggregator:
    kwargs.setdefault("clock", lambda: NOW)
    return ActivityAggregator(client, **kwargs)


# ============================================================================
# Pure helpers
# ============================================================================


class TestDailyCapping:
    """Tests for per-day grouping and capping."""

    def test_burst_day_is_capped(self) -> None:
        burst = [_post(f"a{i}", datetime(2025, 12, 1, 10, i, tzinfo=UTC)) for i in range(7)]
        single = [_post("b0", datetime(2025, 12, 2, 9, 0, tzinfo=UTC))]

        breakdown = compute_daily_breakdown(burst + single)

        assert breakdown == {"2025-12-01": 7, "2025-12-02": 1}
        assert capped_activity_points(breakdown) == 6

    def test_custom_cap(self) -> None:
        assert capped_activity_points({"d1": 4, "d2": 9}, daily_cap=3) == 6

    def test_day_key_uses_post_clock(self) -> None:
        tokyo = timezone(timedelta(hours=9))
        post = _post("p", datetime(2025, 12, 2, 1, 0, tzinfo=tokyo))
        assert post.day_key == "2025-12-02"
        assert compute_daily_breakdown([post]) == {"2025-12-02": 1}


class TestTrustScore:
    """Tests for the trust heuristic."""

    def test_live_profile(self) -> None:
        # 750 / 1500 * 40 = 20, two posts -> low bonus 20
        assert compute_trust_score(750, 2, LIVE_TRUST_PROFILE) == 40
        # Age saturates, four posts -> high bonus
        assert compute_trust_score(4000, 4, LIVE_TRUST_PROFILE) == 100

    def test_fallback_profile(self) -> None:
        # 500 / 1000 * 40 = 20, five posts is not above the threshold of 5
        assert compute_trust_score(500, 5, FALLBACK_TRUST_PROFILE) == 50
        assert compute_trust_score(500, 6, FALLBACK_TRUST_PROFILE) == 80

    def test_profiles_differ(self) -> None:
        assert compute_trust_score(600, 4, LIVE_TRUST_PROFILE) != compute_trust_score(
            600, 4, FALLBACK_TRUST_PROFILE
        )

    def test_rounds_half_up(self) -> None:
        profile = TrustProfile("t", age_horizon_days=80, post_threshold=3, high_bonus=60, low_bonus=20)
        # 1 / 80 * 40 = 0.5
        assert compute_trust_score(1, 0, profile) == 21

    def test_identity_age_rounds_up(self) -> None:
        registered = NOW - timedelta(days=10, hours=1)
        assert identity_age_days(registered, NOW) == 11
        assert identity_age_days(NOW - timedelta(days=3), NOW) == 3
        # Registration in the future still yields a positive age.
        assert identity_age_days(NOW + timedelta(hours=12), NOW) == 1


# ============================================================================
# Live scans
# ============================================================================


class TestLiveScan:
    """Tests for scans backed by the social API."""

    async def test_capped_activity_points(self, campaign_window: ActivityWindow) -> None:
        posts = [_post(f"a{i}", datetime(2025, 12, 1, 10, i, tzinfo=UTC)) for i in range(7)]
        posts.append(_post("b0", datetime(2025, 12, 2, 9, 0, tzinfo=UTC)))
        client = _live_client(posts, registered_at=datetime(2020, 1, 1, tzinfo=UTC))

        scan = await _aggregator(client).scan("@alice", campaign_window)

        assert scan.mode == ScanMode.LIVE
        assert scan.handle == "alice"
        assert scan.identity_id == "42"
        assert scan.post_count == 8
        assert scan.daily_breakdown == {"2025-12-01": 7, "2025-12-02": 1}
        assert scan.activity_points == 6
        assert scan.trust_score == 100
        client.get_identity.assert_awaited_once_with("alice")

    async def test_identity_age(self, campaign_window: ActivityWindow) -> None:
        client = _live_client([], registered_at=NOW - timedelta(days=399, hours=5))

        scan = await _aggregator(client).scan("alice", campaign_window)

        assert scan.identity_age_days == 400
        assert scan.activity_points == 0

    async def test_window_bounds_are_inclusive(self, campaign_window: ActivityWindow) -> None:
        posts = [
            _post("start", campaign_window.start),
            _post("end", campaign_window.end),
            _post("before", campaign_window.start - timedelta(seconds=1)),
            _post("after", campaign_window.end + timedelta(seconds=1)),
        ]
        client = _live_client(posts, registered_at=datetime(2020, 1, 1, tzinfo=UTC))

        scan = await _aggregator(client).scan("alice", campaign_window)

        assert {p.post_id for p in scan.posts} == {"start", "end"}

    async def test_posts_sorted_newest_first(self, campaign_window: ActivityWindow) -> None:
        posts = [
            _post("mid", datetime(2025, 12, 10, tzinfo=UTC)),
            _post("old", datetime(2025, 11, 5, tzinfo=UTC)),
            _post("new", datetime(2026, 1, 10, tzinfo=UTC)),
        ]
        client = _live_client(posts, registered_at=datetime(2020, 1, 1, tzinfo=UTC))

        scan = await _aggregator(client).scan("alice", campaign_window)

        assert [p.post_id for p in scan.posts] == ["new", "mid", "old"]

    async def test_duplicate_post_ids_count_once(self, campaign_window: ActivityWindow) -> None:
        ts = datetime(2025, 12, 1, tzinfo=UTC)
        client = _live_client(
            [_post("dup", ts), _post("dup", ts)], registered_at=datetime(2020, 1, 1, tzinfo=UTC)
        )

        scan = await _aggregator(client).scan("alice", campaign_window)

        assert scan.post_count == 1

    async def test_tag_filter(self, campaign_window: ActivityWindow) -> None:
        ts = datetime(2025, 12, 1, tzinfo=UTC)
        posts = [
            _post("tagged", ts, text="Shipping on @BASE today"),
            _post("ticker", ts, text="$LAMBOLESS forever"),
            _post("plain", ts, text="lunch"),
        ]
        client = _live_client(posts, registered_at=datetime(2020, 1, 1, tzinfo=UTC))
        aggregator = _aggregator(client, required_tags=("@base", "$lamboless"))

        scan = await aggregator.scan("alice", campaign_window)

        assert {p.post_id for p in scan.posts} == {"tagged", "ticker"}

    async def test_api_failure_falls_back(self, campaign_window: ActivityWindow) -> None:
        client = AsyncMock(spec=SocialClient)
        client.get_identity.side_effect = SocialAPIError("rate limited", status_code=429)

        scan = await _aggregator(client, rng=random.Random(1)).scan("alice", campaign_window)

        assert scan.mode == ScanMode.FALLBACK
        assert scan.identity_id is None
        client.get_posts.assert_not_awaited()

    async def test_post_timestamp_without_offset_falls_back(
        self, campaign_window: ActivityWindow
    ) -> None:
        identity = {"id": "42", "username": "alice", "created_at": "2020-01-01T00:00:00Z"}
        post = {"id": "1", "text": "gm @base", "created_at": "2025-12-01T00:00:00"}

        def handler(request: httpx.Request) -> httpx.Response:
            if "/by/username/" in request.url.path:
                return httpx.Response(200, json={"data": identity})
            return httpx.Response(200, json={"data": [post]})

        client = SocialClient(
            "token-123",
            http=httpx.AsyncClient(transport=httpx.MockTransport(handler)),
            base_url="https://social.example",
        )

        scan = await _aggregator(client, rng=random.Random(3)).scan("alice", campaign_window)

        assert scan.mode == ScanMode.FALLBACK
        assert scan.identity_id is None

    async def test_empty_handle_fails_fast(self, campaign_window: ActivityWindow) -> None:
        client = AsyncMock(spec=SocialClient)

        with pytest.raises(InvalidHandleError):
            await _aggregator(client).scan("  @ ", campaign_window)

        client.get_identity.assert_not_awaited()


# ============================================================================
# Fallback scans
# ============================================================================


class TestFallbackScan:
    """Tests for synthesized scans."""

    async def test_without_client_uses_fallback(self, campaign_window: ActivityWindow) -> None:
        aggregator = _aggregator(rng=random.Random(7), fallback_post_count=40)
        assert not aggregator.live_enabled

        scan = await aggregator.scan("bob", campaign_window)

        assert scan.mode == ScanMode.FALLBACK
        assert scan.post_count == 40
        assert all(campaign_window.contains(p.created_at) for p in scan.posts)
        assert all(p.post_id.startswith("m-") for p in scan.posts)
        assert 365 <= scan.identity_age_days <= 5 * 365 + 1

    async def test_same_rules_as_live(self, campaign_window: ActivityWindow) -> None:
        scan = await _aggregator(rng=random.Random(3), fallback_post_count=60).scan(
            "bob", campaign_window
        )

        assert sum(scan.daily_breakdown.values()) == scan.post_count
        assert scan.activity_points == capped_activity_points(scan.daily_breakdown)
        assert scan.trust_score == compute_trust_score(
            scan.identity_age_days, scan.post_count, FALLBACK_TRUST_PROFILE
        )
        created = [p.created_at for p in scan.posts]
        assert created == sorted(created, reverse=True)

    async def test_reproducible_with_seed(self, campaign_window: ActivityWindow) -> None:
        first = await _aggregator(rng=random.Random(11)).scan("bob", campaign_window)
        second = await _aggregator(rng=random.Random(11)).scan("bob", campaign_window)

        assert first.posts == second.posts
        assert first.identity_age_days == second.identity_age_days
        assert first.to_dict() == second.to_dict()

    async def test_fallback_posts_pass_campaign_tags(self, campaign_window: ActivityWindow) -> None:
        aggregator = _aggregator(
            rng=random.Random(5),
            fallback_post_count=50,
            required_tags=("@base", "@baseapp", "@baseposting", "$lamboless"),
        )

        scan = await aggregator.scan("bob", campaign_window)

        assert 0 < scan.post_count <= 50
        assert all("@base" in p.text.lower() or "$lamboless" in p.text.lower() for p in scan.posts)
