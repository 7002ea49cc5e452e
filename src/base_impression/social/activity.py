"""Campaign activity aggregation.

This module provides the ActivityAggregator, which scans a handle's posts
inside the campaign window, groups them per calendar day, applies the
per-day cap and derives a trust heuristic. Scans run live when a
SocialClient is configured and fall back to synthesized activity otherwise,
or when the live scan fails. Both modes share the same windowing, tag
filtering and capping rules.
"""

from __future__ import annotations

import logging
import math
import random
from collections.abc import Callable, Iterable, Sequence
from datetime import UTC, datetime, timedelta
from decimal import ROUND_HALF_UP, Decimal

from base_impression.social.client import SocialAPIError, SocialClient, normalize_handle
from base_impression.social.models import (
    FALLBACK_TRUST_PROFILE,
    LIVE_TRUST_PROFILE,
    ActivityRecord,
    ActivityScan,
    ActivityWindow,
    ScanMode,
    TrustProfile,
)

logger = logging.getLogger(__name__)

# Default configuration
DEFAULT_DAILY_CAP = 5
DEFAULT_FALLBACK_POST_COUNT = 40
SECONDS_PER_DAY = 86_400

# Synthesized registration dates fall 1-5 years in the past.
FALLBACK_MIN_AGE_DAYS = 365
FALLBACK_MAX_AGE_DAYS = 5 * 365

FALLBACK_POST_TEXTS = (
    "gm Base!",
    "The @baseapp UI is looking slick. Onchain Summer is here! #Base",
    "Check out this insight on @baseposting. Big things coming for the ecosystem. @brian_armstrong",
    "Just deployed a new contract on @base! This feels like the future. $LAMBOLESS to the moon. @jessepollak",
)


def compute_daily_breakdown(posts: Iterable[ActivityRecord]) -> dict[str, int]:
    """Count posts per calendar day."""
    breakdown: dict[str, int] = {}
    for post in posts:
        breakdown[post.day_key] = breakdown.get(post.day_key, 0) + 1
    return breakdown


def capped_activity_points(breakdown: dict[str, int], daily_cap: int = DEFAULT_DAILY_CAP) -> int:
    """Sum per-day counts, each limited to ``daily_cap``."""
    return sum(min(count, daily_cap) for count in breakdown.values())


def identity_age_days(registered_at: datetime, now: datetime) -> int:
    """Whole days between registration and now, rounded up."""
    return math.ceil(abs((now - registered_at).total_seconds()) / SECONDS_PER_DAY)


def compute_trust_score(age_days: int, post_count: int, profile: TrustProfile) -> int:
    """Trust heuristic, rounded half-up.

    Args:
        age_days: Identity age in days.
        post_count: Posts counted within the window.
        profile: Heuristic constants for the scan mode.
    """
    age_factor = min(Decimal(age_days) / Decimal(profile.age_horizon_days), Decimal(1))
    bonus = profile.high_bonus if post_count > profile.post_threshold else profile.low_bonus
    value = age_factor * profile.age_weight + bonus
    return int(value.quantize(Decimal(1), rounding=ROUND_HALF_UP))


class ActivityAggregator:
    """Scans social activity inside a campaign window.

    Example:
        ```python
        aggregator = ActivityAggregator(social_client, required_tags=("@base",))
        scan = await aggregator.scan("@someone", window)
        print(scan.activity_points, scan.trust_score)
        ```
    """

    def __init__(
        self,
        client: SocialClient | None = None,
        *,
        required_tags: Sequence[str] = (),
        daily_cap: int = DEFAULT_DAILY_CAP,
        fallback_post_count: int = DEFAULT_FALLBACK_POST_COUNT,
        live_profile: TrustProfile = LIVE_TRUST_PROFILE,
        fallback_profile: TrustProfile = FALLBACK_TRUST_PROFILE,
        rng: random.Random | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        """Initialize the aggregator.

        Args:
            client: Live social client; None forces fallback mode.
            required_tags: Posts must mention one of these to count (empty = all).
            daily_cap: Maximum counted posts per day.
            fallback_post_count: Posts synthesized per fallback scan.
            live_profile: Trust constants for live scans.
            fallback_profile: Trust constants for synthesized scans.
            rng: Random source for fallback synthesis.
            clock: Returns the current time (timezone-aware).
        """
        self._client = client
        self._required_tags = tuple(tag.lower() for tag in required_tags if tag)
        self._daily_cap = daily_cap
        self._fallback_post_count = fallback_post_count
        self._live_profile = live_profile
        self._fallback_profile = fallback_profile
        self._rng = rng or random.Random()
        self._clock = clock or (lambda: datetime.now(UTC))

    @property
    def live_enabled(self) -> bool:
        return self._client is not None

    def _matches_tags(self, post: ActivityRecord) -> bool:
        if not self._required_tags:
            return True
        text = post.text.lower()
        return any(tag in text for tag in self._required_tags)

    def _build_scan(
        self,
        *,
        handle: str,
        mode: ScanMode,
        posts: Iterable[ActivityRecord],
        window: ActivityWindow,
        registered_at: datetime,
        identity_id: str | None,
        profile: TrustProfile,
        now: datetime,
    ) -> ActivityScan:
        kept: dict[str, ActivityRecord] = {}
        for post in posts:
            if window.contains(post.created_at) and self._matches_tags(post):
                kept.setdefault(post.post_id, post)

        ordered = tuple(sorted(kept.values(), key=lambda p: p.created_at, reverse=True))
        breakdown = compute_daily_breakdown(ordered)
        age_days = identity_age_days(registered_at, now)

        return ActivityScan(
            handle=handle,
            mode=mode,
            posts=ordered,
            daily_breakdown=breakdown,
            activity_points=capped_activity_points(breakdown, self._daily_cap),
            trust_score=compute_trust_score(age_days, len(ordered), profile),
            identity_age_days=age_days,
            identity_id=identity_id,
            registered_at=registered_at,
            scanned_at=now,
        )

    async def scan(self, handle: str, window: ActivityWindow) -> ActivityScan:
        """Scan a handle's activity within ``window``.

        Raises:
            InvalidHandleError: If the handle is empty.
        """
        username = normalize_handle(handle)

        if self._client is not None:
            try:
                return await self._scan_live(self._client, username, window)
            except SocialAPIError as e:
                logger.warning("Live scan for %s failed, using fallback: %s", username, e)

        return self._scan_fallback(username, window)

    async def _scan_live(
        self, client: SocialClient, username: str, window: ActivityWindow
    ) -> ActivityScan:
        identity = await client.get_identity(username)
        posts = await client.get_posts(identity, window)
        scan = self._build_scan(
            handle=username,
            mode=ScanMode.LIVE,
            posts=posts,
            window=window,
            registered_at=identity.registered_at,
            identity_id=identity.identity_id,
            profile=self._live_profile,
            now=self._clock(),
        )
        logger.info(
            "Live scan for %s: %d posts, %d activity points",
            username,
            scan.post_count,
            scan.activity_points,
        )
        return scan

    def _scan_fallback(self, username: str, window: ActivityWindow) -> ActivityScan:
        now = self._clock()
        age = timedelta(days=self._rng.uniform(FALLBACK_MIN_AGE_DAYS, FALLBACK_MAX_AGE_DAYS))
        registered_at = now - age
        posts = self.synthesize_posts(username, window)
        scan = self._build_scan(
            handle=username,
            mode=ScanMode.FALLBACK,
            posts=posts,
            window=window,
            registered_at=registered_at,
            identity_id=None,
            profile=self._fallback_profile,
            now=now,
        )
        logger.info(
            "Fallback scan for %s: %d posts, %d activity points",
            username,
            scan.post_count,
            scan.activity_points,
        )
        return scan

    def synthesize_posts(self, username: str, window: ActivityWindow) -> list[ActivityRecord]:
        """Generate plausible posts spread uniformly over ``window``."""
        span = (window.end - window.start).total_seconds()
        posts: list[ActivityRecord] = []
        for _ in range(self._fallback_post_count):
            offset = self._rng.uniform(0, span)
            posts.append(
                ActivityRecord(
                    post_id=f"m-{self._rng.getrandbits(40):010x}",
                    created_at=window.start + timedelta(seconds=offset),
                    origin_handle=username,
                    text=self._rng.choice(FALLBACK_POST_TEXTS),
                )
            )
        return posts
