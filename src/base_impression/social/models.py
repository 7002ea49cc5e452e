"""Data models for the social module."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import Any


def parse_timestamp(value: str) -> datetime:
    """Parse an ISO-8601 timestamp, keeping the offset it carries.

    Raises:
        ValueError: If the value is malformed or carries no UTC offset.
    """
    ts = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if ts.tzinfo is None:
        raise ValueError(f"Timestamp without UTC offset: {value!r}")
    return ts


@dataclass(frozen=True)
class ActivityWindow:
    """Inclusive campaign snapshot period."""

    start: datetime
    end: datetime

    def __post_init__(self) -> None:
        if self.start.tzinfo is None or self.end.tzinfo is None:
            raise ValueError("ActivityWindow bounds must be timezone-aware")
        if self.end < self.start:
            raise ValueError("ActivityWindow end must not precede start")

    def contains(self, ts: datetime) -> bool:
        """Return True if ``ts`` falls within the window, bounds included."""
        return self.start <= ts <= self.end


@dataclass(frozen=True)
class SocialIdentity:
    """A resolved social platform identity."""

    identity_id: str
    handle: str
    registered_at: datetime

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> SocialIdentity:
        """Create a SocialIdentity from a user lookup payload."""
        return cls(
            identity_id=str(data["id"]),
            handle=str(data.get("username", "")),
            registered_at=parse_timestamp(str(data["created_at"])),
        )


@dataclass(frozen=True)
class ActivityRecord:
    """A single social post produced by one scan."""

    post_id: str
    created_at: datetime
    origin_handle: str
    text: str = ""

    @property
    def day_key(self) -> str:
        """Calendar day of the post on its own clock (YYYY-MM-DD)."""
        return self.created_at.date().isoformat()

    @classmethod
    def from_dict(cls, data: dict[str, Any], *, origin_handle: str) -> ActivityRecord:
        """Create an ActivityRecord from a post payload."""
        return cls(
            post_id=str(data["id"]),
            created_at=parse_timestamp(str(data["created_at"])),
            origin_handle=origin_handle,
            text=str(data.get("text", "")),
        )


class ScanMode(str, Enum):
    """Where a scan's data came from."""

    LIVE = "live"
    FALLBACK = "fallback"


@dataclass(frozen=True)
class TrustProfile:
    """Constants for the trust heuristic.

    trust = round(min(age_days / age_horizon_days, 1) * 40
                  + (high_bonus if post_count > post_threshold else low_bonus))
    """

    name: str
    age_horizon_days: int
    post_threshold: int
    high_bonus: int
    low_bonus: int
    age_weight: int = 40


# Live and synthesized scans intentionally use different constants.
LIVE_TRUST_PROFILE = TrustProfile(
    name="live",
    age_horizon_days=1500,
    post_threshold=3,
    high_bonus=60,
    low_bonus=20,
)
FALLBACK_TRUST_PROFILE = TrustProfile(
    name="fallback",
    age_horizon_days=1000,
    post_threshold=5,
    high_bonus=60,
    low_bonus=30,
)


@dataclass(frozen=True)
class ActivityScan:
    """Result of scanning one handle over a campaign window.

    Attributes:
        handle: Normalized handle that was scanned.
        mode: LIVE or FALLBACK.
        posts: Posts within the window, newest first.
        daily_breakdown: Day key -> raw post count.
        activity_points: Sum over days of min(count, daily cap).
        trust_score: Trust heuristic from the mode's profile.
        identity_age_days: Days since the identity registered (rounded up).
        identity_id: Platform identity id, None when synthesized.
        registered_at: Registration timestamp used for the age.
    """

    handle: str
    mode: ScanMode
    posts: tuple[ActivityRecord, ...]
    daily_breakdown: dict[str, int]
    activity_points: int
    trust_score: int
    identity_age_days: int
    identity_id: str | None = None
    registered_at: datetime | None = None
    scanned_at: datetime = field(default_factory=lambda: datetime.now(UTC))

    @property
    def post_count(self) -> int:
        return len(self.posts)

    def to_dict(self) -> dict[str, object]:
        return {
            "handle": self.handle,
            "mode": self.mode.value,
            "post_count": self.post_count,
            "daily_breakdown": dict(self.daily_breakdown),
            "activity_points": self.activity_points,
            "trust_score": self.trust_score,
            "identity_age_days": self.identity_age_days,
            "identity_id": self.identity_id,
            "registered_at": self.registered_at.isoformat() if self.registered_at else None,
            "scanned_at": self.scanned_at.isoformat(),
        }

