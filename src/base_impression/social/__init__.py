"""Social layer - Identity lookup and campaign activity aggregation."""

from base_impression.social.activity import (
    ActivityAggregator,
    capped_activity_points,
    compute_daily_breakdown,
    compute_trust_score,
)
from base_impression.social.client import (
    InvalidHandleError,
    SocialAPIError,
    SocialClient,
    SocialClientError,
)
from base_impression.social.models import (
    FALLBACK_TRUST_PROFILE,
    LIVE_TRUST_PROFILE,
    ActivityRecord,
    ActivityScan,
    ActivityWindow,
    ScanMode,
    SocialIdentity,
    TrustProfile,
)

__all__ = [
    "FALLBACK_TRUST_PROFILE",
    "LIVE_TRUST_PROFILE",
    "ActivityAggregator",
    "ActivityRecord",
    "ActivityScan",
    "ActivityWindow",
    "InvalidHandleError",
    "ScanMode",
    "SocialAPIError",
    "SocialClient",
    "SocialClientError",
    "SocialIdentity",
    "TrustProfile",
    "capped_activity_points",
    "compute_daily_breakdown",
    "compute_trust_score",
]
