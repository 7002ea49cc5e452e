"""Badge artwork for claims.

Badge art comes from an external generative collaborator. When it refuses,
fails or returns nothing, a deterministic SVG badge is used instead so a
claim is never blocked on artwork.
"""

from __future__ import annotations

import base64
import hashlib
import logging
from html import escape
from typing import Protocol

from base_impression.scoring.models import Tier

logger = logging.getLogger(__name__)

# Tier -> (gradient start, gradient end)
TIER_COLORS: dict[Tier, tuple[str, str]] = {
    Tier.PLATINUM: ("#6366f1", "#ec4899"),
    Tier.GOLD: ("#facc15", "#854d0e"),
    Tier.SILVER: ("#d1d5db", "#374151"),
    Tier.BRONZE: ("#9333ea", "#581c87"),
    Tier.NONE: ("#374151", "#111827"),
}


class BadgeArtist(Protocol):
    """Generates badge artwork as a data URI, or None when it declines."""

    async def generate_badge(self, tier: Tier, username: str) -> str | None: ...


def fallback_badge_uri(tier: Tier, username: str) -> str:
    """Build a deterministic SVG badge data URI for ``tier`` and ``username``."""
    start, end = TIER_COLORS[tier]
    # Stable per-user accent so badges of the same tier still differ.
    accent = hashlib.sha256(f"{tier.value}:{username}".encode()).hexdigest()[:6]
    label = escape(tier.info.name.upper())
    handle = escape(f"@{username}")
    svg = (
        '<svg xmlns="http://www.w3.org/2000/svg" width="512" height="512" viewBox="0 0 512 512">'
        '<defs><linearGradient id="g" x1="0" y1="0" x2="1" y2="1">'
        f'<stop offset="0" stop-color="{start}"/><stop offset="1" stop-color="{end}"/>'
        "</linearGradient></defs>"
        '<rect width="512" height="512" fill="#0b0b0f"/>'
        '<polygon points="256,40 443,148 443,364 256,472 69,364 69,148" '
        f'fill="url(#g)" stroke="#{accent}" stroke-width="8"/>'
        '<text x="256" y="250" text-anchor="middle" font-family="sans-serif" '
        f'font-size="48" font-weight="900" fill="#ffffff">{label}</text>'
        '<text x="256" y="310" text-anchor="middle" font-family="sans-serif" '
        f'font-size="24" fill="#ffffff">{handle}</text>'
        "</svg>"
    )
    encoded = base64.b64encode(svg.encode("utf-8")).decode("ascii")
    return f"data:image/svg+xml;base64,{encoded}"


async def resolve_badge_uri(artist: BadgeArtist | None, tier: Tier, username: str) -> str:
    """Return generated badge art, or the SVG fallback.

    Never raises for artist failures.
    """
    if artist is None:
        return fallback_badge_uri(tier, username)

    try:
        uri = await artist.generate_badge(tier, username)
    except Exception as e:
        logger.warning("Badge generation failed for %s, using fallback: %s", username, e)
        return fallback_badge_uri(tier, username)

    if not uri:
        logger.info("Badge generation declined for %s, using fallback", username)
        return fallback_badge_uri(tier, username)
    return uri
