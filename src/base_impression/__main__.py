"""Command-line entry point.

Usage:
    python -m base_impression sync 0xADDRESS @handle [--identity-id N] [--platform-age-days N]
    python -m base_impression leaderboard [--limit N]
    python -m base_impression ledger
    python -m base_impression config
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from collections.abc import Sequence

from base_impression.config import Settings, get_settings
from base_impression.service import ImpressionService

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="base_impression",
        description="Impression scoring and badge claim engine",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    sync = sub.add_parser("sync", help="Recompute and store a user's score")
    sync.add_argument("address", help="Wallet address holding the campaign token")
    sync.add_argument("handle", help="Social handle to scan")
    sync.add_argument("--identity-id", type=int, default=None, help="Platform identity id")
    sync.add_argument(
        "--platform-age-days", type=int, default=0, help="Platform identity age in days"
    )

    leaderboard = sub.add_parser("leaderboard", help="Show the highest stored scores")
    leaderboard.add_argument("--limit", type=int, default=20, help="Number of rows to show")

    sub.add_parser("ledger", help="Show remaining and claimed supply per tier")
    sub.add_parser("config", help="Show effective settings with secrets redacted")
    return parser


async def _run_sync(settings: Settings, args: argparse.Namespace) -> dict[str, object]:
    async with ImpressionService(settings) as service:
        stats = await service.sync_user(
            args.address,
            args.handle,
            platform_age_days=args.platform_age_days,
            identity_id=args.identity_id,
        )
        decision = service.check_eligibility(stats)
        return {"stats": stats.to_dict(), "eligibility": decision.to_dict()}


async def _run_leaderboard(settings: Settings, limit: int) -> list[dict[str, object]]:
    async with ImpressionService(settings) as service:
        rows = await service.leaderboard(limit)
    return [
        {"address": s.address, "handle": s.handle, "total": s.total, "tier": s.tier.value}
        for s in rows
    ]


async def _run_ledger(settings: Settings) -> dict[str, dict[str, int]]:
    async with ImpressionService(settings) as service:
        return {
            "remaining": service.ledger.snapshot(),
            "claimed": await service.claim_counts(),
        }


def main(argv: Sequence[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    settings = get_settings()
    logging.basicConfig(
        level=settings.get_logging_level(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        if args.command == "sync":
            result: object = asyncio.run(_run_sync(settings, args))
        elif args.command == "leaderboard":
            result = asyncio.run(_run_leaderboard(settings, args.limit))
        elif args.command == "ledger":
            result = asyncio.run(_run_ledger(settings))
        else:
            result = settings.redacted_summary()
    except ValueError as e:
        print(f"error: {e}", file=sys.stderr)
        return 2

    json.dump(result, sys.stdout, indent=2)
    sys.stdout.write("\n")
    return 0


if __name__ == "__main__":
    sys.exit(main())
