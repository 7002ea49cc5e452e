"""Repository pattern implementations for data access.

This module provides data access for user stats, the claim supply ledger
and submitted claims.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass
from datetime import UTC, datetime
from decimal import Decimal
from typing import TYPE_CHECKING, Any

from sqlalchemy import select, update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert

from base_impression.storage.models import ClaimModel, SupplyLedgerModel, UserStatsModel

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

logger = logging.getLogger(__name__)


def _insert_for(session: AsyncSession, model: Any) -> Any:
    """Dialect-specific INSERT supporting ON CONFLICT clauses."""
    if session.get_bind().dialect.name == "postgresql":
        return pg_insert(model)
    return sqlite_insert(model)


@dataclass
class UserStatsDTO:
    """Data transfer object for user stats."""

    address: str
    handle: str
    platform_age_days: int
    social_age_days: int
    identity_id: int | None
    token_amount: Decimal
    asset_usd_value: Decimal
    activity_points: int
    trust_score: int
    scan_mode: str
    social_age_points: int
    identity_bonus_points: int
    activity_score_points: int
    asset_points: int
    total_points: int
    tier: str
    computed_at: datetime
    balance_status: str = "resolved"
    updated_at: datetime | None = None

    @classmethod
    def from_model(cls, model: UserStatsModel) -> UserStatsDTO:
        return cls(
            address=model.address,
            handle=model.handle,
            platform_age_days=model.platform_age_days,
            social_age_days=model.social_age_days,
            identity_id=model.identity_id,
            token_amount=model.token_amount,
            asset_usd_value=model.asset_usd_value,
            activity_points=model.activity_points,
            trust_score=model.trust_score,
            scan_mode=model.scan_mode,
            social_age_points=model.social_age_points,
            identity_bonus_points=model.identity_bonus_points,
            activity_score_points=model.activity_score_points,
            asset_points=model.asset_points,
            total_points=model.total_points,
            tier=model.tier,
            computed_at=model.computed_at,
            balance_status=model.balance_status,
            updated_at=model.updated_at,
        )


@dataclass
class ClaimDTO:
    """Data transfer object for submitted claims."""

    address: str
    handle: str
    tier: str
    tx_reference: str
    claimed_at: datetime | None = None

    @classmethod
    def from_model(cls, model: ClaimModel) -> ClaimDTO:
        return cls(
            address=model.address,
            handle=model.handle,
            tier=model.tier,
            tx_reference=model.tx_reference,
            claimed_at=model.claimed_at,
        )


class UserStatsRepository:
    """Repository for the latest stats per address."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def get(self, address: str) -> UserStatsDTO | None:
        result = await self.session.execute(
            select(UserStatsModel).where(UserStatsModel.address == address.lower())
        )
        model = result.scalar_one_or_none()
        return UserStatsDTO.from_model(model) if model else None

    async def upsert(self, dto: UserStatsDTO) -> UserStatsDTO:
        """Insert or replace the stats row for ``dto.address``."""
        values = {
            "address": dto.address.lower(),
            "handle": dto.handle,
            "platform_age_days": dto.platform_age_days,
            "social_age_days": dto.social_age_days,
            "identity_id": dto.identity_id,
            "token_amount": dto.token_amount,
            "asset_usd_value": dto.asset_usd_value,
            "activity_points": dto.activity_points,
            "trust_score": dto.trust_score,
            "scan_mode": dto.scan_mode,
            "social_age_points": dto.social_age_points,
            "identity_bonus_points": dto.identity_bonus_points,
            "activity_score_points": dto.activity_score_points,
            "asset_points": dto.asset_points,
            "total_points": dto.total_points,
            "tier": dto.tier,
            "computed_at": dto.computed_at,
            "balance_status": dto.balance_status,
        }
        stmt = _insert_for(self.session, UserStatsModel).values(
            **values, updated_at=datetime.now(UTC)
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=["address"],
            set_={key: stmt.excluded[key] for key in values if key != "address"}
            | {"updated_at": stmt.excluded.updated_at},
        )
        await self.session.execute(stmt)
        await self.session.flush()
        return dto

    async def list_top(self, limit: int = 100) -> list[UserStatsDTO]:
        """Highest totals first."""
        result = await self.session.execute(
            select(UserStatsModel)
            .order_by(UserStatsModel.total_points.desc(), UserStatsModel.address)
            .limit(limit)
        )
        return [UserStatsDTO.from_model(m) for m in result.scalars().all()]


class SupplyLedgerRepository:
    """Repository for the per-tier supply snapshot.

    ``try_decrement`` is the transactional counter: it only succeeds while
    the row still has supply, so concurrent writers cannot overdraw it.
    """

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def get_snapshot(self) -> dict[str, int]:
        result = await self.session.execute(select(SupplyLedgerModel))
        return {m.tier: m.remaining_count for m in result.scalars().all()}

    async def seed(self, initial: Mapping[str, int]) -> None:
        """Insert rows for tiers that have none. Existing rows are kept."""
        now = datetime.now(UTC)
        for tier, count in initial.items():
            stmt = _insert_for(self.session, SupplyLedgerModel).values(
                tier=tier, remaining_count=count, initial_count=count, updated_at=now
            )
            stmt = stmt.on_conflict_do_nothing(index_elements=["tier"])
            await self.session.execute(stmt)
        await self.session.flush()

    async def try_decrement(self, tier: str) -> bool:
        """Consume one unit of ``tier`` if any remains.

        Returns:
            True if a unit was consumed.
        """
        result = await self.session.execute(
            update(SupplyLedgerModel)
            .where(SupplyLedgerModel.tier == tier, SupplyLedgerModel.remaining_count > 0)
            .values(
                remaining_count=SupplyLedgerModel.remaining_count - 1,
                updated_at=datetime.now(UTC),
            )
        )
        await self.session.flush()
        decremented = (result.rowcount or 0) > 0
        if not decremented:
            logger.warning("Stored supply for %s already exhausted", tier)
        return decremented


class ClaimRepository:
    """Repository for submitted claims."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def insert(self, dto: ClaimDTO) -> ClaimDTO:
        model = ClaimModel(
            address=dto.address.lower(),
            handle=dto.handle,
            tier=dto.tier,
            tx_reference=dto.tx_reference,
            claimed_at=dto.claimed_at or datetime.now(UTC),
        )
        self.session.add(model)
        await self.session.flush()
        return dto

    async def get_by_address(self, address: str) -> ClaimDTO | None:
        result = await self.session.execute(
            select(ClaimModel).where(ClaimModel.address == address.lower())
        )
        model = result.scalar_one_or_none()
        return ClaimDTO.from_model(model) if model else None

    async def list_addresses(self) -> list[str]:
        result = await self.session.execute(select(ClaimModel.address))
        return list(result.scalars().all())

    async def count_by_tier(self) -> dict[str, int]:
        result = await self.session.execute(select(ClaimModel.tier))
        counts: dict[str, int] = {}
        for tier in result.scalars().all():
            counts[tier] = counts.get(tier, 0) + 1
        return counts
