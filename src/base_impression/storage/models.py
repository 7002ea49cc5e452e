"""SQLAlchemy models for persistent storage.

This module defines the database schema for the latest computed user
stats, the per-tier claim supply and the record of submitted claims.
"""

from __future__ import annotations

from datetime import UTC, datetime
from decimal import Decimal

from sqlalchemy import CheckConstraint, DateTime, Index, Integer, Numeric, String, UniqueConstraint
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

# Decimal places kept for stored USD values
ASSET_VALUE_SCALE = 8


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy models."""

    pass


class UserStatsModel(Base):
    """Latest computed stats per address. Re-syncing replaces the row."""

    __tablename__ = "user_stats"

    address: Mapped[str] = mapped_column(String(42), primary_key=True)
    handle: Mapped[str] = mapped_column(String(64), nullable=False)

    platform_age_days: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    social_age_days: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    identity_id: Mapped[int | None] = mapped_column(Integer, nullable=True)

    token_amount: Mapped[Decimal] = mapped_column(Numeric(40, 18), nullable=False)
    asset_usd_value: Mapped[Decimal] = mapped_column(
        Numeric(30, ASSET_VALUE_SCALE), nullable=False
    )

    activity_points: Mapped[int] = mapped_column(Integer, nullable=False)
    trust_score: Mapped[int] = mapped_column(Integer, nullable=False)
    scan_mode: Mapped[str] = mapped_column(String(16), nullable=False)
    balance_status: Mapped[str] = mapped_column(String(16), nullable=False, default="resolved")

    # Rounded breakdown components
    social_age_points: Mapped[int] = mapped_column(Integer, nullable=False)
    identity_bonus_points: Mapped[int] = mapped_column(Integer, nullable=False)
    activity_score_points: Mapped[int] = mapped_column(Integer, nullable=False)
    asset_points: Mapped[int] = mapped_column(Integer, nullable=False)

    total_points: Mapped[int] = mapped_column(Integer, nullable=False)
    tier: Mapped[str] = mapped_column(String(10), nullable=False)

    computed_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=lambda: datetime.now(UTC)
    )

    __table_args__ = (
        Index("idx_user_stats_total_points", "total_points"),
        Index("idx_user_stats_tier", "tier"),
    )


class SupplyLedgerModel(Base):
    """Remaining claim capacity per tier."""

    __tablename__ = "supply_ledger"

    tier: Mapped[str] = mapped_column(String(10), primary_key=True)
    remaining_count: Mapped[int] = mapped_column(Integer, nullable=False)
    initial_count: Mapped[int] = mapped_column(Integer, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=lambda: datetime.now(UTC)
    )

    __table_args__ = (
        CheckConstraint("remaining_count >= 0", name="ck_supply_ledger_non_negative"),
    )


class ClaimModel(Base):
    """Submitted claims, one per address."""

    __tablename__ = "claims"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    address: Mapped[str] = mapped_column(String(42), nullable=False)
    handle: Mapped[str] = mapped_column(String(64), nullable=False)
    tier: Mapped[str] = mapped_column(String(10), nullable=False)
    tx_reference: Mapped[str] = mapped_column(String(128), nullable=False)
    claimed_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=lambda: datetime.now(UTC)
    )

    __table_args__ = (
        UniqueConstraint("address", name="uq_claims_address"),
        Index("idx_claims_tier", "tier"),
    )
