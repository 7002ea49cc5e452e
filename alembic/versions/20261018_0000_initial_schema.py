"""Initial schema for user stats, supply ledger and claims.

Revision ID: 001_initial
Revises:
Create Date: 2026-10-18 00:00:00.000000+00:00
"""

from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision: str = "001_initial"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "user_stats",
        sa.Column("address", sa.String(42), nullable=False),
        sa.Column("handle", sa.String(64), nullable=False),
        sa.Column("platform_age_days", sa.Integer(), nullable=False),
        sa.Column("social_age_days", sa.Integer(), nullable=False),
        sa.Column("identity_id", sa.Integer(), nullable=True),
        sa.Column("token_amount", sa.Numeric(40, 18), nullable=False),
        sa.Column("asset_usd_value", sa.Numeric(30, 8), nullable=False),
        sa.Column("activity_points", sa.Integer(), nullable=False),
        sa.Column("trust_score", sa.Integer(), nullable=False),
        sa.Column("scan_mode", sa.String(16), nullable=False),
        sa.Column("social_age_points", sa.Integer(), nullable=False),
        sa.Column("identity_bonus_points", sa.Integer(), nullable=False),
        sa.Column("activity_score_points", sa.Integer(), nullable=False),
        sa.Column("asset_points", sa.Integer(), nullable=False),
        sa.Column("total_points", sa.Integer(), nullable=False),
        sa.Column("tier", sa.String(10), nullable=False),
        sa.Column("computed_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("address"),
    )
    op.create_index("idx_user_stats_total_points", "user_stats", ["total_points"])
    op.create_index("idx_user_stats_tier", "user_stats", ["tier"])

    op.create_table(
        "supply_ledger",
        sa.Column("tier", sa.String(10), nullable=False),
        sa.Column("remaining_count", sa.Integer(), nullable=False),
        sa.Column("initial_count", sa.Integer(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("tier"),
        sa.CheckConstraint("remaining_count >= 0", name="ck_supply_ledger_non_negative"),
    )

    op.create_table(
        "claims",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("address", sa.String(42), nullable=False),
        sa.Column("handle", sa.String(64), nullable=False),
        sa.Column("tier", sa.String(10), nullable=False),
        sa.Column("tx_reference", sa.String(128), nullable=False),
        sa.Column("claimed_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("address", name="uq_claims_address"),
    )
    op.create_index("idx_claims_tier", "claims", ["tier"])


def downgrade() -> None:
    op.drop_index("idx_claims_tier", table_name="claims")
    op.drop_table("claims")
    op.drop_table("supply_ledger")
    op.drop_index("idx_user_stats_tier", table_name="user_stats")
    op.drop_index("idx_user_stats_total_points", table_name="user_stats")
    op.drop_table("user_stats")
