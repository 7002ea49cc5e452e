"""Record how the balance resolution ended on user_stats.

Revision ID: 002_balance_status
Revises: 001_initial
Create Date: 2026-10-18 00:01:00.000000+00:00
"""

from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op

revision: str = "002_balance_status"
down_revision: Union[str, None] = "001_initial"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    with op.batch_alter_table("user_stats") as batch_op:
        batch_op.add_column(
            sa.Column(
                "balance_status", sa.String(16), nullable=False, server_default="resolved"
            )
        )


def downgrade() -> None:
    with op.batch_alter_table("user_stats") as batch_op:
        batch_op.drop_column("balance_status")
