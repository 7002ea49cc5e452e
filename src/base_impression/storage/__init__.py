"""Storage layer - Database schemas and repositories."""

from base_impression.storage.database import (
    DatabaseManager,
    create_async_db_engine,
    init_async_db,
)
from base_impression.storage.models import Base, ClaimModel, SupplyLedgerModel, UserStatsModel
from base_impression.storage.repos import (
    ClaimDTO,
    ClaimRepository,
    SupplyLedgerRepository,
    UserStatsDTO,
    UserStatsRepository,
)

__all__ = [
    "Base",
    "ClaimDTO",
    "ClaimModel",
    "ClaimRepository",
    "DatabaseManager",
    "SupplyLedgerModel",
    "SupplyLedgerRepository",
    "UserStatsDTO",
    "UserStatsModel",
    "UserStatsRepository",
    "create_async_db_engine",
    "init_async_db",
]
