"""Impression service orchestrator.

This module provides the ImpressionService class that wires the chain,
social, scoring, claim and storage layers together.

Sync flow:
    BalanceResolver + PriceResolver + ActivityAggregator (concurrently)
        -> ScoreCalculator -> classify_tier -> user_stats row

Claim flow:
    stored user stats -> ClaimCoordinator (check -> badge -> submit -> decrement)
        -> supply_ledger row + claims row
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from decimal import ROUND_DOWN, Decimal
from enum import Enum
from typing import TYPE_CHECKING, Any

from redis.asyncio import Redis

from base_impression.chain.balance import BalanceResolver, validate_address
from base_impression.chain.models import ResolutionStatus
from base_impression.chain.price import PriceResolver
from base_impression.claim.badge import BadgeArtist
from base_impression.claim.coordinator import ClaimCoordinator, ClaimError, ClaimSubmitter
from base_impression.claim.eligibility import check_eligibility
from base_impression.claim.ledger import SupplyLedger
from base_impression.claim.models import (
    ClaimOutcome,
    ClaimRequest,
    ClaimStatus,
    EligibilityDecision,
)
from base_impression.config import Settings, get_settings
from base_impression.scoring.calculator import ScoreCalculator
from base_impression.scoring.models import ScoreBreakdown, Tier
from base_impression.scoring.tiers import classify_tier
from base_impression.social.activity import ActivityAggregator
from base_impression.social.client import SocialClient, normalize_handle
from base_impression.social.models import ActivityWindow, ScanMode
from base_impression.storage.database import DatabaseManager
from base_impression.storage.models import ASSET_VALUE_SCALE
from base_impression.storage.repos import (
    ClaimDTO,
    ClaimRepository,
    SupplyLedgerRepository,
    UserStatsDTO,
    UserStatsRepository,
)

if TYPE_CHECKING:
    from base_impression.social.models import ActivityScan

logger = logging.getLogger(__name__)

ASSET_VALUE_QUANTUM = Decimal(1).scaleb(-ASSET_VALUE_SCALE)


class ServiceState(str, Enum):
    """Service lifecycle states."""

    STOPPED = "stopped"
    STARTING = "starting"
    RUNNING = "running"
    STOPPING = "stopping"
    ERROR = "error"


@dataclass
class UserStats:
    """Latest computed stats for one address."""

    address: str
    handle: str
    platform_age_days: int
    social_age_days: int
    identity_id: int | None
    token_amount: Decimal
    asset_usd_value: Decimal
    activity_points: int
    trust_score: int
    scan_mode: ScanMode
    breakdown: ScoreBreakdown
    total: int
    tier: Tier
    balance_status: ResolutionStatus = ResolutionStatus.RESOLVED
    computed_at: datetime = field(default_factory=lambda: datetime.now(UTC))

    def to_dict(self) -> dict[str, Any]:
        return {
            "address": self.address,
            "handle": self.handle,
            "platform_age_days": self.platform_age_days,
            "social_age_days": self.social_age_days,
            "identity_id": self.identity_id,
            "token_amount": str(self.token_amount),
            "asset_usd_value": str(self.asset_usd_value),
            "activity_points": self.activity_points,
            "trust_score": self.trust_score,
            "scan_mode": self.scan_mode.value,
            "breakdown": self.breakdown.to_dict(),
            "total": self.total,
            "tier": self.tier.value,
            "balance_status": self.balance_status.value,
            "computed_at": self.computed_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> UserStats:
        identity_id = data.get("identity_id")
        return cls(
            address=str(data["address"]),
            handle=str(data["handle"]),
            platform_age_days=int(data.get("platform_age_days", 0)),
            social_age_days=int(data["social_age_days"]),
            identity_id=int(identity_id) if identity_id is not None else None,
            token_amount=Decimal(str(data["token_amount"])),
            asset_usd_value=Decimal(str(data["asset_usd_value"])),
            activity_points=int(data["activity_points"]),
            trust_score=int(data["trust_score"]),
            scan_mode=ScanMode(data["scan_mode"]),
            breakdown=ScoreBreakdown.from_dict(data["breakdown"]),
            total=int(data["total"]),
            tier=Tier(data["tier"]),
            balance_status=ResolutionStatus(data.get("balance_status", "resolved")),
            computed_at=datetime.fromisoformat(data["computed_at"]),
        )

    def to_dto(self) -> UserStatsDTO:
        return UserStatsDTO(
            address=self.address,
            handle=self.handle,
            platform_age_days=self.platform_age_days,
            social_age_days=self.social_age_days,
            identity_id=self.identity_id,
            token_amount=self.token_amount,
            asset_usd_value=self.asset_usd_value,
            activity_points=self.activity_points,
            trust_score=self.trust_score,
            scan_mode=self.scan_mode.value,
            balance_status=self.balance_status.value,
            social_age_points=self.breakdown.social_age,
            identity_bonus_points=self.breakdown.identity_bonus,
            activity_score_points=self.breakdown.activity_points,
            asset_points=self.breakdown.asset_points,
            total_points=self.total,
            tier=self.tier.value,
            computed_at=self.computed_at,
        )

    @classmethod
    def from_dto(cls, dto: UserStatsDTO) -> UserStats:
        return cls(
            address=dto.address,
            handle=dto.handle,
            platform_age_days=dto.platform_age_days,
            social_age_days=dto.social_age_days,
            identity_id=dto.identity_id,
            token_amount=dto.token_amount,
            asset_usd_value=dto.asset_usd_value,
            activity_points=dto.activity_points,
            trust_score=dto.trust_score,
            scan_mode=ScanMode(dto.scan_mode),
            breakdown=ScoreBreakdown(
                social_age=dto.social_age_points,
                identity_bonus=dto.identity_bonus_points,
                activity_points=dto.activity_score_points,
                asset_points=dto.asset_points,
            ),
            total=dto.total_points,
            tier=Tier(dto.tier),
            balance_status=ResolutionStatus(dto.balance_status),
            computed_at=dto.computed_at,
        )


class ImpressionService:
    """Scores users and processes badge claims.

    Components not passed in are built from settings in start().

    Example:
        ```python
        from base_impression.service import ImpressionService

        async with ImpressionService(submitter=my_submitter) as service:
            stats = await service.sync_user("0xabc...", "@someone", identity_id=4200)
            decision = service.check_eligibility(stats)
            if decision.is_eligible:
                outcome = await service.claim(stats.address)
        ```
    """

    def __init__(
        self,
        settings: Settings | None = None,
        *,
        balance_resolver: BalanceResolver | None = None,
        price_resolver: PriceResolver | None = None,
        aggregator: ActivityAggregator | None = None,
        calculator: ScoreCalculator | None = None,
        db_manager: DatabaseManager | None = None,
        submitter: ClaimSubmitter | None = None,
        badge_artist: BadgeArtist | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        """Initialize the service.

        Args:
            settings: Application settings. If not provided, uses get_settings().
            balance_resolver: Token balance resolver.
            price_resolver: Token price resolver.
            aggregator: Social activity aggregator.
            calculator: Score calculator.
            db_manager: Database manager.
            submitter: Claim submission collaborator; claims fail without one.
            badge_artist: Optional badge art collaborator.
            clock: Returns the current time (timezone-aware).
        """
        self._settings = settings or get_settings()
        self._clock = clock or (lambda: datetime.now(UTC))
        self._state = ServiceState.STOPPED

        self._balance_resolver = balance_resolver
        self._price_resolver = price_resolver
        self._aggregator = aggregator
        self._calculator = calculator
        self._db_manager = db_manager
        self._submitter = submitter
        self._badge_artist = badge_artist

        self._redis: Redis | None = None
        self._social_client: SocialClient | None = None
        self._coordinator: ClaimCoordinator | None = None
        self._owned: list[Any] = []

        campaign = self._settings.campaign
        self._window = ActivityWindow(campaign.window_start, campaign.window_end)

    @property
    def state(self) -> ServiceState:
        return self._state

    @property
    def is_running(self) -> bool:
        return self._state == ServiceState.RUNNING

    @property
    def window(self) -> ActivityWindow:
        return self._window

    @property
    def ledger(self) -> SupplyLedger:
        return self._require_coordinator().ledger

    async def start(self) -> None:
        """Build missing components, bootstrap storage and hydrate the ledger.

        Raises:
            RuntimeError: If the service is already started.
        """
        if self._state != ServiceState.STOPPED:
            raise RuntimeError(f"Cannot start service in state {self._state}")

        self._state = ServiceState.STARTING
        logger.info("Starting impression service...")

        try:
            self._initialize_components()
            await self._initialize_ledger()
            self._state = ServiceState.RUNNING
            logger.info("Impression service started")
        except Exception as e:
            self._state = ServiceState.ERROR
            logger.error("Failed to start impression service: %s", e)
            await self._cleanup()
            raise

    async def stop(self) -> None:
        """Release every resource the service created."""
        if self._state == ServiceState.STOPPED:
            return

        self._state = ServiceState.STOPPING
        logger.info("Stopping impression service...")
        await self._cleanup()
        self._state = ServiceState.STOPPED
        logger.info("Impression service stopped")

    def _initialize_components(self) -> None:
        settings = self._settings

        if self._price_resolver is None and settings.redis.url:
            logger.debug("Initializing Redis price cache...")
            self._redis = Redis.from_url(settings.redis.url)

        if self._db_manager is None:
            self._db_manager = DatabaseManager(settings.database.url)
            self._owned.append(self._db_manager)

        if self._balance_resolver is None:
            self._balance_resolver = BalanceResolver(
                settings.chain.rpc_urls,
                max_retries=settings.chain.max_retries,
                retry_delay_seconds=settings.chain.retry_delay_seconds,
                request_timeout=settings.chain.request_timeout_seconds,
            )
            self._owned.append(self._balance_resolver)

        if self._price_resolver is None:
            self._price_resolver = PriceResolver(
                api_url=settings.price.api_url,
                chain_id=settings.chain.dex_chain_id,
                timeout_seconds=settings.price.timeout_seconds,
                sentinel_usd=settings.price.sentinel_usd,
                redis=self._redis,
                cache_ttl_seconds=settings.price.cache_ttl_seconds,
            )
            self._owned.append(self._price_resolver)

        if self._aggregator is None:
            token_secret = settings.social.bearer_token
            if token_secret is not None:
                self._social_client = SocialClient(
                    token_secret.get_secret_value(),
                    base_url=settings.social.api_base_url,
                    timeout_seconds=settings.social.timeout_seconds,
                )
                self._owned.append(self._social_client)
            else:
                logger.warning("No social API token configured; activity scans are synthesized")
            self._aggregator = ActivityAggregator(
                self._social_client,
                required_tags=settings.social.required_tags,
                daily_cap=settings.scoring.daily_cap,
                fallback_post_count=settings.social.fallback_post_count,
            )

        if self._calculator is None:
            self._calculator = ScoreCalculator(
                age_rate=settings.scoring.age_rate,
                activity_rate=settings.scoring.activity_rate,
                asset_rate=settings.scoring.asset_rate,
            )

    async def _initialize_ledger(self) -> None:
        db = self._require_db()
        await db.init_schema()

        async with db.get_async_session() as session:
            ledger_repo = SupplyLedgerRepository(session)
            await ledger_repo.seed(self._settings.campaign.initial_supply())
            snapshot = await ledger_repo.get_snapshot()
            claimed = await ClaimRepository(session).list_addresses()

        ledger = SupplyLedger.from_snapshot(snapshot)
        logger.info("Supply ledger hydrated: %s", ledger.snapshot())

        self._coordinator = ClaimCoordinator(
            ledger,
            self._submitter or _MissingSubmitter(),
            badge_artist=self._badge_artist,
            recorder=self,
            min_asset_value_usd=self._settings.token.min_asset_value_usd,
            opens_at=self._settings.campaign.claim_opens_at,
            claimed_addresses=claimed,
            clock=self._clock,
        )

    async def _cleanup(self) -> None:
        for component in reversed(self._owned):
            if isinstance(component, DatabaseManager):
                await component.dispose()
            else:
                await component.aclose()
        self._owned.clear()

        if self._redis is not None:
            await self._redis.aclose()
            self._redis = None

        logger.debug("Resources cleaned up")

    def _require_running(self) -> None:
        if self._state != ServiceState.RUNNING:
            raise RuntimeError(f"Service is not running (state {self._state})")

    def _require_db(self) -> DatabaseManager:
        if self._db_manager is None:
            raise RuntimeError("Database manager not initialized")
        return self._db_manager

    def _require_coordinator(self) -> ClaimCoordinator:
        if self._coordinator is None:
            raise RuntimeError("Claim coordinator not initialized")
        return self._coordinator

    def _require_calculator(self) -> ScoreCalculator:
        if self._calculator is None:
            raise RuntimeError("Score calculator not initialized")
        return self._calculator

    def _require_resolvers(self) -> tuple[BalanceResolver, PriceResolver, ActivityAggregator]:
        if (
            self._balance_resolver is None
            or self._price_resolver is None
            or self._aggregator is None
        ):
            raise RuntimeError("Resolvers not initialized")
        return self._balance_resolver, self._price_resolver, self._aggregator

    async def sync_user(
        self,
        address: str,
        handle: str,
        *,
        platform_age_days: int = 0,
        identity_id: int | None = None,
    ) -> UserStats:
        """Recompute and store a user's stats.

        Balance, price and activity are fetched concurrently. Recoverable
        upstream failures are absorbed by each component.

        Args:
            address: Wallet address holding the campaign token.
            handle: Social handle to scan.
            platform_age_days: Age of the platform identity.
            identity_id: Platform identity id (earlier ids earn a bonus).

        Raises:
            InvalidAddressError: If the address is malformed.
            InvalidHandleError: If the handle is empty.
        """
        self._require_running()
        owner = validate_address(address, field="address")
        username = normalize_handle(handle)
        token = self._settings.token.contract_address
        balance_resolver, price_resolver, aggregator = self._require_resolvers()

        resolution, price, scan = await asyncio.gather(
            balance_resolver.resolve(owner, token),
            price_resolver.resolve_price_usd(token),
            aggregator.scan(username, self._window),
        )

        stats = self._build_stats(
            owner,
            username,
            resolution.normalized_value,
            price,
            scan,
            platform_age_days=platform_age_days,
            identity_id=identity_id,
            balance_status=resolution.status,
        )

        async with self._require_db().get_async_session() as session:
            await UserStatsRepository(session).upsert(stats.to_dto())

        logger.info(
            "Synced %s (@%s): total=%d tier=%s mode=%s",
            stats.address,
            stats.handle,
            stats.total,
            stats.tier.value,
            stats.scan_mode.value,
        )
        return stats

    def _build_stats(
        self,
        address: str,
        handle: str,
        token_amount: Decimal,
        price: Decimal,
        scan: ActivityScan,
        *,
        platform_age_days: int,
        identity_id: int | None,
        balance_status: ResolutionStatus,
    ) -> UserStats:
        # Truncated to the stored scale so gating and storage see one value
        asset_usd_value = (token_amount * price).quantize(
            ASSET_VALUE_QUANTUM, rounding=ROUND_DOWN
        )
        result = self._require_calculator().compute_score(
            platform_age_days=platform_age_days,
            social_age_days=scan.identity_age_days,
            activity_points=scan.activity_points,
            identity_id=identity_id,
            asset_usd_value=asset_usd_value,
        )
        return UserStats(
            address=address.lower(),
            handle=handle,
            platform_age_days=platform_age_days,
            social_age_days=scan.identity_age_days,
            identity_id=identity_id,
            token_amount=token_amount,
            asset_usd_value=asset_usd_value,
            activity_points=scan.activity_points,
            trust_score=scan.trust_score,
            scan_mode=scan.mode,
            breakdown=result.breakdown,
            total=result.total,
            tier=classify_tier(result.total),
            balance_status=balance_status,
            computed_at=self._clock(),
        )

    async def get_stats(self, address: str) -> UserStats | None:
        """Load the stored stats for ``address``."""
        self._require_running()
        async with self._require_db().get_async_session() as session:
            dto = await UserStatsRepository(session).get(address)
        return UserStats.from_dto(dto) if dto else None

    async def leaderboard(self, limit: int = 100) -> list[UserStats]:
        """Stored stats with the highest totals first."""
        self._require_running()
        async with self._require_db().get_async_session() as session:
            dtos = await UserStatsRepository(session).list_top(limit)
        return [UserStats.from_dto(dto) for dto in dtos]

    async def claim_counts(self) -> dict[str, int]:
        """Number of recorded claims per tier name."""
        self._require_running()
        async with self._require_db().get_async_session() as session:
            return await ClaimRepository(session).count_by_tier()

    def check_eligibility(self, stats: UserStats) -> EligibilityDecision:
        """Evaluate ``stats`` against the current ledger."""
        return check_eligibility(
            stats.tier,
            stats.asset_usd_value,
            self.ledger,
            min_asset_value_usd=self._settings.token.min_asset_value_usd,
        )

    async def claim(self, address: str) -> ClaimOutcome:
        """Claim the badge for the tier stored for ``address``.

        Users without stored stats are refused as NOT_ELIGIBLE at Tier.NONE.
        """
        self._require_running()
        stats = await self.get_stats(address)
        if stats is None:
            request = ClaimRequest(address, "", Tier.NONE, Decimal(0))
        else:
            request = ClaimRequest(stats.address, stats.handle, stats.tier, stats.asset_usd_value)

        outcome = await self._require_coordinator().claim(request)
        if outcome.status is ClaimStatus.FAILED:
            logger.error("Claim by %s failed: %s", address, outcome.error)
        return outcome

    async def record_claim(self, outcome: ClaimOutcome) -> None:
        """Mirror a successful claim into the database."""
        request = outcome.request
        async with self._require_db().get_async_session() as session:
            await SupplyLedgerRepository(session).try_decrement(request.tier.value)
            await ClaimRepository(session).insert(
                ClaimDTO(
                    address=request.address,
                    handle=request.handle,
                    tier=request.tier.value,
                    tx_reference=outcome.tx_reference or "",
                    claimed_at=outcome.completed_at,
                )
            )

    async def __aenter__(self) -> ImpressionService:
        await self.start()
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.stop()


class _MissingSubmitter:
    """Submitter used when none is configured."""

    async def submit(self, request: ClaimRequest, tier_index: int, badge_uri: str) -> str:
        raise ClaimError("No claim submitter configured")
