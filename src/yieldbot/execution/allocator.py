"""Allocation executor -- moves a user's vault deposit to a tier venue.

Each allocate() submits exactly one allocateFunds transaction and blocks
until it is confirmed. There is no retry and no idempotency at the ledger
level: two calls move funds twice. Callers guarantee at-most-once per
decision cycle, e.g. by re-reading the deposit before calling again.

Venue approval on the vault is an administrative precondition handled
outside this module.
"""

from collections.abc import Mapping

from yieldbot.exceptions import (
    AllocationFailed,
    InvalidAllocation,
    LedgerUnavailable,
    TransactionReverted,
    UnknownVenue,
)
from yieldbot.ledger.client import LedgerClient
from yieldbot.logging import get_logger
from yieldbot.models import (
    AllocationRequest,
    RiskTier,
    StrategyDecision,
    TransactionReceipt,
)
from yieldbot.storage.store import StrategyStore

logger = get_logger(__name__)


class AllocationExecutor:
    """Validates allocation requests and submits them to the ledger.

    Args:
        ledger: Vault / strategy-manager client.
        venues: Venue address for each risk tier.
    """

    def __init__(self, ledger: LedgerClient, venues: Mapping[RiskTier, str]) -> None:
        self._ledger = ledger
        self._venues = dict(venues)

    def venue_for(self, risk_tier: RiskTier) -> str:
        """Return the configured venue for a tier."""
        venue = self._venues.get(risk_tier)
        if not venue:
            raise UnknownVenue(f"No venue configured for {risk_tier.value}-risk tier")
        return venue

    def tier_for(self, venue: str) -> RiskTier:
        """Return the tier whose venue matches ``venue`` (addresses compare case-insensitively)."""
        wanted = venue.strip().lower()
        for tier, configured in self._venues.items():
            if configured and configured.strip().lower() == wanted:
                return tier
        raise UnknownVenue(f"Venue {venue} is not a configured low/high risk venue")

    async def allocate(
        self, user_address: str, amount: int, target_venue: str
    ) -> TransactionReceipt:
        """Allocate ``amount`` of the user's deposit to ``target_venue``.

        Raises:
            InvalidAllocation: amount is not a positive integer. No transaction is sent.
            UnknownVenue: target_venue is not one of the tier venues. No transaction is sent.
            AllocationFailed: The ledger call failed, reverted, or timed out.
        """
        if isinstance(amount, bool) or not isinstance(amount, int) or amount <= 0:
            raise InvalidAllocation(f"Allocation amount must be a positive integer, got {amount!r}")
        tier = self.tier_for(target_venue)

        logger.info(
            "allocation_submitting",
            user=user_address,
            amount=amount,
            venue=target_venue,
            tier=tier.value,
        )
        try:
            receipt = await self._ledger.allocate_funds(user_address, amount, target_venue)
        except Exception as e:
            logger.error(
                "allocation_failed",
                user=user_address,
                amount=amount,
                venue=target_venue,
                error=str(e),
            )
            raise AllocationFailed(f"allocateFunds to {target_venue} failed: {e}", cause=e) from e

        logger.info(
            "allocation_confirmed",
            user=user_address,
            amount=amount,
            venue=target_venue,
            tx_hash=receipt.tx_hash,
            block_number=receipt.block_number,
        )
        return receipt

    async def set_preference(self, risk_tier: RiskTier) -> TransactionReceipt:
        """Record the tier's venue as the signing account's strategy on the strategy manager.

        Raises:
            UnknownVenue: No venue configured for the tier. No transaction is sent.
            TransactionReverted: The transaction was mined with a failure status.
            LedgerUnavailable: Any other ledger failure.
        """
        venue = self.venue_for(risk_tier)
        logger.info("preference_submitting", tier=risk_tier.value, venue=venue)
        try:
            receipt = await self._ledger.set_user_strategy(venue)
        except TransactionReverted:
            logger.error("preference_reverted", tier=risk_tier.value, venue=venue)
            raise
        except Exception as e:
            logger.error("preference_failed", tier=risk_tier.value, venue=venue, error=str(e))
            raise LedgerUnavailable(f"setUserStrategy({venue}) failed: {e}") from e

        logger.info(
            "preference_confirmed",
            tier=risk_tier.value,
            venue=venue,
            tx_hash=receipt.tx_hash,
        )
        return receipt

    async def plan(
        self, user_address: str, decision: StrategyDecision | None
    ) -> AllocationRequest | None:
        """Derive an allocation request from the live deposit and a decision.

        Returns None when there is no decision, the decision has no selected
        pool, or the user has nothing deposited.
        """
        if decision is None or decision.selected_pool is None:
            return None

        deposit = await self._ledger.user_deposits(user_address)
        if deposit <= 0:
            logger.info("allocation_skipped_no_deposit", user=user_address)
            return None

        return AllocationRequest(
            user_address=user_address,
            amount=deposit,
            target_venue=self.venue_for(decision.risk_tier),
        )

    async def allocate_latest(
        self, user_address: str, store: StrategyStore
    ) -> TransactionReceipt | None:
        """Allocate the user's deposit per the latest decision for their chosen tier.

        The tier comes from the user's venue preference on the strategy
        manager. Returns None when there is nothing to allocate.

        Raises:
            UnknownVenue: The user's chosen venue is not a tier venue.
            LedgerUnavailable: Reading the preference or deposit failed.
            AllocationFailed: The transaction failed.
        """
        try:
            preferred = await self._ledger.get_user_strategy(user_address)
        except LedgerUnavailable:
            logger.error("user_strategy_lookup_failed", user=user_address)
            raise
        tier = self.tier_for(preferred)

        decision = await store.get(tier)
        request = await self.plan(user_address, decision)
        if request is None:
            logger.info("allocation_not_needed", user=user_address, tier=tier.value)
            return None

        return await self.allocate(request.user_address, request.amount, request.target_venue)
