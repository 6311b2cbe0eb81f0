"""Strategy agent -- runs the periodic decision cycle per risk tier.

Each decision cycle for a tier:
  1. TREND: Fetch reference asset history and compute the trend signal
  2. FETCH: Pull every pool from the yield feed
  3. CLASSIFY: Annotate pools with risk tier scores, drop unknown protocols
  4. SELECT: Rank eligible pools for the tier, pick the best
  5. PERSIST: Store the decision under strategy:{tier} (skipped if no pool)

Feed failures (UpstreamUnavailable) and short price history
(InsufficientHistory) abort the cycle before anything is written. The
periodic loop catches every cycle failure, logs it, and keeps running, so
one bad cycle never stops the next.

Cycles for the same tier never overlap (per-tier lock); different tiers run
concurrently since fetching and selection are read-only.
"""

from __future__ import annotations

import asyncio
import time
import uuid

import structlog

from yieldbot.config import AppSettings
from yieldbot.execution.allocator import AllocationExecutor
from yieldbot.logging import get_logger
from yieldbot.market_data.aggregator import MarketDataAggregator, with_retry
from yieldbot.models import RiskTier, StrategyDecision, TransactionReceipt
from yieldbot.risk.classifier import RiskClassifier
from yieldbot.signals.trend import TrendDetector
from yieldbot.storage.store import StrategyStore
from yieldbot.strategy.selector import StrategySelector

logger = get_logger(__name__)


class StrategyAgent:
    """Periodic fetch -> classify -> select -> persist loop.

    Args:
        settings: Application-wide settings.
        aggregator: Yield and price feed client.
        classifier: Protocol risk classifier.
        trend_detector: Reference asset trend signal.
        selector: Pool ranking and decision assembly.
        store: Latest-decision store.
        executor: Allocation executor, None when no ledger is configured.
    """

    def __init__(
        self,
        settings: AppSettings,
        aggregator: MarketDataAggregator,
        classifier: RiskClassifier,
        trend_detector: TrendDetector,
        selector: StrategySelector,
        store: StrategyStore,
        executor: AllocationExecutor | None = None,
    ) -> None:
        self._settings = settings
        self._aggregator = aggregator
        self._classifier = classifier
        self._trend_detector = trend_detector
        self._selector = selector
        self._store = store
        self._executor = executor
        self._running = False
        self._stop_event = asyncio.Event()
        self._tier_locks: dict[RiskTier, asyncio.Lock] = {tier: asyncio.Lock() for tier in RiskTier}
        self._last_outcomes: dict[RiskTier, dict] = {}
        self._cycles_run = 0

    async def start(self) -> None:
        """Run decision cycles for every configured tier at a fixed interval until stop()."""
        logger.info(
            "strategy_agent_starting",
            tiers=[t.value for t in self._settings.strategy.tiers],
            interval=self._settings.strategy.cycle_interval,
        )
        self._running = True
        self._stop_event.clear()
        try:
            await self._run_loop()
        finally:
            self._running = False
            logger.info("strategy_agent_stopped")

    async def stop(self) -> None:
        """Signal the loop to stop after the current cycle."""
        logger.info("strategy_agent_stopping")
        self._running = False
        self._stop_event.set()

    async def _run_loop(self) -> None:
        while self._running:
            try:
                await self.run_all()
            except asyncio.CancelledError:
                break
            except Exception as e:
                logger.error("strategy_loop_error", error=str(e), exc_info=True)

            try:
                await asyncio.wait_for(
                    self._stop_event.wait(),
                    timeout=self._settings.strategy.cycle_interval,
                )
            except asyncio.TimeoutError:
                pass

    async def run_all(self) -> dict[RiskTier, StrategyDecision | None]:
        """Run one isolated cycle per configured tier, concurrently.

        Failures are logged per tier and reported as None; they never raise.
        """
        tiers = list(dict.fromkeys(self._settings.strategy.tiers))
        results = await asyncio.gather(
            *(self.run_cycle(tier) for tier in tiers),
            return_exceptions=True,
        )

        decisions: dict[RiskTier, StrategyDecision | None] = {}
        for tier, result in zip(tiers, results):
            if isinstance(result, BaseException):
                if isinstance(result, asyncio.CancelledError):
                    raise result
                decisions[tier] = None
            else:
                decisions[tier] = result
        return decisions

    async def run_cycle(self, tier: RiskTier) -> StrategyDecision | None:
        """Execute one decision cycle for ``tier``.

        Returns the stored decision, or None when no pool qualified (the
        previously stored decision is kept).

        Raises:
            UpstreamUnavailable: A feed failed after retries. Nothing is written.
            InsufficientHistory: Too few price samples. Nothing is written.
        """
        cycle_id = uuid.uuid4().hex[:12]
        async with self._tier_locks[tier]:
            with structlog.contextvars.bound_contextvars(cycle_id=cycle_id, tier=tier.value):
                started = time.monotonic()
                try:
                    decision = await self._cycle(tier)
                except Exception as e:
                    self._record(tier, cycle_id, "failed", error=str(e))
                    logger.error(
                        "strategy_cycle_finished",
                        outcome="failed",
                        error=str(e),
                        error_type=type(e).__name__,
                        elapsed=round(time.monotonic() - started, 3),
                        exc_info=True,
                    )
                    raise

                outcome = "stored" if decision is not None else "no_eligible_pool"
                self._record(tier, cycle_id, outcome)
                log = logger.info if decision is not None else logger.warning
                log(
                    "strategy_cycle_finished",
                    outcome=outcome,
                    elapsed=round(time.monotonic() - started, 3),
                )
                return decision

    async def _cycle(self, tier: RiskTier) -> StrategyDecision | None:
        feed = self._settings.feed
        strategy = self._settings.strategy
        retry_kwargs = {
            "max_attempts": feed.max_attempts,
            "base_delay": feed.retry_base_delay,
            "jitter": feed.retry_jitter,
        }

        # 1. TREND
        trend = await with_retry(
            self._trend_detector.detect,
            strategy.reference_asset_id,
            strategy.lookback_days,
            **retry_kwargs,
        )

        # 2. FETCH
        pools = await with_retry(self._aggregator.fetch_pools, **retry_kwargs)

        # 3. CLASSIFY
        classified = self._classifier.annotate(pools)

        # 4. SELECT
        best = self._selector.select_best(tier, classified)
        decision = self._selector.build_decision(tier, trend.direction, best)
        if decision is None:
            logger.warning(
                "no_eligible_pool",
                pools=len(pools),
                classified=len(classified),
                target_asset=self._selector.target_asset,
            )
            return None

        logger.info(
            "strategy_selected",
            trend=trend.direction.value,
            pool_id=best.pool_id,
            protocol=best.protocol,
            apy=str(best.apy),
        )

        # 5. PERSIST
        await self._store.put(tier, decision)
        return decision

    def _record(self, tier: RiskTier, cycle_id: str, outcome: str, error: str | None = None) -> None:
        self._cycles_run += 1
        self._last_outcomes[tier] = {
            "cycle_id": cycle_id,
            "outcome": outcome,
            "error": error,
            "finished_at": int(time.time() * 1000),
        }

    async def get_decision(self, tier: RiskTier) -> StrategyDecision | None:
        """Return the latest persisted decision for a tier."""
        return await self._store.get(tier)

    async def allocate_for_user(self, user_address: str) -> TransactionReceipt | None:
        """Allocate the user's deposit following the latest decision for their tier.

        Raises:
            RuntimeError: No ledger is configured.
        """
        if self._executor is None:
            raise RuntimeError("Allocation is unavailable: ledger is not configured")
        return await self._executor.allocate_latest(user_address, self._store)

    async def set_preference(self, tier: RiskTier) -> TransactionReceipt:
        """Point the signing account's strategy-manager preference at the tier's venue.

        Raises:
            RuntimeError: No ledger is configured.
        """
        if self._executor is None:
            raise RuntimeError("Preference update is unavailable: ledger is not configured")
        return await self._executor.set_preference(tier)

    @property
    def executor(self) -> AllocationExecutor | None:
        return self._executor

    @property
    def is_running(self) -> bool:
        return self._running

    def get_status(self) -> dict:
        """Return loop state and the last cycle outcome per tier."""
        return {
            "running": self._running,
            "tiers": [t.value for t in self._settings.strategy.tiers],
            "cycle_interval": self._settings.strategy.cycle_interval,
            "cycles_run": self._cycles_run,
            "allocation_enabled": self._executor is not None,
            "last_outcomes": {t.value: o for t, o in self._last_outcomes.items()},
        }
