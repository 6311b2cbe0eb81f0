"""Tests for the strategy agent.

Tests verify:
- A cycle stores the best pool for the tier, and the next cycle replaces it
- No eligible pool keeps the previous decision
- Feed failures and short price history abort before anything is written
- run_all isolates tier failures
- start/stop loop lifecycle and get_status structure
"""

import asyncio
from decimal import Decimal
from unittest.mock import AsyncMock, patch

import pytest

from yieldbot.exceptions import InsufficientHistory, UpstreamUnavailable
from yieldbot.execution.allocator import AllocationExecutor
from yieldbot.market_data.aggregator import MarketDataAggregator
from yieldbot.models import PoolCandidate, PriceSample, RiskTier, TrendDirection
from yieldbot.orchestrator import StrategyAgent
from yieldbot.risk.classifier import RiskClassifier
from yieldbot.signals.trend import TrendDetector
from yieldbot.storage.file_backend import FileKeyValueBackend
from yieldbot.storage.store import StrategyStore
from yieldbot.strategy.selector import StrategySelector


def _pool(pool_id: str, protocol: str, apy: str) -> PoolCandidate:
    return PoolCandidate(pool_id=pool_id, protocol=protocol, asset="usdc", apy=Decimal(apy))


@pytest.fixture
def aggregator(rising_prices, scenario_pools) -> AsyncMock:
    mock = AsyncMock(spec=MarketDataAggregator)
    mock.fetch_price_history.return_value = rising_prices
    mock.fetch_pools.return_value = scenario_pools
    return mock


@pytest.fixture
def store(tmp_path) -> StrategyStore:
    return StrategyStore(FileKeyValueBackend(str(tmp_path)))


@pytest.fixture
def agent(mock_settings, aggregator, store) -> StrategyAgent:
    classifier = RiskClassifier()
    return StrategyAgent(
        settings=mock_settings,
        aggregator=aggregator,
        classifier=classifier,
        trend_detector=TrendDetector(aggregator),
        selector=StrategySelector(classifier, mock_settings.strategy.target_asset),
        store=store,
    )


class TestRunCycle:
    @pytest.mark.asyncio
    async def test_stores_best_pool_per_tier(self, agent, store) -> None:
        low = await agent.run_cycle(RiskTier.LOW)
        high = await agent.run_cycle(RiskTier.HIGH)

        assert low.selected_pool.pool_id == "aave-2"
        assert high.selected_pool.pool_id == "pendle-1"
        assert low.trend == TrendDirection.UPTREND
        assert await store.get(RiskTier.LOW) == low
        assert await store.get(RiskTier.HIGH) == high

    @pytest.mark.asyncio
    async def test_second_cycle_replaces_first(self, agent, aggregator, store) -> None:
        aggregator.fetch_pools.side_effect = [
            [_pool("first", "aave", "3")],
            [_pool("second", "compound", "4")],
        ]

        await agent.run_cycle(RiskTier.LOW)
        await agent.run_cycle(RiskTier.LOW)

        assert (await store.get(RiskTier.LOW)).selected_pool.pool_id == "second"

    @pytest.mark.asyncio
    async def test_no_eligible_pool_keeps_previous(self, agent, aggregator, store) -> None:
        aggregator.fetch_pools.side_effect = [
            [_pool("kept", "aave", "3")],
            [_pool("unknown", "mystery", "90"), _pool("zero", "aave", "0")],
        ]

        await agent.run_cycle(RiskTier.LOW)
        result = await agent.run_cycle(RiskTier.LOW)

        assert result is None
        assert (await store.get(RiskTier.LOW)).selected_pool.pool_id == "kept"
        assert agent.get_status()["last_outcomes"]["low"]["outcome"] == "no_eligible_pool"

    @pytest.mark.asyncio
    async def test_pool_feed_failure_writes_nothing(self, agent, aggregator, store) -> None:
        aggregator.fetch_pools.side_effect = UpstreamUnavailable("yield feed down")

        with pytest.raises(UpstreamUnavailable):
            await agent.run_cycle(RiskTier.LOW)

        assert await store.get(RiskTier.LOW) is None
        assert agent.get_status()["last_outcomes"]["low"]["outcome"] == "failed"

    @pytest.mark.asyncio
    async def test_short_history_aborts_before_fetching_pools(self, agent, aggregator, store) -> None:
        aggregator.fetch_price_history.return_value = [
            PriceSample(timestamp_ms=i, price=Decimal("1")) for i in range(5)
        ]

        with pytest.raises(InsufficientHistory):
            await agent.run_cycle(RiskTier.HIGH)

        aggregator.fetch_pools.assert_not_awaited()
        assert await store.get(RiskTier.HIGH) is None


class TestRunAll:
    @pytest.mark.asyncio
    async def test_runs_every_configured_tier(self, agent) -> None:
        decisions = await agent.run_all()

        assert decisions[RiskTier.LOW].selected_pool.pool_id == "aave-2"
        assert decisions[RiskTier.HIGH].selected_pool.pool_id == "pendle-1"
        assert agent.get_status()["cycles_run"] == 2

    @pytest.mark.asyncio
    async def test_failure_in_one_tier_does_not_affect_other(self, agent, store) -> None:
        original = agent._cycle

        async def flaky_cycle(tier):
            if tier == RiskTier.HIGH:
                raise UpstreamUnavailable("down")
            return await original(tier)

        with patch.object(agent, "_cycle", side_effect=flaky_cycle):
            decisions = await agent.run_all()

        assert decisions[RiskTier.HIGH] is None
        assert decisions[RiskTier.LOW] is not None
        assert await store.get(RiskTier.LOW) is not None


class TestLifecycle:
    @pytest.mark.asyncio
    async def test_start_and_stop(self, agent, aggregator) -> None:
        task = asyncio.create_task(agent.start())
        for _ in range(50):
            if aggregator.fetch_pools.await_count >= 2:
                break
            await asyncio.sleep(0.01)

        assert agent.is_running is True
        await agent.stop()
        await asyncio.wait_for(task, timeout=2)

        assert agent.is_running is False
        assert aggregator.fetch_pools.await_count >= 2

    @pytest.mark.asyncio
    async def test_loop_survives_cycle_errors(self, agent, aggregator) -> None:
        aggregator.fetch_pools.side_effect = UpstreamUnavailable("down")

        task = asyncio.create_task(agent.start())
        await asyncio.sleep(0.05)
        await agent.stop()
        await asyncio.wait_for(task, timeout=2)

        assert agent.get_status()["last_outcomes"]["low"]["outcome"] == "failed"

    def test_get_status_structure(self, agent) -> None:
        status = agent.get_status()

        assert status["running"] is False
        assert status["tiers"] == ["low", "high"]
        assert status["cycle_interval"] == 1
        assert status["cycles_run"] == 0
        assert status["allocation_enabled"] is False
        assert status["last_outcomes"] == {}

    @pytest.mark.asyncio
    async def test_allocate_without_ledger_raises(self, agent) -> None:
        with pytest.raises(RuntimeError):
            await agent.allocate_for_user("0xabc")

    @pytest.mark.asyncio
    async def test_set_preference_without_ledger_raises(self, agent) -> None:
        with pytest.raises(RuntimeError):
            await agent.set_preference(RiskTier.LOW)


class TestAllocationDelegation:
    """With an executor, user actions go through it against the agent's store."""

    @pytest.mark.asyncio
    async def test_allocate_for_user_uses_store(self, agent, store) -> None:
        executor = AsyncMock(spec=AllocationExecutor)
        executor.allocate_latest.return_value = None
        agent._executor = executor

        assert await agent.allocate_for_user("0xabc") is None
        executor.allocate_latest.assert_awaited_once_with("0xabc", store)
        assert agent.get_status()["allocation_enabled"] is True

    @pytest.mark.asyncio
    async def test_set_preference_delegates(self, agent) -> None:
        executor = AsyncMock(spec=AllocationExecutor)
        agent._executor = executor

        await agent.set_preference(RiskTier.HIGH)

        executor.set_preference.assert_awaited_once_with(RiskTier.HIGH)
