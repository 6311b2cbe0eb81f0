"""Shared test fixtures for the yield strategy agent."""

from decimal import Decimal

import pytest

from yieldbot.config import AppSettings, FeedSettings, LedgerSettings, StrategySettings
from yieldbot.models import PoolCandidate, PriceSample

LOW_VENUE = "0x1111111111111111111111111111111111111111"
HIGH_VENUE = "0x2222222222222222222222222222222222222222"
USER = "0x3333333333333333333333333333333333333333"


@pytest.fixture
def mock_settings() -> AppSettings:
    """Return AppSettings with test defaults (single-shot feeds, no retry delay)."""
    return AppSettings(
        log_level="DEBUG",
        feed=FeedSettings(max_attempts=1, retry_base_delay=0.0, retry_jitter=0.0),
        strategy=StrategySettings(target_asset="usdc", lookback_days=25, cycle_interval=1),
        ledger=LedgerSettings(low_risk_venue=LOW_VENUE, high_risk_venue=HIGH_VENUE),
    )


@pytest.fixture
def scenario_pools() -> list[PoolCandidate]:
    """Two aave usdc pools and one pendle usdc pool."""
    return [
        PoolCandidate(pool_id="aave-1", protocol="aave", asset="usdc", apy=Decimal("0.03")),
        PoolCandidate(pool_id="aave-2", protocol="aave", asset="usdc", apy=Decimal("0.05")),
        PoolCandidate(pool_id="pendle-1", protocol="pendle", asset="usdc", apy=Decimal("0.20")),
    ]


def make_prices(values: list[str], start_ms: int = 1_700_000_000_000) -> list[PriceSample]:
    """Build daily PriceSamples (oldest first) from string prices."""
    day_ms = 86_400_000
    return [
        PriceSample(timestamp_ms=start_ms + i * day_ms, price=Decimal(v))
        for i, v in enumerate(values)
    ]


@pytest.fixture
def rising_prices() -> list[PriceSample]:
    return make_prices([f"1.00{i}" for i in range(10)])


@pytest.fixture
def falling_prices() -> list[PriceSample]:
    return make_prices([f"1.00{9 - i}" for i in range(10)])
