"""Tests for reference asset trend detection.

All test values use Decimal (project convention). The rule compares the
latest price with the price seven samples earlier and the first price.
"""

from decimal import Decimal
from unittest.mock import AsyncMock

import pytest

from yieldbot.exceptions import InsufficientHistory, UpstreamUnavailable
from yieldbot.market_data.aggregator import MarketDataAggregator
from yieldbot.models import PriceSample, TrendDirection
from yieldbot.signals.trend import MIN_SAMPLES, TrendDetector, is_downtrend


def _d(values: list[str]) -> list[Decimal]:
    return [Decimal(v) for v in values]


class TestIsDowntrend:
    def test_strictly_increasing_is_not_downtrend(self) -> None:
        assert is_downtrend(_d([str(i) for i in range(1, 26)])) is False

    def test_strictly_decreasing_is_downtrend(self) -> None:
        assert is_downtrend(_d([str(i) for i in range(25, 0, -1)])) is True

    def test_seven_samples_raise(self) -> None:
        with pytest.raises(InsufficientHistory):
            is_downtrend(_d(["1"] * 7))

    def test_exactly_min_samples_compares_first_element_twice(self) -> None:
        """With 8 samples, day7 and day25 are both prices[0]."""
        assert MIN_SAMPLES == 8
        assert is_downtrend(_d(["2", "5", "5", "5", "5", "5", "5", "1"])) is True
        assert is_downtrend(_d(["1", "5", "5", "5", "5", "5", "5", "2"])) is False

    def test_uses_sample_seven_before_latest(self) -> None:
        # len 10 -> day7 index 2, day25 index 0
        prices = _d(["3", "9", "1", "9", "9", "9", "9", "9", "9", "2"])
        assert is_downtrend(prices) is False  # 2 is not below prices[2] == 1

        prices = _d(["3", "1", "5", "1", "1", "1", "1", "1", "1", "2"])
        assert is_downtrend(prices) is True  # 2 < 5 and 2 < 3

    def test_equal_prices_are_not_downtrend(self) -> None:
        assert is_downtrend(_d(["1"] * 10)) is False


class TestTrendDetector:
    @pytest.mark.asyncio
    async def test_detect_downtrend(self, falling_prices) -> None:
        aggregator = AsyncMock(spec=MarketDataAggregator)
        aggregator.fetch_price_history.return_value = falling_prices

        signal = await TrendDetector(aggregator).detect("usd-coin", 25)

        aggregator.fetch_price_history.assert_awaited_once_with("usd-coin", 25)
        assert signal.direction == TrendDirection.DOWNTREND
        assert signal.reference_asset == "usd-coin"
        assert signal.window_days == 25
        assert signal.sampled_at == falling_prices[-1].timestamp_ms

    @pytest.mark.asyncio
    async def test_is_downtrend_false_for_rising(self, rising_prices) -> None:
        aggregator = AsyncMock(spec=MarketDataAggregator)
        aggregator.fetch_price_history.return_value = rising_prices

        assert await TrendDetector(aggregator).is_downtrend("usd-coin", 25) is False

    @pytest.mark.asyncio
    async def test_short_history_raises(self) -> None:
        aggregator = AsyncMock(spec=MarketDataAggregator)
        aggregator.fetch_price_history.return_value = [
            PriceSample(timestamp_ms=i, price=Decimal("1.0")) for i in range(3)
        ]

        with pytest.raises(InsufficientHistory):
            await TrendDetector(aggregator).detect("usd-coin", 25)

    @pytest.mark.asyncio
    async def test_feed_failure_propagates(self) -> None:
        aggregator = AsyncMock(spec=MarketDataAggregator)
        aggregator.fetch_price_history.side_effect = UpstreamUnavailable("down")

        with pytest.raises(UpstreamUnavailable):
            await TrendDetector(aggregator).detect("usd-coin", 25)
