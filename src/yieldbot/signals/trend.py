"""Reference asset trend detection.

A fixed three-point comparison over the lookback window, not a regression or
moving average:

    current = prices[-1]
    day7    = prices[len - 8]   (seven samples before the latest)
    day25   = prices[0]         (start of the window)
    downtrend  <=>  current < day7 and current < day25

At least 8 samples are required; shorter series raise InsufficientHistory
rather than degrading to a default signal.

CRITICAL: All comparisons use Decimal. Never use float.
"""

from collections.abc import Sequence
from decimal import Decimal

from yieldbot.exceptions import InsufficientHistory
from yieldbot.logging import get_logger
from yieldbot.market_data.aggregator import MarketDataAggregator
from yieldbot.models import TrendDirection, TrendSignal

logger = get_logger(__name__)

#: Minimum samples for the three-point comparison (latest + 7 back).
MIN_SAMPLES = 8


def is_downtrend(prices: Sequence[Decimal]) -> bool:
    """Classify an oldest-first price series as downtrending or not.

    Args:
        prices: Prices ordered oldest first.

    Returns:
        True iff the latest price is below both the price seven samples
        earlier and the first price of the window.

    Raises:
        InsufficientHistory: Fewer than 8 prices.
    """
    if len(prices) < MIN_SAMPLES:
        raise InsufficientHistory(
            f"Need at least {MIN_SAMPLES} price samples for trend detection, got {len(prices)}"
        )

    current = prices[-1]
    day7 = prices[len(prices) - 8]
    day25 = prices[0]
    return current < day7 and current < day25


class TrendDetector:
    """Computes the trend signal for a reference asset from the price feed.

    Args:
        aggregator: Source of price history.
    """

    def __init__(self, aggregator: MarketDataAggregator) -> None:
        self._aggregator = aggregator

    async def is_downtrend(self, asset_id: str, window_days: int) -> bool:
        """Fetch ``window_days`` of history for ``asset_id`` and classify it."""
        signal = await self.detect(asset_id, window_days)
        return signal.direction == TrendDirection.DOWNTREND

    async def detect(self, asset_id: str, window_days: int) -> TrendSignal:
        """Fetch history and return the full TrendSignal.

        Raises:
            UpstreamUnavailable: Price feed failed.
            InsufficientHistory: Fewer than 8 samples in the window.
        """
        samples = await self._aggregator.fetch_price_history(asset_id, window_days)
        downtrend = is_downtrend([s.price for s in samples])

        direction = TrendDirection.DOWNTREND if downtrend else TrendDirection.UPTREND
        signal = TrendSignal(
            direction=direction,
            reference_asset=asset_id,
            window_days=window_days,
            sampled_at=samples[-1].timestamp_ms,
        )
        logger.info(
            "trend_detected",
            asset_id=asset_id,
            direction=direction.value,
            samples=len(samples),
        )
        return signal
