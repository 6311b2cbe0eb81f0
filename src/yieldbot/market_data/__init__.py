"""Market data layer -- yield pool listings, price history, and feed retries."""

from yieldbot.market_data.aggregator import (
    MarketDataAggregator,
    parse_pool,
    parse_price_samples,
    with_retry,
)

__all__ = ["MarketDataAggregator", "parse_pool", "parse_price_samples", "with_retry"]
