"""Market data aggregator -- yield pool listings and reference price history.

Talks to two HTTP feeds:
- a DefiLlama-style yield feed: GET {yield_base_url}{pools_path} returning
  {"data": [{"pool", "project", "symbol", "apyBase", "tvlUsd", "status"?}, ...]}
- a CoinGecko-style price feed: GET {price_base_url}/coins/{id}/market_chart
  returning {"prices": [[timestamp_ms, price], ...]}

Every call hits the live feed (no caching) and is single-shot. Callers that
want retries wrap calls with ``with_retry``. Any transport failure, non-2xx
status, or undecodable body surfaces as UpstreamUnavailable so the cycle can
abort without using partial data.
"""

import asyncio
import random
from collections.abc import Awaitable, Callable
from decimal import Decimal, InvalidOperation
from typing import Any, TypeVar

import aiohttp

from yieldbot.config import FeedSettings
from yieldbot.exceptions import UpstreamUnavailable
from yieldbot.logging import get_logger
from yieldbot.models import PoolCandidate, PriceSample

logger = get_logger(__name__)

T = TypeVar("T")


def to_yield_decimal(raw: Any) -> Decimal | None:
    """Parse a feed number into a finite, non-negative Decimal.

    Returns None for missing, boolean, non-numeric, NaN/infinite, or negative
    values. Converts through str() so float inputs keep their short repr.
    """
    if raw is None or isinstance(raw, bool):
        return None
    try:
        value = Decimal(str(raw))
    except (InvalidOperation, ValueError):
        return None
    if not value.is_finite() or value < 0:
        return None
    return value


def parse_pool(
    raw: dict[str, Any],
    yield_field: str = "apyBase",
    require_active_status: bool = True,
) -> PoolCandidate | None:
    """Normalize one raw yield-feed pool, or return None if it is unusable."""
    if require_active_status and "status" in raw and raw["status"] != "active":
        return None

    pool_id = raw.get("pool")
    project = raw.get("project")
    symbol = raw.get("symbol")
    if not pool_id or not project or not symbol:
        return None

    apy = to_yield_decimal(raw.get(yield_field))
    if apy is None:
        return None

    return PoolCandidate(
        pool_id=str(pool_id),
        protocol=str(project).strip().lower(),
        asset=str(symbol),
        apy=apy,
        tvl=to_yield_decimal(raw.get("tvlUsd")),
    )


def parse_price_samples(raw_prices: Any) -> list[PriceSample]:
    """Parse [[timestamp, price], ...] pairs, dropping malformed entries.

    Output is sorted by timestamp ascending regardless of upstream order.
    """
    samples: list[PriceSample] = []
    if not isinstance(raw_prices, list):
        return samples

    for entry in raw_prices:
        if not isinstance(entry, (list, tuple)) or len(entry) < 2:
            continue
        price = to_yield_decimal(entry[1])
        if price is None:
            continue
        try:
            timestamp_ms = int(entry[0])
        except (TypeError, ValueError, OverflowError):
            continue
        samples.append(PriceSample(timestamp_ms=timestamp_ms, price=price))

    samples.sort(key=lambda s: s.timestamp_ms)
    return samples


class MarketDataAggregator:
    """Fetches and normalizes yield pools and price history.

    Args:
        settings: Feed endpoints and request parameters.
        session: aiohttp session owned by the caller. When omitted the
            aggregator creates its own on first use and closes it in close().
    """

    def __init__(
        self,
        settings: FeedSettings,
        session: aiohttp.ClientSession | None = None,
    ) -> None:
        self._settings = settings
        self._session = session
        self._owns_session = session is None

    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None:
            self._session = aiohttp.ClientSession(
                headers={"Accept": "application/json", "User-Agent": "YieldBot/1.0"},
            )
        return self._session

    async def close(self) -> None:
        """Close the HTTP session if this aggregator created it."""
        if self._owns_session and self._session is not None:
            await self._session.close()
            self._session = None

    async def _get_json(self, url: str, params: dict | None = None) -> Any:
        session = self._get_session()
        timeout = aiohttp.ClientTimeout(total=self._settings.request_timeout)
        try:
            async with session.get(url, params=params, timeout=timeout) as resp:
                if not 200 <= resp.status < 300:
                    raise UpstreamUnavailable(f"GET {url} returned HTTP {resp.status}")
                return await resp.json(content_type=None)
        except UpstreamUnavailable:
            raise
        except (aiohttp.ClientError, asyncio.TimeoutError, ValueError) as e:
            raise UpstreamUnavailable(f"GET {url} failed: {e}") from e

    async def fetch_pools(self) -> list[PoolCandidate]:
        """Fetch every pool from the yield feed as PoolCandidates.

        Pools with a missing, non-numeric, non-finite, or negative yield are
        dropped. Upstream ordering is preserved but nothing downstream relies
        on it.

        Raises:
            UpstreamUnavailable: Feed unreachable or returned a bad response.
        """
        url = f"{self._settings.yield_base_url.rstrip('/')}{self._settings.pools_path}"
        payload = await self._get_json(url)

        raw_pools = payload.get("data") if isinstance(payload, dict) else payload
        if not isinstance(raw_pools, list):
            raise UpstreamUnavailable(f"GET {url} returned no pool list")

        pools: list[PoolCandidate] = []
        for raw in raw_pools:
            if not isinstance(raw, dict):
                continue
            pool = parse_pool(
                raw,
                yield_field=self._settings.yield_field,
                require_active_status=self._settings.require_active_status,
            )
            if pool is not None:
                pools.append(pool)

        logger.debug("pools_fetched", received=len(raw_pools), usable=len(pools))
        return pools

    async def fetch_price_history(self, asset_id: str, days: int) -> list[PriceSample]:
        """Fetch USD price history for ``asset_id`` over the last ``days`` days.

        Returns samples ordered oldest first.

        Raises:
            UpstreamUnavailable: Feed unreachable or returned a bad response.
        """
        url = f"{self._settings.price_base_url.rstrip('/')}/coins/{asset_id}/market_chart"
        payload = await self._get_json(url, params={"vs_currency": "usd", "days": str(days)})

        if not isinstance(payload, dict) or "prices" not in payload:
            raise UpstreamUnavailable(f"GET {url} returned no price series")

        samples = parse_price_samples(payload["prices"])
        logger.debug("price_history_fetched", asset_id=asset_id, days=days, samples=len(samples))
        return samples


async def with_retry(
    fetch_fn: Callable[..., Awaitable[T]],
    *args: Any,
    max_attempts: int = 3,
    base_delay: float = 1.0,
    jitter: float = 0.5,
    **kwargs: Any,
) -> T:
    """Run a feed call, retrying UpstreamUnavailable with jittered exponential backoff.

    Delays are base_delay * 2**n plus uniform(0, jitter). Other exceptions
    propagate immediately. Re-raises the last UpstreamUnavailable once
    max_attempts is exhausted.
    """
    attempts = max(1, max_attempts)
    attempt = 0
    while True:
        attempt += 1
        try:
            return await fetch_fn(*args, **kwargs)
        except UpstreamUnavailable as e:
            if attempt >= attempts:
                logger.error("feed_failed_permanently", error=str(e), attempts=attempts)
                raise

            delay = base_delay * (2 ** (attempt - 1)) + random.uniform(0, jitter)
            logger.warning(
                "feed_retry",
                attempt=attempt,
                max_attempts=attempts,
                delay=round(delay, 3),
                error=str(e),
            )
            await asyncio.sleep(delay)
