"""Shared data models for the yield strategy agent.

CRITICAL: All yield, TVL, and price values use Decimal. Never use float for them.
Decimal fields are serialized as strings so a decision survives a JSON round
trip unchanged.
"""

import json
from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import Any


class RiskTier(str, Enum):
    """Coarse risk bucket for yield venues. Closed set."""

    LOW = "low"
    HIGH = "high"


class TrendDirection(str, Enum):
    """Reference asset trend classification."""

    UPTREND = "uptrend"
    DOWNTREND = "downtrend"


@dataclass(frozen=True)
class PoolCandidate:
    """One yield opportunity from the yield feed."""

    pool_id: str
    protocol: str  # lower-cased project name
    asset: str
    apy: Decimal  # annualized percentage as reported by the feed
    tvl: Decimal | None = None  # USD
    risk_score: int | None = None  # placeholder, see risk.classifier

    def to_dict(self) -> dict[str, Any]:
        return {
            "pool_id": self.pool_id,
            "protocol": self.protocol,
            "asset": self.asset,
            "apy": str(self.apy),
            "tvl": str(self.tvl) if self.tvl is not None else None,
            "risk_score": self.risk_score,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "PoolCandidate":
        tvl = data.get("tvl")
        return cls(
            pool_id=data["pool_id"],
            protocol=data["protocol"],
            asset=data["asset"],
            apy=Decimal(data["apy"]),
            tvl=Decimal(tvl) if tvl is not None else None,
            risk_score=data.get("risk_score"),
        )


@dataclass(frozen=True)
class PriceSample:
    """A single (timestamp, price) point from the price feed."""

    timestamp_ms: int
    price: Decimal


@dataclass(frozen=True)
class TrendSignal:
    """Trend of the reference asset over the lookback window."""

    direction: TrendDirection
    reference_asset: str
    window_days: int
    sampled_at: int  # Unix milliseconds of the latest sample


@dataclass(frozen=True)
class StrategyDecision:
    """The persisted outcome of one decision cycle for a risk tier.

    Superseded, never merged, by the next cycle's decision for the same tier.
    """

    timestamp: int  # Unix milliseconds
    risk_tier: RiskTier
    trend: TrendDirection
    selected_pool: PoolCandidate | None

    def to_dict(self) -> dict[str, Any]:
        return {
            "timestamp": self.timestamp,
            "risk_tier": self.risk_tier.value,
            "trend": self.trend.value,
            "selected_pool": (
                self.selected_pool.to_dict() if self.selected_pool is not None else None
            ),
        }

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), sort_keys=True)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "StrategyDecision":
        pool = data.get("selected_pool")
        return cls(
            timestamp=int(data["timestamp"]),
            risk_tier=RiskTier(data["risk_tier"]),
            trend=TrendDirection(data["trend"]),
            selected_pool=PoolCandidate.from_dict(pool) if pool is not None else None,
        )

    @classmethod
    def from_json(cls, raw: str) -> "StrategyDecision":
        return cls.from_dict(json.loads(raw))


@dataclass(frozen=True)
class AllocationRequest:
    """Ephemeral request to move a user's vault deposit to a venue."""

    user_address: str
    amount: int  # smallest-unit denomination
    target_venue: str


@dataclass(frozen=True)
class TransactionReceipt:
    """Confirmed ledger transaction."""

    tx_hash: str
    block_number: int
    status: int
    gas_used: int = 0
