"""Tests for decision record serialization."""

import json
from decimal import Decimal

from yieldbot.models import PoolCandidate, RiskTier, StrategyDecision, TrendDirection


def _decision(pool: PoolCandidate | None = None) -> StrategyDecision:
    return StrategyDecision(
        timestamp=1_700_000_000_123,
        risk_tier=RiskTier.HIGH,
        trend=TrendDirection.DOWNTREND,
        selected_pool=pool,
    )


class TestStrategyDecisionSerialization:
    """StrategyDecision survives a JSON round trip unchanged."""

    def test_round_trip_preserves_every_field(self) -> None:
        pool = PoolCandidate(
            pool_id="747c1d2a",
            protocol="pendle",
            asset="USDC",
            apy=Decimal("12.3456789"),
            tvl=Decimal("1500000.5"),
            risk_score=75,
        )
        decision = _decision(pool)

        restored = StrategyDecision.from_json(decision.to_json())

        assert restored == decision
        assert restored.selected_pool.apy == Decimal("12.3456789")

    def test_round_trip_is_byte_stable(self) -> None:
        """Serializing a deserialized record reproduces the same document."""
        pool = PoolCandidate(pool_id="p", protocol="aave", asset="usdc", apy=Decimal("0.05"))
        raw = _decision(pool).to_json()

        assert StrategyDecision.from_json(raw).to_json() == raw

    def test_decimals_are_serialized_as_strings(self) -> None:
        pool = PoolCandidate(pool_id="p", protocol="aave", asset="usdc", apy=Decimal("4.10"))
        data = json.loads(_decision(pool).to_json())

        assert data["selected_pool"]["apy"] == "4.10"
        assert data["selected_pool"]["tvl"] is None
        assert data["risk_tier"] == "high"
        assert data["trend"] == "downtrend"

    def test_missing_pool_round_trips(self) -> None:
        decision = _decision(None)
        assert StrategyDecision.from_json(decision.to_json()) == decision
