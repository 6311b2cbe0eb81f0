"""Tests for protocol risk classification."""

from decimal import Decimal

import pytest

from yieldbot.models import PoolCandidate, RiskTier
from yieldbot.risk.classifier import RiskClassifier, TierRiskScorer, classify


class TestClassify:
    @pytest.mark.parametrize(
        "protocol, expected",
        [
            ("aave", RiskTier.LOW),
            ("AAVE", RiskTier.LOW),
            ("aave-v3", RiskTier.LOW),
            ("compound-v3", RiskTier.LOW),
            ("pendle", RiskTier.HIGH),
            ("uniswap-v3", RiskTier.HIGH),
        ],
    )
    def test_known_protocols(self, protocol: str, expected: RiskTier) -> None:
        assert classify(protocol) == expected

    @pytest.mark.parametrize("protocol", ["unknown-protocol", "", "   ", None])
    def test_unknown_returns_none(self, protocol) -> None:
        """Unknown protocols never default to a tier."""
        assert classify(protocol) is None

    def test_custom_table(self) -> None:
        table = {"morpho": RiskTier.HIGH}
        assert classify("morpho-blue", table) == RiskTier.HIGH
        assert classify("aave", table) is None


class TestRiskClassifier:
    def test_annotate_drops_unknown_and_scores_known(self) -> None:
        pools = [
            PoolCandidate(pool_id="1", protocol="aave", asset="usdc", apy=Decimal("1")),
            PoolCandidate(pool_id="2", protocol="mystery", asset="usdc", apy=Decimal("50")),
            PoolCandidate(pool_id="3", protocol="pendle", asset="usdc", apy=Decimal("9")),
        ]

        annotated = RiskClassifier().annotate(pools)

        assert [p.pool_id for p in annotated] == ["1", "3"]
        assert [p.risk_score for p in annotated] == [25, 75]

    def test_custom_scorer(self) -> None:
        classifier = RiskClassifier(scorer=TierRiskScorer({RiskTier.LOW: 1, RiskTier.HIGH: 99}))
        pool = PoolCandidate(pool_id="1", protocol="curve", asset="usdc", apy=Decimal("3"))

        assert classifier.annotate([pool])[0].risk_score == 99
