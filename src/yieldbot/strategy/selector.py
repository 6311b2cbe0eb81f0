"""Strategy selector -- picks the single best pool for a risk tier.

Filtering pipeline, in order:
  1. protocol classifies to the requested tier
  2. asset matches the target asset (case-insensitive, exact)
  3. yield is finite and strictly positive

Ranking is a stable descending sort on apy, so ties go to the candidate seen
first. There is no secondary tie-break on TVL or risk score.
"""

import time
from collections.abc import Iterable

from yieldbot.logging import get_logger
from yieldbot.models import PoolCandidate, RiskTier, StrategyDecision, TrendDirection
from yieldbot.risk.classifier import RiskClassifier

logger = get_logger(__name__)


class StrategySelector:
    """Ranks classified pools and assembles decision records.

    Args:
        classifier: Protocol risk classifier.
        target_asset: Asset symbol every selected pool must hold (e.g. "usdc").
    """

    def __init__(self, classifier: RiskClassifier, target_asset: str) -> None:
        self._classifier = classifier
        self._target_asset = target_asset.strip().lower()

    @property
    def target_asset(self) -> str:
        return self._target_asset

    def eligible(self, risk_tier: RiskTier, candidates: Iterable[PoolCandidate]) -> list[PoolCandidate]:
        """Apply the three filters, keeping input order."""
        return [
            pool
            for pool in candidates
            if self._classifier.classify(pool.protocol) == risk_tier
            and pool.asset.strip().lower() == self._target_asset
            and pool.apy.is_finite()
            and pool.apy > 0
        ]

    def select_best(
        self, risk_tier: RiskTier, candidates: Iterable[PoolCandidate]
    ) -> PoolCandidate | None:
        """Return the highest-apy eligible pool for ``risk_tier``, or None.

        None is a valid outcome (no eligible pool), not an error.
        """
        ranked = sorted(self.eligible(risk_tier, candidates), key=lambda p: p.apy, reverse=True)
        if not ranked:
            return None

        best = ranked[0]
        logger.debug(
            "best_pool_selected",
            tier=risk_tier.value,
            eligible=len(ranked),
            pool_id=best.pool_id,
            protocol=best.protocol,
            apy=str(best.apy),
        )
        return best

    def build_decision(
        self,
        risk_tier: RiskTier,
        trend: TrendDirection,
        best: PoolCandidate | None,
    ) -> StrategyDecision | None:
        """Stamp a StrategyDecision with the current time.

        Returns None when there is no selected pool; nothing should be
        persisted for that cycle.
        """
        if best is None:
            return None
        return StrategyDecision(
            timestamp=int(time.time() * 1000),
            risk_tier=risk_tier,
            trend=trend,
            selected_pool=best,
        )
