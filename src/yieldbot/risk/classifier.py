"""Protocol risk classification.

Maps a pool's originating project name to a RiskTier through a static table.
Matching is loose on purpose: the name is lower-cased, an exact key match is
tried first, then any known identifier contained in the name wins (so
"aave-v3" classifies as "aave"). Unknown protocols are never defaulted to a
tier; they are excluded from ranking.

Risk scores are a placeholder extension point. TierRiskScorer assigns a fixed
number per tier; a real scoring model plugs in by implementing RiskScorer.
"""

from abc import ABC, abstractmethod
from collections.abc import Iterable, Mapping
from dataclasses import replace

from yieldbot.logging import get_logger
from yieldbot.models import PoolCandidate, RiskTier

logger = get_logger(__name__)

PROTOCOL_RISK_TABLE: dict[str, RiskTier] = {
    "aave": RiskTier.LOW,
    "compound": RiskTier.LOW,
    "lido": RiskTier.LOW,
    "makerdao": RiskTier.LOW,
    "spark": RiskTier.LOW,
    "pendle": RiskTier.HIGH,
    "uniswap": RiskTier.HIGH,
    "aerodrome": RiskTier.HIGH,
    "curve": RiskTier.HIGH,
}


def classify(
    protocol: str | None,
    table: Mapping[str, RiskTier] = PROTOCOL_RISK_TABLE,
) -> RiskTier | None:
    """Return the risk tier for a protocol name, or None if it is unknown."""
    if not protocol:
        return None

    name = protocol.strip().lower()
    if not name:
        return None

    tier = table.get(name)
    if tier is not None:
        return tier

    for known, known_tier in table.items():
        if known in name:
            return known_tier
    return None


class RiskScorer(ABC):
    """Assigns a numeric risk score (0-100) to a classified pool."""

    @abstractmethod
    def score(self, pool: PoolCandidate, tier: RiskTier) -> int:
        ...


class TierRiskScorer(RiskScorer):
    """Placeholder scorer: one fixed score per tier."""

    def __init__(self, scores: Mapping[RiskTier, int] | None = None) -> None:
        self._scores = dict(scores or {RiskTier.LOW: 25, RiskTier.HIGH: 75})

    def score(self, pool: PoolCandidate, tier: RiskTier) -> int:
        return self._scores[tier]


class RiskClassifier:
    """Classifies protocols and annotates pools with risk scores.

    Args:
        table: Protocol name to tier mapping (defaults to PROTOCOL_RISK_TABLE).
        scorer: Risk score provider (defaults to TierRiskScorer).
    """

    def __init__(
        self,
        table: Mapping[str, RiskTier] | None = None,
        scorer: RiskScorer | None = None,
    ) -> None:
        self._table = dict(table if table is not None else PROTOCOL_RISK_TABLE)
        self._scorer = scorer or TierRiskScorer()

    def classify(self, protocol: str | None) -> RiskTier | None:
        return classify(protocol, self._table)

    def annotate(self, pools: Iterable[PoolCandidate]) -> list[PoolCandidate]:
        """Return the classified pools with risk_score filled, in input order.

        Unclassified pools are dropped.
        """
        annotated: list[PoolCandidate] = []
        dropped = 0
        for pool in pools:
            tier = self.classify(pool.protocol)
            if tier is None:
                dropped += 1
                continue
            annotated.append(replace(pool, risk_score=self._scorer.score(pool, tier)))

        logger.debug("pools_classified", classified=len(annotated), unclassified=dropped)
        return annotated
