"""Strategy decision store.

Holds the latest StrategyDecision per risk tier under ``strategy:{tier}``.
Last write wins; there is no history, versioning, or optimistic concurrency.
Each value is one JSON document produced by StrategyDecision.to_json().
"""

from yieldbot.config import StoreSettings
from yieldbot.logging import get_logger
from yieldbot.models import RiskTier, StrategyDecision
from yieldbot.storage.backend import KeyValueBackend
from yieldbot.storage.database import SqliteKeyValueBackend
from yieldbot.storage.file_backend import FileKeyValueBackend

logger = get_logger(__name__)


def build_backend(settings: StoreSettings) -> KeyValueBackend:
    """Construct the backend selected in settings. Called once at startup."""
    if settings.backend == "file":
        return FileKeyValueBackend(settings.file_dir)
    return SqliteKeyValueBackend(settings.db_path)


class StrategyStore:
    """Typed access to persisted decisions.

    Args:
        backend: Connected key-value backend. The caller owns its lifecycle.
    """

    def __init__(self, backend: KeyValueBackend) -> None:
        self._backend = backend

    @staticmethod
    def key_for(risk_tier: RiskTier) -> str:
        return f"strategy:{risk_tier.value}"

    async def get(self, risk_tier: RiskTier) -> StrategyDecision | None:
        """Return the latest decision for the tier, or None if none was stored."""
        raw = await self._backend.get(self.key_for(risk_tier))
        if raw is None:
            return None
        return StrategyDecision.from_json(raw)

    async def put(self, risk_tier: RiskTier, decision: StrategyDecision) -> None:
        """Replace the stored decision for the tier."""
        if decision.risk_tier != risk_tier:
            raise ValueError(
                f"Decision for tier {decision.risk_tier.value} cannot be stored under {risk_tier.value}"
            )
        key = self.key_for(risk_tier)
        await self._backend.set(key, decision.to_json())
        logger.info(
            "strategy_stored",
            key=key,
            timestamp=decision.timestamp,
            pool_id=decision.selected_pool.pool_id if decision.selected_pool else None,
        )
