"""Abstract key-value backend interface.

StrategyStore depends only on this interface. The concrete backend is chosen
once at startup from StoreSettings.backend and injected; it is never swapped
per call.
"""

from abc import ABC, abstractmethod
from typing import Self


class KeyValueBackend(ABC):
    """String key to string value store with last-write-wins semantics."""

    @abstractmethod
    async def connect(self) -> None:
        """Acquire resources (open connections, create directories)."""
        ...

    @abstractmethod
    async def close(self) -> None:
        """Release resources."""
        ...

    @abstractmethod
    async def get(self, key: str) -> str | None:
        """Return the stored value, or None when the key is missing."""
        ...

    @abstractmethod
    async def set(self, key: str, value: str) -> None:
        """Store ``value`` under ``key``, replacing any previous value."""
        ...

    async def __aenter__(self) -> Self:
        await self.connect()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:  # type: ignore[no-untyped-def]
        await self.close()
