"""Abstract ledger client interface.

Defines the narrow contract surface the agent consumes from the on-chain
vault and strategy manager. Allocation code depends only on this interface,
keeping web3 details isolated in the concrete implementation.
"""

from abc import ABC, abstractmethod

from yieldbot.models import TransactionReceipt


class LedgerClient(ABC):
    """Abstract base class for vault / strategy-manager clients."""

    @abstractmethod
    async def close(self) -> None:
        """Release provider resources."""
        ...

    @abstractmethod
    async def user_deposits(self, user_address: str) -> int:
        """Return the user's vault deposit in the token's smallest unit.

        Raises:
            LedgerUnavailable: The read call failed.
        """
        ...

    @abstractmethod
    async def allocate_funds(
        self, user_address: str, amount: int, venue: str
    ) -> TransactionReceipt:
        """Submit vault.allocateFunds and block until one confirmation.

        Raises whatever the transport raises; TransactionReverted when the
        transaction is mined with a failure status. No retries.
        """
        ...

    @abstractmethod
    async def set_user_strategy(self, venue: str) -> TransactionReceipt:
        """Submit strategyManager.setUserStrategy for the signing account."""
        ...

    @abstractmethod
    async def get_user_strategy(self, user_address: str) -> str:
        """Return the venue address the user has chosen.

        Raises:
            LedgerUnavailable: The read call failed.
        """
        ...
