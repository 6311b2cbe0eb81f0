"""Custom exceptions for the yield strategy agent.

All feed, trend, and allocation exceptions live here to avoid circular
imports between modules. "No eligible pool" is deliberately not an
exception: selectors return None for it.
"""


class YieldBotError(Exception):
    """Base exception for all agent errors."""


class UpstreamUnavailable(YieldBotError):
    """Raised when a yield or price feed is unreachable or returns a bad response."""


class InsufficientHistory(YieldBotError):
    """Raised when a price series is too short for trend detection."""


class UnknownVenue(YieldBotError):
    """Raised when an allocation targets a venue that is not a configured tier venue."""


class InvalidAllocation(YieldBotError):
    """Raised when an allocation request fails a precondition (e.g. amount <= 0)."""


class LedgerUnavailable(YieldBotError):
    """Raised when a ledger read, or a preference update, fails before confirmation."""


class TransactionReverted(YieldBotError):
    """Raised when a submitted transaction is mined with a failure status."""


class AllocationFailed(YieldBotError):
    """Raised when the allocation transaction fails, reverts, or is never confirmed.

    The underlying error is chained as ``__cause__`` and kept on ``cause``.
    """

    def __init__(self, message: str, cause: BaseException | None = None) -> None:
        super().__init__(message)
        self.cause = cause
