"""Fatal error hierarchy for the payments ledger.

Expected account failures (frozen account, insufficient funds...) are not
exceptions; they are returned as ``ledger.AccountUpdateFailure`` values and
reported by the dispatcher. The classes below mark conditions after which
the process can no longer guarantee consistent state.
"""


class LedgerError(Exception):
    """Base exception for all fatal ledger errors."""


class ChannelClosedError(LedgerError):
    """Raised when the command channel is used after it was closed or aborted."""


class RegistryPoisonedError(LedgerError):
    """Raised when the account registry lock was released by a failing holder."""


class CommandStreamError(LedgerError):
    """Raised when the command source cannot be opened or parsed."""
