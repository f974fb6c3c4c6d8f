"""Per-client account state and the rules that mutate it.

An account knows nothing about other accounts, the command stream or
locking. Every mutating operation returns ``None`` on success or an
``AccountUpdateFailure`` describing why the account was left untouched.
"""

from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import Dict, Optional


class AccountUpdateFailure(str, Enum):
    frozen = "frozen"
    duplicate_deposit = "duplicate_deposit"
    transaction_not_found = "transaction_not_found"
    transaction_not_disputed = "transaction_not_disputed"
    redundant_dispute = "redundant_dispute"
    insufficient_funds = "insufficient_funds"
    # Raised by the dispatcher, never by an Account
    malformed_command = "malformed_command"
    unknown_client = "unknown_client"

    @property
    def reason(self) -> str:
        return _REASONS[self]


_REASONS = {
    AccountUpdateFailure.frozen: "their account is frozen",
    AccountUpdateFailure.duplicate_deposit: "the deposit tx id is a duplicate",
    AccountUpdateFailure.transaction_not_found: (
        "the transaction did not correspond to a known deposit for that user"
    ),
    AccountUpdateFailure.transaction_not_disputed: "the transaction is not under dispute",
    AccountUpdateFailure.redundant_dispute: "the dispute was redundant",
    AccountUpdateFailure.insufficient_funds: "their account has insufficient funds",
    AccountUpdateFailure.malformed_command: "the transaction did not contain a valid amount",
    AccountUpdateFailure.unknown_client: "the transaction did not correspond to a known user",
}


@dataclass
class DepositRecord:
    amount: Decimal
    disputed: bool = False


class Account:
    """Balance state of a single client.

    ``held`` always equals the sum of the amounts of disputed records in
    ``deposit_history``. A chargeback locks the account for good and drops
    the charged-back record.
    """

    def __init__(self):
        self.available: Decimal = Decimal("0")
        self.held: Decimal = Decimal("0")
        self.locked: bool = False
        self.deposit_history: Dict[int, DepositRecord] = {}

    @property
    def total(self) -> Decimal:
        return self.available + self.held

    def __repr__(self) -> str:
        return (
            f"Account(available={self.available}, held={self.held}, "
            f"locked={self.locked}, deposits={len(self.deposit_history)})"
        )

    def deposit(self, tx_id: int, amount: Decimal) -> Optional[AccountUpdateFailure]:
        if self.locked:
            return AccountUpdateFailure.frozen
        if tx_id in self.deposit_history:
            return AccountUpdateFailure.duplicate_deposit

        self.available += amount
        self.deposit_history[tx_id] = DepositRecord(amount=amount)
        return None

    def withdraw(self, amount: Decimal) -> Optional[AccountUpdateFailure]:
        if self.locked:
            return AccountUpdateFailure.frozen
        if self.available < amount:
            return AccountUpdateFailure.insufficient_funds

        self.available -= amount
        return None

    def dispute(self, tx_id: int) -> Optional[AccountUpdateFailure]:
        """Move a deposit's amount from available to held.

        Applied even when it drives ``available`` negative, e.g. when the
        disputed funds were already withdrawn.
        """
        if self.locked:
            return AccountUpdateFailure.frozen
        record = self.deposit_history.get(tx_id)
        if record is None:
            return AccountUpdateFailure.transaction_not_found
        if record.disputed:
            return AccountUpdateFailure.redundant_dispute

        record.disputed = True
        self.available -= record.amount
        self.held += record.amount
        return None

    def resolve(self, tx_id: int) -> Optional[AccountUpdateFailure]:
        if self.locked:
            return AccountUpdateFailure.frozen
        record = self.deposit_history.get(tx_id)
        if record is None:
            return AccountUpdateFailure.transaction_not_found
        if not record.disputed:
            return AccountUpdateFailure.transaction_not_disputed

        record.disputed = False
        self.held -= record.amount
        self.available += record.amount
        return None

    def chargeback(self, tx_id: int) -> Optional[AccountUpdateFailure]:
        if self.locked:
            return AccountUpdateFailure.frozen
        record = self.deposit_history.get(tx_id)
        if record is None:
            return AccountUpdateFailure.transaction_not_found
        if not record.disputed:
            return AccountUpdateFailure.transaction_not_disputed

        self.held -= record.amount
        self.locked = True
        del self.deposit_history[tx_id]
        return None
