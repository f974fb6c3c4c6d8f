from collections import Counter
from dataclasses import dataclass, field
from typing import Dict, Optional
import structlog

from channel import CommandChannel
from ledger import Account, AccountUpdateFailure
from models import Command, CommandType
from repositories import AccountRepository

# Configure structured logging
logger = structlog.get_logger()

# Verb used in diagnostics for each command kind
_ACTIONS: Dict[CommandType, str] = {
    CommandType.deposit: "deposit",
    CommandType.withdrawal: "withdraw",
    CommandType.dispute: "dispute",
    CommandType.resolve: "resolve",
    CommandType.chargeback: "chargeback",
}


def build_message(command: Command, failure: AccountUpdateFailure) -> str:
    """Plain-text diagnostic for a command that was not applied."""
    return (
        f"TX:{command.tx} to {_ACTIONS[command.type]} for user:{command.client} "
        f"did not succeed because {failure.reason}."
    )


@dataclass
class DispatchSummary:
    processed: int = 0
    applied: int = 0
    rejected: int = 0
    failures: Counter = field(default_factory=Counter)

    def record(self, failure: Optional[AccountUpdateFailure]) -> None:
        self.processed += 1
        if failure is None:
            self.applied += 1
        else:
            self.rejected += 1
            self.failures[failure.value] += 1


class CommandDispatcher:
    def __init__(self, account_repo: AccountRepository):
        self.account_repo = account_repo

    async def run(self, channel: CommandChannel) -> DispatchSummary:
        """Apply every command from the channel, in order, until it is closed."""
        summary = DispatchSummary()

        logger.info("Command dispatcher started")

        async for command in channel:
            summary.record(await self.dispatch(command))

        logger.info(
            "Command dispatcher finished",
            processed=summary.processed,
            applied=summary.applied,
            rejected=summary.rejected,
            failures=dict(summary.failures),
        )
        return summary

    async def dispatch(self, command: Command) -> Optional[AccountUpdateFailure]:
        """Apply one command to its account.

        Returns None when the command was applied, otherwise the failure that
        was reported. Failures never propagate past this point.
        """
        logger.debug(
            "Dispatching command",
            tx=command.tx,
            client=command.client,
            command=command.type.value,
            amount=str(command.amount) if command.amount is not None else None
        )

        async with self.account_repo.get_lock():
            account = await self._resolve_account(command)
            if account is None:
                failure = AccountUpdateFailure.unknown_client
            elif command.requires_amount:
                failure = self._apply_funds_command(account, command)
            else:
                failure = self._apply_dispute_command(account, command)

        if failure is not None:
            self._report(command, failure)
        return failure

    async def _resolve_account(self, command: Command) -> Optional[Account]:
        """Look up the target account, creating it for deposits and withdrawals."""
        account = await self.account_repo.get_account(command.client)
        if account is None and command.requires_amount:
            account = Account()
            await self.account_repo.add_account(command.client, account)

            logger.debug("Account created", client=command.client)
        return account

    def _apply_funds_command(
        self,
        account: Account,
        command: Command
    ) -> Optional[AccountUpdateFailure]:
        """Process deposit or withdrawal."""
        if command.amount is None or command.amount < 0:
            return AccountUpdateFailure.malformed_command

        if command.type == CommandType.deposit:
            return account.deposit(command.tx, command.amount)
        return account.withdraw(command.amount)

    def _apply_dispute_command(
        self,
        account: Account,
        command: Command
    ) -> Optional[AccountUpdateFailure]:
        """Process dispute, resolve or chargeback; any amount is ignored."""
        if command.type == CommandType.dispute:
            return account.dispute(command.tx)
        elif command.type == CommandType.resolve:
            return account.resolve(command.tx)
        elif command.type == CommandType.chargeback:
            return account.chargeback(command.tx)

        raise ValueError(f"Unsupported command type: {command.type!r}")

    def _report(self, command: Command, failure: AccountUpdateFailure) -> None:
        log = logger.error if failure == AccountUpdateFailure.malformed_command else logger.warning
        log(
            build_message(command, failure),
            tx=command.tx,
            client=command.client,
            command=command.type.value,
            reason=failure.value
        )


# Factory function for dependency injection
def get_command_dispatcher(account_repo: AccountRepository) -> CommandDispatcher:
    return CommandDispatcher(account_repo)
