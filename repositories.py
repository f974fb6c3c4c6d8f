from abc import ABC, abstractmethod
from typing import Dict, List, Optional
import asyncio

from exceptions import RegistryPoisonedError
from ledger import Account
from models import AccountSnapshot, AMOUNT_PLACES


class RegistryLock:
    """Single mutual-exclusion lock around the whole account registry.

    An unexpected exception escaping while the lock is held leaves the
    registry in an unknown state; the lock is then poisoned and every later
    acquisition raises ``RegistryPoisonedError``.
    """

    def __init__(self):
        self._lock = asyncio.Lock()
        self._poisoned_by: Optional[BaseException] = None

    @property
    def poisoned(self) -> bool:
        return self._poisoned_by is not None

    async def __aenter__(self) -> "RegistryLock":
        await self._lock.acquire()
        # Checked after acquiring so waiters queued before the failure see it too
        if self.poisoned:
            self._lock.release()
            raise RegistryPoisonedError(
                f"Account registry is unusable after an earlier failure: {self._poisoned_by!r}"
            )
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        if exc is not None and not isinstance(exc, asyncio.CancelledError):
            self._poisoned_by = exc
        self._lock.release()


class AccountRepository(ABC):
    @abstractmethod
    def get_lock(self) -> RegistryLock:
        """Get the lock guarding every account in the registry."""
        pass

    @abstractmethod
    async def get_account(self, client_id: int) -> Optional[Account]:
        """Get account. Returns None if the client was never seen."""
        pass

    @abstractmethod
    async def add_account(self, client_id: int, account: Account) -> None:
        """Register a new account for a client."""
        pass

    @abstractmethod
    async def get_accounts_count(self) -> int:
        """Get total number of accounts."""
        pass

    @abstractmethod
    async def snapshot(self, places: int = AMOUNT_PLACES) -> List[AccountSnapshot]:
        """Read every account once, under the registry lock."""
        pass


class InMemoryAccountRepository(AccountRepository):
    def __init__(self):
        self.accounts: Dict[int, Account] = {}
        self.lock = RegistryLock()

    def get_lock(self) -> RegistryLock:
        return self.lock

    async def get_account(self, client_id: int) -> Optional[Account]:
        return self.accounts.get(client_id)

    async def add_account(self, client_id: int, account: Account) -> None:
        if client_id in self.accounts:
            raise ValueError(f"Account for client {client_id} already exists")
        self.accounts[client_id] = account

    async def get_accounts_count(self) -> int:
        return len(self.accounts)

    async def snapshot(self, places: int = AMOUNT_PLACES) -> List[AccountSnapshot]:
        async with self.lock:
            return [
                AccountSnapshot.from_account(client_id, account, places)
                for client_id, account in self.accounts.items()
            ]
