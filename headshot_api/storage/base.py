from abc import ABC, abstractmethod

from headshot_api.core.config import get_settings
from headshot_api.models.user_credits import LedgerRecord


class DuplicateRecordError(Exception):
    """A ledger row already exists for this user."""

    def __init__(self, user_id: str):
        self.user_id = user_id
        super().__init__(f"Ledger record already exists for {user_id}")


class LedgerStore(ABC):
    """Persistence for ledger rows. Every write bumps ``version``."""

    @abstractmethod
    async def get(self, user_id: str) -> LedgerRecord | None:
        """Return the stored row or None."""
        ...

    @abstractmethod
    async def insert(self, record: LedgerRecord) -> LedgerRecord:
        """Create the row; raise DuplicateRecordError if it exists."""
        ...

    @abstractmethod
    async def compare_and_swap(self, record: LedgerRecord, expected_version: int) -> LedgerRecord | None:
        """Overwrite the row only if its version still equals expected_version; None on conflict."""
        ...

    @abstractmethod
    async def decrement_if_sufficient(self, user_id: str, amount: int) -> LedgerRecord | None:
        """Atomically subtract amount when current_credits >= amount; None otherwise."""
        ...

    @abstractmethod
    async def overwrite(self, record: LedgerRecord) -> LedgerRecord | None:
        """Unconditionally replace balance fields; None if the row is missing."""
        ...


_memory_store = None


def get_ledger_store() -> LedgerStore:
    global _memory_store
    settings = get_settings()
    if settings.ledger_backend == "memory":
        from headshot_api.storage.memory import MemoryLedgerStore
        if _memory_store is None:
            _memory_store = MemoryLedgerStore()
        return _memory_store
    from headshot_api.storage.mongo import MongoLedgerStore
    return MongoLedgerStore()
