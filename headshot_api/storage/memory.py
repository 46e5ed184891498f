"""Process-local ledger store for development and tests."""

import asyncio

from headshot_api.models.user_credits import LedgerRecord
from headshot_api.storage.base import DuplicateRecordError, LedgerStore


class MemoryLedgerStore(LedgerStore):
    def __init__(self) -> None:
        self._rows: dict[str, LedgerRecord] = {}
        self._lock = asyncio.Lock()

    async def get(self, user_id: str) -> LedgerRecord | None:
        async with self._lock:
            row = self._rows.get(user_id)
            return row.model_copy() if row else None

    async def insert(self, record: LedgerRecord) -> LedgerRecord:
        async with self._lock:
            if record.user_id in self._rows:
                raise DuplicateRecordError(record.user_id)
            self._rows[record.user_id] = record.model_copy()
            return record.model_copy()

    async def compare_and_swap(self, record: LedgerRecord, expected_version: int) -> LedgerRecord | None:
        async with self._lock:
            row = self._rows.get(record.user_id)
            if row is None or row.version != expected_version:
                return None
            stored = record.model_copy(update={
                "version": expected_version + 1,
                "total_credits_used": row.total_credits_used,
            })
            self._rows[record.user_id] = stored
            return stored.model_copy()

    async def decrement_if_sufficient(self, user_id: str, amount: int) -> LedgerRecord | None:
        async with self._lock:
            row = self._rows.get(user_id)
            if row is None or row.current_credits < amount:
                return None
            stored = row.model_copy(update={
                "current_credits": row.current_credits - amount,
                "total_credits_used": row.total_credits_used + amount,
                "version": row.version + 1,
            })
            self._rows[user_id] = stored
            return stored.model_copy()

    async def overwrite(self, record: LedgerRecord) -> LedgerRecord | None:
        async with self._lock:
            row = self._rows.get(record.user_id)
            if row is None:
                return None
            stored = record.model_copy(update={
                "version": row.version + 1,
                "total_credits_used": row.total_credits_used,
            })
            self._rows[record.user_id] = stored
            return stored.model_copy()

    def clear(self) -> None:
        self._rows.clear()
