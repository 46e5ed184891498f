from beanie.odm.queries.update import UpdateResponse
from beanie.operators import Inc, Set
from pymongo.errors import DuplicateKeyError, PyMongoError

from headshot_api.core.exceptions import PersistenceError
from headshot_api.core.logging import get_logger
from headshot_api.models.user_credits import LedgerRecord, UserCredits, utcnow
from headshot_api.storage.base import DuplicateRecordError, LedgerStore

log = get_logger(__name__)

# Fields rewritten by recovery and reset; total_credits_used only moves on deduction.
_BALANCE_FIELDS = (
    "current_credits",
    "last_credit_award_time",
    "daily_credit_reset_time",
    "daily_recovered_credits",
)


def _balance_update(record: LedgerRecord) -> dict:
    fields = {name: getattr(record, name) for name in _BALANCE_FIELDS}
    fields["updated_at"] = utcnow()
    return fields


def _store_error(op: str, user_id: str, exc: PyMongoError) -> PersistenceError:
    log.error("ledger_store_error", op=op, user_id=user_id, error=str(exc))
    return PersistenceError(f"Ledger store error during {op}")


class MongoLedgerStore(LedgerStore):
    """Ledger rows in the ``user_credits`` collection; writes are single-document atomic."""

    async def get(self, user_id: str) -> LedgerRecord | None:
        try:
            doc = await UserCredits.find_one(UserCredits.user_id == user_id)
        except PyMongoError as e:
            raise _store_error("get", user_id, e) from e
        return doc.to_record() if doc else None

    async def insert(self, record: LedgerRecord) -> LedgerRecord:
        doc = UserCredits(**record.model_dump())
        try:
            await doc.insert()
        except DuplicateKeyError as e:
            raise DuplicateRecordError(record.user_id) from e
        except PyMongoError as e:
            raise _store_error("insert", record.user_id, e) from e
        return doc.to_record()

    async def compare_and_swap(self, record: LedgerRecord, expected_version: int) -> LedgerRecord | None:
        try:
            doc = await UserCredits.find_one(
                UserCredits.user_id == record.user_id,
                UserCredits.version == expected_version,
            ).update(
                Set(_balance_update(record)),
                Inc({UserCredits.version: 1}),
                response_type=UpdateResponse.NEW_DOCUMENT,
            )
        except PyMongoError as e:
            raise _store_error("compare_and_swap", record.user_id, e) from e
        return doc.to_record() if doc else None

    async def decrement_if_sufficient(self, user_id: str, amount: int) -> LedgerRecord | None:
        try:
            doc = await UserCredits.find_one(
                UserCredits.user_id == user_id,
                UserCredits.current_credits >= amount,
            ).update(
                Inc({
                    UserCredits.current_credits: -amount,
                    UserCredits.total_credits_used: amount,
                    UserCredits.version: 1,
                }),
                Set({UserCredits.updated_at: utcnow()}),
                response_type=UpdateResponse.NEW_DOCUMENT,
            )
        except PyMongoError as e:
            raise _store_error("decrement", user_id, e) from e
        return doc.to_record() if doc else None

    async def overwrite(self, record: LedgerRecord) -> LedgerRecord | None:
        try:
            doc = await UserCredits.find_one(UserCredits.user_id == record.user_id).update(
                Set(_balance_update(record)),
                Inc({UserCredits.version: 1}),
                response_type=UpdateResponse.NEW_DOCUMENT,
            )
        except PyMongoError as e:
            raise _store_error("overwrite", record.user_id, e) from e
        return doc.to_record() if doc else None
