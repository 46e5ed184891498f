"""Credit ledger: lazy hourly recovery, daily reset, atomic spend."""

from datetime import datetime, timedelta, timezone
from zoneinfo import ZoneInfo

from headshot_api.core.config import Settings, get_settings
from headshot_api.core.exceptions import InsufficientCreditsError, InvalidArgumentError, NotFoundError
from headshot_api.core.logging import get_logger
from headshot_api.models.user_credits import LedgerRecord, utcnow
from headshot_api.storage.base import DuplicateRecordError, LedgerStore

log = get_logger(__name__)


def _aware(dt: datetime) -> datetime:
    # Naive values come from stores that drop tzinfo; they are UTC.
    return dt if dt.tzinfo is not None else dt.replace(tzinfo=timezone.utc)


def midnight_before(now: datetime, tz_name: str = "UTC") -> datetime:
    """Start of the day containing ``now`` in the given timezone."""
    local = _aware(now).astimezone(ZoneInfo(tz_name))
    return local.replace(hour=0, minute=0, second=0, microsecond=0)


def recover(record: LedgerRecord, now: datetime, settings: Settings | None = None) -> LedgerRecord:
    """
    Apply the daily reset and any whole hours of recovery earned by ``now``.
    Pure: returns a new record and never touches storage.

    The daily reset overwrites the balance and the recovered-today counter
    and restarts the hourly clock; no hourly credit is granted in the same
    pass. Otherwise hourly
    recovery grants one credit per whole elapsed hour, capped by
    the absolute maximum and by what is left of today's recovery allowance.
    ``last_credit_award_time`` only advances on a non-zero grant so partial
    hours carry over.
    """
    s = settings or get_settings()
    now = _aware(now)
    current = record.current_credits
    recovered = record.daily_recovered_credits
    award_time = _aware(record.last_credit_award_time)
    reset_time = _aware(record.daily_credit_reset_time)

    reset_fired = reset_time < midnight_before(now, s.credits_timezone)
    if reset_fired:
        current = s.credits_baseline
        reset_time = now
        award_time = now
        recovered = 0

    if not reset_fired and current < s.credits_max and recovered < s.credits_daily_recovery_cap:
        elapsed = now - award_time
        elapsed_hours = int(elapsed // timedelta(seconds=s.credits_recovery_interval_seconds))
        if elapsed_hours >= 1:
            grant = min(
                elapsed_hours,
                s.credits_max - current,
                s.credits_daily_recovery_cap - recovered,
            )
            if grant > 0:
                current += grant
                recovered += grant
                award_time = now

    return record.model_copy(update={
        "current_credits": current,
        "daily_recovered_credits": recovered,
        "last_credit_award_time": award_time,
        "daily_credit_reset_time": reset_time,
    })


def validate_amount(amount) -> int:
    if isinstance(amount, bool) or not isinstance(amount, int):
        raise InvalidArgumentError("amount must be a positive integer", details={"amount": amount})
    if amount <= 0:
        raise InvalidArgumentError("amount must be a positive integer", details={"amount": amount})
    return amount


class CreditLedger:
    """Per-user credit balances on top of a LedgerStore."""

    def __init__(self, store: LedgerStore, settings: Settings | None = None, clock=utcnow):
        self.store = store
        self.settings = settings or get_settings()
        self.clock = clock

    def _fresh_record(self, user_id: str, now: datetime) -> LedgerRecord:
        return LedgerRecord(
            user_id=user_id,
            current_credits=self.settings.credits_baseline,
            last_credit_award_time=now,
            daily_credit_reset_time=now,
            daily_recovered_credits=0,
        )

    async def get_or_create(self, user_id: str) -> LedgerRecord:
        """Return the user's row, creating it with the baseline balance on first access."""
        record = await self.store.get(user_id)
        if record is not None:
            return record
        try:
            record = await self.store.insert(self._fresh_record(user_id, self.clock()))
        except DuplicateRecordError:
            # Lost a creation race; the winner's row is authoritative.
            record = await self.store.get(user_id)
            if record is None:
                raise NotFoundError(f"Ledger record for {user_id} could not be created")
            return record
        log.info("ledger_created", user_id=user_id, credits=record.current_credits)
        return record

    async def get_balance(self, user_id: str) -> LedgerRecord:
        """
        Recover and return the current balance.

        Every call writes the recovered row back, even when nothing changed,
        so a balance read is also a write. The write is conditional on the
        row's version; if another request wrote first, its row is returned.
        """
        record = await self.get_or_create(user_id)
        recovered = recover(record, self.clock(), self.settings)
        stored = await self.store.compare_and_swap(recovered, expected_version=record.version)
        if stored is None:
            log.info("ledger_write_conflict", user_id=user_id, version=record.version)
            stored = await self.store.get(user_id)
            if stored is None:
                raise NotFoundError(f"Ledger record for {user_id} disappeared")
            return stored
        if (stored.current_credits, stored.daily_recovered_credits) != (
            record.current_credits,
            record.daily_recovered_credits,
        ):
            log.info(
                "credits_recovered",
                user_id=user_id,
                before=record.current_credits,
                after=stored.current_credits,
                recovered_today=stored.daily_recovered_credits,
            )
        return stored

    async def deduct(self, user_id: str, amount: int) -> LedgerRecord:
        """Spend credits. The decrement is a single conditional update, so concurrent spends cannot overdraw."""
        amount = validate_amount(amount)
        record = await self.get_balance(user_id)
        if record.current_credits < amount:
            log.info("credits_deduct_rejected", user_id=user_id, required=amount, available=record.current_credits)
            raise InsufficientCreditsError(required=amount, available=record.current_credits)

        updated = await self.store.decrement_if_sufficient(user_id, amount)
        if updated is None:
            latest = await self.store.get(user_id)
            available = latest.current_credits if latest else 0
            log.info("credits_deduct_rejected", user_id=user_id, required=amount, available=available, raced=True)
            raise InsufficientCreditsError(required=amount, available=available)
        log.info("credits_deducted", user_id=user_id, amount=amount, remaining=updated.current_credits)
        return updated

    async def reset(self, user_id: str) -> LedgerRecord:
        """Administrative reset to the baseline balance with fresh timestamps."""
        record = await self.get_or_create(user_id)
        fresh = self._fresh_record(user_id, self.clock())
        stored = await self.store.overwrite(fresh.model_copy(update={"version": record.version}))
        if stored is None:
            raise NotFoundError(f"Ledger record for {user_id} disappeared")
        log.info("credits_reset", user_id=user_id, credits=stored.current_credits)
        return stored
