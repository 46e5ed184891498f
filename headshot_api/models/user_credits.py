from datetime import datetime, timezone

from beanie import Document, Indexed
from pydantic import BaseModel, Field


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class LedgerRecord(BaseModel):
    """Per-user credit balance and recovery bookkeeping."""

    user_id: str
    current_credits: int
    last_credit_award_time: datetime
    daily_credit_reset_time: datetime
    daily_recovered_credits: int = 0
    total_credits_used: int = 0
    version: int = 0  # bumped on every write; compare-and-swap token


class UserCredits(Document):
    """Persisted ledger row, one per user."""
    user_id: Indexed(str, unique=True)
    current_credits: int
    last_credit_award_time: datetime
    daily_credit_reset_time: datetime
    daily_recovered_credits: int = 0
    total_credits_used: int = 0
    version: int = 0
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    class Settings:
        name = "user_credits"

    def to_record(self) -> LedgerRecord:
        return LedgerRecord(
            user_id=self.user_id,
            current_credits=self.current_credits,
            last_credit_award_time=self.last_credit_award_time,
            daily_credit_reset_time=self.daily_credit_reset_time,
            daily_recovered_credits=self.daily_recovered_credits,
            total_credits_used=self.total_credits_used,
            version=self.version,
        )


class LedgerResponse(BaseModel):
    """Wire shape of a ledger record; timestamps serialize as ISO-8601."""

    user_id: str
    current_credits: int
    last_credit_award_time: datetime
    daily_credit_reset_time: datetime
    daily_recovered_credits: int
    total_credits_used: int

    @classmethod
    def from_record(cls, record: LedgerRecord) -> "LedgerResponse":
        return cls(**record.model_dump(exclude={"version"}))
