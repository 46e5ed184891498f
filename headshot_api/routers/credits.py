from fastapi import APIRouter, Depends, Header, Query
from pydantic import BaseModel

from headshot_api.core.config import get_settings
from headshot_api.deps import get_ledger, require_admin, resolve_user_id
from headshot_api.models.user_credits import LedgerResponse
from headshot_api.services.ledger import CreditLedger

router = APIRouter()


class UseCreditsRequest(BaseModel):
    user_id: str | None = None
    amount: int | float | None = None


class ResetCreditsRequest(BaseModel):
    user_id: str | None = None


@router.get("", response_model=LedgerResponse)
async def credits_balance(
    user_id: str | None = Query(None),
    x_user_id: str | None = Header(None, alias="X-User-ID"),
    ledger: CreditLedger = Depends(get_ledger),
):
    """Return the caller's ledger after applying any pending recovery."""
    record = await ledger.get_balance(resolve_user_id(user_id, x_user_id))
    return LedgerResponse.from_record(record)


@router.post("/use", response_model=LedgerResponse)
async def credits_use(
    body: UseCreditsRequest | None = None,
    x_user_id: str | None = Header(None, alias="X-User-ID"),
    ledger: CreditLedger = Depends(get_ledger),
):
    """Spend credits; amount defaults to the configured per-use cost."""
    body = body or UseCreditsRequest()
    user_id = resolve_user_id(body.user_id, x_user_id)
    amount = get_settings().credits_per_use if body.amount is None else body.amount
    record = await ledger.deduct(user_id, amount)
    return LedgerResponse.from_record(record)


@router.post("/reset", response_model=LedgerResponse, dependencies=[Depends(require_admin)])
async def credits_reset(
    body: ResetCreditsRequest | None = None,
    x_user_id: str | None = Header(None, alias="X-User-ID"),
    ledger: CreditLedger = Depends(get_ledger),
):
    """Admin: restore the baseline balance."""
    body = body or ResetCreditsRequest()
    record = await ledger.reset(resolve_user_id(body.user_id, x_user_id))
    return LedgerResponse.from_record(record)
