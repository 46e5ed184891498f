"""Headshot generation guarded by the credit ledger."""

from typing import Protocol

from headshot_api.core.config import get_settings
from headshot_api.core.exceptions import GenerationError, InsufficientCreditsError
from headshot_api.core.logging import get_logger
from headshot_api.models.user_credits import LedgerRecord
from headshot_api.services.ledger import CreditLedger

log = get_logger(__name__)


class ImageGenerator(Protocol):
    async def generate(self, image: str, prompt: str) -> str: ...


async def generate_headshot(
    ledger: CreditLedger,
    generator: ImageGenerator,
    user_id: str,
    image: str,
    prompt: str,
    cost: int | None = None,
) -> tuple[str, LedgerRecord]:
    """
    Check the balance, run the generator, then charge the user.
    Nothing is charged when generation fails.
    Returns (image_url, ledger_after).
    """
    cost = get_settings().credits_per_generation if cost is None else cost
    balance = await ledger.get_balance(user_id)
    if balance.current_credits < cost:
        raise InsufficientCreditsError(required=cost, available=balance.current_credits)

    log.info("generation_started", user_id=user_id, cost=cost)
    try:
        image_url = await generator.generate(image, prompt)
    except GenerationError as e:
        log.warning("generation_failed", user_id=user_id, error=e.message)
        raise
    after = await ledger.deduct(user_id, cost)
    log.info("generation_succeeded", user_id=user_id, credits_left=after.current_credits)
    return image_url, after
