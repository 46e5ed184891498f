from fastapi import APIRouter, Depends, Header
from pydantic import BaseModel, Field, field_validator

from headshot_api.deps import client_address, get_image_generator, get_ledger, get_redis, resolve_user_id
from headshot_api.models.user_credits import LedgerResponse
from headshot_api.services import headshots as headshots_service
from headshot_api.services import rate_limit
from headshot_api.services.headshots import ImageGenerator
from headshot_api.services.ledger import CreditLedger

router = APIRouter()


class HeadshotRequest(BaseModel):
    user_id: str | None = None
    image: str
    prompt: str = Field(..., min_length=1, max_length=2000)

    @field_validator("image")
    @classmethod
    def image_is_url(cls, v: str) -> str:
        if not v.startswith(("data:image/", "http://", "https://")):
            raise ValueError("Image must be a base64 data URL or an http(s) URL")
        return v


class HeadshotResponse(BaseModel):
    success: bool = True
    image_url: str
    credits_left: int
    credits: LedgerResponse


@router.post("", response_model=HeadshotResponse)
async def create_headshot(
    body: HeadshotRequest,
    x_user_id: str | None = Header(None, alias="X-User-ID"),
    client_id: str = Depends(client_address),
    redis=Depends(get_redis),
    ledger: CreditLedger = Depends(get_ledger),
    generator: ImageGenerator = Depends(get_image_generator),
):
    """Generate a headshot; credits are charged only if generation succeeds."""
    await rate_limit.enforce(redis, client_id)
    user_id = resolve_user_id(body.user_id, x_user_id)
    image_url, after = await headshots_service.generate_headshot(
        ledger, generator, user_id, body.image, body.prompt
    )
    return HeadshotResponse(
        image_url=image_url,
        credits_left=after.current_credits,
        credits=LedgerResponse.from_record(after),
    )
