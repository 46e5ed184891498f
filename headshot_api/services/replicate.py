"""Replicate predictions client: start a job, poll until it settles."""

import asyncio
from typing import Any

import httpx

from headshot_api.core.config import Settings, get_settings
from headshot_api.core.exceptions import GenerationError
from headshot_api.core.logging import get_logger

log = get_logger(__name__)

TERMINAL_FAILURES = ("failed", "canceled")


class ReplicateClient:
    def __init__(
        self,
        settings: Settings | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        sleep=asyncio.sleep,
    ):
        self.settings = settings or get_settings()
        self._transport = transport
        self._sleep = sleep

    def _client(self) -> httpx.AsyncClient:
        s = self.settings
        return httpx.AsyncClient(
            base_url=s.replicate_base_url,
            headers={
                "Authorization": f"Bearer {s.replicate_api_token}",
                "Content-Type": "application/json",
            },
            timeout=s.replicate_timeout_seconds,
            transport=self._transport,
        )

    async def generate(self, image: str, prompt: str) -> str:
        """Run one prediction and return the first output URL."""
        s = self.settings
        if not s.replicate_api_token:
            raise GenerationError("Replicate API token is not configured")
        payload = {
            "version": s.replicate_model_version,
            "input": {"prompt": prompt, "image": image, "output_format": "jpg"},
        }
        try:
            async with self._client() as client:
                resp = await client.post("/predictions", json=payload)
                if resp.is_error:
                    raise GenerationError(
                        "Replicate rejected the prediction",
                        details={"status": resp.status_code, "body": resp.text[:500]},
                    )
                prediction = resp.json()
                log.info("replicate_started", prediction_id=prediction.get("id"))
                prediction = await self._wait(client, prediction)
        except httpx.HTTPError as e:
            raise GenerationError(f"Replicate request failed: {e}") from e
        except (ValueError, KeyError) as e:
            raise GenerationError("Malformed response from Replicate", details={"error": str(e)}) from e
        return _first_output(prediction)

    async def _wait(self, client: httpx.AsyncClient, prediction: dict[str, Any]) -> dict[str, Any]:
        s = self.settings
        attempts = 0
        while prediction.get("status") != "succeeded":
            if prediction.get("status") in TERMINAL_FAILURES:
                log.warning("replicate_failed", prediction_id=prediction.get("id"), error=prediction.get("error"))
                raise GenerationError(
                    "Replicate image generation failed",
                    details={"status": prediction.get("status"), "error": prediction.get("error")},
                )
            if attempts >= s.replicate_max_attempts:
                raise GenerationError("Replicate image processing timed out")
            await self._sleep(s.replicate_poll_interval_seconds)
            resp = await client.get(f"/predictions/{prediction['id']}")
            resp.raise_for_status()
            prediction = resp.json()
            attempts += 1
        return prediction


def _first_output(prediction: dict[str, Any]) -> str:
    output = prediction.get("output")
    if isinstance(output, list):
        output = output[0] if output else None
    if not output:
        raise GenerationError("No output received from image processing service")
    return str(output)
