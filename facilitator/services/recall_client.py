from __future__ import annotations

import logging
from typing import Any

import httpx

from facilitator.config import get_settings
from facilitator.models.webhook_model import TRANSCRIPT_EVENTS

logger = logging.getLogger(__name__)


class BotGatewayError(Exception):
    def __init__(self, details: str, message: str, status_code: int | None = None):
        super().__init__(message)
        self.details = details
        self.message = message
        self.status_code = status_code


class RecallClient:
    """Asks Recall.ai to send a bot into a call and stream transcripts to our webhook."""

    def __init__(self, client: httpx.AsyncClient | None = None, api_key: str | None = None, base_url: str | None = None):
        settings = get_settings()
        self.api_key = api_key if api_key is not None else settings.recall_api_key
        self.base_url = (base_url or settings.recall_api_base_url).rstrip("/")
        self.client = client or httpx.AsyncClient(timeout=30.0)

    def _headers(self) -> dict[str, str]:
        return {
            "Authorization": self.api_key,
            "accept": "application/json",
            "content-type": "application/json",
        }

    def build_request(self, meeting_url: str, webhook_url: str) -> dict[str, Any]:
        return {
            "meeting_url": meeting_url,
            "recording_config": {
                "transcript": {"provider": {"assembly_ai_v3_streaming": {}}},
                "realtime_endpoints": [
                    {
                        "type": "webhook",
                        "url": webhook_url,
                        "events": list(TRANSCRIPT_EVENTS),
                    }
                ],
            },
        }

    async def create_bot(self, meeting_url: str, webhook_url: str) -> str:
        url = f"{self.base_url}/bot/"
        logger.info("Requesting Recall bot meeting_url=%s webhook_url=%s", meeting_url, webhook_url)
        try:
            response = await self.client.post(url, json=self.build_request(meeting_url, webhook_url), headers=self._headers())
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            status = exc.response.status_code
            logger.error("Recall bot creation failed status=%s body=%s", status, exc.response.text)
            raise BotGatewayError(f"API responded with status {status}", str(exc), status_code=status) from exc
        except httpx.RequestError as exc:
            logger.error("No response from Recall API: %s", exc)
            raise BotGatewayError("No response received from API", str(exc)) from exc

        try:
            body = response.json()
        except ValueError:
            body = None
        bot_id = body.get("id") if isinstance(body, dict) else None
        if not bot_id:
            logger.error("Recall response carried no bot id: %s", response.text)
            raise BotGatewayError("Unexpected API response", "Bot id missing from response", status_code=response.status_code)

        logger.info("Recall bot created bot_id=%s status=%s", bot_id, response.status_code)
        return str(bot_id)

    async def aclose(self) -> None:
        await self.client.aclose()
