import json

import httpx
import pytest

from facilitator.services.recall_client import BotGatewayError, RecallClient


def _client(handler):
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


@pytest.mark.asyncio
async def test_create_bot_posts_realtime_webhook_config():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["url"] = str(request.url)
        seen["auth"] = request.headers.get("Authorization")
        seen["body"] = json.loads(request.content)
        return httpx.Response(201, json={"id": "bot-abc"})

    recall = RecallClient(client=_client(handler))
    bot_id = await recall.create_bot("https://zoom.us/j/111", "https://relay.example.com/api/webhook")

    assert bot_id == "bot-abc"
    assert seen["url"] == "https://us-west-2.recall.ai/api/v1/bot/"
    assert seen["auth"] == "Token test-key"
    endpoint = seen["body"]["recording_config"]["realtime_endpoints"][0]
    assert seen["body"]["meeting_url"] == "https://zoom.us/j/111"
    assert endpoint == {
        "type": "webhook",
        "url": "https://relay.example.com/api/webhook",
        "events": ["transcript.data", "transcript.partial_data"],
    }
    await recall.aclose()


@pytest.mark.asyncio
async def test_create_bot_non_success_status_raises():
    recall = RecallClient(client=_client(lambda request: httpx.Response(400, json={"detail": "bad url"})))
    with pytest.raises(BotGatewayError) as excinfo:
        await recall.create_bot("https://zoom.us/j/111", "https://relay.example.com/api/webhook")
    assert excinfo.value.details == "API responded with status 400"
    assert excinfo.value.status_code == 400


@pytest.mark.asyncio
async def test_create_bot_transport_error_raises():
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    recall = RecallClient(client=_client(handler))
    with pytest.raises(BotGatewayError) as excinfo:
        await recall.create_bot("https://zoom.us/j/111", "https://relay.example.com/api/webhook")
    assert excinfo.value.details == "No response received from API"
    assert excinfo.value.status_code is None


@pytest.mark.asyncio
async def test_create_bot_without_id_raises():
    recall = RecallClient(client=_client(lambda request: httpx.Response(201, json={"status": "ok"})))
    with pytest.raises(BotGatewayError) as excinfo:
        await recall.create_bot("https://zoom.us/j/111", "https://relay.example.com/api/webhook")
    assert excinfo.value.details == "Unexpected API response"
