from __future__ import annotations

import asyncio
import logging
from contextlib import suppress
from typing import Any

from fastapi import WebSocket
from starlette.websockets import WebSocketDisconnect, WebSocketState

from facilitator.models.session_model import Session
from facilitator.services.push_channel import PushChannel, facilitation_topic, word_topic
from facilitator.services.recall_client import RecallClient
from facilitator.services.session_store import SessionStore


class MeetingController:
    def __init__(self, store: SessionStore, recall: RecallClient, push: PushChannel, webhook_url: str):
        self.store = store
        self.recall = recall
        self.push = push
        self.webhook_url = webhook_url
        self.logger = logging.getLogger(__name__)

    async def create_meeting(self, payload: dict) -> dict[str, Any]:
        meeting_url = payload.get("meetingUrl")
        meeting_url = meeting_url.strip() if isinstance(meeting_url, str) else ""
        if not meeting_url:
            raise ValueError("Meeting URL is required")
        meeting_target = payload.get("meetingTarget") or ""

        bot_id = await self.recall.create_bot(meeting_url, self.webhook_url)
        session = await self.store.create(meeting_url, bot_id, meeting_target=str(meeting_target))
        self.logger.info("Created session %s for bot %s", session.session_id, bot_id)
        return {
            "sessionId": session.session_id,
            "externalBotId": session.external_bot_id,
            "status": session.status,
        }

    async def get_meeting(self, session_id: str) -> dict[str, Any]:
        session = await self.store.get(session_id)
        if not session:
            raise KeyError(session_id)
        return await self._session_payload(session)

    async def _session_payload(self, session: Session) -> dict[str, Any]:
        segments = await self.store.recent_segments(session.session_id)
        return {
            "sessionId": session.session_id,
            "externalBotId": session.external_bot_id,
            "meetingUrl": session.meeting_url,
            "createdAt": session.created_at,
            "lastWord": session.last_word,
            "status": session.status,
            "meetingTarget": session.meeting_target,
            "facilitationConfig": session.facilitation_config().to_wire(),
            "transcript": [segment.to_wire() for segment in segments],
        }

    async def stream_updates(self, websocket: WebSocket, session_id: str) -> None:
        session = await self.store.get(session_id)
        if not session:
            await websocket.close(code=4404)
            return

        await websocket.accept()
        topics = {word_topic(session_id): "word", facilitation_topic(session_id): "facilitation"}
        try:
            async with self.push.subscribe(*topics) as subscription:
                await websocket.send_json({"type": "snapshot", "payload": await self._session_payload(session)})
                receiver = asyncio.create_task(self._drain_client(websocket))
                try:
                    while not receiver.done():
                        getter = asyncio.create_task(subscription.get())
                        done, _ = await asyncio.wait({getter, receiver}, return_when=asyncio.FIRST_COMPLETED)
                        if getter not in done:
                            getter.cancel()
                            break
                        topic, message = getter.result()
                        await websocket.send_json({"type": topics[topic], "payload": message})
                finally:
                    receiver.cancel()
        except WebSocketDisconnect:
            return
        finally:
            if websocket.application_state == WebSocketState.CONNECTED:
                with suppress(RuntimeError):
                    await websocket.close(code=1000)

    async def _drain_client(self, websocket: WebSocket) -> None:
        # Returns once the client disconnects; inbound messages are ignored.
        while True:
            message = await websocket.receive()
            if message["type"] == "websocket.disconnect":
                return
