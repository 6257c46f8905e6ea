from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from redis import asyncio as aioredis
from starlette.requests import HTTPConnection

from facilitator.config import Settings
from facilitator.meetings.controller import MeetingController
from facilitator.services.push_channel import PushChannel
from facilitator.services.recall_client import RecallClient
from facilitator.services.session_store import SessionStore
from facilitator.services.topic_analyzer import TopicAnalyzer
from facilitator.webhook.controller import TranscriptRelay


@dataclass
class Services:
    redis: Any
    store: SessionStore
    push: PushChannel
    recall: RecallClient
    analyzer: TopicAnalyzer
    relay: TranscriptRelay
    meetings: MeetingController

    async def aclose(self) -> None:
        await self.relay.worker.stop()
        await self.recall.aclose()
        await self.redis.aclose()


def build_services(
    settings: Settings,
    redis: Any | None = None,
    recall: RecallClient | None = None,
    analyzer: TopicAnalyzer | None = None,
) -> Services:
    if redis is None:
        redis = aioredis.from_url(settings.redis_url, decode_responses=True)
    store = SessionStore(redis, buffer_size=settings.transcript_buffer_size)
    push = PushChannel(redis)
    recall = recall or RecallClient()
    analyzer = analyzer or TopicAnalyzer(settings)
    relay = TranscriptRelay(
        store,
        push,
        analyzer,
        analysis_window=settings.analysis_window,
        analysis_workers=settings.analysis_workers,
    )
    meetings = MeetingController(store, recall, push, settings.webhook_url)
    return Services(redis, store, push, recall, analyzer, relay, meetings)


def get_services(connection: HTTPConnection) -> Services:
    return connection.app.state.services
