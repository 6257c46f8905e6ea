from __future__ import annotations

import asyncio
import json
import logging
from collections import defaultdict
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator

from redis.exceptions import RedisError

logger = logging.getLogger(__name__)


def word_topic(session_id: str) -> str:
    return f"meeting:{session_id}:word"


def facilitation_topic(session_id: str) -> str:
    return f"meeting:{session_id}:facilitation"


def updates_topic(session_id: str) -> str:
    return f"meeting:{session_id}:updates"


class Subscription:
    def __init__(self, topics: tuple[str, ...]):
        self.topics = topics
        self.queue: asyncio.Queue[tuple[str, dict[str, Any]]] = asyncio.Queue()

    async def get(self) -> tuple[str, dict[str, Any]]:
        return await self.queue.get()


class PushChannel:
    """Topic-keyed fan-out to in-process subscribers, mirrored onto redis pub/sub."""

    def __init__(self, redis: Any | None = None):
        self.redis = redis
        self._subscribers: dict[str, set[Subscription]] = defaultdict(set)

    @asynccontextmanager
    async def subscribe(self, *topics: str) -> AsyncIterator[Subscription]:
        subscription = Subscription(topics)
        for topic in topics:
            self._subscribers[topic].add(subscription)
        try:
            yield subscription
        finally:
            for topic in topics:
                subscribers = self._subscribers.get(topic)
                if subscribers is None:
                    continue
                subscribers.discard(subscription)
                if not subscribers:
                    del self._subscribers[topic]

    async def publish(self, topic: str, message: dict[str, Any], local: bool = True) -> int:
        delivered = 0
        if local:
            for subscription in list(self._subscribers.get(topic, ())):
                subscription.queue.put_nowait((topic, message))
                delivered += 1
        if self.redis is not None:
            try:
                await self.redis.publish(topic, json.dumps(message))
            except RedisError:
                logger.exception("Failed to publish to redis topic %s", topic)
        logger.debug("Published %s to %d local subscribers", topic, delivered)
        return delivered
