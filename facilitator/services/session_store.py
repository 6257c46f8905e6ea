from __future__ import annotations

import asyncio
import logging
import uuid
from typing import Any

from pydantic import ValidationError
from redis.exceptions import RedisError

from facilitator.models.session_model import FacilitationConfig, Session, TranscriptSegment
from facilitator.utils.time_utils import now_iso

logger = logging.getLogger(__name__)

# hash field -> Session attribute
_FIELD_MAP = {
    "meetingUrl": "meeting_url",
    "recallBotId": "external_bot_id",
    "createdAt": "created_at",
    "lastWord": "last_word",
    "status": "status",
    "meetingTarget": "meeting_target",
}
_WRITABLE = {attr: field for field, attr in _FIELD_MAP.items()}


def session_key(session_id: str) -> str:
    return f"meeting:{session_id}"


def transcript_key(session_id: str) -> str:
    return f"meeting:{session_id}:transcript"


def counter_key(session_id: str) -> str:
    return f"meeting:{session_id}:analysis_counter"


def bot_index_key(bot_id: str) -> str:
    return f"bot:{bot_id}:meeting"


class SessionStore:
    """Redis-backed meeting sessions: one hash per session, a bounded transcript
    list, and a bot id -> session id index used by webhook correlation."""

    def __init__(self, redis: Any, buffer_size: int = 10):
        self.redis = redis
        self.buffer_size = buffer_size
        self._apply_lock = asyncio.Lock()

    async def create(self, meeting_url: str, external_bot_id: str, meeting_target: str = "") -> Session:
        session = Session(
            session_id=uuid.uuid4().hex,
            external_bot_id=external_bot_id,
            meeting_url=meeting_url,
            created_at=now_iso(),
            meeting_target=meeting_target,
        )
        mapping = {field: getattr(session, attr) for field, attr in _FIELD_MAP.items()}
        mapping.update(
            targetState=session.facilitation.target_state,
            facilitationFeedback=session.facilitation.facilitation_feedback,
            analysisSeq=0,
        )
        await self.redis.hset(session_key(session.session_id), mapping=mapping)
        await self.redis.set(bot_index_key(external_bot_id), session.session_id)
        return session

    async def get(self, session_id: str) -> Session | None:
        raw = await self.redis.hgetall(session_key(session_id))
        if not raw:
            return None
        values = {attr: raw.get(field, "") for field, attr in _FIELD_MAP.items()}
        values["status"] = values["status"] or "active"
        return Session(
            session_id=session_id,
            facilitation=FacilitationConfig(
                meeting_target=raw.get("meetingTarget", ""),
                target_state=raw.get("targetState") or "neutral",
                facilitation_feedback=raw.get("facilitationFeedback", ""),
            ),
            analysis_seq=int(raw.get("analysisSeq") or 0),
            **values,
        )

    async def exists(self, session_id: str) -> bool:
        return bool(await self.redis.exists(session_key(session_id)))

    async def update_fields(self, session_id: str, **updates: Any) -> None:
        if not await self.exists(session_id):
            raise KeyError(f"Session {session_id} not found")
        mapping = {}
        for attr, value in updates.items():
            if attr not in _WRITABLE:
                raise ValueError(f"Unknown session field: {attr}")
            mapping[_WRITABLE[attr]] = value
        if mapping:
            await self.redis.hset(session_key(session_id), mapping=mapping)

    async def append_segment(self, session_id: str, segment: TranscriptSegment) -> None:
        key = transcript_key(session_id)
        await self.redis.lpush(key, segment.model_dump_json())
        await self.redis.ltrim(key, 0, self.buffer_size - 1)

    async def recent_segments(self, session_id: str, count: int | None = None) -> list[TranscriptSegment]:
        """Newest first."""
        stop = (count or self.buffer_size) - 1
        segments = []
        for item in await self.redis.lrange(transcript_key(session_id), 0, stop):
            try:
                segments.append(TranscriptSegment.model_validate_json(item))
            except ValidationError:
                logger.warning("Skipping unreadable transcript entry for session %s: %r", session_id, item)
        return segments

    async def list_session_ids(self) -> list[str]:
        session_ids = []
        async for key in self.redis.scan_iter(match="meeting:*"):
            parts = key.split(":")
            if len(parts) == 2:
                session_ids.append(parts[1])
        return session_ids

    async def find_by_bot_id(self, bot_id: str) -> str | None:
        index_key = bot_index_key(bot_id)
        session_id = await self.redis.get(index_key)
        if session_id:
            if await self.exists(session_id):
                return session_id
            logger.warning("Session %s for bot_id=%s has expired, dropping index entry", session_id, bot_id)
            await self.redis.delete(index_key)

        # Sessions written before the index existed only carry recallBotId.
        for candidate in await self.list_session_ids():
            try:
                stored = await self.redis.hget(session_key(candidate), "recallBotId")
            except RedisError:
                logger.exception("Failed to read bot id of session %s, skipping", candidate)
                continue
            if stored == bot_id:
                await self.redis.set(index_key, candidate)
                return candidate
        return None

    async def next_analysis_seq(self, session_id: str) -> int:
        return int(await self.redis.incr(counter_key(session_id)))

    async def latest_analysis_seq(self, session_id: str) -> int:
        return int(await self.redis.get(counter_key(session_id)) or 0)

    async def apply_facilitation(self, session_id: str, seq: int, facilitation: FacilitationConfig) -> bool:
        """Store an analysis verdict unless a newer one is already stored."""
        key = session_key(session_id)
        async with self._apply_lock:
            current = int(await self.redis.hget(key, "analysisSeq") or 0)
            if seq <= current:
                return False
            await self.redis.hset(
                key,
                mapping={
                    "targetState": facilitation.target_state,
                    "facilitationFeedback": facilitation.facilitation_feedback,
                    "analysisSeq": seq,
                },
            )
        return True

