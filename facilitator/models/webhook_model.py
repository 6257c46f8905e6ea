"""Subset of the Recall.ai realtime webhook envelope the relay reads."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field

TRANSCRIPT_EVENTS = ("transcript.data", "transcript.partial_data")


class Timestamp(BaseModel):
    relative: float | None = None
    absolute: str | None = None


class Word(BaseModel):
    text: str
    start_timestamp: Timestamp | None = None
    end_timestamp: Timestamp | None = None


class Participant(BaseModel):
    id: int | None = None
    name: str | None = None
    is_host: bool | None = None
    platform: str | None = None
    extra_data: dict[str, Any] | None = None


class TranscriptData(BaseModel):
    words: list[Word] = Field(default_factory=list)
    participant: Participant | None = None


class Resource(BaseModel):
    id: str
    metadata: dict[str, Any] = Field(default_factory=dict)


class EventData(BaseModel):
    data: TranscriptData
    bot: Resource
    transcript: Resource | None = None
    recording: Resource | None = None
    realtime_endpoint: Resource | None = None


class WebhookEvent(BaseModel):
    event: str
    data: EventData

    @property
    def bot_id(self) -> str:
        return self.data.bot.id

    @property
    def sentence(self) -> str:
        return " ".join(word.text for word in self.data.data.words)

    @property
    def last_word(self) -> str:
        return self.data.data.words[-1].text

    @property
    def speaker(self) -> str:
        participant = self.data.data.participant
        if participant and participant.name:
            return participant.name
        return "Unknown"
