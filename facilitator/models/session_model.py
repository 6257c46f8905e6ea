from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

TargetState = Literal["on_topic", "off_topic", "neutral"]
SessionStatus = Literal["active", "ended"]


class _WireModel(BaseModel):
    """Snake case in Python, camel case on the wire."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True)


class FacilitationConfig(_WireModel):
    meeting_target: str = ""
    target_state: TargetState = "neutral"
    facilitation_feedback: str = ""


class TranscriptSegment(_WireModel):
    text: str
    timestamp: int
    speaker: str = "Unknown"


class AnalysisResult(BaseModel):
    is_on_topic: bool
    feedback: str
    degraded: bool = False

    @property
    def target_state(self) -> TargetState:
        return "on_topic" if self.is_on_topic else "off_topic"


class Session(_WireModel):
    session_id: str
    external_bot_id: str
    meeting_url: str
    created_at: str
    status: SessionStatus = "active"
    last_word: str = ""
    meeting_target: str = ""
    facilitation: FacilitationConfig = Field(default_factory=FacilitationConfig)
    analysis_seq: int = 0

    def facilitation_config(self) -> FacilitationConfig:
        return self.facilitation.model_copy(update={"meeting_target": self.meeting_target})
