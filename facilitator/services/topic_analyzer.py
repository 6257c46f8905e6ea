from __future__ import annotations

import asyncio
import json
import logging
import re
import time
from typing import Any, Sequence

import httpx

from facilitator.config import Settings, get_settings
from facilitator.models.session_model import AnalysisResult, TranscriptSegment
from facilitator.services import bedrock_utils
from facilitator.services.rate_limiter import MinIntervalRateLimiter

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = "You are a meeting facilitator assistant that helps keep meetings on topic."
DEFAULT_FEEDBACK = "Keep the discussion focused on the meeting target."
UNAVAILABLE_FEEDBACK = "Unable to analyze transcript at this time."
OPENAI_DEFAULT_URL = "https://api.openai.com/v1"

_JSON_OBJECT = re.compile(r"\{[\s\S]*\}")
_FEEDBACK_LABEL = re.compile(r"feedback:", re.IGNORECASE)


def build_prompt(meeting_target: str, recent_transcript: str) -> str:
    return (
        f'Meeting Target: "{meeting_target}"\n'
        "\n"
        f'Recent transcript: "{recent_transcript}"\n'
        "\n"
        "Based on the meeting target and the recent transcript, please analyze:\n"
        "1. Are the participants talking about the meeting target? (true/false)\n"
        "2. What feedback would you give the participants to help them stay on topic? (5 words max)\n"
        "\n"
        "Respond in JSON format:\n"
        "{\n"
        '  "isOnTopic": boolean,\n'
        '  "feedback": "your facilitation feedback here (5 words max)"\n'
        "}\n"
    )


def _coerce_bool(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() == "true"
    return bool(value)


def parse_analysis(content: str) -> AnalysisResult:
    """Read the model's verdict, preferring the first JSON object in the text."""
    match = _JSON_OBJECT.search(content)
    if match:
        try:
            parsed = json.loads(match.group(0))
        except json.JSONDecodeError as exc:
            logger.warning("Model response is not valid JSON, using text fallback: %s", exc)
        else:
            if isinstance(parsed, dict) and "isOnTopic" in parsed:
                feedback = parsed.get("feedback")
                return AnalysisResult(
                    is_on_topic=_coerce_bool(parsed["isOnTopic"]),
                    feedback=str(feedback).strip() if feedback else DEFAULT_FEEDBACK,
                )

    feedback = DEFAULT_FEEDBACK
    label = _FEEDBACK_LABEL.search(content)
    if label:
        feedback = content[label.end():].strip() or DEFAULT_FEEDBACK
    return AnalysisResult(is_on_topic="true" in content.lower(), feedback=feedback)


class TopicAnalyzer:
    """Asks an LLM whether the latest utterances match the meeting target."""

    def __init__(
        self,
        settings: Settings | None = None,
        rate_limiter: MinIntervalRateLimiter | None = None,
        bedrock_client: Any | None = None,
        http_client: httpx.AsyncClient | None = None,
    ):
        self.settings = settings or get_settings()
        self.rate_limiter = rate_limiter or MinIntervalRateLimiter(self.settings.analysis_min_interval_seconds)
        self.bedrock_client = bedrock_client
        self.http_client = http_client

    async def analyze(self, meeting_target: str, segments: Sequence[TranscriptSegment]) -> AnalysisResult:
        """``segments`` are chronological; only the last two are sent."""
        recent = " ".join(segment.text for segment in list(segments)[-2:])
        prompt = build_prompt(meeting_target, recent)
        logger.info("Analyzing transcript target=%r segments=%d", meeting_target, len(segments))
        try:
            await self.rate_limiter.acquire()
            started = time.monotonic()
            content = await self._complete(prompt)
            logger.info("Model responded in %.0fms: %s", (time.monotonic() - started) * 1000, content)
            return parse_analysis(content)
        except Exception:
            logger.exception("Transcript analysis failed")
            return AnalysisResult(is_on_topic=False, feedback=UNAVAILABLE_FEEDBACK, degraded=True)

    async def _complete(self, prompt: str) -> str:
        if self.settings.analyzer_provider == "openai":
            return await self._complete_openai(prompt)
        if self.bedrock_client is None:
            # built here, on the loop thread, and reused by every worker thread
            self.bedrock_client = bedrock_utils.bedrock_runtime_client(self.settings)
        return await asyncio.to_thread(
            bedrock_utils.complete_text,
            self.bedrock_client,
            prompt,
            model_id=self.settings.bedrock_model_id,
            system=SYSTEM_PROMPT,
            max_tokens=200,
            temperature=0.7,
        )

    async def _complete_openai(self, prompt: str) -> str:
        settings = self.settings
        body: dict[str, Any] = {
            "messages": [
                {"role": "system", "content": SYSTEM_PROMPT},
                {"role": "user", "content": prompt},
            ],
            "temperature": 0.7,
            "max_tokens": 200,
        }
        if settings.openai_api_url and "azure" in settings.openai_api_url:
            url = settings.openai_api_url
            headers = {"Content-Type": "application/json", "api-key": settings.openai_api_key}
        else:
            url = f"{(settings.openai_api_url or OPENAI_DEFAULT_URL).rstrip('/')}/chat/completions"
            headers = {"Content-Type": "application/json", "Authorization": f"Bearer {settings.openai_api_key}"}
            body["model"] = settings.openai_model

        client = self.http_client or httpx.AsyncClient(timeout=30.0)
        try:
            response = await client.post(url, json=body, headers=headers)
            response.raise_for_status()
        finally:
            if client is not self.http_client:
                await client.aclose()
        choices = response.json().get("choices") or [{}]
        return (choices[0].get("message") or {}).get("content") or ""
