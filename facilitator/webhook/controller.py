from __future__ import annotations

import logging
from typing import Any

from pydantic import ValidationError

from facilitator.models.session_model import FacilitationConfig, TranscriptSegment
from facilitator.models.webhook_model import TRANSCRIPT_EVENTS, WebhookEvent
from facilitator.services.analysis_worker import AnalysisJob, AnalysisWorker
from facilitator.services.push_channel import PushChannel, facilitation_topic, updates_topic, word_topic
from facilitator.services.session_store import SessionStore
from facilitator.services.topic_analyzer import TopicAnalyzer
from facilitator.utils.time_utils import now_iso, now_ms

SUCCESS = {"status": "success"}


class TranscriptRelay:
    """Turns Recall transcript webhooks into session updates and pushes.

    The raw update is published before the handler returns; the on-topic
    verdict is computed on the analysis worker and published separately.
    """

    def __init__(
        self,
        store: SessionStore,
        push: PushChannel,
        analyzer: TopicAnalyzer,
        worker: AnalysisWorker | None = None,
        analysis_window: int = 2,
        analysis_workers: int = 1,
    ):
        self.store = store
        self.push = push
        self.analyzer = analyzer
        self.worker = worker or AnalysisWorker(self.run_analysis, concurrency=analysis_workers)
        self.analysis_window = analysis_window
        self.logger = logging.getLogger(__name__)

    async def handle_event(self, payload: Any) -> dict[str, Any]:
        try:
            return await self._handle_event(payload)
        except Exception:
            # Recall retries on non-2xx, so failures are still acknowledged.
            self.logger.exception("Error handling webhook payload=%r", payload)
            return {"status": "error", "message": "Error processing webhook"}

    async def _handle_event(self, payload: Any) -> dict[str, Any]:
        event_type = payload.get("event") if isinstance(payload, dict) else None
        if event_type not in TRANSCRIPT_EVENTS:
            self.logger.info("Ignoring non-transcript event: %s", event_type)
            return SUCCESS

        try:
            event = WebhookEvent.model_validate(payload)
        except ValidationError as exc:
            self.logger.warning("Dropping malformed %s payload: %s", event_type, exc)
            return SUCCESS
        if not event.data.data.words:
            self.logger.info("Dropping %s event without words bot_id=%s", event_type, event.bot_id)
            return SUCCESS

        session_id = await self.store.find_by_bot_id(event.bot_id)
        if not session_id:
            self.logger.warning("No matching meeting found for bot_id=%s", event.bot_id)
            return SUCCESS

        await self.relay_transcript(session_id, event)
        return SUCCESS

    async def relay_transcript(self, session_id: str, event: WebhookEvent) -> None:
        last_word = event.last_word
        sentence = event.sentence
        segment = TranscriptSegment(text=sentence, timestamp=now_ms(), speaker=event.speaker)

        await self.store.update_fields(session_id, last_word=last_word)
        await self.store.append_segment(session_id, segment)
        self.logger.info("Session %s last_word=%r sentence=%r", session_id, last_word, sentence)

        session = await self.store.get(session_id)
        facilitation = session.facilitation_config() if session else FacilitationConfig()
        await self.push.publish(
            word_topic(session_id),
            {
                "lastWord": last_word,
                "currentSentence": sentence,
                "facilitationConfig": facilitation.to_wire(),
            },
        )
        await self.push.publish(
            updates_topic(session_id), {"lastWord": last_word, "timestamp": now_iso()}, local=False
        )

        seq = await self.store.next_analysis_seq(session_id)
        self.worker.submit(AnalysisJob(session_id=session_id, seq=seq))

    async def run_analysis(self, job: AnalysisJob) -> None:
        if job.seq < await self.store.latest_analysis_seq(job.session_id):
            # superseded by a later queued job
            self.logger.debug("Skipping superseded analysis for session %s seq=%d", job.session_id, job.seq)
            return

        session = await self.store.get(job.session_id)
        if session is None:
            self.logger.warning("Session %s disappeared before analysis seq=%d", job.session_id, job.seq)
            return

        segments = await self.store.recent_segments(job.session_id, self.analysis_window)
        result = await self.analyzer.analyze(session.meeting_target, list(reversed(segments)))
        if result.degraded:
            self.logger.warning("Analysis unavailable for session %s seq=%d, keeping previous state", job.session_id, job.seq)
            return

        facilitation = FacilitationConfig(
            meeting_target=session.meeting_target,
            target_state=result.target_state,
            facilitation_feedback=result.feedback,
        )
        applied = await self.store.apply_facilitation(job.session_id, job.seq, facilitation)
        if not applied:
            self.logger.info("Discarding stale analysis for session %s seq=%d", job.session_id, job.seq)
            return

        await self.push.publish(facilitation_topic(job.session_id), {"facilitationConfig": facilitation.to_wire()})
        self.logger.info(
            "Session %s facilitation=%s feedback=%r seq=%d",
            job.session_id,
            facilitation.target_state,
            facilitation.facilitation_feedback,
            job.seq,
        )
