import pytest

from facilitator.models.session_model import FacilitationConfig, TranscriptSegment
from facilitator.services.session_store import SessionStore, bot_index_key, session_key, transcript_key


@pytest.mark.asyncio
async def test_create_and_get_round_trip(store):
    session = await store.create("https://zoom.us/j/111", "bot-1", meeting_target="Talk only about apples")

    loaded = await store.get(session.session_id)
    assert loaded is not None
    assert loaded.meeting_url == "https://zoom.us/j/111"
    assert loaded.external_bot_id == "bot-1"
    assert loaded.status == "active"
    assert loaded.last_word == ""
    assert loaded.facilitation.target_state == "neutral"
    assert loaded.facilitation_config().meeting_target == "Talk only about apples"
    assert loaded.analysis_seq == 0


@pytest.mark.asyncio
async def test_session_ids_are_unique(store):
    first = await store.create("https://zoom.us/j/1", "bot-1")
    second = await store.create("https://zoom.us/j/1", "bot-2")
    assert first.session_id != second.session_id


@pytest.mark.asyncio
async def test_get_unknown_session_returns_none(store):
    assert await store.get("missing") is None


@pytest.mark.asyncio
async def test_update_fields_requires_existing_session(store):
    with pytest.raises(KeyError):
        await store.update_fields("missing", last_word="hi")


@pytest.mark.asyncio
async def test_update_fields_rejects_unknown_attribute(store):
    session = await store.create("https://zoom.us/j/1", "bot-1")
    with pytest.raises(ValueError):
        await store.update_fields(session.session_id, facilitation="on_topic")


@pytest.mark.asyncio
async def test_segment_list_is_capped_newest_first(store, redis):
    session = await store.create("https://zoom.us/j/1", "bot-1")
    for idx in range(11):
        await store.append_segment(session.session_id, TranscriptSegment(text=f"line {idx}", timestamp=idx))

    assert len(redis.lists[transcript_key(session.session_id)]) == 10
    segments = await store.recent_segments(session.session_id)
    assert [segment.text for segment in segments][:2] == ["line 10", "line 9"]
    assert "line 0" not in [segment.text for segment in segments]

    latest_two = await store.recent_segments(session.session_id, 2)
    assert [segment.text for segment in latest_two] == ["line 10", "line 9"]


@pytest.mark.asyncio
async def test_recent_segments_skips_unreadable_entries(store, redis):
    session = await store.create("https://zoom.us/j/1", "bot-1")
    await store.append_segment(session.session_id, TranscriptSegment(text="ok", timestamp=1, speaker="Bob"))
    await redis.lpush(transcript_key(session.session_id), "not json")

    segments = await store.recent_segments(session.session_id)
    assert [(segment.text, segment.speaker) for segment in segments] == [("ok", "Bob")]


@pytest.mark.asyncio
async def test_find_by_bot_id_uses_index(store):
    session = await store.create("https://zoom.us/j/1", "bot-1")
    await store.create("https://zoom.us/j/2", "bot-2")
    assert await store.find_by_bot_id("bot-1") == session.session_id
    assert await store.find_by_bot_id("bot-unknown") is None


@pytest.mark.asyncio
async def test_find_by_bot_id_falls_back_to_scan_and_backfills(redis):
    store = SessionStore(redis)
    await redis.hset(session_key("legacy"), mapping={"meetingUrl": "u", "recallBotId": "bot-old", "status": "active"})

    assert await store.list_session_ids() == ["legacy"]
    assert await store.find_by_bot_id("bot-old") == "legacy"
    assert redis.strings[bot_index_key("bot-old")] == "legacy"


@pytest.mark.asyncio
async def test_scan_skips_sessions_that_fail_to_read(redis):
    store = SessionStore(redis)
    await redis.hset(session_key("broken"), mapping={"recallBotId": "bot-x"})
    await redis.hset(session_key("good"), mapping={"recallBotId": "bot-x"})
    redis.broken_hashes.add(session_key("broken"))

    assert await store.find_by_bot_id("bot-x") == "good"


@pytest.mark.asyncio
async def test_apply_facilitation_ignores_older_sequence(store):
    session = await store.create("https://zoom.us/j/1", "bot-1", meeting_target="apples")
    seq1 = await store.next_analysis_seq(session.session_id)
    seq2 = await store.next_analysis_seq(session.session_id)
    assert seq2 > seq1

    newer = FacilitationConfig(target_state="on_topic", facilitation_feedback="Nice apples")
    older = FacilitationConfig(target_state="off_topic", facilitation_feedback="Back to apples")
    assert await store.apply_facilitation(session.session_id, seq2, newer) is True
    assert await store.apply_facilitation(session.session_id, seq1, older) is False

    loaded = await store.get(session.session_id)
    assert loaded.facilitation.target_state == "on_topic"
    assert loaded.facilitation.facilitation_feedback == "Nice apples"
    assert loaded.analysis_seq == seq2


@pytest.mark.asyncio
async def test_find_by_bot_id_drops_index_of_expired_session(store, redis):
    session = await store.create("https://zoom.us/j/1", "bot-1")
    del redis.hashes[session_key(session.session_id)]

    assert await store.find_by_bot_id("bot-1") is None
    assert bot_index_key("bot-1") not in redis.strings


@pytest.mark.asyncio
async def test_find_by_bot_id_rescans_when_index_points_at_expired_session(store, redis):
    await redis.set(bot_index_key("bot-1"), "expired")
    await redis.hset(session_key("current"), mapping={"meetingUrl": "u", "recallBotId": "bot-1", "status": "active"})

    assert await store.find_by_bot_id("bot-1") == "current"
    assert redis.strings[bot_index_key("bot-1")] == "current"


@pytest.mark.asyncio
async def test_latest_analysis_seq_tracks_counter(store):
    session = await store.create("https://zoom.us/j/1", "bot-1")
    assert await store.latest_analysis_seq(session.session_id) == 0
    await store.next_analysis_seq(session.session_id)
    await store.next_analysis_seq(session.session_id)
    assert await store.latest_analysis_seq(session.session_id) == 2
