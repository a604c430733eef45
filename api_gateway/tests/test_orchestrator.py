"""
Tests for the job orchestrator.

Runs against the in-memory database and a mocked provider transport.
"""

import json
from unittest.mock import AsyncMock, Mock
from uuid import uuid4

import httpx
import pytest

from api_gateway.orchestrator import JobOrchestrator, NO_ARTIFACT_MESSAGE
from shared.logging import get_job_id

VIDEO_URL = "https://cdn.example/v1.mp4"
LINK_TEXT = f"[点击这里]({VIDEO_URL})"
SUCCESS_TEXT = "✅ 视频生成成功"
DONE = b"data: [DONE]\n\n"


def _assert_invariants(job):
    assert (job.completed_at is not None) == (job.status in ("completed", "failed"))
    assert (job.video_id is not None) == (job.status == "completed")


@pytest.mark.asyncio
async def test_cat_surfing_scenario(orchestrator, job_store, video_store, provider, sse):
    job = await job_store.create("user-1", "a cat surfing", "landscape")
    assert (job.status, job.progress) == ("pending", 0)

    observed = {}

    async def body():
        yield sse("进度：45%")
        # The previous chunk has been applied by the time the next one is requested
        observed["mid_stream"] = await job_store.get(job.id)
        yield sse(LINK_TEXT)
        yield sse(SUCCESS_TEXT)
        yield DONE

    provider.then_stream(body)

    await orchestrator.run(job.id)

    mid_stream = observed["mid_stream"]
    assert mid_stream.status == "processing"
    assert mid_stream.progress == 45
    assert mid_stream.lease_owner == "test-worker"

    final = await job_store.get(job.id)
    assert final.status == "completed"
    assert final.progress == 100
    assert final.external_job_id == "chatcmpl-7"
    _assert_invariants(final)

    video = await video_store.get(final.video_id)
    assert video.video_url == VIDEO_URL
    assert video.user_id == "user-1"
    assert video.prompt == "a cat surfing"
    assert video.orientation == "landscape"
    assert video.model_used == "sora_video2-hd-landscape-15s"
    assert video.status == "completed"

    sent = json.loads(provider.requests[0].content)
    assert sent["model"] == "sora_video2-hd-landscape-15s"
    assert sent["messages"] == [{"role": "user", "content": "a cat surfing"}]
    assert sent["stream"] is True


@pytest.mark.asyncio
async def test_portrait_job_uses_portrait_model(orchestrator, job_store, provider, sse):
    job = await job_store.create("user-1", "a dog skiing")
    provider.then_stream(sse(LINK_TEXT), sse(SUCCESS_TEXT), DONE)

    await orchestrator.run(job.id)

    assert json.loads(provider.requests[0].content)["model"] == "sora_video2-hd-portrait-15s"


@pytest.mark.asyncio
async def test_upstream_503_three_times_then_success(orchestrator, job_store, provider, sse):
    job = await job_store.create("user-1", "a cat surfing", "landscape")
    provider.then_status(503).then_status(503).then_status(503)
    provider.then_stream(sse(LINK_TEXT), sse(SUCCESS_TEXT), DONE)

    await orchestrator.run(job.id)

    assert len(provider.requests) == 4
    final = await job_store.get(job.id)
    assert final.status == "completed"
    assert final.error_message is None


@pytest.mark.asyncio
async def test_upstream_404_fails_job_without_retry(orchestrator, job_store, provider):
    job = await job_store.create("user-1", "a cat surfing")
    provider.then_status(404)

    await orchestrator.run(job.id)

    assert len(provider.requests) == 1
    final = await job_store.get(job.id)
    assert final.status == "failed"
    assert "404" in final.error_message
    _assert_invariants(final)


@pytest.mark.asyncio
async def test_upstream_exhausted_retries_fail_job(orchestrator, job_store, provider):
    job = await job_store.create("user-1", "a cat surfing")
    provider.then_status(500)

    await orchestrator.run(job.id)

    assert len(provider.requests) == 6
    final = await job_store.get(job.id)
    assert final.status == "failed"
    assert "500" in final.error_message


@pytest.mark.asyncio
async def test_stream_done_without_url_fails_with_no_artifact_message(orchestrator, job_store, video_store, provider, sse):
    job = await job_store.create("user-1", "a cat surfing")
    provider.then_stream(sse("进度：30%"), sse(SUCCESS_TEXT), DONE)

    await orchestrator.run(job.id)

    final = await job_store.get(job.id)
    assert final.status == "failed"
    assert final.error_message == NO_ARTIFACT_MESSAGE
    assert final.progress == 30
    _assert_invariants(final)
    assert (await video_store.list_by_user("user-1"))[1] == 0


@pytest.mark.asyncio
async def test_duplicate_completion_creates_one_video(orchestrator, job_store, video_store, provider, sse):
    job = await job_store.create("user-1", "a cat surfing")
    provider.then_stream(
        sse(LINK_TEXT),
        sse(SUCCESS_TEXT),
        sse(SUCCESS_TEXT),
        sse(finish_reason="stop"),
        DONE,
    )

    await orchestrator.run(job.id)

    final = await job_store.get(job.id)
    videos, total = await video_store.list_by_user("user-1")
    assert final.status == "completed"
    assert final.error_message is None
    assert total == 1
    assert final.video_id == videos[0].id


@pytest.mark.asyncio
async def test_finish_reason_stop_completes_without_success_marker(orchestrator, job_store, video_store, provider, sse):
    job = await job_store.create("user-1", "a cat surfing")
    provider.then_stream(sse(LINK_TEXT), sse(finish_reason="stop"), DONE)

    await orchestrator.run(job.id)

    final = await job_store.get(job.id)
    assert final.status == "completed"
    assert (await video_store.get(final.video_id)).video_url == VIDEO_URL


@pytest.mark.asyncio
async def test_reading_stops_at_finish_event(orchestrator, job_store, provider, sse):
    job = await job_store.create("user-1", "a cat surfing")
    reads_after_finish = []

    async def body():
        yield sse(LINK_TEXT)
        yield sse(finish_reason="stop")
        reads_after_finish.append(True)
        yield sse("进度：10%")

    provider.then_stream(body)

    await orchestrator.run(job.id)

    assert reads_after_finish == []
    assert (await job_store.get(job.id)).progress == 100


@pytest.mark.asyncio
async def test_out_of_range_progress_is_skipped(orchestrator, job_store, provider, sse):
    job = await job_store.create("user-1", "a cat surfing")
    progress_seen = []

    async def body():
        yield sse("进度：20%")
        yield sse("进度：150%")
        progress_seen.append((await job_store.get(job.id)).progress)
        yield sse(LINK_TEXT)
        yield sse(SUCCESS_TEXT)
        yield DONE

    provider.then_stream(body)

    await orchestrator.run(job.id)

    assert progress_seen == [20]
    assert (await job_store.get(job.id)).status == "completed"


@pytest.mark.asyncio
async def test_final_line_without_newline_is_processed(orchestrator, job_store, provider, sse):
    job = await job_store.create("user-1", "a cat surfing")
    provider.then_stream(sse(LINK_TEXT), sse(SUCCESS_TEXT).rstrip(b"\n"))

    await orchestrator.run(job.id)

    assert (await job_store.get(job.id)).status == "completed"


@pytest.mark.asyncio
async def test_stream_read_error_fails_job(orchestrator, job_store, provider, sse):
    job = await job_store.create("user-1", "a cat surfing")

    async def body():
        yield sse("进度：10%")
        raise httpx.ReadError("connection reset")

    provider.then_stream(body)

    await orchestrator.run(job.id)

    final = await job_store.get(job.id)
    assert final.status == "failed"
    assert final.error_message.startswith("Stream reading failed")


@pytest.mark.asyncio
async def test_invalid_artifact_url_fails_job(orchestrator, job_store, video_store, provider, sse):
    job = await job_store.create("user-1", "a cat surfing")
    provider.then_stream(sse("[点击这里](https:///v1.mp4)"), sse(SUCCESS_TEXT), DONE)

    await orchestrator.run(job.id)

    final = await job_store.get(job.id)
    assert final.status == "failed"
    assert "Invalid video" in final.error_message


@pytest.mark.asyncio
async def test_missing_job_is_a_silent_no_op(orchestrator, provider):
    await orchestrator.run(uuid4())

    assert provider.requests == []


@pytest.mark.asyncio
async def test_job_not_pending_is_left_alone(orchestrator, job_store, provider):
    job = await job_store.create("user-1", "a cat surfing")
    await job_store.mark_failed(job.id, "cancelled upstream")

    await orchestrator.run(job.id)

    final = await job_store.get(job.id)
    assert final.error_message == "cancelled upstream"
    assert provider.requests == []


@pytest.mark.asyncio
async def test_run_never_raises_and_clears_log_context(video_store):
    job_store = Mock()
    job_store.get = AsyncMock(side_effect=RuntimeError("database unavailable"))
    job_store.mark_failed = AsyncMock(side_effect=RuntimeError("database unavailable"))
    orchestrator = JobOrchestrator(job_store, video_store, Mock())
    job_id = uuid4()

    await orchestrator.run(job_id)

    job_store.mark_failed.assert_awaited_once_with(job_id, "database unavailable")
    assert get_job_id() is None


@pytest.mark.asyncio
async def test_failure_on_already_terminal_job_is_not_raised(orchestrator, job_store):
    job = await job_store.create("user-1", "a cat surfing")
    await job_store.mark_failed(job.id, "first failure")

    await orchestrator.handle_job_error(job.id, RuntimeError("second failure"))

    assert (await job_store.get(job.id)).error_message == "first failure"
