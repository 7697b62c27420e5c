"""Tests for the SSE streaming emulator and scheduling primitives.

Run with: uv run pytest tests/unit/test_streaming.py -v
"""

from __future__ import annotations

import asyncio
import json
import threading
import time

import httpx
import pytest
from faker import Faker

from openai_api_mock.core.scheduling import (
    AsyncioScheduler,
    CancellationToken,
    ImmediateScheduler,
    unix_now,
)
from openai_api_mock.core.streaming import (
    DONE_EVENT,
    ChatStream,
    StreamClosedError,
    StreamingEmulator,
    StreamPhase,
    encode_event,
)
from openai_api_mock.mock.samples import CONTENT_SAMPLES

MESSAGES = [{"role": "user", "content": "Say hello"}]
JSON_MESSAGES = [{"role": "user", "content": "reply in json"}]


def _clock() -> float:
    return 1_700_000_000.5


def _decode(events: list[bytes]) -> list[dict]:
    assert events[-1] == DONE_EVENT
    payloads = []
    for event in events[:-1]:
        assert event.startswith(b"data: ") and event.endswith(b"\n\n")
        payloads.append(json.loads(event[len(b"data: "):]))
    return payloads


@pytest.fixture
def emulator(rng: Faker) -> StreamingEmulator:
    return StreamingEmulator(rng, _clock)


# ─── StreamingEmulator ────────────────────────────────────────────────────────


class TestStreamingEmulator:
    """The per-stream state machine."""

    def test_steps_spell_out_one_sample(self, emulator: StreamingEmulator):
        chunks = []
        while True:
            result = emulator.step("s1", MESSAGES)
            chunks.append(result.chunk)
            if result.terminal:
                break

        content = "".join(chunk["choices"][0]["delta"]["content"] for chunk in chunks)
        assert content in CONTENT_SAMPLES["text"]
        assert len(chunks) == len(content)
        assert chunks[-1]["choices"][0]["finish_reason"] == "stop"
        assert all(chunk["choices"][0]["finish_reason"] is None for chunk in chunks[:-1])

    def test_content_type_on_first_and_final_chunk(self, emulator: StreamingEmulator):
        chunks = []
        result = None
        while result is None or not result.terminal:
            result = emulator.step("s1", JSON_MESSAGES)
            chunks.append(result.chunk)

        deltas = [chunk["choices"][0]["delta"] for chunk in chunks]
        assert deltas[0]["contentType"] == "json"
        assert deltas[0]["role"] == "assistant"
        assert deltas[-1]["contentType"] == "json"
        assert all("contentType" not in delta for delta in deltas[1:-1])

    def test_chunks_share_id_and_whole_second_timestamp(self, emulator: StreamingEmulator):
        first = emulator.step("s1", MESSAGES).chunk
        second = emulator.step("s1", MESSAGES).chunk

        assert first["id"] == second["id"] == "s1"
        assert first["created"] == 1_700_000_000

    def test_state_is_released_when_finished(self, emulator: StreamingEmulator):
        result = emulator.step("s1", MESSAGES)
        assert emulator.active_streams == ["s1"]
        while not result.terminal:
            result = emulator.step("s1", MESSAGES)

        assert result.finished
        assert emulator.get_state("s1") is None
        assert emulator.active_streams == []

    def test_chunk_cap_terminates_stream(self, rng: Faker):
        emulator = StreamingEmulator(rng, _clock, max_chunks=3)

        results = [emulator.step("s1", MESSAGES) for _ in range(3)]

        assert [result.capped for result in results] == [False, False, True]
        assert results[-1].terminal
        assert not results[-1].finished
        assert emulator.active_streams == []

    def test_streams_are_independent(self, emulator: StreamingEmulator):
        emulator.step("a", MESSAGES)
        emulator.step("a", MESSAGES)
        emulator.step("b", JSON_MESSAGES)

        assert emulator.get_state("a").cursor == 2
        assert emulator.get_state("b").cursor == 1
        assert emulator.get_state("b").content_type == "json"

    def test_reset_restarts_stream(self, emulator: StreamingEmulator):
        emulator.step("s1", MESSAGES)
        emulator.step("s1", MESSAGES)
        emulator.step("s1", MESSAGES, reset=True)

        assert emulator.get_state("s1").cursor == 1

    def test_cancel_releases_state(self, emulator: StreamingEmulator):
        emulator.step("s1", MESSAGES)
        state = emulator.get_state("s1")

        emulator.cancel("s1")
        emulator.cancel("unknown")

        assert state.phase is StreamPhase.CANCELLED
        assert emulator.active_streams == []

    def test_cancel_all(self, emulator: StreamingEmulator):
        emulator.step("a", MESSAGES)
        emulator.step("b", MESSAGES)

        emulator.cancel_all()

        assert emulator.active_streams == []

    def test_finished_stream_is_not_reopened(self, emulator: StreamingEmulator):
        result = emulator.step("s1", MESSAGES)
        while not result.terminal:
            result = emulator.step("s1", MESSAGES)

        assert emulator.is_closed("s1")
        with pytest.raises(StreamClosedError):
            emulator.step("s1", MESSAGES)
        assert emulator.active_streams == []

    def test_cancelled_stream_is_not_reopened(self, emulator: StreamingEmulator):
        emulator.step("s1", MESSAGES)
        emulator.cancel("s1")

        with pytest.raises(StreamClosedError) as excinfo:
            emulator.step("s1", MESSAGES)

        assert excinfo.value.stream_id == "s1"
        assert emulator.active_streams == []

    def test_reset_reopens_closed_stream(self, emulator: StreamingEmulator):
        emulator.step("s1", MESSAGES)
        emulator.cancel("s1")

        result = emulator.step("s1", MESSAGES, reset=True)

        assert result.chunk["choices"][0]["delta"]["role"] == "assistant"
        assert not emulator.is_closed("s1")
        assert emulator.active_streams == ["s1"]

    def test_cancel_all_cancels_tracked_tokens(self, emulator: StreamingEmulator):
        reading = CancellationToken()
        waiting = CancellationToken()
        emulator.track("a", reading)
        emulator.step("a", MESSAGES)
        emulator.track("b", waiting)

        emulator.cancel_all()

        assert reading.cancelled
        assert waiting.cancelled
        assert emulator.active_streams == []
        assert emulator.is_closed("a") and emulator.is_closed("b")

    def test_new_stream_id(self, emulator: StreamingEmulator):
        assert emulator.new_stream_id().startswith("chatcmpl-")


def test_encode_event_keeps_unicode():
    assert encode_event({"content": "é"}) == 'data: {"content": "é"}\n\n'.encode("utf-8")


# ─── ChatStream ───────────────────────────────────────────────────────────────


class TestChatStream:
    """The paced SSE response body."""

    @pytest.mark.anyio
    async def test_full_consumption(self, emulator: StreamingEmulator):
        scheduler = ImmediateScheduler()
        stream = ChatStream(emulator, MESSAGES, scheduler=scheduler, interval=0.05)

        events = [event async for event in stream]

        payloads = _decode(events)
        content = "".join(payload["choices"][0]["delta"]["content"] for payload in payloads)
        assert content in CONTENT_SAMPLES["text"]
        assert {payload["id"] for payload in payloads} == {stream.stream_id}
        assert stream.phase is StreamPhase.DONE
        assert stream.chunks_sent == len(payloads)
        assert scheduler.sleeps == [0.05] * len(payloads)
        assert emulator.active_streams == []

    @pytest.mark.anyio
    async def test_stream_cannot_be_consumed_twice(self, emulator: StreamingEmulator):
        stream = ChatStream(emulator, MESSAGES, scheduler=ImmediateScheduler(), interval=0)
        [event async for event in stream]

        with pytest.raises(httpx.StreamConsumed):
            [event async for event in stream]

    @pytest.mark.anyio
    async def test_aclose_mid_stream_stops_and_releases(self, emulator: StreamingEmulator):
        stream = ChatStream(emulator, MESSAGES, scheduler=ImmediateScheduler(), interval=0)
        iterator = stream.__aiter__()

        await iterator.__anext__()
        await iterator.__anext__()
        assert emulator.active_streams == [stream.stream_id]

        await stream.aclose()

        assert stream.phase is StreamPhase.CANCELLED
        assert stream.token.cancelled
        assert emulator.active_streams == []
        with pytest.raises(StopAsyncIteration):
            await iterator.__anext__()

    @pytest.mark.anyio
    async def test_aclose_after_completion_is_noop(self, emulator: StreamingEmulator):
        stream = ChatStream(emulator, MESSAGES, scheduler=ImmediateScheduler(), interval=0)
        [event async for event in stream]

        await stream.aclose()

        assert stream.phase is StreamPhase.DONE

    @pytest.mark.anyio
    async def test_capped_stream_still_ends_with_done(self, rng: Faker):
        emulator = StreamingEmulator(rng, _clock, max_chunks=4)
        stream = ChatStream(emulator, MESSAGES, scheduler=ImmediateScheduler(), interval=0)

        events = [event async for event in stream]

        assert len(_decode(events)) == 4

    @pytest.mark.anyio
    async def test_emulator_cancel_all_stops_reader(self, emulator: StreamingEmulator):
        stream = ChatStream(emulator, MESSAGES, scheduler=ImmediateScheduler(), interval=0)
        iterator = stream.__aiter__()
        for _ in range(3):
            await iterator.__anext__()

        emulator.cancel_all()

        remaining = [event async for event in iterator]
        assert remaining == []
        assert stream.phase is StreamPhase.CANCELLED
        assert emulator.active_streams == []

    def test_sync_full_consumption(self, emulator: StreamingEmulator):
        scheduler = ImmediateScheduler()
        stream = ChatStream(emulator, MESSAGES, scheduler=scheduler, interval=0.05)

        events = list(stream)

        payloads = _decode(events)
        content = "".join(payload["choices"][0]["delta"]["content"] for payload in payloads)
        assert content in CONTENT_SAMPLES["text"]
        assert stream.phase is StreamPhase.DONE
        assert scheduler.sleeps == [0.05] * len(payloads)
        assert emulator.active_streams == []

    def test_sync_stream_cannot_be_consumed_twice(self, emulator: StreamingEmulator):
        stream = ChatStream(emulator, MESSAGES, scheduler=ImmediateScheduler(), interval=0)
        list(stream)

        with pytest.raises(httpx.StreamConsumed):
            list(stream)

    def test_close_mid_stream_stops_and_releases(self, emulator: StreamingEmulator):
        stream = ChatStream(emulator, MESSAGES, scheduler=ImmediateScheduler(), interval=0)
        iterator = iter(stream)
        next(iterator)
        next(iterator)

        stream.close()

        assert stream.phase is StreamPhase.CANCELLED
        assert list(iterator) == []
        assert emulator.active_streams == []

    def test_sync_cancel_all_stops_reader(self, emulator: StreamingEmulator):
        stream = ChatStream(emulator, MESSAGES, scheduler=ImmediateScheduler(), interval=0)
        iterator = iter(stream)
        next(iterator)

        emulator.cancel_all()

        assert list(iterator) == []
        assert stream.token.cancelled
        assert emulator.active_streams == []


# ─── Scheduling ───────────────────────────────────────────────────────────────


class TestScheduling:
    def test_unix_now_truncates(self):
        assert unix_now(lambda: 12.9) == 12

    @pytest.mark.anyio
    async def test_asyncio_scheduler_wakes_on_cancel(self):
        token = CancellationToken()
        task = asyncio.create_task(AsyncioScheduler().sleep(30, token))
        await asyncio.sleep(0)

        token.cancel()

        await asyncio.wait_for(task, timeout=1)
        assert task.done()

    @pytest.mark.anyio
    async def test_asyncio_scheduler_returns_at_once_when_cancelled(self):
        token = CancellationToken()
        token.cancel()

        await asyncio.wait_for(AsyncioScheduler().sleep(30, token), timeout=1)

    @pytest.mark.anyio
    async def test_asyncio_scheduler_times_out_normally(self):
        await AsyncioScheduler().sleep(0.001, CancellationToken())

    @pytest.mark.anyio
    async def test_immediate_scheduler_records(self):
        scheduler = ImmediateScheduler()
        await scheduler.sleep(0.25)
        await scheduler.sleep(0.05, CancellationToken())

        assert scheduler.sleeps == [0.25, 0.05]

    def test_immediate_scheduler_records_blocking_sleeps(self):
        scheduler = ImmediateScheduler()
        scheduler.sleep_blocking(0.25)
        scheduler.sleep_blocking(0.05, CancellationToken())

        assert scheduler.sleeps == [0.25, 0.05]

    def test_blocking_sleep_returns_at_once_when_cancelled(self):
        token = CancellationToken()
        token.cancel()
        started = time.monotonic()

        AsyncioScheduler().sleep_blocking(30, token)

        assert time.monotonic() - started < 1

    def test_blocking_sleep_wakes_on_cancel_from_another_thread(self):
        token = CancellationToken()
        timer = threading.Timer(0.01, token.cancel)
        timer.start()
        started = time.monotonic()

        AsyncioScheduler().sleep_blocking(30, token)

        timer.join()
        assert time.monotonic() - started < 5
        assert token.cancelled
