"""streaming.py — Server-Sent-Events emulation for streamed chat completions.

Two pieces:

``StreamingEmulator``
    Owns the per-stream state machine (EMITTING → DONE | CANCELLED), keyed
    by ``stream_id``. Each ``step()`` emits the next character of the
    selected content sample as a ``chat.completion.chunk`` payload. It also
    holds the cancellation token of every live stream, so cancelling an id
    (or the whole emulator) stops the response body that is reading it.

``ChatStream``
    The live response body handed to httpx, readable from async and sync
    clients. An explicit loop paces steps through the injected scheduler,
    frames each chunk as ``data: ...\\n\\n`` and ends with
    ``data: [DONE]\\n\\n``. Closing the response cancels the token, which
    wakes any pending sleep and releases the stream state.

Called by: core/handlers.py (chat endpoint with ``stream: true``)
Depends on: mock/samples.py, mock/factory.py, core/scheduling.py
"""

from __future__ import annotations

import json
import logging
from collections.abc import AsyncIterator, Iterator, Sequence
from dataclasses import dataclass
from enum import Enum
from typing import Any

import httpx
from faker import Faker

from openai_api_mock.core.scheduling import CancellationToken, Clock, Scheduler, unix_now
from openai_api_mock.mock.factory import create_stream_chunk, random_id
from openai_api_mock.mock.samples import detect_content_type, get_content_sample

logger = logging.getLogger(__name__)

DONE_EVENT = b"data: [DONE]\n\n"
DEFAULT_MAX_CHUNKS = 500


class StreamPhase(str, Enum):
    EMITTING = "emitting"
    DONE = "done"
    CANCELLED = "cancelled"


class StreamClosedError(LookupError):
    """Raised when stepping a stream that already finished or was cancelled."""

    def __init__(self, stream_id: str) -> None:
        self.stream_id = stream_id
        super().__init__(f"Stream {stream_id} is closed")


@dataclass
class StreamState:
    """Progress of one streamed completion."""

    stream_id: str
    content: str
    content_type: str
    cursor: int = 0
    emitted: int = 0
    phase: StreamPhase = StreamPhase.EMITTING

    @property
    def finished(self) -> bool:
        return self.cursor >= len(self.content)


@dataclass(frozen=True)
class StepResult:
    """One emitted chunk plus what it means for the stream."""

    chunk: dict[str, Any]
    finished: bool  # content exhausted; this chunk carries finish_reason="stop"
    capped: bool    # safety cap reached before the content ran out

    @property
    def terminal(self) -> bool:
        return self.finished or self.capped


def encode_event(payload: dict[str, Any]) -> bytes:
    """Frame a payload as one SSE ``data:`` event."""
    return f"data: {json.dumps(payload, ensure_ascii=False)}\n\n".encode("utf-8")


# ─── State Machine ────────────────────────────────────────────────────────────


class StreamingEmulator:
    """Per-session registry of stream states.

    Streams with distinct ids never touch each other's state. Once an id has
    finished or been cancelled it stays closed: stepping it again raises
    ``StreamClosedError`` unless the caller asks for a ``reset``.
    """

    def __init__(self, rng: Faker, clock: Clock, *, max_chunks: int = DEFAULT_MAX_CHUNKS) -> None:
        self._rng = rng
        self._clock = clock
        self.max_chunks = max_chunks
        self._states: dict[str, StreamState] = {}
        self._tokens: dict[str, CancellationToken] = {}
        self._closed: set[str] = set()

    @property
    def active_streams(self) -> list[str]:
        return list(self._states)

    def get_state(self, stream_id: str) -> StreamState | None:
        return self._states.get(stream_id)

    def is_closed(self, stream_id: str) -> bool:
        return stream_id in self._closed

    def new_stream_id(self) -> str:
        return random_id("chatcmpl-", self._rng)

    def track(self, stream_id: str, token: CancellationToken) -> None:
        """Attach the token of the response body reading ``stream_id``."""
        self._tokens[stream_id] = token

    def open(self, stream_id: str, messages: Sequence[Any]) -> StreamState:
        """Create (or reset) the state for ``stream_id`` with a fresh sample."""
        content_type = detect_content_type(messages)
        state = StreamState(
            stream_id=stream_id,
            content=get_content_sample(content_type, self._rng),
            content_type=content_type,
        )
        self._closed.discard(stream_id)
        self._states[stream_id] = state
        return state

    def step(self, stream_id: str, messages: Sequence[Any], *, reset: bool = False) -> StepResult:
        """Emit the next character of ``stream_id``.

        The first step for an id (or any step with ``reset=True``) selects
        the content sample. The first and the final chunk carry the
        ``contentType`` tag. Terminal steps discard the state.

        Raises:
            StreamClosedError: If ``stream_id`` already finished or was
                cancelled and ``reset`` is False.
        """
        state = self._states.get(stream_id)
        if state is None and not reset and stream_id in self._closed:
            raise StreamClosedError(stream_id)
        if reset or state is None:
            state = self.open(stream_id, messages)

        first = state.cursor == 0
        char = state.content[state.cursor] if state.cursor < len(state.content) else ""
        state.cursor += 1
        state.emitted += 1

        finished = state.finished
        capped = not finished and state.emitted >= self.max_chunks
        chunk = create_stream_chunk(
            stream_id,
            content=char,
            created=unix_now(self._clock),
            finished=finished,
            content_type=state.content_type if first or finished else None,
            first=first,
        )

        if capped:
            logger.warning(
                "Stream %s hit the %d chunk cap before finishing; terminating",
                stream_id,
                self.max_chunks,
            )
        if finished or capped:
            state.phase = StreamPhase.DONE
            self._release(stream_id)

        return StepResult(chunk=chunk, finished=finished, capped=capped)

    def cancel(self, stream_id: str) -> None:
        """Abort ``stream_id``: stop its reader and release its state.

        Unknown ids are ignored.
        """
        state = self._states.get(stream_id)
        token = self._tokens.get(stream_id)
        if state is None and token is None:
            return
        if token is not None:
            token.cancel()
        if state is not None:
            state.phase = StreamPhase.CANCELLED
            logger.debug("Stream %s cancelled at cursor %d", stream_id, state.cursor)
        self._release(stream_id)

    def cancel_all(self) -> None:
        for stream_id in set(self._states) | set(self._tokens):
            self.cancel(stream_id)

    def _release(self, stream_id: str) -> None:
        self._states.pop(stream_id, None)
        self._tokens.pop(stream_id, None)
        self._closed.add(stream_id)


# ─── Response Body ────────────────────────────────────────────────────────────


class ChatStream(httpx.SyncByteStream, httpx.AsyncByteStream):
    """Paced SSE body for one streamed chat completion.

    Async clients iterate it with ``async for`` and pace through
    ``Scheduler.sleep``; sync clients iterate it with ``for`` and pace
    through ``Scheduler.sleep_blocking``. Either way it can be read once.
    """

    def __init__(
        self,
        emulator: StreamingEmulator,
        messages: Sequence[Any],
        *,
        scheduler: Scheduler,
        interval: float,
        stream_id: str | None = None,
    ) -> None:
        self.emulator = emulator
        self.messages = list(messages)
        self.scheduler = scheduler
        self.interval = interval  # seconds
        self.stream_id = stream_id or emulator.new_stream_id()
        self.token = CancellationToken()
        self.phase = StreamPhase.EMITTING
        self.chunks_sent = 0
        self._started = False
        emulator.track(self.stream_id, self.token)

    def _begin(self) -> None:
        if self._started:
            raise httpx.StreamConsumed()
        self._started = True

    def _emit(self) -> list[bytes]:
        """Run one step and return the events it produces."""
        try:
            result = self.emulator.step(self.stream_id, self.messages, reset=self.chunks_sent == 0)
        except StreamClosedError:
            self.token.cancel()
            return []

        self.chunks_sent += 1
        events = [encode_event(result.chunk)]
        if result.terminal:
            self.phase = StreamPhase.DONE
            events.append(DONE_EVENT)
        return events

    async def __aiter__(self) -> AsyncIterator[bytes]:
        self._begin()
        while not self.token.cancelled:
            await self.scheduler.sleep(self.interval, self.token)
            if self.token.cancelled:
                break
            for event in self._emit():
                yield event
            if self.phase is StreamPhase.DONE:
                return
        self.phase = StreamPhase.CANCELLED

    def __iter__(self) -> Iterator[bytes]:
        self._begin()
        while not self.token.cancelled:
            self.scheduler.sleep_blocking(self.interval, self.token)
            if self.token.cancelled:
                break
            yield from self._emit()
            if self.phase is StreamPhase.DONE:
                return
        self.phase = StreamPhase.CANCELLED

    def _abort(self) -> None:
        if self.phase is StreamPhase.DONE or self.token.cancelled:
            return
        self.token.cancel()
        self.phase = StreamPhase.CANCELLED
        self.emulator.cancel(self.stream_id)

    def close(self) -> None:
        """Connection closed by a sync consumer: stop emitting and drop state."""
        self._abort()

    async def aclose(self) -> None:
        """Connection closed by the consumer: stop emitting and drop state."""
        self._abort()
