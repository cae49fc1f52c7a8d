from __future__ import annotations

import asyncio

import pytest

from app.modules.generation.errors import StreamFailure
from app.modules.generation.prompt_builder import PromptPayload
from app.modules.generation.streamer import CancellationToken, GenerationStreamer
from app.modules.llm.providers.fake import FakeBackend

PAYLOAD = PromptPayload(prompt_text="BEAT TO EXPAND:\nGo.", system_text="sys")


class _GatedBackend:
    """Emits one fragment, then blocks until released."""

    name = "gated"

    def __init__(self) -> None:
        self.release = asyncio.Event()
        self.closed = False

    def stream_text(self, messages):
        return self._emit()

    async def _emit(self):
        try:
            yield "first"
            await self.release.wait()
            yield "late"
        finally:
            self.closed = True


def test_fragments_arrive_in_backend_order() -> None:
    backend = FakeBackend(fragments=["Rain", " fell", "."])
    received: list[str] = []

    completion = asyncio.run(GenerationStreamer(backend).stream_to(PAYLOAD, received.append))

    assert received == ["Rain", " fell", "."]
    assert completion.text == "Rain fell."
    assert completion.fragments == 3
    assert not completion.cancelled
    assert backend.last_messages == [
        {"role": "system", "content": "sys"},
        {"role": "user", "content": "BEAT TO EXPAND:\nGo."},
    ]


def test_failure_is_single_terminal_error_after_delivered_tokens() -> None:
    backend = FakeBackend(fragments=["partial", " more"], fail_after=1)
    received: list[str] = []

    with pytest.raises(StreamFailure):
        asyncio.run(GenerationStreamer(backend).stream_to(PAYLOAD, received.append))

    assert received == ["partial"]


def test_cancel_stops_delivery_and_closes_backend_stream() -> None:
    backend = _GatedBackend()
    streamer = GenerationStreamer(backend)
    received: list[str] = []

    async def _scenario():
        cancel = CancellationToken()

        def _on_token(fragment: str) -> None:
            received.append(fragment)
            cancel.cancel()
            backend.release.set()

        return await streamer.stream_to(PAYLOAD, _on_token, cancel=cancel)

    completion = asyncio.run(_scenario())

    assert received == ["first"]
    assert completion.cancelled
    assert backend.closed


def test_cancel_while_waiting_for_next_fragment() -> None:
    backend = _GatedBackend()
    streamer = GenerationStreamer(backend)

    async def _scenario():
        cancel = CancellationToken()
        received: list[str] = []

        async def _consume():
            async for fragment in streamer.stream(PAYLOAD, cancel=cancel):
                received.append(fragment)

        task = asyncio.create_task(_consume())
        await asyncio.sleep(0.01)
        cancel.cancel()
        await asyncio.wait_for(task, timeout=1.0)
        backend.release.set()
        return received

    assert asyncio.run(_scenario()) == ["first"]
    assert backend.closed


def test_already_cancelled_token_yields_nothing() -> None:
    backend = FakeBackend(fragments=["a", "b"])

    async def _scenario():
        cancel = CancellationToken()
        cancel.cancel()
        return [fragment async for fragment in GenerationStreamer(backend).stream(PAYLOAD, cancel=cancel)]

    assert asyncio.run(_scenario()) == []
