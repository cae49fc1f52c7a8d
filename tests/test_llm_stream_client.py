from __future__ import annotations

import asyncio

import httpx
import pytest

from app.modules.llm.client import LLMCallError, extract_stream_chunk_text, normalize_messages, stream_chat_completion_text

_CHUNKS_TARGET = "app.modules.llm.client._stream_chat_completion_chunks"


def _base_kwargs() -> dict:
    return {
        "api_key": "k",
        "base_url": "https://example.com/v1",
        "path": "/chat/completions",
        "model": "demo-model",
        "messages": [{"role": "user", "content": "hello"}],
        "timeout_s": 5.0,
    }


async def _collect(**kwargs) -> list[str]:
    return [piece async for piece in stream_chat_completion_text(**kwargs)]


def test_stream_client_yields_fragments_in_order_and_ignores_reasoning(monkeypatch) -> None:
    async def _fake_stream(**kwargs):
        del kwargs
        yield {"choices": [{"delta": {"content": "Hel"}}]}
        yield {"choices": [{"delta": {"reasoning_content": "internal reasoning"}}]}
        yield {"choices": [{"delta": {"content": "lo"}}]}

    monkeypatch.setattr(_CHUNKS_TARGET, _fake_stream)
    pieces = asyncio.run(_collect(**_base_kwargs(), ignore_reasoning=True))
    assert pieces == ["Hel", "lo"]


def test_stream_client_can_include_reasoning_when_configured(monkeypatch) -> None:
    async def _fake_stream(**kwargs):
        del kwargs
        yield {"choices": [{"delta": {"reasoning_content": "think "}}]}
        yield {"choices": [{"delta": {"content": "answer"}}]}

    monkeypatch.setattr(_CHUNKS_TARGET, _fake_stream)
    pieces = asyncio.run(_collect(**_base_kwargs(), ignore_reasoning=False))
    assert "".join(pieces) == "think answer"


def test_stream_client_raises_on_empty_streamed_content(monkeypatch) -> None:
    async def _fake_stream(**kwargs):
        del kwargs
        yield {"choices": [{"delta": {"reasoning_content": "only reasoning"}}]}

    monkeypatch.setattr(_CHUNKS_TARGET, _fake_stream)
    with pytest.raises(LLMCallError):
        asyncio.run(_collect(**_base_kwargs(), ignore_reasoning=True))


def test_stream_client_fails_fast_when_stream_breaks_midway(monkeypatch) -> None:
    state = {"attempt": 0}
    received: list[str] = []

    async def _broken_stream(**kwargs):
        del kwargs
        state["attempt"] += 1
        yield {"choices": [{"delta": {"content": "partial"}}]}
        raise httpx.ReadError("broken", request=httpx.Request("POST", "https://example.com"))

    async def _consume() -> None:
        async for piece in stream_chat_completion_text(**_base_kwargs()):
            received.append(piece)

    monkeypatch.setattr(_CHUNKS_TARGET, _broken_stream)
    with pytest.raises(LLMCallError):
        asyncio.run(_consume())
    assert received == ["partial"]
    assert state["attempt"] == 1


def test_stream_client_retries_before_stream_start(monkeypatch) -> None:
    state = {"attempt": 0}

    async def _flaky_stream(**kwargs):
        del kwargs
        state["attempt"] += 1
        if state["attempt"] < 3:
            raise httpx.ConnectError("connect failed", request=httpx.Request("POST", "https://example.com"))
        yield {"choices": [{"delta": {"content": "ok"}}]}

    async def _no_sleep(_delay: float) -> None:
        return None

    monkeypatch.setattr(_CHUNKS_TARGET, _flaky_stream)
    monkeypatch.setattr("app.modules.llm.client.asyncio.sleep", _no_sleep)
    pieces = asyncio.run(_collect(**_base_kwargs(), connect_attempts=3))
    assert pieces == ["ok"]
    assert state["attempt"] == 3


def test_stream_client_gives_up_after_connect_attempts(monkeypatch) -> None:
    state = {"attempt": 0}

    async def _down(**kwargs):
        del kwargs
        state["attempt"] += 1
        raise httpx.ConnectError("refused", request=httpx.Request("POST", "https://example.com"))
        yield {}  # pragma: no cover

    async def _no_sleep(_delay: float) -> None:
        return None

    monkeypatch.setattr(_CHUNKS_TARGET, _down)
    monkeypatch.setattr("app.modules.llm.client.asyncio.sleep", _no_sleep)
    with pytest.raises(LLMCallError, match="refused"):
        asyncio.run(_collect(**_base_kwargs(), connect_attempts=2))
    assert state["attempt"] == 2


def test_stream_client_passes_request_shape_to_transport(monkeypatch) -> None:
    seen: dict = {}

    async def _capture(**kwargs):
        seen.update(kwargs)
        yield {"choices": [{"delta": {"content": "x"}}]}

    monkeypatch.setattr(_CHUNKS_TARGET, _capture)
    asyncio.run(
        _collect(
            **_base_kwargs() | {"messages": [{"role": "system", "content": "s"}, {"role": "tool", "content": "t"}]},
            temperature=0.3,
            max_tokens=128,
        )
    )
    assert seen["endpoint_url"] == "https://example.com/v1/chat/completions"
    assert seen["messages"] == [{"role": "system", "content": "s"}]
    assert seen["temperature"] == 0.3
    assert seen["max_tokens"] == 128


def test_extract_stream_chunk_text_tolerates_malformed_chunks() -> None:
    assert extract_stream_chunk_text({}) == ""
    assert extract_stream_chunk_text({"choices": []}) == ""
    assert extract_stream_chunk_text({"choices": [{"delta": None}]}) == ""
    assert extract_stream_chunk_text({"choices": [{"delta": {"content": "a"}}]}) == "a"


def test_normalize_messages_drops_unknown_roles() -> None:
    assert normalize_messages([{"role": "USER", "content": "hi"}, {"role": "bot", "content": "x"}, "junk"]) == [
        {"role": "user", "content": "hi"}
    ]
