from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import AsyncIterator
from contextlib import aclosing
from typing import Literal, TypedDict

import httpx

from app.modules.llm.errors import LLMCallError

logger = logging.getLogger(__name__)

CHAT_COMPLETIONS_PATH = "/chat/completions"
_CONNECT_RETRY_DELAYS_S = (0.2, 0.5)


class ChatCompletionMessage(TypedDict):
    role: Literal["system", "user", "assistant"]
    content: str


def normalize_messages(messages: list[dict]) -> list[ChatCompletionMessage]:
    normalized: list[ChatCompletionMessage] = []
    for item in messages:
        if not isinstance(item, dict):
            continue
        role = str(item.get("role") or "").strip().lower()
        content = str(item.get("content") or "")
        if role not in {"system", "user", "assistant"}:
            continue
        normalized.append({"role": role, "content": content})
    return normalized


def endpoint_url(*, base_url: str, path: str = CHAT_COMPLETIONS_PATH) -> str:
    return f"{base_url.rstrip('/')}/{path.lstrip('/')}"


def extract_stream_chunk_text(chunk: dict, *, ignore_reasoning: bool = True) -> str:
    if not isinstance(chunk, dict):
        return ""
    choices = chunk.get("choices")
    if not isinstance(choices, list) or not choices:
        return ""
    first = choices[0]
    if not isinstance(first, dict):
        return ""
    delta = first.get("delta")
    if not isinstance(delta, dict):
        return ""

    fragments: list[str] = []
    reasoning = delta.get("reasoning_content")
    if not ignore_reasoning and isinstance(reasoning, str) and reasoning:
        fragments.append(reasoning)
    content = delta.get("content")
    if isinstance(content, str) and content:
        fragments.append(content)
    return "".join(fragments)


async def _stream_chat_completion_chunks(
    *,
    api_key: str,
    endpoint_url: str,
    model: str,
    messages: list[ChatCompletionMessage],
    temperature: float,
    max_tokens: int | None,
    timeout: httpx.Timeout,
) -> AsyncIterator[dict]:
    headers = {"Content-Type": "application/json"}
    if api_key:
        headers["Authorization"] = f"Bearer {api_key}"
    payload: dict = {
        "model": model,
        "messages": messages,
        "temperature": temperature,
        "stream": True,
    }
    if max_tokens is not None and max_tokens > 0:
        payload["max_tokens"] = int(max_tokens)

    async with httpx.AsyncClient(timeout=timeout) as client:
        async with client.stream("POST", endpoint_url, headers=headers, json=payload) as response:
            if response.status_code != 200:
                raise httpx.HTTPStatusError(
                    f"chat/completions stream non-200: {response.status_code}",
                    request=response.request,
                    response=response,
                )

            async for line in response.aiter_lines():
                text = str(line or "").strip()
                if not text or not text.startswith("data:"):
                    continue
                payload_text = text[len("data:") :].strip()
                if not payload_text:
                    continue
                if payload_text == "[DONE]":
                    break
                try:
                    chunk = json.loads(payload_text)
                except json.JSONDecodeError as exc:
                    raise LLMCallError("invalid streamed json chunk") from exc
                if isinstance(chunk, dict):
                    yield chunk


async def stream_chat_completion_text(
    *,
    api_key: str,
    base_url: str,
    model: str,
    messages: list[dict],
    timeout_s: float,
    path: str = CHAT_COMPLETIONS_PATH,
    connect_timeout_s: float | None = None,
    read_timeout_s: float | None = None,
    temperature: float = 0.8,
    max_tokens: int | None = None,
    connect_attempts: int = 3,
    ignore_reasoning: bool = True,
) -> AsyncIterator[str]:
    """Yield content fragments from a streaming chat/completions call.

    Connection failures are retried only until the first chunk arrives. Once
    the stream has started, any failure is terminal: fragments already yielded
    belong to the caller and a silent restart would duplicate them.
    """
    normalized = normalize_messages(messages)
    if not normalized:
        normalized = [{"role": "user", "content": ""}]
    endpoint = endpoint_url(base_url=base_url, path=path)
    timeout = httpx.Timeout(
        timeout=timeout_s,
        connect=connect_timeout_s if connect_timeout_s is not None else timeout_s,
        read=read_timeout_s if read_timeout_s is not None else timeout_s,
    )

    attempts = max(1, int(connect_attempts))
    last_error: Exception | None = None
    for attempt in range(attempts):
        stream_started = False
        produced = False
        try:
            async with aclosing(
                _stream_chat_completion_chunks(
                    api_key=api_key,
                    endpoint_url=endpoint,
                    model=model,
                    messages=normalized,
                    temperature=temperature,
                    max_tokens=max_tokens,
                    timeout=timeout,
                )
            ) as chunks:
                async for chunk in chunks:
                    stream_started = True
                    piece = extract_stream_chunk_text(chunk, ignore_reasoning=ignore_reasoning)
                    if piece:
                        produced = True
                        yield piece
            if not produced:
                raise LLMCallError("empty streamed content")
            return
        except (httpx.HTTPError, ValueError, LLMCallError) as exc:
            last_error = exc
            if stream_started or attempt >= attempts - 1:
                break
            logger.info("chat/completions connect attempt %s failed: %s", attempt + 1, exc)
            pause_idx = min(attempt, len(_CONNECT_RETRY_DELAYS_S) - 1)
            await asyncio.sleep(_CONNECT_RETRY_DELAYS_S[pause_idx])
    raise LLMCallError(f"chat completions stream failed: {last_error}") from last_error
