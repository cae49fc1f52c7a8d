from __future__ import annotations

import asyncio
import contextlib
import logging
from collections.abc import AsyncIterator, Callable
from dataclasses import dataclass

import httpx

from app.modules.generation.errors import StreamFailure
from app.modules.generation.prompt_builder import PromptPayload
from app.modules.llm.base import TextGenerationBackend
from app.modules.llm.errors import LLMCallError

logger = logging.getLogger(__name__)

_TRANSPORT_ERRORS: tuple[type[BaseException], ...] = (
    httpx.HTTPError,
    LLMCallError,
    TimeoutError,
    OSError,
    ValueError,
)


class CancellationToken:
    def __init__(self) -> None:
        self._event = asyncio.Event()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self) -> None:
        self._event.set()

    async def wait(self) -> None:
        await self._event.wait()


@dataclass(frozen=True, slots=True)
class Completion:
    text: str
    fragments: int
    cancelled: bool = False


class _StreamCancelled(Exception):
    pass


class GenerationStreamer:
    """Delivers backend fragments in emission order, with cooperative cancellation."""

    def __init__(self, backend: TextGenerationBackend):
        self.backend = backend

    async def _next_fragment(self, iterator: AsyncIterator[str], cancel: CancellationToken | None) -> str:
        if cancel is None:
            return await iterator.__anext__()
        next_task = asyncio.ensure_future(iterator.__anext__())
        cancel_task = asyncio.ensure_future(cancel.wait())
        try:
            done, _pending = await asyncio.wait({next_task, cancel_task}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            cancel_task.cancel()
        if next_task in done:
            return next_task.result()
        next_task.cancel()
        with contextlib.suppress(asyncio.CancelledError, StopAsyncIteration, *_TRANSPORT_ERRORS):
            await next_task
        raise _StreamCancelled()

    async def stream(self, payload: PromptPayload, *, cancel: CancellationToken | None = None) -> AsyncIterator[str]:
        """Yield fragments until the backend completes, fails or ``cancel`` fires.

        After cancellation no further fragment is yielded, including one that
        was already in flight, and the backend iterator is closed.
        """
        iterator = aiter(self.backend.stream_text(payload.as_messages()))
        try:
            while True:
                if cancel is not None and cancel.cancelled:
                    return
                try:
                    fragment = await self._next_fragment(iterator, cancel)
                except StopAsyncIteration:
                    return
                except _StreamCancelled:
                    logger.info("generation stream cancelled by caller")
                    return
                except _TRANSPORT_ERRORS as exc:
                    raise StreamFailure(str(exc) or exc.__class__.__name__) from exc
                if cancel is not None and cancel.cancelled:
                    return
                if fragment:
                    yield fragment
        finally:
            aclose = getattr(iterator, "aclose", None)
            if aclose is not None:
                with contextlib.suppress(*_TRANSPORT_ERRORS, RuntimeError):
                    await aclose()

    async def stream_to(
        self,
        payload: PromptPayload,
        on_token: Callable[[str], None],
        *,
        cancel: CancellationToken | None = None,
    ) -> Completion:
        parts: list[str] = []
        async for fragment in self.stream(payload, cancel=cancel):
            parts.append(fragment)
            on_token(fragment)
        return Completion(
            text="".join(parts),
            fragments=len(parts),
            cancelled=bool(cancel is not None and cancel.cancelled),
        )
