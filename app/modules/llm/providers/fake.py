import asyncio
import re
from collections.abc import AsyncIterator

from app.modules.llm.base import TextGenerationBackend
from app.modules.llm.errors import LLMCallError

_WORD_RE = re.compile(r"\S+\s*")
DEFAULT_FAKE_TEXT = "This is a generated response from the AI model."


class FakeBackend(TextGenerationBackend):
    """Offline backend for development and tests.

    Emits ``fragments`` (or ``text`` split into words) with an optional delay,
    and can be told to fail after a number of fragments.
    """

    name = "fake"

    def __init__(
        self,
        *,
        text: str = DEFAULT_FAKE_TEXT,
        fragments: list[str] | None = None,
        delay_s: float = 0.0,
        fail_after: int | None = None,
    ):
        self.text = text
        self.fragments = list(fragments) if fragments is not None else None
        self.delay_s = float(delay_s)
        self.fail_after = fail_after
        self.stream_calls = 0
        self.last_messages: list[dict] | None = None

    def _planned_fragments(self) -> list[str]:
        if self.fragments is not None:
            return list(self.fragments)
        return _WORD_RE.findall(self.text)

    async def _emit(self) -> AsyncIterator[str]:
        for index, fragment in enumerate(self._planned_fragments()):
            if self.fail_after is not None and index >= self.fail_after:
                raise LLMCallError("fake stream failure")
            if self.delay_s > 0:
                await asyncio.sleep(self.delay_s)
            yield fragment
        if self.fail_after is not None and self.fail_after >= len(self._planned_fragments()):
            raise LLMCallError("fake stream failure")

    def stream_text(self, messages: list[dict]) -> AsyncIterator[str]:
        self.stream_calls += 1
        self.last_messages = list(messages)
        return self._emit()
