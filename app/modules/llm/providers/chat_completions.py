from collections.abc import AsyncIterator

from app.modules.llm.base import TextGenerationBackend
from app.modules.llm.client import stream_chat_completion_text


class ChatCompletionsBackend(TextGenerationBackend):
    """OpenAI-compatible streaming backend (hosted APIs, LM Studio, llama-server)."""

    def __init__(
        self,
        *,
        name: str,
        api_key: str,
        base_url: str,
        model: str,
        temperature: float = 0.8,
        max_tokens: int | None = None,
        timeout_s: float = 60.0,
        connect_timeout_s: float | None = None,
        read_timeout_s: float | None = None,
        connect_attempts: int = 3,
    ):
        self.name = name
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.model = model
        self.temperature = float(temperature)
        self.max_tokens = int(max_tokens) if max_tokens is not None else None
        self.timeout_s = float(timeout_s)
        self.connect_timeout_s = connect_timeout_s
        self.read_timeout_s = read_timeout_s
        self.connect_attempts = int(connect_attempts)

    def stream_text(self, messages: list[dict]) -> AsyncIterator[str]:
        return stream_chat_completion_text(
            api_key=self.api_key,
            base_url=self.base_url,
            model=self.model,
            messages=messages,
            timeout_s=self.timeout_s,
            connect_timeout_s=self.connect_timeout_s,
            read_timeout_s=self.read_timeout_s,
            temperature=self.temperature,
            max_tokens=self.max_tokens,
            connect_attempts=self.connect_attempts,
        )
