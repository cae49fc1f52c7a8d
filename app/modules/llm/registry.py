from __future__ import annotations

from functools import lru_cache

from app.config import Settings, settings
from app.modules.llm.base import TextGenerationBackend
from app.modules.llm.errors import BackendConfigError
from app.modules.llm.providers.chat_completions import ChatCompletionsBackend
from app.modules.llm.providers.fake import FakeBackend

PROVIDER_BASE_URLS: dict[str, str] = {
    "openai": "https://api.openai.com/v1",
    "openrouter": "https://openrouter.ai/api/v1",
    "lmstudio": "http://localhost:1234/v1",
}
KEYLESS_PROVIDERS: frozenset[str] = frozenset({"lmstudio", "fake"})


def resolve_base_url(cfg: Settings) -> str:
    explicit = str(cfg.ai_base_url or "").strip()
    if explicit:
        return explicit
    if str(cfg.ai_mode).strip().lower() == "local":
        return f"{str(cfg.ai_endpoint).rstrip('/')}/v1"
    provider = str(cfg.ai_provider or "").strip().lower()
    base_url = PROVIDER_BASE_URLS.get(provider)
    if not base_url:
        raise BackendConfigError(f"unknown ai_provider {provider!r}; set AI_BASE_URL for custom endpoints")
    return base_url


def build_backend(cfg: Settings) -> TextGenerationBackend:
    provider = str(cfg.ai_provider or "").strip().lower()
    mode = str(cfg.ai_mode or "").strip().lower()
    if mode != "local" and provider == "fake":
        return FakeBackend()
    return ChatCompletionsBackend(
        name="llama" if mode == "local" else provider,
        api_key=str(cfg.ai_api_key or ""),
        base_url=resolve_base_url(cfg),
        model=str(cfg.ai_model or ""),
        temperature=float(cfg.llm_temperature),
        max_tokens=cfg.llm_max_tokens,
        timeout_s=float(cfg.llm_timeout_s),
        connect_timeout_s=float(cfg.llm_connect_timeout_s),
        read_timeout_s=float(cfg.llm_read_timeout_s),
        connect_attempts=int(cfg.llm_stream_connect_attempts),
    )


@lru_cache(maxsize=1)
def get_backend() -> TextGenerationBackend:
    return build_backend(settings)
