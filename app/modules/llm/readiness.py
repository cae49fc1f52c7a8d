from __future__ import annotations

import logging
from dataclasses import dataclass

import httpx

from app.config import Settings, settings
from app.modules.llm.registry import KEYLESS_PROVIDERS

logger = logging.getLogger(__name__)

STATUS_READY = "ready"
STATUS_NOT_CONFIGURED = "not-configured"
STATUS_ERROR = "error"
STATUS_UNKNOWN = "unknown"


@dataclass(frozen=True, slots=True)
class BackendStatus:
    status: str
    text: str
    provider: str
    mode: str

    @property
    def is_ready(self) -> bool:
        return self.status == STATUS_READY

    def to_dict(self) -> dict[str, object]:
        return {
            "status": self.status,
            "text": self.text,
            "provider": self.provider,
            "mode": self.mode,
            "ready": self.is_ready,
        }


async def check_backend(cfg: Settings | None = None) -> BackendStatus:
    """Probe the configured backend the way the editor does on startup.

    API mode is ready as soon as a key is present (or the provider needs
    none). Local mode asks the server's ``/health`` endpoint.
    """
    cfg = cfg or settings
    mode = str(cfg.ai_mode or "api").strip().lower()
    provider = str(cfg.ai_provider or "").strip().lower()
    has_key = bool(str(cfg.ai_api_key or "").strip())

    if mode == "api":
        if has_key or provider in KEYLESS_PROVIDERS:
            model = str(cfg.ai_model or "").strip()
            text = f"AI Ready ({model})" if model else f"AI Ready ({provider})"
            return BackendStatus(status=STATUS_READY, text=text, provider=provider, mode=mode)
        logger.info("AI not configured: missing API key for %s", provider)
        return BackendStatus(status=STATUS_NOT_CONFIGURED, text="Configure AI", provider=provider, mode=mode)

    if mode == "local":
        endpoint = str(cfg.ai_endpoint or "http://localhost:8080").rstrip("/")
        try:
            async with httpx.AsyncClient(timeout=httpx.Timeout(float(cfg.ai_health_timeout_s))) as client:
                response = await client.get(f"{endpoint}/health")
        except httpx.HTTPError as exc:
            logger.info("local AI server health check failed: %s", exc)
            return BackendStatus(status=STATUS_ERROR, text="Local server offline", provider="llama", mode=mode)
        if response.status_code == 200:
            return BackendStatus(status=STATUS_READY, text="AI Ready (Local Server)", provider="llama", mode=mode)
        logger.info("local AI server health returned %s", response.status_code)
        return BackendStatus(status=STATUS_ERROR, text="Local server offline", provider="llama", mode=mode)

    return BackendStatus(status=STATUS_NOT_CONFIGURED, text="Configure AI", provider=provider, mode=mode)


class BackendMonitor:
    """Caches the last readiness probe so generation can check it synchronously."""

    def __init__(self) -> None:
        self.reset()

    def reset(self) -> None:
        self._status = BackendStatus(status=STATUS_UNKNOWN, text="Checking AI...", provider="", mode="")

    @property
    def status(self) -> BackendStatus:
        return self._status

    def is_ready(self) -> bool:
        return self._status.is_ready

    def set_status(self, status: BackendStatus) -> None:
        self._status = status

    async def refresh(self, cfg: Settings | None = None) -> BackendStatus:
        self._status = await check_backend(cfg)
        return self._status


backend_monitor = BackendMonitor()
