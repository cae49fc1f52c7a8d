from __future__ import annotations

import asyncio
import contextlib
import logging
from collections.abc import AsyncIterator, Awaitable, Callable
from dataclasses import dataclass, field, replace
from enum import Enum

from app.modules.context.resolver import ContextResolver
from app.modules.context.types import ContextPanelSelection
from app.modules.generation.errors import (
    BackendNotReadyError,
    EmptyBeatError,
    GenerationBusyError,
    InvalidTransitionError,
)
from app.modules.generation.history import PromptHistoryLog, new_history_entry
from app.modules.generation.prompt_builder import PromptOptions, build_prompt
from app.modules.generation.streamer import CancellationToken, GenerationStreamer

logger = logging.getLogger(__name__)

GENERATION_FAILED_MESSAGE = "Failed to generate text. Make sure the AI backend is running."
BACKEND_NOT_READY_MESSAGE = "The AI backend is not ready. Configure a provider or start the local server."


class GenerationState(str, Enum):
    IDLE = "idle"
    GENERATING = "generating"
    AWAITING_DECISION = "awaiting_decision"
    ACCEPTED = "accepted"
    DISCARDED = "discarded"


EVENT_TOKEN = "token"
EVENT_COMPLETED = "completed"
EVENT_FAILED = "failed"
EVENT_CANCELLED = "cancelled"
_TERMINAL_EVENTS = frozenset({EVENT_COMPLETED, EVENT_FAILED, EVENT_CANCELLED})


@dataclass(slots=True)
class SceneDocument:
    scene_id: str
    project_id: str
    text: str = ""


@dataclass(frozen=True, slots=True)
class GenerationRequest:
    beat: str | None = None
    panel: ContextPanelSelection = field(default_factory=ContextPanelSelection)
    pov_character: str | None = None
    pov: str | None = None
    tense: str | None = None
    prose_prompt_text: str | None = None
    system_prompt_text: str | None = None


@dataclass(slots=True)
class GenerationSession:
    beat: str
    span_start: int
    prompt_text: str = ""
    system_text: str | None = None
    span_text: str = ""
    state: GenerationState = GenerationState.GENERATING
    history_entry_id: str | None = None

    @property
    def span_end(self) -> int:
        return self.span_start + len(self.span_text)

    def to_dict(self) -> dict[str, object]:
        return {
            "beat": self.beat,
            "span_start": self.span_start,
            "span_end": self.span_end,
            "span_text": self.span_text,
            "prompt_text": self.prompt_text,
            "system_text": self.system_text,
            "state": self.state.value,
            "history_entry_id": self.history_entry_id,
        }


@dataclass(frozen=True, slots=True)
class GenerationEvent:
    kind: str
    text: str = ""
    message: str | None = None

    @property
    def terminal(self) -> bool:
        return self.kind in _TERMINAL_EVENTS


SaveHook = Callable[[SceneDocument], Awaitable[bool]]


@dataclass(slots=True)
class GenerationServices:
    """Collaborators for one controller call; rebuilt per request."""

    resolver: ContextResolver
    streamer: GenerationStreamer
    history: PromptHistoryLog
    is_backend_ready: Callable[[], bool] = lambda: True
    save_hook: SaveHook | None = None
    notify: Callable[[str], None] | None = None
    highlight_s: float = 5.0
    scene_tail_chars: int | None = None


class GenerationRun:
    """Handle on one streaming attempt; events can be consumed once."""

    def __init__(self, session: GenerationSession):
        self.session = session
        self.final_event: GenerationEvent | None = None
        self.task: asyncio.Task | None = None
        self._queue: asyncio.Queue[GenerationEvent] = asyncio.Queue()

    def _emit(self, event: GenerationEvent) -> None:
        if self.final_event is not None:
            return
        if event.terminal:
            self.final_event = event
        self._queue.put_nowait(event)

    async def events(self) -> AsyncIterator[GenerationEvent]:
        while True:
            event = await self._queue.get()
            yield event
            if event.terminal:
                return

    async def wait(self) -> GenerationEvent:
        if self.task is not None:
            with contextlib.suppress(asyncio.CancelledError):
                await asyncio.shield(self.task)
        return self.final_event or GenerationEvent(kind=EVENT_CANCELLED)


class GenerationLifecycleController:
    """Owns the generate / accept / retry / discard cycle for one document.

    At most one session is live at a time. Generated fragments are appended
    to ``document.text`` and mirrored in ``session.span_text`` so the span is
    always the document suffix starting at ``session.span_start``.
    """

    def __init__(self, document: SceneDocument):
        self.document = document
        self.beat_input = ""
        self.last_beat: str | None = None
        self.last_request: GenerationRequest | None = None
        self.session: GenerationSession | None = None
        self.last_outcome: GenerationState | None = None
        self.last_error: str | None = None
        self.last_save_ok: bool | None = None
        self.show_generated_highlight = False
        self._run: GenerationRun | None = None
        self._cancel: CancellationToken | None = None
        self._highlight_handle: asyncio.TimerHandle | None = None

    @property
    def state(self) -> GenerationState:
        return self.session.state if self.session is not None else GenerationState.IDLE

    @property
    def highlight_range(self) -> tuple[int, int] | None:
        if self.session is None:
            return None
        return (self.session.span_start, self.session.span_end)

    def sync_document(self, text: str) -> None:
        if self.session is not None:
            raise GenerationBusyError("document is locked while a generation session is open")
        self.document.text = str(text or "")

    async def generate_from_beat(
        self,
        request: GenerationRequest | None = None,
        *,
        services: GenerationServices,
    ) -> GenerationRun:
        request = request or GenerationRequest()
        beat = str(request.beat if request.beat is not None else self.beat_input).strip()
        if not beat:
            raise EmptyBeatError("beat is empty")
        if self.session is not None:
            raise GenerationBusyError(f"generation already {self.session.state.value} for scene {self.document.scene_id}")
        if not services.is_backend_ready():
            self._notify(services, BACKEND_NOT_READY_MESSAGE)
            raise BackendNotReadyError(BACKEND_NOT_READY_MESSAGE)

        self.beat_input = beat
        self.last_beat = beat
        self.last_request = replace(request, beat=beat)
        self.last_error = None
        session = GenerationSession(beat=beat, span_start=len(self.document.text))
        self.session = session
        self._cancel = CancellationToken()

        run = GenerationRun(session)
        self._run = run
        run.task = asyncio.create_task(self._drive(run, self.last_request, services, self._cancel))
        return run

    async def accept(self, *, services: GenerationServices | None = None) -> GenerationSession:
        session = self._require_session(GenerationState.AWAITING_DECISION)
        session.state = GenerationState.ACCEPTED
        self.session = None
        self.last_outcome = GenerationState.ACCEPTED
        await self._save(services)
        return session

    async def retry(self, *, services: GenerationServices) -> GenerationRun:
        session = self._require_session(GenerationState.GENERATING, GenerationState.AWAITING_DECISION)
        await self._halt_stream()
        self._truncate(session.span_start)
        self.beat_input = self.last_beat or session.beat
        session.state = GenerationState.DISCARDED
        self.session = None
        request = self.last_request or GenerationRequest()
        return await self.generate_from_beat(replace(request, beat=self.beat_input), services=services)

    async def discard(self, *, services: GenerationServices | None = None) -> GenerationSession:
        session = self._require_session(GenerationState.GENERATING, GenerationState.AWAITING_DECISION)
        await self._halt_stream()
        self._truncate(session.span_start)
        self.beat_input = ""
        session.state = GenerationState.DISCARDED
        self.session = None
        self.last_outcome = GenerationState.DISCARDED
        await self._save(services)
        return session

    async def _drive(
        self,
        run: GenerationRun,
        request: GenerationRequest,
        services: GenerationServices,
        cancel: CancellationToken,
    ) -> None:
        session = run.session
        try:
            context = await services.resolver.resolve(
                request.panel,
                session.beat,
                project_id=self.document.project_id,
            )
            payload = build_prompt(
                session.beat,
                self.document.text,
                PromptOptions(
                    pov_character=request.pov_character,
                    pov=request.pov,
                    tense=request.tense,
                    prose_prompt_text=request.prose_prompt_text,
                    system_prompt_text=request.system_prompt_text,
                    compendium_entries=context.compendium_entries,
                    scene_summaries=context.scene_summaries,
                    scene_tail_chars=services.scene_tail_chars,
                ),
            )
            session.prompt_text = payload.prompt_text
            session.system_text = payload.system_text
            await self._record_history(session, services)

            self.beat_input = ""
            async for fragment in services.streamer.stream(payload, cancel=cancel):
                self.document.text += fragment
                session.span_text += fragment
                run._emit(GenerationEvent(kind=EVENT_TOKEN, text=fragment))
        except asyncio.CancelledError:
            run._emit(GenerationEvent(kind=EVENT_CANCELLED))
            raise
        except Exception as exc:  # noqa: BLE001
            self._fail(session, exc, services)
            if session.span_text:
                # delivered fragments stay in the document
                await self._save(services)
            run._emit(GenerationEvent(kind=EVENT_FAILED, message=self.last_error))
            return

        if cancel.cancelled:
            run._emit(GenerationEvent(kind=EVENT_CANCELLED))
            return

        session.state = GenerationState.AWAITING_DECISION
        self._start_highlight(services.highlight_s)
        await self._save(services)
        run._emit(GenerationEvent(kind=EVENT_COMPLETED, text=session.span_text))

    async def _record_history(self, session: GenerationSession, services: GenerationServices) -> None:
        entry = new_history_entry(
            project_id=self.document.project_id,
            scene_id=self.document.scene_id,
            beat=session.beat,
            prompt=session.prompt_text,
        )
        try:
            await services.history.append(entry)
        except Exception:  # noqa: BLE001
            logger.warning("failed to save prompt history for scene %s", self.document.scene_id, exc_info=True)
            return
        session.history_entry_id = entry.id

    async def _halt_stream(self) -> None:
        if self._cancel is not None:
            self._cancel.cancel()
        run = self._run
        if run is not None and run.task is not None and not run.task.done():
            await run.wait()

    def _truncate(self, span_start: int) -> None:
        if span_start <= len(self.document.text):
            self.document.text = self.document.text[:span_start]

    def _fail(self, session: GenerationSession, exc: Exception, services: GenerationServices) -> None:
        logger.error("generation failed for scene %s: %s", self.document.scene_id, exc, exc_info=exc)
        message = f"{GENERATION_FAILED_MESSAGE}\n\nError: {exc}"
        self.last_error = message
        session.state = GenerationState.IDLE
        if self.session is session:
            self.session = None
        self.last_outcome = GenerationState.IDLE
        self._notify(services, message)

    def _require_session(self, *allowed: GenerationState) -> GenerationSession:
        session = self.session
        if session is None or session.state not in allowed:
            current = self.state.value
            expected = ", ".join(state.value for state in allowed)
            raise InvalidTransitionError(f"generation is {current}; expected one of: {expected}")
        return session

    async def _save(self, services: GenerationServices | None) -> bool:
        hook = services.save_hook if services is not None else None
        if hook is None:
            return True
        try:
            ok = bool(await hook(self.document))
        except Exception:  # noqa: BLE001
            logger.warning("save hook raised for scene %s", self.document.scene_id, exc_info=True)
            ok = False
        if not ok:
            logger.warning("scene %s was not saved after generation", self.document.scene_id)
        self.last_save_ok = ok
        return ok

    def _start_highlight(self, delay_s: float) -> None:
        self.show_generated_highlight = True
        if self._highlight_handle is not None:
            self._highlight_handle.cancel()
        loop = asyncio.get_running_loop()
        self._highlight_handle = loop.call_later(max(0.0, float(delay_s)), self._clear_highlight)

    def _clear_highlight(self) -> None:
        self.show_generated_highlight = False
        self._highlight_handle = None

    @staticmethod
    def _notify(services: GenerationServices, message: str) -> None:
        if services.notify is None:
            return
        try:
            services.notify(message)
        except Exception:  # noqa: BLE001
            # user notification must never break the generation cycle
            logger.debug("notify callback failed", exc_info=True)
