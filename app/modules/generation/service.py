from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable

from sqlalchemy.orm import Session

from app.config import settings
from app.modules.context.lookups import SqlStoryLookups
from app.modules.context.mentions import BeatMentionResolver
from app.modules.context.resolver import ContextResolver
from app.modules.generation.history import SqlPromptHistory
from app.modules.generation.lifecycle import (
    GenerationLifecycleController,
    GenerationRequest,
    GenerationServices,
    SceneDocument,
)
from app.modules.generation.streamer import GenerationStreamer
from app.modules.llm.readiness import backend_monitor
from app.modules.llm.registry import get_backend
from app.modules.manuscript.service import save_scene

logger = logging.getLogger(__name__)


class DocumentControllerRegistry:
    """One lifecycle controller per open scene, shared across requests."""

    def __init__(self) -> None:
        self._controllers: dict[str, GenerationLifecycleController] = {}

    def get(self, scene_id: str) -> GenerationLifecycleController | None:
        return self._controllers.get(scene_id)

    def get_or_create(self, scene_id: str, project_id: str, text: str) -> GenerationLifecycleController:
        controller = self._controllers.get(scene_id)
        if controller is None:
            controller = GenerationLifecycleController(SceneDocument(scene_id=scene_id, project_id=project_id, text=text))
            self._controllers[scene_id] = controller
        elif controller.session is None:
            # stored text is authoritative while nothing is pending
            controller.sync_document(text)
        return controller

    def is_locked(self, scene_id: str) -> bool:
        controller = self._controllers.get(scene_id)
        return controller is not None and controller.session is not None

    def sync_if_idle(self, scene_id: str, text: str) -> None:
        controller = self._controllers.get(scene_id)
        if controller is not None and controller.session is None:
            controller.sync_document(text)

    def reset(self) -> None:
        self._controllers.clear()


controller_registry = DocumentControllerRegistry()


def build_services(
    db: Session,
    project_id: str,
    *,
    request: GenerationRequest | None = None,
    notify: Callable[[str], None] | None = None,
) -> GenerationServices:
    lookups = SqlStoryLookups(db)
    request = request or GenerationRequest()

    async def _save(document: SceneDocument) -> bool:
        return await asyncio.to_thread(
            save_scene,
            db,
            document.scene_id,
            text=document.text,
            pov_character=request.pov_character,
            pov=request.pov,
            tense=request.tense,
        )

    return GenerationServices(
        resolver=ContextResolver(lookups, BeatMentionResolver(lookups, project_id)),
        streamer=GenerationStreamer(get_backend()),
        history=SqlPromptHistory(db),
        is_backend_ready=backend_monitor.is_ready,
        save_hook=_save,
        notify=notify or (lambda message: logger.warning("generation notice: %s", message)),
        highlight_s=float(settings.generation_highlight_s),
        scene_tail_chars=int(settings.prompt_scene_tail_chars) or None,
    )
