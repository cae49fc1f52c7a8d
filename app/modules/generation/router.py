from __future__ import annotations

import json
import logging

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import StreamingResponse
from sqlalchemy.orm import Session

from app.db import session as db_session
from app.db.session import get_db
from app.modules.auth.deps import require_author_token
from app.modules.generation.errors import (
    BackendNotReadyError,
    EmptyBeatError,
    GenerationBusyError,
    GenerationError,
    InvalidTransitionError,
)
from app.modules.generation.history import list_prompt_history
from app.modules.generation.lifecycle import (
    EVENT_CANCELLED,
    EVENT_COMPLETED,
    EVENT_FAILED,
    EVENT_TOKEN,
    GenerationLifecycleController,
    GenerationRequest,
    GenerationRun,
)
from app.modules.generation.schemas import (
    GenerationStartRequest,
    GenerationStateOut,
    PromptHistoryItem,
    PromptHistoryResponse,
)
from app.modules.generation.service import build_services, controller_registry
from app.modules.manuscript.service import RecordNotFoundError, get_scene_text, require_scene
from app.modules.prompts.service import resolve_prose_prompt_info

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/projects/{project_id}", tags=["generation"])


def _sse_encode(event_name: str, payload: dict) -> str:
    return f"event: {event_name}\ndata: {json.dumps(payload, ensure_ascii=False)}\n\n"


def _http_error(exc: GenerationError) -> HTTPException:
    if isinstance(exc, (GenerationBusyError, InvalidTransitionError)):
        status_code = 409
    elif isinstance(exc, BackendNotReadyError):
        status_code = 503
    elif isinstance(exc, EmptyBeatError):
        status_code = 422
    else:
        status_code = 500
    return HTTPException(status_code=status_code, detail={"code": exc.code, "message": str(exc)})


def _state_out(scene_id: str, controller: GenerationLifecycleController | None, text: str = "") -> GenerationStateOut:
    if controller is None:
        return GenerationStateOut(scene_id=scene_id, state="idle", text=text)
    highlight = controller.highlight_range
    return GenerationStateOut(
        scene_id=scene_id,
        state=controller.state.value,
        text=controller.document.text,
        beat_input=controller.beat_input,
        last_beat=controller.last_beat,
        session=controller.session.to_dict() if controller.session is not None else None,
        last_outcome=controller.last_outcome.value if controller.last_outcome is not None else None,
        last_error=controller.last_error,
        last_save_ok=controller.last_save_ok,
        show_generated_highlight=controller.show_generated_highlight,
        highlight_range=list(highlight) if highlight is not None else None,
    )


def _scene_not_found(project_id: str, scene_id: str) -> HTTPException:
    return HTTPException(
        status_code=404,
        detail={"code": "NOT_FOUND", "message": f"scene {scene_id} not found in project {project_id}"},
    )


def _project_controller(project_id: str, scene_id: str) -> GenerationLifecycleController | None:
    controller = controller_registry.get(scene_id)
    if controller is not None and controller.document.project_id != project_id:
        raise _scene_not_found(project_id, scene_id)
    return controller


def _require_controller(project_id: str, scene_id: str) -> GenerationLifecycleController:
    controller = _project_controller(project_id, scene_id)
    if controller is None:
        raise HTTPException(
            status_code=409,
            detail={"code": InvalidTransitionError.code, "message": f"no generation session for scene {scene_id}"},
        )
    return controller


def _load_scene(db: Session, project_id: str, scene_id: str):
    try:
        scene = require_scene(db, scene_id)
    except RecordNotFoundError as exc:
        raise HTTPException(status_code=404, detail={"code": "NOT_FOUND", "message": str(exc)}) from exc
    if scene.project_id != project_id:
        raise _scene_not_found(project_id, scene_id)
    return scene


def _event_stream_response(run: GenerationRun, controller: GenerationLifecycleController) -> StreamingResponse:
    async def _event_stream():
        async for event in run.events():
            if event.kind == EVENT_TOKEN:
                yield _sse_encode("token", {"text": event.text})
            elif event.kind == EVENT_COMPLETED:
                yield _sse_encode(
                    "completed",
                    {"text": event.text, "state": controller.state.value, "saved": controller.last_save_ok},
                )
            elif event.kind == EVENT_FAILED:
                yield _sse_encode(
                    "error",
                    {"status": 502, "detail": {"code": "STREAM_FAILURE", "message": event.message or ""}},
                )
            elif event.kind == EVENT_CANCELLED:
                yield _sse_encode("cancelled", {"state": controller.state.value})

    return StreamingResponse(_event_stream(), media_type="text/event-stream")


def _close_with_run(run: GenerationRun, db: Session) -> None:
    if run.task is None:
        db.close()
        return
    run.task.add_done_callback(lambda _task: db.close())


@router.post("/scenes/{scene_id}/generation")
async def start_generation(
    project_id: str,
    scene_id: str,
    payload: GenerationStartRequest,
    _: str | None = Depends(require_author_token),
):
    # the session outlives this handler; it is closed when the run finishes
    db = db_session.SessionLocal()
    try:
        _load_scene(db, project_id, scene_id)
        controller = controller_registry.get_or_create(scene_id, project_id, get_scene_text(db, scene_id))
        prose = resolve_prose_prompt_info(db, project_id, payload.prose_prompt_id)
        request = GenerationRequest(
            beat=payload.beat,
            panel=payload.context.to_selection(),
            pov_character=payload.pov_character,
            pov=payload.pov,
            tense=payload.tense,
            prose_prompt_text=prose.text,
            system_prompt_text=prose.system_text,
        )
        services = build_services(db, project_id, request=request)
        run = await controller.generate_from_beat(request, services=services)
    except GenerationError as exc:
        db.close()
        raise _http_error(exc) from exc
    except Exception:
        db.close()
        raise

    logger.info("generation started for scene %s (prose prompt source=%s)", scene_id, prose.source)
    _close_with_run(run, db)
    return _event_stream_response(run, controller)


@router.post("/scenes/{scene_id}/generation/retry")
async def retry_generation(
    project_id: str,
    scene_id: str,
    _: str | None = Depends(require_author_token),
):
    controller = _require_controller(project_id, scene_id)
    db = db_session.SessionLocal()
    try:
        services = build_services(db, project_id, request=controller.last_request)
        run = await controller.retry(services=services)
    except GenerationError as exc:
        db.close()
        raise _http_error(exc) from exc
    except Exception:
        db.close()
        raise

    logger.info("generation retried for scene %s", scene_id)
    _close_with_run(run, db)
    return _event_stream_response(run, controller)


@router.post("/scenes/{scene_id}/generation/accept", response_model=GenerationStateOut)
async def accept_generation(
    project_id: str,
    scene_id: str,
    _: str | None = Depends(require_author_token),
) -> GenerationStateOut:
    controller = _require_controller(project_id, scene_id)
    with db_session.session_scope() as db:
        services = build_services(db, project_id, request=controller.last_request)
        try:
            await controller.accept(services=services)
        except GenerationError as exc:
            raise _http_error(exc) from exc
    return _state_out(scene_id, controller)


@router.post("/scenes/{scene_id}/generation/discard", response_model=GenerationStateOut)
async def discard_generation(
    project_id: str,
    scene_id: str,
    _: str | None = Depends(require_author_token),
) -> GenerationStateOut:
    controller = _require_controller(project_id, scene_id)
    with db_session.session_scope() as db:
        services = build_services(db, project_id, request=controller.last_request)
        try:
            await controller.discard(services=services)
        except GenerationError as exc:
            raise _http_error(exc) from exc
    return _state_out(scene_id, controller)


@router.get("/scenes/{scene_id}/generation", response_model=GenerationStateOut)
def get_generation_state(project_id: str, scene_id: str, db: Session = Depends(get_db)) -> GenerationStateOut:
    controller = _project_controller(project_id, scene_id)
    if controller is not None:
        return _state_out(scene_id, controller)
    _load_scene(db, project_id, scene_id)
    return _state_out(scene_id, None, text=get_scene_text(db, scene_id))


@router.get("/prompt-history", response_model=PromptHistoryResponse)
def get_prompt_history(
    project_id: str,
    limit: int | None = None,
    db: Session = Depends(get_db),
) -> PromptHistoryResponse:
    entries = list_prompt_history(db, project_id, limit=limit)
    return PromptHistoryResponse(entries=[PromptHistoryItem(**entry.to_dict()) for entry in entries])
